"""Errors raised while resolving alarm configuration. All of them indicate a mistake in static configuration and abort
the monitoring build for the affected resource."""


class AlarmConfigurationError(Exception):
    """Base exception for alarm configuration errors."""


class InvalidThresholdError(AlarmConfigurationError):
    """A threshold is missing, is not a finite number, or lies outside the range valid for its alarm kind."""


class DuplicateAlarmNameError(AlarmConfigurationError):
    """Two alarms resolved to the same name within one scope, usually because they share a disambiguator."""


class UnknownAlarmKindError(AlarmConfigurationError):
    """An alarm kind was requested that the domain alarm factory does not support."""
