"""Naming of monitored resources, both for humans and for alarm names."""

import re

from tb_monitoring.constants import ALARM_NAME_ALLOWED_PATTERN
from tb_monitoring.exceptions import AlarmConfigurationError


def sanitize_alarm_name(name: str) -> str:
    """Collapses every run of characters not allowed in alarm names into a single hyphen, and strips leading or
    trailing hyphens that result.

    :param name: The raw name.
    :type name: str

    :return: A name safe for use as a CloudWatch alarm name.
    :rtype: str
    """

    return re.sub(ALARM_NAME_ALLOWED_PATTERN, '-', name).strip('-')


class MonitoringNamingStrategy:
    """Decides what to call a monitored resource.

    :param fallback_construct_name: Name to use when neither of the other names is given, typically the AWS name of the
        resource (a queue name, a delivery stream name, etc.).
    :type fallback_construct_name: str, optional

    :param human_readable_name: Name used in dashboard titles.
    :type human_readable_name: str, optional

    :param alarm_friendly_name: Name used as the prefix for alarm names and dedupe keys.
    :type alarm_friendly_name: str, optional
    """

    def __init__(
        self,
        fallback_construct_name: str = None,
        human_readable_name: str = None,
        alarm_friendly_name: str = None,
    ):
        self.fallback_construct_name = fallback_construct_name
        self.human_readable_name = human_readable_name
        self.alarm_friendly_name = alarm_friendly_name

    def resolve_human_readable_name(self) -> str:
        return self.__first_of(self.human_readable_name, self.alarm_friendly_name, self.fallback_construct_name)

    def resolve_alarm_friendly_name(self) -> str:
        name = sanitize_alarm_name(
            self.__first_of(self.alarm_friendly_name, self.human_readable_name, self.fallback_construct_name)
        )
        if not name:
            raise AlarmConfigurationError(f'Name resolved from {self.__describe()} has no usable characters')
        return name

    def __first_of(self, *names: str) -> str:
        for name in names:
            if name:
                return name
        raise AlarmConfigurationError(f'Cannot name a monitored resource with {self.__describe()}')

    def __describe(self) -> str:
        return (
            f'alarm_friendly_name={self.alarm_friendly_name!r}, human_readable_name={self.human_readable_name!r}, '
            f'fallback_construct_name={self.fallback_construct_name!r}'
        )
