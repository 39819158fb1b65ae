"""Some global values that should not change often and do not rely on runtime data."""

#: Engine-wide fallbacks for alarm settings that neither the threshold config nor the alarm kind provide. An unset
#: ``evaluation_periods`` falls back to the resolved ``datapoints_to_alarm``.
ALARM_DEFAULTS = {
    'comparison_operator': 'GreaterThanThreshold',
    'datapoints_to_alarm': 3,
    'actions_enabled': True,
}

#: Default period (in seconds) of metrics built by this library
DEFAULT_METRIC_PERIOD = 300
DEFAULT_METRIC_STATISTIC = 'Average'

#: Missing-data treatment per metric category
MISSING_DATA_DEFAULTS = {
    'age': 'missing',
    'capacity': 'notBreaching',
    'count': 'notBreaching',
    'latency': 'notBreaching',
    'rate': 'notBreaching',
    'utilization': 'notBreaching',
}

DEFAULT_PROTECTED_STACKS = ['prod']  #: Which Pulumi stacks should get resource protection by default

#: Characters which are allowed to appear in generated alarm names; anything else gets collapsed into a hyphen
ALARM_NAME_ALLOWED_PATTERN = r'[^A-Za-z0-9_.\-]+'

#: Tag keys applied to synthesized alarms
TAG_ALARM_NAME = 'tb_monitoring_alarm_name'
TAG_DEDUPE_KEY = 'tb_monitoring_dedupe_key'
