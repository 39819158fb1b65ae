"""Resolution of sparse alarm configuration into complete alarm definitions.

Every alarm built by this library passes through :py:class:`tb_monitoring.alarm.AlarmFactory`. Each setting on an
alarm is resolved in the same order:

    1. An override on the threshold configuration, when one is set.
    2. The default for the kind of alarm being built (see :py:class:`tb_monitoring.alarm.AlarmKind`).
    3. The engine-wide default in :py:data:`tb_monitoring.constants.ALARM_DEFAULTS` or
       :py:data:`tb_monitoring.constants.MISSING_DATA_DEFAULTS`.

Resource-specific factories (such as :py:class:`tb_monitoring.kinesis.KinesisAlarmFactory`) only declare alarm kinds;
they never resolve settings themselves.
"""

import math
import pulumi

from dataclasses import dataclass, field, fields
from enum import StrEnum
from tb_monitoring.constants import ALARM_DEFAULTS, MISSING_DATA_DEFAULTS
from tb_monitoring.exceptions import AlarmConfigurationError, InvalidThresholdError, UnknownAlarmKindError
from tb_monitoring.metric import Metric
from tb_monitoring.naming import sanitize_alarm_name
from typing import Any, ClassVar


class ComparisonOperator(StrEnum):
    """How a metric's value is compared against an alarm's threshold."""

    GREATER_THAN = 'GreaterThanThreshold'
    GREATER_THAN_OR_EQUAL = 'GreaterThanOrEqualToThreshold'
    LESS_THAN = 'LessThanThreshold'
    LESS_THAN_OR_EQUAL = 'LessThanOrEqualToThreshold'

    @property
    def symbol(self) -> str:
        return OPERATOR_SYMBOLS[self]


OPERATOR_SYMBOLS = {
    ComparisonOperator.GREATER_THAN: '>',
    ComparisonOperator.GREATER_THAN_OR_EQUAL: '>=',
    ComparisonOperator.LESS_THAN: '<',
    ComparisonOperator.LESS_THAN_OR_EQUAL: '<=',
}


class TreatMissingData(StrEnum):
    """How an alarm evaluates a period in which its metric reported no datapoints."""

    BREACHING = 'breaching'
    NOT_BREACHING = 'notBreaching'
    IGNORE = 'ignore'
    MISSING = 'missing'


class MetricCategory(StrEnum):
    """Broad meaning of the metric an alarm watches. Picks the engine-wide missing-data default."""

    AGE = 'age'
    CAPACITY = 'capacity'
    COUNT = 'count'
    LATENCY = 'latency'
    RATE = 'rate'
    UTILIZATION = 'utilization'


class DedupeScope(StrEnum):
    """Whether alarms of one kind share a dedupe key across all resources or get one per resource."""

    AGGREGATE = 'aggregate'
    RESOURCE = 'resource'


def parse_enum(enum_type: type, value: Any, key: str = None) -> StrEnum:
    """Converts a configured value into a member of ``enum_type``. Accepts a member, a member's value, or a member's
    name; comparison ignores case, hyphens and underscores, so ``not-breaching``, ``NOT_BREACHING`` and
    ``notBreaching`` all mean the same thing.

    :param enum_type: The ``StrEnum`` class to convert into.
    :type enum_type: type

    :param value: The configured value.
    :type value: Any

    :param key: Name of the setting, for error messages.
    :type key: str, optional

    :raises AlarmConfigurationError: When the value matches no member.
    """

    if isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        wanted = _normalize(value)
        for member in enum_type:
            if wanted in (_normalize(member.name), _normalize(member.value)):
                return member
    valid = ', '.join(member.value for member in enum_type)
    raise AlarmConfigurationError(f'Invalid value {value!r} for {key or enum_type.__name__}; expected one of: {valid}')


def _normalize(value: str) -> str:
    return value.replace('-', '').replace('_', '').lower()


#: Shorter names accepted in YAML for threshold settings
CONFIG_ALIASES = {
    'comparison_operator': 'comparison_operator_override',
    'treat_missing_data': 'treat_missing_data_override',
    'alarm_name': 'alarm_name_override',
    'alarm_description': 'alarm_description_override',
    'alarm_dedupe_string': 'alarm_dedupe_string_override',
}


@dataclass(frozen=True, kw_only=True)
class CustomAlarmThreshold:
    """Tunable settings shared by all alarms. Subclasses add the one required threshold field for their alarm kind and
    name it in ``threshold_field``. All settings here are optional; anything left unset is resolved by the
    :py:class:`tb_monitoring.alarm.AlarmFactory`.

    :param comparison_operator_override: Replaces the alarm kind's comparison operator.
    :type comparison_operator_override: ComparisonOperator, optional

    :param treat_missing_data_override: Replaces the alarm kind's missing-data treatment.
    :type treat_missing_data_override: TreatMissingData, optional

    :param disambiguator: Distinguishes several alarms of the same kind on the same metric. A disambiguator passed
        directly to a factory method takes precedence over this one. It becomes part of the alarm name unchanged, so it
        may only use the characters allowed in alarm names.
    :type disambiguator: str, optional

    :param alarm_name_override: Replaces the generated alarm name entirely.
    :type alarm_name_override: str, optional

    :param alarm_description_override: Replaces the generated alarm description.
    :type alarm_description_override: str, optional

    :param alarm_dedupe_string_override: Replaces the generated dedupe key.
    :type alarm_dedupe_string_override: str, optional

    :param evaluation_periods: Number of periods to evaluate.
    :type evaluation_periods: int, optional

    :param datapoints_to_alarm: Number of breaching datapoints within the evaluation periods that trigger the alarm.
    :type datapoints_to_alarm: int, optional

    :param period: Evaluation period in seconds. Defaults to the metric's own period.
    :type period: int, optional

    :param runbook_link: URL of a runbook, appended to the description.
    :type runbook_link: str, optional

    :param documentation_link: URL of further documentation, appended to the description.
    :type documentation_link: str, optional

    :param override_annotation_label: Label for the threshold line drawn on graphs.
    :type override_annotation_label: str, optional

    :param override_annotation_color: Color of the threshold line drawn on graphs.
    :type override_annotation_color: str, optional

    :param override_annotation_visibility: Whether the threshold line is drawn at all. Defaults to True.
    :type override_annotation_visibility: bool, optional

    :param actions_enabled: Whether the alarm triggers its actions. Defaults to True.
    :type actions_enabled: bool, optional

    :param custom_tags: Extra tags for the alarm resource.
    :type custom_tags: dict[str, str], optional
    """

    #: Name of the field holding this kind's threshold value
    threshold_field: ClassVar[str] = None

    comparison_operator_override: ComparisonOperator = None
    treat_missing_data_override: TreatMissingData = None
    disambiguator: str = None
    alarm_name_override: str = None
    alarm_description_override: str = None
    alarm_dedupe_string_override: str = None
    evaluation_periods: int = None
    datapoints_to_alarm: int = None
    period: int = None
    runbook_link: str = None
    documentation_link: str = None
    override_annotation_label: str = None
    override_annotation_color: str = None
    override_annotation_visibility: bool = None
    actions_enabled: bool = None
    custom_tags: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(cls, data: dict) -> 'CustomAlarmThreshold':
        """Builds a threshold from a configuration dict, such as one entry in the ``alarms`` section of a YAML config.
        The key ``threshold`` may be used in place of the kind-specific threshold field, and the keys in
        :py:data:`CONFIG_ALIASES` in place of the longer override names.

        :param data: The threshold settings.
        :type data: dict

        :raises InvalidThresholdError: When no threshold is given.
        :raises AlarmConfigurationError: When the settings contain unknown keys or invalid values.
        """

        if not isinstance(data, dict):
            raise AlarmConfigurationError(f'Alarm settings for {cls.__name__} must be a mapping, not {data!r}')

        settings = {}
        for key, value in data.items():
            if key == 'threshold':
                key = cls.threshold_field
            key = CONFIG_ALIASES.get(key, key)
            if key in settings:
                raise AlarmConfigurationError(f'Setting {key} is given more than once for {cls.__name__}')
            settings[key] = value

        known = {fld.name for fld in fields(cls)}
        unknown = sorted(set(settings) - known)
        if unknown:
            raise AlarmConfigurationError(f'Unknown settings for {cls.__name__}: {", ".join(unknown)}')
        if cls.threshold_field not in settings:
            raise InvalidThresholdError(f'{cls.__name__} requires a threshold ({cls.threshold_field})')

        if settings.get('comparison_operator_override') is not None:
            settings['comparison_operator_override'] = parse_enum(
                ComparisonOperator, settings['comparison_operator_override'], 'comparison_operator'
            )
        if settings.get('treat_missing_data_override') is not None:
            settings['treat_missing_data_override'] = parse_enum(
                TreatMissingData, settings['treat_missing_data_override'], 'treat_missing_data'
            )
        if settings.get('disambiguator') is not None:
            settings['disambiguator'] = str(settings['disambiguator'])
        if settings.get('custom_tags') is None:
            settings.pop('custom_tags', None)
        elif not isinstance(settings['custom_tags'], dict):
            raise AlarmConfigurationError(f'custom_tags for {cls.__name__} must be a mapping')

        return cls(**settings)


@dataclass(frozen=True)
class AlarmKind:
    """Constants describing one kind of alarm, such as "throttled PutRecords on a Kinesis stream".

    :param name_suffix: Appended to the resource's alarm-friendly name to form the alarm name.
    :type name_suffix: str

    :param description_template: ``str.format`` template for the alarm description. The ``{threshold}`` field is
        replaced with the resolved threshold.
    :type description_template: str

    :param threshold_type: The :py:class:`CustomAlarmThreshold` subclass this kind is configured with.
    :type threshold_type: type

    :param category: What the metric measures; picks the engine-wide missing-data default.
    :type category: MetricCategory

    :param default_comparison_operator: Operator used when the threshold does not override it.
    :type default_comparison_operator: ComparisonOperator, optional

    :param default_treat_missing_data: Missing-data treatment used when the threshold does not override it.
    :type default_treat_missing_data: TreatMissingData, optional

    :param dedupe_suffix: The shared dedupe key for ``AGGREGATE`` kinds.
    :type dedupe_suffix: str, optional

    :param dedupe_scope: Whether alarms of this kind on different resources share a dedupe key. Defaults to
        ``DedupeScope.RESOURCE``.
    :type dedupe_scope: DedupeScope, optional

    :param default_evaluation_periods: Evaluation periods used when the threshold does not override them.
    :type default_evaluation_periods: int, optional

    :param default_datapoints_to_alarm: Datapoints to alarm used when the threshold does not override them.
    :type default_datapoints_to_alarm: int, optional

    :param min_threshold: Smallest valid threshold, inclusive.
    :type min_threshold: float, optional

    :param max_threshold: Largest valid threshold, inclusive.
    :type max_threshold: float, optional
    """

    name_suffix: str
    description_template: str
    threshold_type: type
    category: MetricCategory
    default_comparison_operator: ComparisonOperator = None
    default_treat_missing_data: TreatMissingData = None
    dedupe_suffix: str = None
    dedupe_scope: DedupeScope = DedupeScope.RESOURCE
    default_evaluation_periods: int = None
    default_datapoints_to_alarm: int = None
    min_threshold: float = None
    max_threshold: float = None

    def __post_init__(self):
        if self.dedupe_scope == DedupeScope.AGGREGATE and not self.dedupe_suffix:
            raise ValueError(f'Alarm kind {self.name_suffix} aggregates dedupe keys but has no dedupe_suffix')


@dataclass(frozen=True)
class Annotation:
    """A horizontal line drawn on a graph at an alarm's threshold."""

    value: float
    label: str
    color: str = None
    visible: bool = True


@dataclass(frozen=True)
class AlarmDefinition:
    """A fully resolved alarm. Definitions are never modified after creation. Two definitions with equal names hash
    equally, since a name identifies an alarm within its scope."""

    metric: Metric
    threshold: float
    comparison_operator: ComparisonOperator
    treat_missing_data: TreatMissingData
    evaluation_periods: int
    datapoints_to_alarm: int
    period: int
    name: str
    description: str
    dedupe_key: str
    disambiguator: str
    name_suffix: str
    actions_enabled: bool
    annotation: Annotation
    custom_tags: dict[str, str] = field(default_factory=dict)

    def __hash__(self):
        return hash((self.name, self.dedupe_key, self.threshold))

    def to_metric_alarm_args(self) -> dict:
        """Keyword arguments for an ``aws.cloudwatch.MetricAlarm`` implementing this alarm. Actions and tags are left
        for the caller to supply."""

        return {
            'name': self.name,
            'alarm_description': self.description,
            'comparison_operator': self.comparison_operator.value,
            'threshold': self.threshold,
            'evaluation_periods': self.evaluation_periods,
            'datapoints_to_alarm': self.datapoints_to_alarm,
            'period': self.period,
            'treat_missing_data': self.treat_missing_data.value,
            'actions_enabled': self.actions_enabled,
            **self.metric.to_alarm_args(),
        }


def format_threshold(value: float) -> str:
    """Renders a number for descriptions and labels, dropping a meaningless ``.0``."""

    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def validate_threshold(kind: AlarmKind, threshold: Any) -> float:
    """Ensures the threshold is a finite number inside the range valid for ``kind``.

    :raises InvalidThresholdError: When it is not.
    """

    if threshold is None:
        raise InvalidThresholdError(f'Alarm {kind.name_suffix} requires a threshold')
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise InvalidThresholdError(f'Threshold for alarm {kind.name_suffix} must be a number, not {threshold!r}')
    if not math.isfinite(threshold):
        raise InvalidThresholdError(f'Threshold for alarm {kind.name_suffix} must be finite, not {threshold}')
    if kind.min_threshold is not None and threshold < kind.min_threshold:
        raise InvalidThresholdError(
            f'Threshold {threshold} for alarm {kind.name_suffix} is below the minimum of {kind.min_threshold}'
        )
    if kind.max_threshold is not None and threshold > kind.max_threshold:
        raise InvalidThresholdError(
            f'Threshold {threshold} for alarm {kind.name_suffix} is above the maximum of {kind.max_threshold}'
        )
    return threshold


def _first_set(*values):
    for value in values:
        if value is not None:
            return value
    return None


def _positive_int(value: Any, setting: str, alarm: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise AlarmConfigurationError(f'{setting} for alarm {alarm} must be a positive integer, not {value!r}')
    return value


class AlarmFactory:
    """Builds every alarm for one monitored resource.

    :param owner: The object that owns names within this factory's scope. It must have a ``claim_alarm_name`` method
        which raises :py:class:`tb_monitoring.exceptions.DuplicateAlarmNameError` for a name already in use. This is
        usually a :py:class:`tb_monitoring.monitoring.Monitoring` unit.

    :param name_prefix: The resource's alarm-friendly name, which begins every alarm name.
    :type name_prefix: str

    :param global_name_prefix: A prefix shared by all alarms in the scope, prepended to generated names. Defaults to
        None.
    :type global_name_prefix: str, optional
    """

    def __init__(self, owner, name_prefix: str, global_name_prefix: str = None):
        self.owner = owner
        self.name_prefix = name_prefix
        self.global_name_prefix = global_name_prefix

    def resolve(
        self,
        metric: Metric,
        kind: AlarmKind,
        props: CustomAlarmThreshold,
        threshold: float,
        disambiguator: str = None,
    ) -> AlarmDefinition:
        """Resolves an alarm without registering its name anywhere. Calling this twice with the same arguments produces
        equal definitions.

        :param metric: The metric to alarm on.
        :type metric: tb_monitoring.metric.Metric

        :param kind: Constants for the kind of alarm being built.
        :type kind: AlarmKind

        :param props: The configured threshold and overrides.
        :type props: CustomAlarmThreshold

        :param threshold: The threshold value, already extracted from ``props``.
        :type threshold: float

        :param disambiguator: Distinguishes this alarm from others of the same kind on this resource. Falls back to
            ``props.disambiguator``. Empty strings count as no disambiguator.
        :type disambiguator: str, optional

        :raises InvalidThresholdError: When the threshold is invalid for this kind.
        :raises AlarmConfigurationError: When evaluation settings are inconsistent, or the disambiguator contains
            characters not allowed in alarm names.

        :rtype: AlarmDefinition
        """

        threshold = validate_threshold(kind, threshold)
        disambiguator = disambiguator or props.disambiguator or None
        if disambiguator is not None and sanitize_alarm_name(disambiguator) != disambiguator:
            raise AlarmConfigurationError(
                f'Disambiguator {disambiguator!r} for alarm {kind.name_suffix} may only contain letters, digits, '
                "'_', '.' and inner '-'"
            )

        comparison_operator = _first_set(
            props.comparison_operator_override,
            kind.default_comparison_operator,
            ComparisonOperator(ALARM_DEFAULTS['comparison_operator']),
        )
        treat_missing_data = _first_set(
            props.treat_missing_data_override,
            kind.default_treat_missing_data,
            TreatMissingData(MISSING_DATA_DEFAULTS[kind.category]),
        )

        suffix = kind.name_suffix
        evaluation_periods = _first_set(props.evaluation_periods, kind.default_evaluation_periods)
        if evaluation_periods is not None:
            evaluation_periods = _positive_int(evaluation_periods, 'evaluation_periods', suffix)
        if props.datapoints_to_alarm is not None:
            datapoints_to_alarm = _positive_int(props.datapoints_to_alarm, 'datapoints_to_alarm', suffix)
        else:
            datapoints_to_alarm = _first_set(kind.default_datapoints_to_alarm, ALARM_DEFAULTS['datapoints_to_alarm'])
            if evaluation_periods is not None:
                # A default never asks for more datapoints than the configured window holds
                datapoints_to_alarm = min(datapoints_to_alarm, evaluation_periods)
        evaluation_periods = _first_set(evaluation_periods, datapoints_to_alarm)
        if datapoints_to_alarm > evaluation_periods:
            raise AlarmConfigurationError(
                f'Alarm {suffix} needs {datapoints_to_alarm} datapoints but only evaluates {evaluation_periods} periods'
            )
        period = _positive_int(_first_set(props.period, metric.period), 'period', suffix)

        formatted_threshold = format_threshold(threshold)
        if props.alarm_description_override is not None:
            description = props.alarm_description_override
        else:
            description = kind.description_template.format(threshold=formatted_threshold)
        if props.runbook_link:
            description += f' Runbook: {props.runbook_link}'
        if props.documentation_link:
            description += f' Documentation: {props.documentation_link}'

        minutes = format_threshold(evaluation_periods * period / 60)
        annotation = Annotation(
            value=threshold,
            label=_first_set(
                props.override_annotation_label,
                f'{comparison_operator.symbol} {formatted_threshold} for {datapoints_to_alarm} datapoints '
                f'within {minutes} minutes',
            ),
            color=props.override_annotation_color,
            visible=_first_set(props.override_annotation_visibility, True),
        )

        return AlarmDefinition(
            metric=metric,
            threshold=threshold,
            comparison_operator=comparison_operator,
            treat_missing_data=treat_missing_data,
            evaluation_periods=evaluation_periods,
            datapoints_to_alarm=datapoints_to_alarm,
            period=period,
            name=self.alarm_name(kind, props, disambiguator),
            description=description,
            dedupe_key=self.dedupe_key(kind, props),
            disambiguator=disambiguator,
            name_suffix=suffix,
            actions_enabled=_first_set(props.actions_enabled, ALARM_DEFAULTS['actions_enabled']),
            annotation=annotation,
            custom_tags=dict(props.custom_tags),
        )

    def add_alarm(
        self,
        metric: Metric,
        kind: AlarmKind,
        props: CustomAlarmThreshold,
        threshold: float,
        disambiguator: str = None,
    ) -> AlarmDefinition:
        """Resolves an alarm as :py:meth:`resolve` does, then claims its name with the owner.

        :raises DuplicateAlarmNameError: When the name is already taken in this scope.

        :rtype: AlarmDefinition
        """

        alarm = self.resolve(metric, kind, props, threshold, disambiguator=disambiguator)
        self.owner.claim_alarm_name(alarm.name)
        pulumi.debug(f'Resolved alarm {alarm.name} ({alarm.comparison_operator.symbol} {alarm.threshold})')
        return alarm

    def alarm_name(self, kind: AlarmKind, props: CustomAlarmThreshold, disambiguator: str = None) -> str:
        if props.alarm_name_override:
            return props.alarm_name_override

        parts = [self.name_prefix, kind.name_suffix]
        if self.global_name_prefix:
            parts.insert(0, self.global_name_prefix)
        if disambiguator:
            parts.append(disambiguator)
        return sanitize_alarm_name('-'.join(parts))

    def dedupe_key(self, kind: AlarmKind, props: CustomAlarmThreshold) -> str:
        if props.alarm_dedupe_string_override:
            return props.alarm_dedupe_string_override
        if kind.dedupe_scope == DedupeScope.AGGREGATE:
            return kind.dedupe_suffix
        return f'{self.name_prefix}-{kind.name_suffix}'


class DomainAlarmFactory:
    """Base class for resource-specific alarm factories. Subclasses list their alarm kinds in ``KINDS`` and expose one
    small method per kind which calls :py:meth:`add_kind_alarm`.

    :param alarm_factory: The factory that resolves and names alarms for the monitored resource.
    :type alarm_factory: AlarmFactory
    """

    #: Alarm kinds this factory can build, by name
    KINDS: dict[str, AlarmKind] = {}

    def __init__(self, alarm_factory: AlarmFactory):
        self.alarm_factory = alarm_factory

    def add_kind_alarm(
        self, kind_name: str, metric: Metric, props: CustomAlarmThreshold, disambiguator: str = None
    ) -> AlarmDefinition:
        """Builds an alarm of the named kind.

        :raises UnknownAlarmKindError: When this factory has no kind by that name.
        :raises AlarmConfigurationError: When ``props`` is not the threshold type the kind expects.
        """

        kind = self.KINDS.get(kind_name)
        if kind is None:
            raise UnknownAlarmKindError(f'{type(self).__name__} does not support alarms of kind {kind_name!r}')
        if not isinstance(props, kind.threshold_type):
            raise AlarmConfigurationError(
                f'Alarm kind {kind_name!r} expects {kind.threshold_type.__name__}, not {type(props).__name__}'
            )

        threshold = getattr(props, props.threshold_field)
        return self.alarm_factory.add_alarm(metric, kind, props, threshold=threshold, disambiguator=disambiguator)
