"""Alarms for SQS queues."""

from dataclasses import dataclass
from tb_monitoring.alarm import (
    AlarmDefinition,
    AlarmKind,
    ComparisonOperator,
    CustomAlarmThreshold,
    DedupeScope,
    DomainAlarmFactory,
    MetricCategory,
    TreatMissingData,
)
from tb_monitoring.metric import Metric, MetricFactory
from tb_monitoring.monitoring import AlarmConsumer, Monitoring, MonitoringScope
from tb_monitoring.naming import MonitoringNamingStrategy
from typing import ClassVar


@dataclass(frozen=True, kw_only=True)
class MaxMessageAgeThreshold(CustomAlarmThreshold):
    threshold_field: ClassVar[str] = 'max_age_in_seconds'
    max_age_in_seconds: float


@dataclass(frozen=True, kw_only=True)
class MaxMessageCountThreshold(CustomAlarmThreshold):
    threshold_field: ClassVar[str] = 'max_message_count'
    max_message_count: float


@dataclass(frozen=True, kw_only=True)
class MinMessageCountThreshold(CustomAlarmThreshold):
    threshold_field: ClassVar[str] = 'min_message_count'
    min_message_count: float


class SqsAlarmFactory(DomainAlarmFactory):
    """Alarm kinds for SQS queues. Old messages in any queue go to one ticket; queue depth is tracked per queue."""

    KINDS = {
        'max_message_age': AlarmKind(
            name_suffix='Queue-Message-Age-Max',
            description_template='Age of the oldest message in the queue is over {threshold} seconds.',
            threshold_type=MaxMessageAgeThreshold,
            category=MetricCategory.AGE,
            default_comparison_operator=ComparisonOperator.GREATER_THAN,
            default_treat_missing_data=TreatMissingData.MISSING,
            dedupe_suffix='AnyQueueMessageAgeMax',
            dedupe_scope=DedupeScope.AGGREGATE,
            min_threshold=0,
        ),
        'max_message_count': AlarmKind(
            name_suffix='Queue-Message-Count-Max',
            description_template='Number of visible messages in the queue is over {threshold}.',
            threshold_type=MaxMessageCountThreshold,
            category=MetricCategory.COUNT,
            default_comparison_operator=ComparisonOperator.GREATER_THAN,
            min_threshold=0,
        ),
        'min_message_count': AlarmKind(
            name_suffix='Queue-Message-Count-Min',
            description_template='Number of visible messages in the queue is under {threshold}.',
            threshold_type=MinMessageCountThreshold,
            category=MetricCategory.COUNT,
            default_comparison_operator=ComparisonOperator.LESS_THAN,
            min_threshold=0,
        ),
    }

    def add_max_message_age_alarm(
        self, metric: Metric, props: MaxMessageAgeThreshold, disambiguator: str = None
    ) -> AlarmDefinition:
        return self.add_kind_alarm('max_message_age', metric, props, disambiguator)

    def add_max_message_count_alarm(
        self, metric: Metric, props: MaxMessageCountThreshold, disambiguator: str = None
    ) -> AlarmDefinition:
        return self.add_kind_alarm('max_message_count', metric, props, disambiguator)

    def add_min_message_count_alarm(
        self, metric: Metric, props: MinMessageCountThreshold, disambiguator: str = None
    ) -> AlarmDefinition:
        return self.add_kind_alarm('min_message_count', metric, props, disambiguator)


class SqsQueueMonitoring(Monitoring):
    """Monitors an SQS queue. Supports these alarm options:

        - ``max_message_age``: Age of the oldest message (:py:class:`MaxMessageAgeThreshold`).
        - ``max_message_count``: Too many visible messages (:py:class:`MaxMessageCountThreshold`).
        - ``min_message_count``: Too few visible messages (:py:class:`MinMessageCountThreshold`).

    :param scope: The scope finished alarms are registered with.
    :type scope: tb_monitoring.monitoring.MonitoringScope

    :param queue_name: Name of the queue. Also the fallback name of the resource.
    :type queue_name: str

    :param human_readable_name: Name used in titles. Defaults to None.
    :type human_readable_name: str, optional

    :param alarm_friendly_name: Name used to prefix alarm names. Defaults to None.
    :type alarm_friendly_name: str, optional

    :param use_created_alarms: Called once with all alarms created for this queue. Defaults to None.
    :type use_created_alarms: tb_monitoring.monitoring.AlarmConsumer, optional
    """

    ALARM_OPTIONS = {
        'max_message_age': MaxMessageAgeThreshold,
        'max_message_count': MaxMessageCountThreshold,
        'min_message_count': MinMessageCountThreshold,
    }

    def __init__(
        self,
        scope: MonitoringScope,
        queue_name: str,
        human_readable_name: str = None,
        alarm_friendly_name: str = None,
        add_max_message_age_alarm: dict[str, MaxMessageAgeThreshold] = None,
        add_max_message_count_alarm: dict[str, MaxMessageCountThreshold] = None,
        add_min_message_count_alarm: dict[str, MinMessageCountThreshold] = None,
        use_created_alarms: AlarmConsumer = None,
    ):
        super().__init__(scope)

        naming_strategy = MonitoringNamingStrategy(
            fallback_construct_name=queue_name,
            human_readable_name=human_readable_name,
            alarm_friendly_name=alarm_friendly_name,
        )
        self.title = naming_strategy.resolve_human_readable_name()

        metric_factory = MetricFactory('AWS/SQS', {'QueueName': queue_name})
        self.sqs_alarm_factory = SqsAlarmFactory(
            self.create_alarm_factory(naming_strategy.resolve_alarm_friendly_name())
        )

        self.message_age_metric = metric_factory.metric('ApproximateAgeOfOldestMessage', 'Maximum', label='Age')
        self.visible_messages_metric = metric_factory.metric(
            'ApproximateNumberOfMessagesVisible', 'Maximum', label='Visible'
        )

        self.add_alarms(
            'age', self.message_age_metric, add_max_message_age_alarm, self.sqs_alarm_factory.add_max_message_age_alarm
        )
        self.add_alarms(
            'message_count',
            self.visible_messages_metric,
            add_max_message_count_alarm,
            self.sqs_alarm_factory.add_max_message_count_alarm,
        )
        self.add_alarms(
            'message_count',
            self.visible_messages_metric,
            add_min_message_count_alarm,
            self.sqs_alarm_factory.add_min_message_count_alarm,
        )

        self.finish(use_created_alarms)
