"""Alarms for ECS services."""

from dataclasses import dataclass
from tb_monitoring.alarm import (
    AlarmDefinition,
    AlarmKind,
    ComparisonOperator,
    CustomAlarmThreshold,
    DomainAlarmFactory,
    MetricCategory,
    TreatMissingData,
)
from tb_monitoring.metric import Metric, MetricFactory
from tb_monitoring.monitoring import AlarmConsumer, Monitoring, MonitoringScope
from tb_monitoring.naming import MonitoringNamingStrategy
from typing import ClassVar


@dataclass(frozen=True, kw_only=True)
class UsageThreshold(CustomAlarmThreshold):
    """Utilization as a percentage, from 0 to 100."""

    threshold_field: ClassVar[str] = 'max_usage_percent'
    max_usage_percent: float


@dataclass(frozen=True, kw_only=True)
class MinRunningTaskCountThreshold(CustomAlarmThreshold):
    threshold_field: ClassVar[str] = 'min_running_tasks'
    min_running_tasks: float


class EcsAlarmFactory(DomainAlarmFactory):
    """Alarm kinds for ECS services. Usage alarms wait for two consecutive breaching periods before firing."""

    KINDS = {
        'cpu_usage': AlarmKind(
            name_suffix='CPU-Usage',
            description_template='CPU utilization of the service exceeds {threshold}%',
            threshold_type=UsageThreshold,
            category=MetricCategory.UTILIZATION,
            default_comparison_operator=ComparisonOperator.GREATER_THAN_OR_EQUAL,
            default_evaluation_periods=2,
            default_datapoints_to_alarm=2,
            min_threshold=0,
            max_threshold=100,
        ),
        'memory_usage': AlarmKind(
            name_suffix='Memory-Usage',
            description_template='Memory utilization of the service exceeds {threshold}%',
            threshold_type=UsageThreshold,
            category=MetricCategory.UTILIZATION,
            default_comparison_operator=ComparisonOperator.GREATER_THAN_OR_EQUAL,
            default_evaluation_periods=2,
            default_datapoints_to_alarm=2,
            min_threshold=0,
            max_threshold=100,
        ),
        # A service that stops reporting tasks has most likely stopped running them
        'min_running_task_count': AlarmKind(
            name_suffix='Running-Tasks-Min',
            description_template='Number of running tasks is under {threshold}.',
            threshold_type=MinRunningTaskCountThreshold,
            category=MetricCategory.CAPACITY,
            default_comparison_operator=ComparisonOperator.LESS_THAN,
            default_treat_missing_data=TreatMissingData.BREACHING,
            min_threshold=0,
        ),
    }

    def add_cpu_usage_alarm(self, metric: Metric, props: UsageThreshold, disambiguator: str = None) -> AlarmDefinition:
        return self.add_kind_alarm('cpu_usage', metric, props, disambiguator)

    def add_memory_usage_alarm(
        self, metric: Metric, props: UsageThreshold, disambiguator: str = None
    ) -> AlarmDefinition:
        return self.add_kind_alarm('memory_usage', metric, props, disambiguator)

    def add_min_running_task_count_alarm(
        self, metric: Metric, props: MinRunningTaskCountThreshold, disambiguator: str = None
    ) -> AlarmDefinition:
        return self.add_kind_alarm('min_running_task_count', metric, props, disambiguator)


class EcsServiceMonitoring(Monitoring):
    """Monitors an ECS service. Supports these alarm options:

        - ``cpu_usage``: Average CPU utilization of the service (:py:class:`UsageThreshold`).
        - ``memory_usage``: Average memory utilization of the service (:py:class:`UsageThreshold`).
        - ``min_running_task_count``: Too few running tasks, as reported by Container Insights
          (:py:class:`MinRunningTaskCountThreshold`).

    :param scope: The scope finished alarms are registered with.
    :type scope: tb_monitoring.monitoring.MonitoringScope

    :param cluster_name: Name of the cluster the service runs in.
    :type cluster_name: str

    :param service_name: Name of the service. Also the fallback name of the resource.
    :type service_name: str

    :param human_readable_name: Name used in titles. Defaults to None.
    :type human_readable_name: str, optional

    :param alarm_friendly_name: Name used to prefix alarm names. Defaults to None.
    :type alarm_friendly_name: str, optional

    :param use_created_alarms: Called once with all alarms created for this service. Defaults to None.
    :type use_created_alarms: tb_monitoring.monitoring.AlarmConsumer, optional
    """

    ALARM_OPTIONS = {
        'cpu_usage': UsageThreshold,
        'memory_usage': UsageThreshold,
        'min_running_task_count': MinRunningTaskCountThreshold,
    }

    def __init__(
        self,
        scope: MonitoringScope,
        cluster_name: str,
        service_name: str,
        human_readable_name: str = None,
        alarm_friendly_name: str = None,
        add_cpu_usage_alarm: dict[str, UsageThreshold] = None,
        add_memory_usage_alarm: dict[str, UsageThreshold] = None,
        add_min_running_task_count_alarm: dict[str, MinRunningTaskCountThreshold] = None,
        use_created_alarms: AlarmConsumer = None,
    ):
        super().__init__(scope)

        naming_strategy = MonitoringNamingStrategy(
            fallback_construct_name=service_name,
            human_readable_name=human_readable_name,
            alarm_friendly_name=alarm_friendly_name,
        )
        self.title = naming_strategy.resolve_human_readable_name()

        dimensions = {'ClusterName': cluster_name, 'ServiceName': service_name}
        ecs_metrics = MetricFactory('AWS/ECS', dimensions)
        insights_metrics = MetricFactory('ECS/ContainerInsights', dimensions)
        self.ecs_alarm_factory = EcsAlarmFactory(
            self.create_alarm_factory(naming_strategy.resolve_alarm_friendly_name())
        )

        self.cpu_usage_metric = ecs_metrics.metric('CPUUtilization', label='CPU')
        self.memory_usage_metric = ecs_metrics.metric('MemoryUtilization', label='Memory')
        self.running_task_count_metric = insights_metrics.metric('RunningTaskCount', 'Minimum', label='Running tasks')

        self.add_alarms('usage', self.cpu_usage_metric, add_cpu_usage_alarm, self.ecs_alarm_factory.add_cpu_usage_alarm)
        self.add_alarms(
            'usage', self.memory_usage_metric, add_memory_usage_alarm, self.ecs_alarm_factory.add_memory_usage_alarm
        )
        self.add_alarms(
            'task_count',
            self.running_task_count_metric,
            add_min_running_task_count_alarm,
            self.ecs_alarm_factory.add_min_running_task_count_alarm,
        )

        self.finish(use_created_alarms)
