"""Alarms for Application Load Balancers and their target groups.

Further detail on these metrics and others can be found within `Amazon's ALB metrics documentation
<https://docs.aws.amazon.com/elasticloadbalancing/latest/application/load-balancer-cloudwatch-metrics.html>`_.
"""

from dataclasses import dataclass
from tb_monitoring.alarm import (
    AlarmDefinition,
    AlarmKind,
    ComparisonOperator,
    CustomAlarmThreshold,
    DomainAlarmFactory,
    MetricCategory,
)
from tb_monitoring.exceptions import AlarmConfigurationError
from tb_monitoring.metric import Metric, MetricFactory
from tb_monitoring.monitoring import AlarmConsumer, Monitoring, MonitoringScope
from tb_monitoring.naming import MonitoringNamingStrategy
from typing import ClassVar


@dataclass(frozen=True, kw_only=True)
class ErrorCountThreshold(CustomAlarmThreshold):
    threshold_field: ClassVar[str] = 'max_error_count'
    max_error_count: float


@dataclass(frozen=True, kw_only=True)
class LatencyThreshold(CustomAlarmThreshold):
    threshold_field: ClassVar[str] = 'max_latency_in_seconds'
    max_latency_in_seconds: float


@dataclass(frozen=True, kw_only=True)
class HealthyHostsThreshold(CustomAlarmThreshold):
    threshold_field: ClassVar[str] = 'max_unhealthy_hosts'
    max_unhealthy_hosts: float


class AlbAlarmFactory(DomainAlarmFactory):
    KINDS = {
        'elb_5xx_count': AlarmKind(
            name_suffix='ELB-5XX-Count',
            description_template='Elevated 5xx errors on the load balancer itself (at least {threshold}).',
            threshold_type=ErrorCountThreshold,
            category=MetricCategory.COUNT,
            default_comparison_operator=ComparisonOperator.GREATER_THAN_OR_EQUAL,
            default_evaluation_periods=2,
            default_datapoints_to_alarm=2,
            min_threshold=0,
        ),
        'target_5xx_count': AlarmKind(
            name_suffix='Target-5XX-Count',
            description_template='Elevated 5xx errors on the targets of the load balancer (at least {threshold}).',
            threshold_type=ErrorCountThreshold,
            category=MetricCategory.COUNT,
            default_comparison_operator=ComparisonOperator.GREATER_THAN_OR_EQUAL,
            default_evaluation_periods=2,
            default_datapoints_to_alarm=2,
            min_threshold=0,
        ),
        'response_time': AlarmKind(
            name_suffix='Response-Time',
            description_template='Average response time is over {threshold} second(s).',
            threshold_type=LatencyThreshold,
            category=MetricCategory.LATENCY,
            default_comparison_operator=ComparisonOperator.GREATER_THAN,
            default_evaluation_periods=2,
            default_datapoints_to_alarm=2,
            min_threshold=0,
        ),
        'unhealthy_host_count': AlarmKind(
            name_suffix='Unhealthy-Hosts',
            description_template='The target group has detected at least {threshold} unhealthy host(s).',
            threshold_type=HealthyHostsThreshold,
            category=MetricCategory.CAPACITY,
            default_comparison_operator=ComparisonOperator.GREATER_THAN_OR_EQUAL,
            min_threshold=0,
        ),
    }

    def add_elb_5xx_count_alarm(
        self, metric: Metric, props: ErrorCountThreshold, disambiguator: str = None
    ) -> AlarmDefinition:
        return self.add_kind_alarm('elb_5xx_count', metric, props, disambiguator)

    def add_target_5xx_count_alarm(
        self, metric: Metric, props: ErrorCountThreshold, disambiguator: str = None
    ) -> AlarmDefinition:
        return self.add_kind_alarm('target_5xx_count', metric, props, disambiguator)

    def add_response_time_alarm(
        self, metric: Metric, props: LatencyThreshold, disambiguator: str = None
    ) -> AlarmDefinition:
        return self.add_kind_alarm('response_time', metric, props, disambiguator)

    def add_unhealthy_host_count_alarm(
        self, metric: Metric, props: HealthyHostsThreshold, disambiguator: str = None
    ) -> AlarmDefinition:
        return self.add_kind_alarm('unhealthy_host_count', metric, props, disambiguator)


class ApplicationLoadBalancerMonitoring(Monitoring):
    """Monitors an Application Load Balancer and, optionally, one of its target groups. Supports these alarm options:

        - ``elb_5xx_count``: 5xx responses generated by the load balancer itself (:py:class:`ErrorCountThreshold`).
        - ``target_5xx_count``: 5xx responses generated by the load balancer's targets
          (:py:class:`ErrorCountThreshold`).
        - ``response_time``: Average target response time (:py:class:`LatencyThreshold`).
        - ``unhealthy_host_count``: Unhealthy hosts in the target group (:py:class:`HealthyHostsThreshold`). Requires
          ``target_group_arn_suffix``.

    :param scope: The scope finished alarms are registered with.
    :type scope: tb_monitoring.monitoring.MonitoringScope

    :param load_balancer_arn_suffix: The load balancer's ARN suffix (``app/name/id``), as CloudWatch identifies it.
        The load balancer's name is taken from it as the fallback name of the resource.
    :type load_balancer_arn_suffix: str

    :param target_group_arn_suffix: A target group's ARN suffix (``targetgroup/name/id``). Defaults to None.
    :type target_group_arn_suffix: str, optional

    :param human_readable_name: Name used in titles. Defaults to None.
    :type human_readable_name: str, optional

    :param alarm_friendly_name: Name used to prefix alarm names. Defaults to None.
    :type alarm_friendly_name: str, optional

    :param use_created_alarms: Called once with all alarms created for this load balancer. Defaults to None.
    :type use_created_alarms: tb_monitoring.monitoring.AlarmConsumer, optional
    """

    ALARM_OPTIONS = {
        'elb_5xx_count': ErrorCountThreshold,
        'target_5xx_count': ErrorCountThreshold,
        'response_time': LatencyThreshold,
        'unhealthy_host_count': HealthyHostsThreshold,
    }

    def __init__(
        self,
        scope: MonitoringScope,
        load_balancer_arn_suffix: str,
        target_group_arn_suffix: str = None,
        human_readable_name: str = None,
        alarm_friendly_name: str = None,
        add_elb_5xx_count_alarm: dict[str, ErrorCountThreshold] = None,
        add_target_5xx_count_alarm: dict[str, ErrorCountThreshold] = None,
        add_response_time_alarm: dict[str, LatencyThreshold] = None,
        add_unhealthy_host_count_alarm: dict[str, HealthyHostsThreshold] = None,
        use_created_alarms: AlarmConsumer = None,
    ):
        super().__init__(scope)

        if add_unhealthy_host_count_alarm and not target_group_arn_suffix:
            raise AlarmConfigurationError('Unhealthy host alarms need a target_group_arn_suffix')

        # "app/my-alb/50dc6c495c0c9188" is the load balancer named "my-alb"
        lb_parts = load_balancer_arn_suffix.split('/')
        naming_strategy = MonitoringNamingStrategy(
            fallback_construct_name=lb_parts[1] if len(lb_parts) > 1 else load_balancer_arn_suffix,
            human_readable_name=human_readable_name,
            alarm_friendly_name=alarm_friendly_name,
        )
        self.title = naming_strategy.resolve_human_readable_name()

        lb_metrics = MetricFactory('AWS/ApplicationELB', {'LoadBalancer': load_balancer_arn_suffix}, period=60)
        self.alb_alarm_factory = AlbAlarmFactory(
            self.create_alarm_factory(naming_strategy.resolve_alarm_friendly_name())
        )

        self.elb_5xx_metric = lb_metrics.metric('HTTPCode_ELB_5XX_Count', 'Sum', label='ELB 5xx')
        self.target_5xx_metric = lb_metrics.metric('HTTPCode_Target_5XX_Count', 'Sum', label='Target 5xx')
        self.response_time_metric = lb_metrics.metric('TargetResponseTime', label='Response time')
        self.unhealthy_hosts_metric = None
        if target_group_arn_suffix:
            tg_metrics = MetricFactory(
                'AWS/ApplicationELB',
                {'LoadBalancer': load_balancer_arn_suffix, 'TargetGroup': target_group_arn_suffix},
                period=60,
            )
            self.unhealthy_hosts_metric = tg_metrics.metric('UnHealthyHostCount', 'Maximum', label='Unhealthy hosts')

        self.add_alarms(
            'error_count', self.elb_5xx_metric, add_elb_5xx_count_alarm, self.alb_alarm_factory.add_elb_5xx_count_alarm
        )
        self.add_alarms(
            'error_count',
            self.target_5xx_metric,
            add_target_5xx_count_alarm,
            self.alb_alarm_factory.add_target_5xx_count_alarm,
        )
        self.add_alarms(
            'latency',
            self.response_time_metric,
            add_response_time_alarm,
            self.alb_alarm_factory.add_response_time_alarm,
        )
        self.add_alarms(
            'host_count',
            self.unhealthy_hosts_metric,
            add_unhealthy_host_count_alarm,
            self.alb_alarm_factory.add_unhealthy_host_count_alarm,
        )

        self.finish(use_created_alarms)
