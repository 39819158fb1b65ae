"""Infrastructural patterns related to AWS CloudWatch."""

import pulumi
import pulumi_aws as aws
import tb_monitoring

from tb_monitoring.alarm import AlarmDefinition
from tb_monitoring.alb import ApplicationLoadBalancerMonitoring
from tb_monitoring.constants import TAG_ALARM_NAME, TAG_DEDUPE_KEY
from tb_monitoring.ecs import EcsServiceMonitoring
from tb_monitoring.exceptions import AlarmConfigurationError
from tb_monitoring.kinesis import KinesisDataStreamMonitoring, KinesisFirehoseMonitoring
from tb_monitoring.monitoring import Monitoring, MonitoringScope
from tb_monitoring.sqs import SqsQueueMonitoring


class CloudWatchMonitoringGroup(tb_monitoring.MonitoringComponentResource, MonitoringScope):
    """**Pulumi Type:** ``tb:cloudwatch:CloudWatchMonitoringGroup``

    A scope that turns alarm definitions into AWS CloudWatch metric alarms and sends alerts using SNS-to-email.
    Monitoring units register their alarms with this group; once all units are built, call :py:meth:`synthesize` to
    declare the alarms.

    Produces the following ``resources``:

        - *sns_topic* - `aws.sns.Topic <https://www.pulumi.com/registry/packages/aws/api-docs/sns/topic/>`_ to notify
          when an alarm in this monitoring group is triggered.
        - *sns_subscriptions* - A list of `aws.sns.TopicSubscription
          <https://www.pulumi.com/registry/packages/aws/api-docs/sns/topicsubscription/>`_s, one for each entry in
          ``notify_emails``.
        - *alarms* - A dict of `aws.cloudwatch.MetricAlarm
          <https://www.pulumi.com/registry/packages/aws/api-docs/cloudwatch/metricalarm/>`_s keyed by alarm name.

    :param name: The name of the ``CloudWatchMonitoringGroup`` resource.
    :type name: str

    :param project: The ``MonitoringProject`` to build monitoring resources for.
    :type project: tb_monitoring.MonitoringProject

    :param config: A configuration dictionary for this monitoring group, usually the ``monitoring`` section of the
        project config (shown here as YAML):

        .. code-block:: yaml
            :linenos:

            ---
            monitoring:
                notify_emails:
                    - ops@example.com
                resources:
                    orders-delivery:
                        type: kinesis_firehose
                        delivery_stream_name: orders
                        alarms:
                            records_throttled:
                                '':
                                    threshold: 50

        Each entry under ``resources`` names a monitoring unit type from this group's ``type_map`` and configures it as
        described in :py:meth:`tb_monitoring.monitoring.Monitoring.from_config`. Defaults to {}.
    :type config: dict, optional

    :param notify_emails: A list of email addresses to notify when an alarm activates. Defaults to the
        ``notify_emails`` list in ``config``.
    :type notify_emails: list, optional

    :param alarm_name_prefix: A prefix for every generated alarm name in this group. Defaults to None.
    :type alarm_name_prefix: str, optional

    :param opts: Additional ``pulumi.ResourceOptions`` to apply to this resource. Defaults to None.
    :type opts: pulumi.ResourceOptions, optional

    :param tags: Key/value pairs to merge with the default tags which get applied to all resources in this group.
        Defaults to {}.
    :type tags: dict, optional
    """

    def __init__(
        self,
        name: str,
        project: tb_monitoring.MonitoringProject,
        config: dict = {},
        notify_emails: list[str] = None,
        alarm_name_prefix: str = None,
        opts: pulumi.ResourceOptions = None,
        tags: dict = {},
    ):
        #: Monitoring unit classes by the ``type`` used to refer to them in config
        self.type_map: dict[str, type] = {
            'alb': ApplicationLoadBalancerMonitoring,
            'ecs_service': EcsServiceMonitoring,
            'kinesis_data_stream': KinesisDataStreamMonitoring,
            'kinesis_firehose': KinesisFirehoseMonitoring,
            'sqs_queue': SqsQueueMonitoring,
        }
        self.config: dict = config
        self.notify_emails: list[str] = notify_emails if notify_emails is not None else config.get('notify_emails', [])
        #: Monitoring units built by :py:meth:`monitor_from_config`, by resource name
        self.units: dict[str, Monitoring] = {}
        self.notified_alarm_names: set[str] = set()

        super().__init__(
            pulumi_type='tb:cloudwatch:CloudWatchMonitoringGroup',
            name=name,
            project=project,
            opts=opts,
            tags=tags,
        )
        MonitoringScope.__init__(self, alarm_name_prefix=alarm_name_prefix)

        self.sns_topic = aws.sns.Topic(
            f'{self.name}-topic',
            name=f'{self.project.name_prefix}-alarms',
            opts=pulumi.ResourceOptions(parent=self),
            tags=self.tags,
        )

        # API details on SNS topic subscriptions can be found here:
        # https://docs.aws.amazon.com/sns/latest/api/API_Subscribe.html
        self.sns_subscriptions = []
        for idx, email in enumerate(self.notify_emails):
            self.sns_subscriptions.append(
                aws.sns.TopicSubscription(
                    f'{self.name}-snssub-{idx}',
                    protocol='email',
                    endpoint=email,
                    topic=self.sns_topic.arn,
                    opts=pulumi.ResourceOptions(parent=self, depends_on=[self.sns_topic]),
                )
            )

    def notify(self, alarms: list[AlarmDefinition]):
        """Sends notifications for the given alarms to this group's SNS topic. Pass this as ``use_created_alarms`` to a
        monitoring unit to notify on all of its alarms."""

        self.notified_alarm_names.update(alarm.name for alarm in alarms)

    def monitor_from_config(self) -> dict[str, Monitoring]:
        """Builds a monitoring unit for each entry under ``resources`` in this group's config. Alarms of these units
        notify this group's SNS topic.

        :raises AlarmConfigurationError: When a resource's config is invalid. The error is logged before it propagates.

        :return: The units built, keyed by resource name.
        :rtype: dict[str, tb_monitoring.monitoring.Monitoring]
        """

        for res_name, res_config in (self.config.get('resources', None) or {}).items():
            res_config = res_config or {}
            unit_type = self.type_map.get(res_config.get('type', None), None)
            try:
                if unit_type is None:
                    raise AlarmConfigurationError(
                        f'Resource {res_name} has unknown type {res_config.get("type", None)!r}; '
                        f'choose from: {", ".join(sorted(self.type_map))}'
                    )
                self.units[res_name] = unit_type.from_config(self, res_config, use_created_alarms=self.notify)
            except AlarmConfigurationError as ex:
                pulumi.error(f'Could not build monitoring for {res_name}: {ex}')
                raise
            pulumi.info(f'Built {len(self.units[res_name].created_alarms())} alarm(s) for {res_name}')

        return self.units

    def synthesize(self) -> dict[str, aws.cloudwatch.MetricAlarm]:
        """Declares a metric alarm for every alarm registered with this group, then finishes the component.

        :return: The declared alarms, keyed by alarm name.
        :rtype: dict[str, aws.cloudwatch.MetricAlarm]
        """

        alarms = {}
        for alarm in self.alarms:
            # Name and dedupe key tags always describe the alarm itself; custom tags cannot replace them
            alarm_tags = dict(self.tags)
            alarm_tags.update(alarm.custom_tags)
            alarm_tags.update({TAG_ALARM_NAME: alarm.name, TAG_DEDUPE_KEY: alarm.dedupe_key})
            actions = [self.sns_topic.arn] if alarm.name in self.notified_alarm_names else []
            alarms[alarm.name] = aws.cloudwatch.MetricAlarm(
                f'{self.name}-{alarm.name}',
                alarm_actions=actions,
                ok_actions=actions,
                tags=alarm_tags,
                opts=pulumi.ResourceOptions(parent=self, depends_on=[self.sns_topic]),
                **alarm.to_metric_alarm_args(),
            )

        self.finish(
            resources={'sns_topic': self.sns_topic, 'sns_subscriptions': self.sns_subscriptions, 'alarms': alarms},
        )
        return alarms
