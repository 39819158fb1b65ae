import pulumi
import pytest

from tb_monitoring.kinesis import DataFreshnessThreshold, RecordsThrottledThreshold
from tb_monitoring.metric import Metric
from tb_monitoring.monitoring import Monitoring, MonitoringScope


class Mocks(pulumi.runtime.Mocks):
    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        outputs = dict(args.inputs)
        if args.typ == 'aws:sns/topic:Topic':
            outputs['arn'] = f'arn:aws:sns:us-east-1:123456789012:{args.inputs.get("name")}'
        return [f'{args.name}-id', outputs]

    def call(self, args: pulumi.runtime.MockCallArgs):
        return {}


# Resources declared by any test go to the mock engine; no cloud provider is contacted
pulumi.runtime.set_mocks(Mocks(), project='tb-monitoring', stack='test', preview=False)


@pytest.fixture
def scope():
    return MonitoringScope()


@pytest.fixture
def throttled_metric():
    return Metric(
        namespace='AWS/Firehose',
        metric_name='ThrottledRecords',
        dimensions={'DeliveryStreamName': 'orders'},
        statistic='Sum',
    )


@pytest.fixture
def alarm_factory(scope):
    return Monitoring(scope).create_alarm_factory('OrdersStream')


def throttled(threshold=50, **kwargs) -> RecordsThrottledThreshold:
    return RecordsThrottledThreshold(max_records_throttled_threshold=threshold, **kwargs)


def freshness(threshold=900, **kwargs) -> DataFreshnessThreshold:
    return DataFreshnessThreshold(age_of_record_threshold=threshold, **kwargs)
