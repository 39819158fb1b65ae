"""Alarms for Kinesis Data Streams and Kinesis Data Firehose delivery streams."""

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
class DataFreshnessThreshold(CustomAlarmThreshold):
    """Age, in seconds, of the oldest record not yet delivered."""

    threshold_field: ClassVar[str] = 'age_of_record_threshold'
    age_of_record_threshold: float


@dataclass(frozen=True, kw_only=True)
class MaxIteratorAgeThreshold(CustomAlarmThreshold):
    """Age, in milliseconds, of the last record read by a consumer."""

    threshold_field: ClassVar[str] = 'max_age_in_millis'
    max_age_in_millis: float


@dataclass(frozen=True, kw_only=True)
class RecordsThrottledThreshold(CustomAlarmThreshold):
    threshold_field: ClassVar[str] = 'max_records_throttled_threshold'
    max_records_throttled_threshold: float


@dataclass(frozen=True, kw_only=True)
class RecordsFailedThreshold(CustomAlarmThreshold):
    threshold_field: ClassVar[str] = 'max_records_failed_threshold'
    max_records_failed_threshold: float


class KinesisAlarmFactory(DomainAlarmFactory):
    """Alarm kinds for Kinesis streams. Throttling, failures and iterator age on any stream are deduplicated into a
    single ticket each; record freshness and provisioned throughput are tracked per stream."""

    KINDS = {
        'iterator_max_age': AlarmKind(
            name_suffix='Iterator-Age-Max',
            description_template='Iterator Max Age is too high (over {threshold} ms).',
            threshold_type=MaxIteratorAgeThreshold,
            category=MetricCategory.AGE,
            default_comparison_operator=ComparisonOperator.GREATER_THAN,
            default_treat_missing_data=TreatMissingData.MISSING,
            dedupe_suffix='AnyDataStreamIteratorMaxAge',
            dedupe_scope=DedupeScope.AGGREGATE,
            min_threshold=0,
        ),
        'old_age_of_record': AlarmKind(
            name_suffix='Record-Max-Age',
            description_template='Max Age of Record in firehose is too high (over {threshold} seconds).',
            threshold_type=DataFreshnessThreshold,
            category=MetricCategory.AGE,
            default_comparison_operator=ComparisonOperator.GREATER_THAN,
            default_treat_missing_data=TreatMissingData.MISSING,
            min_threshold=0,
        ),
        'put_records_throttled': AlarmKind(
            name_suffix='PutRecordsThrottled',
            description_template='Number of throttled PutRecords exceeded threshold of {threshold}',
            threshold_type=RecordsThrottledThreshold,
            category=MetricCategory.COUNT,
            default_comparison_operator=ComparisonOperator.GREATER_THAN,
            default_treat_missing_data=TreatMissingData.NOT_BREACHING,
            dedupe_suffix='PutRecordsThrottled',
            dedupe_scope=DedupeScope.AGGREGATE,
            min_threshold=0,
        ),
        'put_records_failed': AlarmKind(
            name_suffix='PutRecordsFailed',
            description_template='Number of failed PutRecords exceeded threshold of {threshold}',
            threshold_type=RecordsFailedThreshold,
            category=MetricCategory.COUNT,
            default_comparison_operator=ComparisonOperator.GREATER_THAN,
            default_treat_missing_data=TreatMissingData.NOT_BREACHING,
            dedupe_suffix='PutRecordsFailed',
            dedupe_scope=DedupeScope.AGGREGATE,
            min_threshold=0,
        ),
        'read_throughput_exceeded': AlarmKind(
            name_suffix='ReadThroughputExceeded',
            description_template='Number of records resulting in read throughput capacity throttling reached the '
            'threshold of {threshold}.',
            threshold_type=RecordsThrottledThreshold,
            category=MetricCategory.COUNT,
            default_comparison_operator=ComparisonOperator.GREATER_THAN,
            default_treat_missing_data=TreatMissingData.NOT_BREACHING,
            min_threshold=0,
        ),
        'write_throughput_exceeded': AlarmKind(
            name_suffix='WriteThroughputExceeded',
            description_template='Number of records resulting in write throughput capacity throttling reached the '
            'threshold of {threshold}.',
            threshold_type=RecordsThrottledThreshold,
            category=MetricCategory.COUNT,
            default_comparison_operator=ComparisonOperator.GREATER_THAN,
            default_treat_missing_data=TreatMissingData.NOT_BREACHING,
            min_threshold=0,
        ),
    }

    def add_iterator_max_age_alarm(
        self, metric: Metric, props: MaxIteratorAgeThreshold, disambiguator: str = None
    ) -> AlarmDefinition:
        return self.add_kind_alarm('iterator_max_age', metric, props, disambiguator)

    def add_old_age_of_record_alarm(
        self, metric: Metric, props: DataFreshnessThreshold, disambiguator: str = None
    ) -> AlarmDefinition:
        return self.add_kind_alarm('old_age_of_record', metric, props, disambiguator)

    def add_put_records_throttled_alarm(
        self, metric: Metric, props: RecordsThrottledThreshold, disambiguator: str = None
    ) -> AlarmDefinition:
        return self.add_kind_alarm('put_records_throttled', metric, props, disambiguator)

    def add_put_records_failed_alarm(
        self, metric: Metric, props: RecordsFailedThreshold, disambiguator: str = None
    ) -> AlarmDefinition:
        return self.add_kind_alarm('put_records_failed', metric, props, disambiguator)

    def add_provisioned_read_throughput_exceeded_alarm(
        self, metric: Metric, props: RecordsThrottledThreshold, disambiguator: str = None
    ) -> AlarmDefinition:
        return self.add_kind_alarm('read_throughput_exceeded', metric, props, disambiguator)

    def add_provisioned_write_throughput_exceeded_alarm(
        self, metric: Metric, props: RecordsThrottledThreshold, disambiguator: str = None
    ) -> AlarmDefinition:
        return self.add_kind_alarm('write_throughput_exceeded', metric, props, disambiguator)


class KinesisFirehoseMetricFactory(MetricFactory):
    """Metrics published by a Firehose delivery stream to the ``AWS/Firehose`` namespace."""

    def __init__(self, delivery_stream_name: str, period: int = 300):
        super().__init__('AWS/Firehose', {'DeliveryStreamName': delivery_stream_name}, period=period)

    def metric_incoming_bytes(self) -> Metric:
        return self.metric('IncomingBytes', 'Sum', label='Incoming (bytes)')

    def metric_incoming_record_count(self) -> Metric:
        return self.metric('IncomingRecords', 'Sum', label='Incoming')

    def metric_throttled_record_count(self) -> Metric:
        return self.metric('ThrottledRecords', 'Sum', label='Throttled')

    def metric_successful_conversion_count(self) -> Metric:
        return self.metric('SucceedConversion.Records', 'Sum', label='Conversion success')

    def metric_failed_conversion_count(self) -> Metric:
        return self.metric('FailedConversion.Records', 'Sum', label='Conversion failure')

    def metric_put_record_latency_p90_in_millis(self) -> Metric:
        return self.metric('PutRecord.Latency', 'p90', label='PutRecord P90')

    def metric_put_record_batch_latency_p90_in_millis(self) -> Metric:
        return self.metric('PutRecordBatch.Latency', 'p90', label='PutRecordBatch P90')

    def metric_delivered_record_count(self) -> Metric:
        return self.metric('DeliveryToS3.Records', 'Sum', label='Delivered')

    def metric_data_freshness(self) -> Metric:
        return self.metric('DeliveryToS3.DataFreshness', 'Maximum', label='Record age (max)')


class KinesisFirehoseMonitoring(Monitoring):
    """Monitors a Kinesis Data Firehose delivery stream. Supports these alarm options:

        - ``records_throttled``: Throttled incoming records (:py:class:`RecordsThrottledThreshold`).
        - ``delivery_freshness``: Age of the oldest record not yet delivered (:py:class:`DataFreshnessThreshold`).

    :param scope: The scope finished alarms are registered with.
    :type scope: tb_monitoring.monitoring.MonitoringScope

    :param delivery_stream_name: Name of the delivery stream. Also the fallback name of the resource.
    :type delivery_stream_name: str

    :param human_readable_name: Name used in titles. Defaults to None.
    :type human_readable_name: str, optional

    :param alarm_friendly_name: Name used to prefix alarm names. Defaults to None.
    :type alarm_friendly_name: str, optional

    :param add_records_throttled_alarm: Thresholds keyed by disambiguator. Defaults to None.
    :type add_records_throttled_alarm: dict[str, RecordsThrottledThreshold], optional

    :param add_delivery_freshness_alarm: Thresholds keyed by disambiguator. Defaults to None.
    :type add_delivery_freshness_alarm: dict[str, DataFreshnessThreshold], optional

    :param use_created_alarms: Called once with all alarms created for this stream. Defaults to None.
    :type use_created_alarms: tb_monitoring.monitoring.AlarmConsumer, optional
    """

    ALARM_OPTIONS = {
        'records_throttled': RecordsThrottledThreshold,
        'delivery_freshness': DataFreshnessThreshold,
    }

    def __init__(
        self,
        scope: MonitoringScope,
        delivery_stream_name: str,
        human_readable_name: str = None,
        alarm_friendly_name: str = None,
        add_records_throttled_alarm: dict[str, RecordsThrottledThreshold] = None,
        add_delivery_freshness_alarm: dict[str, DataFreshnessThreshold] = None,
        use_created_alarms: AlarmConsumer = None,
    ):
        super().__init__(scope)

        naming_strategy = MonitoringNamingStrategy(
            fallback_construct_name=delivery_stream_name,
            human_readable_name=human_readable_name,
            alarm_friendly_name=alarm_friendly_name,
        )
        self.title = naming_strategy.resolve_human_readable_name()

        metric_factory = KinesisFirehoseMetricFactory(delivery_stream_name)
        self.kinesis_alarm_factory = KinesisAlarmFactory(
            self.create_alarm_factory(naming_strategy.resolve_alarm_friendly_name())
        )

        self.incoming_bytes_metric = metric_factory.metric_incoming_bytes()
        self.incoming_records_metric = metric_factory.metric_incoming_record_count()
        self.throttled_records_metric = metric_factory.metric_throttled_record_count()
        self.successful_conversion_metric = metric_factory.metric_successful_conversion_count()
        self.failed_conversion_metric = metric_factory.metric_failed_conversion_count()
        self.put_record_latency = metric_factory.metric_put_record_latency_p90_in_millis()
        self.put_record_batch_latency = metric_factory.metric_put_record_batch_latency_p90_in_millis()
        self.delivered_records_metric = metric_factory.metric_delivered_record_count()
        self.max_age_of_records_metric = metric_factory.metric_data_freshness()

        self.add_alarms(
            'record_count',
            self.throttled_records_metric,
            add_records_throttled_alarm,
            self.kinesis_alarm_factory.add_put_records_throttled_alarm,
        )
        self.add_alarms(
            'age',
            self.max_age_of_records_metric,
            add_delivery_freshness_alarm,
            self.kinesis_alarm_factory.add_old_age_of_record_alarm,
        )

        self.finish(use_created_alarms)

    @property
    def record_count_annotations(self):
        return self.annotations('record_count')

    @property
    def age_annotations(self):
        return self.annotations('age')


class KinesisDataStreamMetricFactory(MetricFactory):
    """Metrics published by a Kinesis data stream to the ``AWS/Kinesis`` namespace."""

    def __init__(self, stream_name: str, period: int = 300):
        super().__init__('AWS/Kinesis', {'StreamName': stream_name}, period=period)

    def metric_get_records_iterator_age_max_millis(self) -> Metric:
        return self.metric('GetRecords.IteratorAgeMilliseconds', 'Maximum', label='Iterator age (max)')

    def metric_put_records_throttled_record_count(self) -> Metric:
        return self.metric('PutRecords.ThrottledRecords', 'Sum', label='Throttled')

    def metric_put_records_failed_record_count(self) -> Metric:
        return self.metric('PutRecords.FailedRecords', 'Sum', label='Failed')

    def metric_read_provisioned_throughput_exceeded(self) -> Metric:
        return self.metric('ReadProvisionedThroughputExceeded', 'Sum', label='Read throttled')

    def metric_write_provisioned_throughput_exceeded(self) -> Metric:
        return self.metric('WriteProvisionedThroughputExceeded', 'Sum', label='Write throttled')


class KinesisDataStreamMonitoring(Monitoring):
    """Monitors a Kinesis data stream. Supports these alarm options:

        - ``iterator_max_age``: Age of the last record read by consumers (:py:class:`MaxIteratorAgeThreshold`).
        - ``put_records_throttled``: Throttled PutRecords (:py:class:`RecordsThrottledThreshold`).
        - ``put_records_failed``: Failed PutRecords (:py:class:`RecordsFailedThreshold`).
        - ``read_throughput_exceeded``: Reads throttled by provisioned capacity (:py:class:`RecordsThrottledThreshold`).
        - ``write_throughput_exceeded``: Writes throttled by provisioned capacity
          (:py:class:`RecordsThrottledThreshold`).

    :param scope: The scope finished alarms are registered with.
    :type scope: tb_monitoring.monitoring.MonitoringScope

    :param stream_name: Name of the data stream. Also the fallback name of the resource.
    :type stream_name: str

    :param use_created_alarms: Called once with all alarms created for this stream. Defaults to None.
    :type use_created_alarms: tb_monitoring.monitoring.AlarmConsumer, optional

    The remaining parameters mirror :py:class:`KinesisFirehoseMonitoring`.
    """

    ALARM_OPTIONS = {
        'iterator_max_age': MaxIteratorAgeThreshold,
        'put_records_throttled': RecordsThrottledThreshold,
        'put_records_failed': RecordsFailedThreshold,
        'read_throughput_exceeded': RecordsThrottledThreshold,
        'write_throughput_exceeded': RecordsThrottledThreshold,
    }

    def __init__(
        self,
        scope: MonitoringScope,
        stream_name: str,
        human_readable_name: str = None,
        alarm_friendly_name: str = None,
        add_iterator_max_age_alarm: dict[str, MaxIteratorAgeThreshold] = None,
        add_put_records_throttled_alarm: dict[str, RecordsThrottledThreshold] = None,
        add_put_records_failed_alarm: dict[str, RecordsFailedThreshold] = None,
        add_read_throughput_exceeded_alarm: dict[str, RecordsThrottledThreshold] = None,
        add_write_throughput_exceeded_alarm: dict[str, RecordsThrottledThreshold] = None,
        use_created_alarms: AlarmConsumer = None,
    ):
        super().__init__(scope)

        naming_strategy = MonitoringNamingStrategy(
            fallback_construct_name=stream_name,
            human_readable_name=human_readable_name,
            alarm_friendly_name=alarm_friendly_name,
        )
        self.title = naming_strategy.resolve_human_readable_name()

        metric_factory = KinesisDataStreamMetricFactory(stream_name)
        alarm_factory = KinesisAlarmFactory(self.create_alarm_factory(naming_strategy.resolve_alarm_friendly_name()))
        self.kinesis_alarm_factory = alarm_factory

        self.iterator_age_metric = metric_factory.metric_get_records_iterator_age_max_millis()
        self.put_records_throttled_metric = metric_factory.metric_put_records_throttled_record_count()
        self.put_records_failed_metric = metric_factory.metric_put_records_failed_record_count()
        self.read_throughput_exceeded_metric = metric_factory.metric_read_provisioned_throughput_exceeded()
        self.write_throughput_exceeded_metric = metric_factory.metric_write_provisioned_throughput_exceeded()

        self.add_alarms(
            'age', self.iterator_age_metric, add_iterator_max_age_alarm, alarm_factory.add_iterator_max_age_alarm
        )
        self.add_alarms(
            'record_count',
            self.put_records_throttled_metric,
            add_put_records_throttled_alarm,
            alarm_factory.add_put_records_throttled_alarm,
        )
        self.add_alarms(
            'record_count',
            self.put_records_failed_metric,
            add_put_records_failed_alarm,
            alarm_factory.add_put_records_failed_alarm,
        )
        self.add_alarms(
            'throughput',
            self.read_throughput_exceeded_metric,
            add_read_throughput_exceeded_alarm,
            alarm_factory.add_provisioned_read_throughput_exceeded_alarm,
        )
        self.add_alarms(
            'throughput',
            self.write_throughput_exceeded_metric,
            add_write_throughput_exceeded_alarm,
            alarm_factory.add_provisioned_write_throughput_exceeded_alarm,
        )

        self.finish(use_created_alarms)
