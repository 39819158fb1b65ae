"""Tests for alarm resolution: precedence, naming, dedupe keys and annotations."""

import math
import pytest

from conftest import freshness, throttled
from tb_monitoring.alarm import (
    AlarmKind,
    ComparisonOperator,
    CustomAlarmThreshold,
    DedupeScope,
    DomainAlarmFactory,
    MetricCategory,
    TreatMissingData,
    format_threshold,
    parse_enum,
)
from tb_monitoring.exceptions import (
    AlarmConfigurationError,
    DuplicateAlarmNameError,
    InvalidThresholdError,
    UnknownAlarmKindError,
)
from tb_monitoring.kinesis import KinesisAlarmFactory, RecordsThrottledThreshold
from tb_monitoring.monitoring import Monitoring, MonitoringScope

THROTTLED = KinesisAlarmFactory.KINDS['put_records_throttled']
FRESHNESS = KinesisAlarmFactory.KINDS['old_age_of_record']

#: A kind with no defaults of its own, so every setting falls through to the engine defaults
BARE_COUNT = AlarmKind(
    name_suffix='Bare',
    description_template='Bare alarm over {threshold}',
    threshold_type=RecordsThrottledThreshold,
    category=MetricCategory.COUNT,
)


def _add(factory, metric, props, kind=THROTTLED, disambiguator=None):
    threshold = getattr(props, props.threshold_field)
    return factory.add_alarm(metric, kind, props, threshold=threshold, disambiguator=disambiguator)


class TestPrecedence:
    def test_kind_defaults_apply_without_overrides(self, alarm_factory, throttled_metric):
        alarm = _add(alarm_factory, throttled_metric, throttled(50))
        assert alarm.comparison_operator == ComparisonOperator.GREATER_THAN
        assert alarm.treat_missing_data == TreatMissingData.NOT_BREACHING
        assert alarm.threshold == 50

    @pytest.mark.parametrize('operator', list(ComparisonOperator))
    def test_operator_override_always_wins(self, alarm_factory, throttled_metric, operator):
        alarm = _add(alarm_factory, throttled_metric, throttled(50, comparison_operator_override=operator))
        assert alarm.comparison_operator == operator

    @pytest.mark.parametrize('policy', list(TreatMissingData))
    def test_missing_data_override_always_wins(self, alarm_factory, throttled_metric, policy):
        alarm = _add(alarm_factory, throttled_metric, throttled(50, treat_missing_data_override=policy))
        assert alarm.treat_missing_data == policy

    def test_freshness_kind_treats_missing_data_as_missing(self, alarm_factory, throttled_metric):
        alarm = _add(alarm_factory, throttled_metric, freshness(900), kind=FRESHNESS)
        assert alarm.treat_missing_data == TreatMissingData.MISSING

    @pytest.mark.parametrize(
        'category,expected',
        [
            (MetricCategory.AGE, TreatMissingData.MISSING),
            (MetricCategory.COUNT, TreatMissingData.NOT_BREACHING),
            (MetricCategory.RATE, TreatMissingData.NOT_BREACHING),
        ],
    )
    def test_engine_defaults_fill_in_for_bare_kinds(self, alarm_factory, throttled_metric, category, expected):
        kind = AlarmKind(
            name_suffix='Bare',
            description_template='Bare alarm over {threshold}',
            threshold_type=RecordsThrottledThreshold,
            category=category,
        )
        alarm = _add(alarm_factory, throttled_metric, throttled(5), kind=kind)
        assert alarm.comparison_operator == ComparisonOperator.GREATER_THAN
        assert alarm.treat_missing_data == expected
        assert alarm.datapoints_to_alarm == 3
        assert alarm.evaluation_periods == 3

    def test_kind_window_defaults_beat_engine_defaults(self, alarm_factory, throttled_metric):
        kind = AlarmKind(
            name_suffix='Windowed',
            description_template='{threshold}',
            threshold_type=RecordsThrottledThreshold,
            category=MetricCategory.COUNT,
            default_evaluation_periods=4,
            default_datapoints_to_alarm=2,
        )
        alarm = _add(alarm_factory, throttled_metric, throttled(5), kind=kind)
        assert (alarm.evaluation_periods, alarm.datapoints_to_alarm) == (4, 2)

    def test_window_overrides_beat_kind_defaults(self, alarm_factory, throttled_metric):
        alarm = _add(alarm_factory, throttled_metric, throttled(5, evaluation_periods=10, datapoints_to_alarm=7))
        assert (alarm.evaluation_periods, alarm.datapoints_to_alarm) == (10, 7)

    def test_evaluation_periods_default_to_datapoints(self, alarm_factory, throttled_metric):
        alarm = _add(alarm_factory, throttled_metric, throttled(5, datapoints_to_alarm=5))
        assert alarm.evaluation_periods == 5

    def test_default_datapoints_fit_a_smaller_window(self, alarm_factory, throttled_metric):
        alarm = _add(alarm_factory, throttled_metric, throttled(5, evaluation_periods=1))
        assert (alarm.evaluation_periods, alarm.datapoints_to_alarm) == (1, 1)

    def test_more_datapoints_than_periods_is_rejected(self, alarm_factory, throttled_metric):
        with pytest.raises(AlarmConfigurationError):
            _add(alarm_factory, throttled_metric, throttled(5, evaluation_periods=2, datapoints_to_alarm=3))

    @pytest.mark.parametrize('setting', ['evaluation_periods', 'datapoints_to_alarm', 'period'])
    @pytest.mark.parametrize('value', [0, -1, 1.5, 'two'])
    def test_window_settings_must_be_positive_integers(self, alarm_factory, throttled_metric, setting, value):
        with pytest.raises(AlarmConfigurationError):
            _add(alarm_factory, throttled_metric, throttled(5, **{setting: value}))

    def test_period_comes_from_metric_unless_overridden(self, alarm_factory, throttled_metric):
        assert _add(alarm_factory, throttled_metric, throttled(5)).period == 300
        assert _add(alarm_factory, throttled_metric, throttled(5, period=60), disambiguator='fast').period == 60


class TestThresholdValidation:
    @pytest.mark.parametrize('value', [None, math.nan, math.inf, -math.inf, 'fifty', True])
    def test_non_finite_or_non_numeric_thresholds_are_rejected(self, alarm_factory, throttled_metric, value):
        with pytest.raises(InvalidThresholdError):
            _add(alarm_factory, throttled_metric, throttled(value))

    def test_negative_counts_are_rejected(self, alarm_factory, throttled_metric):
        with pytest.raises(InvalidThresholdError):
            _add(alarm_factory, throttled_metric, throttled(-1))

    def test_zero_is_a_valid_count(self, alarm_factory, throttled_metric):
        assert _add(alarm_factory, throttled_metric, throttled(0)).threshold == 0

    def test_invalid_threshold_claims_no_name(self, alarm_factory, throttled_metric):
        with pytest.raises(InvalidThresholdError):
            _add(alarm_factory, throttled_metric, throttled(math.nan))
        assert _add(alarm_factory, throttled_metric, throttled(50)).name == 'OrdersStream-PutRecordsThrottled'

    def test_invalid_threshold_is_a_configuration_error(self):
        assert issubclass(InvalidThresholdError, AlarmConfigurationError)
        assert issubclass(DuplicateAlarmNameError, AlarmConfigurationError)
        assert issubclass(UnknownAlarmKindError, AlarmConfigurationError)

    @pytest.mark.parametrize('value,expected', [(50, '50'), (50.0, '50'), (0.5, '0.5'), (1500.25, '1500.25')])
    def test_format_threshold(self, value, expected):
        assert format_threshold(value) == expected


class TestNaming:
    def test_name_without_disambiguator(self, alarm_factory, throttled_metric):
        assert _add(alarm_factory, throttled_metric, throttled()).name == 'OrdersStream-PutRecordsThrottled'

    def test_name_with_disambiguator(self, alarm_factory, throttled_metric):
        alarm = _add(alarm_factory, throttled_metric, throttled(), disambiguator='shard-0')
        assert alarm.name == 'OrdersStream-PutRecordsThrottled-shard-0'
        assert alarm.disambiguator == 'shard-0'

    def test_disambiguator_from_props_is_used_when_none_is_passed(self, alarm_factory, throttled_metric):
        alarm = _add(alarm_factory, throttled_metric, throttled(disambiguator='tier1'))
        assert alarm.name == 'OrdersStream-PutRecordsThrottled-tier1'

    def test_passed_disambiguator_beats_props(self, alarm_factory, throttled_metric):
        alarm = _add(alarm_factory, throttled_metric, throttled(disambiguator='tier1'), disambiguator='tier2')
        assert alarm.name == 'OrdersStream-PutRecordsThrottled-tier2'

    def test_empty_disambiguator_means_none(self, alarm_factory, throttled_metric):
        alarm = _add(alarm_factory, throttled_metric, throttled(), disambiguator='')
        assert alarm.name == 'OrdersStream-PutRecordsThrottled'
        assert alarm.disambiguator is None

    @pytest.mark.parametrize('disambiguator', ['shard 0', 'shard/0', 'a:b', '!!!', '-shard', 'shard-'])
    def test_disambiguators_with_disallowed_characters_are_rejected(
        self, alarm_factory, throttled_metric, disambiguator
    ):
        with pytest.raises(AlarmConfigurationError, match='Disambiguator'):
            _add(alarm_factory, throttled_metric, throttled(), disambiguator=disambiguator)
        with pytest.raises(AlarmConfigurationError, match='Disambiguator'):
            _add(alarm_factory, throttled_metric, throttled(disambiguator=disambiguator))

    def test_rejected_disambiguator_claims_no_name(self, alarm_factory, throttled_metric):
        with pytest.raises(AlarmConfigurationError):
            _add(alarm_factory, throttled_metric, throttled(), disambiguator='shard 0')
        assert _add(alarm_factory, throttled_metric, throttled(), disambiguator='shard-0').name == (
            'OrdersStream-PutRecordsThrottled-shard-0'
        )

    def test_similar_disambiguators_keep_distinct_names(self, alarm_factory, throttled_metric):
        names = [
            _add(alarm_factory, throttled_metric, throttled(), disambiguator=disambiguator).name
            for disambiguator in ('shard-0', 'shard_0', 'shard.0', 'v1.2_a')
        ]
        assert names == [
            'OrdersStream-PutRecordsThrottled-shard-0',
            'OrdersStream-PutRecordsThrottled-shard_0',
            'OrdersStream-PutRecordsThrottled-shard.0',
            'OrdersStream-PutRecordsThrottled-v1.2_a',
        ]

    def test_name_prefix_is_sanitized(self, throttled_metric):
        factory = Monitoring(MonitoringScope(alarm_name_prefix='tb prod')).create_alarm_factory('Orders Stream')
        assert _add(factory, throttled_metric, throttled()).name == 'tb-prod-Orders-Stream-PutRecordsThrottled'

    def test_name_override_is_used_verbatim(self, alarm_factory, throttled_metric):
        alarm = _add(alarm_factory, throttled_metric, throttled(alarm_name_override='my special alarm'))
        assert alarm.name == 'my special alarm'

    def test_scope_prefix_is_prepended(self, throttled_metric):
        factory = Monitoring(MonitoringScope(alarm_name_prefix='tb-prod')).create_alarm_factory('OrdersStream')
        alarm = _add(factory, throttled_metric, throttled())
        assert alarm.name == 'tb-prod-OrdersStream-PutRecordsThrottled'
        assert alarm.dedupe_key == 'PutRecordsThrottled'

    def test_duplicate_names_are_rejected(self, alarm_factory, throttled_metric):
        _add(alarm_factory, throttled_metric, throttled(), disambiguator='a')
        with pytest.raises(DuplicateAlarmNameError):
            _add(alarm_factory, throttled_metric, throttled(10), disambiguator='a')

    def test_description_interpolates_threshold(self, alarm_factory, throttled_metric):
        alarm = _add(alarm_factory, throttled_metric, throttled(50))
        assert alarm.description == 'Number of throttled PutRecords exceeded threshold of 50'

    def test_description_override_and_links(self, alarm_factory, throttled_metric):
        alarm = _add(
            alarm_factory,
            throttled_metric,
            throttled(
                alarm_description_override='Too much throttling',
                runbook_link='https://wiki.example.com/runbook',
                documentation_link='https://docs.example.com',
            ),
        )
        assert alarm.description == (
            'Too much throttling Runbook: https://wiki.example.com/runbook Documentation: https://docs.example.com'
        )

    def test_aggregate_kinds_share_dedupe_key_across_disambiguators(self, alarm_factory, throttled_metric):
        first = _add(alarm_factory, throttled_metric, throttled())
        second = _add(alarm_factory, throttled_metric, throttled(), disambiguator='shard-0')
        assert first.dedupe_key == second.dedupe_key == 'PutRecordsThrottled'

    def test_resource_kinds_include_resource_name(self, alarm_factory, throttled_metric):
        alarm = _add(alarm_factory, throttled_metric, freshness(), kind=FRESHNESS, disambiguator='x')
        assert alarm.dedupe_key == 'OrdersStream-Record-Max-Age'

    def test_dedupe_override_wins(self, alarm_factory, throttled_metric):
        alarm = _add(alarm_factory, throttled_metric, throttled(alarm_dedupe_string_override='OrdersTicket'))
        assert alarm.dedupe_key == 'OrdersTicket'

    def test_aggregate_kind_requires_dedupe_suffix(self):
        with pytest.raises(ValueError):
            AlarmKind(
                name_suffix='Broken',
                description_template='{threshold}',
                threshold_type=RecordsThrottledThreshold,
                category=MetricCategory.COUNT,
                dedupe_scope=DedupeScope.AGGREGATE,
            )


class TestAlarmDefinition:
    def test_default_annotation(self, alarm_factory, throttled_metric):
        annotation = _add(alarm_factory, throttled_metric, throttled(50)).annotation
        assert annotation.value == 50
        assert annotation.label == '> 50 for 3 datapoints within 15 minutes'
        assert annotation.color is None
        assert annotation.visible is True

    def test_annotation_overrides(self, alarm_factory, throttled_metric):
        props = throttled(
            50,
            override_annotation_label='Throttling',
            override_annotation_color='#ff0000',
            override_annotation_visibility=False,
        )
        annotation = _add(alarm_factory, throttled_metric, props).annotation
        assert (annotation.label, annotation.color, annotation.visible) == ('Throttling', '#ff0000', False)

    def test_resolve_is_repeatable_and_claims_nothing(self, alarm_factory, throttled_metric):
        props = throttled(50, comparison_operator_override=ComparisonOperator.GREATER_THAN_OR_EQUAL)
        first = alarm_factory.resolve(throttled_metric, THROTTLED, props, threshold=50)
        second = alarm_factory.resolve(throttled_metric, THROTTLED, props, threshold=50)
        assert first == second
        assert _add(alarm_factory, throttled_metric, props) == first

    def test_equal_definitions_collapse_in_a_set(self, alarm_factory, throttled_metric):
        props = throttled(50, custom_tags={'team': 'data'})
        first = alarm_factory.resolve(throttled_metric, THROTTLED, props, threshold=50)
        second = alarm_factory.resolve(throttled_metric, THROTTLED, props, threshold=50)
        assert {first, second} == {first}
        assert {first: 'seen'}[second] == 'seen'

    def test_metric_alarm_args(self, alarm_factory, throttled_metric):
        props = throttled(50, actions_enabled=False, custom_tags={'team': 'data'})
        alarm = _add(alarm_factory, throttled_metric, props)
        assert alarm.to_metric_alarm_args() == {
            'name': 'OrdersStream-PutRecordsThrottled',
            'alarm_description': 'Number of throttled PutRecords exceeded threshold of 50',
            'comparison_operator': 'GreaterThanThreshold',
            'threshold': 50,
            'evaluation_periods': 3,
            'datapoints_to_alarm': 3,
            'period': 300,
            'treat_missing_data': 'notBreaching',
            'actions_enabled': False,
            'namespace': 'AWS/Firehose',
            'metric_name': 'ThrottledRecords',
            'dimensions': {'DeliveryStreamName': 'orders'},
            'statistic': 'Sum',
        }
        assert alarm.custom_tags == {'team': 'data'}

    def test_percentile_metrics_use_extended_statistic(self, alarm_factory, throttled_metric):
        alarm = _add(alarm_factory, throttled_metric.with_(statistic='p99.9'), throttled(50))
        args = alarm.to_metric_alarm_args()
        assert args['extended_statistic'] == 'p99.9'
        assert 'statistic' not in args


class TestDomainAlarmFactory:
    def test_unknown_kind(self, alarm_factory, throttled_metric):
        with pytest.raises(UnknownAlarmKindError):
            KinesisAlarmFactory(alarm_factory).add_kind_alarm('no_such_kind', throttled_metric, throttled())

    def test_wrong_threshold_type(self, alarm_factory, throttled_metric):
        with pytest.raises(AlarmConfigurationError):
            KinesisAlarmFactory(alarm_factory).add_put_records_throttled_alarm(throttled_metric, freshness())

    def test_custom_domain_factory(self, alarm_factory, throttled_metric):
        class BareAlarmFactory(DomainAlarmFactory):
            KINDS = {'bare': BARE_COUNT}

        alarm = BareAlarmFactory(alarm_factory).add_kind_alarm('bare', throttled_metric, throttled(7), 'x')
        assert alarm.name == 'OrdersStream-Bare-x'
        assert alarm.dedupe_key == 'OrdersStream-Bare'
        assert alarm.description == 'Bare alarm over 7'


class TestFromConfig:
    def test_threshold_alias(self):
        props = RecordsThrottledThreshold.from_config({'threshold': 50})
        assert props == throttled(50)

    def test_full_field_name(self):
        assert RecordsThrottledThreshold.from_config({'max_records_throttled_threshold': 5}) == throttled(5)

    def test_overrides_and_aliases(self):
        props = RecordsThrottledThreshold.from_config(
            {
                'threshold': 5,
                'comparison_operator': 'greater_than_or_equal',
                'treat_missing_data': 'breaching',
                'alarm_name': 'custom',
                'evaluation_periods': 4,
                'custom_tags': {'team': 'data'},
            }
        )
        assert props.comparison_operator_override == ComparisonOperator.GREATER_THAN_OR_EQUAL
        assert props.treat_missing_data_override == TreatMissingData.BREACHING
        assert props.alarm_name_override == 'custom'
        assert props.evaluation_periods == 4
        assert props.custom_tags == {'team': 'data'}

    def test_missing_threshold(self):
        with pytest.raises(InvalidThresholdError):
            RecordsThrottledThreshold.from_config({'evaluation_periods': 3})

    def test_unknown_setting(self):
        with pytest.raises(AlarmConfigurationError, match='treshold'):
            RecordsThrottledThreshold.from_config({'threshold': 5, 'treshold': 6})

    def test_threshold_given_twice(self):
        with pytest.raises(AlarmConfigurationError):
            RecordsThrottledThreshold.from_config({'threshold': 5, 'max_records_throttled_threshold': 6})

    def test_bad_enum(self):
        with pytest.raises(AlarmConfigurationError):
            RecordsThrottledThreshold.from_config({'threshold': 5, 'comparison_operator': 'sideways'})

    def test_not_a_mapping(self):
        with pytest.raises(AlarmConfigurationError):
            RecordsThrottledThreshold.from_config(50)

    def test_numeric_disambiguator_becomes_string(self):
        assert RecordsThrottledThreshold.from_config({'threshold': 5, 'disambiguator': 0}).disambiguator == '0'

    def test_base_class_has_no_threshold_field(self):
        assert CustomAlarmThreshold.threshold_field is None

    @pytest.mark.parametrize(
        'value', ['notBreaching', 'NOT_BREACHING', 'not-breaching', 'not_breaching', TreatMissingData.NOT_BREACHING]
    )
    def test_parse_enum_spellings(self, value):
        assert parse_enum(TreatMissingData, value) == TreatMissingData.NOT_BREACHING

    def test_parse_enum_operator_by_value(self):
        assert parse_enum(ComparisonOperator, 'LessThanOrEqualToThreshold') == ComparisonOperator.LESS_THAN_OR_EQUAL
        assert ComparisonOperator.LESS_THAN_OR_EQUAL.symbol == '<='
