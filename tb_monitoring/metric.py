"""References to CloudWatch metrics. These are plain descriptions of where a metric lives; computing derived values
from them is left to CloudWatch itself."""

import re

from dataclasses import dataclass, field, replace
from tb_monitoring.constants import DEFAULT_METRIC_PERIOD, DEFAULT_METRIC_STATISTIC

PERCENTILE_PATTERN = re.compile(r'^p\d{1,2}(\.\d+)?$')


@dataclass(frozen=True)
class Metric:
    """A single CloudWatch metric.

    :param namespace: CloudWatch namespace, such as ``AWS/Firehose``.
    :type namespace: str

    :param metric_name: Name of the metric within the namespace.
    :type metric_name: str

    :param dimensions: Dimension names and values identifying the monitored resource. Defaults to {}.
    :type dimensions: dict[str, str], optional

    :param statistic: A statistic name (``Average``, ``Sum``, ``Maximum``, ...) or a percentile such as ``p90``.
    :type statistic: str, optional

    :param period: Aggregation period in seconds. Defaults to 300.
    :type period: int, optional

    :param label: Display label for graphs.
    :type label: str, optional

    :param color: Display color for graphs, as a hex string.
    :type color: str, optional
    """

    namespace: str
    metric_name: str
    dimensions: dict[str, str] = field(default_factory=dict)
    statistic: str = DEFAULT_METRIC_STATISTIC
    period: int = DEFAULT_METRIC_PERIOD
    label: str = None
    color: str = None

    def __hash__(self):
        return hash((self.namespace, self.metric_name, frozenset(self.dimensions.items()), self.statistic, self.period))

    def with_(self, **options) -> 'Metric':
        """Returns a copy of this metric with some display options changed. Used for graphs only; alarms resolve the
        same way regardless of label or color."""

        return replace(self, **options)

    @property
    def is_percentile(self) -> bool:
        return PERCENTILE_PATTERN.match(self.statistic) is not None

    def to_alarm_args(self) -> dict:
        """Keyword arguments describing this metric for an ``aws.cloudwatch.MetricAlarm``."""

        args = {
            'namespace': self.namespace,
            'metric_name': self.metric_name,
            'dimensions': dict(self.dimensions),
        }
        if self.is_percentile:
            args['extended_statistic'] = self.statistic
        else:
            args['statistic'] = self.statistic
        return args


class MetricFactory:
    """Builds metrics in a single namespace sharing a common set of dimensions.

    :param namespace: CloudWatch namespace for all metrics built by this factory.
    :type namespace: str

    :param dimensions: Dimensions applied to every metric.
    :type dimensions: dict[str, str]

    :param period: Period applied to every metric. Defaults to 300.
    :type period: int, optional
    """

    def __init__(self, namespace: str, dimensions: dict[str, str], period: int = DEFAULT_METRIC_PERIOD):
        self.namespace = namespace
        self.dimensions = dimensions
        self.period = period

    def metric(self, metric_name: str, statistic: str = DEFAULT_METRIC_STATISTIC, label: str = None) -> Metric:
        return Metric(
            namespace=self.namespace,
            metric_name=metric_name,
            dimensions=dict(self.dimensions),
            statistic=statistic,
            period=self.period,
            label=label,
        )
