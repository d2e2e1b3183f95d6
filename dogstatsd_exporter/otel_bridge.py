"""OpenTelemetry SDK metric exporter backed by the DogStatsD exporter."""
import logging
import time
from typing import Iterator, Optional

from opentelemetry.sdk.metrics import (
    Counter, Histogram as HistogramInstrument, ObservableCounter,
    ObservableGauge, ObservableUpDownCounter, UpDownCounter,
)
from opentelemetry.sdk.metrics.export import (
    AggregationTemporality, Gauge, Histogram, MetricExporter,
    MetricExportResult, MetricsData, Sum,
)

from dogstatsd_exporter.aggregators import (
    LastValueAggregator, MinMaxSumCountAggregator, SumAggregator,
)
from dogstatsd_exporter.exporter import DogStatsdExporter, ExportError
from dogstatsd_exporter.records import (
    CheckpointSet, Descriptor, InstrumentKind, LabelSet, NumberKind, Record,
)
from dogstatsd_exporter.self_metrics import SelfMetrics

logger = logging.getLogger(__name__)

# Counters and histograms are reported as per-interval deltas, matching
# statsd count semantics. Up/down counters stay cumulative and go out as gauges.
PREFERRED_TEMPORALITY = {
    Counter: AggregationTemporality.DELTA,
    ObservableCounter: AggregationTemporality.DELTA,
    HistogramInstrument: AggregationTemporality.DELTA,
    UpDownCounter: AggregationTemporality.CUMULATIVE,
    ObservableUpDownCounter: AggregationTemporality.CUMULATIVE,
    ObservableGauge: AggregationTemporality.CUMULATIVE,
}


def _number_kind(value) -> NumberKind:
    if isinstance(value, int) and not isinstance(value, bool):
        return NumberKind.INT64
    return NumberKind.FLOAT64


def to_records(metrics_data: MetricsData) -> Iterator[Record]:
    """Convert SDK metrics data into exportable records, one per data point."""
    for resource_metrics in metrics_data.resource_metrics:
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                data = metric.data
                for point in data.data_points:
                    labels = LabelSet(dict(point.attributes or {}))

                    if isinstance(data, Sum) and data.is_monotonic:
                        kind = InstrumentKind.COUNTER
                        number_kind = _number_kind(point.value)
                        agg = SumAggregator.from_sum(point.value)
                    elif isinstance(data, (Sum, Gauge)):
                        kind = InstrumentKind.OBSERVER
                        number_kind = _number_kind(point.value)
                        agg = LastValueAggregator.from_value(point.value, point.time_unix_nano)
                    elif isinstance(data, Histogram):
                        kind = InstrumentKind.MEASURE
                        number_kind = NumberKind.FLOAT64
                        agg = MinMaxSumCountAggregator.from_stats(
                            point.min, point.max, point.sum, point.count
                        )
                    else:
                        logger.debug(f"Unsupported data type {type(data).__name__} for {metric.name}")
                        continue

                    descriptor = Descriptor(
                        metric.name, kind, number_kind,
                        description=metric.description or "", unit=metric.unit or "",
                    )
                    yield Record(descriptor, labels, agg)


class OTelDogStatsdExporter(MetricExporter):
    """Pushes metrics collected by an OpenTelemetry reader to DogStatsD."""

    def __init__(
        self,
        exporter: DogStatsdExporter,
        self_metrics: Optional[SelfMetrics] = None,
        preferred_temporality=None,
    ):
        super().__init__(
            preferred_temporality=preferred_temporality or PREFERRED_TEMPORALITY,
        )
        self.exporter = exporter
        self.self_metrics = self_metrics

    def export(self, metrics_data: MetricsData, timeout_millis: float = 10_000, **kwargs) -> MetricExportResult:
        start = time.time()
        checkpoint_set = CheckpointSet(to_records(metrics_data))
        try:
            exported = self.exporter.export(checkpoint_set)
        except ExportError as e:
            logger.error(f"Failed to export metrics to DogStatsD: {e}")
            if self.self_metrics:
                self.self_metrics.record_export_error(e.statistic, time.time() - start)
            return MetricExportResult.FAILURE
        if self.self_metrics:
            self.self_metrics.record_export(exported, time.time() - start)
        return MetricExportResult.SUCCESS

    def force_flush(self, timeout_millis: float = 10_000) -> bool:
        return True

    def shutdown(self, timeout_millis: float = 30_000, **kwargs) -> None:
        self.exporter.close()
