"""DogStatsD push exporter: translates checkpointed records into agent calls."""
import logging
import re
import struct
from typing import Callable, Iterable, List, Optional, Tuple

from dogstatsd_exporter.aggregators import AggregatorError, Capability
from dogstatsd_exporter.config import Convention, DogStatsdConfig
from dogstatsd_exporter.records import CheckpointSet, LabelSet, NumberKind, Record, emit_value
from dogstatsd_exporter.sink import SinkError, StatsdSink

logger = logging.getLogger(__name__)

# Every sample is sent; no client-side sampling.
RATE = 1

_INVALID_CHARS = re.compile(r"[^a-zA-Z0-9]+")

_UINT64_MASK = (1 << 64) - 1


class ExportError(Exception):
    """A checkpoint export was abandoned partway."""

    def __init__(self, metric: str, statistic: str, cause: Exception):
        super().__init__(f"error getting {statistic} for {metric}: {cause}")
        self.metric = metric
        self.statistic = statistic
        self.cause = cause


def sanitize_string(value: str) -> str:
    """Replace every run of non-alphanumeric characters with one underscore."""
    return _INVALID_CHARS.sub("_", value)


def sanitize_metric_name(namespace: Optional[str], name: str) -> str:
    """Format namespace and metric name to the agent's naming rules."""
    if namespace:
        # Only surrounding spaces go; inner ones become "_" ("My Service" -> "My_Service").
        namespace = namespace.strip(" ")
        return f"{sanitize_string(namespace)}.{sanitize_string(name)}"
    return sanitize_string(name)


def extract_tags(labels: LabelSet, global_tags: Iterable[str] = ()) -> List[str]:
    """Global tags first, then one ``key:value`` tag per label in index order."""
    tags = list(global_tags)
    offset = len(tags)
    tags.extend([""] * len(labels))
    for i, key, value in labels.iter_indexed():
        tags[offset + i] = f"{key}:{emit_value(value)}"
    return tags


def metric_value(kind: NumberKind, number) -> float:
    """Normalize an aggregated number to a float."""
    if kind == NumberKind.FLOAT64:
        return float(number)
    if kind == NumberKind.INT64 or kind == NumberKind.UINT64:
        return float(int(number))
    # Unknown kind: treat the number as raw float64 bits.
    bits = int(number) & _UINT64_MASK
    return struct.unpack("<d", struct.pack("<Q", bits))[0]


class DogStatsdExporter:
    """Forwards checkpointed metrics to a DogStatsD agent."""

    def __init__(self, config: Optional[DogStatsdConfig] = None, sink=None):
        self.config = config or DogStatsdConfig()
        if sink is None:
            sink = StatsdSink(
                self.config.stats_addr,
                disable_telemetry=self.config.disable_telemetry,
            )
        self.sink = sink
        logger.info(
            f"DogStatsD exporter initialized, pushing to {self.config.stats_addr} "
            f"(convention={self.config.convention.value}, "
            f"distribution={self.config.use_distribution})"
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def export(self, checkpoint_set: CheckpointSet):
        """Export every record of a checkpoint, in order.

        Raises ExportError on the first failed read or send; records after
        the failing one are not sent.
        """
        exported = 0
        for record in checkpoint_set:
            self._export_record(record)
            exported += 1
        logger.debug(f"Exported {exported} records")
        return exported

    def _export_record(self, record: Record):
        agg = record.aggregator
        caps = agg.capabilities
        kind = record.descriptor.number_kind
        name = sanitize_metric_name(self.config.namespace, record.descriptor.name)
        tags = extract_tags(record.labels, self.config.tags)

        if Capability.POINTS in caps:
            send = self.sink.distribution if self.config.use_distribution else self.sink.histogram
            numbers = self._read(name, "Points", agg.points)
            for n in numbers:
                self._send(name, "Points", send, name, metric_value(kind, n), tags)

        elif Capability.MIN_MAX_SUM_COUNT in caps:
            stats: List[Tuple[str, Callable]] = [
                (name + ".min", agg.min),
                (name + ".max", agg.max),
            ]
            if Capability.DISTRIBUTION in caps:
                stats.append((name + ".median", lambda: agg.quantile(0.5)))
                stats.append((name + ".p95", lambda: agg.quantile(0.95)))
            for stat_name, read in stats:
                val = self._read(name, "MinMaxSumCount value", read)
                self._send(name, "MinMaxSumCount value", self.sink.gauge,
                           stat_name, metric_value(kind, val), tags)

        elif Capability.SUM in caps:
            val = metric_value(kind, self._read(name, "Sum value", agg.sum))
            if self.config.convention == Convention.LEGACY_GAUGE:
                self._send(name, "Sum value", self.sink.gauge, name + ".count", val, tags)
            else:
                self._send(name, "Sum value", self.sink.count, name, val, tags)

        elif Capability.LAST_VALUE in caps:
            val, _ = self._read(name, "LastValue", agg.last_value)
            val = metric_value(kind, val)
            if self.config.convention == Convention.LEGACY_GAUGE:
                self._send(name, "LastValue", self.sink.gauge, name + ".count", val, tags)
            else:
                self._send(name, "LastValue", self.sink.gauge, name, val, tags)

        else:
            logger.warning(f"No exportable statistic for {name}, skipping")

    @staticmethod
    def _read(metric: str, statistic: str, read: Callable):
        try:
            return read()
        except AggregatorError as e:
            raise ExportError(metric, statistic, e) from e

    @staticmethod
    def _send(metric: str, statistic: str, send: Callable, name: str, value: float, tags: List[str]):
        try:
            send(name, value, tags, RATE)
        except (SinkError, OSError) as e:
            raise ExportError(metric, statistic, e) from e

    def close(self):
        """Close the sink, flushing any pending buffers."""
        self.sink.close()
        logger.info("DogStatsD exporter shutdown complete")
