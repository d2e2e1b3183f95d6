"""Export aggregated OpenTelemetry-style metrics to a DogStatsD agent."""
from dogstatsd_exporter.aggregators import (
    AggregatorError, ArrayAggregator, Capability, EmptyDataSetError,
    InvalidQuantileError, LastValueAggregator, MinMaxSumCountAggregator,
    NoDataError, SumAggregator,
)
from dogstatsd_exporter.config import Config, Convention, DogStatsdConfig, load_config
from dogstatsd_exporter.controller import Accumulator, PushController
from dogstatsd_exporter.exporter import (
    DogStatsdExporter, ExportError, extract_tags, metric_value,
    sanitize_metric_name, sanitize_string,
)
from dogstatsd_exporter.records import (
    CheckpointSet, Descriptor, InstrumentKind, LabelSet, NumberKind, Record,
)
from dogstatsd_exporter.selector import DataDogMeasureSelector, select
from dogstatsd_exporter.sink import DEFAULT_STATS_ADDR, SinkError, StatsdSink

__version__ = "0.1.0"
