"""Export dispatch from checkpointed records to DogStatsD calls."""
import pytest

from fakes import FailingSumAggregator, RecordingSink

from dogstatsd_exporter.aggregators import (
    ArrayAggregator, Capability, LastValueAggregator, MinMaxSumCountAggregator,
    SumAggregator,
)
from dogstatsd_exporter.config import Convention, DogStatsdConfig
from dogstatsd_exporter.exporter import DogStatsdExporter, ExportError
from dogstatsd_exporter.records import (
    CheckpointSet, Descriptor, InstrumentKind, LabelSet, NumberKind, Record,
)


def make_record(name, kind, agg, labels=None, number_kind=NumberKind.FLOAT64):
    return Record(Descriptor(name, kind, number_kind), LabelSet(labels), agg)


def filled(agg, values):
    for v in values:
        agg.update(v)
    return agg.checkpoint()


def make_exporter(**config):
    sink = RecordingSink()
    return DogStatsdExporter(DogStatsdConfig(**config), sink=sink), sink


def test_points_emit_one_histogram_per_point():
    exporter, sink = make_exporter(tags=["env:prod"])
    agg = filled(ArrayAggregator(), [3.0, 1.0, 2.0])

    exporter.export(CheckpointSet([
        make_record("req.latency", InstrumentKind.MEASURE, agg, {"region": "us"}),
    ]))

    assert len(sink.calls) == 3
    for kind, name, _, tags, rate in sink.calls:
        assert kind == "histogram"
        assert name == "req_latency"
        assert tags == ["env:prod", "region:us"]
        assert rate == 1
    assert sorted(call[2] for call in sink.calls) == [1.0, 2.0, 3.0]


def test_points_use_distribution_when_configured():
    exporter, sink = make_exporter(use_distribution=True)
    agg = filled(ArrayAggregator(), [1, 2])

    exporter.export(CheckpointSet([
        make_record("latency", InstrumentKind.MEASURE, agg, number_kind=NumberKind.INT64),
    ]))

    assert [call[0] for call in sink.calls] == ["distribution", "distribution"]
    assert [call[2] for call in sink.calls] == [1.0, 2.0]


def test_min_max_only_emits_two_gauges():
    exporter, sink = make_exporter()
    agg = filled(MinMaxSumCountAggregator(), [4, 8, 6])

    exporter.export(CheckpointSet([make_record("size", InstrumentKind.MEASURE, agg)]))

    assert sink.calls == [
        ("gauge", "size.min", 4.0, [], 1),
        ("gauge", "size.max", 8.0, [], 1),
    ]


class QuantileMinMax(MinMaxSumCountAggregator):
    """Min-max-sum-count that also answers quantile queries."""

    capabilities = Capability.MIN_MAX_SUM_COUNT | Capability.SUM | Capability.DISTRIBUTION

    def __init__(self, quantiles):
        super().__init__()
        self.quantiles = quantiles
        self.asked = []

    def quantile(self, q):
        self.asked.append(q)
        return self.quantiles[q]


def test_min_max_with_distribution_emits_four_gauges():
    exporter, sink = make_exporter()
    agg = QuantileMinMax({0.5: 5, 0.95: 9})
    for v in (1, 5, 10):
        agg.update(v)

    exporter.export(CheckpointSet([make_record("lat", InstrumentKind.MEASURE, agg)]))

    assert sink.names() == ["lat.min", "lat.max", "lat.median", "lat.p95"]
    assert [call[2] for call in sink.calls] == [1.0, 10.0, 5.0, 9.0]
    assert agg.asked == [0.5, 0.95]
    assert all(call[0] == "gauge" for call in sink.calls)


def test_sum_counter_convention():
    exporter, sink = make_exporter(convention=Convention.COUNTER)
    agg = filled(SumAggregator(), [2, 3])

    exporter.export(CheckpointSet([
        make_record("hits", InstrumentKind.COUNTER, agg, number_kind=NumberKind.INT64),
    ]))

    assert sink.calls == [("count", "hits", 5.0, [], 1)]


def test_sum_legacy_gauge_convention():
    exporter, sink = make_exporter(convention="legacy-gauge", namespace="svc")
    agg = filled(SumAggregator(), [2.5])

    exporter.export(CheckpointSet([make_record("hits", InstrumentKind.COUNTER, agg)]))

    assert sink.calls == [("gauge", "svc.hits.count", 2.5, [], 1)]


def test_last_value_conventions():
    for convention, expected_name in (
        (Convention.COUNTER, "temp"),
        (Convention.LEGACY_GAUGE, "temp.count"),
    ):
        exporter, sink = make_exporter(convention=convention)
        agg = LastValueAggregator.from_value(21)

        exporter.export(CheckpointSet([
            make_record("temp", InstrumentKind.OBSERVER, agg, {"room": "a"}),
        ]))

        assert sink.calls == [("gauge", expected_name, 21.0, ["room:a"], 1)]


def test_points_take_priority_over_sum():
    exporter, sink = make_exporter()
    agg = filled(ArrayAggregator(), [1, 2, 3, 4])

    exporter.export(CheckpointSet([make_record("lat", InstrumentKind.MEASURE, agg)]))

    assert [call[0] for call in sink.calls] == ["histogram"] * 4


def test_read_failure_aborts_remaining_records():
    exporter, sink = make_exporter()
    checkpoint = CheckpointSet([
        make_record("first", InstrumentKind.COUNTER, SumAggregator.from_sum(1)),
        make_record("broken", InstrumentKind.COUNTER, FailingSumAggregator()),
        make_record("after", InstrumentKind.COUNTER, SumAggregator.from_sum(2)),
    ])

    with pytest.raises(ExportError) as excinfo:
        exporter.export(checkpoint)

    assert "broken" in str(excinfo.value)
    assert excinfo.value.metric == "broken"
    assert excinfo.value.statistic == "Sum value"
    assert sink.names() == ["first"]


def test_empty_last_value_is_a_read_error():
    exporter, sink = make_exporter()
    checkpoint = CheckpointSet([
        make_record("temp", InstrumentKind.OBSERVER, LastValueAggregator()),
    ])

    with pytest.raises(ExportError) as excinfo:
        exporter.export(checkpoint)

    assert excinfo.value.statistic == "LastValue"
    assert sink.calls == []


def test_send_failure_aborts_remaining_records():
    sink = RecordingSink(fail_on="size.max")
    exporter = DogStatsdExporter(DogStatsdConfig(), sink=sink)
    checkpoint = CheckpointSet([
        make_record("size", InstrumentKind.MEASURE, filled(MinMaxSumCountAggregator(), [1, 2])),
        make_record("hits", InstrumentKind.COUNTER, SumAggregator.from_sum(1)),
    ])

    with pytest.raises(ExportError) as excinfo:
        exporter.export(checkpoint)

    assert excinfo.value.metric == "size"
    assert sink.names() == ["size.min"]


def test_export_returns_record_count_and_close_releases_sink():
    exporter, sink = make_exporter()
    with exporter:
        exported = exporter.export(CheckpointSet([
            make_record("a", InstrumentKind.COUNTER, SumAggregator.from_sum(1)),
            make_record("b", InstrumentKind.COUNTER, SumAggregator.from_sum(1)),
        ]))
    assert exported == 2
    assert sink.closed
