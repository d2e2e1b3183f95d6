"""Aggregator selection by instrument kind."""
from typing import Callable

from dogstatsd_exporter.aggregators import (
    Aggregator, ArrayAggregator, LastValueAggregator, SumAggregator,
)
from dogstatsd_exporter.records import Descriptor, InstrumentKind

AggregatorFactory = Callable[[], Aggregator]


def select(kind: InstrumentKind) -> AggregatorFactory:
    """Return the aggregator factory for an instrument kind.

    Observers keep only their last value, measures keep every point so
    quantiles can be computed, and everything else is summed.
    """
    if kind == InstrumentKind.OBSERVER:
        return LastValueAggregator
    if kind == InstrumentKind.MEASURE:
        return ArrayAggregator
    return SumAggregator


class DataDogMeasureSelector:
    """Selector handing out a fresh aggregator per instrument + label set."""

    def aggregator_for(self, descriptor: Descriptor) -> Aggregator:
        return select(descriptor.instrument_kind)()
