"""Aggregators that accumulate raw measurements over one collection interval.

Every aggregator class declares the statistics it can produce as a
``Capability`` flag set. The exporter dispatches on that declaration
instead of probing the instance type on every export.
"""
import time
from enum import Flag, auto
from typing import List, Optional, Tuple, Union

import numpy as np

Number = Union[int, float]


class Capability(Flag):
    """Statistics an aggregator can report."""
    NONE = 0
    SUM = auto()
    LAST_VALUE = auto()
    MIN_MAX_SUM_COUNT = auto()
    DISTRIBUTION = auto()
    POINTS = auto()


class AggregatorError(Exception):
    """A statistic cannot be produced for the current interval."""


class EmptyDataSetError(AggregatorError):
    """The interval had no measurements."""

    def __init__(self):
        super().__init__("the result is not defined on an empty data set")


class NoDataError(AggregatorError):
    """No value was reported during the interval."""

    def __init__(self):
        super().__init__("no data collected by this aggregator")


class InvalidQuantileError(AggregatorError):
    """Requested quantile is outside [0, 1]."""

    def __init__(self, q: float):
        super().__init__(f"the requested quantile is out of range: {q}")
        self.q = q


class Aggregator:
    """Base class for all aggregators."""

    capabilities: Capability = Capability.NONE

    def update(self, value: Number):
        raise NotImplementedError

    def checkpoint(self) -> "Aggregator":
        """Return the interval's state as a new aggregator and reset this one."""
        raise NotImplementedError

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities


class SumAggregator(Aggregator):
    """Running total of every measurement in the interval."""

    capabilities = Capability.SUM

    def __init__(self):
        self._sum: Number = 0

    @classmethod
    def from_sum(cls, value: Number) -> "SumAggregator":
        agg = cls()
        agg._sum = value
        return agg

    def update(self, value: Number):
        self._sum += value

    def checkpoint(self) -> "SumAggregator":
        snapshot = SumAggregator.from_sum(self._sum)
        self._sum = 0
        return snapshot

    def sum(self) -> Number:
        return self._sum


class LastValueAggregator(Aggregator):
    """Most recently reported value; nothing accumulates."""

    capabilities = Capability.LAST_VALUE

    def __init__(self):
        self._value: Optional[Number] = None
        self._timestamp_ns: int = 0

    @classmethod
    def from_value(cls, value: Number, timestamp_ns: Optional[int] = None) -> "LastValueAggregator":
        agg = cls()
        agg._value = value
        agg._timestamp_ns = timestamp_ns if timestamp_ns is not None else time.time_ns()
        return agg

    def update(self, value: Number):
        self._value = value
        self._timestamp_ns = time.time_ns()

    def checkpoint(self) -> "LastValueAggregator":
        snapshot = LastValueAggregator()
        snapshot._value, snapshot._timestamp_ns = self._value, self._timestamp_ns
        self._value, self._timestamp_ns = None, 0
        return snapshot

    def last_value(self) -> Tuple[Number, int]:
        """Return (value, timestamp in ns)."""
        if self._value is None:
            raise NoDataError()
        return self._value, self._timestamp_ns


class MinMaxSumCountAggregator(Aggregator):
    """Min, max, sum and count without retaining points."""

    capabilities = Capability.MIN_MAX_SUM_COUNT | Capability.SUM

    def __init__(self):
        self._reset()

    def _reset(self):
        self._min: Optional[Number] = None
        self._max: Optional[Number] = None
        self._sum: Number = 0
        self._count: int = 0

    @classmethod
    def from_stats(cls, min_: Number, max_: Number, sum_: Number, count: int) -> "MinMaxSumCountAggregator":
        agg = cls()
        if count:
            agg._min, agg._max = min_, max_
        agg._sum, agg._count = sum_, count
        return agg

    def update(self, value: Number):
        if self._count == 0:
            self._min = self._max = value
        else:
            self._min = min(self._min, value)
            self._max = max(self._max, value)
        self._sum += value
        self._count += 1

    def checkpoint(self) -> "MinMaxSumCountAggregator":
        snapshot = MinMaxSumCountAggregator.from_stats(self._min, self._max, self._sum, self._count)
        self._reset()
        return snapshot

    def min(self) -> Number:
        if self._count == 0:
            raise EmptyDataSetError()
        return self._min

    def max(self) -> Number:
        if self._count == 0:
            raise EmptyDataSetError()
        return self._max

    def sum(self) -> Number:
        return self._sum

    def count(self) -> int:
        return self._count


class ArrayAggregator(Aggregator):
    """Retains every point of the interval, enabling exact quantiles."""

    capabilities = (
        Capability.POINTS
        | Capability.MIN_MAX_SUM_COUNT
        | Capability.DISTRIBUTION
        | Capability.SUM
    )

    def __init__(self):
        self._points: List[Number] = []

    def update(self, value: Number):
        self._points.append(value)

    def checkpoint(self) -> "ArrayAggregator":
        snapshot = ArrayAggregator()
        snapshot._points = sorted(self._points)
        self._points = []
        return snapshot

    def points(self) -> List[Number]:
        return list(self._points)

    def min(self) -> Number:
        if not self._points:
            raise EmptyDataSetError()
        return min(self._points)

    def max(self) -> Number:
        if not self._points:
            raise EmptyDataSetError()
        return max(self._points)

    def sum(self) -> Number:
        return sum(self._points)

    def count(self) -> int:
        return len(self._points)

    def quantile(self, q: float) -> float:
        """Non-interpolating quantile: the sorted point at ceil((n - 1) * q)."""
        if not self._points:
            raise EmptyDataSetError()
        if q < 0 or q > 1:
            raise InvalidQuantileError(q)
        values = np.asarray(self._points, dtype=np.float64)
        return float(np.quantile(values, q, method="higher"))
