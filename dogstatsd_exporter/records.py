"""Data structures for instruments, label sets and checkpointed records."""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Tuple, Union


class InstrumentKind(Enum):
    """Declared role of a metric source."""
    COUNTER = "counter"
    OBSERVER = "observer"
    MEASURE = "measure"


class NumberKind(Enum):
    """Numeric type an instrument reports."""
    INT64 = "int64"
    UINT64 = "uint64"
    FLOAT64 = "float64"


@dataclass(frozen=True)
class Descriptor:
    """Identifies a registered instrument."""
    name: str
    instrument_kind: InstrumentKind
    number_kind: NumberKind = NumberKind.FLOAT64
    description: str = ""
    unit: str = ""


def emit_value(value: Any) -> str:
    """Render a label value the way it appears in a tag."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class LabelSet:
    """Ordered, immutable collection of label key/value pairs.

    Order is insertion order and positional indices are stable, so the
    index of a label can be used to place its tag.
    """

    __slots__ = ("_pairs",)

    def __init__(self, labels: Optional[Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]] = None):
        if labels is None:
            pairs = ()
        elif isinstance(labels, Mapping):
            pairs = tuple(labels.items())
        else:
            pairs = tuple((k, v) for k, v in labels)
        self._pairs: Tuple[Tuple[str, Any], ...] = pairs

    def __iter__(self) -> Iterator[Tuple[str, Any]]:
        return iter(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)

    def __eq__(self, other) -> bool:
        if not isinstance(other, LabelSet):
            return NotImplemented
        return self._pairs == other._pairs

    def __hash__(self) -> int:
        return hash(self._pairs)

    def __repr__(self) -> str:
        return f"LabelSet({list(self._pairs)!r})"

    def iter_indexed(self) -> Iterator[Tuple[int, str, Any]]:
        """Yield (index, key, value) for each label."""
        for i, (key, value) in enumerate(self._pairs):
            yield i, key, value

    def encoded(self) -> str:
        """Stable string form, used in log messages."""
        return ",".join(f"{k}={emit_value(v)}" for k, v in self._pairs)


@dataclass(frozen=True)
class Record:
    """One instrument + label set paired with its aggregator for an interval."""
    descriptor: Descriptor
    labels: LabelSet
    aggregator: Any


class CheckpointSet:
    """Finalized snapshot of every record for one collection interval."""

    def __init__(self, records: Optional[Iterable[Record]] = None):
        self._records: List[Record] = list(records) if records else []

    def add(self, record: Record):
        self._records.append(record)

    def __iter__(self) -> Iterator[Record]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)
