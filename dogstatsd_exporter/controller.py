"""Measurement accumulation and the push loop that exports checkpoints."""
import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from dogstatsd_exporter.aggregators import Aggregator
from dogstatsd_exporter.exporter import DogStatsdExporter, ExportError
from dogstatsd_exporter.records import (
    CheckpointSet, Descriptor, InstrumentKind, LabelSet, NumberKind, Record,
)
from dogstatsd_exporter.selector import DataDogMeasureSelector
from dogstatsd_exporter.self_metrics import SelfMetrics

logger = logging.getLogger(__name__)

ObserverCallback = Callable[[], Iterable[Tuple[Any, Optional[Mapping[str, Any]]]]]


class Accumulator:
    """Holds one aggregator per instrument + label set for the current interval."""

    def __init__(self, selector=None):
        self.selector = selector or DataDogMeasureSelector()
        self.descriptors: Dict[str, Descriptor] = {}
        self.callbacks: Dict[str, ObserverCallback] = {}
        # Only keys updated during the current interval; drained by checkpoint().
        self._aggregators: Dict[Tuple[Descriptor, LabelSet], Aggregator] = {}
        self._lock = threading.Lock()

    def register(
        self,
        name: str,
        kind: InstrumentKind,
        number_kind: NumberKind = NumberKind.FLOAT64,
        callback: Optional[ObserverCallback] = None,
        description: str = "",
        unit: str = "",
    ) -> Descriptor:
        """Register an instrument; returns the existing descriptor on re-registration."""
        with self._lock:
            existing = self.descriptors.get(name)
            if existing is not None:
                if existing.instrument_kind != kind or existing.number_kind != number_kind:
                    raise ValueError(
                        f"Instrument {name} already registered as "
                        f"{existing.instrument_kind.value}/{existing.number_kind.value}"
                    )
                return existing

            descriptor = Descriptor(name, kind, number_kind, description, unit)
            self.descriptors[name] = descriptor
            if callback is not None:
                if kind != InstrumentKind.OBSERVER:
                    raise ValueError(f"Only observer instruments take callbacks: {name}")
                self.callbacks[name] = callback

        logger.info(f"Registered instrument {name} ({kind.value}, {number_kind.value})")
        return descriptor

    def record(self, descriptor: Descriptor, value, labels=None):
        """Apply one raw measurement to a registered instrument."""
        label_set = labels if isinstance(labels, LabelSet) else LabelSet(labels)
        with self._lock:
            if self.descriptors.get(descriptor.name) != descriptor:
                raise ValueError(f"Instrument {descriptor.name} is not registered")
            self._update(descriptor, value, label_set)

    def _update(self, descriptor: Descriptor, value, label_set: LabelSet):
        key = (descriptor, label_set)
        agg = self._aggregators.get(key)
        if agg is None:
            agg = self.selector.aggregator_for(descriptor)
            self._aggregators[key] = agg
        agg.update(value)

    def _run_callbacks(self):
        for name, callback in list(self.callbacks.items()):
            descriptor = self.descriptors[name]
            try:
                observations = list(callback())
            except Exception as e:
                logger.error(f"Observer callback for {name} failed: {e}", exc_info=True)
                continue
            with self._lock:
                for value, labels in observations:
                    self._update(descriptor, value, LabelSet(labels))

    def checkpoint(self) -> CheckpointSet:
        """Snapshot every aggregator updated this interval; the next record starts fresh."""
        self._run_callbacks()
        checkpoint_set = CheckpointSet()
        with self._lock:
            aggregators, self._aggregators = self._aggregators, {}
        for (descriptor, label_set), agg in aggregators.items():
            checkpoint_set.add(Record(descriptor, label_set, agg.checkpoint()))
        return checkpoint_set


class PushController:
    """Checkpoints the accumulator and exports it on a fixed cadence."""

    def __init__(
        self,
        accumulator: Accumulator,
        exporter: DogStatsdExporter,
        interval_s: float = 10.0,
        self_metrics: Optional[SelfMetrics] = None,
    ):
        self.accumulator = accumulator
        self.exporter = exporter
        self.interval_s = interval_s
        self.self_metrics = self_metrics
        self.tick_count = 0
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def tick(self) -> bool:
        """Checkpoint and export once. Returns False if the export was abandoned."""
        tick_start = time.time()
        checkpoint_set = self.accumulator.checkpoint()
        self.tick_count += 1

        try:
            exported = self.exporter.export(checkpoint_set)
        except ExportError as e:
            # The checkpoint is dropped; the next interval starts fresh.
            logger.error(f"Export of checkpoint {self.tick_count} abandoned: {e}")
            if self.self_metrics:
                self.self_metrics.record_export_error(e.statistic, time.time() - tick_start)
            return False

        if self.self_metrics:
            self.self_metrics.record_export(exported, time.time() - tick_start)
        logger.debug(f"Checkpoint {self.tick_count}: exported {exported} records")
        return True

    def run(self):
        """Run ticks until stopped."""
        logger.info(f"Starting push controller, interval {self.interval_s}s")
        while not self._stop_event.is_set():
            tick_start = time.time()
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Error in tick: {e}", exc_info=True)

            tick_duration = time.time() - tick_start
            sleep_time = self.interval_s - tick_duration
            if sleep_time <= 0:
                logger.warning(
                    f"Export took {tick_duration:.3f}s, longer than interval {self.interval_s}s"
                )
                continue
            self._stop_event.wait(sleep_time)

    def start(self):
        """Run the push loop on a daemon thread."""
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run, name="push-controller", daemon=True)
        self._thread.start()

    def stop(self):
        """Stop the loop, export what is left and close the exporter."""
        logger.info("Stopping push controller")
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        try:
            self.tick()
        finally:
            self.exporter.close()
