"""Self-monitoring metrics for the exporter, served via prometheus_client."""
from prometheus_client import Counter, Histogram, CollectorRegistry, start_http_server
import logging

logger = logging.getLogger(__name__)


class SelfMetrics:
    """Counters and timings for export cycles."""

    def __init__(self, registry=None, prefix=""):
        if registry is None:
            registry = CollectorRegistry()
        self.registry = registry

        self.exports_total = Counter(
            f"{prefix}exports_total",
            "Total number of checkpoint exports attempted",
            registry=registry
        )

        self.export_errors_total = Counter(
            f"{prefix}export_errors_total",
            "Total number of checkpoint exports abandoned with an error",
            ["statistic"],
            registry=registry
        )

        self.records_exported_total = Counter(
            f"{prefix}records_exported_total",
            "Total number of records sent to the agent",
            registry=registry
        )

        self.export_duration_seconds = Histogram(
            f"{prefix}export_duration_seconds",
            "Duration of each checkpoint export in seconds",
            buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
            registry=registry
        )

    def record_export(self, records: int, duration: float):
        """Record a completed export."""
        self.exports_total.inc()
        self.records_exported_total.inc(records)
        self.export_duration_seconds.observe(duration)

    def record_export_error(self, statistic: str, duration: float):
        """Record an abandoned export."""
        self.exports_total.inc()
        self.export_errors_total.labels(statistic=statistic).inc()
        self.export_duration_seconds.observe(duration)

    def serve(self, port: int, bind_address: str = "0.0.0.0"):
        """Start the Prometheus HTTP server for this registry."""
        try:
            start_http_server(port, addr=bind_address, registry=self.registry)
            logger.info(f"Self-metrics listening on {bind_address}:{port}/metrics")
        except Exception as e:
            logger.error(f"Failed to start self-metrics HTTP server: {e}")
            raise
