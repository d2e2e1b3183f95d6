"""Main entry point for the DogStatsD metrics exporter."""
import argparse
import logging
import signal
import sys
import threading

from opentelemetry import metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

from dogstatsd_exporter.config import Config, load_config
from dogstatsd_exporter.exporter import DogStatsdExporter
from dogstatsd_exporter.otel_bridge import OTelDogStatsdExporter
from dogstatsd_exporter.self_metrics import SelfMetrics
from dogstatsd_exporter.sink import SinkError


def setup_logging(log_level: str, log_format: str):
    """Setup logging configuration."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    if log_format == "json":
        fmt = '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}'
    else:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    logging.basicConfig(
        level=level,
        format=fmt,
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Reduce noise from some libraries
    logging.getLogger("datadog.dogstatsd").setLevel(logging.WARNING)


def build_meter_provider(config: Config, exporter: DogStatsdExporter, self_metrics=None) -> MeterProvider:
    """Wire an SDK meter provider that pushes to DogStatsD every interval."""
    reader = PeriodicExportingMetricReader(
        OTelDogStatsdExporter(exporter, self_metrics=self_metrics),
        export_interval_millis=config.push.interval_s * 1000
    )
    resource = Resource.create({"service.name": "dogstatsd-exporter"})
    return MeterProvider(resource=resource, metric_readers=[reader])


def main():
    """Main function."""
    parser = argparse.ArgumentParser(
        description="DogStatsD Metrics Exporter - push OpenTelemetry metrics to a DogStatsD agent"
    )
    parser.add_argument(
        "--config",
        "-c",
        required=True,
        help="Path to configuration YAML file"
    )

    args = parser.parse_args()

    # Load configuration
    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.global_.log_level, config.global_.log_format)
    logger = logging.getLogger(__name__)

    logger.info(f"Configuration loaded from: {args.config}")
    logger.info(f"Agent address: {config.dogstatsd.stats_addr}")
    logger.info(f"Push interval: {config.push.interval_s}s")

    self_metrics = None
    if config.self_metrics.enabled:
        self_metrics = SelfMetrics(prefix=config.self_metrics.prefix)
        self_metrics.serve(config.self_metrics.port, config.self_metrics.bind_address)

    try:
        exporter = DogStatsdExporter(config.dogstatsd)
    except SinkError as e:
        logger.error(f"Failed to initialize exporter: {e}")
        sys.exit(1)

    meter_provider = build_meter_provider(config, exporter, self_metrics)
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter(__name__)
    heartbeat = meter.create_counter(
        name="exporter.heartbeat",
        description="Incremented once per push interval while the exporter runs",
        unit="1"
    )

    stop = threading.Event()

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        stop.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    while not stop.is_set():
        heartbeat.add(1)
        stop.wait(config.push.interval_s)

    meter_provider.shutdown()
    logger.info("Exporter stopped")


if __name__ == "__main__":
    main()
