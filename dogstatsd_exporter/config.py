"""Configuration models using Pydantic for validation."""
from enum import Enum
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator
import os

from dogstatsd_exporter.sink import DEFAULT_STATS_ADDR, parse_address


class Convention(str, Enum):
    """How sum and last-value records are named and typed on the wire.

    LEGACY_GAUGE sends both as gauges under ``<name>.count``. COUNTER sends
    sums as counter deltas and last values as gauges, both unsuffixed.
    """
    LEGACY_GAUGE = "legacy-gauge"
    COUNTER = "counter"


class DogStatsdConfig(BaseModel):
    """DogStatsD exporter configuration."""
    stats_addr: str = DEFAULT_STATS_ADDR
    namespace: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    use_distribution: bool = False
    convention: Convention = Convention.COUNTER
    disable_telemetry: bool = True

    @field_validator('stats_addr')
    @classmethod
    def validate_stats_addr(cls, v):
        """Reject addresses the sink could not connect to."""
        if not v:
            return DEFAULT_STATS_ADDR
        parse_address(v)
        return v

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v):
        for tag in v:
            if not tag or not tag.strip():
                raise ValueError("Global tags must be non-empty strings")
        return v


class PushConfig(BaseModel):
    """Push controller cadence."""
    interval_s: float = 10.0

    @field_validator('interval_s')
    @classmethod
    def validate_interval(cls, v):
        if v <= 0:
            raise ValueError("Push interval must be positive")
        return v


class SelfMetricsConfig(BaseModel):
    """Prometheus endpoint for the exporter's own metrics."""
    enabled: bool = False
    port: int = 9102
    prefix: str = "dogstatsd_exporter_"
    bind_address: str = "0.0.0.0"


class GlobalConfig(BaseModel):
    """Global configuration settings."""
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "text"


class Config(BaseModel):
    """Root configuration model."""
    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    dogstatsd: DogStatsdConfig = Field(default_factory=DogStatsdConfig)
    push: PushConfig = Field(default_factory=PushConfig)
    self_metrics: SelfMetricsConfig = Field(default_factory=SelfMetricsConfig)

    model_config = {"populate_by_name": True}


def load_config(config_path: str) -> Config:
    """Load and validate configuration from YAML file."""
    import yaml

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        raw_config = yaml.safe_load(f) or {}

    # Apply environment variable overrides
    if env_addr := os.getenv('DOGSTATSD_ADDR'):
        raw_config.setdefault('dogstatsd', {})['stats_addr'] = env_addr

    if env_log_level := os.getenv('LOG_LEVEL'):
        raw_config.setdefault('global', {})['log_level'] = env_log_level

    try:
        return Config(**raw_config)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}") from e
