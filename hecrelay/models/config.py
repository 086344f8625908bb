"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class RoutingConfig:
    """Default routing fields stamped on every event."""

    index: str = "main"
    source: str = "aws-lambda"
    sourcetype: str = "aws:cloudwatch"
    host: str = "lambda"


@dataclass
class CollectorConfig:
    """Outbound collector endpoints and delivery policy."""

    endpoints: list[str] = field(default_factory=list)
    token: str = ""
    channel_id: str = ""
    tls_skip_verify: bool = True
    proxy: str = ""
    batch_size: int = 1
    batch_timeout: float = 2.0
    balance: str = "roundrobin"
    sticky_ttl: float = 300.0
    health_interval: float = 10.0
    fallback_on_send_error: bool = False


@dataclass
class StorageConfig:
    """One storage backend (failure or cold storage)."""

    url: str = ""
    access_key_id: str = ""
    access_key_secret: str = ""
    region: str = "us-east-1"

    @property
    def enabled(self) -> bool:
        return bool(self.url)


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class HecRelayConfig:
    """Top-level hecrelay configuration."""

    provider: str = "aws"
    aws_region: str = "us-east-1"
    extract_log_events: bool = False
    routing: RoutingConfig = field(default_factory=RoutingConfig)
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    failure_storage: StorageConfig = field(default_factory=StorageConfig)
    cold_storage: StorageConfig = field(default_factory=StorageConfig)
    log: LogConfig = field(default_factory=LogConfig)
