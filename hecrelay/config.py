"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import re
from urllib.parse import urlparse

from hecrelay.errors import ConfigError
from hecrelay.models.config import (
    CollectorConfig,
    HecRelayConfig,
    LogConfig,
    RoutingConfig,
    StorageConfig,
)
from hecrelay.models.events import ProviderType

_PROVIDER_ROUTING: dict[ProviderType, RoutingConfig] = {
    ProviderType.AWS: RoutingConfig(source="aws-lambda", sourcetype="aws:cloudwatch", host="lambda"),
    ProviderType.AZURE: RoutingConfig(source="azure-function", sourcetype="azure:monitor", host="azure-function"),
    ProviderType.GCP: RoutingConfig(source="gcp-function", sourcetype="gcp:logging", host="gcp-function"),
}

_PROXY_SCHEMES = {"http", "https", "socks5", "socks5h"}

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def _env(key: str, default: str = "") -> str:
    return os.environ.get(key, "") or default


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    raw = _env(key, str(default))
    try:
        val = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from exc
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_duration(key: str, default: str) -> float:
    return parse_duration(_env(key, default), key)


def parse_duration(value: str, name: str = "duration") -> float:
    """Parse a Go-style duration (``500ms``, ``2s``, ``1m30s``) into seconds.

    A bare number is taken as seconds.
    """
    value = value.strip()
    if re.fullmatch(r"\d+(\.\d+)?", value):
        return float(value)
    if not value or _DURATION_PART.sub("", value) != "":
        raise ConfigError(f"Invalid {name}: {value!r}")
    return sum(float(num) * _DURATION_UNITS[unit] for num, unit in _DURATION_PART.findall(value))


def _split_endpoints(value: str) -> list[str]:
    return [e.strip() for e in value.split(",") if e.strip()]


def validate_proxy(value: str) -> str:
    """Return *value* unchanged if it is an empty string or a usable proxy URL."""
    if not value:
        return value
    try:
        parsed = urlparse(value)
        parsed.port  # noqa: B018 - raises ValueError on a malformed port
    except ValueError as exc:
        raise ConfigError(f"Invalid proxy URL {value!r}: {exc}") from exc
    if parsed.scheme not in _PROXY_SCHEMES or not parsed.hostname:
        raise ConfigError(f"Invalid proxy URL {value!r}: scheme must be one of {sorted(_PROXY_SCHEMES)}")
    return value


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ConfigError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_provider(value: str) -> ProviderType:
    try:
        return ProviderType(value.lower())
    except ValueError as exc:
        raise ConfigError(f"Unknown provider: {value!r}") from exc


def load_config(provider: str = "aws") -> HecRelayConfig:
    """Load configuration from HEC_* and S3_* environment variables.

    Routing defaults depend on *provider*; each field can be overridden
    independently through its own variable.

    Raises:
        ConfigError: on missing endpoints or any malformed value.
    """
    provider_type = _validate_provider(provider)
    endpoints = _split_endpoints(_env("HEC_ENDPOINTS"))
    if not endpoints:
        raise ConfigError("HEC_ENDPOINTS is required")

    routing_defaults = _PROVIDER_ROUTING[provider_type]
    region = _env("AWS_REGION", "us-east-1")

    return HecRelayConfig(
        provider=provider_type.value,
        aws_region=region,
        extract_log_events=_env_bool("HEC_EXTRACT_LOG_EVENTS", False),
        routing=RoutingConfig(
            index=_env("HEC_INDEX", routing_defaults.index),
            source=_env("HEC_SOURCE", routing_defaults.source),
            sourcetype=_env("HEC_SOURCETYPE", routing_defaults.sourcetype),
            host=_env("HEC_HOST", routing_defaults.host),
        ),
        collector=CollectorConfig(
            endpoints=endpoints,
            token=_env("HEC_TOKEN"),
            channel_id=_env("HEC_CHANNEL_ID"),
            tls_skip_verify=_env_bool("HEC_TLS_SKIP_VERIFY", True),
            proxy=validate_proxy(_env("HEC_PROXY")),
            batch_size=_env_int("HEC_BATCH_SIZE", 1, min_val=1, max_val=10000),
            batch_timeout=_env_duration("HEC_BATCH_TIMEOUT", "2s"),
            balance=_env("HEC_BALANCE", "roundrobin").lower(),
            sticky_ttl=_env_duration("HEC_STICKY_TTL", "5m"),
            health_interval=_env_duration("HEC_HEALTH_INTERVAL", "10s"),
            fallback_on_send_error=_env_bool("HEC_FALLBACK_ON_SEND_ERROR", False),
        ),
        failure_storage=StorageConfig(
            url=_env("S3_URL"),
            access_key_id=_env("S3_ACCESS_KEY_ID"),
            access_key_secret=_env("S3_ACCESS_KEY_SECRET"),
            region=region,
        ),
        cold_storage=StorageConfig(
            url=_env("S3_COLD_STORAGE_URL"),
            access_key_id=_env("S3_COLD_STORAGE_ACCESS_KEY_ID"),
            access_key_secret=_env("S3_COLD_STORAGE_ACCESS_KEY_SECRET"),
            region=region,
        ),
        log=LogConfig(
            level=_validate_log_level(_env("HEC_LOG_LEVEL", "info")),
        ),
    )
