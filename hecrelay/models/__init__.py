"""Core data structures for hecrelay."""

from hecrelay.models.config import (
    CollectorConfig,
    HecRelayConfig,
    LogConfig,
    RoutingConfig,
    StorageConfig,
)
from hecrelay.models.events import CanonicalEvent, CloudEvent, ProviderType, to_canonical

__all__ = [
    "CanonicalEvent",
    "CloudEvent",
    "CollectorConfig",
    "HecRelayConfig",
    "LogConfig",
    "ProviderType",
    "RoutingConfig",
    "StorageConfig",
    "to_canonical",
]
