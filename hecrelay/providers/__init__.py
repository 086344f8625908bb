"""Provider adapters for hecrelay.

Exports:
    CloudProvider  -- Abstract base every adapter implements.
    AWSProvider    -- CloudWatch Logs / Kinesis / Firehose payloads.
    AzureProvider  -- Azure Monitor payloads.
    GCPProvider    -- GCP Cloud Logging payloads.
    build_provider -- Factory keyed by provider name.
"""

from __future__ import annotations

from hecrelay.errors import ConfigError
from hecrelay.models.events import ProviderType
from hecrelay.providers.aws import AWSProvider
from hecrelay.providers.azure import AzureProvider
from hecrelay.providers.base import CloudProvider
from hecrelay.providers.gcp import GCPProvider

__all__ = [
    "AWSProvider",
    "AzureProvider",
    "CloudProvider",
    "GCPProvider",
    "build_provider",
]

_PROVIDERS: dict[ProviderType, type[CloudProvider]] = {
    ProviderType.AWS: AWSProvider,
    ProviderType.AZURE: AzureProvider,
    ProviderType.GCP: GCPProvider,
}


def build_provider(name: str, extract_log_events: bool = False) -> CloudProvider:
    """Return the adapter registered for *name*.

    Raises:
        ConfigError: if *name* is not a known provider.
    """
    try:
        provider_type = ProviderType(name.lower())
    except ValueError as exc:
        raise ConfigError(f"Unknown provider: {name!r}") from exc
    return _PROVIDERS[provider_type](extract_log_events=extract_log_events)
