"""Exception hierarchy for hecrelay."""

from __future__ import annotations


class HecRelayError(Exception):
    """Base class for every error raised by hecrelay."""


class ConfigError(HecRelayError):
    """Invalid or missing configuration. Fatal at startup."""


class ParseError(HecRelayError):
    """A provider payload could not be decoded at the envelope level."""


class StorageError(HecRelayError):
    """A storage backend failed to persist a batch."""


class DeliveryError(HecRelayError):
    """A batch could not be delivered."""


class CollectorError(DeliveryError):
    """Transport failure or non-2xx response from a collector endpoint."""

    def __init__(self, endpoint: str, message: str, status_code: int | None = None) -> None:
        super().__init__(f"{endpoint}: {message}")
        self.endpoint = endpoint
        self.status_code = status_code


class NoDestinationError(DeliveryError):
    """No healthy destination and no failure storage configured."""
