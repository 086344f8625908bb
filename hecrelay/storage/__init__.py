"""Storage backends for cold-storage mirroring and failure fallback.

Exports:
    StorageBackend   -- Abstract base for all backends.
    S3Storage        -- boto3-backed object storage.
    LocalFileStorage -- Directory-backed storage with the same layout.
    build_storage    -- Factory selecting a backend from a StorageConfig URL.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from hecrelay.storage.base import StorageBackend, encode_payload, object_key, serialize_batch
from hecrelay.storage.local import LocalFileStorage
from hecrelay.storage.s3 import S3Location, S3Storage

if TYPE_CHECKING:
    from hecrelay.models.config import StorageConfig

_log = structlog.get_logger(component="storage")

__all__ = [
    "LocalFileStorage",
    "S3Location",
    "S3Storage",
    "StorageBackend",
    "build_storage",
    "encode_payload",
    "object_key",
    "serialize_batch",
]


def build_storage(config: StorageConfig, role: str, timeout: float = 10.0) -> StorageBackend | None:
    """Build the backend described by *config*, or None when it has no URL.

    ``file://`` URLs select LocalFileStorage; anything else is treated as
    an S3 location.

    Raises:
        ConfigError: if the URL cannot be parsed.
    """
    if not config.enabled:
        _log.info("storage_disabled", role=role)
        return None
    if config.url.startswith("file://"):
        backend: StorageBackend = LocalFileStorage.from_url(config.url)
    else:
        backend = S3Storage.from_config(config, timeout=timeout)
    _log.info("storage_enabled", role=role, backend=backend.backend_name)
    return backend
