"""Local directory storage backend.

Uses the same key layout and body format as the S3 backend, rooted at a
directory instead of a bucket.  Objects are written to a temporary file
and renamed into place so a reader never observes a partial batch.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Sequence
from pathlib import Path
from urllib.parse import urlparse

import structlog

from hecrelay.errors import ConfigError, StorageError
from hecrelay.models.events import CanonicalEvent
from hecrelay.storage.base import StorageBackend, object_key, serialize_batch

_log = structlog.get_logger(component="storage.local")


class LocalFileStorage(StorageBackend):
    """Writes each batch as one gzip file under *base_path*."""

    def __init__(self, base_path: Path | str) -> None:
        self._base = Path(base_path)

    @classmethod
    def from_url(cls, url: str) -> LocalFileStorage:
        parsed = urlparse(url)
        if parsed.scheme != "file" or not parsed.path:
            raise ConfigError(f"Invalid file storage URL: {url!r}")
        return cls(Path(parsed.path))

    @property
    def backend_name(self) -> str:
        return f"file://{self._base}"

    async def store(self, batch: Sequence[CanonicalEvent]) -> None:
        body = serialize_batch(batch)
        key = object_key("")
        try:
            target = await asyncio.to_thread(self._write, key, body)
        except OSError as exc:
            raise StorageError(f"Failed to write {key} under {self._base}: {exc}") from exc
        _log.info("batch_stored", path=str(target), events=len(batch), bytes=len(body))

    def _write(self, key: str, body: bytes) -> Path:
        target = self._base / key
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(f".{target.name}.tmp")
        tmp.write_bytes(body)
        os.replace(tmp, target)
        return target

    def list_objects(self) -> list[Path]:
        """List every stored object, oldest partition first."""
        if not self._base.exists():
            return []
        return sorted(self._base.rglob("*.json.gz"))
