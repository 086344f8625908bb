"""Storage backend contract plus the shared object layout.

Every backend writes one object per ``store`` call:

    <prefix>/<YYYY>/<MM>/<DD>/<HH>/<timestamp>-<uuid4>.json.gz

whose body is the gzip of the batch payloads, one per line.
"""

from __future__ import annotations

import gzip
import json
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import UTC, datetime
from uuid import uuid4

from hecrelay.models.events import CanonicalEvent


class StorageBackend(ABC):
    """Durable sink for batches (cold-storage mirror or failure fallback)."""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Identifier used in logs."""

    @abstractmethod
    async def store(self, batch: Sequence[CanonicalEvent]) -> None:
        """Persist *batch* as a single object.

        Either a complete object is written or StorageError is raised.
        """

    async def close(self) -> None:  # noqa: B027 - optional hook
        """Release any held resources."""


def encode_payload(payload: object) -> bytes:
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return json.dumps(payload, separators=(",", ":"), default=str).encode("utf-8")


def serialize_batch(batch: Sequence[CanonicalEvent]) -> bytes:
    """Gzip the newline-delimited payloads of *batch*."""
    body = b"".join(encode_payload(event.payload) + b"\n" for event in batch)
    return gzip.compress(body, compresslevel=9)


def object_key(prefix: str, now: datetime | None = None, suffix: str | None = None) -> str:
    """Build the hour-partitioned object key for a batch written at *now*."""
    now = (now or datetime.now(tz=UTC)).astimezone(UTC)
    stamp = now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"
    parts = [
        f"{now.year:04d}",
        f"{now.month:02d}",
        f"{now.day:02d}",
        f"{now.hour:02d}",
        f"{stamp}-{suffix or uuid4()}.json.gz",
    ]
    prefix = prefix.strip("/")
    if prefix:
        parts.insert(0, prefix)
    return "/".join(parts)
