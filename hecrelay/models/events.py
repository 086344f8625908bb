"""Core event data structures and enumerations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from hecrelay.models.config import RoutingConfig

_log = structlog.get_logger(component="models.events")


class ProviderType(StrEnum):
    """Cloud provider a trigger payload came from."""

    AWS = "aws"
    AZURE = "azure"
    GCP = "gcp"


@dataclass(frozen=True)
class CloudEvent:
    """Provider-agnostic normalization of one trigger payload (or one line of it).

    ``raw_data`` always holds the decoded payload bytes.  The structured
    fields are filled only when an adapter splits a payload into
    individual log lines.
    """

    provider_type: ProviderType
    raw_data: bytes
    timestamp: int | None = None  # epoch milliseconds
    log_group: str = ""
    log_stream: str = ""
    message: str = ""
    metadata: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.raw_data:
            raise ValueError("CloudEvent.raw_data must not be empty")


@dataclass(frozen=True)
class CanonicalEvent:
    """Canonical event representation.

    Produced from a CloudEvent, consumed by the delivery runtime and the
    storage backends.  Immutable: routing stamps are applied to copies.
    """

    payload: Any
    time: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    host: str = ""
    source: str = ""
    sourcetype: str = ""
    index: str = ""


def to_canonical(cloud_event: CloudEvent, routing: RoutingConfig) -> CanonicalEvent:
    """Build the canonical record for *cloud_event* using *routing* defaults.

    The source timestamp wins when present and representable; otherwise
    the event is stamped with the processing time.
    """
    ts = _source_time(cloud_event.timestamp) or datetime.now(tz=UTC)
    return CanonicalEvent(
        payload=cloud_event.raw_data.decode("utf-8", errors="replace"),
        time=ts,
        host=routing.host,
        source=routing.source,
        sourcetype=routing.sourcetype,
        index=routing.index,
    )


def _source_time(timestamp_ms: int | None) -> datetime | None:
    if timestamp_ms is None:
        return None
    try:
        return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC)
    except (OverflowError, OSError, ValueError) as exc:
        _log.warning("event_timestamp_out_of_range", timestamp=timestamp_ms, error=str(exc))
        return None
