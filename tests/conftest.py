"""Shared fixtures and factories for hecrelay tests."""

from __future__ import annotations

import gzip
import json
from collections.abc import Iterator, Sequence
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog
from structlog.testing import LogCapture

from hecrelay.delivery.destination import Destination
from hecrelay.delivery.pool import DestinationPool
from hecrelay.errors import StorageError
from hecrelay.models.config import RoutingConfig
from hecrelay.models.events import CanonicalEvent
from hecrelay.providers.aws import encode_cloudwatch_data
from hecrelay.storage.base import StorageBackend

_TS = datetime(2026, 3, 14, 9, 26, 53, 589000, tzinfo=UTC)
_LOG_CAPTURE = LogCapture()


# ---------------------------------------------------------------------------
# Event factories
# ---------------------------------------------------------------------------


def make_event(payload: Any = "hello", **kwargs: Any) -> CanonicalEvent:
    """Create a CanonicalEvent with fixed routing defaults."""
    defaults: dict[str, Any] = {
        "time": _TS,
        "host": "lambda",
        "source": "aws-lambda",
        "sourcetype": "aws:cloudwatch",
        "index": "main",
    }
    defaults.update(kwargs)
    return CanonicalEvent(payload=payload, **defaults)


def cloudwatch_body(messages: Sequence[str] = ("hello",), log_group: str = "lg", log_stream: str = "ls") -> bytes:
    """Decoded CloudWatch Logs subscription body with one logEvent per message."""
    return json.dumps(
        {
            "messageType": "DATA_MESSAGE",
            "owner": "123456789012",
            "logGroup": log_group,
            "logStream": log_stream,
            "subscriptionFilters": ["all"],
            "logEvents": [
                {"id": str(i), "timestamp": 1000 + i, "message": msg} for i, msg in enumerate(messages)
            ],
        }
    ).encode("utf-8")


def awslogs_payload(body: bytes) -> dict[str, Any]:
    return {"awslogs": {"data": encode_cloudwatch_data(body)}}


def firehose_payload(bodies: Sequence[bytes], garbage: int = 0) -> dict[str, Any]:
    records = [{"recordId": f"r{i}", "data": encode_cloudwatch_data(b)} for i, b in enumerate(bodies)]
    records += [{"recordId": f"bad{i}", "data": "!!not-base64!!"} for i in range(garbage)]
    return {"records": records}


def gunzip_lines(body: bytes) -> list[bytes]:
    return gzip.decompress(body).splitlines()


# ---------------------------------------------------------------------------
# Destinations
# ---------------------------------------------------------------------------


def make_destination(
    endpoint: str = "https://hec-a.example:8088",
    healthy: bool = True,
    routing: RoutingConfig | None = None,
) -> Destination:
    """Destination backed by a mock wire client."""
    client = MagicMock()
    client.send = AsyncMock(return_value=None)
    client.check_health = AsyncMock(return_value=healthy)
    client.aclose = AsyncMock(return_value=None)
    destination = Destination(endpoint, routing=routing, client=client)
    destination.set_health(healthy)
    return destination


def make_pool(*health: bool) -> DestinationPool:
    """Pool of destinations named a, b, c, ... with the given health flags."""
    return DestinationPool(
        [make_destination(f"https://hec-{chr(ord('a') + i)}.example:8088", h) for i, h in enumerate(health)]
    )


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class RecordingStorage(StorageBackend):
    """In-memory backend that records every stored batch."""

    def __init__(self, name: str = "memory", fail: bool = False) -> None:
        self.name = name
        self.fail = fail
        self.batches: list[list[CanonicalEvent]] = []
        self.closed = False

    @property
    def backend_name(self) -> str:
        return self.name

    async def store(self, batch: Sequence[CanonicalEvent]) -> None:
        if self.fail:
            raise StorageError(f"{self.name} unavailable")
        self.batches.append(list(batch))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def failure_storage() -> RecordingStorage:
    return RecordingStorage("failure")


@pytest.fixture
def cold_storage() -> RecordingStorage:
    return RecordingStorage("cold")


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True, scope="session")
def _captured_logging() -> Iterator[None]:
    """Keep structlog output in memory and stop the app from reconfiguring it."""
    structlog.configure(
        processors=[structlog.contextvars.merge_contextvars, _LOG_CAPTURE],
        cache_logger_on_first_use=False,
    )
    with pytest.MonkeyPatch.context() as mp:
        mp.setattr("hecrelay.app.setup_logging", lambda level="info": None)
        yield
    structlog.reset_defaults()


@pytest.fixture
def log_output() -> list[dict[str, Any]]:
    """Entries logged during the test, context variables included."""
    _LOG_CAPTURE.entries.clear()
    return _LOG_CAPTURE.entries
