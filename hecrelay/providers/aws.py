"""AWS adapter: CloudWatch Logs subscriptions and Kinesis/Firehose deliveries.

Two payload shapes are accepted:

* ``{"awslogs": {"data": "<base64(gzip(json))>"}}`` -- a single CloudWatch
  Logs notification.
* ``{"records": [{"recordId": ..., "data": ...}, ...]}`` (Firehose) or
  ``{"Records": [{"kinesis": {"data": ...}}, ...]}`` (Kinesis stream) --
  several independently encoded CloudWatch payloads.
"""

from __future__ import annotations

import base64
import binascii
import gzip
import json
import zlib
from typing import Any

import structlog

from hecrelay.errors import ParseError
from hecrelay.models.events import CloudEvent, ProviderType
from hecrelay.providers.base import CloudProvider, dump_compact, load_payload

_log = structlog.get_logger(component="providers.aws")


def decode_cloudwatch_data(data: str) -> bytes:
    """Undo the base64 + gzip framing CloudWatch Logs applies to ``data``.

    Raises:
        ParseError: on malformed base64 or gzip content.
    """
    try:
        compressed = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ParseError(f"Failed to decode base64: {exc}") from exc
    try:
        return gzip.decompress(compressed)
    except (OSError, EOFError, zlib.error) as exc:
        raise ParseError(f"Failed to decompress gzip: {exc}") from exc


def encode_cloudwatch_data(raw: bytes) -> str:
    """Inverse of :func:`decode_cloudwatch_data`."""
    return base64.b64encode(gzip.compress(raw)).decode("ascii")


class AWSProvider(CloudProvider):
    """Adapter for CloudWatch Logs and Kinesis-delivered CloudWatch payloads."""

    @property
    def name(self) -> str:
        return ProviderType.AWS.value

    def parse_batch(self, raw_event: Any) -> list[CloudEvent]:
        payload = load_payload(raw_event)
        if not isinstance(payload, dict):
            raise ParseError(f"Expected a JSON object, got {type(payload).__name__}")

        records = _record_data(payload)
        if records:
            return self._parse_records(records)

        awslogs = payload.get("awslogs")
        data = awslogs.get("data", "") if isinstance(awslogs, dict) else ""
        if not data:
            _log.warning("unrecognised_payload_shape", keys=sorted(payload)[:10])
            return []

        # A standalone notification that cannot be decoded fails the invocation.
        decoded = decode_cloudwatch_data(data)
        if not decoded:
            return []
        if self._extract_log_events:
            extracted = _extract_log_events(decoded)
            if extracted:
                return extracted
        return [CloudEvent(provider_type=ProviderType.AWS, raw_data=decoded)]

    def _parse_records(self, records: list[str | None]) -> list[CloudEvent]:
        events: list[CloudEvent] = []
        skipped = 0
        for position, data in enumerate(records):
            if not isinstance(data, str) or not data:
                skipped += 1
                _log.warning("record_without_data", position=position)
                continue
            try:
                decoded = decode_cloudwatch_data(data)
            except ParseError as exc:
                skipped += 1
                _log.warning("record_decode_failed", position=position, error=str(exc))
                continue
            if not decoded:
                skipped += 1
                continue
            events.append(CloudEvent(provider_type=ProviderType.AWS, raw_data=decoded))

        if skipped:
            _log.info("records_skipped", skipped=skipped, decoded=len(events))
        return events


def _record_data(payload: dict[str, Any]) -> list[str | None]:
    """Pull the encoded ``data`` strings out of either record envelope."""
    firehose = payload.get("records")
    if isinstance(firehose, list) and firehose:
        return [r.get("data") if isinstance(r, dict) else None for r in firehose]

    kinesis = payload.get("Records")
    if isinstance(kinesis, list) and kinesis:
        out: list[str | None] = []
        for r in kinesis:
            inner = r.get("kinesis") if isinstance(r, dict) else None
            out.append(inner.get("data") if isinstance(inner, dict) else None)
        return out

    return []


def _extract_log_events(decoded: bytes) -> list[CloudEvent]:
    """Split a decoded CloudWatch payload into one CloudEvent per log line.

    Returns an empty list when the payload is not JSON or carries no
    ``logEvents``; the caller then forwards the whole payload instead.
    """
    try:
        body = json.loads(decoded)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        _log.warning("log_events_unparseable", error=str(exc))
        return []
    if not isinstance(body, dict):
        return []
    log_events = body.get("logEvents")
    if not isinstance(log_events, list) or not log_events:
        return []

    log_group = str(body.get("logGroup", ""))
    log_stream = str(body.get("logStream", ""))
    metadata = {
        key: str(body[key])
        for key in ("owner", "messageType")
        if body.get(key) is not None
    }

    events: list[CloudEvent] = []
    for item in log_events:
        if not isinstance(item, dict):
            continue
        line: dict[str, Any] = {
            "id": str(item.get("id", "")),
            "timestamp": _as_int(item.get("timestamp")),
            "message": str(item.get("message", "")),
        }
        events.append(
            CloudEvent(
                provider_type=ProviderType.AWS,
                raw_data=dump_compact(line),
                timestamp=line["timestamp"],
                log_group=log_group,
                log_stream=log_stream,
                message=line["message"],
                metadata=dict(metadata),
            )
        )
    return events


def _as_int(value: Any) -> int | None:
    """Epoch-millisecond timestamp, or None when missing or not a whole number."""
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None
