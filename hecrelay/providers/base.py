"""Provider adapter contract and shared JSON helpers."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any

from hecrelay.errors import ParseError
from hecrelay.models.events import CloudEvent


class CloudProvider(ABC):
    """Turns one provider trigger payload into zero or more CloudEvents.

    Implementations never return a CloudEvent with empty ``raw_data``:
    inputs that decode to nothing are dropped.
    """

    def __init__(self, extract_log_events: bool = False) -> None:
        self._extract_log_events = extract_log_events

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier (``aws``, ``azure``, ``gcp``)."""

    @abstractmethod
    def parse_batch(self, raw_event: Any) -> list[CloudEvent]:
        """Decode *raw_event* into CloudEvents.

        Raises:
            ParseError: if the outer envelope cannot be decoded.
        """


def load_payload(raw_event: Any) -> Any:
    """Return *raw_event* as a JSON-compatible object.

    ``str`` and ``bytes`` inputs are parsed as JSON; anything else is
    assumed to already be decoded.
    """
    if isinstance(raw_event, (bytes, bytearray)):
        try:
            raw_event = bytes(raw_event).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError(f"Payload is not UTF-8: {exc}") from exc
    if isinstance(raw_event, str):
        try:
            return json.loads(raw_event)
        except json.JSONDecodeError as exc:
            raise ParseError(f"Malformed JSON payload: {exc}") from exc
    return raw_event


def dump_compact(value: Any) -> bytes:
    """Serialise *value* as compact JSON bytes."""
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise ParseError(f"Payload is not JSON-serialisable: {exc}") from exc


def split_entries(payload: Any, key: str) -> list[Any]:
    """Return the non-empty list stored under *key*, or an empty list."""
    if not isinstance(payload, dict):
        return []
    entries = payload.get(key)
    if not isinstance(entries, list):
        return []
    return [e for e in entries if e not in (None, "", {}, [])]
