"""GCP adapter: Cloud Logging sink deliveries."""

from __future__ import annotations

from typing import Any

from hecrelay.models.events import CloudEvent, ProviderType
from hecrelay.providers.base import CloudProvider, dump_compact, load_payload, split_entries


class GCPProvider(CloudProvider):
    """Adapter for GCP Cloud Logging payloads.

    One CloudEvent per invocation, or one per ``entries`` element when
    log-event extraction is enabled.
    """

    entries_key = "entries"

    @property
    def name(self) -> str:
        return ProviderType.GCP.value

    def parse_batch(self, raw_event: Any) -> list[CloudEvent]:
        payload = load_payload(raw_event)
        if self._extract_log_events:
            entries = split_entries(payload, self.entries_key)
            if entries:
                return [_entry_event(entry) for entry in entries]
        return [CloudEvent(provider_type=ProviderType.GCP, raw_data=dump_compact(payload))]


def _entry_event(entry: Any) -> CloudEvent:
    if not isinstance(entry, dict):
        return CloudEvent(provider_type=ProviderType.GCP, raw_data=dump_compact(entry))
    return CloudEvent(
        provider_type=ProviderType.GCP,
        raw_data=dump_compact(entry),
        log_group=str(entry.get("logName", "")),
        message=str(entry.get("textPayload", "")),
        metadata={"severity": str(entry["severity"])} if entry.get("severity") else {},
    )
