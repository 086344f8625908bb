"""Azure adapter: Azure Monitor diagnostic-log triggers.

The trigger object arrives already decoded.  By default the whole payload
becomes a single CloudEvent; with log-event extraction enabled each entry
of the ``records`` array is emitted on its own.
"""

from __future__ import annotations

from typing import Any

from hecrelay.models.events import CloudEvent, ProviderType
from hecrelay.providers.base import CloudProvider, dump_compact, load_payload, split_entries


class AzureProvider(CloudProvider):
    """Adapter for Azure Monitor log payloads."""

    entries_key = "records"

    @property
    def name(self) -> str:
        return ProviderType.AZURE.value

    def parse_batch(self, raw_event: Any) -> list[CloudEvent]:
        payload = load_payload(raw_event)
        if self._extract_log_events:
            entries = split_entries(payload, self.entries_key)
            if entries:
                return [_record_event(entry) for entry in entries]
        return [CloudEvent(provider_type=ProviderType.AZURE, raw_data=dump_compact(payload))]


def _record_event(entry: Any) -> CloudEvent:
    metadata: dict[str, str] = {}
    if isinstance(entry, dict):
        for key in ("category", "operationName", "resourceId"):
            if entry.get(key) is not None:
                metadata[key] = str(entry[key])
    return CloudEvent(provider_type=ProviderType.AZURE, raw_data=dump_compact(entry), metadata=metadata)
