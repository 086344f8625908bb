"""A single collector destination and its health monitor.

The health flag is a ``threading.Event``: reads never block and a
destination mid-probe keeps reporting its last-known state.  Only the
monitor (``update_health``) writes it.
"""

from __future__ import annotations

import asyncio
import threading
import uuid
from collections.abc import Sequence
from typing import Any

import httpx
import structlog

from hecrelay.delivery.collector import CollectorClient
from hecrelay.models.config import RoutingConfig
from hecrelay.models.events import CanonicalEvent

_log = structlog.get_logger(component="delivery.destination")

COLLECTOR_PATH = "/services/collector"
DEFAULT_HEALTH_INTERVAL = 10.0


def normalize_endpoint(endpoint: str) -> str:
    """Make *endpoint* target the collector ingestion path."""
    endpoint = endpoint.rstrip("/")
    if not endpoint.endswith(COLLECTOR_PATH):
        endpoint = f"{endpoint}{COLLECTOR_PATH}"
    return endpoint


def resolve_channel_id(configured: str) -> str:
    """Return *configured* if it is a valid UUID, else a fresh random one."""
    if configured:
        try:
            return str(uuid.UUID(configured))
        except ValueError:
            _log.warning("invalid_channel_id_replaced", configured=configured)
    return str(uuid.uuid4())


class Destination:
    """One configured collector endpoint.

    Args:
        endpoint:        Collector base URL; the ingestion path is appended if missing.
        routing:         index/source/sourcetype stamped on every event sent here.
        token:           Collector token.
        channel_id:      Channel UUID; replaced by a random one if empty or invalid.
        tls_skip_verify: Disable TLS certificate verification.
        proxy:           Optional proxy URL.
        timeout:         Request timeout (the configured batch timeout).
        batch_size:      Maximum events per request.
        client:          Pre-built wire client; built from the arguments above if omitted.
        transport:       httpx transport for the default client.
    """

    def __init__(
        self,
        endpoint: str,
        routing: RoutingConfig | None = None,
        token: str = "",
        channel_id: str = "",
        tls_skip_verify: bool = False,
        proxy: str = "",
        timeout: float = 2.0,
        batch_size: int = 1,
        client: CollectorClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = normalize_endpoint(endpoint)
        self.routing = routing or RoutingConfig()
        self.channel_id = resolve_channel_id(channel_id)
        self.tls_verify = not tls_skip_verify
        self.proxy = proxy
        self._client = client or CollectorClient(
            self.endpoint,
            token=token,
            channel_id=self.channel_id,
            verify=self.tls_verify,
            proxy=proxy or None,
            timeout=timeout,
            max_batch_size=batch_size,
            transport=transport,
        )
        self._healthy = threading.Event()
        self._monitor_task: asyncio.Task[None] | None = None

    def __repr__(self) -> str:
        return f"Destination({self.endpoint!r}, healthy={self.is_healthy})"

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    @property
    def is_healthy(self) -> bool:
        return self._healthy.is_set()

    def set_health(self, healthy: bool) -> None:
        """Record a probe result, logging only on transitions."""
        was_healthy = self._healthy.is_set()
        if healthy:
            self._healthy.set()
        else:
            self._healthy.clear()
        if was_healthy != healthy:
            _log.info("destination_health_changed", endpoint=self.endpoint, healthy=healthy)

    async def update_health(self) -> bool:
        """Probe the collector once and record the result. Never raises."""
        try:
            healthy = await self._client.check_health()
        except Exception as exc:  # noqa: BLE001
            _log.warning("health_probe_unexpected_error", endpoint=self.endpoint, error=str(exc))
            healthy = False
        self.set_health(healthy)
        return healthy

    def start_monitoring(self, interval: float = DEFAULT_HEALTH_INTERVAL) -> asyncio.Task[None]:
        """Launch the background probe loop on the running event loop."""
        if self._monitor_task is None or self._monitor_task.done():
            self._monitor_task = asyncio.create_task(
                self._monitor(interval), name=f"health:{self.endpoint}"
            )
        return self._monitor_task

    async def stop_monitoring(self) -> None:
        task, self._monitor_task = self._monitor_task, None
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def _monitor(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.update_health()

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def format_event(self, event: CanonicalEvent) -> dict[str, Any]:
        """Render *event* as a collector JSON object, stamped with this destination's routing."""
        return {
            "time": round(event.time.timestamp(), 3),
            "host": event.host,
            "source": self.routing.source or event.source,
            "sourcetype": self.routing.sourcetype or event.sourcetype,
            "index": self.routing.index or event.index,
            "event": _event_body(event.payload),
        }

    async def send(self, batch: Sequence[CanonicalEvent]) -> None:
        """Forward *batch*; raises CollectorError on failure."""
        await self._client.send([self.format_event(e) for e in batch])

    async def aclose(self) -> None:
        await self.stop_monitoring()
        await self._client.aclose()


def _event_body(payload: Any) -> Any:
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    return payload
