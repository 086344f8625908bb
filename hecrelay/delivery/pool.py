"""Destination pool: the ordered set of collector destinations.

Destinations are fixed at construction.  The pool also owns the shared
cursor used by the sticky and round-robin strategies.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Iterator, Sequence

import httpx
import structlog

from hecrelay.config import validate_proxy
from hecrelay.delivery.destination import DEFAULT_HEALTH_INTERVAL, Destination
from hecrelay.errors import ConfigError
from hecrelay.models.config import CollectorConfig, RoutingConfig

_log = structlog.get_logger(component="delivery.pool")


class PoolCursor:
    """Position into the pool shared by stateful strategies.

    Callers hold ``lock`` while reading and moving the position.
    """

    def __init__(self, size: int, position: int = 0) -> None:
        self.lock = threading.Lock()
        self._size = size
        self.position = position % size

    def advance(self, steps: int = 1) -> int:
        """Move the cursor forward; caller must hold ``lock``."""
        self.position = (self.position + steps) % self._size
        return self.position


class DestinationPool:
    """Ordered, immutable collection of destinations plus a shared cursor.

    Raises:
        ConfigError: if *destinations* is empty.
    """

    def __init__(self, destinations: Sequence[Destination]) -> None:
        if not destinations:
            raise ConfigError("No valid HEC endpoints configured")
        self._destinations: tuple[Destination, ...] = tuple(destinations)
        self.cursor = PoolCursor(len(self._destinations))
        self._monitoring = False

    @classmethod
    def from_config(
        cls,
        config: CollectorConfig,
        routing: RoutingConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> DestinationPool:
        """Build one destination per configured endpoint.

        Raises:
            ConfigError: if no endpoints are configured or the proxy URL is invalid.
        """
        proxy = validate_proxy(config.proxy)
        destinations = [
            Destination(
                endpoint,
                routing=routing,
                token=config.token,
                channel_id=config.channel_id,
                tls_skip_verify=config.tls_skip_verify,
                proxy=proxy,
                timeout=config.batch_timeout,
                batch_size=config.batch_size,
                transport=transport,
            )
            for endpoint in config.endpoints
        ]
        return cls(destinations)

    def __len__(self) -> int:
        return len(self._destinations)

    def __iter__(self) -> Iterator[Destination]:
        return iter(self._destinations)

    def __getitem__(self, index: int) -> Destination:
        return self._destinations[index]

    def healthy(self) -> list[Destination]:
        """Snapshot of the currently healthy destinations, in pool order."""
        return [d for d in self._destinations if d.is_healthy]

    async def start(self, interval: float = DEFAULT_HEALTH_INTERVAL) -> None:
        """Probe every destination once, then start the background monitors."""
        await asyncio.gather(*(d.update_health() for d in self._destinations))
        for destination in self._destinations:
            destination.start_monitoring(interval)
        self._monitoring = True
        _log.info(
            "destination_pool_started",
            destinations=len(self._destinations),
            healthy=len(self.healthy()),
            interval=interval,
        )

    async def stop(self) -> None:
        """Cancel the monitors and close every client."""
        await asyncio.gather(*(d.aclose() for d in self._destinations), return_exceptions=True)
        if self._monitoring:
            _log.info("destination_pool_stopped")
        self._monitoring = False
