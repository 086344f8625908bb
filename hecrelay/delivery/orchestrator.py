"""Delivery orchestrator: the single entry point for sending a batch.

Order of operations for every batch:

1. Mirror to cold storage (best effort, failures only logged).
2. Select a destination.
3. No destination: store in failure storage and return its outcome, or
   raise NoDestinationError when no failure storage is configured.
4. Destination: send, stamping its routing fields.  A send error is
   raised to the caller as-is; the batch is not retried elsewhere and is
   not written to failure storage unless ``fallback_on_send_error`` is set.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from hecrelay.delivery.pool import DestinationPool
from hecrelay.delivery.selector import DestinationSelector
from hecrelay.errors import CollectorError, NoDestinationError
from hecrelay.models.events import CanonicalEvent
from hecrelay.storage.base import StorageBackend

_log = structlog.get_logger(component="delivery.orchestrator")


class DeliveryOrchestrator:
    """Sends batches to the pool with storage mirroring and fallback.

    Args:
        pool:                   Destination pool (health kept current by its monitors).
        selector:               Strategy choosing a destination per batch.
        failure_storage:        Used when no destination is available.
        cold_storage:           Receives a copy of every batch.
        fallback_on_send_error: Also use failure storage when the selected
                                destination rejects or fails the send.
    """

    def __init__(
        self,
        pool: DestinationPool,
        selector: DestinationSelector,
        failure_storage: StorageBackend | None = None,
        cold_storage: StorageBackend | None = None,
        fallback_on_send_error: bool = False,
    ) -> None:
        self._pool = pool
        self._selector = selector
        self._failure_storage = failure_storage
        self._cold_storage = cold_storage
        self._fallback_on_send_error = fallback_on_send_error

    @property
    def pool(self) -> DestinationPool:
        return self._pool

    async def send_events(self, batch: Sequence[CanonicalEvent]) -> None:
        """Deliver *batch*.

        Raises:
            CollectorError:     the selected destination failed the send.
            StorageError:       fallback to failure storage failed.
            NoDestinationError: no healthy destination and no failure storage.
        """
        events = tuple(batch)
        if not events:
            _log.debug("empty_batch_skipped")
            return

        await self._mirror_to_cold_storage(events)

        destination = self._selector.select(self._pool)
        if destination is None:
            _log.warning(
                "no_healthy_destination",
                strategy=self._selector.strategy_name,
                destinations=len(self._pool),
                events=len(events),
            )
            await self._store_failed(events, reason="no_healthy_destination")
            return

        try:
            await destination.send(events)
        except CollectorError as exc:
            _log.warning(
                "destination_send_failed",
                endpoint=destination.endpoint,
                status_code=exc.status_code,
                error=str(exc),
                events=len(events),
            )
            if self._fallback_on_send_error and self._failure_storage is not None:
                await self._store_failed(events, reason="send_error")
                return
            raise

        _log.debug("batch_delivered", endpoint=destination.endpoint, events=len(events))

    async def _mirror_to_cold_storage(self, events: tuple[CanonicalEvent, ...]) -> None:
        if self._cold_storage is None:
            return
        try:
            await self._cold_storage.store(events)
        except Exception as exc:  # noqa: BLE001
            _log.error(
                "cold_storage_failed",
                backend=self._cold_storage.backend_name,
                error=str(exc),
                events=len(events),
            )

    async def _store_failed(self, events: tuple[CanonicalEvent, ...], reason: str) -> None:
        if self._failure_storage is None:
            raise NoDestinationError("No healthy HEC destination and no failure storage configured")
        await self._failure_storage.store(events)
        _log.info(
            "failure_storage_used",
            backend=self._failure_storage.backend_name,
            reason=reason,
            events=len(events),
        )

    async def close(self) -> None:
        """Close both storage backends."""
        for backend in (self._cold_storage, self._failure_storage):
            if backend is None:
                continue
            try:
                await backend.close()
            except Exception as exc:  # noqa: BLE001
                _log.warning("storage_close_failed", backend=backend.backend_name, error=str(exc))
