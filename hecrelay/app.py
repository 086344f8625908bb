"""Application bootstrap for hecrelay.

Wires all components in dependency order and manages their lifecycle.
Startup order: config → logging → token → storage → destination pool
              → selector → orchestrator → provider adapter

Shutdown stops components in reverse order; each stop is wrapped so a
single failure does not prevent the rest from shutting down.

``BackgroundRuntime`` hosts an app on a dedicated event-loop thread so the
health monitors keep running between serverless invocations, which arrive
on the platform's own (synchronous) thread.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Coroutine
from typing import TYPE_CHECKING, Any, TypeVar

from hecrelay.config import load_config
from hecrelay.credentials import resolve_token
from hecrelay.delivery import DeliveryOrchestrator, DestinationPool, build_selector
from hecrelay.errors import ConfigError, HecRelayError
from hecrelay.models.config import HecRelayConfig
from hecrelay.models.events import to_canonical
from hecrelay.observability.logging import bind_invocation, get_logger, setup_logging
from hecrelay.providers import CloudProvider, build_provider
from hecrelay.storage import StorageBackend, build_storage

if TYPE_CHECKING:
    import httpx
    import structlog

_SHUTDOWN_GRACE_SECONDS = 15
_STARTUP_TIMEOUT_SECONDS = 60

T = TypeVar("T")


class ComponentError(HecRelayError):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class HecRelayApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    Args:
        config:         Pre-built configuration; loaded from the environment when omitted.
        provider:       Provider name used when loading configuration.
        transport:      httpx transport shared by every destination (tests).
        secrets_client: boto3 Secrets Manager client for token resolution (tests).
        failure_storage / cold_storage: Pre-built backends overriding the configured ones.
    """

    def __init__(
        self,
        config: HecRelayConfig | None = None,
        provider: str = "aws",
        transport: httpx.AsyncBaseTransport | None = None,
        secrets_client: Any | None = None,
        failure_storage: StorageBackend | None = None,
        cold_storage: StorageBackend | None = None,
    ) -> None:
        self.config = config
        self._provider_name = provider
        self._transport = transport
        self._secrets_client = secrets_client

        self._failure_storage = failure_storage
        self._cold_storage = cold_storage
        self._pool: DestinationPool | None = None
        self._orchestrator: DeliveryOrchestrator | None = None
        self._provider: CloudProvider | None = None

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pool(self) -> DestinationPool | None:
        return self._pool

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises:
            ConfigError:    invalid configuration (the app refuses to start).
            ComponentError: any other mandatory component failed.
        """
        if self._running:
            return

        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            self.config = load_config(self._provider_name)
        config = self.config

        # --- 2. Logging -------------------------------------------------
        setup_logging(config.log.level)
        self._log = get_logger("app")
        self._log.info("hecrelay starting", version=_hecrelay_version(), provider=config.provider)

        try:
            # --- 3. Token -------------------------------------------------
            await self._resolve_token()

            # --- 4. Storage -----------------------------------------------
            self._start_storage()

            # --- 5. Destination pool --------------------------------------
            await self._start_pool()

            # --- 6. Selector + orchestrator -------------------------------
            self._start_orchestrator()

            # --- 7. Provider adapter --------------------------------------
            self._provider = build_provider(config.provider, config.extract_log_events)
        except Exception:
            await self.stop()
            raise

        self._running = True
        self._log.info(
            "hecrelay started",
            destinations=len(self._pool) if self._pool else 0,
            strategy=config.collector.balance,
        )

    async def _resolve_token(self) -> None:
        assert self.config is not None
        collector = self.config.collector
        collector.token = await asyncio.to_thread(
            resolve_token, collector.token, self.config.aws_region, self._secrets_client
        )

    def _start_storage(self) -> None:
        assert self.config is not None
        assert self._log is not None
        timeout = max(self.config.collector.batch_timeout, 5.0)
        if self._failure_storage is None:
            self._failure_storage = build_storage(self.config.failure_storage, "failure", timeout)
        if self._cold_storage is None:
            self._cold_storage = build_storage(self.config.cold_storage, "cold", timeout)
        if self._failure_storage is None:
            self._log.info("no failure storage configured; undeliverable batches will be reported as errors")

    async def _start_pool(self) -> None:
        assert self.config is not None
        assert self._log is not None
        self._log.debug("starting destination pool")
        try:
            pool = DestinationPool.from_config(self.config.collector, self.config.routing, self._transport)
            await pool.start(self.config.collector.health_interval)
        except ConfigError:
            raise
        except Exception as exc:
            raise ComponentError("destination_pool", exc) from exc
        self._pool = pool

    def _start_orchestrator(self) -> None:
        assert self.config is not None
        assert self._pool is not None
        collector = self.config.collector
        selector = build_selector(collector.balance, collector.sticky_ttl)
        self._orchestrator = DeliveryOrchestrator(
            pool=self._pool,
            selector=selector,
            failure_storage=self._failure_storage,
            cold_storage=self._cold_storage,
            fallback_on_send_error=collector.fallback_on_send_error,
        )

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    async def handle(self, raw_event: Any, request_id: str = "") -> int:
        """Parse one trigger payload and deliver it.  Returns the number of events sent.

        Raises:
            ParseError:      the payload envelope could not be decoded.
            DeliveryError / StorageError: the batch could not be delivered or stored.
        """
        if not self._running:
            raise RuntimeError("HecRelayApp.handle() called before start()")
        assert self._provider is not None
        assert self._orchestrator is not None
        assert self.config is not None
        log = self._log or get_logger("app")

        bind_invocation(self._provider.name, request_id)
        cloud_events = self._provider.parse_batch(raw_event)
        if not cloud_events:
            log.info("invocation_without_events")
            return 0

        batch = [to_canonical(ce, self.config.routing) for ce in cloud_events]
        await self._orchestrator.send_events(batch)
        log.info("invocation_processed", events=len(batch))
        return len(batch)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Stop components in reverse startup order.  Safe to call repeatedly."""
        if self._log is None:
            return
        log = self._log
        was_running = self._running
        self._running = False

        if self._orchestrator is not None:
            await self._stop_component("orchestrator", self._orchestrator)
        else:
            await self._stop_component("failure_storage", self._failure_storage)
            await self._stop_component("cold_storage", self._cold_storage)
        await self._stop_component("destination_pool", self._pool)
        self._orchestrator = None
        self._pool = None
        self._provider = None

        if was_running:
            log.info("hecrelay stopped")

    async def _stop_component(self, name: str, component: object | None) -> None:
        if component is None:
            return
        log = self._log or get_logger("app")
        stop_fn = getattr(component, "stop", None) or getattr(component, "close", None)
        if stop_fn is None:
            return
        try:
            await asyncio.wait_for(stop_fn(), timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component stop raised an error", component=name, error=str(exc))


class BackgroundRuntime:
    """Runs a HecRelayApp on its own event-loop thread.

    Synchronous callers submit work with :meth:`invoke`; the destination
    health monitors keep running on the loop between calls.
    """

    def __init__(self, app: HecRelayApp) -> None:
        self.app = app
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="hecrelay-loop", daemon=True)

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def start(self, timeout: float = _STARTUP_TIMEOUT_SECONDS) -> None:
        """Start the loop thread and the app.  Re-raises startup errors."""
        self._thread.start()
        try:
            self._call(self.app.start(), timeout)
        except BaseException:
            self._stop_loop()
            raise

    def invoke(self, raw_event: Any, timeout: float | None = None, request_id: str = "") -> int:
        """Handle one payload, waiting at most *timeout* seconds.

        On timeout the in-flight work is cancelled and TimeoutError is raised.
        """
        return self._call(self.app.handle(raw_event, request_id=request_id), timeout)

    def shutdown(self, timeout: float = _SHUTDOWN_GRACE_SECONDS) -> None:
        if not self._thread.is_alive():
            return
        try:
            self._call(self.app.stop(), timeout)
        except Exception as exc:  # noqa: BLE001
            get_logger("app").warning("runtime shutdown error", error=str(exc))
        finally:
            self._stop_loop()

    def _call(self, coro: Coroutine[Any, Any, T], timeout: float | None) -> T:
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout)
        except TimeoutError:
            future.cancel()
            raise

    def _stop_loop(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=_SHUTDOWN_GRACE_SECONDS)
        if not self._thread.is_alive():
            self._loop.close()


def _hecrelay_version() -> str:
    from hecrelay import __version__

    return __version__
