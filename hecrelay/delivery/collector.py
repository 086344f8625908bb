"""HEC wire client.

POSTs newline-concatenated JSON event objects to a collector endpoint and
probes ``<endpoint>/health`` for liveness.  One client (and one httpx
connection pool) per destination.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

import httpx
import structlog

from hecrelay.errors import CollectorError

_log = structlog.get_logger(component="delivery.collector")

CHANNEL_HEADER = "X-Splunk-Request-Channel"


class CollectorClient:
    """Async client for one HEC-style collector endpoint.

    Args:
        endpoint:       Full ingestion URL (``.../services/collector``).
        token:          Collector token; sent as ``Authorization: Splunk <token>``.
        channel_id:     Request channel UUID sent with every request.
        verify:         Verify the server TLS certificate.
        proxy:          Optional proxy URL.
        timeout:        Per-request timeout in seconds.
        max_batch_size: Maximum events per POST; larger sends are split.
        transport:      Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        endpoint: str,
        token: str = "",
        channel_id: str = "",
        verify: bool = True,
        proxy: str | None = None,
        timeout: float = 2.0,
        max_batch_size: int = 1,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._max_batch_size = max(1, max_batch_size)
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Splunk {token}"
        if channel_id:
            headers[CHANNEL_HEADER] = channel_id
        self._client = httpx.AsyncClient(
            headers=headers,
            verify=verify,
            proxy=proxy or None,
            timeout=timeout,
            transport=transport,
        )

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def health_url(self) -> str:
        return f"{self._endpoint}/health"

    async def check_health(self) -> bool:
        """Return True when the collector answers its health probe with 2xx."""
        try:
            response = await self._client.get(self.health_url)
        except httpx.HTTPError as exc:
            _log.debug("health_probe_error", endpoint=self._endpoint, error=str(exc))
            return False
        if not response.is_success:
            _log.debug("health_probe_non_2xx", endpoint=self._endpoint, status_code=response.status_code)
        return response.is_success

    async def send(self, events: Sequence[dict[str, Any]]) -> None:
        """POST *events*, at most ``max_batch_size`` per request.

        Raises:
            CollectorError: on a transport error or a non-2xx response.  When
                the events span several requests, earlier requests may already
                have been accepted.
        """
        for start in range(0, len(events), self._max_batch_size):
            chunk = events[start : start + self._max_batch_size]
            await self._post(chunk)

    async def _post(self, events: Sequence[dict[str, Any]]) -> None:
        body = "\n".join(json.dumps(e, separators=(",", ":"), default=str) for e in events)
        try:
            response = await self._client.post(self._endpoint, content=body.encode("utf-8"))
        except httpx.TimeoutException as exc:
            raise CollectorError(self._endpoint, f"request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise CollectorError(self._endpoint, f"transport error: {exc}") from exc

        if not response.is_success:
            raise CollectorError(
                self._endpoint,
                f"collector returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

    async def aclose(self) -> None:
        await self._client.aclose()
