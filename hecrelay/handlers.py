"""Serverless entry points.

One process-wide runtime per provider is built lazily on the first
invocation and reused for the lifetime of the function instance, so
destination health monitoring carries over between invocations.

AWS Lambda:       ``hecrelay.handlers.aws_handler``
Azure Functions:  ``hecrelay.handlers.azure_handler``
GCP Functions:    ``hecrelay.handlers.gcp_handler``
"""

from __future__ import annotations

import atexit
import threading
from typing import Any

import structlog

from hecrelay.app import BackgroundRuntime, HecRelayApp
from hecrelay.models.events import ProviderType

_log = structlog.get_logger(component="handlers")

# Time reserved at the end of an invocation for the platform to report the outcome.
_DEADLINE_MARGIN_SECONDS = 0.5

_runtimes: dict[ProviderType, BackgroundRuntime] = {}
_runtimes_lock = threading.Lock()


def get_runtime(provider: ProviderType) -> BackgroundRuntime:
    """Return the runtime for *provider*, starting it on first use.

    Startup errors (including ConfigError) propagate and nothing is
    cached, so the next invocation retries initialisation.
    """
    with _runtimes_lock:
        runtime = _runtimes.get(provider)
        if runtime is None:
            runtime = BackgroundRuntime(HecRelayApp(provider=provider.value))
            runtime.start()
            atexit.register(runtime.shutdown)
            _runtimes[provider] = runtime
        return runtime


def reset_runtimes() -> None:
    """Shut down and forget every runtime."""
    with _runtimes_lock:
        for runtime in _runtimes.values():
            atexit.unregister(runtime.shutdown)
            runtime.shutdown()
        _runtimes.clear()


def _remaining_seconds(context: Any) -> float | None:
    get_remaining = getattr(context, "get_remaining_time_in_millis", None)
    if get_remaining is None:
        return None
    return max(get_remaining() / 1000 - _DEADLINE_MARGIN_SECONDS, 0.0)


def _invoke(provider: ProviderType, event: Any, timeout: float | None, request_id: str) -> str:
    runtime = get_runtime(provider)
    try:
        runtime.invoke(event, timeout=timeout, request_id=request_id)
    except TimeoutError:
        _log.error("invocation_deadline_exceeded", provider=provider.value, request_id=request_id)
        raise
    return "OK"


def aws_handler(event: dict[str, Any], context: Any = None) -> str:
    """AWS Lambda entry point for CloudWatch Logs and Kinesis/Firehose triggers."""
    request_id = getattr(context, "aws_request_id", "") or ""
    return _invoke(ProviderType.AWS, event, _remaining_seconds(context), request_id)


def azure_handler(payload: Any, timeout: float | None = None, invocation_id: str = "") -> str:
    """Azure Functions entry point; *payload* is the decoded trigger body."""
    return _invoke(ProviderType.AZURE, payload, timeout, invocation_id)


def gcp_handler(event: Any, context: Any = None) -> str:
    """GCP Cloud Functions entry point for Cloud Logging deliveries."""
    request_id = str(getattr(context, "event_id", "") or "")
    return _invoke(ProviderType.GCP, event, None, request_id)
