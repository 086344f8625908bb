"""structlog setup for hecrelay.

Lines are JSON on stderr, which is what Lambda, Azure Functions and Cloud
Functions all ship to their log stores.  Each module logs through a logger
bound with ``component=<area>``; the provider and request id of the
invocation in progress live in contextvars and are merged into every line.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

_SENSITIVE_KEYS = frozenset({"token", "authorization", "access_key_secret", "secret"})
_MASK = "***"


def _mask_secrets(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    for key in _SENSITIVE_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = _MASK
    return event_dict


def setup_logging(level: str = "info") -> None:
    """Route structlog output to stderr as JSON, dropping records below *level*."""
    threshold = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.CallsiteParameterAdder([structlog.processors.CallsiteParameter.MODULE]),
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            _mask_secrets,
            structlog.processors.dict_tracebacks,
            structlog.processors.EventRenamer("msg"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(component=component)  # type: ignore[return-value]


def bind_invocation(provider: str, request_id: str = "") -> None:
    """Start a fresh log context for one invocation."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(provider=provider, request_id=request_id)
