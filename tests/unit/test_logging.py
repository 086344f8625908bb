"""Tests for log context helpers."""

from __future__ import annotations

import structlog

from hecrelay.observability.logging import _mask_secrets, bind_invocation, get_logger


def test_secrets_are_masked() -> None:
    event = {"event": "x", "token": "abc", "authorization": "Splunk abc", "endpoint": "https://hec"}
    assert _mask_secrets(None, "info", event) == {
        "event": "x",
        "token": "***",
        "authorization": "***",
        "endpoint": "https://hec",
    }


def test_empty_secret_left_alone() -> None:
    assert _mask_secrets(None, "info", {"token": ""}) == {"token": ""}


def test_invocation_context_is_attached(log_output: list[dict]) -> None:
    bind_invocation("aws", "req-42")
    try:
        get_logger("test").info("hello")
    finally:
        structlog.contextvars.clear_contextvars()
    (entry,) = log_output
    assert entry["component"] == "test"
    assert entry["provider"] == "aws"
    assert entry["request_id"] == "req-42"
