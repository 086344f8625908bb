"""End-to-end tests: trigger payload through HecRelayApp to collectors and storage.

Collectors are simulated with ``httpx.MockTransport``; storage uses the
local directory backend so written objects can be inspected.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest

from hecrelay.app import HecRelayApp
from hecrelay.errors import CollectorError, ConfigError, NoDestinationError, ParseError
from hecrelay.models.config import CollectorConfig, HecRelayConfig, RoutingConfig, StorageConfig
from hecrelay.storage import LocalFileStorage
from tests.conftest import awslogs_payload, cloudwatch_body, firehose_payload, gunzip_lines


class _Fleet:
    """Simulated collector fleet keyed by hostname."""

    def __init__(self, healthy: dict[str, bool], ingest_status: int = 200) -> None:
        self.healthy = healthy
        self.ingest_status = ingest_status
        self.received: dict[str, list[dict]] = {host: [] for host in healthy}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if request.method == "GET":
            return httpx.Response(200 if self.healthy[host] else 503)
        if self.ingest_status >= 300:
            return httpx.Response(self.ingest_status, text="server busy")
        self.received[host].extend(json.loads(line) for line in request.content.splitlines())
        return httpx.Response(200, json={"text": "Success", "code": 0})

    def total(self) -> int:
        return sum(len(v) for v in self.received.values())


def _config(
    hosts: list[str],
    balance: str = "first_available",
    failure_dir: Path | None = None,
    cold_dir: Path | None = None,
    extract: bool = False,
    provider: str = "aws",
) -> HecRelayConfig:
    return HecRelayConfig(
        provider=provider,
        extract_log_events=extract,
        routing=RoutingConfig(index="cloud", source="aws-lambda", sourcetype="aws:cloudwatch", host="lambda"),
        collector=CollectorConfig(
            endpoints=[f"https://{h}:8088" for h in hosts],
            token="tok",
            batch_size=100,
            balance=balance,
            health_interval=3600,
        ),
        failure_storage=StorageConfig(url=f"file://{failure_dir}" if failure_dir else ""),
        cold_storage=StorageConfig(url=f"file://{cold_dir}" if cold_dir else ""),
    )


@pytest.fixture
async def running_app():  # type: ignore[no-untyped-def]
    """Factory starting a HecRelayApp and stopping it after the test."""
    apps: list[HecRelayApp] = []

    async def _start(config: HecRelayConfig, fleet: _Fleet, **kwargs: object) -> HecRelayApp:
        app = HecRelayApp(config=config, transport=httpx.MockTransport(fleet), **kwargs)  # type: ignore[arg-type]
        await app.start()
        apps.append(app)
        return app

    yield _start
    for app in apps:
        await app.stop()


class TestAwsPipeline:
    async def test_cloudwatch_lines_are_delivered_with_routing(self, running_app, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        fleet = _Fleet({"hec-a": False, "hec-b": True})
        app = await running_app(_config(["hec-a", "hec-b"], cold_dir=tmp_path, extract=True), fleet)

        count = await app.handle(awslogs_payload(cloudwatch_body(["hello", "world"])), request_id="req-1")

        assert count == 2
        assert fleet.received["hec-a"] == []
        events = fleet.received["hec-b"]
        assert [json.loads(e["event"])["message"] for e in events] == ["hello", "world"]
        assert events[0]["time"] == 1.0
        assert {e["index"] for e in events} == {"cloud"}
        assert {e["sourcetype"] for e in events} == {"aws:cloudwatch"}

        (cold_object,) = LocalFileStorage(tmp_path).list_objects()
        assert len(gunzip_lines(cold_object.read_bytes())) == 2

    async def test_firehose_with_bad_records(self, running_app) -> None:  # type: ignore[no-untyped-def]
        fleet = _Fleet({"hec-a": True})
        app = await running_app(_config(["hec-a"]), fleet)
        bodies = [cloudwatch_body([f"m{i}"]) for i in range(3)]
        assert await app.handle(firehose_payload(bodies, garbage=2)) == 3
        assert fleet.total() == 3

    async def test_round_robin_spreads_invocations(self, running_app) -> None:  # type: ignore[no-untyped-def]
        fleet = _Fleet({"hec-a": True, "hec-b": False, "hec-c": True})
        app = await running_app(_config(["hec-a", "hec-b", "hec-c"], balance="roundrobin"), fleet)
        for i in range(4):
            await app.handle(awslogs_payload(cloudwatch_body([f"m{i}"])))
        assert len(fleet.received["hec-a"]) == 2
        assert len(fleet.received["hec-b"]) == 0
        assert len(fleet.received["hec-c"]) == 2

    async def test_undecodable_payload_fails_invocation(self, running_app) -> None:  # type: ignore[no-untyped-def]
        fleet = _Fleet({"hec-a": True})
        app = await running_app(_config(["hec-a"]), fleet)
        with pytest.raises(ParseError):
            await app.handle({"awslogs": {"data": "***"}})
        assert fleet.total() == 0


class TestFallbacks:
    async def test_all_down_writes_failure_storage(self, running_app, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        fleet = _Fleet({"hec-a": False, "hec-b": False})
        app = await running_app(_config(["hec-a", "hec-b"], failure_dir=tmp_path), fleet)
        assert await app.handle(awslogs_payload(cloudwatch_body(["lost"]))) == 1
        assert fleet.total() == 0
        (stored,) = LocalFileStorage(tmp_path).list_objects()
        (line,) = gunzip_lines(stored.read_bytes())
        assert json.loads(line)["logEvents"][0]["message"] == "lost"

    async def test_all_down_without_failure_storage(self, running_app) -> None:  # type: ignore[no-untyped-def]
        fleet = _Fleet({"hec-a": False})
        app = await running_app(_config(["hec-a"]), fleet)
        with pytest.raises(NoDestinationError):
            await app.handle(awslogs_payload(cloudwatch_body()))

    async def test_send_error_is_surfaced(self, running_app, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        fleet = _Fleet({"hec-a": True}, ingest_status=503)
        app = await running_app(_config(["hec-a"], failure_dir=tmp_path), fleet)
        with pytest.raises(CollectorError):
            await app.handle(awslogs_payload(cloudwatch_body()))
        assert LocalFileStorage(tmp_path).list_objects() == []

    async def test_send_error_fallback_opt_in(self, running_app, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
        fleet = _Fleet({"hec-a": True}, ingest_status=503)
        config = _config(["hec-a"], failure_dir=tmp_path)
        config.collector.fallback_on_send_error = True
        app = await running_app(config, fleet)
        await app.handle(awslogs_payload(cloudwatch_body()))
        assert len(LocalFileStorage(tmp_path).list_objects()) == 1


class TestOtherProviders:
    async def test_azure_records_split(self, running_app) -> None:  # type: ignore[no-untyped-def]
        fleet = _Fleet({"hec-a": True})
        app = await running_app(_config(["hec-a"], provider="azure", extract=True), fleet)
        payload = {"records": [{"category": "Audit"}, {"category": "Admin"}, {"category": "Policy"}]}
        assert await app.handle(json.dumps(payload)) == 3

    async def test_gcp_whole_payload(self, running_app) -> None:  # type: ignore[no-untyped-def]
        fleet = _Fleet({"hec-a": True})
        app = await running_app(_config(["hec-a"], provider="gcp"), fleet)
        payload = {"entries": [{"textPayload": "a"}, {"textPayload": "b"}]}
        assert await app.handle(payload) == 1
        (event,) = fleet.received["hec-a"]
        assert json.loads(event["event"]) == payload


class TestLifecycle:
    async def test_secret_token_resolved_at_startup(self, running_app) -> None:  # type: ignore[no-untyped-def]
        secrets = MagicMock()
        secrets.get_secret_value.return_value = {"SecretString": "resolved"}
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers.get("Authorization", ""))
            return httpx.Response(200)

        config = _config(["hec-a"])
        config.collector.token = "arn:aws:secretsmanager:us-east-1:1:secret:hec"
        app = HecRelayApp(config=config, transport=httpx.MockTransport(handler), secrets_client=secrets)
        await app.start()
        try:
            await app.handle(awslogs_payload(cloudwatch_body()))
        finally:
            await app.stop()
        assert seen and set(seen) == {"Splunk resolved"}

    async def test_no_endpoints_refuses_to_start(self) -> None:
        app = HecRelayApp(config=_config([]))
        with pytest.raises(ConfigError):
            await app.start()
        assert not app.running

    async def test_handle_before_start(self) -> None:
        with pytest.raises(RuntimeError):
            await HecRelayApp(config=_config(["hec-a"])).handle({})

    async def test_stop_is_idempotent(self) -> None:
        app = HecRelayApp(config=_config(["hec-a"]), transport=httpx.MockTransport(_Fleet({"hec-a": True})))
        await app.start()
        await app.stop()
        await app.stop()
        assert app.pool is None
