"""hecrelay command-line interface.

    hecrelay forward --provider aws payload.json
    cat payload.json | hecrelay forward --provider azure
    hecrelay check
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import click

from hecrelay import __version__
from hecrelay.app import HecRelayApp
from hecrelay.config import load_config
from hecrelay.delivery import DestinationPool
from hecrelay.errors import HecRelayError
from hecrelay.models.events import ProviderType

_PROVIDER_CHOICE = click.Choice([p.value for p in ProviderType], case_sensitive=False)


@click.group()
@click.version_option(__version__, prog_name="hecrelay")
def cli() -> None:
    """Forward cloud log payloads to HEC collectors."""


@cli.command()
@click.option("--provider", type=_PROVIDER_CHOICE, default="aws", show_default=True)
@click.argument("payload", type=click.File("rb"), default="-")
def forward(provider: str, payload: Any) -> None:
    """Forward one trigger PAYLOAD (file or stdin) using HEC_* configuration."""
    raw = payload.read()
    try:
        count = asyncio.run(_forward(provider, raw))
    except HecRelayError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"forwarded {count} event(s)")


async def _forward(provider: str, raw: bytes) -> int:
    app = HecRelayApp(provider=provider)
    await app.start()
    try:
        return await app.handle(raw)
    finally:
        await app.stop()


@cli.command()
@click.option("--provider", type=_PROVIDER_CHOICE, default="aws", show_default=True)
@click.pass_context
def check(ctx: click.Context, provider: str) -> None:
    """Probe every configured endpoint once and report its health."""
    try:
        config = load_config(provider)
        results = asyncio.run(_probe(config))
    except HecRelayError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(json.dumps(results, indent=2))
    if not any(r["healthy"] for r in results):
        ctx.exit(1)


async def _probe(config: Any) -> list[dict[str, Any]]:
    pool = DestinationPool.from_config(config.collector, config.routing)
    try:
        await asyncio.gather(*(d.update_health() for d in pool))
        return [
            {"endpoint": d.endpoint, "channel": d.channel_id, "healthy": d.is_healthy}
            for d in pool
        ]
    finally:
        await pool.stop()
