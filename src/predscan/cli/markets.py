"""Markets subcommand: trending, show."""

from __future__ import annotations

import asyncio

import typer

from predscan.ingestion.fetch import ResilientFetchClient
from predscan.ingestion.polymarket.gamma import GammaClient
from predscan.models import Market

app = typer.Typer(help="Market discovery")


async def _trending(settings, limit: int) -> list[Market]:
    async with ResilientFetchClient.from_settings(settings) as fetcher:
        return await GammaClient(fetcher, settings.gamma_api_base).get_trending_markets(limit)


async def _show(settings, identifier: str) -> Market | None:
    async with ResilientFetchClient.from_settings(settings) as fetcher:
        return await GammaClient(fetcher, settings.gamma_api_base).get_unified_market(identifier)


def _prices(m: Market) -> str:
    return " / ".join(f"{o} {p:.3f}" for o, p in zip(m.outcomes, m.outcome_prices))


@app.command("trending")
def trending(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-n", help="Max markets to fetch"),
) -> None:
    """List active markets by 24h volume."""
    settings = ctx.obj["settings"]
    rows = asyncio.run(_trending(settings, limit))
    for m in rows:
        typer.echo(f"  {m.condition_id[:20]}...  {m.volume_24hr:>12,.0f}  {_prices(m):<24}  {m.question[:60]}")
    typer.echo(f"Total: {len(rows)} markets")


@app.command("show")
def show(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Condition id (0x...) or market slug"),
) -> None:
    """Show one market's canonical fields."""
    settings = ctx.obj["settings"]
    market = asyncio.run(_show(settings, identifier))
    if market is None:
        typer.echo(f"Market not found: {identifier}")
        raise typer.Exit(1)
    typer.echo(market.model_dump_json(indent=2))
