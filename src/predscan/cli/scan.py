"""Scan subcommand: arbitrage, insider."""

from __future__ import annotations

import asyncio

import typer

from predscan.ingestion.fetch import ResilientFetchClient
from predscan.models import InsiderSignal, Market
from predscan.orchestration.scanner import ArbitrageScanResult, MarketScanner

app = typer.Typer(help="Scan trending markets for arbitrage and insider activity")


async def _scan_arbitrage(settings, limit: int, threshold: float | None) -> list[ArbitrageScanResult]:
    async with ResilientFetchClient.from_settings(settings) as fetcher:
        scanner = MarketScanner.from_settings(settings, fetcher)
        return await scanner.scan_trending_arbitrage(limit, threshold)


async def _scan_insider(
    settings, limit: int, timeout: float | None
) -> list[tuple[Market, InsiderSignal]]:
    async with ResilientFetchClient.from_settings(settings) as fetcher:
        scanner = MarketScanner.from_settings(settings, fetcher)
        markets = await scanner.gamma.get_trending_markets(limit)
        signals = await scanner.check_insider(markets, timeout)
        # Let checks that missed the deadline finish before the client closes.
        await scanner.orchestrator.drain(timeout=settings.timeout_sec)
        return list(zip(markets, signals))


@app.command("arbitrage")
def arbitrage(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-n", help="Trending markets to scan"),
    threshold: float | None = typer.Option(None, "--threshold", "-t", help="Min edge (default from config)"),
    show_all: bool = typer.Option(False, "--all", help="Also list markets without an opportunity"),
) -> None:
    """Fetch both books of each trending market and report long/short arbitrage."""
    settings = ctx.obj["settings"]
    results = asyncio.run(_scan_arbitrage(settings, limit, threshold))
    for r in results:
        q = r.market.question[:60]
        if not r.success:
            typer.echo(f"  ERROR  {q}  ({r.error})")
        elif r.arbitrage is not None:
            typer.echo(f"  {r.arbitrage.type.upper():<5}  {r.arbitrage.profit:.4f}  {q}  [{r.arbitrage.action}]")
        elif show_all and r.metrics is not None:
            typer.echo(f"  -      ask_sum={r.metrics.ask_sum:.4f} bid_sum={r.metrics.bid_sum:.4f}  {q}")
    found = sum(1 for r in results if r.arbitrage is not None)
    failed = sum(1 for r in results if not r.success)
    typer.echo(f"Scanned {len(results)} markets: {found} opportunities, {failed} failed.")


@app.command("insider")
def insider(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-n", help="Trending markets to screen"),
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds (default from config)"),
) -> None:
    """Screen trending markets' books for informed-trading footprints."""
    settings = ctx.obj["settings"]
    rows = asyncio.run(_scan_insider(settings, limit, timeout))
    flagged = 0
    for market, signal in rows:
        if not signal.signals:
            continue
        marker = "INSIDER" if signal.is_insider else "       "
        flagged += int(signal.is_insider)
        typer.echo(f"  {marker} {signal.confidence:<6}  {market.question[:60]}")
        for s in signal.signals:
            typer.echo(f"      - {s}")
    typer.echo(f"Screened {len(rows)} markets: {flagged} flagged.")
