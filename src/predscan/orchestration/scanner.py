"""Multi-market scans: orderbook metrics, arbitrage and insider screening.

Composes the venue clients with the processor and detectors, fanning work out
through a BatchOrchestrator. Nothing is cached; every call fetches live books.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import BaseModel, Field

from predscan.ingestion.fetch import ResilientFetchClient
from predscan.ingestion.polymarket.clob import ClobClient
from predscan.ingestion.polymarket.gamma import GammaClient, dedupe_markets, select_top_markets
from predscan.ingestion.polymarket.normalize import normalize_event
from predscan.models import (
    ArbitrageSignal,
    BookMetrics,
    Event,
    InsiderSignal,
    Market,
    OrderBookSnapshot,
)
from predscan.orchestration.batch import BatchOrchestrator
from predscan.orderbook.processor import process_orderbook
from predscan.signals.arbitrage import DEFAULT_THRESHOLD, detect_arbitrage
from predscan.signals.insider import (
    detect_insider_activity,
    empty_insider_signal,
    timeout_insider_signal,
)

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Category:
    name: str
    tag_id: str | None = None
    tag_slug: str | None = None
    offset: int = 0


CATEGORIES: tuple[Category, ...] = (
    Category("Commodities", tag_id="101031"),
    Category("Politics", tag_slug="politics"),
    Category("Politics More", tag_slug="politics", offset=40),
    Category("World", tag_slug="world"),
    Category("World More", tag_slug="world", offset=20),
    Category("Business", tag_slug="business"),
    Category("Economics", tag_slug="economics"),
    Category("Trading", tag_slug="trading"),
)


class ArbitrageScanResult(BaseModel):
    market: Market
    success: bool = True
    metrics: BookMetrics | None = None
    arbitrage: ArbitrageSignal | None = None
    error: str | None = None


class ScreenedMarket(BaseModel):
    market: Market
    insider: InsiderSignal | None = None


class ScreenedEvent(BaseModel):
    event: Event
    # Aligned with event.markets; empty when screening was skipped.
    insider: list[InsiderSignal] = Field(default_factory=list)


class CategoryCount(BaseModel):
    name: str
    count: int


class SearchResult(BaseModel):
    query: str
    markets: list[ScreenedMarket]
    events: list[Event]
    total_markets: int
    filtered_by_liquidity: int
    insider_detected: int


class TrendingResult(BaseModel):
    events: list[ScreenedEvent]
    categories: list[CategoryCount]
    total_events: int
    insider_detected: int


class MarketScanner:
    def __init__(
        self,
        gamma: GammaClient,
        clob: ClobClient,
        orchestrator: BatchOrchestrator,
        *,
        arbitrage_threshold: float = DEFAULT_THRESHOLD,
        insider_timeout: float = 5.0,
    ) -> None:
        self.gamma = gamma
        self.clob = clob
        self.orchestrator = orchestrator
        self.arbitrage_threshold = arbitrage_threshold
        self.insider_timeout = insider_timeout

    @classmethod
    def from_settings(cls, settings: Any, fetcher: ResilientFetchClient) -> MarketScanner:
        gamma = GammaClient(fetcher, settings.gamma_api_base)
        return cls(
            gamma,
            ClobClient(fetcher, gamma, settings.clob_api_base),
            BatchOrchestrator(settings.concurrency),
            arbitrage_threshold=settings.arbitrage_threshold,
            insider_timeout=settings.insider_timeout_sec,
        )

    async def _books(self, market: Market) -> tuple[OrderBookSnapshot, OrderBookSnapshot] | None:
        if market.is_binary:
            return await self.clob.get_books_for_market(market)
        if market.token_ids is None and market.condition_id:
            return await self.clob.get_market_orderbook(market.condition_id)
        return None

    async def orderbook(self, condition_id: str) -> BookMetrics | None:
        books = await self.clob.get_market_orderbook(condition_id)
        if books is None:
            return None
        return process_orderbook(*books)

    async def arbitrage(self, condition_id: str, threshold: float | None = None) -> ArbitrageSignal | None:
        metrics = await self.orderbook(condition_id)
        if metrics is None:
            return None
        return detect_arbitrage(metrics, self.arbitrage_threshold if threshold is None else threshold)

    async def scan_arbitrage(
        self, markets: list[Market], threshold: float | None = None
    ) -> list[ArbitrageScanResult]:
        """Book metrics and arbitrage signal for each market, under the concurrency cap."""
        limit = self.arbitrage_threshold if threshold is None else threshold

        async def scan_one(market: Market) -> tuple[BookMetrics, ArbitrageSignal | None] | None:
            books = await self._books(market)
            if books is None:
                return None
            metrics = process_orderbook(*books)
            return metrics, detect_arbitrage(metrics, limit)

        results = await self.orchestrator.fan_out(markets, scan_one, key=lambda m: m.condition_id)
        out = []
        for market, r in zip(markets, results):
            if not r.success:
                out.append(ArbitrageScanResult(market=market, success=False, error=r.error))
            elif r.value is None:
                out.append(ArbitrageScanResult(market=market))
            else:
                metrics, signal = r.value
                out.append(ArbitrageScanResult(market=market, metrics=metrics, arbitrage=signal))
        found = sum(1 for r in out if r.arbitrage is not None)
        log.info("arbitrage_scan_done", markets=len(markets), found=found)
        return out

    async def scan_trending_arbitrage(
        self, limit: int = 20, threshold: float | None = None
    ) -> list[ArbitrageScanResult]:
        markets = await self.gamma.get_trending_markets(limit)
        return await self.scan_arbitrage(markets, threshold)

    async def check_insider(
        self, markets: list[Market], timeout: float | None = None
    ) -> list[InsiderSignal]:
        """One InsiderSignal per market, in order, within timeout.

        Closed or inactive markets are not fetched. Failed checks and markets
        without a usable pair of books get the empty signal. If the whole batch
        misses the deadline every market gets the "Timeout" signal.
        """
        deadline = self.insider_timeout if timeout is None else timeout

        async def check_one(market: Market) -> InsiderSignal:
            if not market.is_open:
                return empty_insider_signal()
            books = await self._books(market)
            if books is None:
                return empty_insider_signal()
            return detect_insider_activity(process_orderbook(*books), market.volume_24hr)

        async def check_all() -> list[InsiderSignal]:
            results = await self.orchestrator.fan_out(markets, check_one, key=lambda m: m.condition_id)
            return [r.value if r.success and r.value is not None else empty_insider_signal() for r in results]

        return await self.orchestrator.race(
            check_all(),
            deadline,
            lambda: [timeout_insider_signal() for _ in markets],
        )

    async def search(
        self,
        query: str,
        *,
        limit: int = 20,
        min_liquidity: float = 1000,
        check_insider: bool = True,
        insider_timeout: float | None = None,
    ) -> SearchResult:
        """Keyword search over markets (direct and event-nested), highest liquidity first."""
        results = await self.gamma.search(query)
        event_markets = [m for e in results.events for m in e.markets]
        unique = dedupe_markets(results.markets + event_markets)
        active = [m for m in unique if m.active]
        liquid = select_top_markets(active, limit=len(active), min_liquidity=min_liquidity)
        selected = liquid[:limit]
        events = [e for e in results.events if e.active][:limit]

        insider: list[InsiderSignal | None] = [None] * len(selected)
        if check_insider and selected:
            insider = list(await self.check_insider(selected, insider_timeout))
        return SearchResult(
            query=query,
            markets=[ScreenedMarket(market=m, insider=s) for m, s in zip(selected, insider)],
            events=events,
            total_markets=len(liquid),
            filtered_by_liquidity=len(active) - len(liquid),
            insider_detected=sum(1 for s in insider if s is not None and s.is_insider),
        )

    async def trending_events(
        self,
        *,
        categories: list[str] | None = None,
        limit: int = 5,
        max_events: int = 50,
        check_insider: bool = True,
        insider_timeout: float | None = None,
    ) -> TrendingResult:
        """Top events across the fixed category list, optionally insider-screened."""
        wanted = {c.strip().lower() for c in categories} if categories else None
        selected = [c for c in CATEGORIES if wanted is None or c.name.lower() in wanted]

        async def fetch_page(cat: Category) -> list[dict[str, Any]]:
            return await self.gamma.get_events_page(
                tag_id=cat.tag_id, tag_slug=cat.tag_slug, offset=cat.offset, limit=limit
            )

        pages = await self.orchestrator.fan_out(selected, fetch_page, key=lambda c: c.name)
        events: list[Event] = []
        counts: dict[str, int] = {}
        for cat, page in zip(selected, pages):
            for row in page.value or []:
                event = normalize_event(row, category=cat.name)
                if event is None:
                    continue
                events.append(event)
                counts[cat.name] = counts.get(cat.name, 0) + 1

        events.sort(key=lambda e: e.volume_24hr, reverse=True)
        events = events[:max_events]

        screened = [ScreenedEvent(event=e) for e in events]
        if check_insider and events:
            flat = [m for e in events for m in e.markets]
            signals = await self.check_insider(flat, insider_timeout)
            screened = []
            pos = 0
            for e in events:
                screened.append(ScreenedEvent(event=e, insider=signals[pos : pos + len(e.markets)]))
                pos += len(e.markets)

        return TrendingResult(
            events=screened,
            categories=[CategoryCount(name=n, count=c) for n, c in counts.items()],
            total_events=len(screened),
            insider_detected=sum(1 for e in screened for s in e.insider if s.is_insider),
        )
