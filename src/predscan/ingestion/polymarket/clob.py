"""Polymarket CLOB API client - per-token orderbooks."""

from __future__ import annotations

import asyncio

import structlog

from predscan.ingestion.fetch import ResilientFetchClient
from predscan.ingestion.polymarket.gamma import GammaClient
from predscan.ingestion.polymarket.normalize import normalize_orderbook
from predscan.models import Market, OrderBookSnapshot

log = structlog.get_logger(__name__)

CLOB_API_BASE = "https://clob.polymarket.com"


class ClobClient:
    def __init__(
        self,
        fetcher: ResilientFetchClient,
        gamma: GammaClient,
        base_url: str = CLOB_API_BASE,
    ) -> None:
        self.fetcher = fetcher
        self.gamma = gamma
        self.base_url = base_url.rstrip("/")

    async def get_orderbook(self, token_id: str) -> OrderBookSnapshot:
        data = await self.fetcher.get_json(f"{self.base_url}/book", params={"token_id": token_id})
        return normalize_orderbook(data, asset_id=token_id)

    async def get_books_for_market(
        self, market: Market
    ) -> tuple[OrderBookSnapshot, OrderBookSnapshot] | None:
        """(YES book, NO book) fetched concurrently. None unless the market is binary."""
        if not market.is_binary:
            log.debug("market_not_binary", condition_id=market.condition_id)
            return None
        yes_token, no_token = market.token_ids
        yes_book, no_book = await asyncio.gather(
            self.get_orderbook(yes_token),
            self.get_orderbook(no_token),
        )
        return yes_book, no_book

    async def get_market_orderbook(
        self, condition_id: str
    ) -> tuple[OrderBookSnapshot, OrderBookSnapshot] | None:
        """Resolve the market's tokens via Gamma, then fetch both books."""
        market = await self.gamma.get_market(condition_id)
        if market is None:
            return None
        return await self.get_books_for_market(market)
