"""Polymarket Gamma API client - market discovery, events and search."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from predscan.errors import TransientNetworkError
from predscan.ingestion.fetch import ResilientFetchClient
from predscan.ingestion.polymarket.normalize import (
    normalize_event,
    normalize_markets,
)
from predscan.models import Event, Market

log = structlog.get_logger(__name__)

GAMMA_API_BASE = "https://gamma-api.polymarket.com"


@dataclass
class SearchResults:
    markets: list[Market] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)


class GammaClient:
    """Read-only Gamma API access through the resilient fetch client."""

    def __init__(self, fetcher: ResilientFetchClient, base_url: str = GAMMA_API_BASE) -> None:
        self.fetcher = fetcher
        self.base_url = base_url.rstrip("/")

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.fetcher.get_json(self.base_url + path, params=params)

    async def get_trending_markets(self, limit: int = 20) -> list[Market]:
        """Active, open markets ordered by 24h volume (desc)."""
        data = await self._get(
            "/markets",
            {
                "limit": limit,
                "active": "true",
                "closed": "false",
                "order": "volume24hr",
                "ascending": "false",
            },
        )
        return normalize_markets(data)

    async def get_market(self, condition_id: str) -> Market | None:
        data = await self._get("/markets", {"condition_id": condition_id})
        markets = normalize_markets(data)
        return markets[0] if markets else None

    async def get_market_by_slug(self, slug: str) -> Market | None:
        data = await self._get("/markets", {"slug": slug})
        markets = normalize_markets(data)
        return markets[0] if markets else None

    async def get_unified_market(self, identifier: str) -> Market | None:
        """Look a market up by condition id (0x...) or, failing the prefix, by slug."""
        if identifier.startswith("0x"):
            return await self.get_market(identifier)
        return await self.get_market_by_slug(identifier)

    async def get_events_page(
        self,
        *,
        tag_id: str | None = None,
        tag_slug: str | None = None,
        offset: int = 0,
        limit: int = 10,
    ) -> list[dict[str, Any]]:
        """One page of active events by 24h volume. Empty list on failure (logged)."""
        params: dict[str, Any] = {
            "limit": limit,
            "active": "true",
            "archived": "false",
            "closed": "false",
            "order": "volume24hr",
            "ascending": "false",
            "offset": offset,
        }
        if tag_id:
            params["tag_id"] = tag_id
        if tag_slug:
            params["tag_slug"] = tag_slug
        try:
            data = await self._get("/events/pagination", params)
        except (httpx.HTTPError, TransientNetworkError, ValueError) as e:
            log.warning("events_page_failed", tag_id=tag_id, tag_slug=tag_slug, error=str(e))
            return []
        rows = data.get("data") if isinstance(data, dict) else data
        return [r for r in rows if isinstance(r, dict)] if isinstance(rows, list) else []

    async def get_event_by_slug(self, slug: str) -> Event | None:
        return await self._get_event(f"/events/slug/{slug}")

    async def get_event_by_id(self, event_id: str) -> Event | None:
        return await self._get_event(f"/events/{event_id}")

    async def _get_event(self, path: str) -> Event | None:
        resp = await self.fetcher.fetch(self.base_url + path)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return normalize_event(resp.json())

    async def search(self, query: str) -> SearchResults:
        data = await self._get("/public-search", {"q": query})
        if not isinstance(data, dict):
            return SearchResults()
        raw_events = [e for e in data.get("events") or [] if isinstance(e, dict)]
        events = [ev for ev in (normalize_event(e) for e in raw_events) if ev is not None]
        return SearchResults(
            markets=normalize_markets(data.get("markets") or []),
            events=events,
        )


def select_top_markets(markets: list[Market], limit: int, min_liquidity: float = 0) -> list[Market]:
    """Markets with at least ``min_liquidity``, the ``limit`` most liquid first."""
    liquid = [m for m in markets if m.liquidity >= min_liquidity]
    liquid.sort(key=lambda m: m.liquidity, reverse=True)
    return liquid[:limit]


def dedupe_markets(markets: list[Market]) -> list[Market]:
    """Drop repeated condition ids; the last occurrence wins, first position is kept."""
    by_id: dict[str, Market] = {}
    for m in markets:
        by_id[m.condition_id or m.id] = m
    return list(by_id.values())