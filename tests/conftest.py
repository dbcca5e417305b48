"""Shared fixtures: fake upstream HTTP and canned Polymarket payloads."""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from predscan.ingestion.fetch import ResilientFetchClient
from predscan.ingestion.polymarket.clob import ClobClient
from predscan.ingestion.polymarket.gamma import GammaClient
from predscan.ingestion.rate_limit import JitterRateLimiter
from predscan.orchestration.batch import BatchOrchestrator
from predscan.orchestration.scanner import MarketScanner

GAMMA = "https://gamma.test"
CLOB = "https://clob.test"


def book_json(bids: list[tuple[float, float]], asks: list[tuple[float, float]], asset_id: str = "") -> dict[str, Any]:
    """CLOB /book payload; prices and sizes as strings, like the venue sends them."""
    return {
        "market": "0xabc",
        "asset_id": asset_id,
        "bids": [{"price": str(p), "size": str(s)} for p, s in bids],
        "asks": [{"price": str(p), "size": str(s)} for p, s in asks],
        "hash": "h",
        "timestamp": "1700000000000",
    }


def gamma_market(condition_id: str, yes: str, no: str, **extra: Any) -> dict[str, Any]:
    row = {
        "id": condition_id[-3:],
        "conditionId": condition_id,
        "question": f"Question {condition_id}?",
        "slug": f"q-{condition_id}",
        "outcomes": '["Yes", "No"]',
        "outcomePrices": '["0.5", "0.5"]',
        "clobTokenIds": json.dumps([yes, no]),
        "volume24hr": 50000,
        "liquidity": 20000,
        "active": True,
        "closed": False,
    }
    row.update(extra)
    return row


async def no_sleep(delay: float) -> None:
    return None


@pytest.fixture
def make_fetcher() -> Callable[..., ResilientFetchClient]:
    """Build a fetch client over httpx.MockTransport with no rate limiting or backoff."""

    def factory(handler: Callable[[httpx.Request], Any], **kwargs: Any) -> ResilientFetchClient:
        kwargs.setdefault("sleep", no_sleep)
        kwargs.setdefault("retry_jitter", 0.0)
        return ResilientFetchClient(
            JitterRateLimiter(0.0, 0.0),
            transport=httpx.MockTransport(handler),
            **kwargs,
        )

    return factory


@pytest.fixture
def make_scanner(make_fetcher) -> Callable[..., MarketScanner]:
    def factory(handler: Callable[[httpx.Request], Any], concurrency: int = 3, **kwargs: Any) -> MarketScanner:
        fetcher = make_fetcher(handler)
        gamma = GammaClient(fetcher, GAMMA)
        return MarketScanner(gamma, ClobClient(fetcher, gamma, CLOB), BatchOrchestrator(concurrency), **kwargs)

    return factory
