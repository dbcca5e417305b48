"""Pydantic schemas for API request/response consistency and OpenAPI docs."""

from __future__ import annotations

from pydantic import BaseModel, Field

from predscan.models import ArbitrageSignal, BookMetrics, Event, Market
from predscan.orchestration.scanner import ArbitrageScanResult


# --- Health ---
class HealthResponse(BaseModel):
    status: str = "ok"
    proxy: str | None = None
    abandoned_checks: int = 0


# --- Error (consistent shape for 4xx/5xx) ---
class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Human-readable message")
    code: str | None = Field(None, description="Machine-readable code, e.g. not_found, upstream_error")


# --- Markets ---
class MarketResponse(BaseModel):
    market: Market


class MarketsListResponse(BaseModel):
    markets: list[Market]
    total: int


# --- Events ---
class EventResponse(BaseModel):
    event: Event


# --- Orderbook / arbitrage ---
class OrderbookResponse(BaseModel):
    condition_id: str
    orderbook: BookMetrics


class ArbitrageResponse(BaseModel):
    condition_id: str
    threshold: float
    arbitrage: ArbitrageSignal | None = None


class ArbitrageScanResponse(BaseModel):
    threshold: float
    results: list[ArbitrageScanResult]
    found: int
    failed: int
