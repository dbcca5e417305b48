"""Derived book metrics and trading signals - immutable value objects."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Confidence = Literal["low", "medium", "high"]


class OutcomeQuote(BaseModel):
    """Top of book for one outcome token."""

    model_config = ConfigDict(frozen=True)

    bid: float
    ask: float
    bid_size: float
    ask_size: float
    spread: float


class BookMetrics(BaseModel):
    """Metrics over a paired YES/NO book. Recomputed per call, never cached."""

    model_config = ConfigDict(frozen=True)

    yes: OutcomeQuote
    no: OutcomeQuote
    ask_sum: float
    bid_sum: float
    long_arb_profit: float = Field(..., ge=0)
    short_arb_profit: float = Field(..., ge=0)
    total_bid_depth: float = Field(..., ge=0, description="Sum of price*size, both books")
    total_ask_depth: float = Field(..., ge=0, description="Sum of price*size, both books")
    imbalance_ratio: float


class ArbitrageSignal(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["long", "short"]
    profit: float = Field(..., description="Fraction of $1 notional")
    action: str


class InsiderDetails(BaseModel):
    """Which heuristics fired, plus the metric snapshot they were judged on."""

    model_config = ConfigDict(frozen=True)

    large_bid_order: bool = False
    large_ask_order: bool = False
    order_imbalance: bool = False
    thin_order_book: bool = False
    aggressive_bidding: bool = False
    largest_bid_size: float | None = None
    largest_ask_size: float | None = None
    imbalance_ratio: float | None = None
    bid_depth: float | None = None
    ask_depth: float | None = None
    size_threshold: float | None = None
    depth_threshold: float | None = None


class InsiderSignal(BaseModel):
    """Explainable screening result. A hint for a human, not a finding."""

    model_config = ConfigDict(frozen=True)

    is_insider: bool = False
    signals: list[str] = Field(default_factory=list)
    confidence: Confidence = "low"
    details: InsiderDetails = Field(default_factory=InsiderDetails)
