"""PriceLevel, OrderBookSnapshot - canonical orderbook."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PriceLevel(BaseModel):
    """Single price level (price -> size)."""

    model_config = ConfigDict(frozen=True)

    price: float = Field(..., ge=0, le=1)
    size: float = Field(..., ge=0)


class OrderBookSnapshot(BaseModel):
    """Full L2 orderbook for one outcome token.

    Bids are best-first (descending price), asks best-first (ascending), exactly
    as the venue sends them.
    """

    model_config = ConfigDict(frozen=True)

    market_id: str = ""
    asset_id: str = ""
    bids: list[PriceLevel] = Field(default_factory=list)
    asks: list[PriceLevel] = Field(default_factory=list)
    hash: str | None = None
    exchange_ts: int | None = None  # ms epoch
