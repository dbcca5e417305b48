"""Market, Event - canonical entities."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Market(BaseModel):
    """Canonical market, resolved from a raw Gamma API object."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    condition_id: str = ""
    question_id: str = ""
    question: str = ""
    slug: str = ""
    volume: float = 0.0
    volume_24hr: float = 0.0
    liquidity: float = 0.0
    outcomes: list[str] = Field(default_factory=lambda: ["Yes", "No"])
    outcome_prices: list[float] = Field(default_factory=lambda: [0.5, 0.5])
    token_ids: list[str] | None = None  # CLOB token per outcome, same order
    start_date: str = ""
    end_date: str = ""
    active: bool = False
    closed: bool = False
    archived: bool = False

    @property
    def is_binary(self) -> bool:
        """Two outcomes with a CLOB token each - required for book metrics."""
        return len(self.outcomes) == 2 and self.token_ids is not None and len(self.token_ids) == 2

    @property
    def is_open(self) -> bool:
        return self.active and not self.closed


class Event(BaseModel):
    """Event grouping one or more markets (Polymarket event)."""

    model_config = ConfigDict(frozen=True)

    id: str
    slug: str = ""
    title: str = ""
    description: str = ""
    end_date: str = ""
    volume: float = 0.0
    volume_24hr: float = 0.0
    liquidity: float = 0.0
    category: str | None = None
    active: bool = False
    markets: list[Market] = Field(default_factory=list)
