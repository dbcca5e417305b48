"""Canonical schema (Pydantic) - Market, OrderBook, signals."""

from predscan.models.market import Event, Market
from predscan.models.orderbook import OrderBookSnapshot, PriceLevel
from predscan.models.signals import (
    ArbitrageSignal,
    BookMetrics,
    Confidence,
    InsiderDetails,
    InsiderSignal,
    OutcomeQuote,
)

__all__ = [
    "Market",
    "Event",
    "OrderBookSnapshot",
    "PriceLevel",
    "OutcomeQuote",
    "BookMetrics",
    "ArbitrageSignal",
    "InsiderDetails",
    "InsiderSignal",
    "Confidence",
]
