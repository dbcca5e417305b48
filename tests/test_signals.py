"""Arbitrage and insider-activity detector tests."""

import pytest

from predscan.models import BookMetrics, OrderBookSnapshot, OutcomeQuote, PriceLevel
from predscan.orderbook.processor import process_orderbook
from predscan.signals.arbitrage import detect_arbitrage
from predscan.signals.insider import (
    TIMEOUT_SIGNAL,
    detect_insider_activity,
    empty_insider_signal,
    thresholds_for,
    timeout_insider_signal,
)


def book(bids=(), asks=()):
    return OrderBookSnapshot(
        bids=[PriceLevel(price=p, size=s) for p, s in bids],
        asks=[PriceLevel(price=p, size=s) for p, s in asks],
    )


def metrics(
    *,
    yes_bid_size=100.0,
    no_bid_size=100.0,
    yes_ask_size=100.0,
    no_ask_size=100.0,
    spread=0.02,
    bid_depth=10_000.0,
    ask_depth=10_000.0,
    ratio=None,
):
    def quote(bid_size, ask_size):
        return OutcomeQuote(bid=0.49, ask=0.49 + spread, bid_size=bid_size, ask_size=ask_size, spread=spread)

    return BookMetrics(
        yes=quote(yes_bid_size, yes_ask_size),
        no=quote(no_bid_size, no_ask_size),
        ask_sum=2 * (0.49 + spread),
        bid_sum=0.98,
        long_arb_profit=0.0,
        short_arb_profit=0.0,
        total_bid_depth=bid_depth,
        total_ask_depth=ask_depth,
        imbalance_ratio=ratio if ratio is not None else bid_depth / ask_depth,
    )


# --- arbitrage ---


def test_long_arbitrage():
    m = process_orderbook(book(asks=[(0.48, 10)]), book(asks=[(0.49, 10)]))
    signal = detect_arbitrage(m, 0.001)
    assert signal is not None
    assert signal.type == "long"
    assert signal.profit == pytest.approx(0.03)
    assert "0.9700" in signal.action
    assert signal.action.startswith("Buy YES @ 0.4800")


def test_short_arbitrage():
    m = process_orderbook(book(bids=[(0.53, 10)], asks=[(0.6, 1)]), book(bids=[(0.52, 10)], asks=[(0.6, 1)]))
    signal = detect_arbitrage(m, 0.001)
    assert signal is not None
    assert signal.type == "short"
    assert signal.profit == pytest.approx(0.05)
    assert "1.0500" in signal.action


def test_long_preferred_when_both_edges_exceed_threshold():
    # Crossed book: asks sum to 0.9 and bids to 1.1.
    m = process_orderbook(book(bids=[(0.6, 1)], asks=[(0.4, 1)]), book(bids=[(0.5, 1)], asks=[(0.5, 1)]))
    assert m.long_arb_profit > 0 and m.short_arb_profit > 0
    signal = detect_arbitrage(m, 0.001)
    assert signal.type == "long"
    assert signal.profit == pytest.approx(0.1)


def test_no_arbitrage_at_or_below_threshold():
    fair = process_orderbook(book(bids=[(0.49, 1)], asks=[(0.51, 1)]), book(bids=[(0.49, 1)], asks=[(0.51, 1)]))
    assert detect_arbitrage(fair) is None
    edge = process_orderbook(book(asks=[(0.49, 1)]), book(asks=[(0.5, 1)]))
    assert detect_arbitrage(edge, threshold=0.05) is None
    assert detect_arbitrage(edge, threshold=0.001).type == "long"


def test_empty_books_have_no_arbitrage():
    assert detect_arbitrage(process_orderbook(book(), book())) is None


# --- insider ---


def test_thresholds_scale_with_volume():
    assert thresholds_for(50_000).size == 1000
    assert thresholds_for(50_000).depth == 5000
    assert thresholds_for(1_000_000).size == 10_000
    assert thresholds_for(1_000_000).depth == 50_000
    assert thresholds_for(None).size == 500
    assert thresholds_for(0).depth == 2000


def test_quiet_market_has_no_signals():
    result = detect_insider_activity(metrics(), 50_000)
    assert result.signals == []
    assert result.is_insider is False
    assert result.confidence == "low"


def test_single_large_bid_is_not_insider():
    result = detect_insider_activity(metrics(yes_bid_size=10_000), 50_000)
    assert len(result.signals) == 1
    assert result.signals[0].startswith("Large bid order")
    assert result.is_insider is False
    assert result.confidence == "low"
    assert result.details.large_bid_order is True
    assert result.details.thin_order_book is False
    assert result.details.largest_bid_size == 10_000
    assert result.details.size_threshold == 1000


def test_two_signals_are_medium_and_insider():
    result = detect_insider_activity(metrics(yes_bid_size=2000, no_ask_size=3000), 50_000)
    assert [s.split(":")[0] for s in result.signals] == ["Large bid order", "Large ask order"]
    assert result.confidence == "medium"
    assert result.is_insider is True


def test_large_bid_thin_book_and_heavy_imbalance_force_high():
    result = detect_insider_activity(
        metrics(yes_bid_size=10_000, bid_depth=3500, ask_depth=1000, ratio=3.5), 50_000
    )
    d = result.details
    assert d.large_bid_order and d.thin_order_book
    assert d.imbalance_ratio == 3.5
    assert result.confidence == "high"
    assert result.is_insider is True


def test_thin_book_requires_a_large_order():
    result = detect_insider_activity(metrics(bid_depth=100, ask_depth=100), 50_000)
    assert result.details.thin_order_book is False
    assert result.signals == []


def test_imbalance_low_side():
    result = detect_insider_activity(metrics(bid_depth=3000, ask_depth=10_000), 50_000)
    assert result.details.order_imbalance is True
    assert "ask-heavy" in result.signals[0]


def test_aggressive_bidding_needs_tight_spread():
    tight = detect_insider_activity(metrics(yes_bid_size=5000, spread=0.005), 50_000)
    assert tight.details.aggressive_bidding is True
    assert tight.confidence == "medium"
    wide = detect_insider_activity(metrics(yes_bid_size=5000, spread=0.02), 50_000)
    assert wide.details.aggressive_bidding is False


def test_default_thresholds_without_volume():
    result = detect_insider_activity(metrics(yes_bid_size=600))
    assert result.details.large_bid_order is True
    assert result.details.size_threshold == 500
    assert result.details.depth_threshold == 2000


def test_fallback_shapes():
    assert empty_insider_signal().signals == []
    timed_out = timeout_insider_signal()
    assert timed_out.signals == [TIMEOUT_SIGNAL]
    assert timed_out.is_insider is False
    assert timed_out.confidence == "low"
    assert timed_out.details.large_bid_order is False
