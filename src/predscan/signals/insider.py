"""Informed-trading screen over book metrics.

Five independent heuristics look for the footprint of someone trading on
information: outsized resting orders, lopsided depth, a book too thin to absorb
them, and tight spreads under heavy bidding. Thresholds scale with the market's
24h volume when it is known. The output is a screening aid, never a finding.
"""

from __future__ import annotations

from dataclasses import dataclass

from predscan.models import BookMetrics, InsiderDetails, InsiderSignal

MIN_SIZE_THRESHOLD = 1000.0
MIN_DEPTH_THRESHOLD = 5000.0
SIZE_VOLUME_FRACTION = 0.01
DEPTH_VOLUME_FRACTION = 0.05
DEFAULT_SIZE_THRESHOLD = 500.0
DEFAULT_DEPTH_THRESHOLD = 2000.0

IMBALANCE_HIGH = 2.5
IMBALANCE_LOW = 0.4
OVERRIDE_IMBALANCE = 3.0
TIGHT_SPREAD = 0.01

TIMEOUT_SIGNAL = "Timeout"


@dataclass(frozen=True)
class Thresholds:
    size: float
    depth: float


def thresholds_for(volume_24hr: float | None) -> Thresholds:
    if volume_24hr:
        return Thresholds(
            size=max(MIN_SIZE_THRESHOLD, SIZE_VOLUME_FRACTION * volume_24hr),
            depth=max(MIN_DEPTH_THRESHOLD, DEPTH_VOLUME_FRACTION * volume_24hr),
        )
    return Thresholds(size=DEFAULT_SIZE_THRESHOLD, depth=DEFAULT_DEPTH_THRESHOLD)


def detect_insider_activity(metrics: BookMetrics, volume_24hr: float | None = None) -> InsiderSignal:
    """Evaluate every heuristic and grade the result."""
    limits = thresholds_for(volume_24hr)
    largest_bid = max(metrics.yes.bid_size, metrics.no.bid_size)
    largest_ask = max(metrics.yes.ask_size, metrics.no.ask_size)
    ratio = metrics.imbalance_ratio
    bid_depth = metrics.total_bid_depth
    ask_depth = metrics.total_ask_depth
    avg_spread = (metrics.yes.spread + metrics.no.spread) / 2

    large_bid = largest_bid > limits.size
    large_ask = largest_ask > limits.size
    imbalance = ratio > IMBALANCE_HIGH or ratio < IMBALANCE_LOW
    thin = (bid_depth < limits.depth or ask_depth < limits.depth) and (large_bid or large_ask)
    aggressive = avg_spread < TIGHT_SPREAD and (large_bid or imbalance)

    signals: list[str] = []
    if large_bid:
        signals.append(f"Large bid order: {largest_bid:,.0f} (threshold {limits.size:,.0f})")
    if large_ask:
        signals.append(f"Large ask order: {largest_ask:,.0f} (threshold {limits.size:,.0f})")
    if imbalance:
        side = "bid" if ratio > IMBALANCE_HIGH else "ask"
        signals.append(f"Order imbalance: {ratio:.2f}x ({side}-heavy)")
    if thin:
        signals.append(
            f"Thin order book: bid depth ${bid_depth:,.0f}, ask depth ${ask_depth:,.0f} "
            f"(threshold ${limits.depth:,.0f})"
        )
    if aggressive:
        signals.append(f"Aggressive bidding: average spread {avg_spread:.4f}")

    count = len(signals)
    override = large_bid and thin and ratio > OVERRIDE_IMBALANCE
    if count >= 3 or override:
        confidence = "high"
    elif count == 2:
        confidence = "medium"
    else:
        confidence = "low"

    return InsiderSignal(
        is_insider=count >= 2 or (count >= 1 and override),
        signals=signals,
        confidence=confidence,
        details=InsiderDetails(
            large_bid_order=large_bid,
            large_ask_order=large_ask,
            order_imbalance=imbalance,
            thin_order_book=thin,
            aggressive_bidding=aggressive,
            largest_bid_size=largest_bid,
            largest_ask_size=largest_ask,
            imbalance_ratio=ratio,
            bid_depth=bid_depth,
            ask_depth=ask_depth,
            size_threshold=limits.size,
            depth_threshold=limits.depth,
        ),
    )


def empty_insider_signal() -> InsiderSignal:
    """Result for a market that was not (or could not be) checked."""
    return InsiderSignal()


def timeout_insider_signal() -> InsiderSignal:
    """Result for a market whose check lost the race against the deadline."""
    return InsiderSignal(signals=[TIMEOUT_SIGNAL])
