"""Risk-free arbitrage on a binary market: both asks sum below $1, or both bids above."""

from __future__ import annotations

from predscan.models import ArbitrageSignal, BookMetrics

DEFAULT_THRESHOLD = 0.001


def detect_arbitrage(metrics: BookMetrics, threshold: float = DEFAULT_THRESHOLD) -> ArbitrageSignal | None:
    """Return the arbitrage on offer, if its edge exceeds threshold.

    Long is checked first; when both edges exceed the threshold (a crossed book)
    only the long signal is returned.
    """
    if metrics.long_arb_profit > threshold:
        return ArbitrageSignal(
            type="long",
            profit=metrics.long_arb_profit,
            action=(
                f"Buy YES @ {metrics.yes.ask:.4f} + Buy NO @ {metrics.no.ask:.4f} "
                f"= {metrics.ask_sum:.4f}"
            ),
        )
    if metrics.short_arb_profit > threshold:
        return ArbitrageSignal(
            type="short",
            profit=metrics.short_arb_profit,
            action=(
                f"Sell YES @ {metrics.yes.bid:.4f} + Sell NO @ {metrics.no.bid:.4f} "
                f"= {metrics.bid_sum:.4f}"
            ),
        )
    return None
