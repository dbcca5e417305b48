"""Paired YES/NO orderbooks -> BookMetrics (top of book, arb edges, depth, imbalance)."""

from __future__ import annotations

from typing import Iterable

from predscan.models import BookMetrics, OrderBookSnapshot, OutcomeQuote, PriceLevel

# Worst-case prices for an empty side: nobody pays more than 0, nobody sells below 1.
EMPTY_BID_PRICE = 0.0
EMPTY_ASK_PRICE = 1.0


def top_of_book(book: OrderBookSnapshot) -> OutcomeQuote:
    """Best bid/ask and their sizes. Trusts the venue's best-first level order."""
    bid = book.bids[0].price if book.bids else EMPTY_BID_PRICE
    ask = book.asks[0].price if book.asks else EMPTY_ASK_PRICE
    return OutcomeQuote(
        bid=bid,
        ask=ask,
        bid_size=book.bids[0].size if book.bids else 0.0,
        ask_size=book.asks[0].size if book.asks else 0.0,
        spread=ask - bid,
    )


def notional_depth(levels: Iterable[PriceLevel]) -> float:
    """Quote-currency depth: sum of price * size over all levels."""
    return sum(lev.size * lev.price for lev in levels)


def process_orderbook(yes_book: OrderBookSnapshot, no_book: OrderBookSnapshot) -> BookMetrics:
    """Derive BookMetrics from the YES and NO books of one binary market."""
    yes = top_of_book(yes_book)
    no = top_of_book(no_book)

    ask_sum = yes.ask + no.ask
    bid_sum = yes.bid + no.bid

    total_bid_depth = notional_depth(yes_book.bids) + notional_depth(no_book.bids)
    total_ask_depth = notional_depth(yes_book.asks) + notional_depth(no_book.asks)

    return BookMetrics(
        yes=yes,
        no=no,
        ask_sum=ask_sum,
        bid_sum=bid_sum,
        long_arb_profit=max(0.0, 1.0 - ask_sum),
        short_arb_profit=max(0.0, bid_sum - 1.0),
        total_bid_depth=total_bid_depth,
        total_ask_depth=total_ask_depth,
        imbalance_ratio=total_bid_depth / total_ask_depth if total_ask_depth > 0 else 1.0,
    )
