"""Raw Gamma / CLOB JSON -> canonical Market, Event, OrderBookSnapshot.

The venue is inconsistent about field naming (camelCase, snake_case, ``*Num``
twins) and sometimes ships arrays as JSON-encoded strings. Every field is
resolved through one ordered table: the first name holding a usable value wins,
otherwise the default. Nothing here raises on bad optional data.
"""

from __future__ import annotations

import json
import math
from typing import Any, Callable, Iterable

import structlog

from predscan.models import Event, Market, OrderBookSnapshot, PriceLevel

log = structlog.get_logger(__name__)

DEFAULT_OUTCOMES = ("Yes", "No")
DEFAULT_OUTCOME_PRICE = 0.5


def _float(s: Any) -> float | None:
    if s is None or isinstance(s, bool):
        return None
    try:
        value = float(s)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _to_str(value: Any) -> str | None:
    if isinstance(value, (dict, list)):
        return None
    return str(value)


def _to_float(value: Any) -> float | None:
    return _float(value)


def _to_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
        return None
    if isinstance(value, (int, float)):
        return bool(value)
    return None


def _to_str_list(value: Any) -> list[str] | None:
    """List of strings, decoding a JSON-encoded string if needed."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except (ValueError, TypeError, RecursionError):
            return None
    if not isinstance(value, list):
        return None
    return [str(v) for v in value]


def _to_price_list(value: Any) -> list[float] | None:
    items = _to_str_list(value)
    if items is None:
        return None
    prices = []
    for item in items:
        p = _float(item)
        prices.append(DEFAULT_OUTCOME_PRICE if p is None else p)
    return prices


# (field, source names in priority order, coercion, default)
_MARKET_FIELDS: tuple[tuple[str, tuple[str, ...], Callable[[Any], Any], Any], ...] = (
    ("id", ("id",), _to_str, ""),
    ("condition_id", ("conditionId", "condition_id"), _to_str, ""),
    ("question_id", ("questionId", "question_id"), _to_str, ""),
    ("question", ("question", "title"), _to_str, ""),
    ("slug", ("slug",), _to_str, ""),
    ("volume", ("volume", "volumeNum"), _to_float, 0.0),
    ("volume_24hr", ("volume24hr", "volume_24hr"), _to_float, 0.0),
    ("liquidity", ("liquidity", "liquidityNum"), _to_float, 0.0),
    ("outcomes", ("outcomes",), _to_str_list, list(DEFAULT_OUTCOMES)),
    ("outcome_prices", ("outcomePrices", "outcome_prices"), _to_price_list, [DEFAULT_OUTCOME_PRICE] * 2),
    ("token_ids", ("clobTokenIds", "clob_token_ids"), _to_str_list, None),
    ("start_date", ("startDate", "start_date"), _to_str, ""),
    ("end_date", ("endDate", "end_date"), _to_str, ""),
    ("active", ("active",), _to_bool, False),
    ("closed", ("closed",), _to_bool, False),
    ("archived", ("archived",), _to_bool, False),
)

_EVENT_FIELDS: tuple[tuple[str, tuple[str, ...], Callable[[Any], Any], Any], ...] = (
    ("id", ("id",), _to_str, ""),
    ("slug", ("slug",), _to_str, ""),
    ("title", ("title",), _to_str, ""),
    ("description", ("description",), _to_str, ""),
    ("end_date", ("endDate", "end_date"), _to_str, ""),
    ("volume", ("volume", "volumeNum"), _to_float, 0.0),
    ("volume_24hr", ("volume24hr", "volume_24hr"), _to_float, 0.0),
    ("liquidity", ("liquidity", "liquidityNum"), _to_float, 0.0),
    ("active", ("active",), _to_bool, False),
)


def resolve_field(
    raw: dict[str, Any],
    names: Iterable[str],
    coerce: Callable[[Any], Any],
    default: Any,
) -> Any:
    """First name whose value is present and coerces cleanly, else default."""
    for name in names:
        value = raw.get(name)
        if value is None or value == "":
            continue
        coerced = coerce(value)
        if coerced is not None:
            return coerced
    return list(default) if isinstance(default, list) else default


def _resolve(raw: dict[str, Any], table: tuple[tuple[str, tuple[str, ...], Callable[[Any], Any], Any], ...]) -> dict[str, Any]:
    return {field: resolve_field(raw, names, coerce, default) for field, names, coerce, default in table}


def _align(values: dict[str, Any]) -> dict[str, Any]:
    """Enforce len(outcomes) == len(outcome_prices) == len(token_ids)."""
    n = len(values["outcomes"])
    prices = values["outcome_prices"][:n]
    prices.extend([DEFAULT_OUTCOME_PRICE] * (n - len(prices)))
    values["outcome_prices"] = prices
    token_ids = values["token_ids"]
    if token_ids is not None and len(token_ids) != n:
        log.debug("token_ids_mismatch", market_id=values["id"], outcomes=n, token_ids=len(token_ids))
        values["token_ids"] = None
    return values


def normalize_market(raw: Any) -> Market:
    """Convert a Gamma API market object to canonical Market."""
    if not isinstance(raw, dict):
        log.warning("market_not_an_object", type=type(raw).__name__)
        raw = {}
    return Market(**_align(_resolve(raw, _MARKET_FIELDS)))


def normalize_markets(rows: Any) -> list[Market]:
    """Normalize a list of raw markets, skipping entries that are not objects."""
    if isinstance(rows, dict):
        rows = rows.get("data") or rows.get("markets") or []
    if not isinstance(rows, list):
        return []
    return [normalize_market(row) for row in rows if isinstance(row, dict)]


def normalize_event(raw: Any, category: str | None = None) -> Event | None:
    """Convert a Gamma API event to canonical Event. None when it carries no markets."""
    if not isinstance(raw, dict):
        return None
    markets_raw = raw.get("markets")
    if not isinstance(markets_raw, list) or not markets_raw:
        return None
    values = _resolve(raw, _EVENT_FIELDS)
    markets = []
    for row in markets_raw:
        if not isinstance(row, dict):
            continue
        market = normalize_market(row)
        # Event-nested markets omit (or null) activity flags and end dates that the
        # event carries.
        updates: dict[str, Any] = {}
        if row.get("active") is None:
            updates["active"] = True
        if not market.end_date and values["end_date"]:
            updates["end_date"] = values["end_date"]
        markets.append(market.model_copy(update=updates) if updates else market)
    return Event(**values, category=category, markets=markets)


def _levels(raw_levels: Any) -> list[PriceLevel]:
    levels = []
    if not isinstance(raw_levels, list):
        return levels
    for lev in raw_levels:
        if not isinstance(lev, dict):
            continue
        p, s = _float(lev.get("price")), _float(lev.get("size"))
        if p is None or s is None:
            continue
        if 0 <= p <= 1 and s >= 0:
            levels.append(PriceLevel(price=p, size=s))
    return levels


def normalize_orderbook(raw: Any, asset_id: str = "") -> OrderBookSnapshot:
    """Convert a CLOB /book payload to OrderBookSnapshot. Uses 'bids'/'asks' or 'buys'/'sells'.

    Level order is kept as received (best first).
    """
    if not isinstance(raw, dict):
        return OrderBookSnapshot(asset_id=asset_id)
    ts = raw.get("timestamp")
    try:
        exchange_ts = int(ts) if ts is not None else None
    except (TypeError, ValueError):
        exchange_ts = None
    return OrderBookSnapshot(
        market_id=str(raw.get("market") or raw.get("market_id") or ""),
        asset_id=str(raw.get("asset_id") or asset_id),
        bids=_levels(raw.get("bids") or raw.get("buys")),
        asks=_levels(raw.get("asks") or raw.get("sells")),
        hash=_to_str(raw["hash"]) if raw.get("hash") is not None else None,
        exchange_ts=exchange_ts,
    )
