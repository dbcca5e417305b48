"""FastAPI backend: live market data, book metrics and signals over HTTP."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

import httpx
import structlog
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from predscan.api.schemas import (
    ArbitrageResponse,
    ArbitrageScanResponse,
    ErrorResponse,
    EventResponse,
    HealthResponse,
    MarketResponse,
    MarketsListResponse,
    OrderbookResponse,
)
from predscan.config import get_settings
from predscan.errors import TransientNetworkError
from predscan.ingestion.fetch import ResilientFetchClient
from predscan.orchestration.scanner import MarketScanner, SearchResult, TrendingResult
from predscan.signals.arbitrage import detect_arbitrage

log = structlog.get_logger(__name__)

# Set by run_api() before uvicorn imports the app.
_config_profile: str | None = None
_config_dir: Path | None = None

# Upstream failures mapped to 502 rather than a bare 500.
UPSTREAM_ERRORS = (httpx.HTTPError, TransientNetworkError)

NOT_FOUND = {404: {"description": "Not found", "model": ErrorResponse}}
BAD_GATEWAY = {502: {"description": "Upstream API failed", "model": ErrorResponse}}


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings(_config_profile, _config_dir)
    fetcher = ResilientFetchClient.from_settings(settings)
    app.state.settings = settings
    app.state.fetcher = fetcher
    app.state.scanner = MarketScanner.from_settings(settings, fetcher)
    log.info("api_started", **fetcher.proxy_config())

    yield

    orchestrator = app.state.scanner.orchestrator
    if orchestrator.pending:
        log.info("draining_abandoned_checks", pending=orchestrator.pending)
        await orchestrator.drain(timeout=settings.insider_timeout_sec)
    await fetcher.aclose()


app = FastAPI(title="predscan API", version="0.1.0", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


def _error_json(code: str, message: str, status_code: int = 404) -> JSONResponse:
    """Return consistent error JSON: { detail, code }."""
    return JSONResponse(
        status_code=status_code,
        content={"detail": message, "code": code},
    )


def _upstream_error(where: str, e: Exception) -> JSONResponse:
    log.error("upstream_error", route=where, error=str(e) or type(e).__name__)
    return _error_json("upstream_error", f"Failed to fetch {where}", status_code=502)


def _scanner(request: Request) -> MarketScanner:
    return request.app.state.scanner


@app.get("/health", response_model=HealthResponse)
def health(request: Request) -> HealthResponse:
    return HealthResponse(
        status="ok",
        proxy=request.app.state.fetcher.proxy_url,
        abandoned_checks=_scanner(request).orchestrator.pending,
    )


@app.get("/markets", responses={**NOT_FOUND, **BAD_GATEWAY})
async def markets(
    request: Request,
    limit: int = Query(10, ge=1, le=500),
    id: str | None = Query(None, description="Condition id (0x...)"),
    slug: str | None = Query(None),
):
    """One market by id/slug, otherwise the trending list."""
    scanner = _scanner(request)
    try:
        if id or slug:
            market = await scanner.gamma.get_unified_market(id or slug or "")
            if market is None:
                return _error_json("not_found", "Market not found")
            return MarketResponse(market=market)
        found = await scanner.gamma.get_trending_markets(limit)
        return MarketsListResponse(markets=found, total=len(found))
    except UPSTREAM_ERRORS as e:
        return _upstream_error("markets", e)


@app.get("/events", responses={**NOT_FOUND, **BAD_GATEWAY})
async def events(request: Request, slug: str | None = None, id: str | None = None):
    if not slug and not id:
        return _error_json("missing_parameter", "slug or id is required", status_code=400)
    gamma = _scanner(request).gamma
    try:
        event = await gamma.get_event_by_slug(slug) if slug else await gamma.get_event_by_id(id or "")
    except UPSTREAM_ERRORS as e:
        return _upstream_error("event", e)
    if event is None:
        return _error_json("not_found", "Event not found")
    return EventResponse(event=event)


@app.get("/orderbook", responses={**NOT_FOUND, **BAD_GATEWAY})
async def orderbook(request: Request, conditionId: str | None = None):
    if not conditionId:
        return _error_json("missing_parameter", "conditionId is required", status_code=400)
    try:
        metrics = await _scanner(request).orderbook(conditionId)
    except UPSTREAM_ERRORS as e:
        return _upstream_error("orderbook", e)
    if metrics is None:
        return _error_json("not_found", "No binary orderbook for this market")
    return OrderbookResponse(condition_id=conditionId, orderbook=metrics)


@app.get("/arbitrage", responses={**NOT_FOUND, **BAD_GATEWAY})
async def arbitrage(
    request: Request,
    conditionId: str | None = None,
    threshold: float | None = Query(None, ge=0),
):
    if not conditionId:
        return _error_json("missing_parameter", "conditionId is required", status_code=400)
    scanner = _scanner(request)
    limit = scanner.arbitrage_threshold if threshold is None else threshold
    try:
        metrics = await scanner.orderbook(conditionId)
    except UPSTREAM_ERRORS as e:
        return _upstream_error("arbitrage", e)
    if metrics is None:
        return _error_json("not_found", "No binary orderbook for this market")
    return ArbitrageResponse(
        condition_id=conditionId, threshold=limit, arbitrage=detect_arbitrage(metrics, limit)
    )


@app.get("/arbitrage/scan", response_model=ArbitrageScanResponse, responses=BAD_GATEWAY)
async def arbitrage_scan(
    request: Request,
    limit: int = Query(20, ge=1, le=100),
    threshold: float | None = Query(None, ge=0),
):
    """Scan the trending markets for arbitrage. Per-market failures stay in their slot."""
    scanner = _scanner(request)
    limit_threshold = scanner.arbitrage_threshold if threshold is None else threshold
    try:
        results = await scanner.scan_trending_arbitrage(limit, limit_threshold)
    except UPSTREAM_ERRORS as e:
        return _upstream_error("markets", e)
    return ArbitrageScanResponse(
        threshold=limit_threshold,
        results=results,
        found=sum(1 for r in results if r.arbitrage is not None),
        failed=sum(1 for r in results if not r.success),
    )


@app.get("/search", response_model=SearchResult, responses=BAD_GATEWAY)
async def search(
    request: Request,
    q: str | None = None,
    limit: int = Query(20, ge=1, le=100),
    minLiquidity: float = Query(1000, ge=0),
    checkInsider: bool = True,
    insiderTimeout: int = Query(5000, ge=0, description="Milliseconds"),
):
    """Keyword search with insider screening of the returned markets."""
    if not q or not q.strip():
        return _error_json("missing_parameter", 'Query parameter "q" is required', status_code=400)
    try:
        return await _scanner(request).search(
            q,
            limit=limit,
            min_liquidity=minLiquidity,
            check_insider=checkInsider,
            insider_timeout=insiderTimeout / 1000,
        )
    except UPSTREAM_ERRORS as e:
        return _upstream_error("search", e)


@app.get("/trending-events", response_model=TrendingResult)
async def trending_events(
    request: Request,
    limit: int = Query(5, ge=1, le=100),
    checkInsider: bool = True,
    insiderTimeout: int = Query(5000, ge=0, description="Milliseconds"),
    categories: str | None = Query(None, description="Comma-separated category names"),
    maxEvents: int = Query(50, ge=1, le=500),
) -> TrendingResult:
    """Events across categories, by 24h volume. Category pages that fail are skipped."""
    return await _scanner(request).trending_events(
        categories=categories.split(",") if categories else None,
        limit=limit,
        max_events=maxEvents,
        check_insider=checkInsider,
        insider_timeout=insiderTimeout / 1000,
    )


def run_api(
    host: str = "127.0.0.1",
    port: int = 8000,
    profile: str | None = None,
    config_dir: Path | None = None,
) -> None:
    global _config_profile, _config_dir
    _config_profile = profile
    _config_dir = config_dir
    import uvicorn

    uvicorn.run("predscan.api.main:app", host=host, port=port, reload=False)
