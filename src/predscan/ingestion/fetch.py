"""Resilient HTTP client for the Polymarket APIs.

Every request goes through one injected rate limiter, carries browser-like
headers (the APIs sit behind bot detection) and is retried with exponential
backoff on transient network failures. HTTP error statuses are returned, not
raised; callers decide what a 4xx/5xx means.
"""

from __future__ import annotations

import asyncio
import errno
import random
from typing import Any, Awaitable, Callable, Mapping

import httpx
import structlog

from predscan.errors import TransientNetworkError
from predscan.ingestion.rate_limit import JitterRateLimiter, backoff_delay

log = structlog.get_logger(__name__)

BROWSER_HEADERS: dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
    ),
    "Accept": "application/json",
    "Accept-Language": "en-US,en;q=0.9",
    "Origin": "https://polymarket.com",
    "Referer": "https://polymarket.com/",
    "sec-ch-ua": '"Not_A Brand";v="8", "Chromium";v="120", "Google Chrome";v="120"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"macOS"',
    "sec-fetch-dest": "empty",
    "sec-fetch-mode": "cors",
    "sec-fetch-site": "same-site",
}

# Connection reset/refused, timeout, DNS failure, broken pipe.
RETRIABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    httpx.ConnectError,
    httpx.TimeoutException,
    httpx.ReadError,
    httpx.WriteError,
    httpx.RemoteProtocolError,
    ConnectionResetError,
    ConnectionRefusedError,
    BrokenPipeError,
    TimeoutError,
)

RETRIABLE_ERRNOS = frozenset(
    {errno.ECONNRESET, errno.ECONNREFUSED, errno.ETIMEDOUT, errno.EPIPE}
)

_RETRIABLE_MARKERS = (
    "econnreset",
    "etimedout",
    "econnrefused",
    "enotfound",
    "eai_again",
    "name or service not known",
    "temporary failure in name resolution",
    "socket hang up",
    "server disconnected",
    "fetch failed",
    "network error",
)

DEFAULT_MAX_RETRIES = 4


def is_retriable(exc: BaseException) -> bool:
    """Classify a request failure as transient (worth retrying) or not."""
    if isinstance(exc, RETRIABLE_EXCEPTIONS):
        return True
    if isinstance(exc, OSError) and exc.errno in RETRIABLE_ERRNOS:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _RETRIABLE_MARKERS)


def merge_headers(extra: Mapping[str, str] | None = None) -> httpx.Headers:
    """Browser headers with caller headers on top. Accept-Encoding is always dropped."""
    headers = httpx.Headers(BROWSER_HEADERS)
    if extra:
        headers.update(extra)
    headers.pop("Accept-Encoding", None)
    return headers


class ResilientFetchClient:
    """Rate-limited, retrying, header-spoofing wrapper around ``httpx.AsyncClient``."""

    def __init__(
        self,
        rate_limiter: JitterRateLimiter | None = None,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base: float = 3.0,
        retry_jitter: float = 1.0,
        timeout: float = 30.0,
        proxy_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.rate_limiter = rate_limiter or JitterRateLimiter()
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.retry_jitter = retry_jitter
        self.proxy_url = proxy_url or None
        self._sleep = sleep
        self._rng = rng or random.Random()
        # Proxy choice comes from settings only; httpx must not read HTTPS_PROXY
        # or ALL_PROXY behind our back.
        if transport is not None:
            self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        elif self.proxy_url:
            log.info("fetch_proxy_enabled", proxy=self.proxy_url)
            self._client = httpx.AsyncClient(timeout=timeout, proxy=self.proxy_url, trust_env=False)
        else:
            self._client = httpx.AsyncClient(timeout=timeout, trust_env=False)
        # httpx sends its own Accept-Encoding by default; the APIs' brotli
        # responses fail to decode on some platforms.
        self._client.headers.pop("Accept-Encoding", None)

    @classmethod
    def from_settings(cls, settings: Any, **kwargs: Any) -> ResilientFetchClient:
        limiter = JitterRateLimiter(settings.base_interval_sec, settings.jitter_sec)
        return cls(
            limiter,
            max_retries=settings.max_retries,
            backoff_base=settings.backoff_base_sec,
            retry_jitter=settings.retry_jitter_sec,
            timeout=settings.timeout_sec,
            proxy_url=settings.proxy_url,
            **kwargs,
        )

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        json: Any = None,
        skip_rate_limit: bool = False,
    ) -> httpx.Response:
        """Issue one request. Raises TransientNetworkError once retries are exhausted."""
        if not skip_rate_limit:
            await self.rate_limiter.wait()
        merged = merge_headers(headers)
        try:
            return await self._send_with_retry(method, url, params, merged, json)
        except Exception as e:
            log.error("fetch_failed", url=url, error=str(e))
            raise

    async def _send_with_retry(
        self,
        method: str,
        url: str,
        params: Mapping[str, Any] | None,
        headers: httpx.Headers,
        body: Any,
    ) -> httpx.Response:
        retry_count = 0
        while True:
            try:
                return await self._client.request(
                    method, url, params=params, headers=headers, json=body
                )
            except Exception as e:
                if not is_retriable(e):
                    raise
                if retry_count >= self.max_retries:
                    raise TransientNetworkError(url, retry_count + 1, e) from e
                delay = backoff_delay(
                    retry_count,
                    self.backoff_base,
                    self._rng.uniform(0, self.retry_jitter),
                )
                log.warning(
                    "fetch_retry",
                    url=url,
                    attempt=retry_count + 1,
                    max_retries=self.max_retries,
                    delay=round(delay, 2),
                    error=str(e) or type(e).__name__,
                )
                await self._sleep(delay)
                retry_count += 1

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        """GET and decode JSON. Raises httpx.HTTPStatusError on a 4xx/5xx."""
        resp = await self.fetch(url, **kwargs)
        resp.raise_for_status()
        return resp.json()

    def limiter_stats(self) -> dict[str, Any]:
        return {**self.rate_limiter.stats(), "max_retries": self.max_retries}

    def proxy_config(self) -> dict[str, Any]:
        return {
            "proxy_url": self.proxy_url,
            "using_proxy": bool(self.proxy_url),
            "message": f"Using proxy: {self.proxy_url}" if self.proxy_url else "No proxy - direct connection",
        }

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> ResilientFetchClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
