"""Rate limiter and resilient fetch client tests (httpx.MockTransport, no network)."""

import asyncio
import errno
import time

import httpx
import pytest

from predscan.config import Settings
from predscan.errors import TransientNetworkError
from predscan.ingestion.fetch import BROWSER_HEADERS, ResilientFetchClient, is_retriable, merge_headers
from predscan.ingestion.rate_limit import JitterRateLimiter, backoff_delay


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def test_merge_headers_drops_accept_encoding():
    headers = merge_headers({"X-Trace": "1", "Accept-Encoding": "br", "Accept": "text/plain"})
    assert headers["X-Trace"] == "1"
    assert headers["Accept"] == "text/plain"
    assert headers["Origin"] == "https://polymarket.com"
    assert "accept-encoding" not in headers


def test_backoff_delay_doubles():
    assert [backoff_delay(n) for n in range(4)] == [3.0, 6.0, 12.0, 24.0]
    assert backoff_delay(1, base_delay=1.0, jitter=0.25) == 2.25


def test_is_retriable_classification():
    assert is_retriable(httpx.ConnectError("refused"))
    assert is_retriable(httpx.ReadTimeout("slow"))
    assert is_retriable(ConnectionResetError())
    assert is_retriable(OSError(errno.ETIMEDOUT, "timed out"))
    assert is_retriable(RuntimeError("socket hang up"))
    assert is_retriable(RuntimeError("getaddrinfo ENOTFOUND gamma-api.polymarket.com"))
    assert not is_retriable(ValueError("bad json"))
    assert not is_retriable(httpx.UnsupportedProtocol("ftp"))


@pytest.mark.asyncio
async def test_browser_headers_sent_without_accept_encoding(make_fetcher):
    seen = {}

    def handler(request):
        seen.update(request.headers)
        return httpx.Response(200, json={"ok": True})

    async with make_fetcher(handler) as fetcher:
        data = await fetcher.get_json("https://gamma.test/markets", headers={"X-Extra": "yes"})
    assert data == {"ok": True}
    assert seen["user-agent"] == BROWSER_HEADERS["User-Agent"]
    assert seen["referer"] == "https://polymarket.com/"
    assert seen["x-extra"] == "yes"
    assert "accept-encoding" not in seen


@pytest.mark.asyncio
async def test_retries_transient_errors_with_backoff(make_fetcher):
    calls = []
    sleeper = SleepRecorder()

    def handler(request):
        calls.append(request.url.path)
        if len(calls) <= 2:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=[1, 2])

    async with make_fetcher(handler, sleep=sleeper) as fetcher:
        assert await fetcher.get_json("https://clob.test/book") == [1, 2]
    assert len(calls) == 3
    assert sleeper.delays == [3.0, 6.0]


@pytest.mark.asyncio
async def test_gives_up_after_max_retries(make_fetcher):
    calls = []
    sleeper = SleepRecorder()

    def handler(request):
        calls.append(1)
        raise httpx.ReadError("connection reset", request=request)

    async with make_fetcher(handler, sleep=sleeper) as fetcher:
        with pytest.raises(TransientNetworkError) as exc_info:
            await fetcher.fetch("https://clob.test/book")
    assert len(calls) == 5
    assert sleeper.delays == [3.0, 6.0, 12.0, 24.0]
    assert exc_info.value.attempts == 5
    assert isinstance(exc_info.value.cause, httpx.ReadError)


@pytest.mark.asyncio
async def test_non_retriable_error_propagates_immediately(make_fetcher):
    calls = []
    sleeper = SleepRecorder()

    def handler(request):
        calls.append(1)
        raise httpx.UnsupportedProtocol("nope", request=request)

    async with make_fetcher(handler, sleep=sleeper) as fetcher:
        with pytest.raises(httpx.UnsupportedProtocol):
            await fetcher.fetch("https://clob.test/book")
    assert len(calls) == 1
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_error_status_is_returned_not_retried(make_fetcher):
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(500, json={"error": "boom"})

    async with make_fetcher(handler) as fetcher:
        resp = await fetcher.fetch("https://gamma.test/markets")
        assert resp.status_code == 500
        with pytest.raises(httpx.HTTPStatusError):
            await fetcher.get_json("https://gamma.test/markets")
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_requests_spaced_by_base_interval():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(200, json={})

    fetcher = ResilientFetchClient(JitterRateLimiter(0.05, 0.0), transport=httpx.MockTransport(handler))
    async with fetcher:
        start = time.monotonic()
        await fetcher.fetch("https://gamma.test/a")
        await fetcher.fetch("https://gamma.test/b")
        elapsed = time.monotonic() - start
        await fetcher.fetch("https://gamma.test/c", skip_rate_limit=True)
    assert calls == ["/a", "/b", "/c"]
    assert elapsed >= 0.05 - 0.002


@pytest.mark.asyncio
async def test_concurrent_waiters_are_released_one_at_a_time():
    limiter = JitterRateLimiter(0.05, 0.0)
    released = []

    async def caller():
        await limiter.wait()
        released.append(time.monotonic())

    await asyncio.gather(*(caller() for _ in range(4)))
    released.sort()
    gaps = [b - a for a, b in zip(released, released[1:])]
    assert len(gaps) == 3
    assert all(gap >= 0.05 - 0.002 for gap in gaps)
    assert not limiter.waiting


@pytest.mark.asyncio
async def test_first_call_does_not_wait():
    limiter = JitterRateLimiter(10.0, 0.0)
    await asyncio.wait_for(limiter.wait(), timeout=1.0)
    limiter.reset()
    await asyncio.wait_for(limiter.wait(), timeout=1.0)


@pytest.mark.asyncio
async def test_proxy_config_and_settings():
    settings = Settings(
        fetch={"base_interval_sec": 0.2, "jitter_sec": 0.1, "max_retries": 2, "proxy_url": "http://127.0.0.1:8888"}
    )
    fetcher = ResilientFetchClient.from_settings(settings, transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    async with fetcher:
        assert fetcher.max_retries == 2
        assert fetcher.limiter_stats() == {"base_interval": 0.2, "jitter": 0.1, "max_retries": 2}
        config = fetcher.proxy_config()
        assert config["using_proxy"] is True
        assert config["proxy_url"] == "http://127.0.0.1:8888"

    direct = ResilientFetchClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    async with direct:
        assert direct.proxy_config() == {
            "proxy_url": None,
            "using_proxy": False,
            "message": "No proxy - direct connection",
        }


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_release_the_next_one_early():
    limiter = JitterRateLimiter(0.2, 0.0)
    released = {}

    async def caller(name):
        await limiter.wait()
        released[name] = time.monotonic()

    first = asyncio.create_task(caller("first"))
    middle = asyncio.create_task(caller("middle"))
    last = asyncio.create_task(caller("last"))
    await asyncio.sleep(0.05)
    middle.cancel()
    await asyncio.gather(first, last)
    with pytest.raises(asyncio.CancelledError):
        await middle

    assert "middle" not in released
    assert released["last"] - released["first"] >= 0.2 - 0.005
    assert not limiter.waiting


@pytest.mark.asyncio
async def test_direct_connection_ignores_environment_proxies(monkeypatch):
    monkeypatch.setenv("HTTPS_PROXY", "http://127.0.0.1:9")
    monkeypatch.setenv("ALL_PROXY", "http://127.0.0.1:9")
    monkeypatch.delenv("HTTP_PROXY", raising=False)

    disabled = ResilientFetchClient.from_settings(Settings(fetch={"proxy_url": "none"}))
    unset = ResilientFetchClient()
    async with disabled, unset:
        for fetcher in (disabled, unset):
            assert fetcher.proxy_url is None
            assert fetcher._client._mounts == {}
            assert fetcher.proxy_config()["using_proxy"] is False
