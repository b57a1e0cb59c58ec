from __future__ import annotations

import asyncio

import httpx

from brief_coverage.scrapers.feed_fetcher import FeedFetcher, ProviderCooldown, looks_like_feed_document
from brief_coverage.scrapers.fetcher_config import FeedFetcherConfig

RSS_BODY = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Energy wire</title>
    <item>
      <title>LNG terminal expansion approved</title>
      <link>https://publisher.example/lng-terminal</link>
      <description>&lt;p&gt;Capacity grows&lt;/p&gt;</description>
      <pubDate>Mon, 10 Mar 2025 09:00:00 +0000</pubDate>
    </item>
    <item>
      <title>Rig count steady</title>
      <link>https://publisher.example/rig-count</link>
    </item>
  </channel>
</rss>
"""


class _Clock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _build_fetcher(handler, *, clock: _Clock | None = None, sleeps: list[float] | None = None):
    config = FeedFetcherConfig(cooldown_hosts=("news.google.com",), cooldown_minutes=30, resolve_links=False)
    cooldown = ProviderCooldown(
        hosts=config.cooldown_hosts,
        window_sec=config.cooldown_minutes * 60,
        clock=clock or _Clock(),
        state={},
    )

    async def _sleep(delay: float) -> None:
        if sleeps is not None:
            sleeps.append(delay)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client, FeedFetcher(client=client, config=config, cooldown=cooldown, sleep=_sleep)


def test_429_from_heavy_provider_starts_cooldown_and_skips_next_call() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(429)

    feed = {"name": "Aggregator", "url": "https://news.google.com/rss/search?q=lng", "kind": "rss"}

    async def _run():
        client, fetcher = _build_fetcher(handler)
        async with client:
            first = await fetcher.fetch_with_meta(feed)
            second = await fetcher.fetch_with_meta(feed)
        return fetcher, first, second

    fetcher, first, second = asyncio.run(_run())
    assert first.items == [] and first.error == "http_error:429"
    assert second.items == [] and second.error == "cooldown" and second.skipped
    assert len(calls) == 1
    assert fetcher.cooldown.is_active("news.google.com")


def test_cooldown_expires_after_window() -> None:
    clock = _Clock()
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(429)

    feed = {"name": "Aggregator", "url": "https://news.google.com/rss/search?q=rig", "kind": "rss"}

    async def _run() -> None:
        client, fetcher = _build_fetcher(handler, clock=clock)
        async with client:
            await fetcher.fetch(feed)
            clock.now += 31 * 60
            await fetcher.fetch(feed)

    asyncio.run(_run())
    assert len(calls) == 2


def test_429_from_other_host_does_not_cooldown() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(429)

    feed = {"name": "Publisher", "url": "https://feeds.publisher.example/rss", "kind": "rss"}

    async def _run() -> None:
        client, fetcher = _build_fetcher(handler)
        async with client:
            assert await fetcher.fetch(feed) == []
            assert await fetcher.fetch(feed) == []

    asyncio.run(_run())
    assert len(calls) == 2


def test_5xx_retries_with_linear_backoff_then_parses() -> None:
    statuses = [503, 502, 200]
    sleeps: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        status = statuses.pop(0)
        if status != 200:
            return httpx.Response(status)
        return httpx.Response(200, text=RSS_BODY, headers={"content-type": "application/rss+xml"})

    feed = {"name": "Energy wire", "url": "https://feeds.publisher.example/rss", "kind": "rss"}

    async def _run():
        client, fetcher = _build_fetcher(handler, sleeps=sleeps)
        async with client:
            return await fetcher.fetch_with_meta(feed)

    outcome = asyncio.run(_run())
    assert sleeps == [1.0, 2.0]
    assert outcome.ok and outcome.attempts == 3
    assert [i["url"] for i in outcome.items] == [
        "https://publisher.example/lng-terminal",
        "https://publisher.example/rig-count",
    ]
    first = outcome.items[0]
    assert first["title"] == "LNG terminal expansion approved"
    assert first["summary"] == "Capacity grows"
    assert first["publishedAt"] == "2025-03-10T09:00:00.000Z"
    assert first["sourceName"] == "Energy wire"


def test_5xx_exhausts_retries_and_returns_empty() -> None:
    calls: list[str] = []
    sleeps: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(500)

    feed = {"name": "Flaky", "url": "https://feeds.publisher.example/flaky", "kind": "rss"}

    async def _run():
        client, fetcher = _build_fetcher(handler, sleeps=sleeps)
        async with client:
            return await fetcher.fetch_with_meta(feed)

    outcome = asyncio.run(_run())
    assert outcome.items == []
    assert outcome.error == "http_error:500"
    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]


def test_5xx_from_heavy_provider_cools_down_before_retry() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(503)

    feed = {"name": "Aggregator", "url": "https://news.google.com/rss/search?q=octg", "kind": "rss"}

    async def _run():
        client, fetcher = _build_fetcher(handler, sleeps=[])
        async with client:
            return await fetcher.fetch_with_meta(feed)

    outcome = asyncio.run(_run())
    assert len(calls) == 1
    assert outcome.error == "cooldown"


def test_4xx_is_not_retried() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(404)

    feed = {"name": "Gone", "url": "https://feeds.publisher.example/gone", "kind": "rss"}

    async def _run():
        client, fetcher = _build_fetcher(handler)
        async with client:
            return await fetcher.fetch_with_meta(feed)

    outcome = asyncio.run(_run())
    assert len(calls) == 1
    assert outcome.status == 404 and outcome.items == []


def test_malformed_body_is_abandoned() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(200, text="<html><body>Please enable JavaScript</body></html>")

    feed = {"name": "Not a feed", "url": "https://feeds.publisher.example/html", "kind": "rss"}

    async def _run():
        client, fetcher = _build_fetcher(handler)
        async with client:
            return await fetcher.fetch_with_meta(feed)

    outcome = asyncio.run(_run())
    assert outcome.error == "malformed_feed"
    assert len(calls) == 1


def test_transport_error_is_retried_and_contained() -> None:
    sleeps: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    feed = {"name": "Down", "url": "https://feeds.publisher.example/down", "kind": "rss"}

    async def _run():
        client, fetcher = _build_fetcher(handler, sleeps=sleeps)
        async with client:
            return await fetcher.fetch_with_meta(feed)

    outcome = asyncio.run(_run())
    assert outcome.items == []
    assert outcome.error == "request_error:ConnectError"
    assert sleeps == [1.0, 2.0]


def test_web_feed_collects_anchor_links() -> None:
    html = """
    <html><body>
      <a href="/news/one">Rig contract awarded</a>
      <a href="https://other.example/two">Subsea tieback sanctioned</a>
      <a href="/news/one">Rig contract awarded</a>
      <a href="javascript:void(0)">Menu</a>
      <a href="/empty"></a>
    </body></html>
    """

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=html, headers={"content-type": "text/html"})

    feed = {"name": "Newsroom", "url": "https://publisher.example/newsroom", "kind": "web"}

    async def _run():
        client, fetcher = _build_fetcher(handler)
        async with client:
            return await fetcher.fetch(feed)

    items = asyncio.run(_run())
    assert [i["url"] for i in items] == [
        "https://publisher.example/news/one",
        "https://other.example/two",
    ]
    assert items[0]["sourceName"] == "Newsroom"


def test_looks_like_feed_document() -> None:
    assert looks_like_feed_document("  <?xml version='1.0'?><rss/>")
    assert looks_like_feed_document("<feed xmlns='http://www.w3.org/2005/Atom'></feed>")
    assert not looks_like_feed_document("<!doctype html><html></html>")
