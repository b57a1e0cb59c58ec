from __future__ import annotations

import asyncio
import datetime

from brief_coverage.core.agents import AgentConfig, KeywordPack
from brief_coverage.core.config import CollectorConfig
from brief_coverage.processing.collector import HistoryAwareCollector, dedupe_by_canonical, split_by_history
from brief_coverage.processing.scoring import RelevanceScorer
from brief_coverage.scrapers.article_details import DetailResult
from brief_coverage.scrapers.feed_fetcher import FeedFetchOutcome
from brief_coverage.storage import MemoryBriefStore

NOW = datetime.datetime(2025, 3, 10, 12, 0, tzinfo=datetime.timezone.utc)

URL_A = "https://publisher.example/used-story"
URL_B = "https://publisher.example/lng-terminal"
URL_C = "https://publisher.example/football"


class _FakeFeedFetcher:
    def __init__(self, items_by_url: dict[str, list[dict]], errors: dict[str, str] | None = None) -> None:
        self._items_by_url = items_by_url
        self._errors = errors or {}
        self.calls: list[str] = []

    async def fetch_with_meta(self, feed: dict) -> FeedFetchOutcome:
        self.calls.append(feed["url"])
        if feed["url"] in self._errors:
            return FeedFetchOutcome(items=[], error=self._errors[feed["url"]])
        return FeedFetchOutcome(items=[dict(i) for i in self._items_by_url.get(feed["url"], [])], status=200)


class _FakeDetailFetcher:
    def __init__(self, failing: set[str] | None = None) -> None:
        self._failing = failing or set()
        self.calls: list[str] = []

    async def fetch(self, url: str) -> DetailResult:
        self.calls.append(url)
        # finish in reverse submission order
        await asyncio.sleep(0.001 * (10 - len(self.calls)))
        if url in self._failing:
            raise RuntimeError("boom")
        return DetailResult(requested_url=url, status=200, content=f"Full text of {url}")


def _item(url: str, title: str) -> dict:
    return {"title": title, "url": url, "score": 0}


def _build_agent(articles_per_run: int = 1, fallback: bool = False) -> AgentConfig:
    feeds = {"au": [{"name": "Wire", "url": "https://feeds.example/wire", "kind": "rss"}]}
    fallback_feeds = {"au": [{"name": "Backup", "url": "https://feeds.example/backup", "kind": "rss"}]} if fallback else {}
    return AgentConfig(
        id="lng-agent",
        portfolio="lng",
        label="LNG",
        articles_per_run=articles_per_run,
        feeds_by_region=feeds,
        fallback_feeds_by_region=fallback_feeds,
    )


def _build_store_with_history() -> MemoryBriefStore:
    store = MemoryBriefStore()
    asyncio.run(
        store.put_brief(
            {
                "postId": "prev-1",
                "title": "Previous LNG brief",
                "region": "au",
                "portfolio": "lng",
                "runWindow": "apac",
                "status": "published",
                "publishedAt": "2025-03-09T12:00:00.000Z",
                "bodyMarkdown": f"[A]({URL_A})",
                "sources": [URL_A],
                "selectedArticles": [{"url": URL_A + "?utm_source=rss", "title": "A", "sourceIndex": 1}],
            }
        )
    )
    return store


def _build_collector(feed_fetcher, store, detail_fetcher=None) -> HistoryAwareCollector:
    pack = KeywordPack(primary=("lng",), secondary=("terminal",), exclude=("football",))
    return HistoryAwareCollector(
        feed_fetcher=feed_fetcher,
        detail_fetcher=detail_fetcher or _FakeDetailFetcher(),
        store=store,
        config=CollectorConfig(detail_limit=10, detail_concurrency=4, lookback_days=7, used_url_limit=200),
        scorer_factory=lambda portfolio: RelevanceScorer(pack=pack),
        now_provider=lambda: NOW,
    )


def test_used_item_is_filtered_and_rest_ranked() -> None:
    items = [
        _item(URL_A, "Old LNG story"),
        _item(URL_B, "LNG terminal expansion"),
        _item(URL_C, "Local football results"),
    ]
    fetcher = _FakeFeedFetcher({"https://feeds.example/wire": items})
    collector = _build_collector(fetcher, _build_store_with_history())

    result = asyncio.run(collector.collect(_build_agent(articles_per_run=1), "au"))

    assert [c["url"] for c in result["candidates"]] == [URL_B, URL_C]
    assert result["metrics"]["excluded"] == 1
    assert result["metrics"]["backfilled"] == 0
    assert result["scannedFeeds"] == ["https://feeds.example/wire"]


def test_backfill_reintroduces_used_item_when_short() -> None:
    items = [
        _item(URL_A, "Old LNG story"),
        _item(URL_B, "LNG terminal expansion"),
        _item(URL_C, "Local football results"),
    ]
    fetcher = _FakeFeedFetcher({"https://feeds.example/wire": items})
    collector = _build_collector(fetcher, _build_store_with_history())

    result = asyncio.run(collector.collect(_build_agent(articles_per_run=3), "au"))

    assert [c["url"] for c in result["candidates"]] == [URL_B, URL_A, URL_C]
    assert result["metrics"]["backfilled"] == 1


def test_tracking_and_slash_variants_collapse_to_one() -> None:
    items = [
        _item("https://publisher.example/x?utm_source=a", "LNG one"),
        _item("https://publisher.example/x/", "LNG one again"),
        _item("https://publisher.example/y", "LNG two"),
    ]
    fetcher = _FakeFeedFetcher({"https://feeds.example/wire": items})
    collector = _build_collector(fetcher, MemoryBriefStore())

    result = asyncio.run(collector.collect(_build_agent(), "au"))

    assert [c["url"] for c in result["candidates"]] == [
        "https://publisher.example/x?utm_source=a",
        "https://publisher.example/y",
    ]
    assert result["metrics"]["collected"] == 3
    assert result["metrics"]["deduped"] == 2


def test_detail_failure_keeps_item_and_order() -> None:
    items = [_item(f"https://publisher.example/{n}", f"LNG item {n}") for n in range(6)]
    fetcher = _FakeFeedFetcher({"https://feeds.example/wire": items})
    details = _FakeDetailFetcher(failing={"https://publisher.example/2"})
    collector = _build_collector(fetcher, MemoryBriefStore(), details)

    result = asyncio.run(collector.collect(_build_agent(), "au"))

    urls = [c["url"] for c in result["candidates"]]
    assert urls == [i["url"] for i in items]
    failed = result["candidates"][2]
    assert "content" not in failed
    assert result["candidates"][0]["content"] == "Full text of https://publisher.example/0"
    assert result["metrics"]["extracted"] == 5


def test_detail_fetch_limited_to_top_ten() -> None:
    items = [_item(f"https://publisher.example/{n}", f"LNG item {n}") for n in range(14)]
    fetcher = _FakeFeedFetcher({"https://feeds.example/wire": items})
    details = _FakeDetailFetcher()
    collector = _build_collector(fetcher, MemoryBriefStore(), details)

    result = asyncio.run(collector.collect(_build_agent(), "au"))

    assert len(result["candidates"]) == 10
    assert len(details.calls) == 10


def test_fallback_feeds_used_when_short_and_health_recorded() -> None:
    fetcher = _FakeFeedFetcher(
        {"https://feeds.example/backup": [_item(URL_B, "LNG terminal expansion")]},
        errors={"https://feeds.example/wire": "http_error:503"},
    )
    store = MemoryBriefStore()
    collector = _build_collector(fetcher, store)

    result = asyncio.run(collector.collect(_build_agent(fallback=True), "au"))

    assert fetcher.calls == ["https://feeds.example/wire", "https://feeds.example/backup"]
    assert [c["url"] for c in result["candidates"]] == [URL_B]
    assert [a["status"] for a in result["attempts"]] == ["error", "ok"]
    health = asyncio.run(store.get_feed_health())
    assert health["https://feeds.example/wire"]["consecutiveFailures"] == 1
    assert health["https://feeds.example/backup"]["consecutiveSuccess"] == 1


def test_store_failure_degrades_to_no_history() -> None:
    class _BrokenStore(MemoryBriefStore):
        async def get_recently_used_urls(self, *args, **kwargs):
            raise ConnectionError("store down")

    items = [_item(URL_A, "Old LNG story"), _item(URL_B, "LNG terminal expansion")]
    fetcher = _FakeFeedFetcher({"https://feeds.example/wire": items})
    collector = _build_collector(fetcher, _BrokenStore())

    result = asyncio.run(collector.collect(_build_agent(), "au"))

    assert [c["url"] for c in result["candidates"]] == [URL_B, URL_A]
    assert result["metrics"]["excluded"] == 0


def test_dedupe_by_canonical_first_wins() -> None:
    items = [_item("https://a.test/x/", "first"), _item("https://A.test/x#frag", "second")]
    assert [i["title"] for i in dedupe_by_canonical(items)] == ["first"]


def test_split_by_history_appends_backfill_after_fresh_items() -> None:
    items = [_item("https://a.test/1", "1"), _item("https://a.test/2", "2"), _item("https://a.test/3", "3")]
    used = {"https://a.test/1", "https://a.test/3"}
    pool, excluded, backfilled = split_by_history(items, used, minimum=2)
    assert [i["url"] for i in pool] == ["https://a.test/2", "https://a.test/1"]
    assert (excluded, backfilled) == (2, 1)
