from __future__ import annotations

import asyncio
import datetime
import logging
from typing import Callable, Optional

from brief_coverage.core.agents import AgentConfig
from brief_coverage.core.config import CollectorConfig
from brief_coverage.models import ArticleCandidate, CollectResult, Feed, FeedAttempt
from brief_coverage.processing.scoring import RelevanceScorer
from brief_coverage.scrapers.article_details import ArticleDetailFetcher, DetailResult
from brief_coverage.scrapers.feed_fetcher import FeedFetcher, FeedFetchOutcome, scanned_feed_urls
from brief_coverage.scrapers.url_canonical import canonicalize
from brief_coverage.storage.feed_health import record_feed_attempts
from brief_coverage.storage.store import BriefStore
from brief_coverage.utils import to_iso, utc_now

logger = logging.getLogger(__name__)


def dedupe_by_canonical(items: list[ArticleCandidate]) -> list[ArticleCandidate]:
    """First occurrence of each canonical URL wins."""
    seen: set[str] = set()
    out: list[ArticleCandidate] = []
    for item in items:
        key = canonicalize(item.get("url", ""))
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(item)
    return out


def split_by_history(
    items: list[ArticleCandidate],
    used: set[str],
    minimum: int,
) -> tuple[list[ArticleCandidate], int, int]:
    """Drop recently used items, backfilling from them when fewer than `minimum` remain.

    Returns (pool, excluded_count, backfilled_count). Backfilled items follow
    every fresh item, in discovery order.
    """
    fresh: list[ArticleCandidate] = []
    excluded: list[ArticleCandidate] = []
    for item in items:
        if canonicalize(item.get("url", "")) in used:
            excluded.append(item)
        else:
            fresh.append(item)
    if len(fresh) >= minimum or not excluded:
        return fresh, len(excluded), 0

    needed = minimum - len(fresh)
    backfill = excluded[:needed]
    return fresh + backfill, len(excluded), len(backfill)


def merge_details(item: ArticleCandidate, detail: Optional[DetailResult]) -> ArticleCandidate:
    if detail is None or not detail.ok:
        return item
    merged: ArticleCandidate = {**item}
    if detail.content:
        merged["content"] = detail.content
    if detail.image_url:
        merged["imageUrl"] = detail.image_url
    if detail.published_at and not merged.get("publishedAt"):
        merged["publishedAt"] = detail.published_at
    if detail.canonical_url:
        merged["canonicalUrl"] = detail.canonical_url
    return merged


class HistoryAwareCollector:
    def __init__(
        self,
        *,
        feed_fetcher: FeedFetcher,
        detail_fetcher: ArticleDetailFetcher,
        store: BriefStore,
        config: Optional[CollectorConfig] = None,
        scorer_factory: Callable[[str], RelevanceScorer] = RelevanceScorer.for_portfolio,
        now_provider: Callable[[], datetime.datetime] = utc_now,
    ) -> None:
        self._feed_fetcher = feed_fetcher
        self._detail_fetcher = detail_fetcher
        self._store = store
        self._config = config or CollectorConfig()
        self._scorer_factory = scorer_factory
        self._now = now_provider

    async def _fetch_feeds(
        self,
        agent: AgentConfig,
        region: str,
        feeds: list[Feed],
    ) -> tuple[list[ArticleCandidate], list[FeedAttempt]]:
        outcomes: list[FeedFetchOutcome] = await asyncio.gather(
            *(self._feed_fetcher.fetch_with_meta(feed) for feed in feeds)
        )
        checked_at = to_iso(self._now())
        items: list[ArticleCandidate] = []
        attempts: list[FeedAttempt] = []
        for feed, outcome in zip(feeds, outcomes):
            items.extend(outcome.items)
            attempt: FeedAttempt = {
                "url": feed["url"],
                "name": feed.get("name") or feed["url"],
                "agentId": agent.id,
                "region": region,
                "checkedAt": checked_at,
                "status": "error" if outcome.error else ("ok" if outcome.items else "empty"),
                "itemCount": len(outcome.items),
            }
            if outcome.error:
                attempt["error"] = outcome.error
            attempts.append(attempt)
        return items, attempts

    async def _used_urls(self, agent: AgentConfig, region: str) -> set[str]:
        try:
            return await self._store.get_recently_used_urls(
                agent.portfolio,
                region,
                lookback_days=self._config.lookback_days,
                limit=self._config.used_url_limit,
                now=self._now(),
            )
        except Exception as e:
            logger.warning(
                "used_urls_unavailable: agentId=%s region=%s error=%s",
                agent.id,
                region,
                type(e).__name__,
            )
            return set()

    async def _fetch_details(self, items: list[ArticleCandidate]) -> list[ArticleCandidate]:
        gate = asyncio.Semaphore(max(1, self._config.detail_concurrency))

        async def _one(item: ArticleCandidate) -> ArticleCandidate:
            async with gate:
                try:
                    detail = await self._detail_fetcher.fetch(item["url"])
                except Exception:
                    logger.exception("detail_fetch_unexpected: url=%s", item.get("url"))
                    detail = None
            return merge_details(item, detail)

        return list(await asyncio.gather(*(_one(item) for item in items)))

    async def collect(self, agent: AgentConfig, region: str) -> CollectResult:
        minimum = max(agent.articles_per_run, 1) * self._config.min_multiplier
        feeds = agent.feeds_for(region)
        collected, attempts = await self._fetch_feeds(agent, region, feeds)
        scanned = list(feeds)

        fallback = agent.fallback_feeds_for(region)
        if len(collected) < minimum and fallback:
            logger.info(
                "collect_fallback_feeds: agentId=%s region=%s collected=%s minimum=%s feeds=%s",
                agent.id,
                region,
                len(collected),
                minimum,
                len(fallback),
            )
            extra, extra_attempts = await self._fetch_feeds(agent, region, fallback)
            collected.extend(extra)
            attempts.extend(extra_attempts)
            scanned.extend(fallback)

        deduped = dedupe_by_canonical(collected)
        used = await self._used_urls(agent, region)
        pool, excluded, backfilled = split_by_history(deduped, used, minimum)

        ranked = self._scorer_factory(agent.portfolio).rank(pool)
        top = ranked[: self._config.detail_limit]
        candidates = await self._fetch_details(top)
        extracted = sum(1 for c in candidates if c.get("content"))

        try:
            await record_feed_attempts(self._store, attempts)
        except Exception as e:
            logger.warning("feed_health_write_failed: agentId=%s region=%s error=%s", agent.id, region, type(e).__name__)

        logger.info(
            "collect_done: agentId=%s region=%s collected=%s deduped=%s excluded=%s backfilled=%s selected=%s extracted=%s",
            agent.id,
            region,
            len(collected),
            len(deduped),
            excluded,
            backfilled,
            len(candidates),
            extracted,
        )
        return {
            "candidates": candidates,
            "scannedFeeds": scanned_feed_urls(scanned),
            "metrics": {
                "collected": len(collected),
                "deduped": len(deduped),
                "excluded": excluded,
                "backfilled": backfilled,
                "extracted": extracted,
            },
            "attempts": attempts,
        }
