from __future__ import annotations

import asyncio
import datetime
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urljoin, urlsplit

import feedparser
import httpx
from bs4 import BeautifulSoup

from brief_coverage.models import ArticleCandidate, Feed
from brief_coverage.processing.types import ParseFunc
from brief_coverage.scrapers.fetcher_config import FEED_ACCEPT, FeedFetcherConfig
from brief_coverage.scrapers.redirects import RedirectResolver
from brief_coverage.utils import clean_text, dedupe_keep_order, parse_datetime_utc, to_iso

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]
ClockFunc = Callable[[], float]

_FEED_PROLOGS = ("<?xml", "<rss", "<feed")

# host -> cooldown expiry (epoch seconds), shared by every fetcher in the process
_COOLDOWN_UNTIL: dict[str, float] = {}


def host_of(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "").lower()
    except Exception:
        return ""


def looks_like_feed_document(body: str) -> bool:
    return (body or "").strip().lower().startswith(_FEED_PROLOGS)


class ProviderCooldown:
    """Best-effort circuit breaker keyed by host."""

    def __init__(
        self,
        *,
        hosts: tuple[str, ...],
        window_sec: float,
        clock: ClockFunc = time.time,
        state: Optional[dict[str, float]] = None,
    ) -> None:
        self._hosts = {h.lower() for h in hosts}
        self._window_sec = window_sec
        self._clock = clock
        self._until = _COOLDOWN_UNTIL if state is None else state

    def applies_to(self, host: str) -> bool:
        h = (host or "").lower()
        return any(h == d or h.endswith("." + d) for d in self._hosts)

    def is_active(self, host: str) -> bool:
        expiry = self._until.get((host or "").lower())
        if expiry is None:
            return False
        if expiry <= self._clock():
            self._until.pop((host or "").lower(), None)
            return False
        return True

    def start(self, host: str, reason: str) -> None:
        expiry = self._clock() + self._window_sec
        self._until[(host or "").lower()] = expiry
        logger.warning("provider_cooldown_start: host=%s reason=%s window_sec=%s", host, reason, self._window_sec)

    def remaining(self, host: str) -> float:
        expiry = self._until.get((host or "").lower())
        return max(0.0, expiry - self._clock()) if expiry else 0.0


@dataclass(frozen=True)
class FeedFetchOutcome:
    items: list[ArticleCandidate]
    status: int = 0
    attempts: int = 0
    error: str = ""
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return not self.error and not self.skipped


def _entry_get(entry: Any, key: str) -> Any:
    if isinstance(entry, dict):
        return entry.get(key)
    return getattr(entry, key, None)


def _entry_link(entry: Any) -> str:
    link = _entry_get(entry, "link")
    if isinstance(link, str) and link.strip():
        return link.strip()
    for ref in _entry_get(entry, "links") or []:
        href = ref.get("href") if isinstance(ref, dict) else getattr(ref, "href", None)
        if isinstance(href, str) and href.strip():
            return href.strip()
    guid = _entry_get(entry, "id") or _entry_get(entry, "guid")
    if isinstance(guid, str) and guid.strip().lower().startswith(("http://", "https://")):
        return guid.strip()
    return ""


def _entry_published(entry: Any) -> str:
    for key in ("published_parsed", "updated_parsed"):
        parsed = _entry_get(entry, key)
        if parsed:
            try:
                dt = datetime.datetime(*parsed[:6], tzinfo=datetime.timezone.utc)
                return to_iso(dt)
            except Exception:
                continue
    for key in ("published", "updated", "pubDate", "dc_date"):
        raw = _entry_get(entry, key)
        if isinstance(raw, str) and raw.strip():
            dt = parse_datetime_utc(raw)
            return to_iso(dt) if dt else raw.strip()
    return ""


def _entry_source(entry: Any, default: str) -> str:
    source = _entry_get(entry, "source")
    title = source.get("title") if isinstance(source, dict) else getattr(source, "title", None)
    return clean_text(title or "") or default


class FeedFetcher:
    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        config: Optional[FeedFetcherConfig] = None,
        cooldown: Optional[ProviderCooldown] = None,
        resolver: Optional[RedirectResolver] = None,
        feed_parser: ParseFunc = feedparser.parse,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._client = client
        self._config = config or FeedFetcherConfig()
        self._cooldown = cooldown or ProviderCooldown(
            hosts=self._config.cooldown_hosts,
            window_sec=self._config.cooldown_minutes * 60,
        )
        self._resolver = resolver
        self._feed_parser = feed_parser
        self._sleep = sleep

    @property
    def cooldown(self) -> ProviderCooldown:
        return self._cooldown

    async def fetch(self, feed: Feed) -> list[ArticleCandidate]:
        outcome = await self.fetch_with_meta(feed)
        return outcome.items

    async def fetch_with_meta(self, feed: Feed) -> FeedFetchOutcome:
        try:
            return await self._fetch(feed)
        except Exception as e:
            logger.exception("feed_fetch_unexpected: url=%s", feed.get("url"))
            return FeedFetchOutcome(items=[], error=f"unexpected:{type(e).__name__}")

    def _headers(self) -> dict[str, str]:
        return {
            "User-Agent": self._config.user_agent,
            "Accept": FEED_ACCEPT,
            "Accept-Language": self._config.accept_language,
            "Cache-Control": "no-cache",
        }

    async def _backoff(self, attempt: int) -> None:
        if attempt < self._config.max_attempts:
            await self._sleep(attempt * self._config.backoff_ms / 1000.0)

    async def _fetch(self, feed: Feed) -> FeedFetchOutcome:
        url = (feed.get("url") or "").strip()
        name = feed.get("name") or url
        host = host_of(url)
        heavy = self._cooldown.applies_to(host)
        last_status = 0
        last_error = ""

        for attempt in range(1, self._config.max_attempts + 1):
            if self._cooldown.is_active(host):
                logger.info(
                    "feed_cooldown_skip: name=%s host=%s remaining_sec=%.0f",
                    name,
                    host,
                    self._cooldown.remaining(host),
                )
                return FeedFetchOutcome(items=[], attempts=attempt - 1, error="cooldown", skipped=True)

            try:
                resp = await self._client.get(
                    url,
                    headers=self._headers(),
                    timeout=self._config.timeout_sec,
                    follow_redirects=True,
                )
            except Exception as e:
                last_error = f"request_error:{type(e).__name__}"
                logger.warning(
                    "feed_fetch_error: name=%s attempt=%s/%s error=%s",
                    name,
                    attempt,
                    self._config.max_attempts,
                    type(e).__name__,
                )
                await self._backoff(attempt)
                continue

            last_status = resp.status_code
            if last_status >= 500:
                last_error = f"http_error:{last_status}"
                logger.warning(
                    "feed_fetch_5xx: name=%s status=%s attempt=%s/%s",
                    name,
                    last_status,
                    attempt,
                    self._config.max_attempts,
                )
                if heavy and last_status in self._config.cooldown_statuses:
                    self._cooldown.start(host, reason=f"http_{last_status}")
                await self._backoff(attempt)
                continue

            if 400 <= last_status < 500:
                logger.warning("feed_fetch_4xx: name=%s status=%s", name, last_status)
                if heavy and last_status == 429:
                    self._cooldown.start(host, reason="http_429")
                return FeedFetchOutcome(items=[], status=last_status, attempts=attempt, error=f"http_error:{last_status}")

            body = resp.text or ""
            if feed.get("kind") == "web":
                items = self._parse_web(body, str(resp.url), name)
            else:
                if not looks_like_feed_document(body):
                    logger.warning("feed_malformed: name=%s status=%s", name, last_status)
                    return FeedFetchOutcome(items=[], status=last_status, attempts=attempt, error="malformed_feed")
                items = self._parse_feed(body, name)

            items = await self._resolve_links(items)
            logger.info("feed_fetch_done: name=%s items=%s attempts=%s", name, len(items), attempt)
            return FeedFetchOutcome(items=items, status=last_status, attempts=attempt)

        if heavy:
            self._cooldown.start(host, reason="retries_exhausted")
        logger.error("feed_fetch_gave_up: name=%s attempts=%s error=%s", name, self._config.max_attempts, last_error)
        return FeedFetchOutcome(
            items=[],
            status=last_status,
            attempts=self._config.max_attempts,
            error=last_error or "retries_exhausted",
        )

    def _parse_feed(self, body: str, source_name: str) -> list[ArticleCandidate]:
        parsed = self._feed_parser(body)
        entries = _entry_get(parsed, "entries") or []
        items: list[ArticleCandidate] = []
        for entry in entries:
            link = _entry_link(entry)
            if not link:
                continue
            item: ArticleCandidate = {
                "title": clean_text(_entry_get(entry, "title") or ""),
                "url": link,
                "score": 0,
                "sourceName": _entry_source(entry, source_name),
            }
            published = _entry_published(entry)
            if published:
                item["publishedAt"] = published
            summary = clean_text(_entry_get(entry, "summary") or _entry_get(entry, "description") or "")
            if summary:
                item["summary"] = summary
            items.append(item)
        return items

    def _parse_web(self, body: str, base_url: str, source_name: str) -> list[ArticleCandidate]:
        soup = BeautifulSoup(body, "html.parser")
        seen: set[str] = set()
        items: list[ArticleCandidate] = []
        for a in soup.find_all("a", href=True):
            href = urljoin(base_url, (a.get("href") or "").strip())
            title = clean_text(a.get_text(" "))
            if not href.lower().startswith(("http://", "https://")) or not title:
                continue
            if href in seen:
                continue
            seen.add(href)
            items.append({"title": title, "url": href, "score": 0, "sourceName": source_name})
            if len(items) >= self._config.web_link_limit:
                break
        return items

    async def _resolve_links(self, items: list[ArticleCandidate]) -> list[ArticleCandidate]:
        if self._resolver is None or not self._config.resolve_links or not items:
            return items
        gate = asyncio.Semaphore(max(1, self._config.resolve_concurrency))

        async def _one(item: ArticleCandidate) -> ArticleCandidate:
            if not self._resolver.is_aggregator(item["url"]):
                return item
            async with gate:
                resolved = await self._resolver.resolve(item["url"])
            return {**item, "url": resolved}

        return list(await asyncio.gather(*(_one(it) for it in items)))


def scanned_feed_urls(feeds: list[Feed]) -> list[str]:
    return dedupe_keep_order((f.get("url") or "").strip() for f in feeds if f.get("url"))
