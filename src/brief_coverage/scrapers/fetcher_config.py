from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple

from brief_coverage.core.config import DEFAULT_USER_AGENT, _env_bool, _env_csv, _env_float, _env_int

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*;q=0.8"
HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


@dataclass(frozen=True)
class FeedFetcherConfig:
    max_attempts: int = _env_int("FEED_FETCH_MAX_ATTEMPTS", 3)
    backoff_ms: int = _env_int("FEED_FETCH_BACKOFF_MS", 1000)
    timeout_sec: float = _env_float("FEED_FETCH_TIMEOUT_SEC", 10.0)
    cooldown_minutes: int = _env_int("FEED_COOLDOWN_MINUTES", 30)
    cooldown_hosts: Tuple[str, ...] = _env_csv("FEED_COOLDOWN_HOSTS", ("news.google.com",))
    cooldown_statuses: Tuple[int, ...] = (500, 502, 503, 504)
    web_link_limit: int = _env_int("FEED_WEB_LINK_LIMIT", 20)
    resolve_links: bool = _env_bool("FEED_RESOLVE_LINKS", True)
    resolve_concurrency: int = _env_int("FEED_RESOLVE_CONCURRENCY", 4)
    user_agent: str = os.getenv("FEED_FETCH_USER_AGENT", DEFAULT_USER_AGENT)
    accept_language: str = "en-US,en;q=0.9"


@dataclass(frozen=True)
class RedirectConfig:
    max_hops: int = _env_int("REDIRECT_MAX_HOPS", 3)
    timeout_sec: float = _env_float("REDIRECT_TIMEOUT_SEC", 6.0)
    aggregator_hosts: Tuple[str, ...] = ("news.google.com", "www.news.google.com")
    user_agent: str = DEFAULT_USER_AGENT


@dataclass(frozen=True)
class DetailFetcherConfig:
    timeout_sec: float = _env_float("COLLECT_DETAIL_TIMEOUT_SEC", 8.0)
    max_chars: int = _env_int("COLLECT_DETAIL_MAX_CHARS", 12000)
    min_text_chars: int = _env_int("COLLECT_DETAIL_MIN_CHARS", 80)
    user_agent: str = DEFAULT_USER_AGENT
