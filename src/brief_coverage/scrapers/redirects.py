from __future__ import annotations

import asyncio
import logging
from typing import Optional
from urllib.parse import urljoin, urlsplit

import httpx

from brief_coverage.scrapers.fetcher_config import RedirectConfig
from brief_coverage.scrapers.url_canonical import canonicalize

logger = logging.getLogger(__name__)

# Shared across tasks for the life of the process; last write wins.
_RESOLVED: dict[str, str] = {}


def clear_redirect_cache() -> None:
    _RESOLVED.clear()


class RedirectResolver:
    """Follow server-side redirects for aggregator links (HEAD, GET on error)."""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        config: Optional[RedirectConfig] = None,
        cache: Optional[dict[str, str]] = None,
    ) -> None:
        self._client = client
        self._config = config or RedirectConfig()
        self._cache = _RESOLVED if cache is None else cache
        self._hosts = {h.lower() for h in self._config.aggregator_hosts}

    def is_aggregator(self, url: str) -> bool:
        try:
            host = (urlsplit(url).hostname or "").lower()
        except Exception:
            return False
        return host in self._hosts

    async def resolve(self, url: str) -> str:
        trimmed = (url or "").strip()
        key = canonicalize(trimmed)
        if not self.is_aggregator(key):
            return trimmed
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        try:
            final = await asyncio.wait_for(self._follow(trimmed), timeout=self._config.timeout_sec)
        except Exception as e:
            logger.warning("redirect_resolve_failed: url=%s error=%s", trimmed, type(e).__name__)
            return key
        resolved = canonicalize(final)
        self._cache[key] = resolved
        logger.debug("redirect_resolved: %s -> %s", key, resolved)
        return resolved

    async def _follow(self, url: str) -> str:
        current = url
        for _ in range(max(1, self._config.max_hops)):
            resp = await self._request(current)
            location = resp.headers.get("location")
            if not (300 <= resp.status_code < 400) or not location:
                break
            current = urljoin(current, location)
        return current

    async def _request(self, url: str) -> httpx.Response:
        headers = {"User-Agent": self._config.user_agent}
        try:
            return await self._client.head(url, headers=headers, follow_redirects=False)
        except httpx.HTTPError:
            return await self._client.get(url, headers=headers, follow_redirects=False)
