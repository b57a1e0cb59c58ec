from __future__ import annotations

import asyncio
import copy
import datetime
import logging
from typing import Any, Iterable, Optional, Protocol

from brief_coverage.models import Brief, FeedHealthEntry, RunRecord
from brief_coverage.scrapers.url_canonical import canonicalize
from brief_coverage.storage.records import build_brief_record, build_run_record, strip_storage_keys
from brief_coverage.utils import atomic_write_json, parse_datetime_utc, safe_read_json, source_url, utc_now

logger = logging.getLogger(__name__)

_EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)


def _published_at(record: dict[str, Any]) -> datetime.datetime:
    return parse_datetime_utc(str(record.get("publishedAt") or "")) or _EPOCH


def brief_urls(record: dict[str, Any]) -> list[str]:
    urls: list[str] = []
    for article in record.get("selectedArticles") or []:
        if isinstance(article, dict) and article.get("url"):
            urls.append(str(article["url"]))
    for source in record.get("sources") or []:
        url = source_url(source)
        if url:
            urls.append(url)
    return urls


class BriefExistsError(ValueError):
    """Raised when a write would replace a stored brief. Briefs are immutable once written."""

    def __init__(self, post_id: str) -> None:
        self.post_id = post_id
        super().__init__(f"brief_exists: postId={post_id}")


class BriefStore(Protocol):
    async def put_brief(self, brief: Brief) -> dict[str, Any]: ...

    async def list_published_by_region(
        self, region: str, *, cursor: Optional[str] = None, limit: int = 100
    ) -> tuple[list[Brief], Optional[str]]: ...

    async def get_latest_published(
        self, portfolio: str, region: str, *, before: Optional[datetime.datetime] = None
    ) -> Optional[Brief]: ...

    async def get_recently_used_urls(
        self,
        portfolio: str,
        region: str,
        *,
        lookback_days: int,
        limit: Optional[int] = None,
        now: Optional[datetime.datetime] = None,
    ) -> set[str]: ...

    async def put_run_record(self, run: RunRecord) -> None: ...

    async def get_feed_health(self) -> dict[str, FeedHealthEntry]: ...

    async def put_feed_health(self, entries: Iterable[FeedHealthEntry]) -> None: ...


class MemoryBriefStore:
    """Record store held in process memory. Reads and writes exchange copies."""

    def __init__(self) -> None:
        self._briefs: dict[str, dict[str, Any]] = {}
        self._runs: dict[str, dict[str, Any]] = {}
        self._feed_health: dict[str, FeedHealthEntry] = {}

    async def _persist(self) -> None:
        return None

    def _newest_first(self, records: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        return sorted(records, key=lambda r: (_published_at(r), str(r.get("postId") or "")), reverse=True)

    async def put_brief(self, brief: Brief) -> dict[str, Any]:
        record = build_brief_record(brief)
        if record["PK"] in self._briefs:
            raise BriefExistsError(record["postId"])
        self._briefs[record["PK"]] = record
        await self._persist()
        logger.info(
            "brief_stored: postId=%s portfolio=%s region=%s status=%s",
            record["postId"],
            record["portfolio"],
            record["region"],
            record["status"],
        )
        return copy.deepcopy(record)

    async def list_published_by_region(
        self,
        region: str,
        *,
        cursor: Optional[str] = None,
        limit: int = 100,
    ) -> tuple[list[Brief], Optional[str]]:
        rows = self._newest_first(
            r
            for r in self._briefs.values()
            if r.get("GSI2PK") == f"REGION#{region}" and r.get("GSI3PK") == "STATUS#published"
        )
        start = int(cursor or 0)
        end = start + max(1, limit)
        page = [strip_storage_keys(r) for r in rows[start:end]]
        return page, (str(end) if end < len(rows) else None)

    async def get_latest_published(
        self,
        portfolio: str,
        region: str,
        *,
        before: Optional[datetime.datetime] = None,
    ) -> Optional[Brief]:
        cutoff = before or utc_now()
        rows = self._newest_first(
            r
            for r in self._briefs.values()
            if r.get("GSI1PK") == f"PORTFOLIO#{portfolio}"
            and r.get("region") == region
            and r.get("status") == "published"
            and _published_at(r) < cutoff
        )
        return strip_storage_keys(rows[0]) if rows else None

    async def get_recently_used_urls(
        self,
        portfolio: str,
        region: str,
        *,
        lookback_days: int,
        limit: Optional[int] = None,
        now: Optional[datetime.datetime] = None,
    ) -> set[str]:
        since = (now or utc_now()) - datetime.timedelta(days=max(lookback_days, 1))
        used: set[str] = set()
        rows = self._newest_first(
            r
            for r in self._briefs.values()
            if r.get("GSI1PK") == f"PORTFOLIO#{portfolio}"
            and r.get("region") == region
            and r.get("status") == "published"
            and _published_at(r) >= since
        )
        for row in rows:
            for url in brief_urls(row):
                key = canonicalize(url)
                if key:
                    used.add(key)
            if limit and len(used) >= limit:
                break
        return used

    async def put_run_record(self, run: RunRecord) -> None:
        record = build_run_record(run)
        self._runs[f"{record['PK']}|{record['SK']}"] = record
        await self._persist()

    async def list_run_records(self) -> list[RunRecord]:
        return [strip_storage_keys(r) for r in self._runs.values()]

    async def get_feed_health(self) -> dict[str, FeedHealthEntry]:
        return copy.deepcopy(self._feed_health)

    async def put_feed_health(self, entries: Iterable[FeedHealthEntry]) -> None:
        for entry in entries:
            self._feed_health[entry["url"]] = copy.deepcopy(entry)
        await self._persist()

    def _snapshot(self) -> dict[str, Any]:
        return {
            "version": 1,
            "briefs": list(self._briefs.values()),
            "runs": list(self._runs.values()),
            "feedHealth": self._feed_health,
        }

    def _restore(self, data: Any) -> None:
        if not isinstance(data, dict):
            return
        for record in data.get("briefs") or []:
            if isinstance(record, dict) and record.get("postId"):
                rebuilt = build_brief_record(record)
                self._briefs[rebuilt["PK"]] = rebuilt
        for record in data.get("runs") or []:
            if isinstance(record, dict) and record.get("PK"):
                self._runs[f"{record['PK']}|{record.get('SK', '')}"] = record
        health = data.get("feedHealth")
        if isinstance(health, dict):
            self._feed_health = {k: v for k, v in health.items() if isinstance(v, dict)}


class JsonFileBriefStore(MemoryBriefStore):
    """MemoryBriefStore mirrored to a JSON file after every write."""

    def __init__(self, path: str) -> None:
        super().__init__()
        self._path = path
        self._write_lock = asyncio.Lock()
        self._restore(safe_read_json(path, {}))
        logger.info("store_loaded: path=%s briefs=%s", path, len(self._briefs))

    @property
    def path(self) -> str:
        return self._path

    async def _persist(self) -> None:
        async with self._write_lock:
            payload = copy.deepcopy(self._snapshot())
            await asyncio.to_thread(atomic_write_json, self._path, payload)
