from __future__ import annotations

import logging
from typing import Iterable, Optional

from brief_coverage.models import FeedAttempt, FeedHealthEntry
from brief_coverage.storage.store import BriefStore

logger = logging.getLogger(__name__)


def normalize_feed_url(url: str) -> str:
    return (url or "").strip()


def risk_score(entry: FeedHealthEntry) -> int:
    return entry.get("consecutiveFailures", 0) * 100 + entry.get("consecutiveEmpty", 0) * 10


def next_entry(previous: Optional[FeedHealthEntry], attempt: FeedAttempt) -> FeedHealthEntry:
    """Fold one fetch attempt into the running health entry for its feed."""
    base = previous or {
        "consecutiveFailures": 0,
        "consecutiveEmpty": 0,
        "consecutiveSuccess": 0,
        "totalChecks": 0,
        "totalItems": 0,
    }
    updated: FeedHealthEntry = {
        "url": normalize_feed_url(attempt["url"]),
        "name": attempt["name"],
        "lastAgentId": attempt["agentId"],
        "lastRegion": attempt["region"],
        "lastCheckedAt": attempt["checkedAt"],
        "lastStatus": attempt["status"],
        "consecutiveFailures": base.get("consecutiveFailures", 0),
        "consecutiveEmpty": base.get("consecutiveEmpty", 0),
        "consecutiveSuccess": base.get("consecutiveSuccess", 0),
        "totalChecks": base.get("totalChecks", 0) + 1,
        "totalItems": base.get("totalItems", 0) + max(0, attempt.get("itemCount", 0)),
    }
    if attempt.get("error"):
        updated["lastError"] = attempt["error"]
    if base.get("lastSuccessAt"):
        updated["lastSuccessAt"] = base["lastSuccessAt"]

    status = attempt["status"]
    if status == "ok":
        updated["lastSuccessAt"] = attempt["checkedAt"]
        updated["consecutiveSuccess"] += 1
        updated["consecutiveFailures"] = 0
        updated["consecutiveEmpty"] = 0
    elif status == "empty":
        updated["consecutiveSuccess"] = 0
        updated["consecutiveEmpty"] += 1
        updated["consecutiveFailures"] = 0
    else:
        updated["consecutiveSuccess"] = 0
        updated["consecutiveEmpty"] = 0
        updated["consecutiveFailures"] += 1
    return updated


async def record_feed_attempts(store: BriefStore, attempts: Iterable[FeedAttempt]) -> list[FeedHealthEntry]:
    attempts = list(attempts)
    if not attempts:
        return []
    current = await store.get_feed_health()
    changed: dict[str, FeedHealthEntry] = {}
    for attempt in attempts:
        key = normalize_feed_url(attempt["url"])
        entry = next_entry(changed.get(key) or current.get(key), attempt)
        changed[key] = entry
        if entry["consecutiveFailures"] >= 3:
            logger.warning(
                "feed_health_degraded: url=%s consecutive_failures=%s last_error=%s",
                key,
                entry["consecutiveFailures"],
                entry.get("lastError", ""),
            )
    await store.put_feed_health(changed.values())
    return list(changed.values())


def feed_health_snapshot(entries: Iterable[FeedHealthEntry], limit: Optional[int] = None) -> list[FeedHealthEntry]:
    ordered = sorted(entries, key=lambda e: e.get("lastCheckedAt", ""), reverse=True)
    ordered = sorted(ordered, key=risk_score, reverse=True)
    return ordered[:limit] if limit else ordered
