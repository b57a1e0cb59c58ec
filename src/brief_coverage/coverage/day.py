from __future__ import annotations

import datetime
from typing import Any, Mapping, Optional
from zoneinfo import ZoneInfo

from brief_coverage.core.config import get_region
from brief_coverage.utils import parse_datetime_utc, utc_now


def brief_day_key(region: str, at: datetime.datetime) -> str:
    """YYYY-MM-DD of `at` in the region's local calendar."""
    zone = ZoneInfo(get_region(region).timezone)
    if at.tzinfo is None:
        at = at.replace(tzinfo=datetime.timezone.utc)
    return at.astimezone(zone).strftime("%Y-%m-%d")


def expected_coverage_day_key(region: str, now: Optional[datetime.datetime] = None) -> str:
    """Day-key a region should have coverage for; before the cutoff hour this is still yesterday."""
    now = now or utc_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=datetime.timezone.utc)
    cfg = get_region(region)
    local = now.astimezone(ZoneInfo(cfg.timezone))
    if local.hour < cfg.cutoff_hour:
        return brief_day_key(region, now - datetime.timedelta(hours=24))
    return local.strftime("%Y-%m-%d")


def day_key_for_brief(brief: Mapping[str, Any], region: Optional[str] = None) -> Optional[str]:
    day = brief.get("briefDay")
    if isinstance(day, str) and day:
        return day
    published = parse_datetime_utc(str(brief.get("publishedAt") or ""))
    if published is None:
        return None
    return brief_day_key(region or str(brief.get("region") or ""), published)
