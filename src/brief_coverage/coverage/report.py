from __future__ import annotations

import datetime
from typing import Optional, Sequence

from brief_coverage.core.agents import AgentConfig
from brief_coverage.coverage.audit import get_expected_agents_for_regions
from brief_coverage.coverage.day import day_key_for_brief, expected_coverage_day_key
from brief_coverage.models import Brief, CoverageRow, CoverageStatus
from brief_coverage.storage.store import BriefStore
from brief_coverage.utils import utc_now

_CARRY_FORWARD_STATUSES = {"no-updates", "generation-failed"}


def classify_latest(latest: Optional[Brief], has_brief_today: bool) -> CoverageStatus:
    if latest is None:
        return "no-history"
    if not has_brief_today:
        return "stale"
    tags = {str(t).lower() for t in latest.get("tags") or []}
    if "baseline" in tags:
        return "baseline"
    if latest.get("generationStatus") in _CARRY_FORWARD_STATUSES or "carry-forward" in tags:
        return "carry-forward"
    return "published"


async def build_coverage_report(
    store: BriefStore,
    regions: Sequence[str],
    *,
    agents: Sequence[AgentConfig],
    now: Optional[datetime.datetime] = None,
) -> list[CoverageRow]:
    now = now or utc_now()
    expected_day = {region: expected_coverage_day_key(region, now) for region in regions}
    rows: list[CoverageRow] = []
    for expected in get_expected_agents_for_regions(regions, agents):
        region = expected["region"]
        latest = await store.get_latest_published(expected["portfolio"], region, before=now)
        day_key = day_key_for_brief(latest, region) if latest else None
        has_today = bool(day_key and day_key == expected_day[region])
        rows.append(
            {
                "agentId": expected["agentId"],
                "portfolio": expected["portfolio"],
                "region": region,
                "hasBriefToday": has_today,
                "latestPublishedAt": str(latest.get("publishedAt")) if latest else "never",
                "status": classify_latest(latest, has_today),
            }
        )
    rows.sort(key=lambda r: f"{r['region']}:{r['portfolio']}")
    return rows


def format_report_table(rows: Sequence[CoverageRow]) -> str:
    headers = ["Agent", "Portfolio", "Region", "HasToday", "Status", "LatestPublished"]
    cells = [
        [r["agentId"], r["portfolio"], r["region"], "yes" if r["hasBriefToday"] else "no", r["status"], r["latestPublishedAt"]]
        for r in rows
    ]
    widths = [max([len(headers[i])] + [len(c[i]) for c in cells]) for i in range(len(headers))]

    def _line(values: list[str]) -> str:
        return " | ".join(v.ljust(widths[i]) for i, v in enumerate(values))

    lines = [_line(headers), "-+-".join("-" * w for w in widths)]
    lines.extend(_line(c) for c in cells)
    return "\n".join(lines)
