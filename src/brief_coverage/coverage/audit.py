from __future__ import annotations

import logging
from typing import Any, Sequence

from brief_coverage.core.agents import AgentConfig
from brief_coverage.coverage.day import day_key_for_brief
from brief_coverage.models import Brief, CoverageAuditResult, ExpectedAgentCoverage
from brief_coverage.storage.store import BriefStore

logger = logging.getLogger(__name__)

AUDIT_PAGE_SIZE = 100


def coverage_key(region: str, portfolio: str) -> str:
    return f"{region}:{portfolio}"


def get_expected_agents_for_regions(
    regions: Sequence[str],
    agents: Sequence[AgentConfig],
) -> list[ExpectedAgentCoverage]:
    expected: list[ExpectedAgentCoverage] = []
    for region in regions:
        for agent in agents:
            expected.append(
                {
                    "agentId": agent.id,
                    "portfolio": agent.portfolio,
                    "label": agent.label,
                    "region": region,
                }
            )
    return expected


def _brief_summary(brief: Brief, day_key: str) -> dict[str, Any]:
    return {
        "postId": brief.get("postId"),
        "agentId": brief.get("agentId"),
        "portfolio": brief.get("portfolio"),
        "region": brief.get("region"),
        "title": brief.get("title"),
        "publishedAt": brief.get("publishedAt"),
        "briefDay": day_key,
        "generationStatus": brief.get("generationStatus", "published"),
    }


async def published_briefs_for_day(
    store: BriefStore,
    region: str,
    day_key: str,
    *,
    page_size: int = AUDIT_PAGE_SIZE,
) -> list[Brief]:
    """Walk a region's published briefs newest-first and keep the ones on `day_key`."""
    matched: list[Brief] = []
    seen_target = False
    cursor = None
    pages = 0
    while True:
        page, cursor = await store.list_published_by_region(region, cursor=cursor, limit=page_size)
        pages += 1
        stop = False
        for brief in page:
            key = day_key_for_brief(brief, region)
            if key is None:
                continue
            if key == day_key:
                seen_target = True
                matched.append(brief)
            elif key < day_key or seen_target:
                stop = True
                break
        if stop or not cursor:
            break
    logger.debug("audit_scan: region=%s dayKey=%s pages=%s matched=%s", region, day_key, pages, len(matched))
    return matched


async def audit_coverage(
    store: BriefStore,
    regions: Sequence[str],
    day_key: str,
    *,
    agents: Sequence[AgentConfig],
) -> CoverageAuditResult:
    """Read-only comparison of expected (portfolio, region) pairs against what was published on `day_key`."""
    expected = get_expected_agents_for_regions(regions, agents)
    published: list[dict[str, Any]] = []
    published_keys: set[str] = set()
    for region in regions:
        for brief in await published_briefs_for_day(store, region, day_key):
            published.append(_brief_summary(brief, day_key))
            published_keys.add(coverage_key(region, str(brief.get("portfolio") or "")))

    missing = [e for e in expected if coverage_key(e["region"], e["portfolio"]) not in published_keys]
    logger.info(
        "coverage_audit: dayKey=%s regions=%s expected=%s published=%s missing=%s",
        day_key,
        ",".join(regions),
        len(expected),
        len(published),
        len(missing),
    )
    return {
        "dayKey": day_key,
        "regions": list(regions),
        "expectedAgents": expected,
        "publishedBriefs": published,
        "missingAgents": missing,
    }
