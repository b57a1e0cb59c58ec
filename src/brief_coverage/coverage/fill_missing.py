from __future__ import annotations

import datetime
import logging
import uuid
from typing import Optional, Sequence, TypedDict

from brief_coverage.core.agents import AgentConfig
from brief_coverage.core.config import PlaceholderPolicy, get_region
from brief_coverage.coverage.audit import audit_coverage
from brief_coverage.coverage.day import expected_coverage_day_key
from brief_coverage.coverage.fallback import resolve_fallback
from brief_coverage.storage.store import BriefStore
from brief_coverage.utils import to_iso, utc_now

logger = logging.getLogger(__name__)


class FillResult(TypedDict):
    missing: int
    published: int
    skipped: int


async def fill_missing(
    store: BriefStore,
    regions: Sequence[str],
    policy: PlaceholderPolicy,
    *,
    agents: Sequence[AgentConfig],
    now: Optional[datetime.datetime] = None,
    dry_run: bool = False,
    run_id: Optional[str] = None,
) -> FillResult:
    now = now or utc_now()
    run_id = run_id or f"fill-{uuid.uuid4()}"
    by_id = {a.id: a for a in agents}
    result: FillResult = {"missing": 0, "published": 0, "skipped": 0}

    for region in regions:
        region_cfg = get_region(region)
        day_key = expected_coverage_day_key(region, now)
        audit = await audit_coverage(store, [region], day_key, agents=agents)
        result["missing"] += len(audit["missingAgents"])

        for gap in audit["missingAgents"]:
            agent = by_id[gap["agentId"]]
            previous = await store.get_latest_published(agent.portfolio, region, before=now)
            reason = "no-updates" if previous else "generation-failed"
            brief = resolve_fallback(
                agent=agent,
                region=region,
                run_window=region_cfg.run_window,
                reason=reason,
                previous_brief=previous,
                policy=policy,
                now=now,
                day_key=day_key,
            )
            if brief is None:
                result["skipped"] += 1
                logger.warning(
                    "coverage_fill_skipped: reasonCode=placeholder_suppressed runId=%s region=%s portfolio=%s agentId=%s dayKey=%s",
                    run_id,
                    region,
                    agent.portfolio,
                    agent.id,
                    day_key,
                )
                continue

            if dry_run:
                logger.info(
                    "coverage_fill_dry_run: runId=%s region=%s portfolio=%s kind=%s",
                    run_id,
                    region,
                    agent.portfolio,
                    "carry-forward" if "carry-forward" in brief.get("tags", []) else "baseline",
                )
                result["published"] += 1
                continue

            await store.put_brief(brief)
            await store.put_run_record(
                {
                    "runId": run_id,
                    "agentId": agent.id,
                    "region": region,
                    "status": "published",
                    "startedAt": to_iso(now),
                    "finishedAt": to_iso(utc_now()),
                    "postId": brief["postId"],
                }
            )
            result["published"] += 1
            logger.info(
                "coverage_fill_published: runId=%s region=%s portfolio=%s postId=%s reason=%s",
                run_id,
                region,
                agent.portfolio,
                brief["postId"],
                reason,
            )

    logger.info(
        "coverage_fill_done: runId=%s missing=%s published=%s skipped=%s dryRun=%s",
        run_id,
        result["missing"],
        result["published"],
        result["skipped"],
        dry_run,
    )
    return result
