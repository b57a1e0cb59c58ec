from __future__ import annotations

import datetime
import re
import uuid
from typing import Any, Mapping, Optional

from brief_coverage.core.agents import AgentConfig
from brief_coverage.coverage.day import brief_day_key
from brief_coverage.models import Brief, PlaceholderReason
from brief_coverage.storage.records import strip_storage_keys
from brief_coverage.utils import dedupe_keep_order, source_url, to_iso, utc_now

PLACEHOLDER_TAGS = {
    "system-placeholder",
    "baseline",
    "carry-forward",
    "previous",
    "no-updates",
    "generation-failed",
}

PLACEHOLDER_PATTERNS = [
    re.compile(r"baseline coverage", re.IGNORECASE),
    re.compile(r"coverage fallback", re.IGNORECASE),
    re.compile(r"system will retry", re.IGNORECASE),
    re.compile(r"no material change detected", re.IGNORECASE),
    re.compile(r"using (?:the )?(?:most recent|latest) brief", re.IGNORECASE),
    re.compile(r"automated refresh was unavailable", re.IGNORECASE),
    re.compile(r"brief generation failed", re.IGNORECASE),
    re.compile(r"feed refresh in progress", re.IGNORECASE),
]

CARRY_FORWARD_STATUS = {
    "no-updates": "No material change detected today. Carrying forward the most recent brief.",
    "generation-failed": "Automated refresh was unavailable this cycle. Carrying forward the most recent brief.",
}

BASELINE_STATUS = (
    "Baseline coverage is active while the first full intelligence cycle initializes for this portfolio/region."
)


def is_user_visible_placeholder(brief: Optional[Mapping[str, Any]]) -> bool:
    """True when a brief is itself a fallback artifact rather than generated content."""
    if not brief:
        return False
    status = brief.get("generationStatus")
    if status and status != "published":
        return True
    tags = {str(t).strip().lower() for t in brief.get("tags") or []}
    if tags & PLACEHOLDER_TAGS:
        return True
    text = "\n".join(str(brief.get(k) or "") for k in ("title", "summary", "bodyMarkdown"))
    if any(p.search(text) for p in PLACEHOLDER_PATTERNS):
        return True
    return any("example.com" in source_url(s).lower() for s in brief.get("sources") or [])


def build_carry_forward_brief(
    *,
    agent: AgentConfig,
    region: str,
    run_window: str,
    reason: PlaceholderReason,
    previous_brief: Mapping[str, Any],
    now: Optional[datetime.datetime] = None,
    day_key: Optional[str] = None,
) -> Brief:
    now = now or utc_now()
    status_line = CARRY_FORWARD_STATUS[reason]
    previous = strip_storage_keys(previous_brief)
    base_summary = str(previous.get("summary") or "").strip()

    brief: Brief = {
        **previous,
        "postId": str(uuid.uuid4()),
        "title": str(previous.get("title") or agent.label),
        "region": region,
        "portfolio": agent.portfolio,
        "agentId": agent.id,
        "runWindow": run_window,
        "status": "published",
        "generationStatus": reason,
        "publishedAt": to_iso(now),
        "briefDay": day_key or brief_day_key(region, now),
        "summary": f"{status_line} {base_summary}" if base_summary else status_line,
        "bodyMarkdown": f"> {status_line}\n\n{previous.get('bodyMarkdown') or ''}",
        "sources": list(previous.get("sources") or []),
        "tags": dedupe_keep_order([*(previous.get("tags") or []), "carry-forward", reason]),
    }
    return brief


def build_placeholder_brief(
    *,
    agent: AgentConfig,
    region: str,
    run_window: str,
    reason: PlaceholderReason,
    now: Optional[datetime.datetime] = None,
    day_key: Optional[str] = None,
) -> Brief:
    now = now or utc_now()
    title = f"{agent.label} baseline coverage activated for today's cycle"
    body = "\n".join(
        [
            f"# {title}",
            "",
            "## Summary",
            f"- {BASELINE_STATUS}",
            "",
            "## Impact",
            "- Market/Cost drivers: Core category exposure is unchanged until new signals are confirmed.",
            "- Supply base & capacity: Supplier and market scans continue on the configured source set.",
            "- Contracting & commercial terms: Existing assumptions remain in force for this cycle.",
            "",
            "## Possible actions",
            "- Next 72 hours: Review monitored sources for newly published material.",
            "- Next 2-4 weeks: Validate whether baseline assumptions still hold against new data.",
            "",
        ]
    )
    return {
        "postId": str(uuid.uuid4()),
        "title": title,
        "region": region,
        "portfolio": agent.portfolio,
        "agentId": agent.id,
        "runWindow": run_window,
        "status": "published",
        "generationStatus": reason,
        "publishedAt": to_iso(now),
        "briefDay": day_key or brief_day_key(region, now),
        "summary": BASELINE_STATUS,
        "bodyMarkdown": body,
        "sources": [],
        "selectedArticles": [],
        "tags": ["system-placeholder", reason, "baseline"],
    }
