from __future__ import annotations

import datetime
import logging
from typing import Any, Mapping, Optional

from brief_coverage.core.agents import AgentConfig
from brief_coverage.core.config import PlaceholderPolicy
from brief_coverage.coverage.placeholders import (
    build_carry_forward_brief,
    build_placeholder_brief,
    is_user_visible_placeholder,
)
from brief_coverage.models import Brief, PlaceholderReason

logger = logging.getLogger(__name__)


def resolve_fallback(
    *,
    agent: AgentConfig,
    region: str,
    run_window: str,
    reason: PlaceholderReason,
    previous_brief: Optional[Mapping[str, Any]],
    policy: PlaceholderPolicy,
    now: Optional[datetime.datetime] = None,
    day_key: Optional[str] = None,
) -> Optional[Brief]:
    """Decide how a coverage gap is filled.

    A real previous brief is carried forward. Without one, a baseline
    placeholder is minted only when the policy allows it; otherwise the
    result is None and the caller reports the gap. A previous brief that is
    itself a placeholder or carry-forward counts as no previous brief. The
    result is filed under `day_key` when given, else under the calendar day
    of `now`.
    """
    real_previous = previous_brief if previous_brief and not is_user_visible_placeholder(previous_brief) else None
    if real_previous is not None:
        return build_carry_forward_brief(
            agent=agent,
            region=region,
            run_window=run_window,
            reason=reason,
            previous_brief=real_previous,
            now=now,
            day_key=day_key,
        )
    if not policy.allowed:
        logger.info(
            "fallback_suppressed: agentId=%s region=%s reason=%s policy=%s",
            agent.id,
            region,
            reason,
            policy.source,
        )
        return None
    return build_placeholder_brief(
        agent=agent,
        region=region,
        run_window=run_window,
        reason=reason,
        now=now,
        day_key=day_key,
    )
