"""Agent (portfolio) catalog, keyword packs and batch selection."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence
from urllib.parse import quote_plus

from brief_coverage.core.config import DEFAULT_REGIONS
from brief_coverage.core.constants import (
    ARTICLES_PER_RUN,
    COMMON_EXCLUDES,
    KEYWORD_MAP,
    PORTFOLIO_EXCLUDES,
    PORTFOLIO_LABELS,
    PORTFOLIO_SOURCES,
    PRIMARY_OVERRIDES,
    REGION_SEARCH_LOCALE,
)
from brief_coverage.models import Feed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeywordPack:
    primary: tuple[str, ...]
    secondary: tuple[str, ...]
    exclude: tuple[str, ...]


@dataclass(frozen=True)
class AgentConfig:
    id: str
    portfolio: str
    label: str
    articles_per_run: int = ARTICLES_PER_RUN
    feeds_by_region: dict[str, list[Feed]] = field(default_factory=dict)
    fallback_feeds_by_region: dict[str, list[Feed]] = field(default_factory=dict)

    def feeds_for(self, region: str) -> list[Feed]:
        return list(self.feeds_by_region.get(region, []))

    def fallback_feeds_for(self, region: str) -> list[Feed]:
        return list(self.fallback_feeds_by_region.get(region, []))


def _unique_ci(values: Iterable[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    out: list[str] = []
    for v in values:
        key = (v or "").strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(v.strip())
    return tuple(out)


def keyword_pack(portfolio: str) -> KeywordPack:
    keywords = KEYWORD_MAP.get(portfolio, [])
    primary = _unique_ci(PRIMARY_OVERRIDES.get(portfolio) or keywords[:4])
    primary_keys = {p.lower() for p in primary}
    secondary = _unique_ci(k for k in keywords if k.lower() not in primary_keys)
    exclude = _unique_ci([*COMMON_EXCLUDES, *PORTFOLIO_EXCLUDES.get(portfolio, [])])
    return KeywordPack(primary=primary, secondary=secondary, exclude=exclude)


def dedupe_feeds(feeds: Iterable[Feed]) -> list[Feed]:
    seen: set[str] = set()
    out: list[Feed] = []
    for feed in feeds:
        key = f"{feed.get('kind', 'rss')}:{(feed.get('url') or '').strip()}"
        if key in seen:
            continue
        seen.add(key)
        out.append(feed)
    return out


def aggregator_search_feed(portfolio: str, region: str) -> Feed:
    terms = PRIMARY_OVERRIDES.get(portfolio) or KEYWORD_MAP.get(portfolio, [])[:4] or [portfolio]
    query = quote_plus(" OR ".join(terms))
    locale = REGION_SEARCH_LOCALE.get(region, REGION_SEARCH_LOCALE["us-mx-la-lng"])
    return {
        "name": f"Google News: {PORTFOLIO_LABELS.get(portfolio, portfolio)}",
        "url": f"https://news.google.com/rss/search?q={query}&{locale}",
        "kind": "rss",
    }


def _feed_from_dict(raw: dict) -> Feed:
    url = str(raw.get("url") or "").strip()
    if not url:
        raise ValueError(f"feed without url: {raw!r}")
    kind = str(raw.get("kind") or raw.get("type") or "rss").strip().lower()
    if kind not in {"rss", "web"}:
        raise ValueError(f"unsupported feed kind: {kind}")
    return {"name": str(raw.get("name") or url), "url": url, "kind": kind}


def build_default_agents(regions: Sequence[str] = DEFAULT_REGIONS) -> list[AgentConfig]:
    agents: list[AgentConfig] = []
    for portfolio, label in PORTFOLIO_LABELS.items():
        feeds_by_region: dict[str, list[Feed]] = {}
        fallback_by_region: dict[str, list[Feed]] = {}
        for region in regions:
            direct = [_feed_from_dict(f) for f in PORTFOLIO_SOURCES.get(portfolio, {}).get(region, [])]
            feeds_by_region[region] = dedupe_feeds([*direct, aggregator_search_feed(portfolio, region)])
            other = [r for r in regions if r != region]
            fallback_by_region[region] = dedupe_feeds(
                _feed_from_dict(f)
                for r in other
                for f in PORTFOLIO_SOURCES.get(portfolio, {}).get(r, [])
            )
        agents.append(
            AgentConfig(
                id=portfolio,
                portfolio=portfolio,
                label=label,
                feeds_by_region=feeds_by_region,
                fallback_feeds_by_region=fallback_by_region,
            )
        )
    return agents


def load_agents(path: str | Path | None = None) -> list[AgentConfig]:
    """Load the agent catalog from a JSON file, or the built-in catalog when no path is given."""
    if not path:
        return build_default_agents()
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    rows = data.get("agents") if isinstance(data, dict) else data
    if not isinstance(rows, list):
        raise ValueError(f"agent catalog must be a list: {path}")

    agents: list[AgentConfig] = []
    for row in rows:
        portfolio = str(row.get("portfolio") or "").strip()
        if not portfolio:
            raise ValueError(f"agent without portfolio: {row!r}")
        feeds_by_region = {
            region: dedupe_feeds(_feed_from_dict(f) for f in feeds)
            for region, feeds in (row.get("feedsByRegion") or {}).items()
        }
        fallback_by_region = {
            region: dedupe_feeds(_feed_from_dict(f) for f in feeds)
            for region, feeds in (row.get("fallbackFeedsByRegion") or {}).items()
        }
        agents.append(
            AgentConfig(
                id=str(row.get("id") or portfolio),
                portfolio=portfolio,
                label=str(row.get("label") or PORTFOLIO_LABELS.get(portfolio, portfolio)),
                articles_per_run=int(row.get("articlesPerRun") or ARTICLES_PER_RUN),
                feeds_by_region=feeds_by_region,
                fallback_feeds_by_region=fallback_by_region,
            )
        )
    logger.info("agents_loaded: path=%s count=%s", path, len(agents))
    return agents


def select_agents(
    agents: Sequence[AgentConfig],
    *,
    ids: Sequence[str] | None = None,
    batch_index: int | None = None,
    batch_count: int | None = None,
) -> list[AgentConfig]:
    by_id = {a.id: a for a in agents}
    if ids:
        picked: list[AgentConfig] = []
        for agent_id in dict.fromkeys(i.strip() for i in ids if i.strip()):
            if agent_id not in by_id:
                raise KeyError(f"unknown agent: {agent_id}")
            picked.append(by_id[agent_id])
        return picked

    ordered = sorted(agents, key=lambda a: a.id)
    if batch_count is None or batch_count <= 1:
        return ordered
    index = (batch_index or 0) % batch_count
    return [a for pos, a in enumerate(ordered) if pos % batch_count == index]
