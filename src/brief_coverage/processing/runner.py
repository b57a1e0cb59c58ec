from __future__ import annotations

import asyncio
import datetime
import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import httpx

from brief_coverage.core.agents import AgentConfig
from brief_coverage.core.config import CollectorConfig, get_region
from brief_coverage.coverage.day import brief_day_key
from brief_coverage.export.validators.citations import assert_valid
from brief_coverage.models import Brief, RunRecord
from brief_coverage.processing.collector import HistoryAwareCollector
from brief_coverage.processing.types import GenerateFunc
from brief_coverage.scrapers.article_details import ArticleDetailFetcher
from brief_coverage.scrapers.feed_fetcher import FeedFetcher
from brief_coverage.scrapers.fetcher_config import FeedFetcherConfig
from brief_coverage.scrapers.redirects import RedirectResolver
from brief_coverage.storage.store import BriefStore
from brief_coverage.utils import to_iso, utc_now

logger = logging.getLogger(__name__)


@dataclass
class RunOutcome:
    agent_id: str
    region: str
    run_id: str
    status: str
    post_id: Optional[str] = None
    error: Optional[str] = None
    metrics: dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "published"


class AgentRunner:
    """One (portfolio, region) run: collect, generate, validate, persist.

    A run never raises. Any failure becomes a failed run record and a
    RunOutcome with status "failed"; the pair is then a coverage gap.
    """

    def __init__(
        self,
        *,
        collector: HistoryAwareCollector,
        store: BriefStore,
        generate: GenerateFunc,
        now_provider: Callable[[], datetime.datetime] = utc_now,
    ) -> None:
        self._collector = collector
        self._store = store
        self._generate = generate
        self._now = now_provider

    def _finalize(self, brief: Brief, agent: AgentConfig, region: str, scanned: list[str], metrics: dict[str, int]) -> Brief:
        now = self._now()
        out: Brief = {**brief}
        out["postId"] = str(uuid.uuid4())
        out["agentId"] = agent.id
        out["portfolio"] = agent.portfolio
        out["region"] = region
        out["runWindow"] = get_region(region).run_window
        out["status"] = "published"
        out["generationStatus"] = "published"
        out["publishedAt"] = to_iso(now)
        out["briefDay"] = brief_day_key(region, now)
        out["scannedSources"] = scanned
        out["metrics"] = dict(metrics)
        return out

    async def _record_run(self, run: RunRecord) -> None:
        try:
            await self._store.put_run_record(run)
        except Exception:
            logger.exception("run_record_write_failed: runId=%s agentId=%s region=%s", run["runId"], run["agentId"], run["region"])

    async def run(self, agent: AgentConfig, region: str, run_id: Optional[str] = None) -> RunOutcome:
        run_id = run_id or str(uuid.uuid4())
        started_at = to_iso(self._now())
        metrics: dict[str, int] = {}
        try:
            result = await self._collector.collect(agent, region)
            metrics = dict(result["metrics"])
            candidates = result["candidates"]
            if not candidates:
                raise ValueError("no_candidates")

            generated = await self._generate(agent, region, candidates)
            assert_valid(generated, candidates)

            brief = self._finalize(generated, agent, region, result["scannedFeeds"], metrics)
            await self._store.put_brief(brief)
        except Exception as e:
            logger.exception(
                "agent_run_failed: agentId=%s region=%s runId=%s error=%s",
                agent.id,
                region,
                run_id,
                type(e).__name__,
            )
            await self._record_run(
                {
                    "runId": run_id,
                    "agentId": agent.id,
                    "region": region,
                    "status": "failed",
                    "startedAt": started_at,
                    "finishedAt": to_iso(self._now()),
                    "error": str(e) or type(e).__name__,
                }
            )
            return RunOutcome(
                agent_id=agent.id,
                region=region,
                run_id=run_id,
                status="failed",
                error=str(e) or type(e).__name__,
                metrics=metrics,
            )

        await self._record_run(
            {
                "runId": run_id,
                "agentId": agent.id,
                "region": region,
                "status": "published",
                "startedAt": started_at,
                "finishedAt": to_iso(self._now()),
                "postId": brief["postId"],
            }
        )
        logger.info(
            "agent_run_published: agentId=%s region=%s runId=%s postId=%s candidates=%s",
            agent.id,
            region,
            run_id,
            brief["postId"],
            len(candidates),
        )
        return RunOutcome(
            agent_id=agent.id,
            region=region,
            run_id=run_id,
            status="published",
            post_id=brief["postId"],
            metrics=metrics,
        )

    async def run_many(
        self,
        pairs: Sequence[tuple[AgentConfig, str]],
        run_id: Optional[str] = None,
    ) -> list[RunOutcome]:
        run_id = run_id or str(uuid.uuid4())
        outcomes = await asyncio.gather(*(self.run(agent, region, run_id) for agent, region in pairs))
        failed = sum(1 for o in outcomes if not o.ok)
        logger.info("run_many_done: runId=%s total=%s failed=%s", run_id, len(outcomes), failed)
        return list(outcomes)


def build_http_client() -> httpx.AsyncClient:
    cfg = FeedFetcherConfig()
    return httpx.AsyncClient(
        headers={"User-Agent": cfg.user_agent, "Accept-Language": cfg.accept_language},
        timeout=cfg.timeout_sec,
    )


def build_collector(
    store: BriefStore,
    client: httpx.AsyncClient,
    *,
    config: Optional[CollectorConfig] = None,
) -> HistoryAwareCollector:
    resolver = RedirectResolver(client=client)
    return HistoryAwareCollector(
        feed_fetcher=FeedFetcher(client=client, resolver=resolver),
        detail_fetcher=ArticleDetailFetcher(client=client),
        store=store,
        config=config,
    )


def build_runner(store: BriefStore, generate: GenerateFunc, client: httpx.AsyncClient) -> AgentRunner:
    return AgentRunner(collector=build_collector(store, client), store=store, generate=generate)
