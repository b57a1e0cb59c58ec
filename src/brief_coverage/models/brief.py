from __future__ import annotations

from typing import Any, Literal, NotRequired, TypedDict

FeedKind = Literal["rss", "web"]
BriefStatus = Literal["draft", "published", "failed"]
GenerationStatus = Literal["published", "no-updates", "generation-failed"]
PlaceholderReason = Literal["no-updates", "generation-failed"]
FeedAttemptStatus = Literal["ok", "empty", "error"]
CoverageStatus = Literal["published", "carry-forward", "baseline", "stale", "no-history"]


class Feed(TypedDict):
    name: str
    url: str
    kind: FeedKind


class ArticleCandidate(TypedDict):
    title: str
    url: str
    score: int
    publishedAt: NotRequired[str]
    summary: NotRequired[str]
    sourceName: NotRequired[str]
    content: NotRequired[str]
    imageUrl: NotRequired[str]
    canonicalUrl: NotRequired[str]


class SelectedArticle(TypedDict, total=False):
    title: str
    url: str
    sourceIndex: int
    summary: str
    imageUrl: str
    briefContent: str
    categoryImportance: str
    keyMetrics: list[str]


class MarketIndicator(TypedDict, total=False):
    label: str
    note: str
    sourceIndex: int


class Brief(TypedDict):
    postId: str
    title: str
    region: str
    portfolio: str
    runWindow: str
    status: str
    publishedAt: str
    bodyMarkdown: str
    sources: list[str]
    agentId: NotRequired[str]
    summary: NotRequired[str]
    briefDay: NotRequired[str]
    generationStatus: NotRequired[str]
    tags: NotRequired[list[str]]
    selectedArticles: NotRequired[list[SelectedArticle]]
    marketIndicators: NotRequired[list[MarketIndicator]]
    scannedSources: NotRequired[list[str]]
    metrics: NotRequired[dict[str, int]]


class FeedAttempt(TypedDict):
    url: str
    name: str
    agentId: str
    region: str
    checkedAt: str
    status: FeedAttemptStatus
    itemCount: int
    error: NotRequired[str]


class FeedHealthEntry(TypedDict):
    url: str
    name: str
    lastAgentId: str
    lastRegion: str
    lastCheckedAt: str
    lastStatus: FeedAttemptStatus
    consecutiveFailures: int
    consecutiveEmpty: int
    consecutiveSuccess: int
    totalChecks: int
    totalItems: int
    lastError: NotRequired[str]
    lastSuccessAt: NotRequired[str]


class ExpectedAgentCoverage(TypedDict):
    agentId: str
    portfolio: str
    label: str
    region: str


class CoverageAuditResult(TypedDict):
    dayKey: str
    regions: list[str]
    expectedAgents: list[ExpectedAgentCoverage]
    publishedBriefs: list[dict[str, Any]]
    missingAgents: list[ExpectedAgentCoverage]


class CollectMetrics(TypedDict):
    collected: int
    deduped: int
    excluded: int
    backfilled: int
    extracted: int


class CollectResult(TypedDict):
    candidates: list[ArticleCandidate]
    scannedFeeds: list[str]
    metrics: CollectMetrics
    attempts: list[FeedAttempt]


class RunRecord(TypedDict):
    runId: str
    agentId: str
    region: str
    status: str
    startedAt: str
    finishedAt: str
    postId: NotRequired[str]
    error: NotRequired[str]


class CoverageRow(TypedDict):
    agentId: str
    portfolio: str
    region: str
    hasBriefToday: bool
    latestPublishedAt: str
    status: CoverageStatus
