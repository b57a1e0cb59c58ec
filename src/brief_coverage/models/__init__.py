"""Typed models for briefs, candidates and coverage records."""

from .brief import (
    ArticleCandidate,
    Brief,
    CollectResult,
    CoverageAuditResult,
    CoverageRow,
    CoverageStatus,
    ExpectedAgentCoverage,
    Feed,
    FeedAttempt,
    FeedHealthEntry,
    PlaceholderReason,
    RunRecord,
    SelectedArticle,
)

__all__ = [
    "ArticleCandidate",
    "Brief",
    "CollectResult",
    "CoverageAuditResult",
    "CoverageRow",
    "CoverageStatus",
    "ExpectedAgentCoverage",
    "Feed",
    "FeedAttempt",
    "FeedHealthEntry",
    "PlaceholderReason",
    "RunRecord",
    "SelectedArticle",
]
