from __future__ import annotations

from typing import Any, Awaitable, Callable

from brief_coverage.models import ArticleCandidate, Brief

Item = ArticleCandidate
ParseFunc = Callable[[str], Any]
GenerateFunc = Callable[[Any, str, list[ArticleCandidate]], Awaitable[Brief]]
