from __future__ import annotations

from typing import Sequence

from brief_coverage.core.agents import KeywordPack, keyword_pack
from brief_coverage.processing.types import Item

PRIMARY_WEIGHT = 2
SECONDARY_WEIGHT = 1
EXCLUDE_PENALTY = 3


def _hits(text: str, terms: Sequence[str]) -> int:
    return sum(1 for term in terms if term and term.lower() in text)


def score(text: str, primary: Sequence[str], secondary: Sequence[str], exclude: Sequence[str]) -> int:
    t = (text or "").lower()
    if not t:
        return 0
    return (
        PRIMARY_WEIGHT * _hits(t, primary)
        + SECONDARY_WEIGHT * _hits(t, secondary)
        - EXCLUDE_PENALTY * _hits(t, exclude)
    )


class RelevanceScorer:
    def __init__(self, *, pack: KeywordPack) -> None:
        self._pack = pack

    @classmethod
    def for_portfolio(cls, portfolio: str) -> "RelevanceScorer":
        return cls(pack=keyword_pack(portfolio))

    @property
    def pack(self) -> KeywordPack:
        return self._pack

    def score_item(self, item: Item) -> int:
        text = " ".join(part for part in (item.get("title"), item.get("summary")) if part)
        return score(text, self._pack.primary, self._pack.secondary, self._pack.exclude)

    def rank(self, items: Sequence[Item]) -> list[Item]:
        """Score every item and sort by score, keeping discovery order on ties."""
        scored: list[Item] = [{**item, "score": self.score_item(item)} for item in items]
        return sorted(scored, key=lambda x: -x["score"])
