from __future__ import annotations

from brief_coverage.core.agents import KeywordPack
from brief_coverage.processing.scoring import RelevanceScorer, score


def _build_scorer() -> RelevanceScorer:
    return RelevanceScorer(pack=KeywordPack(primary=("lng",), secondary=("terminal", "cargo"), exclude=("football",)))


def test_score_weights() -> None:
    assert score("LNG terminal expansion", ["lng"], ["terminal"], ["football"]) == 3
    assert score("Football club signs LNG sponsor", ["lng"], [], ["football"]) == -1
    assert score("", ["lng"], [], []) == 0


def test_score_is_case_insensitive_substring() -> None:
    assert score("Major LNGCarrier order", ["lng"], [], []) == 2


def test_rank_sorts_desc_and_keeps_discovery_order_on_ties() -> None:
    scorer = _build_scorer()
    items = [
        {"title": "Cargo delayed", "url": "https://a.test/1", "score": 0},
        {"title": "Local football results", "url": "https://a.test/2", "score": 0},
        {"title": "LNG terminal expansion", "url": "https://a.test/3", "score": 0},
        {"title": "Terminal closed", "url": "https://a.test/4", "score": 0},
    ]
    ranked = scorer.rank(items)
    assert [i["url"] for i in ranked] == [
        "https://a.test/3",
        "https://a.test/1",
        "https://a.test/4",
        "https://a.test/2",
    ]
    assert [i["score"] for i in ranked] == [3, 1, 1, -3]


def test_rank_is_deterministic() -> None:
    scorer = _build_scorer()
    items = [{"title": f"LNG cargo {n}", "url": f"https://a.test/{n}", "score": 0} for n in range(10)]
    assert scorer.rank(items) == scorer.rank(items)
    assert items[0]["score"] == 0


def test_for_portfolio_uses_catalog_pack() -> None:
    scorer = RelevanceScorer.for_portfolio("rigs-integrated-drilling")
    assert "rig" in scorer.pack.primary
    assert "sports" in scorer.pack.exclude
