from __future__ import annotations

import json

import pytest

from brief_coverage.core.agents import build_default_agents, keyword_pack, load_agents, select_agents
from brief_coverage.core.config import get_region, parse_bool_flag, parse_regions, resolve_placeholder_policy
from brief_coverage.core.constants import PORTFOLIO_LABELS


def test_placeholder_policy_defaults_by_environment() -> None:
    assert resolve_placeholder_policy({}).allowed
    prod = resolve_placeholder_policy({"APP_ENV": "production"})
    assert not prod.allowed
    assert prod.source == "env:production"
    assert resolve_placeholder_policy({"ENVIRONMENT": "staging"}).allowed


def test_placeholder_policy_explicit_flag_wins() -> None:
    policy = resolve_placeholder_policy({"APP_ENV": "production", "PLACEHOLDER_CONTENT_ENABLED": "true"})
    assert policy.allowed and policy.source == "PLACEHOLDER_CONTENT_ENABLED"
    policy = resolve_placeholder_policy({"PLACEHOLDER_CONTENT_ENABLED": "maybe", "ALLOW_PLACEHOLDER_CONTENT": "off"})
    assert not policy.allowed and policy.source == "ALLOW_PLACEHOLDER_CONTENT"


def test_placeholder_policy_reads_process_env(monkeypatch) -> None:
    monkeypatch.delenv("PLACEHOLDER_CONTENT_ENABLED", raising=False)
    monkeypatch.delenv("ALLOW_PLACEHOLDER_CONTENT", raising=False)
    monkeypatch.setenv("APP_ENV", "production")
    assert not resolve_placeholder_policy().allowed
    monkeypatch.setenv("ALLOW_PLACEHOLDER_CONTENT", "1")
    assert resolve_placeholder_policy().allowed


def test_parse_bool_flag() -> None:
    assert parse_bool_flag(" YES ") is True
    assert parse_bool_flag("0") is False
    assert parse_bool_flag("") is None
    assert parse_bool_flag(None) is None


def test_regions() -> None:
    assert parse_regions("au,bogus,au") == ["au"]
    assert parse_regions(None) == ["au", "us-mx-la-lng"]
    assert get_region("au").timezone == "Australia/Perth"
    with pytest.raises(KeyError):
        get_region("eu")


def test_keyword_pack_layers_excludes() -> None:
    pack = keyword_pack("rigs-integrated-drilling")
    assert pack.primary == ("rig", "dayrate", "drillship", "utilization")
    assert "rig" not in pack.secondary
    assert "tender" in pack.secondary
    assert "sports" in pack.exclude and "camera rig" in pack.exclude


def test_default_agents_have_aggregator_feed_per_region() -> None:
    agents = build_default_agents()
    assert [a.id for a in agents] == list(PORTFOLIO_LABELS)
    for agent in agents:
        for region in ("au", "us-mx-la-lng"):
            urls = [f["url"] for f in agent.feeds_for(region)]
            assert any(u.startswith("https://news.google.com/rss/search?q=") for u in urls)
            assert len(urls) == len(set(urls))


def test_select_agents_batches_partition_catalog() -> None:
    agents = build_default_agents()
    batches = [select_agents(agents, batch_index=i, batch_count=3) for i in range(3)]
    ids = [a.id for batch in batches for a in batch]
    assert sorted(ids) == sorted(a.id for a in agents)
    assert len(ids) == len(set(ids))
    assert [a.id for a in select_agents(agents, ids=["drilling-services"])] == ["drilling-services"]
    with pytest.raises(KeyError):
        select_agents(agents, ids=["nope"])


def test_load_agents_from_json(tmp_path) -> None:
    path = tmp_path / "agents.json"
    path.write_text(
        json.dumps(
            {
                "agents": [
                    {
                        "id": "lng-watch",
                        "portfolio": "lng",
                        "label": "LNG",
                        "articlesPerRun": 2,
                        "feedsByRegion": {
                            "au": [
                                {"name": "Wire", "url": "https://feeds.example/wire"},
                                {"name": "Wire again", "url": "https://feeds.example/wire"},
                                {"name": "Newsroom", "url": "https://publisher.example/news", "kind": "web"},
                            ]
                        },
                    }
                ]
            }
        ),
        encoding="utf-8",
    )
    (agent,) = load_agents(str(path))
    assert agent.id == "lng-watch" and agent.articles_per_run == 2
    assert [f["kind"] for f in agent.feeds_for("au")] == ["rss", "web"]
    assert agent.feeds_for("us-mx-la-lng") == []


def test_load_agents_rejects_bad_feed(tmp_path) -> None:
    path = tmp_path / "agents.json"
    path.write_text(json.dumps([{"portfolio": "lng", "feedsByRegion": {"au": [{"name": "x"}]}}]), encoding="utf-8")
    with pytest.raises(ValueError):
        load_agents(str(path))
