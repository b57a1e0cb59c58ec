"""Command line entry point for coverage audits, reports and gap filling."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Sequence

from brief_coverage.core.agents import load_agents
from brief_coverage.core.config import (
    AGENTS_CONFIG_PATH,
    BRIEF_STORE_PATH,
    LOG_LEVEL,
    parse_regions,
    resolve_placeholder_policy,
)
from brief_coverage.coverage.audit import audit_coverage
from brief_coverage.coverage.day import expected_coverage_day_key
from brief_coverage.coverage.fill_missing import fill_missing
from brief_coverage.coverage.report import build_coverage_report, format_report_table
from brief_coverage.storage import JsonFileBriefStore
from brief_coverage.storage.feed_health import feed_health_snapshot, risk_score

logger = logging.getLogger(__name__)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


async def _cmd_audit(args: argparse.Namespace) -> int:
    store = JsonFileBriefStore(args.store)
    agents = load_agents(args.agents)
    results = []
    for region in args.regions:
        day_key = expected_coverage_day_key(region)
        results.append(await audit_coverage(store, [region], day_key, agents=agents))
    _print_json(
        [
            {
                "dayKey": r["dayKey"],
                "regions": r["regions"],
                "expected": len(r["expectedAgents"]),
                "published": len(r["publishedBriefs"]),
                "missingAgents": r["missingAgents"],
            }
            for r in results
        ]
    )
    return 0


async def _cmd_report(args: argparse.Namespace) -> int:
    store = JsonFileBriefStore(args.store)
    rows = await build_coverage_report(store, args.regions, agents=load_agents(args.agents))
    print(format_report_table(rows))
    gaps = [r for r in rows if not r["hasBriefToday"]]
    print(f"\n{len(rows) - len(gaps)}/{len(rows)} covered, {len(gaps)} missing")
    if gaps and args.strict:
        return 1
    return 0


async def _cmd_fill_missing(args: argparse.Namespace) -> int:
    store = JsonFileBriefStore(args.store)
    policy = resolve_placeholder_policy()
    logger.info("placeholder_policy: allowed=%s source=%s", policy.allowed, policy.source)
    result = await fill_missing(
        store,
        args.regions,
        policy,
        agents=load_agents(args.agents),
        dry_run=args.dry_run,
    )
    _print_json(result)
    return 0


async def _cmd_feed_health(args: argparse.Namespace) -> int:
    store = JsonFileBriefStore(args.store)
    entries = await store.get_feed_health()
    for entry in feed_health_snapshot(entries.values(), args.limit):
        print(
            f"{risk_score(entry):>5}  {entry['lastStatus']:<5}  "
            f"fail={entry['consecutiveFailures']} empty={entry['consecutiveEmpty']} "
            f"checks={entry['totalChecks']} items={entry['totalItems']}  {entry['url']}"
        )
    return 0


_COMMANDS = {
    "audit": _cmd_audit,
    "report": _cmd_report,
    "fill-missing": _cmd_fill_missing,
    "feed-health": _cmd_feed_health,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="brief-coverage", description="Brief coverage tooling")
    parser.add_argument("--regions", type=parse_regions, default=parse_regions(None), help="Comma separated region slugs")
    parser.add_argument("--store", default=BRIEF_STORE_PATH, help="Path of the JSON brief store")
    parser.add_argument("--agents", default=AGENTS_CONFIG_PATH or None, help="Agent catalog JSON (built-in catalog when omitted)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("audit", help="Print expected, published and missing pairs")

    report = sub.add_parser("report", help="Print the coverage table")
    report.add_argument("--no-strict", dest="strict", action="store_false", help="Exit 0 even when gaps exist")

    fill = sub.add_parser("fill-missing", help="Fill coverage gaps with carry-forward or baseline briefs")
    fill.add_argument("--dry-run", action="store_true")

    health = sub.add_parser("feed-health", help="List feeds by failure risk")
    health.add_argument("--limit", type=int, default=25)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = build_parser().parse_args(argv)
    if not args.regions:
        logger.error("no_known_regions: regions must be a subset of the configured regions")
        return 2
    return asyncio.run(_COMMANDS[args.command](args))


if __name__ == "__main__":
    sys.exit(main())
