from __future__ import annotations

import copy
from typing import Any, Mapping

from brief_coverage.models import Brief, RunRecord

STORAGE_KEY_FIELDS = (
    "PK",
    "SK",
    "GSI1PK",
    "GSI1SK",
    "GSI2PK",
    "GSI2SK",
    "GSI3PK",
    "GSI3SK",
)


def strip_storage_keys(record: Mapping[str, Any]) -> dict[str, Any]:
    """Deep copy of a record without its storage identity fields."""
    out = copy.deepcopy(dict(record))
    for key in STORAGE_KEY_FIELDS:
        out.pop(key, None)
    return out


def build_brief_record(brief: Brief) -> dict[str, Any]:
    """Storage record whose keys come only from the brief's own portfolio, region, postId and status."""
    record = strip_storage_keys(brief)
    post_id = record["postId"]
    published_at = record["publishedAt"]
    date_key = f"DATE#{published_at}"
    record.update(
        {
            "PK": f"POST#{post_id}",
            "SK": date_key,
            "GSI1PK": f"PORTFOLIO#{record['portfolio']}",
            "GSI1SK": date_key,
            "GSI2PK": f"REGION#{record['region']}",
            "GSI2SK": date_key,
            "GSI3PK": f"STATUS#{record['status']}",
            "GSI3SK": date_key,
        }
    )
    return record


def build_run_record(run: RunRecord) -> dict[str, Any]:
    record = copy.deepcopy(dict(run))
    record["PK"] = f"RUN#{run['runId']}"
    record["SK"] = f"AGENT#{run['agentId']}#REGION#{run['region']}"
    return record
