from __future__ import annotations

import datetime
import email.utils
import html
import json
import os
import re
from typing import Any, Iterable

_WS_RE = re.compile(r"\s+")  # collapse runs of whitespace
_TAG_RE = re.compile(r"<[^>]+>")  # stray HTML tags in feed text


def clean_text(s: str) -> str:
    """Unescape HTML entities, drop tags and collapse whitespace."""
    if not s:
        return ""
    s = html.unescape(s)
    s = s.replace("\u00a0", " ")
    s = _TAG_RE.sub("", s)
    return _WS_RE.sub(" ", s).strip()


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def to_iso(dt: datetime.datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a trailing Z."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    dt = dt.astimezone(datetime.timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_datetime_utc(value: str, *, default_tz: datetime.tzinfo | None = None) -> datetime.datetime | None:
    if not value:
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        dt = datetime.datetime.fromisoformat(raw)
    except Exception:
        try:
            dt = email.utils.parsedate_to_datetime(value)
        except Exception:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=default_tz or datetime.timezone.utc)
    return dt.astimezone(datetime.timezone.utc)


def dedupe_keep_order(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    uniq: list[str] = []
    for v in values:
        if v in seen:
            continue
        seen.add(v)
        uniq.append(v)
    return uniq


def safe_read_json(path: str, default: Any) -> Any:
    """Load a JSON file, returning the default when missing or unreadable."""
    if not os.path.exists(path):
        return default
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except Exception:
        return default


def atomic_write_json(path: str, payload: Any) -> None:
    """Write to a temp file then swap it into place."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
    os.replace(tmp_path, path)


def source_url(value: Any) -> str:
    """Sources may be plain URLs or `{url, title}` objects."""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        return str(value.get("url") or "").strip()
    return ""
