from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Tuple

from dotenv import load_dotenv

_repo_root = Path(__file__).resolve().parents[3]
load_dotenv(dotenv_path=_repo_root / ".env")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except Exception:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return raw in {"1", "true", "True", "yes", "YES"}


def _env_csv(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


def parse_bool_flag(raw: str | None) -> bool | None:
    """Parse an explicit boolean flag; unknown or empty values return None."""
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return None


# ==========================================
# Paths
# ==========================================

REPO_ROOT = _repo_root
DATA_DIR = Path(os.getenv("DATA_DIR", str(REPO_ROOT / "data")))
BRIEF_STORE_PATH = os.getenv("BRIEF_STORE_PATH", str(DATA_DIR / "brief_store.json"))
AGENTS_CONFIG_PATH = os.getenv("AGENTS_CONFIG_PATH", "")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/121.0.0.0 Safari/537.36"
)


# ==========================================
# Component configs
# ==========================================

@dataclass(frozen=True)
class CollectorConfig:
    detail_limit: int = _env_int("COLLECT_DETAIL_LIMIT", 10)
    detail_concurrency: int = _env_int("COLLECT_DETAIL_CONCURRENCY", 4)
    lookback_days: int = _env_int("USED_URL_LOOKBACK_DAYS", 7)
    used_url_limit: int = _env_int("USED_URL_LIMIT", 200)
    min_multiplier: int = 2


@dataclass(frozen=True)
class RegionConfig:
    slug: str
    label: str
    timezone: str
    run_window: str
    cutoff_hour: int


REGIONS: dict[str, RegionConfig] = {
    "au": RegionConfig(
        slug="au",
        label="Australia (Perth)",
        timezone="Australia/Perth",
        run_window="apac",
        cutoff_hour=_env_int("COVERAGE_CUTOFF_HOUR_AU", 6),
    ),
    "us-mx-la-lng": RegionConfig(
        slug="us-mx-la-lng",
        label="US / Mexico / Louisiana LNG (Houston)",
        timezone="America/Chicago",
        run_window="international",
        cutoff_hour=_env_int("COVERAGE_CUTOFF_HOUR_US_MX_LA_LNG", 5),
    ),
}

DEFAULT_REGIONS: Tuple[str, ...] = tuple(REGIONS.keys())


def get_region(slug: str) -> RegionConfig:
    try:
        return REGIONS[slug]
    except KeyError:
        raise KeyError(f"unknown region: {slug}") from None


def parse_regions(value: str | None) -> list[str]:
    """Split a comma separated region list, keeping only known regions."""
    if not value:
        return list(DEFAULT_REGIONS)
    out: list[str] = []
    for part in value.split(","):
        slug = part.strip()
        if slug in REGIONS and slug not in out:
            out.append(slug)
    return out


# ==========================================
# Placeholder policy
# ==========================================

@dataclass(frozen=True)
class PlaceholderPolicy:
    allowed: bool
    source: str = field(default="default")


def resolve_placeholder_policy(environ: Mapping[str, str] | None = None) -> PlaceholderPolicy:
    env = os.environ if environ is None else environ
    for key in ("PLACEHOLDER_CONTENT_ENABLED", "ALLOW_PLACEHOLDER_CONTENT"):
        flag = parse_bool_flag(env.get(key))
        if flag is not None:
            return PlaceholderPolicy(allowed=flag, source=key)
    app_env = (env.get("APP_ENV") or env.get("ENVIRONMENT") or "development").strip().lower()
    return PlaceholderPolicy(allowed=app_env != "production", source=f"env:{app_env}")
