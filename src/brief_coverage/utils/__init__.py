from .common import (
    atomic_write_json,
    clean_text,
    dedupe_keep_order,
    parse_datetime_utc,
    safe_read_json,
    source_url,
    to_iso,
    utc_now,
)

__all__ = [
    "atomic_write_json",
    "clean_text",
    "dedupe_keep_order",
    "parse_datetime_utc",
    "safe_read_json",
    "source_url",
    "to_iso",
    "utc_now",
]
