"""Coverage day-keys, audit, fallback resolution and reporting."""

__all__ = ["audit", "day", "fallback", "fill_missing", "placeholders", "report"]
