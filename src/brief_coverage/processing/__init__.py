"""Candidate collection, relevance scoring and run orchestration."""

__all__ = ["collector", "runner", "scoring", "types"]
