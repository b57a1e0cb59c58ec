"""Durable record store and feed health tracking."""

from .store import BriefExistsError, BriefStore, JsonFileBriefStore, MemoryBriefStore

__all__ = ["BriefExistsError", "BriefStore", "JsonFileBriefStore", "MemoryBriefStore"]
