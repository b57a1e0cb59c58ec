"""Publish-time checks applied to generated briefs."""

__all__ = ["validators"]
