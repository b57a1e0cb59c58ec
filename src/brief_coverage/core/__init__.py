"""Core configuration, constants and the agent catalog.

Import what you need from `brief_coverage.core.config`,
`brief_coverage.core.constants` and `brief_coverage.core.agents`.
"""

__all__ = ["agents", "config", "constants"]
