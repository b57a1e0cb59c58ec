"""Feed resilience, coverage audit and fallback pipeline for daily briefs."""

__version__ = "0.1.0"
