from .citations import BriefValidationError, assert_valid, extract_urls, quick_validate, validate

__all__ = ["BriefValidationError", "assert_valid", "extract_urls", "quick_validate", "validate"]
