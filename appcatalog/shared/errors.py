"""
Catalog Engine Errors

Exception hierarchy shared by the normalizer, reconciliation engine,
tabular store and enrichment collaborator.

Structural failures (missing configuration, bad batch shape) abort before any
write. Row-level failures are caught by the caller and reported in the
summary's errors list.
"""

from typing import Any, Dict, List, Optional


class CatalogEngineError(Exception):
    """Base exception for catalog engine errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(CatalogEngineError):
    """Required connection parameters are absent. Fatal, nothing is written."""
    pass


class ValidationError(CatalogEngineError):
    """Batch shape or controlled-vocabulary value is invalid."""
    pass


class MissingColumnsError(ValidationError):
    """Import batch lacks required columns."""

    def __init__(self, missing: List[str]):
        super().__init__(
            f"Missing required columns: {', '.join(missing)}",
            details={"missing_columns": missing},
        )
        self.missing = missing


class GradeLevelError(ValidationError):
    """Grade level value contains tokens outside the grade vocabulary."""

    def __init__(self, raw_value: str, invalid: List[str]):
        super().__init__(
            f"Invalid grade levels {invalid} in '{raw_value}'",
            details={"raw_value": raw_value, "invalid_tokens": invalid},
        )
        self.raw_value = raw_value
        self.invalid = invalid


class AudienceError(ValidationError):
    """Audience value contains tokens outside the audience vocabulary."""

    def __init__(self, raw_value: str, invalid: List[str]):
        super().__init__(
            f"Invalid audience {invalid} in '{raw_value}'",
            details={"raw_value": raw_value, "invalid_tokens": invalid},
        )
        self.raw_value = raw_value
        self.invalid = invalid


class IdentityMismatchError(CatalogEngineError):
    """Row drifted since the snapshot was taken. The row write is skipped."""

    def __init__(self, row_ref: int, expected: str, found: Any):
        super().__init__(
            f"Row mismatch at row {row_ref}: expected '{expected}', found '{found}'",
            details={"row_ref": row_ref, "expected": expected, "found": found},
        )
        self.row_ref = row_ref
        self.expected = expected
        self.found = found


class CatalogStoreError(CatalogEngineError):
    """Tabular store read or write failed."""
    pass


class ExternalServiceError(CatalogEngineError):
    """Generative-completion collaborator failed. Recorded, never retried."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[Any] = None,
    ):
        super().__init__(message, details={"status_code": status_code})
        self.status_code = status_code
        self.response_body = response_body


class CompletionAuthError(ExternalServiceError):
    """Authentication/authorization error (401/403)."""
    pass


class CompletionRateLimitError(ExternalServiceError):
    """Rate limit exceeded (429)."""

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class CompletionResponseError(ExternalServiceError):
    """Collaborator answered with content that is not the expected JSON."""
    pass
