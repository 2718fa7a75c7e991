"""
Shared Engine Infrastructure

Configuration struct, error taxonomy and admin endpoint security used by
every catalog module.

Version: catalog_engine_v1
"""

from .config import EngineConfig
from .errors import (
    CatalogEngineError,
    ConfigurationError,
    ValidationError,
    MissingColumnsError,
    GradeLevelError,
    AudienceError,
    IdentityMismatchError,
    CatalogStoreError,
    ExternalServiceError,
    CompletionAuthError,
    CompletionRateLimitError,
    CompletionResponseError,
)

__all__ = [
    "EngineConfig",
    "CatalogEngineError",
    "ConfigurationError",
    "ValidationError",
    "MissingColumnsError",
    "GradeLevelError",
    "AudienceError",
    "IdentityMismatchError",
    "CatalogStoreError",
    "ExternalServiceError",
    "CompletionAuthError",
    "CompletionRateLimitError",
    "CompletionResponseError",
]
