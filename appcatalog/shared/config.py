"""
Engine Configuration

Explicit configuration struct passed into engine entry points. Pure
classification and detection code never reads the environment; only
EngineConfig.from_env() does.

Environment Variables:
- DATABASE_URL: PostgreSQL connection string for the catalog store
- ADMIN_API_KEY: Shared secret for admin endpoints
- CATALOG_MAX_BATCH_SIZE: Row writes per reconciliation/enrichment call (default 200)
- CATALOG_API_DELAY_MS: Delay between completion calls (default 100)
- CATALOG_NEW_APP_THRESHOLD_DAYS: Window for "new app" analytics (default 30)
- COMPLETION_API_KEY / COMPLETION_API_URL / COMPLETION_MODEL: enrichment collaborator
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


DEFAULT_COMPLETION_URL = "https://api.anthropic.com/v1/messages"
DEFAULT_COMPLETION_MODEL = "claude-3-5-haiku-20241022"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not an integer, using {default}")
        return default


@dataclass
class EngineConfig:
    """Runtime configuration for the catalog engine."""

    database_url: Optional[str] = None
    admin_api_key: Optional[str] = None

    # Processing limits
    max_batch_size: int = 200
    api_delay_ms: int = 100
    new_app_threshold_days: int = 30

    # Placeholders written by automated imports
    category_placeholder: str = "Apps"
    staff_grade_placeholder: str = "Grade 1"
    vendor_department_default: str = "School-wide"
    vendor_audience_default: str = "Teachers, Staff"

    # Generative-completion collaborator
    completion_api_key: Optional[str] = None
    completion_api_url: str = DEFAULT_COMPLETION_URL
    completion_model: str = DEFAULT_COMPLETION_MODEL

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build configuration from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL"),
            admin_api_key=os.getenv("ADMIN_API_KEY"),
            max_batch_size=_int_env("CATALOG_MAX_BATCH_SIZE", 200),
            api_delay_ms=_int_env("CATALOG_API_DELAY_MS", 100),
            new_app_threshold_days=_int_env("CATALOG_NEW_APP_THRESHOLD_DAYS", 30),
            completion_api_key=os.getenv("COMPLETION_API_KEY"),
            completion_api_url=os.getenv("COMPLETION_API_URL", DEFAULT_COMPLETION_URL),
            completion_model=os.getenv("COMPLETION_MODEL", DEFAULT_COMPLETION_MODEL),
        )

    def require_database_url(self) -> str:
        """Return DATABASE_URL or raise ConfigurationError."""
        if not self.database_url:
            raise ConfigurationError(
                "DATABASE_URL not configured",
                details={"missing": ["DATABASE_URL"]},
            )
        return self.database_url

    def require_completion_api_key(self) -> str:
        """Return COMPLETION_API_KEY or raise ConfigurationError."""
        if not self.completion_api_key:
            raise ConfigurationError(
                "COMPLETION_API_KEY not configured",
                details={"missing": ["COMPLETION_API_KEY"]},
            )
        return self.completion_api_key
