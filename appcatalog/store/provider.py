"""
Store Provider

FastAPI dependencies that build the configured store per request. Tests
replace them through app.dependency_overrides.
"""

from fastapi import HTTPException

from appcatalog.shared.config import EngineConfig
from appcatalog.shared.errors import ConfigurationError

from .base import CatalogStore
from .postgres import PostgresCatalogStore


def get_engine_config() -> EngineConfig:
    return EngineConfig.from_env()


def get_catalog_store() -> CatalogStore:
    """PostgreSQL store from DATABASE_URL; 503 when it is not configured."""
    try:
        return PostgresCatalogStore.from_config(get_engine_config())
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=e.message)
