"""
App Catalog API Server
School software catalog: reconciliation, categorization and overlap analytics
Version 1.0.0
"""

import logging
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from appcatalog import __version__ as engine_version
from appcatalog.catalog.admin import router as catalog_router
from appcatalog.enrichment.admin import router as enrichment_router
from appcatalog.reconcile.admin import router as import_router
from appcatalog.shared.config import EngineConfig
from appcatalog.shared.errors import CatalogEngineError, ConfigurationError
from appcatalog.shared.security import verify_admin_key
from appcatalog.store.postgres import PostgresCatalogStore

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

# ============================================
# App Configuration
# ============================================
app = FastAPI(
    title="App Catalog API",
    description="School software catalog reconciliation and categorization engine",
    version=API_VERSION,
)

# ============================================
# CORS Configuration
# ============================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "*",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["*"],
)

# ============================================
# Routers
# ============================================
app.include_router(catalog_router)
app.include_router(import_router)
app.include_router(enrichment_router)


# ============================================
# Migration Endpoint
# ============================================
@app.post("/migrate-catalog")
def migrate_catalog(admin_key: str = Depends(verify_admin_key)):
    """Create the catalog tables if they do not exist."""
    try:
        store = PostgresCatalogStore.from_config(EngineConfig.from_env())
        store.ensure_schema()
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=e.message)
    except CatalogEngineError as e:
        raise HTTPException(status_code=500, detail=e.message)
    return {"status": "success", "tables": ["catalog_headers", "catalog_rows", "catalog_update_logs"]}


# ============================================
# Core Endpoints
# ============================================
@app.get("/")
def root():
    return {
        "service": "App Catalog API",
        "version": API_VERSION,
        "engine_version": engine_version,
        "status": "operational",
    }


@app.get("/health")
def health():
    return {
        "status": "healthy",
        "version": API_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/version")
def version():
    return {
        "api_version": API_VERSION,
        "engine_version": engine_version,
        "features": ["classify", "validate", "import", "enrichment", "analytics", "overlaps", "export"],
    }
