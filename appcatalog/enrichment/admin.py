"""
Enrichment Admin Endpoints

Security: Requires ADMIN_API_KEY header.

Version: catalog_enrichment_v1
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from appcatalog.shared.config import EngineConfig
from appcatalog.shared.errors import ConfigurationError
from appcatalog.shared.http import to_http_exception
from appcatalog.shared.security import verify_admin_key
from appcatalog.store.base import CatalogStore
from appcatalog.store.provider import get_catalog_store, get_engine_config

from .client import CompletionClient
from .enrich import enrich_missing_fields
from .models import EnrichmentReport


router = APIRouter(
    prefix="/api/v1/admin/catalog/enrichment",
    tags=["admin", "catalog enrichment"],
)


def get_completion_client() -> CompletionClient:
    """Completion client from env; 503 when COMPLETION_API_KEY is unset."""
    try:
        return CompletionClient.from_config(get_engine_config())
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=e.message)


class EnrichmentResponse(BaseModel):
    success: bool
    report: EnrichmentReport
    generated_at: datetime = Field(default_factory=datetime.utcnow)


@router.post("/run", response_model=EnrichmentResponse)
def run_enrichment(
    store: CatalogStore = Depends(get_catalog_store),
    client: CompletionClient = Depends(get_completion_client),
    config: EngineConfig = Depends(get_engine_config),
    admin_key: str = Depends(verify_admin_key),
):
    """
    Fill empty fields for up to CATALOG_MAX_BATCH_SIZE apps.

    report.remaining > 0 means another run is needed.
    """
    try:
        report = enrich_missing_fields(store, client, config)
        return EnrichmentResponse(success=report.failed == 0, report=report)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Enrichment error")
