"""
Catalog Import Admin Endpoints

FLOW:
1. /preflight: parse the upload and compute the full plan without writing
2. /execute: apply the plan; requires confirm=true
3. /edits: audited manual cell edits

Security: Requires ADMIN_API_KEY header.

Version: catalog_reconcile_v1
"""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel, Field

from appcatalog.shared.config import EngineConfig
from appcatalog.shared.http import to_http_exception
from appcatalog.shared.security import verify_admin_key
from appcatalog.store.base import CatalogStore
from appcatalog.store.provider import get_catalog_store, get_engine_config

from .edits import EditReport, FieldEdit, apply_field_edits
from .engine import ReconciliationEngine
from .ingest import read_tabular_upload
from .models import ReconcileSummary


router = APIRouter(
    prefix="/api/v1/admin/catalog/import",
    tags=["admin", "catalog import"],
)


class ReconcileResponse(BaseModel):
    success: bool
    summary: ReconcileSummary
    generated_at: datetime = Field(default_factory=datetime.utcnow)


class EditsRequest(BaseModel):
    edits: List[FieldEdit]


class EditsResponse(BaseModel):
    success: bool
    report: EditReport
    generated_at: datetime = Field(default_factory=datetime.utcnow)


async def _run_upload(
    file: UploadFile,
    mode: str,
    dry_run: bool,
    store: CatalogStore,
    config: EngineConfig,
) -> ReconcileResponse:
    contents = await file.read()
    headers, rows = read_tabular_upload(contents, file.filename or "")
    summary = ReconciliationEngine(store, config).reconcile(headers, rows, mode, dry_run=dry_run)
    return ReconcileResponse(success=not summary.rejected, summary=summary)


@router.post("/preflight", response_model=ReconcileResponse)
async def import_preflight(
    file: UploadFile = File(...),
    mode: str = Form("add-update"),
    store: CatalogStore = Depends(get_catalog_store),
    config: EngineConfig = Depends(get_engine_config),
    admin_key: str = Depends(verify_admin_key),
):
    """
    Dry run: validate the upload and report planned adds, updates and
    deactivations without writing.
    """
    try:
        return await _run_upload(file, mode, True, store, config)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Preflight error")


@router.post("/execute", response_model=ReconcileResponse)
async def import_execute(
    file: UploadFile = File(...),
    mode: str = Form("add-update"),
    confirm: bool = Form(False),
    store: CatalogStore = Depends(get_catalog_store),
    config: EngineConfig = Depends(get_engine_config),
    admin_key: str = Depends(verify_admin_key),
):
    """
    Apply the upload to the catalog. Requires confirm=true.

    At most CATALOG_MAX_BATCH_SIZE rows are written; summary.remaining tells
    the caller to run again.
    """
    if not confirm:
        raise HTTPException(status_code=400, detail="Set confirm=true to execute import")
    try:
        return await _run_upload(file, mode, False, store, config)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Import error")


@router.post("/edits", response_model=EditsResponse)
async def manual_edits(
    request: EditsRequest,
    store: CatalogStore = Depends(get_catalog_store),
    admin_key: str = Depends(verify_admin_key),
):
    """Apply manual field edits, each audited as 'Manual Update'."""
    try:
        report = apply_field_edits(store, request.edits)
        return EditsResponse(success=not report.errors, report=report)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Edit error")
