"""
Catalog Admin Endpoints

Read-only admin endpoints over the live catalog: classification,
validation, missing fields, analytics, overlaps and CSV export.

Security: Requires ADMIN_API_KEY header for all endpoints except /health.

Version: catalog_engine_v1
"""

from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field

from appcatalog.analytics import AnalyticsReport, build_analytics_report, export_snapshot_csv
from appcatalog.classify import ClassificationResult, classify
from appcatalog.overlap import OverlapGroup, detect_overlaps, estimate_savings
from appcatalog.shared.config import EngineConfig
from appcatalog.shared.http import to_http_exception
from appcatalog.shared.security import verify_admin_key
from appcatalog.store.base import CatalogStore
from appcatalog.store.provider import get_catalog_store, get_engine_config

from .models import Issue, IssueSeverity
from .validate import find_missing_fields, validate_catalog


router = APIRouter(
    prefix="/api/v1/admin/catalog",
    tags=["admin", "catalog"],
)


# Response models
class ClassificationResponse(BaseModel):
    success: bool = True
    classification: ClassificationResult
    generated_at: datetime = Field(default_factory=datetime.utcnow)


class ValidationResponse(BaseModel):
    success: bool = True
    total_issues: int
    errors: int
    warnings: int
    issues: List[Issue]
    generated_at: datetime = Field(default_factory=datetime.utcnow)


class MissingFieldsResponse(BaseModel):
    success: bool = True
    missing: Dict[str, List[str]]
    generated_at: datetime = Field(default_factory=datetime.utcnow)


class AnalyticsResponse(BaseModel):
    success: bool = True
    analytics: AnalyticsReport
    generated_at: datetime = Field(default_factory=datetime.utcnow)


class OverlapsResponse(BaseModel):
    success: bool = True
    total_groups: int
    potential_savings: float
    overlaps: List[OverlapGroup]
    generated_at: datetime = Field(default_factory=datetime.utcnow)


# Endpoints

@router.get("/classify", response_model=ClassificationResponse)
async def get_classification(
    store: CatalogStore = Depends(get_catalog_store),
    admin_key: str = Depends(verify_admin_key),
):
    """Organization-wide and per-division buckets for active apps."""
    try:
        entries = store.snapshot().entries()
        return ClassificationResponse(classification=classify(entries))
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Classification error")


@router.get("/validate", response_model=ValidationResponse)
async def run_validation(
    severity: Optional[IssueSeverity] = None,
    store: CatalogStore = Depends(get_catalog_store),
    admin_key: str = Depends(verify_admin_key),
):
    """
    Validate all active apps.

    Args:
        severity: Optional filter ('error' or 'warning')
    """
    try:
        issues = validate_catalog(store.snapshot().entries())
        errors = sum(1 for i in issues if i.severity == IssueSeverity.ERROR)
        warnings = len(issues) - errors
        if severity:
            issues = [i for i in issues if i.severity == severity]
        return ValidationResponse(
            total_issues=errors + warnings,
            errors=errors,
            warnings=warnings,
            issues=issues,
        )
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Validation error")


@router.get("/missing-fields", response_model=MissingFieldsResponse)
async def get_missing_fields(
    field: Optional[str] = None,
    store: CatalogStore = Depends(get_catalog_store),
    admin_key: str = Depends(verify_admin_key),
):
    """
    Active apps missing each enrichable field.

    Args:
        field: Optional filter by a single canonical field (e.g. 'website')
    """
    try:
        missing = find_missing_fields(store.snapshot().entries())
        if field:
            if field not in missing:
                raise HTTPException(status_code=400, detail=f"Unknown field: {field}")
            missing = {field: missing[field]}
        return MissingFieldsResponse(missing=missing)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Missing fields error")


@router.get("/analytics", response_model=AnalyticsResponse)
async def get_analytics(
    store: CatalogStore = Depends(get_catalog_store),
    config: EngineConfig = Depends(get_engine_config),
    admin_key: str = Depends(verify_admin_key),
):
    """Dashboard stats, data quality, recent activity and overlaps."""
    try:
        entries = store.snapshot().entries()
        report = build_analytics_report(entries, store.recent_audit(10), config)
        return AnalyticsResponse(analytics=report)
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Analytics error")


@router.get("/overlaps", response_model=OverlapsResponse)
async def get_overlaps(
    store: CatalogStore = Depends(get_catalog_store),
    admin_key: str = Depends(verify_admin_key),
):
    """Overlap groups, highest potential savings first."""
    try:
        groups = detect_overlaps(store.snapshot().entries())
        return OverlapsResponse(
            total_groups=len(groups),
            potential_savings=estimate_savings(groups),
            overlaps=groups,
        )
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Overlap detection error")


@router.get("/export")
async def export_catalog(
    store: CatalogStore = Depends(get_catalog_store),
    admin_key: str = Depends(verify_admin_key),
):
    """Download the catalog as CSV in store column order."""
    try:
        csv_text = export_snapshot_csv(store.snapshot())
    except HTTPException:
        raise
    except Exception as e:
        raise to_http_exception(e, "Export error")

    filename = f"catalog_export_{datetime.utcnow().strftime('%Y%m%d')}.csv"
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/health")
async def catalog_health():
    """
    Health check for the catalog engine.

    Does not require admin key.
    """
    return {
        "status": "ok",
        "module": "catalog_engine",
        "version": "catalog_engine_v1",
        "timestamp": datetime.utcnow().isoformat(),
    }
