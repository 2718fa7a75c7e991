"""
Manual Field Edits

Admin edits to individual cells, addressed by stable id or product name.
Unlike imports, manual edits may write protected fields and may overwrite
non-empty values. Grade and audience values are still validated.

Version: catalog_reconcile_v1
"""

import logging
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from appcatalog.catalog.normalizer import RowNormalizer, cell_text
from appcatalog.catalog.vocabulary import format_grade_levels, validate_audience, validate_grade_levels
from appcatalog.shared.errors import (
    CatalogStoreError,
    IdentityMismatchError,
    ValidationError,
)
from appcatalog.store.audit import AuditOperation, make_audit_entry
from appcatalog.store.base import CatalogStore

from .engine import SnapshotIndex

logger = logging.getLogger(__name__)


class FieldEdit(BaseModel):
    """One requested cell change."""
    product_name: str = ""
    stable_id: Optional[str] = None
    field: str
    value: Any = None


class EditResult(BaseModel):
    product_name: str
    field: str
    status: str = Field(..., description="updated | unchanged | error")
    message: str = ""


class EditReport(BaseModel):
    updated: int = 0
    unchanged: int = 0
    errors: List[str] = Field(default_factory=list)
    results: List[EditResult] = Field(default_factory=list)


def _validated(field: str, value: Any, normalizer: RowNormalizer) -> Any:
    if field == "grade_levels":
        return format_grade_levels(validate_grade_levels(cell_text(value)))
    if field == "audience":
        return ", ".join(validate_audience(cell_text(value)))
    return normalizer.storage_value(field, value)


def apply_field_edits(
    store: CatalogStore,
    edits: List[FieldEdit],
    normalizer: Optional[RowNormalizer] = None,
) -> EditReport:
    """
    Apply manual edits one cell at a time.

    Each edit is matched against a fresh snapshot, identity-checked before
    the write, and audited as 'Manual Update'. Failures are reported per edit.
    """
    normalizer = normalizer or RowNormalizer()
    snapshot = store.snapshot()
    column_map = normalizer.column_map(snapshot.headers)
    name_header = column_map.header_for("product_name")
    index = SnapshotIndex(snapshot.entries(normalizer))
    report = EditReport()

    def fail(edit: FieldEdit, label: str, message: str) -> None:
        logger.warning(f"Manual edit failed for {label}.{edit.field}: {message}")
        report.errors.append(f"{label}: {message}")
        report.results.append(EditResult(product_name=label, field=edit.field, status="error", message=message))

    for edit in edits:
        label = edit.product_name or edit.stable_id or "?"
        header = column_map.header_for(edit.field)
        if header is None:
            fail(edit, label, f"Unknown field {edit.field}")
            continue

        entry = index.match(cell_text(edit.stable_id) or None, edit.product_name)
        if entry is None:
            fail(edit, label, "Not found in catalog")
            continue
        label = entry.product_name

        try:
            value = _validated(edit.field, edit.value, normalizer)
        except ValidationError as e:
            fail(edit, label, e.message)
            continue

        stored = snapshot.get(entry.row_ref)
        old_value = stored.cells.get(header) if stored else None
        if normalizer.same_value(edit.field, old_value, value):
            report.unchanged += 1
            report.results.append(EditResult(product_name=label, field=edit.field, status="unchanged"))
            continue

        try:
            current = store.read_cell(entry.row_ref, name_header)
            if cell_text(current).lower() != entry.name_key:
                raise IdentityMismatchError(entry.row_ref, entry.product_name, current)
            store.update_row(entry.row_ref, {header: value})
            store.append_audit([make_audit_entry(
                AuditOperation.MANUAL_UPDATE, entry.product_name, entry.row_ref, edit.field, old_value, value,
            )])
        except (IdentityMismatchError, CatalogStoreError) as e:
            fail(edit, label, e.message)
            continue

        if stored:
            stored.cells[header] = value
        report.updated += 1
        report.results.append(EditResult(product_name=label, field=edit.field, status="updated"))

    logger.info(f"Manual edits: updated={report.updated} unchanged={report.unchanged} errors={len(report.errors)}")
    return report
