"""
Update Log

Append-only audit rows written for every reconciliation, enrichment and
manual field mutation.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from appcatalog.catalog.normalizer import cell_text


EMPTY_MARKER = "[EMPTY]"


class AuditOperation:
    """Operation labels written to the update log."""
    IMPORT_ADD = "Import Add"
    IMPORT_UPDATE = "Import Update"
    IMPORT_FILL_MISSING = "Import Fill Missing"
    IMPORT_DEACTIVATE = "Import Deactivate"
    MANUAL_UPDATE = "Manual Update"
    ENRICH_ALL_FIELDS = "Enrich All Fields"


class AuditEntry(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    operation: str
    product_name: str
    row_ref: Optional[int] = None
    field: str
    old_value: str = EMPTY_MARKER
    new_value: str = ""


def make_audit_entry(
    operation: str,
    product_name: str,
    row_ref: Optional[int],
    field: str,
    old_value: Any,
    new_value: Any,
) -> AuditEntry:
    """Build an audit entry, rendering empty old values as [EMPTY]."""
    return AuditEntry(
        operation=operation,
        product_name=product_name,
        row_ref=row_ref,
        field=field,
        old_value=cell_text(old_value) or EMPTY_MARKER,
        new_value=cell_text(new_value),
    )
