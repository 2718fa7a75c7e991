"""
Reconciliation Module

Purpose: Merge externally supplied batches into the live catalog without
destroying curated data.

This module ONLY:
- Detects and translates the vendor export format
- Matches batch rows to catalog rows by stable id or product name
- Plans and applies per-row writes under the batch cap
- Applies audited manual field edits
- Reads CSV / Excel uploads

Version: catalog_reconcile_v1
"""

from .models import (
    BatchState,
    FieldChange,
    ImportBatch,
    MutationKind,
    ReconcileSummary,
    RowMutation,
    SourceFormat,
    UpdateMode,
)
from .engine import (
    PROTECTED_FIELDS,
    REQUIRED_IMPORT_FIELDS,
    ReconciliationEngine,
    SnapshotIndex,
    plan_reconciliation,
    reconcile,
)
from .vendor import is_vendor_format, translate_vendor_row
from .edits import EditReport, FieldEdit, apply_field_edits
from .ingest import read_tabular_upload

__version__ = "catalog_reconcile_v1"

__all__ = [
    "BatchState",
    "FieldChange",
    "ImportBatch",
    "MutationKind",
    "ReconcileSummary",
    "RowMutation",
    "SourceFormat",
    "UpdateMode",
    "PROTECTED_FIELDS",
    "REQUIRED_IMPORT_FIELDS",
    "ReconciliationEngine",
    "SnapshotIndex",
    "plan_reconciliation",
    "reconcile",
    "is_vendor_format",
    "translate_vendor_row",
    "EditReport",
    "FieldEdit",
    "apply_field_edits",
    "read_tabular_upload",
    "__version__",
]
