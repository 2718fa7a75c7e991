"""
Reconciliation Models

Import batch, planned row mutations and the per-call summary.

Version: catalog_reconcile_v1
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field


class UpdateMode(str, Enum):
    """How a batch is merged into the live catalog."""
    ADD_UPDATE = "add-update"
    FULL_SYNC = "full-sync"
    FILL_MISSING_ONLY = "fill-missing-only"

    @classmethod
    def parse(cls, value: Any) -> "UpdateMode":
        """Accept enum values and the legacy 'sync' / 'update-only' names."""
        if isinstance(value, UpdateMode):
            return value
        text = str(value or "").strip().lower()
        legacy = {"sync": cls.FULL_SYNC, "update-only": cls.FILL_MISSING_ONLY}
        if text in legacy:
            return legacy[text]
        return cls(text)


class SourceFormat(str, Enum):
    GENERIC = "generic"
    VENDOR = "edtech_impact"


class BatchState(str, Enum):
    """Per-call state machine. Any validation failure goes to REJECTED."""
    PARSED = "parsed"
    VALIDATED = "validated"
    TRANSLATED = "translated"
    RECONCILED = "reconciled"
    APPLIED = "applied"
    REPORTED = "reported"
    REJECTED = "rejected"


@dataclass
class ImportBatch:
    """Transient batch: exists only for one reconciliation call."""
    headers: List[str]
    rows: List[Sequence[Any]]
    mode: UpdateMode
    source_format: SourceFormat = SourceFormat.GENERIC
    state: BatchState = BatchState.PARSED


@dataclass
class IncomingRow:
    """A batch row resolved to canonical fields it actually supplies."""
    batch_row: int
    fields: Dict[str, Any] = field(default_factory=dict)


class MutationKind(str, Enum):
    ADD = "add"
    UPDATE = "update"
    DEACTIVATE = "deactivate"


class FieldChange(BaseModel):
    field: str
    header: str
    old_value: Any = None
    new_value: Any = None


class RowMutation(BaseModel):
    """Planned write to one row."""
    kind: MutationKind
    product_name: str
    row_ref: Optional[int] = None
    batch_row: Optional[int] = None
    changes: List[FieldChange] = Field(default_factory=list)

    def cells(self) -> Dict[str, Any]:
        return {c.header: c.new_value for c in self.changes}


class ReconcileSummary(BaseModel):
    """Outcome of one reconcile() call."""
    mode: UpdateMode
    source_format: SourceFormat = SourceFormat.GENERIC
    state: BatchState = BatchState.PARSED
    dry_run: bool = False

    added: int = 0
    updated: int = 0
    unchanged: int = 0
    deactivated: int = 0
    not_found: int = 0
    remaining: int = 0
    identity_mismatches: int = 0

    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    mutations: List[RowMutation] = Field(default_factory=list)

    @property
    def rejected(self) -> bool:
        return self.state == BatchState.REJECTED
