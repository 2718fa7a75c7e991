"""
In-Memory Catalog Store

Sheet-like store: row_refs start at 2 because row 1 is the header row.
"""

import copy
import logging
from typing import Any, Dict, List, Optional, Sequence

from appcatalog.shared.errors import CatalogStoreError

from .audit import AuditEntry
from .base import CatalogSnapshot, CatalogStore, StoredRow

logger = logging.getLogger(__name__)


FIRST_ROW_REF = 2


class InMemoryCatalogStore(CatalogStore):
    """Catalog store held in process memory."""

    def __init__(self, headers: Sequence[str], rows: Optional[List[Dict[str, Any]]] = None):
        self.headers = list(headers)
        self._rows: Dict[int, Dict[str, Any]] = {}
        self._next_ref = FIRST_ROW_REF
        self.audit_log: List[AuditEntry] = []
        for cells in rows or []:
            self.append_row(cells)

    @classmethod
    def from_records(cls, records: List[Dict[str, Any]], headers: Optional[Sequence[str]] = None) -> "InMemoryCatalogStore":
        """Build a store from dict records; headers default to first-seen key order."""
        if headers is None:
            seen: List[str] = []
            for record in records:
                for key in record:
                    if key not in seen:
                        seen.append(key)
            headers = seen
        return cls(headers, records)

    def snapshot(self) -> CatalogSnapshot:
        rows = [
            StoredRow(row_ref=ref, cells=copy.deepcopy(cells))
            for ref, cells in sorted(self._rows.items())
        ]
        return CatalogSnapshot(headers=list(self.headers), rows=rows)

    def _row(self, row_ref: int) -> Dict[str, Any]:
        if row_ref not in self._rows:
            raise CatalogStoreError(f"Row {row_ref} not found", details={"row_ref": row_ref})
        return self._rows[row_ref]

    def read_cell(self, row_ref: int, header: str) -> Any:
        return self._row(row_ref).get(header)

    def update_row(self, row_ref: int, cells: Dict[str, Any]) -> None:
        row = self._row(row_ref)
        unknown = [h for h in cells if h not in self.headers]
        if unknown:
            raise CatalogStoreError(f"Unknown columns: {unknown}", details={"row_ref": row_ref})
        row.update(cells)

    def append_row(self, cells: Dict[str, Any]) -> int:
        row_ref = self._next_ref
        self._next_ref += 1
        self._rows[row_ref] = {h: cells.get(h, "") for h in self.headers}
        return row_ref

    def append_audit(self, entries: List[AuditEntry]) -> None:
        self.audit_log.extend(entries)

    def recent_audit(self, limit: int = 10) -> List[AuditEntry]:
        return list(reversed(self.audit_log[-limit:])) if limit > 0 else []

    def rows_as_records(self) -> List[Dict[str, Any]]:
        return [dict(cells) for _, cells in sorted(self._rows.items())]
