"""
Tabular Catalog Store

Row/column abstraction the engine reads snapshots from and writes to. The
header row is the schema of record. Rows are addressed by row_ref; each
update_row/append_row call is committed on its own, with no cross-row
transaction.

Version: catalog_store_v1
"""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from appcatalog.catalog.models import CatalogEntry
from appcatalog.catalog.normalizer import RowNormalizer

from .audit import AuditEntry


@dataclass
class StoredRow:
    row_ref: int
    cells: Dict[str, Any]


@dataclass
class CatalogSnapshot:
    """Point-in-time copy of the store passed explicitly through the engine."""
    headers: List[str]
    rows: List[StoredRow] = field(default_factory=list)

    def get(self, row_ref: int) -> Optional[StoredRow]:
        for row in self.rows:
            if row.row_ref == row_ref:
                return row
        return None

    def copy(self) -> "CatalogSnapshot":
        return copy.deepcopy(self)

    def entries(self, normalizer: Optional[RowNormalizer] = None) -> List[CatalogEntry]:
        """Normalize every row into a CatalogEntry."""
        normalizer = normalizer or RowNormalizer()
        return normalizer.normalize_rows(
            self.headers, ((row.row_ref, row.cells) for row in self.rows)
        )


class CatalogStore(ABC):
    """Storage backend for catalog rows and the update log."""

    @abstractmethod
    def snapshot(self) -> CatalogSnapshot:
        """Fetch headers and all rows."""

    @abstractmethod
    def read_cell(self, row_ref: int, header: str) -> Any:
        """Re-read a single cell (used for the row-identity check)."""

    @abstractmethod
    def update_row(self, row_ref: int, cells: Dict[str, Any]) -> None:
        """Write several cells of one row atomically."""

    @abstractmethod
    def append_row(self, cells: Dict[str, Any]) -> int:
        """Append a row and return its row_ref."""

    @abstractmethod
    def append_audit(self, entries: List[AuditEntry]) -> None:
        """Append update-log entries."""

    @abstractmethod
    def recent_audit(self, limit: int = 10) -> List[AuditEntry]:
        """Most recent update-log entries, newest first."""
