"""
Catalog Store

Tabular storage for catalog rows plus the append-only update log.

Backends:
- InMemoryCatalogStore: tests and local runs
- PostgresCatalogStore: production (psycopg2)

Version: catalog_store_v1
"""

from .audit import AuditEntry, AuditOperation, EMPTY_MARKER, make_audit_entry
from .base import CatalogSnapshot, CatalogStore, StoredRow
from .memory import InMemoryCatalogStore
from .postgres import PostgresCatalogStore

__all__ = [
    "AuditEntry",
    "AuditOperation",
    "EMPTY_MARKER",
    "make_audit_entry",
    "CatalogSnapshot",
    "CatalogStore",
    "StoredRow",
    "InMemoryCatalogStore",
    "PostgresCatalogStore",
]

__version__ = "catalog_store_v1"
