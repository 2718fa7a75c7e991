"""
PostgreSQL Catalog Store

Keeps the spreadsheet shape in PostgreSQL: an ordered header table, one JSONB
cells document per row, and an update-log table.

Tables:
- catalog_headers (position, name)
- catalog_rows (row_ref, cells JSONB, updated_at)
- catalog_update_logs (logged_at, operation, product_name, row_ref, field, old_value, new_value)
"""

import json
import logging
from functools import partial
from typing import Any, Dict, List

import psycopg2
from psycopg2.extras import Json, RealDictCursor

from appcatalog.shared.config import EngineConfig
from appcatalog.shared.errors import CatalogStoreError

from .audit import AuditEntry
from .base import CatalogSnapshot, CatalogStore, StoredRow

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS catalog_headers (
        position INTEGER PRIMARY KEY,
        name TEXT NOT NULL UNIQUE
    );

    CREATE TABLE IF NOT EXISTS catalog_rows (
        row_ref SERIAL PRIMARY KEY,
        cells JSONB NOT NULL DEFAULT '{}'::jsonb,
        updated_at TIMESTAMPTZ DEFAULT NOW()
    );

    CREATE TABLE IF NOT EXISTS catalog_update_logs (
        id SERIAL PRIMARY KEY,
        logged_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        operation TEXT NOT NULL,
        product_name TEXT NOT NULL,
        row_ref INTEGER,
        field TEXT NOT NULL,
        old_value TEXT,
        new_value TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_catalog_update_logs_logged_at
        ON catalog_update_logs(logged_at);
"""

_json_dumps = partial(json.dumps, default=str)


class PostgresCatalogStore(CatalogStore):
    """Catalog store backed by PostgreSQL via psycopg2."""

    def __init__(self, database_url: str):
        self.database_url = database_url

    @classmethod
    def from_config(cls, config: EngineConfig) -> "PostgresCatalogStore":
        """Raises ConfigurationError when DATABASE_URL is absent."""
        return cls(config.require_database_url())

    def _connect(self):
        try:
            return psycopg2.connect(self.database_url, cursor_factory=RealDictCursor)
        except psycopg2.Error as e:
            raise CatalogStoreError(f"Database connection failed: {e}") from e

    def _execute(self, sql: str, params: tuple = (), fetch: str = "none") -> Any:
        """Run one statement in its own transaction."""
        conn = self._connect()
        try:
            cur = conn.cursor()
            cur.execute(sql, params)
            if fetch == "one":
                result = cur.fetchone()
            elif fetch == "all":
                result = cur.fetchall()
            else:
                result = None
            conn.commit()
            cur.close()
            return result
        except psycopg2.Error as e:
            conn.rollback()
            raise CatalogStoreError(f"Database error: {e}") from e
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        self._execute(SCHEMA_SQL)

    def set_headers(self, headers: List[str]) -> None:
        """Replace the header row."""
        conn = self._connect()
        try:
            cur = conn.cursor()
            cur.execute("DELETE FROM catalog_headers")
            for position, name in enumerate(headers):
                cur.execute(
                    "INSERT INTO catalog_headers (position, name) VALUES (%s, %s)",
                    (position, name),
                )
            conn.commit()
            cur.close()
        except psycopg2.Error as e:
            conn.rollback()
            raise CatalogStoreError(f"Database error: {e}") from e
        finally:
            conn.close()

    def snapshot(self) -> CatalogSnapshot:
        conn = self._connect()
        try:
            cur = conn.cursor()
            cur.execute("SELECT name FROM catalog_headers ORDER BY position")
            headers = [r["name"] for r in cur.fetchall()]
            cur.execute("SELECT row_ref, cells FROM catalog_rows ORDER BY row_ref")
            rows = [StoredRow(row_ref=r["row_ref"], cells=dict(r["cells"] or {})) for r in cur.fetchall()]
            cur.close()
        except psycopg2.Error as e:
            raise CatalogStoreError(f"Database error: {e}") from e
        finally:
            conn.close()
        return CatalogSnapshot(headers=headers, rows=rows)

    def read_cell(self, row_ref: int, header: str) -> Any:
        row = self._execute(
            "SELECT cells -> %s AS value FROM catalog_rows WHERE row_ref = %s",
            (header, row_ref),
            fetch="one",
        )
        if row is None:
            raise CatalogStoreError(f"Row {row_ref} not found", details={"row_ref": row_ref})
        return row["value"]

    def update_row(self, row_ref: int, cells: Dict[str, Any]) -> None:
        conn = self._connect()
        try:
            cur = conn.cursor()
            cur.execute("SELECT name FROM catalog_headers")
            headers = {r["name"] for r in cur.fetchall()}
            unknown = [h for h in cells if h not in headers]
            if unknown:
                raise CatalogStoreError(f"Unknown columns: {unknown}", details={"row_ref": row_ref})
            cur.execute(
                """
                UPDATE catalog_rows
                SET cells = cells || %s::jsonb, updated_at = NOW()
                WHERE row_ref = %s
                RETURNING row_ref
                """,
                (Json(cells, dumps=_json_dumps), row_ref),
            )
            row = cur.fetchone()
            conn.commit()
            cur.close()
        except psycopg2.Error as e:
            conn.rollback()
            raise CatalogStoreError(f"Database error: {e}") from e
        finally:
            conn.close()
        if row is None:
            raise CatalogStoreError(f"Row {row_ref} not found", details={"row_ref": row_ref})

    def append_row(self, cells: Dict[str, Any]) -> int:
        row = self._execute(
            "INSERT INTO catalog_rows (cells) VALUES (%s::jsonb) RETURNING row_ref",
            (Json(cells, dumps=_json_dumps),),
            fetch="one",
        )
        return row["row_ref"]

    def append_audit(self, entries: List[AuditEntry]) -> None:
        if not entries:
            return
        conn = self._connect()
        try:
            cur = conn.cursor()
            for entry in entries:
                cur.execute(
                    """
                    INSERT INTO catalog_update_logs
                        (logged_at, operation, product_name, row_ref, field, old_value, new_value)
                    VALUES (%s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        entry.timestamp,
                        entry.operation,
                        entry.product_name,
                        entry.row_ref,
                        entry.field,
                        entry.old_value,
                        entry.new_value,
                    ),
                )
            conn.commit()
            cur.close()
        except psycopg2.Error as e:
            conn.rollback()
            raise CatalogStoreError(f"Database error: {e}") from e
        finally:
            conn.close()

    def recent_audit(self, limit: int = 10) -> List[AuditEntry]:
        rows = self._execute(
            """
            SELECT logged_at, operation, product_name, row_ref, field, old_value, new_value
            FROM catalog_update_logs
            ORDER BY id DESC
            LIMIT %s
            """,
            (limit,),
            fetch="all",
        )
        return [
            AuditEntry(
                timestamp=r["logged_at"],
                operation=r["operation"],
                product_name=r["product_name"],
                row_ref=r["row_ref"],
                field=r["field"],
                old_value=r["old_value"] or "",
                new_value=r["new_value"] or "",
            )
            for r in rows
        ]
