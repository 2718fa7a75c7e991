"""
Row Normalizer

Maps raw, possibly legacy-named tabular columns into the canonical field set
and centralizes every type-coercion rule used by the engine.

Resolution order per canonical field:
1. Header equal to the canonical (lowercase) name
2. Known legacy alias from config/catalog/column_aliases.v1.json
3. Absent (empty default)

Coercion rules:
- Booleans: native bool, or "true"/"false" in any case. Anything else is False.
- Empty: None, NaN, or a string that is blank after trimming.
- Integers: unparseable -> 0.
- Cost: empty -> MISSING, unparseable -> UNPARSEABLE, both with no value, so
  "free" (0) and "unknown" stay distinguishable.
- Dates: ISO strings, datetimes, or Excel serial numbers.

Normalization never raises for malformed cells.

Version: column_aliases_v1
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from .models import CatalogEntry, CostStatus
from .vocabulary import split_list

logger = logging.getLogger(__name__)


Row = Union[Sequence[Any], Dict[str, Any]]


# ============================================================================
# CELL COERCION
# ============================================================================

def is_empty(value: Any) -> bool:
    """True for None, NaN/NaT, and blank strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def parse_boolean(value: Any) -> bool:
    if pd.api.types.is_bool(value):
        return bool(value)
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def parse_int(value: Any) -> int:
    if is_empty(value) or pd.api.types.is_bool(value):
        return 0
    try:
        number = int(float(str(value).replace(",", "").strip()))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(number, 0)


_COST_CLEAN = re.compile(r"[$,\s]")


def parse_cost(value: Any) -> Tuple[Optional[float], CostStatus]:
    """Parse a cost cell, keeping missing and unparseable apart from zero."""
    if is_empty(value):
        return None, CostStatus.MISSING
    if pd.api.types.is_bool(value):
        return None, CostStatus.UNPARSEABLE
    try:
        number = float(_COST_CLEAN.sub("", str(value)))
    except (TypeError, ValueError):
        return None, CostStatus.UNPARSEABLE
    if number != number or number < 0:
        return None, CostStatus.UNPARSEABLE
    return number, CostStatus.PARSED


def parse_date(value: Any) -> Optional[date]:
    """Parse ISO strings, datetimes and Excel serial day numbers."""
    if is_empty(value) or pd.api.types.is_bool(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        if isinstance(value, (int, float)):
            parsed = pd.to_datetime(value, unit="D", origin="1899-12-30", errors="coerce")
        else:
            parsed = pd.to_datetime(str(value).strip(), errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return parsed.date()


def cell_text(value: Any) -> str:
    """Render a cell as trimmed text. Booleans become TRUE/FALSE."""
    if is_empty(value):
        return ""
    if pd.api.types.is_bool(value):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v).strip() for v in value if not is_empty(v))
    return str(value).strip()


_LICENSE_TYPE_VARIANTS = {
    "individual": "Individual",
    "inidividual": "Individual",
    "site": "Site License",
    "site license": "Site License",
    "site licence": "Site License",
    "unlimited": "Free",
    "free": "Free",
}


def normalize_license_type(value: Any) -> str:
    """Map spelling variants to the validated license type values."""
    text = cell_text(value)
    return _LICENSE_TYPE_VARIANTS.get(text.lower(), text)


# ============================================================================
# ALIAS TABLE
# ============================================================================

@dataclass
class ColumnMap:
    """Canonical field -> header position for one header row."""

    headers: List[str]
    columns: Dict[str, int] = field(default_factory=dict)

    def has(self, canonical: str) -> bool:
        return canonical in self.columns

    def header_for(self, canonical: str) -> Optional[str]:
        index = self.columns.get(canonical)
        if index is None:
            return None
        return self.headers[index]

    def missing(self, canonical_fields: Iterable[str]) -> List[str]:
        return [f for f in canonical_fields if f not in self.columns]

    def extract(self, row: Row) -> Dict[str, Any]:
        """Pull canonical fields out of a list row or a header-keyed dict row."""
        fields: Dict[str, Any] = {}
        for canonical, index in self.columns.items():
            if isinstance(row, dict):
                fields[canonical] = row.get(self.headers[index])
            elif index < len(row):
                fields[canonical] = row[index]
            else:
                fields[canonical] = None
        return fields


class ColumnAliasTable:
    """
    Versioned canonical-column table with legacy aliases.
    """

    def __init__(self, table_path: Optional[str] = None):
        """
        Initialize with alias table JSON file.

        Args:
            table_path: Path to column_aliases.v1.json
        """
        if table_path is None:
            table_path = os.path.join(
                os.path.dirname(__file__),
                '..', '..', 'config', 'catalog', 'column_aliases.v1.json'
            )

        self.table_path = Path(table_path)
        self._load_table()

    def _load_table(self):
        if not self.table_path.exists():
            raise FileNotFoundError(f"Column alias table not found: {self.table_path}")

        with open(self.table_path, 'r', encoding='utf-8') as f:
            self.raw_table = json.load(f)

        self.version = self.raw_table.get("version", "unknown")
        self.fields: Dict[str, Dict[str, Any]] = self.raw_table.get("fields", {})

        # alias -> canonical
        self._alias_index: Dict[str, str] = {}
        for canonical, data in self.fields.items():
            for alias in data.get("aliases", []):
                self._alias_index.setdefault(alias, canonical)

    @property
    def canonical_fields(self) -> List[str]:
        return list(self.fields.keys())

    def field_type(self, canonical: str) -> str:
        return self.fields.get(canonical, {}).get("type", "string")

    def canonical_for(self, name: str) -> Optional[str]:
        """Canonical field for a canonical or alias name."""
        name = (name or "").strip()
        if name in self.fields:
            return name
        return self._alias_index.get(name)

    def resolve(self, headers: Sequence[Any]) -> ColumnMap:
        """Resolve a header row into a ColumnMap."""
        clean = [cell_text(h) for h in headers]
        column_map = ColumnMap(headers=clean)

        for canonical, data in self.fields.items():
            if canonical in clean:
                column_map.columns[canonical] = clean.index(canonical)
                continue
            for alias in data.get("aliases", []):
                if alias in clean:
                    column_map.columns[canonical] = clean.index(alias)
                    break

        return column_map


@lru_cache(maxsize=1)
def load_alias_table() -> ColumnAliasTable:
    """Default alias table, loaded once per process."""
    return ColumnAliasTable()


# ============================================================================
# NORMALIZER
# ============================================================================

class RowNormalizer:
    """
    Turns raw rows into CatalogEntry records.
    """

    def __init__(self, alias_table: Optional[ColumnAliasTable] = None):
        self.alias_table = alias_table or load_alias_table()

    def column_map(self, headers: Sequence[Any]) -> ColumnMap:
        return self.alias_table.resolve(headers)

    def coerce(self, canonical: str, value: Any) -> Any:
        """Typed value of a cell, used for change detection."""
        kind = self.alias_table.field_type(canonical)
        if kind == "boolean":
            return parse_boolean(value)
        if kind == "optional_boolean":
            return None if is_empty(value) else parse_boolean(value)
        if kind == "integer":
            return parse_int(value)
        if kind == "cost":
            amount, status = parse_cost(value)
            return amount if status == CostStatus.PARSED else cell_text(value)
        if kind == "date":
            return parse_date(value) or cell_text(value)
        if kind == "list":
            return split_list(cell_text(value))
        if canonical == "license_type":
            return normalize_license_type(value)
        return cell_text(value)

    def storage_value(self, canonical: str, value: Any) -> Any:
        """Value to write into the tabular store for a canonical field."""
        typed = self.coerce(canonical, value)
        if isinstance(typed, list):
            return ", ".join(typed)
        if isinstance(typed, date):
            return typed.isoformat()
        if isinstance(typed, float) and typed.is_integer():
            return int(typed)
        return typed

    def same_value(self, canonical: str, old: Any, new: Any) -> bool:
        return self.coerce(canonical, old) == self.coerce(canonical, new)

    def to_entry(self, fields: Dict[str, Any], row_ref: Optional[int] = None) -> CatalogEntry:
        """Build a CatalogEntry from canonical raw fields."""
        cost, cost_status = parse_cost(fields.get("annual_cost"))
        sso = fields.get("sso_enabled")
        stable_id = cell_text(fields.get("stable_id"))

        return CatalogEntry(
            row_ref=row_ref,
            product_name=cell_text(fields.get("product_name")),
            stable_id=stable_id or None,
            active=parse_boolean(fields.get("active")),
            division=cell_text(fields.get("division")),
            department=cell_text(fields.get("department")),
            subjects=cell_text(fields.get("subjects")),
            is_org_core=parse_boolean(fields.get("is_org_core")),
            license_type=cell_text(fields.get("license_type")),
            license_count=parse_int(fields.get("license_count")),
            annual_cost=cost,
            cost_status=cost_status,
            category=cell_text(fields.get("category")),
            audience=cell_text(fields.get("audience")),
            grade_levels=cell_text(fields.get("grade_levels")),
            description=cell_text(fields.get("description")),
            website=cell_text(fields.get("website")),
            support_email=cell_text(fields.get("support_email")),
            tutorial_link=cell_text(fields.get("tutorial_link")),
            mobile_app=cell_text(fields.get("mobile_app")),
            sso_enabled=None if is_empty(sso) else parse_boolean(sso),
            logo_url=cell_text(fields.get("logo_url")),
            date_added=parse_date(fields.get("date_added")),
            renewal_date=parse_date(fields.get("renewal_date")),
        )

    def normalize_row(self, headers: Sequence[Any], row: Row, row_ref: Optional[int] = None) -> CatalogEntry:
        column_map = self.column_map(headers)
        return self.to_entry(column_map.extract(row), row_ref=row_ref)

    def normalize_rows(self, headers: Sequence[Any], rows: Iterable[Tuple[Optional[int], Row]]) -> List[CatalogEntry]:
        """Normalize (row_ref, row) pairs against one header row."""
        column_map = self.column_map(headers)
        return [self.to_entry(column_map.extract(row), row_ref=ref) for ref, row in rows]
