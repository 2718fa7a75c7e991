"""
Reconciliation Engine

Merges an externally supplied batch into the live catalog.

State machine per call:
    Parsed -> Validated -> (Translated, vendor format only) -> Reconciled
           -> Applied -> Reported
Any structural validation failure goes straight to Rejected with zero writes.

Modes:
- add-update: add absent rows, update matched rows field by field
- full-sync: add-update, then deactivate active rows absent from the batch
- fill-missing-only: populate empty fields of matched rows only

Protected fields (department, subjects, is_org_core) are never overwritten
when non-empty, and are never written at all in fill-missing-only mode. An
existing category is never replaced by the import placeholder.

Each row write is committed on its own after re-reading the row's product
name. At most max_batch_size row writes happen per call; rows whose plan is
empty are skipped without counting, so re-running resumes where the last
call stopped.

Version: catalog_reconcile_v1
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from appcatalog.catalog.models import CatalogEntry
from appcatalog.catalog.normalizer import (
    ColumnMap,
    RowNormalizer,
    cell_text,
    is_empty,
    normalize_license_type,
)
from appcatalog.catalog.vocabulary import (
    format_grade_levels,
    infer_grade_levels,
    validate_audience,
    validate_grade_levels,
)
from appcatalog.shared.config import EngineConfig
from appcatalog.shared.errors import (
    AudienceError,
    CatalogStoreError,
    GradeLevelError,
    IdentityMismatchError,
    MissingColumnsError,
    ValidationError,
)
from appcatalog.store.audit import AuditOperation, make_audit_entry
from appcatalog.store.base import CatalogSnapshot, CatalogStore, StoredRow

from .models import (
    BatchState,
    FieldChange,
    ImportBatch,
    IncomingRow,
    MutationKind,
    ReconcileSummary,
    RowMutation,
    SourceFormat,
    UpdateMode,
)
from .vendor import is_vendor_format, translate_vendor_row

logger = logging.getLogger(__name__)


REQUIRED_IMPORT_FIELDS = ["product_name", "active", "division", "department"]
PROTECTED_FIELDS = frozenset({"department", "subjects", "is_org_core"})

# Spreadsheet rows are 1-based and row 1 is the header
FIRST_DATA_ROW = 2


# ============================================================================
# IDENTITY MATCHING
# ============================================================================

class SnapshotIndex:
    """
    Identity lookup over a snapshot.

    A batch row matches an entry by stable id when both have one, else by
    trimmed, case-insensitive product name. Active entries win over inactive
    ones; among inactive entries the latest row wins.
    """

    def __init__(self, entries: Sequence[CatalogEntry]):
        self.entries = list(entries)
        self.by_id: Dict[str, List[CatalogEntry]] = {}
        self.by_name: Dict[str, List[CatalogEntry]] = {}
        for entry in self.entries:
            if entry.stable_id:
                self.by_id.setdefault(entry.stable_id, []).append(entry)
            if entry.product_name:
                self.by_name.setdefault(entry.name_key, []).append(entry)

    @staticmethod
    def _pick(candidates: List[CatalogEntry]) -> Optional[CatalogEntry]:
        if not candidates:
            return None
        active = [e for e in candidates if e.active]
        if active:
            return active[0]
        return candidates[-1]

    def match(self, stable_id: Optional[str], product_name: str) -> Optional[CatalogEntry]:
        if stable_id and stable_id in self.by_id:
            return self._pick(self.by_id[stable_id])
        name_key = product_name.strip().lower()
        candidates = [
            e for e in self.by_name.get(name_key, [])
            if not (stable_id and e.stable_id and e.stable_id != stable_id)
        ]
        return self._pick(candidates)


# ============================================================================
# BATCH PREPARATION
# ============================================================================

def _is_blank_row(row: Any) -> bool:
    values = row.values() if isinstance(row, dict) else row
    return all(is_empty(v) for v in values)


def prepare_incoming(
    batch: ImportBatch,
    normalizer: RowNormalizer,
    config: EngineConfig,
) -> List[IncomingRow]:
    """
    Validate batch structure and resolve rows to canonical fields.

    Raises:
        ValidationError: empty header row
        MissingColumnsError: generic batch without the required columns
    """
    headers = [cell_text(h) for h in batch.headers]
    if not any(headers):
        raise ValidationError("Import batch has no header row")

    incoming: List[IncomingRow] = []

    if is_vendor_format(headers):
        batch.source_format = SourceFormat.VENDOR
        batch.state = BatchState.VALIDATED
        for index, row in enumerate(batch.rows):
            if _is_blank_row(row):
                continue
            fields = translate_vendor_row(headers, row, config)
            incoming.append(IncomingRow(batch_row=index + FIRST_DATA_ROW, fields=fields))
        batch.state = BatchState.TRANSLATED
        logger.info(f"Translated {len(incoming)} vendor rows")
        return incoming

    column_map = normalizer.column_map(headers)
    missing = column_map.missing(REQUIRED_IMPORT_FIELDS)
    if missing:
        raise MissingColumnsError(missing)
    batch.state = BatchState.VALIDATED

    for index, row in enumerate(batch.rows):
        if _is_blank_row(row):
            continue
        fields = column_map.extract(row)
        if not is_empty(fields.get("license_type")):
            fields["license_type"] = normalize_license_type(fields["license_type"])
        incoming.append(IncomingRow(batch_row=index + FIRST_DATA_ROW, fields=fields))

    return incoming


# ============================================================================
# PLANNING
# ============================================================================

class _Planner:
    """Computes row mutations for one batch against one snapshot."""

    def __init__(
        self,
        batch: ImportBatch,
        snapshot: CatalogSnapshot,
        config: EngineConfig,
        normalizer: RowNormalizer,
        today: date,
    ):
        self.batch = batch
        self.snapshot = snapshot
        self.config = config
        self.normalizer = normalizer
        self.today = today
        self.store_map: ColumnMap = normalizer.column_map(snapshot.headers)
        self.entries = snapshot.entries(normalizer)
        self.index = SnapshotIndex(self.entries)
        self.summary = ReconcileSummary(mode=batch.mode)

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.summary.warnings.append(message)

    def _write_value(self, field: str, value: Any, product_name: str) -> Tuple[bool, Any]:
        """Validate controlled vocabularies; reject the whole field on any bad token."""
        if field == "grade_levels":
            try:
                grades = validate_grade_levels(cell_text(value))
            except GradeLevelError as e:
                self._warn(f"{product_name}: {e.message}; grade levels not written")
                return False, None
            return bool(grades), format_grade_levels(grades)
        if field == "audience":
            try:
                audience = validate_audience(cell_text(value))
            except AudienceError as e:
                self._warn(f"{product_name}: {e.message}; audience not written")
                return False, None
            return bool(audience), ", ".join(audience)
        return True, self.normalizer.storage_value(field, value)

    def _infer_grades(self, division: Any, audience: Any, product_name: str) -> Optional[str]:
        grades = infer_grade_levels(
            cell_text(division),
            cell_text(audience),
            staff_placeholder=self.config.staff_grade_placeholder,
        )
        if not grades:
            return None
        ok, value = self._write_value("grade_levels", format_grade_levels(grades), product_name)
        return value if ok else None

    def plan_add(self, incoming: IncomingRow, product_name: str) -> RowMutation:
        changes: List[FieldChange] = []
        supplied: Dict[str, Any] = {}
        for field, value in incoming.fields.items():
            header = self.store_map.header_for(field)
            if header is None or is_empty(value):
                continue
            ok, write_value = self._write_value(field, value, product_name)
            if not ok:
                continue
            supplied[field] = write_value
            changes.append(FieldChange(field=field, header=header, old_value=None, new_value=write_value))

        # A rejected grade value blocks inference as well as the write
        grade_header = self.store_map.header_for("grade_levels")
        if grade_header and is_empty(incoming.fields.get("grade_levels")):
            inferred = self._infer_grades(supplied.get("division"), supplied.get("audience"), product_name)
            if inferred:
                changes.append(FieldChange(field="grade_levels", header=grade_header, new_value=inferred))

        date_header = self.store_map.header_for("date_added")
        if date_header and "date_added" not in supplied:
            changes.append(FieldChange(field="date_added", header=date_header, new_value=self.today.isoformat()))

        return RowMutation(
            kind=MutationKind.ADD,
            product_name=product_name,
            batch_row=incoming.batch_row,
            changes=changes,
        )

    def plan_update(self, entry: CatalogEntry, stored: StoredRow, incoming: IncomingRow) -> RowMutation:
        fill_only = self.batch.mode == UpdateMode.FILL_MISSING_ONLY
        changes: List[FieldChange] = []

        for field, new_value in incoming.fields.items():
            header = self.store_map.header_for(field)
            if header is None or is_empty(new_value):
                continue
            old_value = stored.cells.get(header)

            # Case or spacing variants of the matched name are not renames
            if field == "product_name" and cell_text(new_value).lower() == entry.name_key:
                continue

            if fill_only:
                if field in PROTECTED_FIELDS or not is_empty(old_value):
                    continue
            else:
                if field in PROTECTED_FIELDS and not is_empty(old_value):
                    continue
                if (
                    field == "category"
                    and not is_empty(old_value)
                    and cell_text(new_value) == self.config.category_placeholder
                ):
                    continue

            ok, write_value = self._write_value(field, new_value, entry.product_name)
            if not ok or self.normalizer.same_value(field, old_value, write_value):
                continue
            changes.append(FieldChange(field=field, header=header, old_value=old_value, new_value=write_value))

        grade_header = self.store_map.header_for("grade_levels")
        if (
            not fill_only
            and grade_header
            and is_empty(stored.cells.get(grade_header))
            and is_empty(incoming.fields.get("grade_levels"))
        ):
            planned = {c.field: c.new_value for c in changes}
            inferred = self._infer_grades(
                planned.get("division", entry.division),
                planned.get("audience", ", ".join(entry.audience)),
                entry.product_name,
            )
            if inferred:
                changes.append(FieldChange(
                    field="grade_levels",
                    header=grade_header,
                    old_value=stored.cells.get(grade_header),
                    new_value=inferred,
                ))

        return RowMutation(
            kind=MutationKind.UPDATE,
            product_name=entry.product_name,
            row_ref=entry.row_ref,
            batch_row=incoming.batch_row,
            changes=changes,
        )

    def plan_deactivations(self, matched_refs: Set[int]) -> List[RowMutation]:
        active_header = self.store_map.header_for("active")
        if active_header is None:
            self._warn("Catalog has no active column; full-sync cannot deactivate rows")
            return []

        mutations = []
        for entry in self.entries:
            if not entry.active or not entry.product_name or entry.row_ref in matched_refs:
                continue
            stored = self.snapshot.get(entry.row_ref)
            mutations.append(RowMutation(
                kind=MutationKind.DEACTIVATE,
                product_name=entry.product_name,
                row_ref=entry.row_ref,
                changes=[FieldChange(
                    field="active",
                    header=active_header,
                    old_value=stored.cells.get(active_header) if stored else True,
                    new_value=False,
                )],
            ))
        return mutations

    def plan(self, incoming_rows: List[IncomingRow]) -> ReconcileSummary:
        summary = self.summary
        summary.source_format = self.batch.source_format

        matched_refs: Set[int] = set()
        seen_refs: Dict[int, int] = {}
        seen_new: Dict[str, int] = {}

        for incoming in incoming_rows:
            product_name = cell_text(incoming.fields.get("product_name"))
            if not product_name:
                summary.errors.append(f"Row {incoming.batch_row}: Missing product_name")
                continue
            stable_id = cell_text(incoming.fields.get("stable_id")) or None

            entry = self.index.match(stable_id, product_name)

            if entry is None:
                keys = [f"name:{product_name.lower()}"] + ([f"id:{stable_id}"] if stable_id else [])
                duplicate_of = next((seen_new[k] for k in keys if k in seen_new), None)
                if duplicate_of is not None:
                    summary.errors.append(
                        f"Row {incoming.batch_row}: Duplicate of row {duplicate_of} ({product_name})"
                    )
                    continue
                for key in keys:
                    seen_new[key] = incoming.batch_row

                if self.batch.mode == UpdateMode.FILL_MISSING_ONLY:
                    summary.not_found += 1
                    continue
                summary.mutations.append(self.plan_add(incoming, product_name))
                continue

            if entry.row_ref in seen_refs:
                summary.errors.append(
                    f"Row {incoming.batch_row}: Duplicate of row {seen_refs[entry.row_ref]} ({product_name})"
                )
                continue
            seen_refs[entry.row_ref] = incoming.batch_row
            matched_refs.add(entry.row_ref)

            mutation = self.plan_update(entry, self.snapshot.get(entry.row_ref), incoming)
            if mutation.changes:
                summary.mutations.append(mutation)
            else:
                summary.unchanged += 1

        if self.batch.mode == UpdateMode.FULL_SYNC:
            summary.mutations.extend(self.plan_deactivations(matched_refs))

        self.batch.state = BatchState.RECONCILED
        summary.state = BatchState.RECONCILED
        return summary


def plan_reconciliation(
    batch: ImportBatch,
    snapshot: CatalogSnapshot,
    config: Optional[EngineConfig] = None,
    normalizer: Optional[RowNormalizer] = None,
    today: Optional[date] = None,
) -> ReconcileSummary:
    """
    Compute the mutation plan for a batch without writing anything.

    Raises:
        ValidationError: batch or catalog structure is unusable
    """
    config = config or EngineConfig()
    normalizer = normalizer or RowNormalizer()
    today = today or datetime.now(timezone.utc).date()

    store_map = normalizer.column_map(snapshot.headers)
    if not store_map.has("product_name"):
        raise ValidationError("Catalog has no product_name column")

    incoming = prepare_incoming(batch, normalizer, config)
    planner = _Planner(batch, snapshot, config, normalizer, today)
    return planner.plan(incoming)


# ============================================================================
# APPLY
# ============================================================================

_AUDIT_OPERATIONS = {
    MutationKind.ADD: AuditOperation.IMPORT_ADD,
    MutationKind.DEACTIVATE: AuditOperation.IMPORT_DEACTIVATE,
}


class ReconciliationEngine:
    """
    Runs reconciliation against a CatalogStore.

    Usage:
        engine = ReconciliationEngine(store, EngineConfig.from_env())
        summary = engine.reconcile(headers, rows, "add-update")
    """

    def __init__(
        self,
        store: CatalogStore,
        config: Optional[EngineConfig] = None,
        normalizer: Optional[RowNormalizer] = None,
    ):
        self.store = store
        self.config = config or EngineConfig()
        self.normalizer = normalizer or RowNormalizer()

    def reconcile(
        self,
        headers: Sequence[Any],
        rows: Sequence[Sequence[Any]],
        mode: Any,
        dry_run: bool = False,
        today: Optional[date] = None,
    ) -> ReconcileSummary:
        """
        Reconcile one batch.

        Args:
            headers: Batch header row
            rows: Batch data rows aligned with headers
            mode: 'add-update', 'full-sync' or 'fill-missing-only'
            dry_run: Plan and count without writing (preflight)

        Returns:
            ReconcileSummary. A rejected batch has state REJECTED and no writes.
        """
        try:
            update_mode = UpdateMode.parse(mode)
        except ValueError:
            summary = ReconcileSummary(mode=UpdateMode.ADD_UPDATE, state=BatchState.REJECTED, dry_run=dry_run)
            summary.errors.append(f"Unknown update mode: {mode}")
            return summary

        batch = ImportBatch(headers=list(headers), rows=list(rows), mode=update_mode)
        snapshot = self.store.snapshot()

        try:
            summary = plan_reconciliation(batch, snapshot, self.config, self.normalizer, today)
        except ValidationError as e:
            logger.warning(f"Import batch rejected: {e.message}")
            summary = ReconcileSummary(
                mode=update_mode,
                source_format=batch.source_format,
                state=BatchState.REJECTED,
                dry_run=dry_run,
            )
            summary.errors.append(e.message)
            return summary

        summary.dry_run = dry_run
        name_header = self.normalizer.column_map(snapshot.headers).header_for("product_name")
        self._apply(summary, name_header, dry_run)

        summary.state = BatchState.REPORTED
        logger.info(
            f"Reconcile {update_mode.value} ({summary.source_format.value}): "
            f"added={summary.added} updated={summary.updated} unchanged={summary.unchanged} "
            f"deactivated={summary.deactivated} remaining={summary.remaining} "
            f"errors={len(summary.errors)} dry_run={dry_run}"
        )
        return summary

    def _apply(self, summary: ReconcileSummary, name_header: str, dry_run: bool) -> None:
        writes = 0
        for mutation in summary.mutations:
            if writes >= self.config.max_batch_size:
                summary.remaining += 1
                continue
            writes += 1

            if not dry_run:
                try:
                    self._apply_mutation(mutation, name_header, summary)
                except IdentityMismatchError as e:
                    logger.warning(e.message)
                    summary.identity_mismatches += 1
                    summary.errors.append(e.message)
                    continue
                except CatalogStoreError as e:
                    logger.error(f"Write failed for {mutation.product_name}: {e.message}")
                    summary.errors.append(f"{mutation.product_name}: {e.message}")
                    continue

            if mutation.kind == MutationKind.ADD:
                summary.added += 1
            elif mutation.kind == MutationKind.DEACTIVATE:
                summary.deactivated += 1
            else:
                summary.updated += 1

        if not dry_run:
            summary.state = BatchState.APPLIED

    def _apply_mutation(self, mutation: RowMutation, name_header: str, summary: ReconcileSummary) -> None:
        """Write one row, then its audit entries."""
        if mutation.kind == MutationKind.ADD:
            mutation.row_ref = self.store.append_row(mutation.cells())
        else:
            current = self.store.read_cell(mutation.row_ref, name_header)
            if cell_text(current).lower() != mutation.product_name.strip().lower():
                raise IdentityMismatchError(mutation.row_ref, mutation.product_name, current)
            self.store.update_row(mutation.row_ref, mutation.cells())

        operation = _AUDIT_OPERATIONS.get(mutation.kind)
        if operation is None:
            if summary.mode == UpdateMode.FILL_MISSING_ONLY:
                operation = AuditOperation.IMPORT_FILL_MISSING
            else:
                operation = AuditOperation.IMPORT_UPDATE

        entries = [
            make_audit_entry(operation, mutation.product_name, mutation.row_ref, c.field, c.old_value, c.new_value)
            for c in mutation.changes
        ]
        try:
            self.store.append_audit(entries)
        except CatalogStoreError as e:
            message = f"Audit log write failed for {mutation.product_name}: {e.message}"
            logger.error(message)
            summary.warnings.append(message)


def reconcile(
    batch_rows: Sequence[Sequence[Any]],
    headers: Sequence[Any],
    mode: Any,
    store: CatalogStore,
    config: Optional[EngineConfig] = None,
    dry_run: bool = False,
) -> ReconcileSummary:
    """Functional entry point: reconcile(batch, headers, mode) against a store."""
    return ReconciliationEngine(store, config).reconcile(headers, batch_rows, mode, dry_run=dry_run)
