"""
Reconciliation Engine Tests

Tests for merging import batches into the live catalog.

Mandatory test coverage:
- Protected fields never overwritten when non-empty (add-update)
- Protected fields never written in fill-missing-only mode
- Rejected grade values are not replaced by inferred grades
- full-sync deactivates active rows absent from the batch
- Missing required columns reject the batch with zero writes
- Batch cap: at most max_batch_size row writes, rest reported as remaining
- Row identity re-check skips drifted rows
- Every applied change is audited

Version: catalog_reconcile_v1
"""

import pytest
from datetime import date

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from appcatalog.reconcile import (
    BatchState,
    ImportBatch,
    MutationKind,
    ReconciliationEngine,
    UpdateMode,
    plan_reconciliation,
    reconcile,
)
from appcatalog.shared.config import EngineConfig
from appcatalog.shared.errors import CatalogStoreError
from appcatalog.store.audit import AuditOperation, EMPTY_MARKER
from appcatalog.store.memory import InMemoryCatalogStore


TODAY = date(2024, 5, 1)

STORE_HEADERS = [
    "product_name",
    "stable_id",
    "active",
    "division",
    "department",
    "subjects",
    "is_org_core",
    "category",
    "license_type",
    "annual_cost",
    "audience",
    "grade_levels",
    "description",
    "date_added",
]

BATCH_HEADERS = ["product_name", "active", "division", "department"]


# ============================================================================
# HELPERS
# ============================================================================

def make_record(name: str, **cells) -> dict:
    record = {
        "product_name": name,
        "active": "TRUE",
        "division": "High School",
        "department": "Math",
    }
    record.update(cells)
    return record


def make_store(*records) -> InMemoryCatalogStore:
    return InMemoryCatalogStore(STORE_HEADERS, list(records))


def batch_row(name: str, active="TRUE", division="High School", department="Math") -> list:
    return [name, active, division, department]


def protected_batch(field: str, value: str):
    """Batch headers and one row for Tool A carrying value in a protected field."""
    if field == "department":
        return BATCH_HEADERS, batch_row("Tool A", department=value)
    return BATCH_HEADERS + [field], batch_row("Tool A") + [value]


def run(store, rows, mode="add-update", headers=BATCH_HEADERS, config=None, dry_run=False):
    engine = ReconciliationEngine(store, config or EngineConfig())
    return engine.reconcile(headers, rows, mode, dry_run=dry_run, today=TODAY)


class DriftingStore(InMemoryCatalogStore):
    """Store whose rows moved after the snapshot was taken."""

    def read_cell(self, row_ref, header):
        if header == "product_name":
            return "Someone Else"
        return super().read_cell(row_ref, header)


class NoAuditStore(InMemoryCatalogStore):
    def append_audit(self, entries):
        raise CatalogStoreError("Update log unavailable")


class ReadOnlyStore(InMemoryCatalogStore):
    def update_row(self, row_ref, cells):
        raise CatalogStoreError("Sheet is protected")


# ============================================================================
# PROTECTED FIELDS
# ============================================================================

class TestProtectedFields:
    """Tests for protected-field rules."""

    def test_add_update_keeps_existing_department(self):
        """Non-empty department is never overwritten by an import."""
        store = make_store(make_record("Tool A", department="Math"))

        summary = run(store, [batch_row("Tool A", department="Science")])

        assert store.read_cell(2, "department") == "Math"
        assert not any(
            c.field == "department" for m in summary.mutations for c in m.changes
        )

    def test_fill_missing_never_fills_protected(self):
        """fill-missing-only leaves an empty department empty."""
        store = make_store(make_record("Tool A", department=""))

        summary = run(store, [batch_row("Tool A", department="Science")], mode="fill-missing-only")

        assert store.read_cell(2, "department") == ""
        assert summary.unchanged == 1
        assert summary.updated == 0

    def test_add_update_fills_empty_protected_field(self):
        store = make_store(make_record("Tool A", department=""))

        summary = run(store, [batch_row("Tool A", department="Science")])

        assert summary.updated == 1
        assert store.read_cell(2, "department") == "Science"

    def test_org_core_flag_not_overwritten(self):
        store = make_store(make_record("Tool A", is_org_core="TRUE"))
        headers = BATCH_HEADERS + ["is_org_core"]

        run(store, [batch_row("Tool A") + ["FALSE"]], headers=headers)

        assert store.read_cell(2, "is_org_core") == "TRUE"

    @pytest.mark.parametrize("mode", ["add-update", "full-sync"])
    @pytest.mark.parametrize("field,curated,incoming", [
        ("department", "Math", "Science"),
        ("subjects", "Algebra", "Biology"),
        ("is_org_core", "TRUE", "FALSE"),
    ])
    def test_curated_value_survives_import(self, mode, field, curated, incoming):
        store = make_store(make_record("Tool A", grade_levels="Grade 9", **{field: curated}))
        headers, row = protected_batch(field, incoming)

        summary = run(store, [row], headers=headers, mode=mode)

        assert store.read_cell(2, field) == curated
        assert not any(c.field == field for m in summary.mutations for c in m.changes)

    @pytest.mark.parametrize("field,incoming", [
        ("department", "Science"),
        ("subjects", "Biology"),
        ("is_org_core", "TRUE"),
    ])
    def test_fill_missing_never_writes_empty_protected(self, field, incoming):
        store = make_store(make_record("Tool A", grade_levels="Grade 9", **{field: ""}))
        headers, row = protected_batch(field, incoming)

        summary = run(store, [row], headers=headers, mode="fill-missing-only")

        assert store.read_cell(2, field) == ""
        assert summary.updated == 0
        assert store.audit_log == []

    def test_category_placeholder_never_replaces_value(self):
        store = make_store(make_record("Tool A", category="Assessment Platform", grade_levels="Grade 9"))
        headers = BATCH_HEADERS + ["category"]

        summary = run(store, [batch_row("Tool A") + ["Apps"]], headers=headers)

        assert store.read_cell(2, "category") == "Assessment Platform"
        assert summary.unchanged == 1

    def test_category_placeholder_fills_empty_category(self):
        store = make_store(make_record("Tool A", category="", grade_levels="Grade 9"))
        headers = BATCH_HEADERS + ["category"]

        run(store, [batch_row("Tool A") + ["Apps"]], headers=headers)

        assert store.read_cell(2, "category") == "Apps"

    def test_empty_incoming_cell_does_not_clear(self):
        store = make_store(make_record("Tool A", description="Quiz games", grade_levels="Grade 9"))
        headers = BATCH_HEADERS + ["description"]

        summary = run(store, [batch_row("Tool A") + [""]], headers=headers)

        assert store.read_cell(2, "description") == "Quiz games"
        assert summary.unchanged == 1


# ============================================================================
# MODES
# ============================================================================

class TestAddUpdate:
    """Tests for add-update mode."""

    def test_new_row_added_with_inferred_grades_and_date(self):
        store = make_store()

        summary = run(store, [batch_row("Tool B", division="Elementary School", department="Science")])

        assert summary.added == 1
        record = store.rows_as_records()[0]
        assert record["product_name"] == "Tool B"
        assert record["active"] is True
        assert record["department"] == "Science"
        assert record["grade_levels"] == (
            "Pre-K, Kindergarten, Grade 1, Grade 2, Grade 3, Grade 4, Grade 5"
        )
        assert record["date_added"] == "2024-05-01"

    def test_add_sets_row_ref_on_mutation(self):
        store = make_store(make_record("Tool A"))

        summary = run(store, [batch_row("Tool B")])

        added = [m for m in summary.mutations if m.kind == MutationKind.ADD]
        assert added[0].row_ref == 3

    def test_match_is_case_insensitive_and_trimmed(self):
        store = make_store(make_record("Tool A", grade_levels="Grade 9"))

        summary = run(store, [batch_row("  tool a ")])

        assert summary.added == 0
        assert summary.unchanged == 1
        assert len(store.rows_as_records()) == 1

    def test_inactive_match_is_reactivated_not_duplicated(self):
        store = make_store(make_record("Tool A", active="FALSE", grade_levels="Grade 9"))

        summary = run(store, [batch_row("Tool A", active="TRUE")])

        assert summary.updated == 1
        assert summary.added == 0
        assert store.read_cell(2, "active") is True

    def test_active_row_wins_over_inactive(self):
        store = make_store(
            make_record("Tool A", active="FALSE", department=""),
            make_record("Tool A", active="TRUE", department=""),
        )

        run(store, [batch_row("Tool A", department="Science")])

        assert store.read_cell(2, "department") == ""
        assert store.read_cell(3, "department") == "Science"

    def test_stable_id_match_allows_rename(self):
        store = make_store(make_record("Old Name", stable_id="APP-1", grade_levels="Grade 9"))
        headers = ["stable_id"] + BATCH_HEADERS

        summary = run(store, [["APP-1"] + batch_row("New Name")], headers=headers)

        assert summary.updated == 1
        assert summary.added == 0
        assert store.read_cell(2, "product_name") == "New Name"

    def test_grades_inferred_for_existing_row_without_grades(self):
        store = make_store(make_record("Tool A", division="Middle School", grade_levels=""))

        run(store, [batch_row("Tool A", division="Middle School")])

        assert store.read_cell(2, "grade_levels") == "Grade 6, Grade 7, Grade 8"

    def test_rejected_grades_not_replaced_by_inference_on_add(self):
        store = make_store()
        headers = BATCH_HEADERS + ["grade_levels"]

        summary = run(store, [batch_row("New Tool") + ["Grade 13"]], headers=headers)

        assert summary.added == 1
        assert store.rows_as_records()[0]["grade_levels"] == ""
        assert any("Grade 13" in w for w in summary.warnings)

    def test_rejected_grades_not_replaced_by_inference_on_update(self):
        store = make_store(make_record("Tool A", division="Middle School", grade_levels=""))
        headers = BATCH_HEADERS + ["grade_levels"]

        summary = run(store, [batch_row("Tool A", division="Middle School") + ["Grade 13"]], headers=headers)

        assert store.read_cell(2, "grade_levels") == ""
        assert summary.unchanged == 1
        assert any("Grade 13" in w for w in summary.warnings)

    def test_legacy_headers_in_batch(self):
        store = make_store()
        headers = ["Product Name", "Active", "Division", "Department", "License Type"]

        run(store, [["Tool C", "true", "High School", "Math", "site licence"]], headers=headers)

        record = store.rows_as_records()[0]
        assert record["product_name"] == "Tool C"
        assert record["license_type"] == "Site License"

    def test_functional_entry_point(self):
        store = make_store()

        summary = reconcile([batch_row("Tool B")], BATCH_HEADERS, "add-update", store)

        assert summary.added == 1
        assert summary.state == BatchState.REPORTED


class TestFullSync:
    """Tests for full-sync mode."""

    def test_absent_active_rows_deactivated(self):
        store = make_store(
            make_record("Tool A", grade_levels="Grade 9"),
            make_record("Tool C"),
            make_record("Tool D", active="FALSE"),
        )

        summary = run(store, [batch_row("Tool A")], mode="full-sync")

        assert summary.deactivated == 1
        assert store.read_cell(3, "active") is False
        assert store.read_cell(4, "active") == "FALSE"
        assert store.read_cell(2, "active") == "TRUE"

    def test_deactivated_row_keeps_other_fields(self):
        store = make_store(
            make_record("Tool A", grade_levels="Grade 9"),
            make_record("Tool C", subjects="Biology", category="Lab Sims", annual_cost="250", grade_levels="Grade 10"),
        )
        before = dict(store.rows_as_records()[1])

        run(store, [batch_row("Tool A")], mode="full-sync")

        after = store.rows_as_records()[1]
        assert after["active"] is False
        assert {k: v for k, v in after.items() if k != "active"} == {
            k: v for k, v in before.items() if k != "active"
        }

    def test_deactivation_audited(self):
        store = make_store(make_record("Tool A", grade_levels="Grade 9"), make_record("Tool C"))

        run(store, [batch_row("Tool A")], mode="full-sync")

        entries = [a for a in store.audit_log if a.operation == AuditOperation.IMPORT_DEACTIVATE]
        assert len(entries) == 1
        assert entries[0].product_name == "Tool C"
        assert entries[0].field == "active"
        assert entries[0].new_value == "FALSE"

    def test_legacy_sync_mode_name(self):
        store = make_store(make_record("Tool C"))

        summary = run(store, [batch_row("Tool A")], mode="sync")

        assert summary.mode == UpdateMode.FULL_SYNC
        assert summary.added == 1
        assert summary.deactivated == 1


class TestFillMissingOnly:
    """Tests for fill-missing-only mode."""

    def test_new_rows_not_added(self):
        store = make_store(make_record("Tool A"))

        summary = run(store, [batch_row("Tool Z")], mode="fill-missing-only")

        assert summary.added == 0
        assert summary.not_found == 1
        assert len(store.rows_as_records()) == 1

    def test_fills_empty_field_only(self):
        store = make_store(make_record("Tool A", description="", category="Video Platform"))
        headers = BATCH_HEADERS + ["description", "category"]
        row = batch_row("Tool A") + ["Screen recording for class", "Apps"]

        summary = run(store, [row], headers=headers, mode="fill-missing-only")

        assert summary.updated == 1
        assert store.read_cell(2, "description") == "Screen recording for class"
        assert store.read_cell(2, "category") == "Video Platform"

    def test_fill_audited_as_fill_missing(self):
        store = make_store(make_record("Tool A", description=""))
        headers = BATCH_HEADERS + ["description"]

        run(store, [batch_row("Tool A") + ["Quiz games"]], headers=headers, mode="fill-missing-only")

        assert [a.operation for a in store.audit_log] == [AuditOperation.IMPORT_FILL_MISSING]
        assert store.audit_log[0].old_value == EMPTY_MARKER
        assert store.audit_log[0].new_value == "Quiz games"


# ============================================================================
# STRUCTURAL VALIDATION
# ============================================================================

class TestRejection:
    """Tests that structural failures abort with zero writes."""

    def test_missing_required_columns(self):
        store = make_store(make_record("Tool A"))

        summary = run(store, [["Tool B", "TRUE"]], headers=["product_name", "active"])

        assert summary.state == BatchState.REJECTED
        assert summary.rejected
        assert summary.errors == ["Missing required columns: division, department"]
        assert len(store.rows_as_records()) == 1
        assert store.audit_log == []

    def test_unknown_mode(self):
        store = make_store()

        summary = run(store, [batch_row("Tool B")], mode="merge")

        assert summary.rejected
        assert "Unknown update mode" in summary.errors[0]
        assert store.rows_as_records() == []

    def test_empty_header_row(self):
        store = make_store()

        summary = run(store, [], headers=["", ""])

        assert summary.rejected
        assert store.rows_as_records() == []

    def test_catalog_without_name_column(self):
        store = InMemoryCatalogStore(["active", "division"])

        summary = run(store, [batch_row("Tool B")])

        assert summary.rejected
        assert summary.errors == ["Catalog has no product_name column"]


# ============================================================================
# ROW-LEVEL ERRORS
# ============================================================================

class TestRowErrors:
    """Tests for row-level failures that do not abort the batch."""

    def test_missing_product_name(self):
        store = make_store()

        summary = run(store, [batch_row(""), batch_row("Tool B")])

        assert summary.errors == ["Row 2: Missing product_name"]
        assert summary.added == 1

    def test_duplicate_new_rows(self):
        store = make_store()

        summary = run(store, [batch_row("Tool B"), batch_row("tool b")])

        assert summary.added == 1
        assert summary.errors == ["Row 3: Duplicate of row 2 (tool b)"]

    def test_duplicate_matches_same_row(self):
        store = make_store(make_record("Tool A", grade_levels="Grade 9"))

        summary = run(store, [batch_row("Tool A"), batch_row("TOOL A")])

        assert summary.unchanged == 1
        assert summary.errors == ["Row 3: Duplicate of row 2 (TOOL A)"]

    def test_blank_rows_skipped(self):
        store = make_store()

        summary = run(store, [["", "", "", ""], batch_row("Tool B")])

        assert summary.errors == []
        assert summary.added == 1

    def test_invalid_grades_rejected_wholesale(self):
        store = make_store(make_record("Tool A", grade_levels="Grade 9"))
        headers = BATCH_HEADERS + ["grade_levels"]

        summary = run(store, [batch_row("Tool A") + ["K-5, Grade 13"]], headers=headers)

        assert store.read_cell(2, "grade_levels") == "Grade 9"
        assert any("Grade 13" in w for w in summary.warnings)

    def test_grade_ranges_expanded_on_write(self):
        store = make_store(make_record("Tool A", grade_levels="Grade 9"))
        headers = BATCH_HEADERS + ["grade_levels"]

        run(store, [batch_row("Tool A") + ["9-12"]], headers=headers)

        assert store.read_cell(2, "grade_levels") == "Grade 9, Grade 10, Grade 11, Grade 12"

    def test_audience_normalized_on_write(self):
        store = make_store(make_record("Tool A", grade_levels="Grade 9"))
        headers = BATCH_HEADERS + ["audience"]

        run(store, [batch_row("Tool A") + ["student, teacher"]], headers=headers)

        assert store.read_cell(2, "audience") == "Teachers, Students"

    def test_identity_mismatch_skips_row(self):
        store = DriftingStore(STORE_HEADERS, [make_record("Tool A", department="")])

        summary = run(store, [batch_row("Tool A", department="Science")])

        assert summary.identity_mismatches == 1
        assert summary.updated == 0
        assert summary.errors[0].startswith("Row mismatch at row 2")
        assert store.read_cell(2, "department") == ""
        assert store.audit_log == []

    def test_write_failure_recorded(self):
        store = ReadOnlyStore(STORE_HEADERS, [make_record("Tool A", department="")])

        summary = run(store, [batch_row("Tool A", department="Science")])

        assert summary.updated == 0
        assert summary.errors == ["Tool A: Sheet is protected"]

    def test_audit_failure_is_warning(self):
        store = NoAuditStore(STORE_HEADERS)

        summary = run(store, [batch_row("Tool B")])

        assert summary.added == 1
        assert any("Audit log write failed" in w for w in summary.warnings)


# ============================================================================
# BATCH CAP AND DRY RUN
# ============================================================================

class TestBatchCap:
    """Tests for the per-call write cap."""

    def test_cap_limits_writes_and_reports_remaining(self):
        store = make_store()
        rows = [batch_row(f"Tool {n}") for n in range(1, 6)]

        summary = run(store, rows, config=EngineConfig(max_batch_size=2))

        assert summary.added == 2
        assert summary.remaining == 3
        assert len(store.rows_as_records()) == 2

    def test_rerun_resumes(self):
        store = make_store()
        rows = [batch_row(f"Tool {n}") for n in range(1, 6)]
        config = EngineConfig(max_batch_size=2)

        run(store, rows, config=config)
        second = run(store, rows, config=config)

        assert second.unchanged == 2
        assert second.added == 2
        assert second.remaining == 1
        assert [r["product_name"] for r in store.rows_as_records()] == [
            "Tool 1", "Tool 2", "Tool 3", "Tool 4",
        ]

    def test_unchanged_rows_do_not_count(self):
        store = make_store(
            make_record("Tool A", grade_levels="Grade 9"),
            make_record("Tool B", grade_levels="Grade 9"),
        )
        rows = [batch_row("Tool A"), batch_row("Tool B"), batch_row("Tool C")]

        summary = run(store, rows, config=EngineConfig(max_batch_size=1))

        assert summary.unchanged == 2
        assert summary.added == 1
        assert summary.remaining == 0


class TestDryRun:
    """Tests for preflight (dry run)."""

    def test_dry_run_writes_nothing(self):
        store = make_store(make_record("Tool A", department=""), make_record("Tool C"))
        rows = [batch_row("Tool A", department="Science"), batch_row("Tool B")]

        summary = run(store, rows, mode="full-sync", dry_run=True)

        assert summary.dry_run
        assert summary.added == 1
        assert summary.updated == 1
        assert summary.deactivated == 1
        assert store.read_cell(2, "department") == ""
        assert store.read_cell(3, "active") == "TRUE"
        assert len(store.rows_as_records()) == 2
        assert store.audit_log == []

    def test_dry_run_respects_cap(self):
        store = make_store()
        rows = [batch_row(f"Tool {n}") for n in range(1, 4)]

        summary = run(store, rows, config=EngineConfig(max_batch_size=2), dry_run=True)

        assert summary.added == 2
        assert summary.remaining == 1

    def test_plan_is_pure(self):
        store = make_store(make_record("Tool A", department=""))
        batch = ImportBatch(
            headers=BATCH_HEADERS,
            rows=[batch_row("Tool A", department="Art")],
            mode=UpdateMode.ADD_UPDATE,
        )

        summary = plan_reconciliation(batch, store.snapshot(), today=TODAY)

        assert batch.state == BatchState.RECONCILED
        assert len(summary.mutations) == 1
        assert store.read_cell(2, "department") == ""


# ============================================================================
# AUDIT
# ============================================================================

class TestAudit:
    """Tests for update-log entries."""

    def test_update_entries_per_field(self):
        store = make_store(make_record("Tool A", department="", grade_levels="Grade 9"))

        run(store, [batch_row("Tool A", division="Middle School", department="Science")])

        entries = {a.field: a for a in store.audit_log}
        assert set(entries) == {"division", "department"}
        assert entries["division"].operation == AuditOperation.IMPORT_UPDATE
        assert entries["division"].old_value == "High School"
        assert entries["division"].new_value == "Middle School"
        assert entries["department"].old_value == EMPTY_MARKER
        assert entries["department"].row_ref == 2

    def test_add_entries(self):
        store = make_store()

        run(store, [batch_row("Tool B")])

        assert {a.operation for a in store.audit_log} == {AuditOperation.IMPORT_ADD}
        assert {a.field for a in store.audit_log} >= {"product_name", "department", "date_added"}


# Run tests
if __name__ == "__main__":
    pytest.main([__file__, "-v"])
