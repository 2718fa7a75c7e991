"""
Upload Ingest and Manual Edit Tests

Version: catalog_reconcile_v1
"""

from io import BytesIO

import pandas as pd
import pytest

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from appcatalog.reconcile import FieldEdit, apply_field_edits, read_tabular_upload
from appcatalog.reconcile.ingest import dataframe_to_rows
from appcatalog.shared.errors import ValidationError
from appcatalog.store.audit import AuditOperation
from appcatalog.store.memory import InMemoryCatalogStore


HEADERS = ["product_name", "stable_id", "active", "department", "grade_levels", "audience"]


@pytest.fixture
def store() -> InMemoryCatalogStore:
    return InMemoryCatalogStore(HEADERS, [
        {"product_name": "Kahoot", "stable_id": "APP-1", "active": "TRUE", "department": "Math"},
        {"product_name": "Seesaw", "active": "TRUE", "department": "Homeroom", "grade_levels": "Grade 1"},
    ])


# ============================================================================
# INGEST
# ============================================================================

class TestReadUpload:
    """Tests for read_tabular_upload."""

    def test_csv(self):
        contents = b"product_name,active,division\nKahoot,TRUE,High School\nSeesaw,,\n"

        headers, rows = read_tabular_upload(contents, "catalog.csv")

        assert headers == ["product_name", "active", "division"]
        assert rows == [["Kahoot", "TRUE", "High School"], ["Seesaw", "", ""]]

    def test_csv_keeps_text(self):
        """Cells stay strings so the normalizer decides the types."""
        headers, rows = read_tabular_upload(b"product_name,annual_cost\nKahoot,0100\n", "catalog.csv")
        assert rows[0][1] == "0100"

    def test_excel(self):
        buffer = BytesIO()
        pd.DataFrame({"product_name": ["Kahoot", "Seesaw"], "division": ["High School", None]}).to_excel(
            buffer, index=False
        )

        headers, rows = read_tabular_upload(buffer.getvalue(), "catalog.xlsx")

        assert headers == ["product_name", "division"]
        assert rows == [["Kahoot", "High School"], ["Seesaw", ""]]

    def test_unreadable_excel(self):
        with pytest.raises(ValidationError):
            read_tabular_upload(b"definitely not a workbook", "catalog.xlsx")

    def test_empty_file(self):
        with pytest.raises(ValidationError):
            read_tabular_upload(b"", "catalog.csv")

    def test_dataframe_nan_becomes_empty(self):
        df = pd.DataFrame({" product_name ": ["A", None]})
        headers, rows = dataframe_to_rows(df)
        assert headers == ["product_name"]
        assert rows == [["A"], [""]]


# ============================================================================
# MANUAL EDITS
# ============================================================================

class TestManualEdits:
    """Tests for apply_field_edits."""

    def test_protected_field_can_be_edited(self, store):
        report = apply_field_edits(store, [FieldEdit(product_name="Kahoot", field="department", value="Science")])

        assert report.updated == 1
        assert store.read_cell(2, "department") == "Science"
        audit = store.audit_log[0]
        assert audit.operation == AuditOperation.MANUAL_UPDATE
        assert audit.old_value == "Math"
        assert audit.new_value == "Science"

    def test_match_by_stable_id(self, store):
        report = apply_field_edits(store, [FieldEdit(stable_id="APP-1", field="active", value="FALSE")])

        assert report.updated == 1
        assert store.read_cell(2, "active") is False

    def test_grades_validated_and_expanded(self, store):
        report = apply_field_edits(store, [FieldEdit(product_name="seesaw", field="grade_levels", value="1-3")])

        assert report.updated == 1
        assert store.read_cell(3, "grade_levels") == "Grade 1, Grade 2, Grade 3"

    def test_invalid_grades_rejected(self, store):
        report = apply_field_edits(store, [FieldEdit(product_name="Seesaw", field="grade_levels", value="Grade 1, Year 2")])

        assert report.updated == 0
        assert store.read_cell(3, "grade_levels") == "Grade 1"
        assert report.results[0].status == "error"

    def test_audience_normalized(self, store):
        apply_field_edits(store, [FieldEdit(product_name="Seesaw", field="audience", value="parent, teacher")])
        assert store.read_cell(3, "audience") == "Teachers, Parents"

    def test_unchanged_value(self, store):
        report = apply_field_edits(store, [FieldEdit(product_name="Kahoot", field="department", value="Math")])

        assert report.unchanged == 1
        assert store.audit_log == []

    def test_unknown_field(self, store):
        report = apply_field_edits(store, [FieldEdit(product_name="Kahoot", field="favorite_color", value="red")])
        assert report.errors == ["Kahoot: Unknown field favorite_color"]

    def test_unknown_app(self, store):
        report = apply_field_edits(store, [FieldEdit(product_name="Blooket", field="department", value="Math")])
        assert report.errors == ["Blooket: Not found in catalog"]

    def test_identity_mismatch(self):
        class DriftingStore(InMemoryCatalogStore):
            def read_cell(self, row_ref, header):
                return "Other App"

        store = DriftingStore(HEADERS, [{"product_name": "Kahoot", "department": "Math"}])

        report = apply_field_edits(store, [FieldEdit(product_name="Kahoot", field="department", value="Art")])

        assert report.updated == 0
        assert report.errors[0].startswith("Kahoot: Row mismatch at row 2")
        assert store.rows_as_records()[0]["department"] == "Math"

    def test_edits_applied_in_order(self, store):
        report = apply_field_edits(store, [
            FieldEdit(product_name="Kahoot", field="department", value="Science"),
            FieldEdit(product_name="Kahoot", field="department", value="Science"),
        ])

        assert report.updated == 1
        assert report.unchanged == 1


# Run tests
if __name__ == "__main__":
    pytest.main([__file__, "-v"])
