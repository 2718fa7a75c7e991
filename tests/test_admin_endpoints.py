"""
Admin Endpoint Tests

Tests for admin key security and the catalog, import and enrichment
routers, run through FastAPI's TestClient with the store dependency
overridden by an in-memory store.

Version: catalog_engine_v1
"""

import json

import httpx
import pytest
from unittest.mock import patch
from fastapi import HTTPException
from fastapi.testclient import TestClient

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from api_server import app
from appcatalog.enrichment.admin import get_completion_client
from appcatalog.enrichment.client import CompletionClient
from appcatalog.shared.config import EngineConfig
from appcatalog.shared.security import verify_admin_key
from appcatalog.store.memory import InMemoryCatalogStore
from appcatalog.store.provider import get_catalog_store, get_engine_config


ADMIN_KEY = "test-admin-key"
AUTH = {"X-Admin-API-Key": ADMIN_KEY}

HEADERS = [
    "product_name", "active", "division", "department", "is_org_core", "category",
    "license_type", "annual_cost", "audience", "grade_levels", "description", "website",
]


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def store() -> InMemoryCatalogStore:
    return InMemoryCatalogStore(HEADERS, [
        {
            "product_name": "Google Workspace", "active": "TRUE", "department": "Technology",
            "is_org_core": "TRUE", "license_type": "Site License", "category": "Office Suite",
        },
        {
            "product_name": "Kahoot", "active": "TRUE", "division": "High School", "department": "Math",
            "annual_cost": "0", "audience": "Students", "grade_levels": "Grade 9",
        },
        {
            "product_name": "Quizizz", "active": "TRUE", "division": "High School", "department": "Math",
            "annual_cost": "500", "audience": "Students", "grade_levels": "Grade 9",
        },
    ])


@pytest.fixture
def client(store, monkeypatch):
    monkeypatch.setenv("ADMIN_API_KEY", ADMIN_KEY)
    app.dependency_overrides[get_catalog_store] = lambda: store
    app.dependency_overrides[get_engine_config] = lambda: EngineConfig()
    yield TestClient(app)
    app.dependency_overrides.clear()


def upload(csv_text: str, name: str = "catalog.csv") -> dict:
    return {"file": (name, csv_text.encode("utf-8"), "text/csv")}


# ============================================================================
# SECURITY
# ============================================================================

class TestAdminKey:
    """Tests for verify_admin_key."""

    def test_missing_api_key_returns_401(self):
        with patch.dict(os.environ, {"ADMIN_API_KEY": "test-secret-key"}):
            with pytest.raises(HTTPException) as exc_info:
                verify_admin_key(None)

            assert exc_info.value.status_code == 401
            assert "Missing" in exc_info.value.detail

    def test_invalid_api_key_returns_401(self):
        with patch.dict(os.environ, {"ADMIN_API_KEY": "correct-key"}):
            with pytest.raises(HTTPException) as exc_info:
                verify_admin_key("wrong-key")

            assert exc_info.value.status_code == 401

    def test_valid_api_key(self):
        with patch.dict(os.environ, {"ADMIN_API_KEY": "correct-key"}):
            assert verify_admin_key("correct-key") == "correct-key"

    def test_dev_mode_without_configured_key(self, monkeypatch):
        monkeypatch.delenv("ADMIN_API_KEY", raising=False)
        assert verify_admin_key(None) == "dev_mode"

    def test_endpoint_rejects_missing_header(self, client):
        response = client.get("/api/v1/admin/catalog/classify")
        assert response.status_code == 401


# ============================================================================
# CORE ENDPOINTS
# ============================================================================

class TestCoreEndpoints:
    def test_root(self, client):
        assert client.get("/").json()["status"] == "operational"

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_catalog_health_needs_no_key(self, client):
        response = client.get("/api/v1/admin/catalog/health")
        assert response.status_code == 200
        assert response.json()["module"] == "catalog_engine"

    def test_store_unconfigured_returns_503(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("ADMIN_API_KEY", raising=False)

        response = TestClient(app).get("/api/v1/admin/catalog/classify")

        assert response.status_code == 503
        assert "DATABASE_URL" in response.json()["detail"]


# ============================================================================
# CATALOG ENDPOINTS
# ============================================================================

class TestCatalogEndpoints:
    def test_classify(self, client):
        response = client.get("/api/v1/admin/catalog/classify", headers=AUTH)

        assert response.status_code == 200
        classification = response.json()["classification"]
        assert [a["product_name"] for a in classification["org_wide"]["core_apps"]] == ["Google Workspace"]
        assert [a["product_name"] for a in classification["high"]["by_department"]["Math"]] == ["Kahoot", "Quizizz"]

    def test_validate_with_severity_filter(self, client):
        response = client.get("/api/v1/admin/catalog/validate", params={"severity": "error"}, headers=AUTH)

        body = response.json()
        assert response.status_code == 200
        assert body["errors"] > 0
        assert all(i["severity"] == "error" for i in body["issues"])
        assert len(body["issues"]) == body["errors"]

    def test_missing_fields_single(self, client):
        response = client.get("/api/v1/admin/catalog/missing-fields", params={"field": "website"}, headers=AUTH)

        assert response.status_code == 200
        assert response.json()["missing"] == {"website": ["Google Workspace", "Kahoot", "Quizizz"]}

    def test_missing_fields_unknown(self, client):
        response = client.get("/api/v1/admin/catalog/missing-fields", params={"field": "nope"}, headers=AUTH)
        assert response.status_code == 400

    def test_overlaps(self, client):
        body = client.get("/api/v1/admin/catalog/overlaps", headers=AUTH).json()

        assert body["total_groups"] == 1
        assert body["potential_savings"] == 500
        assert body["overlaps"][0]["category"] == "Formative Assessment Tools"

    def test_analytics(self, client):
        response = client.get("/api/v1/admin/catalog/analytics", headers=AUTH)

        assert response.status_code == 200
        stats = response.json()["analytics"]["stats"]
        assert stats["total_apps"] == 3
        assert stats["org_core_apps"] == 1

    def test_export(self, client):
        response = client.get("/api/v1/admin/catalog/export", headers=AUTH)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment" in response.headers["content-disposition"]
        assert response.text.splitlines()[0] == ",".join(HEADERS)


# ============================================================================
# IMPORT ENDPOINTS
# ============================================================================

class TestImportEndpoints:
    CSV = "product_name,active,division,department\nBlooket,TRUE,High School,Math\nKahoot,TRUE,High School,Science\n"

    def test_preflight_writes_nothing(self, client, store):
        response = client.post(
            "/api/v1/admin/catalog/import/preflight",
            files=upload(self.CSV),
            data={"mode": "add-update"},
            headers=AUTH,
        )

        assert response.status_code == 200
        summary = response.json()["summary"]
        assert summary["dry_run"] is True
        assert summary["added"] == 1
        assert len(store.rows_as_records()) == 3

    def test_execute_requires_confirm(self, client, store):
        response = client.post(
            "/api/v1/admin/catalog/import/execute",
            files=upload(self.CSV),
            headers=AUTH,
        )

        assert response.status_code == 400
        assert len(store.rows_as_records()) == 3

    def test_execute(self, client, store):
        response = client.post(
            "/api/v1/admin/catalog/import/execute",
            files=upload(self.CSV),
            data={"mode": "add-update", "confirm": "true"},
            headers=AUTH,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["summary"]["added"] == 1
        assert store.rows_as_records()[-1]["product_name"] == "Blooket"
        assert store.read_cell(3, "department") == "Math"

    def test_missing_columns_rejected(self, client, store):
        response = client.post(
            "/api/v1/admin/catalog/import/execute",
            files=upload("product_name,active\nBlooket,TRUE\n"),
            data={"confirm": "true"},
            headers=AUTH,
        )

        body = response.json()
        assert body["success"] is False
        assert body["summary"]["state"] == "rejected"
        assert len(store.rows_as_records()) == 3

    def test_unreadable_upload(self, client):
        response = client.post(
            "/api/v1/admin/catalog/import/preflight",
            files={"file": ("catalog.xlsx", b"not a workbook", "application/octet-stream")},
            headers=AUTH,
        )
        assert response.status_code == 400

    def test_manual_edits(self, client, store):
        response = client.post(
            "/api/v1/admin/catalog/import/edits",
            json={"edits": [{"product_name": "Kahoot", "field": "department", "value": "Science"}]},
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.json()["report"]["updated"] == 1
        assert store.read_cell(3, "department") == "Science"


# ============================================================================
# ENRICHMENT ENDPOINT
# ============================================================================

class TestEnrichmentEndpoint:
    def test_run(self, client, store):
        answer = {"description": "Quiz games.", "website": "https://example.org"}

        def handler(request):
            return httpx.Response(200, json={"content": [{"type": "text", "text": json.dumps(answer)}]})

        app.dependency_overrides[get_completion_client] = lambda: CompletionClient(
            api_key="k", transport=httpx.MockTransport(handler)
        )
        app.dependency_overrides[get_engine_config] = lambda: EngineConfig(api_delay_ms=0)

        response = client.post("/api/v1/admin/catalog/enrichment/run", headers=AUTH)

        assert response.status_code == 200
        report = response.json()["report"]
        assert report["enriched"] == 3
        assert store.read_cell(3, "website") == "https://example.org"

    def test_missing_completion_key_returns_503(self, client, monkeypatch):
        monkeypatch.delenv("COMPLETION_API_KEY", raising=False)

        response = client.post("/api/v1/admin/catalog/enrichment/run", headers=AUTH)

        assert response.status_code == 503


# Run tests
if __name__ == "__main__":
    pytest.main([__file__, "-v"])
