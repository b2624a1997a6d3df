"""
Integration tests for OpenAPI documentation.

Verifies the OpenAPI schema is generated for every clearance endpoint.
"""

import pytest
from fastapi.testclient import TestClient

from src.api.main import app


@pytest.fixture
def client() -> TestClient:
    """Create test client without running the lifespan (no database needed)."""
    return TestClient(app)


class TestOpenAPISchema:
    """Tests for OpenAPI schema generation."""

    def test_title_and_version(self, client: TestClient) -> None:
        schema = client.get("/openapi.json").json()

        assert schema["info"]["title"] == "exampass"
        assert "clearance" in schema["info"]["description"]
        assert schema["info"]["version"] == "0.1.0"

    @pytest.mark.parametrize(
        ("path", "method", "summary"),
        [
            ("/v1/students/{student_id}/pass", "post", "Issue or reuse a clearance pass"),
            ("/v1/payments/confirm", "post", "Confirm an examination fee payment"),
            ("/v1/gate/scan", "post", "Verify a scanned pass"),
            ("/v1/gate/lookup", "post", "Verify a student by matric number"),
            ("/v1/gate/admit", "post", "Commit an Admit"),
            ("/v1/gate/deny", "post", "Commit a Deny"),
            ("/v1/examiner/stats", "get", "Decision totals for the calling examiner"),
            ("/v1/examiner/history", "get", "Recent decisions by the calling examiner"),
            ("/v1/admin/overview", "get", "Clearance overview for administrators"),
        ],
    )
    def test_endpoint_documented(self, client: TestClient, path: str, method: str, summary: str) -> None:
        paths = client.get("/openapi.json").json()["paths"]

        assert path in paths
        assert paths[path][method]["summary"] == summary

    def test_admit_request_schema(self, client: TestClient) -> None:
        schemas = client.get("/openapi.json").json()["components"]["schemas"]

        admit = schemas["AdmitRequest"]
        assert set(admit["required"]) == {"student_id", "token_id", "exam_hall"}

    def test_protected_endpoints_declare_auth_errors(self, client: TestClient) -> None:
        responses = client.get("/openapi.json").json()["paths"]["/v1/gate/scan"]["post"]["responses"]

        assert "401" in responses
        assert "403" in responses
