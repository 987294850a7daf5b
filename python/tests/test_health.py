"""Tests for the health endpoints.

GET /health is a liveness check that:
- Does not require authentication
- Does not touch the database
- Always returns 200 if the process is running

GET /health/db runs a trivial query and answers 503 when the database is
unreachable.
"""

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from clipshare.db.session import get_db


class TestHealthEndpoint:
    """Tests for GET /health"""

    def test_health_returns_200(self, client: TestClient):
        """Health endpoint returns 200 OK."""
        response = client.get("/health")
        assert response.status_code == 200

    def test_health_returns_correct_envelope(self, client: TestClient):
        """Health endpoint returns proper success envelope."""
        response = client.get("/health")
        assert response.json() == {"data": {"status": "ok"}}

    def test_health_ignores_bad_bearer_token(self, client: TestClient):
        """Public paths never look at the Authorization header."""
        response = client.get("/health", headers={"Authorization": "Bearer nonsense"})
        assert response.status_code == 200

    def test_health_content_type_is_json(self, client: TestClient):
        """Health endpoint returns JSON content type."""
        response = client.get("/health")
        assert response.headers["content-type"] == "application/json"


class _UnreachableSession:
    def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, ConnectionRefusedError("connection refused"))


class TestDatabaseHealthEndpoint:
    """Tests for GET /health/db"""

    def test_reachable_database(self, client: TestClient):
        response = client.get("/health/db", headers={"Authorization": "Bearer nonsense"})

        assert response.status_code == 200
        assert response.json() == {"data": {"status": "ok", "database": "ok"}}

    def test_unreachable_database_returns_503(self, app: FastAPI, client: TestClient):
        app.dependency_overrides[get_db] = lambda: _UnreachableSession()

        response = client.get("/health/db")

        assert response.status_code == 503
        error = response.json()["error"]
        assert error["code"] == "E_DATABASE_UNAVAILABLE"
        assert "refused" not in error["message"]
