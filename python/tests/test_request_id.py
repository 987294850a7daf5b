"""Tests for X-Request-ID middleware.

Tests cover:
- Request ID generation when missing
- Request ID preservation when valid
- Request ID normalization (UUID lowercase)
- Request ID replacement when invalid
- Request ID presence on auth failures
- Request ID in error response body
"""

from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from clipshare.app import add_request_id_middleware, create_app
from clipshare.auth.middleware import AuthMiddleware, Viewer
from clipshare.db.session import get_db
from clipshare.errors import TokenNotFoundError
from clipshare.middleware.request_id import resolve_request_id
from tests.helpers import auth_headers

GOOD_TOKEN = "good-token"


def stub_verifier(token: str) -> Viewer:
    if token != GOOD_TOKEN:
        raise TokenNotFoundError()
    return Viewer(user_id=1, session_id=1, token=token)


@pytest.fixture
def auth_client(db_session: Session):
    """Create a client with auth + request-id middleware."""
    app = create_app(skip_auth_middleware=True)
    app.dependency_overrides[get_db] = lambda: db_session

    # Add auth middleware first (so it runs second)
    app.add_middleware(AuthMiddleware, verifier=stub_verifier)

    # Add request-id middleware LAST (so it runs FIRST, outermost)
    add_request_id_middleware(app, log_requests=False)

    return TestClient(app)


class TestRequestIdMiddleware:
    """Tests for X-Request-ID middleware."""

    def test_request_id_generated_when_missing(self, auth_client):
        """Request ID is generated when not provided."""
        response = auth_client.get("/health")

        assert response.status_code == 200
        UUID(response.headers["X-Request-ID"])  # Raises if invalid

    def test_request_id_preserved_when_valid(self, auth_client):
        """Valid non-UUID request IDs are preserved."""
        response = auth_client.get("/health", headers={"X-Request-ID": "abc_def-123"})
        assert response.headers["X-Request-ID"] == "abc_def-123"

    def test_request_id_uuid_normalized_to_lowercase(self, auth_client):
        """UUID request IDs are normalized to lowercase."""
        response = auth_client.get(
            "/health", headers={"X-Request-ID": "550E8400-E29B-41D4-A716-446655440000"}
        )
        assert response.headers["X-Request-ID"] == "550e8400-e29b-41d4-a716-446655440000"

    def test_request_id_replaced_when_invalid(self, auth_client):
        """Invalid request IDs (with spaces) are replaced."""
        response = auth_client.get("/health", headers={"X-Request-ID": "bad id with spaces"})

        new_id = response.headers["X-Request-ID"]
        assert new_id != "bad id with spaces"
        UUID(new_id)

    def test_request_id_present_on_missing_bearer(self, auth_client):
        """Routes requiring a viewer fail with 401 and still carry the ID."""
        response = auth_client.get("/me")

        assert response.status_code == 401
        data = response.json()
        assert data["error"]["code"] == "E_UNAUTHENTICATED"
        assert data["error"]["request_id"] == response.headers["X-Request-ID"]

    def test_request_id_present_on_rejected_token(self, auth_client):
        """Tokens rejected inside the auth middleware carry the ID in the body."""
        response = auth_client.get(
            "/tags", headers={**auth_headers("bad-token"), "X-Request-ID": "req-42"}
        )

        assert response.status_code == 401
        data = response.json()
        assert data["error"]["code"] == "E_TOKEN_NOT_FOUND"
        assert data["error"]["request_id"] == "req-42"
        assert response.headers["X-Request-ID"] == "req-42"

    def test_malformed_authorization_header(self, auth_client):
        response = auth_client.get("/tags", headers={"Authorization": "Token abc"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "E_UNAUTHENTICATED"
        assert "X-Request-ID" in response.headers

    def test_valid_token_reaches_route(self, auth_client):
        response = auth_client.get("/tags", headers=auth_headers(GOOD_TOKEN))

        assert response.status_code == 200
        assert response.json() == {"data": []}


class TestResolveRequestId:
    """Tests for request ID validation edge cases."""

    @pytest.mark.parametrize("incoming", ["request.id.with.dots", "a", "A-b_c.9"])
    def test_valid_ids_kept(self, incoming):
        assert resolve_request_id(incoming) == incoming

    @pytest.mark.parametrize("incoming", [None, "", "a" * 200, "semi;colon", "ünïcode"])
    def test_invalid_ids_replaced(self, incoming):
        UUID(resolve_request_id(incoming))
