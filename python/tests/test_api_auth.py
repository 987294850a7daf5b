"""Integration tests for account and session routes.

Tests cover:
- POST /auth/register, /auth/login, /auth/refresh, /auth/logout
- GET /me, DELETE /me
- Bearer token handling in the auth middleware
"""

from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session

from clipshare.db.models import User, UserSession
from tests.helpers import DEFAULT_PASSWORD, auth_headers, register_and_login, unique_username


class TestRegister:
    def test_register_returns_user_without_secrets(self, client: TestClient):
        username = unique_username()
        response = client.post(
            "/auth/register",
            json={
                "username": username,
                "email": f"{username}@Example.com",
                "password": DEFAULT_PASSWORD,
            },
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["username"] == username
        assert data["email"] == f"{username}@example.com"
        assert data["login_count"] == 0
        assert "password_hash" not in data
        assert "salt" not in data

    def test_duplicate_registration(self, client: TestClient):
        username = unique_username()
        body = {"username": username, "email": f"{username}@example.com", "password": "secret1"}
        assert client.post("/auth/register", json=body).status_code == 201

        response = client.post("/auth/register", json=body)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "E_DUPLICATE_IDENTITY"

    def test_invalid_username(self, client: TestClient):
        response = client.post(
            "/auth/register",
            json={"username": "has space", "email": "x@example.com", "password": "secret1"},
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"


class TestLogin:
    def test_login_returns_token_pair_and_user(self, client: TestClient):
        data = register_and_login(client)

        assert data["token_type"] == "Bearer"
        assert data["expires_in"] == 3600
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["user"]["login_count"] == 1
        assert data["user"]["last_login_at"] is not None

    def test_login_by_email(self, client: TestClient):
        username = unique_username()
        register_and_login(client, username)

        response = client.post(
            "/auth/login",
            json={"username": f"{username}@example.com", "password": DEFAULT_PASSWORD},
        )
        assert response.status_code == 200
        assert response.json()["data"]["user"]["login_count"] == 2

    def test_wrong_password(self, client: TestClient):
        username = unique_username()
        register_and_login(client, username)

        response = client.post("/auth/login", json={"username": username, "password": "nope"})
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "E_INVALID_CREDENTIALS"

    def test_long_forwarded_for_fits_ip_columns(self, client: TestClient, db_session: Session):
        username = unique_username()
        register_and_login(client, username)

        response = client.post(
            "/auth/login",
            json={"username": username, "password": DEFAULT_PASSWORD},
            headers={"X-Forwarded-For": "a" * 60 + ", 10.0.0.1"},
        )
        assert response.status_code == 200

        user = db_session.scalar(select(User).where(User.username == username))
        assert user.last_login_ip == "a" * 45
        session_ips = db_session.scalars(
            select(UserSession.ip_address).where(UserSession.user_id == user.id)
        ).all()
        assert "a" * 45 in session_ips


class TestRefresh:
    def test_refresh_rotates_tokens(self, client: TestClient):
        tokens = register_and_login(client)

        response = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 200
        new = response.json()["data"]
        assert new["refresh_token"] != tokens["refresh_token"]

        # The new access token works, the old one does not
        assert client.get("/me", headers=auth_headers(new["access_token"])).status_code == 200
        old = client.get("/me", headers=auth_headers(tokens["access_token"]))
        assert old.status_code == 401
        assert old.json()["error"]["code"] == "E_TOKEN_NOT_FOUND"

    def test_replayed_refresh_token(self, client: TestClient):
        tokens = register_and_login(client)
        body = {"refresh_token": tokens["refresh_token"]}
        assert client.post("/auth/refresh", json=body).status_code == 200

        response = client.post("/auth/refresh", json=body)
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "E_TOKEN_NOT_FOUND"


class TestLogout:
    def test_logout_revokes_session(self, client: TestClient):
        tokens = register_and_login(client)
        headers = auth_headers(tokens["access_token"])

        assert client.post("/auth/logout", headers=headers).status_code == 204
        assert client.get("/me", headers=headers).status_code == 401

        response = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 401

    def test_logout_requires_bearer(self, client: TestClient):
        response = client.post("/auth/logout")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "E_UNAUTHENTICATED"


class TestMe:
    def test_get_me(self, client: TestClient):
        tokens = register_and_login(client)

        response = client.get("/me", headers=auth_headers(tokens["access_token"]))
        assert response.status_code == 200
        assert response.json()["data"]["id"] == tokens["user"]["id"]

    def test_delete_me_revokes_everything(self, client: TestClient):
        username = unique_username()
        tokens = register_and_login(client, username)
        headers = auth_headers(tokens["access_token"])

        assert client.delete("/me", headers=headers).status_code == 204
        assert client.get("/me", headers=headers).status_code == 401

        response = client.post(
            "/auth/login", json={"username": username, "password": DEFAULT_PASSWORD}
        )
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "E_INVALID_CREDENTIALS"

    def test_garbage_token(self, client: TestClient):
        response = client.get("/me", headers=auth_headers("not-a-token"))
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "E_TOKEN_NOT_FOUND"
