"""Test helpers for authentication and common API operations.

Provides:
- Header generation for bearer-authenticated requests
- Register-and-login through the HTTP API
"""

from uuid import uuid4

from fastapi.testclient import TestClient

DEFAULT_PASSWORD = "correct-horse-battery"


def unique_username(prefix: str = "user") -> str:
    return f"{prefix}_{uuid4().hex[:10]}"


def auth_headers(access_token: str) -> dict[str, str]:
    """Build an Authorization header for a token."""
    return {"Authorization": f"Bearer {access_token}"}


def register_and_login(
    client: TestClient,
    username: str | None = None,
    password: str = DEFAULT_PASSWORD,
) -> dict:
    """Register an account through the API and log it in.

    Returns:
        The login payload (access_token, refresh_token, ..., user).
    """
    username = username or unique_username()
    response = client.post(
        "/auth/register",
        json={"username": username, "email": f"{username}@example.com", "password": password},
    )
    assert response.status_code == 201, response.text

    response = client.post("/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["data"]
