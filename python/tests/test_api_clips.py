"""Integration tests for clip and tag routes.

Tests cover:
- POST /clips, GET /clips, GET /clips/public, GET /clips/{identifier}
- PATCH /clips/{clip_id}, DELETE /clips/{clip_id}
- GET /clips/{clip_id}/access-logs, GET /tags
- Anonymous access to public/unlisted clips, owner-only key disclosure
"""

from fastapi.testclient import TestClient

from tests.helpers import auth_headers, register_and_login


def _create(client: TestClient, headers: dict, **body) -> dict:
    body.setdefault("content", "hello clipboard")
    response = client.post("/clips", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestCreateClip:
    def test_create_requires_bearer(self, client: TestClient):
        response = client.post("/clips", json={"content": "hi"})
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "E_UNAUTHENTICATED"

    def test_create_defaults(self, client: TestClient):
        headers = auth_headers(register_and_login(client)["access_token"])
        clip = _create(client, headers)

        assert clip["access_type"] == "private"
        assert clip["content_type"] == "text"
        assert clip["view_count"] == 0
        assert clip["is_expired"] is False
        assert clip["short_url"]

    def test_unknown_content_type(self, client: TestClient):
        headers = auth_headers(register_and_login(client)["access_token"])
        response = client.post(
            "/clips", json={"content": "x", "content_type": "pdf"}, headers=headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_CONTENT_TYPE"

    def test_unknown_access_type(self, client: TestClient):
        headers = auth_headers(register_and_login(client)["access_token"])
        response = client.post(
            "/clips", json={"content": "x", "access_type": "secret"}, headers=headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_ACCESS_TYPE"

    def test_oversized_expires_in(self, client: TestClient):
        headers = auth_headers(register_and_login(client)["access_token"])
        response = client.post(
            "/clips", json={"content": "hi", "expires_in": 10**15}, headers=headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"

        clip = _create(client, headers, expires_in=60)
        response = client.patch(
            f"/clips/{clip['id']}", json={"expires_in": 10**15}, headers=headers
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_REQUEST"


class TestGetClip:
    def test_unlisted_clip_readable_anonymously(self, client: TestClient):
        owner = auth_headers(register_and_login(client)["access_token"])
        clip = _create(client, owner, access_type="unlisted", expires_in=3600)

        response = client.get(f"/clips/{clip['short_url']}")
        assert response.status_code == 200
        assert response.json()["data"]["view_count"] == 1

        logs = client.get(f"/clips/{clip['id']}/access-logs", headers=owner)
        assert logs.status_code == 200
        entries = logs.json()["data"]["logs"]
        assert len(entries) == 1
        assert entries[0]["user_id"] is None
        assert entries[0]["access_ip"] == "testclient"

    def test_forwarded_for_is_recorded(self, client: TestClient):
        owner = auth_headers(register_and_login(client)["access_token"])
        clip = _create(client, owner, access_type="public")

        client.get(
            f"/clips/{clip['id']}",
            headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1", "Referer": "https://a.example/"},
        )

        entry = client.get(f"/clips/{clip['id']}/access-logs", headers=owner).json()["data"][
            "logs"
        ][0]
        assert entry["access_ip"] == "203.0.113.9"
        assert entry["referrer"] == "https://a.example/"

    def test_private_clip(self, client: TestClient):
        owner = auth_headers(register_and_login(client)["access_token"])
        other = auth_headers(register_and_login(client)["access_token"])
        clip = _create(client, owner)

        assert client.get(f"/clips/{clip['short_url']}").status_code == 403
        assert client.get(f"/clips/{clip['short_url']}", headers=other).status_code == 403
        assert client.get(f"/clips/{clip['short_url']}", headers=owner).status_code == 200

    def test_missing_clip(self, client: TestClient):
        response = client.get("/clips/doesNotExist")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "E_CLIP_NOT_FOUND"

    def test_encrypted_clip_key_for_owner_only(self, client: TestClient):
        owner = auth_headers(register_and_login(client)["access_token"])
        clip = _create(
            client,
            owner,
            content="opaque",
            access_type="public",
            is_encrypted=True,
            encryption_key="owner-key",
        )
        assert clip["encryption_key"] == "owner-key"

        anonymous = client.get(f"/clips/{clip['short_url']}").json()["data"]
        assert anonymous["content"] == "opaque"
        assert anonymous["encryption_key"] is None

        as_owner = client.get(f"/clips/{clip['short_url']}", headers=owner).json()["data"]
        assert as_owner["encryption_key"] == "owner-key"


class TestListClips:
    def test_list_own_with_pagination(self, client: TestClient):
        headers = auth_headers(register_and_login(client)["access_token"])
        for i in range(3):
            _create(client, headers, content=f"clip {i}")

        first = client.get("/clips", params={"limit": 2}, headers=headers).json()["data"]
        assert len(first["clips"]) == 2
        cursor = first["page"]["next_cursor"]
        assert cursor

        second = client.get(
            "/clips", params={"limit": 2, "cursor": cursor}, headers=headers
        ).json()["data"]
        assert len(second["clips"]) == 1
        assert second["page"]["next_cursor"] is None

    def test_list_requires_bearer(self, client: TestClient):
        assert client.get("/clips").status_code == 401

    def test_bad_cursor(self, client: TestClient):
        headers = auth_headers(register_and_login(client)["access_token"])
        response = client.get("/clips", params={"cursor": "garbage"}, headers=headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "E_INVALID_CURSOR"

    def test_public_feed_is_anonymous(self, client: TestClient):
        headers = auth_headers(register_and_login(client)["access_token"])
        public = _create(client, headers, access_type="public")
        _create(client, headers, access_type="unlisted")
        _create(client, headers)

        data = client.get("/clips/public").json()["data"]
        assert [c["id"] for c in data["clips"]] == [public["id"]]


class TestUpdateAndDelete:
    def test_patch_only_sent_fields(self, client: TestClient):
        headers = auth_headers(register_and_login(client)["access_token"])
        clip = _create(client, headers, title="old", expires_in=60)

        response = client.patch(f"/clips/{clip['id']}", json={"title": "new"}, headers=headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["title"] == "new"
        assert data["expires_at"] == clip["expires_at"]
        assert data["short_url"] == clip["short_url"]

    def test_patch_null_expiry_clears_it(self, client: TestClient):
        headers = auth_headers(register_and_login(client)["access_token"])
        clip = _create(client, headers, expires_in=60)

        response = client.patch(f"/clips/{clip['id']}", json={"expires_in": None}, headers=headers)
        assert response.json()["data"]["expires_at"] is None

    def test_patch_by_non_owner(self, client: TestClient):
        owner = auth_headers(register_and_login(client)["access_token"])
        other = auth_headers(register_and_login(client)["access_token"])
        clip = _create(client, owner, access_type="public")

        response = client.patch(f"/clips/{clip['id']}", json={"title": "x"}, headers=other)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "E_FORBIDDEN"

    def test_delete(self, client: TestClient):
        headers = auth_headers(register_and_login(client)["access_token"])
        clip = _create(client, headers, access_type="public")

        assert client.delete(f"/clips/{clip['id']}", headers=headers).status_code == 204
        assert client.get(f"/clips/{clip['short_url']}").status_code == 404
        assert client.delete(f"/clips/{clip['id']}", headers=headers).status_code == 404

    def test_access_logs_owner_only(self, client: TestClient):
        owner = auth_headers(register_and_login(client)["access_token"])
        other = auth_headers(register_and_login(client)["access_token"])
        clip = _create(client, owner, access_type="public")

        response = client.get(f"/clips/{clip['id']}/access-logs", headers=other)
        assert response.status_code == 403


class TestTags:
    def test_list_tags(self, client: TestClient):
        headers = auth_headers(register_and_login(client)["access_token"])
        _create(client, headers, tags=["Work", "ideas"])
        _create(client, headers, tags=["work"])
        removed = _create(client, headers, tags=["temp"])
        client.delete(f"/clips/{removed['id']}", headers=headers)

        data = client.get("/tags", headers=headers).json()["data"]
        assert [(t["name"], t["usage_count"]) for t in data] == [("work", 2), ("ideas", 1)]

        data = client.get("/tags", params={"include_unused": True}, headers=headers).json()["data"]
        assert ("temp", 0) in [(t["name"], t["usage_count"]) for t in data]

    def test_filter_own_clips_by_tag(self, client: TestClient):
        headers = auth_headers(register_and_login(client)["access_token"])
        tagged = _create(client, headers, tags=["work"])
        _create(client, headers, tags=["home"])

        data = client.get("/clips", params={"tag": "work"}, headers=headers).json()["data"]
        assert [c["id"] for c in data["clips"]] == [tagged["id"]]
