"""Tests for the static API key."""

import json

from packhub.auth.api_key import ensure_api_token, generate_token, read_api_token, write_api_token


class TestTokenFile:
    def test_generate_token_is_128_hex_chars(self):
        token = generate_token()
        assert len(token) == 128
        int(token, 16)

    def test_ensure_creates_file(self, tmp_path):
        path = tmp_path / "apiToken" / "apiToken.json"

        token = ensure_api_token(path)

        assert json.loads(path.read_text()) == {"token": token}

    def test_ensure_reuses_existing(self, tmp_path):
        path = tmp_path / "apiToken.json"
        write_api_token(path, "abc")
        assert ensure_api_token(path) == "abc"

    def test_rotate_replaces_token(self, tmp_path):
        path = tmp_path / "apiToken.json"
        write_api_token(path, "abc")

        token = ensure_api_token(path, rotate=True)

        assert token != "abc"
        assert read_api_token(path) == token

    def test_unreadable_file_returns_none(self, tmp_path):
        path = tmp_path / "apiToken.json"
        path.write_text("not json")
        assert read_api_token(path) is None
        assert read_api_token(tmp_path / "missing.json") is None


class TestGuard:
    def test_missing_key(self, client):
        response = client.post("/api/authenticate")
        assert response.status_code == 401
        assert response.json()["detail"] == "API key is required"

    def test_wrong_key(self, client):
        response = client.post("/api/authenticate", headers={"x-api-key": "nope"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid API key"

    def test_valid_key(self, client, auth_headers):
        response = client.post("/api/authenticate", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"message": "API key authenticated successfully"}

    def test_public_routes_need_no_key(self, client):
        assert client.get("/api/").status_code == 200
        assert client.get("/api/usernames").status_code == 200
