"""Tests for the Dropbox API endpoints.

The download and OAuth services are replaced through FastAPI dependency
overrides so no request leaves the process.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from dropmirror.api.routes.dropbox import get_download_service, get_oauth_service
from dropmirror.core.config import Settings
from dropmirror.core.exceptions import NOT_AUTHORIZED_MESSAGE
from dropmirror.db import get_db
from dropmirror.db.models import DropboxCredentials
from dropmirror.main import app
from dropmirror.remote.models import RemoteFile
from dropmirror.services.download import DownloadService
from dropmirror.services.oauth import DropboxOAuthService
from dropmirror.services.token_broker import TokenBroker

LINK = "https://www.dropbox.com/scl/fi/xyz/hello.txt?dl=0"
DELETED_LINK = "https://www.dropbox.com/scl/fi/gone/old.txt?dl=0"


@pytest.fixture
def download_service(memory_store, app_config, token_transport, fake_client, tmp_path: Path):
    fake_client.metadata[LINK] = RemoteFile(name="hello.txt", size=12)
    fake_client.contents[LINK] = b"hello dropbox"
    config = Settings(config_path=tmp_path / "config", uploads_path=tmp_path / "uploads")
    broker = TokenBroker(memory_store, app_config, transport=token_transport)
    return DownloadService(broker, config=config, client_factory=lambda credential: fake_client)


@pytest.fixture
def client(download_service):
    """Test client with the download service overridden."""
    app.dependency_overrides[get_download_service] = lambda: download_service
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestDownloadEndpoint:
    """Tests for POST /api/dropbox/download."""

    def test_shared_link_single_file(self, client: TestClient, tmp_path: Path):
        destination = tmp_path / "dest"

        response = client.post(
            "/api/dropbox/download",
            json={
                "remoteTarget": LINK,
                "userIdentity": "authorized@example.com",
                "destinationFolder": str(destination),
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["message"] == "Files downloaded successfully."
        assert data["destinationFolder"] == str(destination.resolve())
        assert len(data["downloadedFiles"]) == 1
        file = data["downloadedFiles"][0]
        assert file["fileName"] == "hello.txt"
        assert file["sizeBytes"] == Path(file["filePath"]).stat().st_size == 13

    def test_legacy_link_field(self, client: TestClient, tmp_path: Path):
        response = client.post(
            "/api/dropbox/download",
            json={
                "dropboxLink": LINK,
                "userIdentity": "authorized@example.com",
                "destinationFolder": str(tmp_path / "dest"),
            },
        )

        assert response.status_code == 200

    def test_server_error(self, client: TestClient, fake_client, tmp_path: Path):
        fake_client.fail("get_metadata", "path/malformed_path")

        response = client.post(
            "/api/dropbox/download",
            json={
                "remoteTarget": "simulate-server-error",
                "userIdentity": "authorized@example.com",
                "destinationFolder": str(tmp_path / "dest"),
            },
        )

        assert response.status_code == 500
        assert response.json() == {"status": "error", "message": "An unexpected error occurred"}

    def test_never_authorized_user(self, client: TestClient, fake_client):
        response = client.post(
            "/api/dropbox/download",
            json={"remoteTarget": LINK, "userIdentity": "stranger@example.com"},
        )

        assert response.status_code == 401
        assert response.json() == {"status": "error", "message": NOT_AUTHORIZED_MESSAGE}
        assert fake_client.calls == []

    def test_deleted_link(self, client: TestClient, tmp_path: Path):
        response = client.post(
            "/api/dropbox/download",
            json={
                "remoteTarget": DELETED_LINK,
                "userIdentity": "authorized@example.com",
                "destinationFolder": str(tmp_path / "dest"),
            },
        )

        assert response.status_code == 404
        assert response.json()["message"] == "Dropbox link not found"

    def test_missing_fields(self, client: TestClient):
        response = client.post("/api/dropbox/download", json={"remoteTarget": LINK})

        assert response.status_code == 400
        assert response.json() == {
            "status": "error",
            "message": "'remoteTarget' and 'userIdentity' are required",
        }

    def test_malformed_body(self, client: TestClient):
        response = client.post(
            "/api/dropbox/download",
            content="not json",
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["status"] == "error"
        assert response.json()["message"].startswith("Invalid request")


class TestOAuthEndpoints:
    """Tests for the OAuth authorize and callback endpoints."""

    @pytest.fixture
    def fake_db(self):
        session = MagicMock()
        session.commit = AsyncMock()
        return session

    @pytest.fixture
    def oauth_client(self, fake_db, app_config):
        async def override_db():
            yield fake_db

        service = DropboxOAuthService(fake_db, app_config)
        service.exchange_code = AsyncMock(
            return_value=DropboxCredentials(id="cred-1", email="owner@example.com")
        )
        app.dependency_overrides[get_db] = override_db
        app.dependency_overrides[get_oauth_service] = lambda: service
        yield TestClient(app), service
        app.dependency_overrides.clear()

    def test_authorize(self, oauth_client):
        client, _ = oauth_client

        response = client.get("/api/dropbox/oauth/authorize")

        assert response.status_code == 200
        data = response.json()
        assert data["authUrl"].startswith("https://www.dropbox.com/oauth2/authorize?")
        assert f"state={data['state']}" in data["authUrl"]

    def test_callback_success(self, oauth_client, fake_db):
        client, service = oauth_client

        response = client.get("/api/dropbox/oauth/callback", params={"code": "good-code"})

        assert response.status_code == 200
        assert response.json() == {"status": "success", "message": "Dropbox authorized successfully"}
        service.exchange_code.assert_awaited_once_with("good-code")
        fake_db.commit.assert_awaited()

    def test_callback_missing_code(self, oauth_client):
        client, service = oauth_client

        response = client.get("/api/dropbox/oauth/callback")

        assert response.status_code == 400
        service.exchange_code.assert_not_awaited()

    def test_callback_denied(self, oauth_client):
        client, _ = oauth_client

        response = client.get(
            "/api/dropbox/oauth/callback",
            params={"error": "access_denied", "error_description": "The user chose not to give your app access"},
        )

        assert response.status_code == 400
        assert "not to give your app access" in response.json()["message"]
