"""Pytest configuration and fixtures."""

from __future__ import annotations

import json
import os
import shutil
import tempfile
from pathlib import Path
from urllib.parse import parse_qs

import httpx
import pytest

# Create a temporary directory for test paths
_test_tmp_dir = tempfile.mkdtemp(prefix="dropmirror_test_")

# Set config BEFORE importing dropmirror modules
os.environ["DROPMIRROR_CONFIG_PATH"] = str(Path(_test_tmp_dir) / "config")
os.environ["DROPMIRROR_UPLOADS_PATH"] = str(Path(_test_tmp_dir) / "uploads")
os.environ["DROPMIRROR_ENCRYPTION_KEY"] = "A" * 43 + "="
os.environ["DROPMIRROR_DROPBOX_APP_KEY"] = "test-app-key"
os.environ["DROPMIRROR_DROPBOX_APP_SECRET"] = "test-app-secret"

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dropmirror.core.config import DropboxAppConfig
from dropmirror.core.security import encrypt
from dropmirror.db.base import Base
from dropmirror.db.models import DropboxCredentials
from dropmirror.remote.exceptions import DropboxApiError
from dropmirror.remote.models import ListingPage, RemoteEntryRef
from dropmirror.services.credential_store import CredentialStore

TOKEN_URL = "https://api.dropboxapi.com/oauth2/token"
VALID_REFRESH_TOKEN = "valid-refresh-token"
REVOKED_REFRESH_TOKEN = "revoked-refresh-token"
ACCESS_TOKEN = "sl.test-access-token"


# =============================================================================
# Fakes
# =============================================================================


class FakeDropboxClient:
    """In-memory stand-in for DropboxClient.

    Listings are paginated ``page_size`` entries at a time. Every call is
    recorded in ``calls`` as ``(operation, *args)``.
    """

    def __init__(self, page_size: int = 2):
        self.page_size = page_size
        self.metadata: dict[str, RemoteEntryRef] = {}
        self.listings: dict[tuple[str, str | None], list[RemoteEntryRef]] = {}
        self.contents: dict[str, bytes] = {}
        self.failures: dict[str, DropboxApiError | Exception] = {}
        self.calls: list[tuple] = []
        self._cursors: dict[str, tuple[list[RemoteEntryRef], int]] = {}

    def fail(self, operation: str, summary: str | Exception) -> None:
        """Make every call of ``operation`` raise."""
        if isinstance(summary, Exception):
            self.failures[operation] = summary
        else:
            self.failures[operation] = DropboxApiError(operation, summary)

    def _record(self, operation: str, *args) -> None:
        self.calls.append((operation, *args))
        if operation in self.failures:
            raise self.failures[operation]

    async def get_metadata(self, path: str) -> RemoteEntryRef:
        self._record("get_metadata", path)
        if path not in self.metadata:
            raise DropboxApiError("get_metadata", "path/not_found")
        return self.metadata[path]

    async def get_shared_link_metadata(self, url: str) -> RemoteEntryRef:
        self._record("get_shared_link_metadata", url)
        if url not in self.metadata:
            raise DropboxApiError("get_shared_link_metadata", "shared_link_not_found")
        return self.metadata[url]

    async def list_folder(self, path, shared_link=None, recursive=False, limit=None) -> ListingPage:
        self._record("list_folder", path, shared_link, recursive)
        entries = self.listings.get((path, shared_link))
        if entries is None:
            raise DropboxApiError("list_folder", "path/not_found")
        return self._page(entries, 0)

    async def list_folder_continue(self, cursor: str) -> ListingPage:
        self._record("list_folder_continue", cursor)
        entries, offset = self._cursors.pop(cursor)
        return self._page(entries, offset)

    async def download(self, path: str) -> bytes:
        self._record("download", path)
        if path not in self.contents:
            raise DropboxApiError("download", "path/not_found")
        return self.contents[path]

    async def download_shared_link_file(self, url: str, path: str | None = None) -> bytes:
        self._record("download_shared_link_file", url, path)
        key = url if path is None else f"{url}{path}"
        if key not in self.contents:
            raise DropboxApiError("download_shared_link_file", "shared_link_not_found")
        return self.contents[key]

    async def get_current_account(self) -> tuple[str, str]:
        self._record("get_current_account")
        return "owner@example.com", "dbid:owner"

    def _page(self, entries: list[RemoteEntryRef], offset: int) -> ListingPage:
        end = offset + self.page_size
        has_more = end < len(entries)
        cursor = f"cursor-{len(self.calls)}"
        if has_more:
            self._cursors[cursor] = (entries, end)
        return ListingPage(entries=entries[offset:end], cursor=cursor, has_more=has_more)


class InMemoryCredentialStore(CredentialStore):
    """CredentialStore backed by a dict instead of the database."""

    def __init__(self, records: dict[str, DropboxCredentials] | None = None):
        super().__init__(db=None)
        self.records = records or {}

    async def get_by_identity(self, identity: str) -> DropboxCredentials | None:
        return self.records.get(identity)


def token_endpoint(request: httpx.Request) -> httpx.Response:
    """Mock of the Dropbox OAuth token endpoint."""
    form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
    if form.get("grant_type") == "refresh_token":
        if form.get("refresh_token") == VALID_REFRESH_TOKEN:
            return httpx.Response(
                200,
                json={"access_token": ACCESS_TOKEN, "expires_in": 14400, "token_type": "bearer"},
            )
        if form.get("refresh_token") == REVOKED_REFRESH_TOKEN:
            return httpx.Response(
                400,
                json={"error": "invalid_grant", "error_description": "refresh token is invalid or revoked"},
            )
    if form.get("grant_type") == "authorization_code" and form.get("code") == "good-code":
        return httpx.Response(
            200,
            content=json.dumps({
                "access_token": ACCESS_TOKEN,
                "expires_in": 14400,
                "token_type": "bearer",
                "refresh_token": VALID_REFRESH_TOKEN,
                "scope": "files.content.read",
                "uid": "12345",
                "account_id": "dbid:owner",
            }),
            headers={"content-type": "application/json"},
        )
    return httpx.Response(500, text="upstream failure")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def app_config() -> DropboxAppConfig:
    """Dropbox app config pointing at the mocked token endpoint."""
    return DropboxAppConfig(
        app_key="test-app-key",
        app_secret="test-app-secret",
        token_url=TOKEN_URL,
        redirect_uri="http://localhost:3000/api/dropbox/oauth/callback",
        timeout=5.0,
    )


@pytest.fixture
def token_transport() -> httpx.MockTransport:
    return httpx.MockTransport(token_endpoint)


@pytest.fixture
def fake_client() -> FakeDropboxClient:
    return FakeDropboxClient()


@pytest.fixture
def credential_records() -> dict[str, DropboxCredentials]:
    """One authorized user and one whose refresh token was revoked."""
    return {
        "authorized@example.com": DropboxCredentials(
            email="authorized@example.com",
            account_id="dbid:authorized",
            refresh_token_encrypted=encrypt(VALID_REFRESH_TOKEN),
        ),
        "revoked@example.com": DropboxCredentials(
            email="revoked@example.com",
            refresh_token_encrypted=encrypt(REVOKED_REFRESH_TOKEN),
        ),
        "incomplete@example.com": DropboxCredentials(
            email="incomplete@example.com",
            refresh_token_encrypted=None,
        ),
    }


@pytest.fixture
def memory_store(credential_records) -> InMemoryCredentialStore:
    return InMemoryCredentialStore(credential_records)


@pytest.fixture
async def db_engine():
    """Create an in-memory test database engine."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Create a test database session."""
    async_session = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with async_session() as session:
        yield session


def pytest_sessionfinish(session, exitstatus):
    """Clean up temp directories after test session."""
    if Path(_test_tmp_dir).exists():
        shutil.rmtree(_test_tmp_dir, ignore_errors=True)
