"""Dropbox download and OAuth endpoints."""

from __future__ import annotations

import secrets

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dropmirror.core.config import DropboxAppConfig, settings
from dropmirror.core.exceptions import InvalidRequestError
from dropmirror.core.logging import get_logger
from dropmirror.db import get_db
from dropmirror.schemas.download import (
    DownloadRequest,
    DownloadResponse,
    ErrorResponse,
    OAuthAuthorizeResponse,
    OAuthCallbackResponse,
)
from dropmirror.services.credential_store import CredentialStore
from dropmirror.services.download import DownloadService
from dropmirror.services.oauth import DropboxOAuthService
from dropmirror.services.token_broker import TokenBroker

logger = get_logger(__name__)

router = APIRouter(prefix="/dropbox", tags=["dropbox"])

ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (400, 401, 403, 404, 500)
}


# =============================================================================
# Dependencies
# =============================================================================


def get_app_config() -> DropboxAppConfig:
    return DropboxAppConfig.from_settings(settings)


def get_download_service(
    db: AsyncSession = Depends(get_db),
    config: DropboxAppConfig = Depends(get_app_config),
) -> DownloadService:
    broker = TokenBroker(CredentialStore(db), config)
    return DownloadService(broker)


def get_oauth_service(
    db: AsyncSession = Depends(get_db),
    config: DropboxAppConfig = Depends(get_app_config),
) -> DropboxOAuthService:
    return DropboxOAuthService(db, config)


# =============================================================================
# Download
# =============================================================================


@router.post("/download", response_model=DownloadResponse, responses=ERROR_RESPONSES)
async def download_from_dropbox(
    request: DownloadRequest,
    service: DownloadService = Depends(get_download_service),
) -> DownloadResponse:
    """Download a Dropbox file or folder to local storage.

    ``remoteTarget`` is either a shared link (``https://www.dropbox.com/...``)
    or a path in the user's own Dropbox. Folders are mirrored recursively.
    """
    manifest = await service.run(request)
    return DownloadResponse.from_manifest(manifest)


# =============================================================================
# OAuth Flow
# =============================================================================


@router.get("/oauth/authorize", response_model=OAuthAuthorizeResponse, responses=ERROR_RESPONSES)
async def initiate_oauth(
    service: DropboxOAuthService = Depends(get_oauth_service),
) -> OAuthAuthorizeResponse:
    """Start the OAuth flow.

    Returns the Dropbox consent URL to send the user to.
    """
    state = secrets.token_urlsafe(32)
    auth_url = service.get_authorization_url(state=state)
    logger.info("oauth_initiated", state=state[:8])
    return OAuthAuthorizeResponse(auth_url=auth_url, state=state)


@router.get("/oauth/callback", response_model=OAuthCallbackResponse, responses=ERROR_RESPONSES)
async def handle_oauth_callback(
    code: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
    db: AsyncSession = Depends(get_db),
    service: DropboxOAuthService = Depends(get_oauth_service),
) -> OAuthCallbackResponse:
    """Handle the redirect back from Dropbox.

    Exchanges the authorization code and stores the user's refresh token.
    """
    if error:
        logger.warning("oauth_denied", error=error)
        raise InvalidRequestError(f"Dropbox authorization failed: {error_description or error}")
    if not code:
        raise InvalidRequestError("'code' is required")

    credentials = await service.exchange_code(code)
    await db.commit()

    logger.info("oauth_callback_success", email=credentials.email, credentials_id=credentials.id)
    return OAuthCallbackResponse()
