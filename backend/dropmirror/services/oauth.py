"""One-time OAuth provisioning of Dropbox credentials.

Turns an authorization code from the Dropbox consent screen into a stored
refresh token for the account that granted it.
"""

from __future__ import annotations

from typing import Any, Callable

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from dropmirror.core.config import DropboxAppConfig
from dropmirror.core.exceptions import DropboxNotConfiguredError, DropmirrorError, OAuthExchangeError
from dropmirror.core.logging import get_logger
from dropmirror.db.models import DropboxCredentials
from dropmirror.remote.client import DropboxClient
from dropmirror.services.credential_store import CredentialStore
from dropmirror.services.token_broker import token_expiry

logger = get_logger(__name__)

# Fields of the token response stored in dedicated columns
_TOKEN_FIELDS = {"access_token", "refresh_token", "expires_in", "scope", "token_type", "account_id"}


class DropboxOAuthService:
    """Authorization URL generation and code exchange."""

    def __init__(
        self,
        db: AsyncSession,
        config: DropboxAppConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        client_factory: Callable[[str], DropboxClient] | None = None,
    ):
        self.store = CredentialStore(db)
        self.config = config
        self._transport = transport
        self._client_factory = client_factory or (
            lambda token: DropboxClient(token, timeout=config.timeout)
        )

    def get_authorization_url(self, state: str | None = None) -> str:
        """Get the Dropbox consent URL.

        Requests offline access so the exchange returns a refresh token.

        Raises:
            DropboxNotConfiguredError: If the app key or secret is missing.
        """
        self._require_configured()
        params = {
            "client_id": self.config.app_key,
            "response_type": "code",
            "token_access_type": "offline",
            "redirect_uri": self.config.redirect_uri,
        }
        if state:
            params["state"] = state
        return str(httpx.URL(self.config.authorize_url, params=params))

    async def exchange_code(self, code: str) -> DropboxCredentials:
        """Exchange an authorization code and store the resulting credential.

        Args:
            code: Authorization code from the OAuth callback.

        Returns:
            The stored DropboxCredentials.

        Raises:
            DropboxNotConfiguredError: If the app key or secret is missing.
            OAuthExchangeError: If the exchange or account lookup fails.
        """
        self._require_configured()
        logger.info("oauth_code_exchange_started")

        try:
            payload = await self._fetch_token(code)
            access_token = payload["access_token"]
            email, account_id = await self._client_factory(access_token).get_current_account()

            credentials = await self.store.upsert(
                email,
                refresh_token=payload.get("refresh_token"),
                access_token=access_token,
                expires_at=token_expiry(payload),
                account_id=payload.get("account_id") or account_id,
                scope=payload.get("scope"),
                token_type=payload.get("token_type"),
                payload={k: v for k, v in payload.items() if k not in _TOKEN_FIELDS},
            )
        except DropmirrorError:
            raise
        except Exception as e:
            logger.error("oauth_code_exchange_failed", error=str(e))
            raise OAuthExchangeError(f"OAuth callback failed: {e}") from e

        logger.info("oauth_code_exchange_complete", email=credentials.email)
        return credentials

    async def _fetch_token(self, code: str) -> dict[str, Any]:
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.redirect_uri,
            "client_id": self.config.app_key,
            "client_secret": self.config.app_secret,
        }
        async with httpx.AsyncClient(
            transport=self._transport, timeout=self.config.timeout
        ) as client:
            response = await client.post(self.config.token_url, data=data)

        if not response.is_success:
            raise OAuthExchangeError(
                f"Token exchange failed with status {response.status_code}: {response.text}"
            )
        payload = response.json()
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise OAuthExchangeError("Token exchange returned no access token")
        return payload

    def _require_configured(self) -> None:
        if not self.config.configured:
            raise DropboxNotConfiguredError(
                "Dropbox OAuth not configured. Set DROPMIRROR_DROPBOX_APP_KEY and DROPMIRROR_DROPBOX_APP_SECRET"
            )
