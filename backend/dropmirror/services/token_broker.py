"""Exchange stored refresh tokens for short-lived Dropbox access tokens."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from dropmirror.core.config import DropboxAppConfig
from dropmirror.core.exceptions import TokenRefreshFailedError, UserNotAuthorizedError
from dropmirror.core.logging import get_logger
from dropmirror.remote.models import AccessCredential
from dropmirror.services.credential_store import CredentialStore

logger = get_logger(__name__)


def token_expiry(payload: dict[str, Any]) -> datetime | None:
    """Absolute expiry of a token endpoint response with ``expires_in``."""
    expires_in = payload.get("expires_in")
    if expires_in is None:
        return None
    return datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))


class TokenBroker:
    """Mints access credentials for users from their durable refresh token.

    Nothing is written back to the credential store and nothing is retried;
    a caller that wants resilience retries the whole operation.
    """

    def __init__(
        self,
        store: CredentialStore,
        config: DropboxAppConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the broker.

        Args:
            store: Credential lookup.
            config: Dropbox app key/secret and token endpoint.
            transport: Optional httpx transport, used by tests.
        """
        self.store = store
        self.config = config
        self._transport = transport

    async def obtain_access_credential(self, identity: str) -> AccessCredential:
        """Get a fresh access credential for a user.

        Args:
            identity: User identity (Dropbox account email).

        Returns:
            A short-lived AccessCredential.

        Raises:
            UserNotAuthorizedError: No refresh token on file, or Dropbox
                rejected it as invalid or revoked.
            TokenRefreshFailedError: The refresh exchange failed otherwise.
        """
        logger.debug("access_token_requested", email=identity)
        record = await self.store.get_by_identity(identity)
        refresh_token = self.store.refresh_token(record) if record else None
        if not refresh_token:
            logger.warning("refresh_token_missing", email=identity)
            raise UserNotAuthorizedError()

        payload = await self._refresh(identity, refresh_token)

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            logger.error("token_refresh_malformed_response", email=identity)
            raise TokenRefreshFailedError()

        try:
            expires_at = token_expiry(payload)
        except (TypeError, ValueError) as e:
            logger.error(
                "token_refresh_malformed_response",
                email=identity,
                expires_in=repr(payload.get("expires_in")),
            )
            raise TokenRefreshFailedError() from e

        logger.info("access_token_refreshed", email=identity)
        return AccessCredential(
            token=access_token,
            expires_at=expires_at,
            account_id=payload.get("account_id") or record.account_id,
        )

    async def _refresh(self, identity: str, refresh_token: str) -> dict[str, Any]:
        """POST the refresh grant and return the decoded JSON body."""
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.config.app_key,
            "client_secret": self.config.app_secret,
        }
        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=self.config.timeout
            ) as client:
                response = await client.post(self.config.token_url, data=data)
        except httpx.HTTPError as e:
            logger.error("token_refresh_failed", email=identity, error=str(e))
            raise TokenRefreshFailedError() from e

        if response.is_success:
            try:
                body = response.json()
            except ValueError as e:
                logger.error("token_refresh_malformed_response", email=identity)
                raise TokenRefreshFailedError() from e
            if not isinstance(body, dict):
                logger.error("token_refresh_malformed_response", email=identity)
                raise TokenRefreshFailedError()
            return body

        error = _error_code(response)
        logger.error(
            "token_refresh_failed",
            email=identity,
            status=response.status_code,
            error=error,
        )
        if error == "invalid_grant":
            raise UserNotAuthorizedError()
        raise TokenRefreshFailedError()


def _error_code(response: httpx.Response) -> str | None:
    """Extract the OAuth ``error`` field from an error response, if any."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, str):
            return error
        # Some Dropbox endpoints nest the error union
        if isinstance(error, dict):
            return error.get(".tag")
    return None
