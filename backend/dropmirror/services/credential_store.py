"""Durable Dropbox credential storage keyed by user identity."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dropmirror.core.logging import get_logger
from dropmirror.core.security import decrypt, encrypt
from dropmirror.db.models import DropboxCredentials

logger = get_logger(__name__)


class CredentialStore:
    """Lookup and upsert of ``DropboxCredentials`` rows.

    Secrets are encrypted on the way in and decrypted on the way out, so
    callers only ever handle plain token strings.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_identity(self, identity: str) -> DropboxCredentials | None:
        """Get the credential record for a user identity (email)."""
        result = await self.db.execute(
            select(DropboxCredentials).where(DropboxCredentials.email == identity)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def refresh_token(record: DropboxCredentials) -> str | None:
        """Decrypt the durable refresh token of a record, if it has one."""
        if not record.refresh_token_encrypted:
            return None
        return decrypt(record.refresh_token_encrypted)

    async def upsert(
        self,
        identity: str,
        *,
        refresh_token: str | None,
        access_token: str | None = None,
        expires_at: datetime | None = None,
        account_id: str | None = None,
        scope: str | None = None,
        token_type: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> DropboxCredentials:
        """Create or overwrite the credential record for an identity.

        Re-authorizing an existing identity replaces its tokens. When the new
        exchange did not return a refresh token the stored one is kept.
        """
        existing = await self.get_by_identity(identity)
        if existing:
            if refresh_token:
                existing.refresh_token_encrypted = encrypt(refresh_token)
            existing.access_token_encrypted = encrypt(access_token) if access_token else None
            existing.expires_at = expires_at
            existing.account_id = account_id or existing.account_id
            existing.scope = scope
            existing.token_type = token_type
            existing.payload_json = payload
            await self.db.flush()
            logger.info("credentials_updated", email=identity)
            return existing

        credentials = DropboxCredentials(
            email=identity,
            account_id=account_id,
            refresh_token_encrypted=encrypt(refresh_token) if refresh_token else None,
            access_token_encrypted=encrypt(access_token) if access_token else None,
            expires_at=expires_at,
            scope=scope,
            token_type=token_type,
            payload_json=payload,
        )
        self.db.add(credentials)
        await self.db.flush()

        logger.info("credentials_created", email=identity, credentials_id=credentials.id)
        return credentials
