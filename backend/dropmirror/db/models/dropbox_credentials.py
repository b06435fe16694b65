"""DropboxCredentials model for OAuth token storage."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from dropmirror.db.base import Base


class DropboxCredentials(Base):
    """Stores the durable OAuth credential of one Dropbox user.

    One row per user identity (the account email). The refresh token is what
    lets the download engine mint short-lived access tokens without the user
    being present. Tokens are stored encrypted with Fernet, see
    ``dropmirror.core.security``.
    """

    __tablename__ = "dropbox_credentials"

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # User identity
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    account_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Encrypted tokens
    refresh_token_encrypted: Mapped[str | None] = mapped_column(
        Text, nullable=True, doc="Encrypted durable refresh token"
    )
    access_token_encrypted: Mapped[str | None] = mapped_column(
        Text, nullable=True, doc="Encrypted access token from the last code exchange"
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Remaining fields of the token exchange response
    scope: Mapped[str | None] = mapped_column(Text, nullable=True)
    token_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    payload_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
