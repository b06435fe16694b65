"""Fernet encryption for tokens stored in the database."""

from __future__ import annotations

from functools import lru_cache

from cryptography.fernet import Fernet

from dropmirror.core.config import settings
from dropmirror.core.logging import get_logger

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_fernet() -> Fernet:
    """Get the process-wide Fernet instance.

    Uses ``settings.encryption_key`` when set. Otherwise a key is generated
    and kept in memory only, so stored tokens will not survive a restart.
    """
    if settings.encryption_key:
        # Fernet expects the key as base64-encoded bytes (not decoded)
        return Fernet(settings.encryption_key.encode())

    logger.warning(
        "encryption_key_generated",
        message="Using auto-generated encryption key. Set DROPMIRROR_ENCRYPTION_KEY for persistence.",
    )
    return Fernet(Fernet.generate_key())


def encrypt(data: str) -> str:
    """Encrypt a string using Fernet."""
    return get_fernet().encrypt(data.encode()).decode()


def decrypt(encrypted_data: str) -> str:
    """Decrypt a Fernet-encrypted string.

    Raises:
        cryptography.fernet.InvalidToken: If the data was encrypted with another key.
    """
    return get_fernet().decrypt(encrypted_data.encode()).decode()
