"""Database models for Dropmirror."""

from dropmirror.db.models.dropbox_credentials import DropboxCredentials

__all__ = [
    "DropboxCredentials",
]
