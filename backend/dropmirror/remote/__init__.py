"""Dropbox API boundary: typed entries and a thin async SDK wrapper."""

from dropmirror.remote.client import DropboxClient, summarize_error
from dropmirror.remote.exceptions import DropboxApiError, DropboxTimeoutError
from dropmirror.remote.models import (
    AccessCredential,
    EntryTag,
    ListingPage,
    RemoteEntryRef,
    RemoteFile,
    RemoteFolder,
)

__all__ = [
    "AccessCredential",
    "DropboxApiError",
    "DropboxClient",
    "DropboxTimeoutError",
    "EntryTag",
    "ListingPage",
    "RemoteEntryRef",
    "RemoteFile",
    "RemoteFolder",
    "summarize_error",
]
