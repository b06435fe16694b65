"""Typed views of Dropbox responses."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class EntryTag(str, Enum):
    """Kind of a remote entry."""

    FILE = "file"
    FOLDER = "folder"
    OTHER = "other"  # deleted entries and anything newer than this client


class RemoteEntryRef(BaseModel):
    """A remote entry as returned by metadata and listing calls."""

    model_config = ConfigDict(frozen=True)

    tag: EntryTag = EntryTag.OTHER
    name: str = ""
    path_display: str | None = None
    path_lower: str | None = None


class RemoteFile(RemoteEntryRef):
    """A remote file."""

    tag: Literal[EntryTag.FILE] = EntryTag.FILE
    size: int = 0


class RemoteFolder(RemoteEntryRef):
    """A remote folder."""

    tag: Literal[EntryTag.FOLDER] = EntryTag.FOLDER


class ListingPage(BaseModel):
    """One page of a folder listing."""

    model_config = ConfigDict(frozen=True)

    entries: list[RemoteEntryRef] = Field(default_factory=list)
    cursor: str | None = None
    has_more: bool = False


class AccessCredential(BaseModel):
    """Short-lived access token minted from a stored refresh token."""

    model_config = ConfigDict(frozen=True)

    token: str = Field(repr=False)
    expires_at: datetime | None = None
    account_id: str | None = None
