"""Folder traversal over Dropbox cursor-paginated listings.

One traversal algorithm serves both ways of addressing a target. What
differs (how to list a folder, how a listed file is downloaded, whether the
listing is already recursive) lives in a listing strategy:

- ``PrivatePathListing`` lists the root path once with ``recursive=True``;
  Dropbox enumerates every descendant in a single cursor chain.
- ``SharedLinkListing`` keeps a work queue of sub-folders and lists each one
  non-recursively, because Dropbox rejects recursive listings through a
  shared link. Files are downloaded through the link as well, so this works
  for links the user does not own.

Only one listing cursor is open at a time: a folder's cursor chain is drained
before the next queued folder is listed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath

from dropmirror.core.exceptions import TraversalError
from dropmirror.core.logging import get_logger
from dropmirror.remote.client import DropboxClient
from dropmirror.remote.models import ListingPage, RemoteEntryRef, RemoteFile, RemoteFolder

logger = get_logger(__name__)

DEFAULT_PAGE_LIMIT = 2000


class AddressingMode(str, Enum):
    """How the download target is addressed."""

    SHARED_LINK = "shared_link"
    PRIVATE_PATH = "private_path"


@dataclass(frozen=True)
class FileEntry:
    """A file found by traversal.

    ``path`` is relative: it never starts with a path separator.
    """

    path: str
    name: str
    ref: RemoteFile


def normalize_path(path: str) -> str:
    """Strip a single leading path separator."""
    return path[1:] if path.startswith("/") else path


class ListingStrategy(ABC):
    """Addressing-specific listing and download operations."""

    mode: AddressingMode
    recursive: bool

    def __init__(self, client: DropboxClient, target: str, page_limit: int = DEFAULT_PAGE_LIMIT):
        self.client = client
        self.target = target
        self.page_limit = page_limit

    @property
    @abstractmethod
    def root_folder(self) -> str:
        """Folder argument for the first listing."""

    @abstractmethod
    async def get_metadata(self) -> RemoteEntryRef:
        """Fetch metadata of the target itself."""

    @abstractmethod
    async def list_page(self, folder: str, cursor: str | None) -> ListingPage:
        """List one page of ``folder``; ``cursor`` is None for the first page."""

    @abstractmethod
    def entry_path(self, folder: str, ref: RemoteEntryRef) -> str | None:
        """Path of a listed entry, before normalization."""

    @abstractmethod
    async def download_entry(self, entry: FileEntry) -> bytes:
        """Download a file yielded by traversal."""

    @abstractmethod
    async def download_target(self) -> bytes:
        """Download the target when it is a single file."""


class PrivatePathListing(ListingStrategy):
    """Target addressed by a path in the user's own Dropbox."""

    mode = AddressingMode.PRIVATE_PATH
    recursive = True

    @property
    def root_folder(self) -> str:
        return self.target

    async def get_metadata(self) -> RemoteEntryRef:
        return await self.client.get_metadata(self.target)

    async def list_page(self, folder: str, cursor: str | None) -> ListingPage:
        if cursor is None:
            return await self.client.list_folder(folder, recursive=True, limit=self.page_limit)
        return await self.client.list_folder_continue(cursor)

    def entry_path(self, folder: str, ref: RemoteEntryRef) -> str | None:
        return ref.path_display or ref.path_lower or ref.name or None

    async def download_entry(self, entry: FileEntry) -> bytes:
        return await self.client.download(entry.ref.path_lower or f"/{entry.path}")

    async def download_target(self) -> bytes:
        return await self.client.download(self.target)


class SharedLinkListing(ListingStrategy):
    """Target addressed by a shared link URL.

    Paths are relative to the link root, built from the listed folder and the
    entry name. ``path_display`` of shared-link entries is the owner's path
    (or missing), so it is only a fallback for entries without a name.
    """

    mode = AddressingMode.SHARED_LINK
    recursive = False

    @property
    def root_folder(self) -> str:
        return ""

    async def get_metadata(self) -> RemoteEntryRef:
        return await self.client.get_shared_link_metadata(self.target)

    async def list_page(self, folder: str, cursor: str | None) -> ListingPage:
        if cursor is None:
            return await self.client.list_folder(
                folder, shared_link=self.target, limit=self.page_limit
            )
        return await self.client.list_folder_continue(cursor)

    def entry_path(self, folder: str, ref: RemoteEntryRef) -> str | None:
        if ref.name:
            return f"{folder}/{ref.name}"
        return ref.path_display or ref.path_lower or None

    async def download_entry(self, entry: FileEntry) -> bytes:
        return await self.client.download_shared_link_file(self.target, path=f"/{entry.path}")

    async def download_target(self) -> bytes:
        return await self.client.download_shared_link_file(self.target)


class TreeTraverser:
    """Lazily walks a remote folder and yields its files.

    A traversal is finite and not restartable; call ``traverse`` again for a
    fresh walk.
    """

    def __init__(self, strategy: ListingStrategy):
        self.strategy = strategy

    async def traverse(self) -> AsyncIterator[FileEntry]:
        """Yield every file below the strategy's target, in listing order.

        Raises:
            TraversalError: If an entry has no usable path, or a page claims
                more results without a cursor.
        """
        pending: deque[str] = deque([self.strategy.root_folder])
        while pending:
            folder = pending.popleft()
            async for ref in self._list_all(folder):
                if isinstance(ref, RemoteFile):
                    yield self._file_entry(folder, ref)
                elif isinstance(ref, RemoteFolder) and not self.strategy.recursive:
                    pending.append(self._folder_path(folder, ref))

    async def _list_all(self, folder: str) -> AsyncIterator[RemoteEntryRef]:
        """Drain one folder's cursor chain."""
        cursor: str | None = None
        pages = 0
        while True:
            page = await self.strategy.list_page(folder, cursor)
            pages += 1
            logger.debug(
                "folder_listing_page",
                mode=self.strategy.mode.value,
                folder=folder,
                page=pages,
                entries=len(page.entries),
                has_more=page.has_more,
            )
            for ref in page.entries:
                yield ref

            if not page.has_more:
                return
            if not page.cursor:
                raise TraversalError(f"Listing of '{folder}' reported more entries without a cursor")
            cursor = page.cursor

    def _file_entry(self, folder: str, ref: RemoteFile) -> FileEntry:
        raw_path = self.strategy.entry_path(folder, ref)
        path = normalize_path(raw_path) if raw_path else ""
        if not path:
            raise TraversalError("Listing entry has neither a path nor a name")
        return FileEntry(path=path, name=ref.name or PurePosixPath(path).name, ref=ref)

    def _folder_path(self, folder: str, ref: RemoteFolder) -> str:
        path = self.strategy.entry_path(folder, ref)
        if not path:
            raise TraversalError("Listing entry has neither a path nor a name")
        return path
