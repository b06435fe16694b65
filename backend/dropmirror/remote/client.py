"""Async wrapper around the official Dropbox SDK.

The SDK is synchronous; every call runs in a worker thread via
``asyncio.to_thread``. SDK exceptions are converted to ``DropboxApiError`` so
callers never depend on SDK error classes.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Callable, TypeVar

import dropbox
import requests
from dropbox import files, sharing
from dropbox.exceptions import ApiError, DropboxException

from dropmirror.core.logging import get_logger
from dropmirror.remote.exceptions import DropboxApiError, DropboxTimeoutError
from dropmirror.remote.models import (
    AccessCredential,
    EntryTag,
    ListingPage,
    RemoteEntryRef,
    RemoteFile,
    RemoteFolder,
)

T = TypeVar("T")

logger = get_logger(__name__)


def summarize_error(error: Any) -> str:
    """Render a Dropbox union error as a slash-separated tag path.

    ``GetMetadataError('path', LookupError('not_found'))`` becomes
    ``path/not_found``.
    """
    tags: list[str] = []
    while error is not None and getattr(error, "_tag", None):
        tags.append(error._tag)
        error = getattr(error, "_value", None)
    return "/".join(tags)


def to_entry_ref(metadata: Any) -> RemoteEntryRef:
    """Convert SDK metadata (files or sharing namespace) to a typed entry."""
    name = getattr(metadata, "name", None) or ""
    path_display = getattr(metadata, "path_display", None)
    path_lower = getattr(metadata, "path_lower", None)

    if isinstance(metadata, (files.FileMetadata, sharing.FileLinkMetadata)):
        return RemoteFile(
            name=name,
            path_display=path_display,
            path_lower=path_lower,
            size=metadata.size or 0,
        )
    if isinstance(metadata, (files.FolderMetadata, sharing.FolderLinkMetadata)):
        return RemoteFolder(name=name, path_display=path_display, path_lower=path_lower)
    return RemoteEntryRef(
        tag=EntryTag.OTHER, name=name, path_display=path_display, path_lower=path_lower
    )


class DropboxClient:
    """Dropbox primitives needed to mirror a file tree."""

    def __init__(self, access_token: str, timeout: float = 100.0):
        self._dbx = dropbox.Dropbox(oauth2_access_token=access_token, timeout=timeout)

    @classmethod
    def for_credential(cls, credential: AccessCredential, timeout: float = 100.0) -> DropboxClient:
        """Build a client bound to a freshly minted access credential."""
        return cls(credential.token, timeout=timeout)

    # ========== Metadata ==========

    async def get_metadata(self, path: str) -> RemoteEntryRef:
        metadata = await self._call("get_metadata", self._dbx.files_get_metadata, path)
        return to_entry_ref(metadata)

    async def get_shared_link_metadata(self, url: str) -> RemoteEntryRef:
        metadata = await self._call(
            "get_shared_link_metadata", self._dbx.sharing_get_shared_link_metadata, url
        )
        return to_entry_ref(metadata)

    # ========== Listing ==========

    async def list_folder(
        self,
        path: str,
        shared_link: str | None = None,
        recursive: bool = False,
        limit: int | None = None,
    ) -> ListingPage:
        """List the first page of a folder.

        Args:
            path: Folder path. For shared links, relative to the link root
                ("" for the root itself).
            shared_link: Shared link URL when listing through a link.
            recursive: List all descendants in one cursor chain. Dropbox
                rejects this for shared links.
            limit: Maximum entries per page.
        """
        link = files.SharedLink(url=shared_link) if shared_link else None
        result = await self._call(
            "list_folder",
            self._dbx.files_list_folder,
            path,
            recursive=recursive,
            limit=limit,
            shared_link=link,
        )
        return self._to_page(result)

    async def list_folder_continue(self, cursor: str) -> ListingPage:
        result = await self._call(
            "list_folder_continue", self._dbx.files_list_folder_continue, cursor
        )
        return self._to_page(result)

    # ========== Download ==========

    async def download(self, path: str) -> bytes:
        """Download a file by path, id or revision."""
        return await self._call("download", self._download_sync, path)

    async def download_shared_link_file(self, url: str, path: str | None = None) -> bytes:
        """Download a file through a shared link.

        Args:
            url: Shared link URL.
            path: Path of the file inside a shared folder, or None when the
                link points at the file itself.
        """
        return await self._call(
            "download_shared_link_file", self._download_shared_link_sync, url, path
        )

    # ========== Account ==========

    async def get_current_account(self) -> tuple[str, str]:
        """Return (email, account_id) of the token owner."""
        account = await self._call(
            "get_current_account", self._dbx.users_get_current_account
        )
        return account.email, account.account_id

    # ========== Private Helpers ==========

    def _download_sync(self, path: str) -> bytes:
        _, response = self._dbx.files_download(path)
        with contextlib.closing(response):
            return response.content

    def _download_shared_link_sync(self, url: str, path: str | None) -> bytes:
        _, response = self._dbx.sharing_get_shared_link_file(url, path=path)
        with contextlib.closing(response):
            return response.content

    @staticmethod
    def _to_page(result: files.ListFolderResult) -> ListingPage:
        return ListingPage(
            entries=[to_entry_ref(entry) for entry in result.entries],
            cursor=result.cursor,
            has_more=result.has_more,
        )

    async def _call(self, operation: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except ApiError as e:
            summary = summarize_error(e.error)
            logger.debug("dropbox_api_error", operation=operation, summary=summary)
            raise DropboxApiError(operation, summary, request_id=e.request_id) from e
        except DropboxException as e:
            # AuthError, RateLimitError, HttpError, BadInputError, ...
            summary = summarize_error(getattr(e, "error", None)) or type(e).__name__
            raise DropboxApiError(operation, summary, request_id=e.request_id) from e
        except requests.exceptions.Timeout as e:
            logger.warning("dropbox_call_timeout", operation=operation)
            raise DropboxTimeoutError(operation) from e
        except requests.exceptions.RequestException as e:
            raise DropboxApiError(operation, f"transport_error: {e}") from e
