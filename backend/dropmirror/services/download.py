"""Download orchestration: mirror a Dropbox file or folder to local disk.

A run resolves the user's access credential, classifies the target, walks it
if it is a folder, and writes every file below a local root. Remote failures
are translated into the error taxonomy here and nowhere else.

When a run fails part way through a folder, files already written stay on
disk and the manifest is discarded; the failure log records how many files
had been written.
"""

from __future__ import annotations

import secrets
import time
from contextlib import aclosing
from pathlib import Path
from typing import Callable

import aiofiles.os
from pydantic import BaseModel, ConfigDict

from dropmirror.core.config import Settings, settings
from dropmirror.core.exceptions import (
    AccessDeniedError,
    DropmirrorError,
    InvalidRequestError,
    IOWriteFailedError,
    RemoteTargetNotFoundError,
    TokenRefreshFailedError,
    UnexpectedDownloadError,
    UnknownRemoteEntryTypeError,
    UserNotAuthorizedError,
    UserNotFoundError,
)
from dropmirror.core.logging import get_logger
from dropmirror.remote.client import DropboxClient
from dropmirror.remote.exceptions import DropboxApiError
from dropmirror.remote.models import AccessCredential, RemoteFile, RemoteFolder
from dropmirror.schemas.download import DownloadRequest
from dropmirror.services.mirror import DownloadedFileRecord, Mirror
from dropmirror.services.token_broker import TokenBroker
from dropmirror.services.traversal import (
    ListingStrategy,
    PrivatePathListing,
    SharedLinkListing,
    TreeTraverser,
)

logger = get_logger(__name__)


class DownloadManifest(BaseModel):
    """Files written by a successful run, in listing order."""

    model_config = ConfigDict(frozen=True)

    files: tuple[DownloadedFileRecord, ...] = ()
    destination_folder: Path


def translate_remote_error(error: DropboxApiError) -> DropmirrorError:
    """Map a Dropbox error summary onto the error taxonomy."""
    if "access_denied" in error.summary:
        return AccessDeniedError()
    if "not_found" in error.summary:
        return RemoteTargetNotFoundError()
    return UnexpectedDownloadError()


class DownloadService:
    """Coordinates credential, traversal and mirroring for one request."""

    def __init__(
        self,
        token_broker: TokenBroker,
        config: Settings = settings,
        client_factory: Callable[[AccessCredential], DropboxClient] | None = None,
    ):
        """Initialize the download service.

        Args:
            token_broker: Source of access credentials.
            config: Settings for paths, shared-link prefix and timeouts.
            client_factory: Builds the Dropbox client for a credential.
                Defaults to the SDK-backed DropboxClient.
        """
        self.token_broker = token_broker
        self.config = config
        self._client_factory = client_factory or (
            lambda credential: DropboxClient.for_credential(
                credential, timeout=config.dropbox_request_timeout
            )
        )

    async def run(self, request: DownloadRequest) -> DownloadManifest:
        """Download the requested target.

        Args:
            request: Target, user identity and optional destination folder.

        Returns:
            DownloadManifest of every file written.

        Raises:
            DropmirrorError: One of the taxonomy errors.
        """
        if not request.remote_target or not request.user_identity:
            logger.warning("download_request_invalid")
            raise InvalidRequestError()

        target = request.remote_target
        identity = request.user_identity
        logger.info("dropbox_download_starting", email=identity, target=target)

        credential = await self._obtain_credential(identity)
        local_root = await self._prepare_local_root(request.destination_folder)

        strategy = self._strategy_for(self._client_factory(credential), target)
        mirror = Mirror(local_root)
        records: list[DownloadedFileRecord] = []

        try:
            await self._mirror_target(strategy, mirror, records)
        except DropmirrorError as e:
            self._log_failure(target, e, e.code, records)
            raise
        except DropboxApiError as e:
            error = translate_remote_error(e)
            self._log_failure(target, e, error.code, records, summary=e.summary)
            raise error from e
        except Exception as e:
            self._log_failure(target, e, UnexpectedDownloadError().code, records)
            raise UnexpectedDownloadError() from e

        logger.info(
            "dropbox_download_complete",
            target=target,
            files=len(records),
            total_bytes=sum(r.size_bytes for r in records),
            destination=str(local_root),
        )
        return DownloadManifest(files=tuple(records), destination_folder=local_root)

    async def _obtain_credential(self, identity: str) -> AccessCredential:
        try:
            return await self.token_broker.obtain_access_credential(identity)
        except (UserNotAuthorizedError, TokenRefreshFailedError) as e:
            logger.error("token_fetch_failed", email=identity, code=e.code)
            raise
        except Exception as e:
            logger.error("credential_lookup_failed", email=identity, error=str(e))
            raise UserNotFoundError() from e

    async def _prepare_local_root(self, destination_folder: str | None) -> Path:
        if destination_folder:
            local_root = Path(destination_folder).resolve()
        else:
            # Random suffix keeps concurrent runs in the same millisecond apart
            stamp = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"
            local_root = (self.config.default_download_root / stamp).resolve()

        try:
            await aiofiles.os.makedirs(local_root, exist_ok=True)
        except OSError as e:
            logger.error("destination_create_failed", path=str(local_root), error=str(e))
            raise IOWriteFailedError(f"Cannot create destination folder {local_root}: {e}") from e
        return local_root

    def _strategy_for(self, client: DropboxClient, target: str) -> ListingStrategy:
        if target.startswith(self.config.dropbox_shared_link_prefix):
            logger.debug("target_classified", mode="shared_link")
            return SharedLinkListing(client, target, page_limit=self.config.dropbox_list_page_limit)
        logger.debug("target_classified", mode="private_path")
        return PrivatePathListing(client, target, page_limit=self.config.dropbox_list_page_limit)

    async def _mirror_target(
        self,
        strategy: ListingStrategy,
        mirror: Mirror,
        records: list[DownloadedFileRecord],
    ) -> None:
        metadata = await strategy.get_metadata()

        if isinstance(metadata, RemoteFile):
            logger.info("downloading_single_file", name=metadata.name, mode=strategy.mode.value)
            data = await strategy.download_target()
            records.append(await mirror.materialize_single(metadata.name, data))

        elif isinstance(metadata, RemoteFolder):
            logger.info("downloading_folder", name=metadata.name, mode=strategy.mode.value)
            async with aclosing(TreeTraverser(strategy).traverse()) as entries:
                async for entry in entries:
                    data = await strategy.download_entry(entry)
                    records.append(await mirror.materialize(entry, data))

        else:
            logger.error("unknown_metadata_type", tag=metadata.tag.value, name=metadata.name)
            raise UnknownRemoteEntryTypeError()

    @staticmethod
    def _log_failure(
        target: str,
        error: Exception,
        code: str,
        records: list[DownloadedFileRecord],
        summary: str | None = None,
    ) -> None:
        logger.error(
            "dropbox_download_failed",
            target=target,
            code=code,
            summary=summary,
            error=str(error),
            files_written=len(records),
        )
