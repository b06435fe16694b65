"""Write downloaded files into a local directory tree."""

from __future__ import annotations

import contextlib
import uuid
from pathlib import Path

import aiofiles
import aiofiles.os
from pydantic import BaseModel, ConfigDict

from dropmirror.core.exceptions import IOWriteFailedError, TraversalError
from dropmirror.core.logging import get_logger
from dropmirror.services.traversal import FileEntry, normalize_path

logger = get_logger(__name__)

PARTIAL_SUFFIX = ".part"


class DownloadedFileRecord(BaseModel):
    """One file written during a download run."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    file_path: Path
    size_bytes: int


class Mirror:
    """Materializes remote files below a local root directory.

    Each write is atomic: bytes go to a temporary sibling that is renamed over
    the destination, so a failed write never leaves a truncated file behind.
    Writing the same local path twice in one run overwrites the first file
    (last write wins) and logs a warning.
    """

    def __init__(self, root: Path):
        self.root = root.resolve()
        self._written: set[Path] = set()

    async def materialize(self, entry: FileEntry, data: bytes) -> DownloadedFileRecord:
        """Write a traversed file at its relative path below the root."""
        return await self._write(self._local_path(entry.path), entry.name, data)

    async def materialize_single(self, file_name: str, data: bytes) -> DownloadedFileRecord:
        """Write a single downloaded file directly in the root."""
        return await self._write(self._local_path(file_name), file_name, data)

    def _local_path(self, relative_path: str) -> Path:
        path = (self.root / normalize_path(relative_path)).resolve()
        if path == self.root or not path.is_relative_to(self.root):
            raise TraversalError(f"Remote path '{relative_path}' escapes the destination folder")
        return path

    async def _write(self, path: Path, file_name: str, data: bytes) -> DownloadedFileRecord:
        if path in self._written:
            logger.warning("mirror_path_overwritten", path=str(path))

        # Fixed-length name: the real name may already be at the filesystem limit
        partial = path.parent / f".{uuid.uuid4().hex}{PARTIAL_SUFFIX}"
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            try:
                async with aiofiles.open(partial, "wb") as f:
                    written = await f.write(data)
                if written != len(data):
                    raise IOWriteFailedError(
                        f"Short write for {path}: {written} of {len(data)} bytes"
                    )
                await aiofiles.os.replace(partial, path)
            except BaseException:
                with contextlib.suppress(OSError):
                    await aiofiles.os.remove(partial)
                raise
        except OSError as e:
            logger.error("mirror_write_failed", path=str(path), error=str(e))
            raise IOWriteFailedError(f"Failed to write {path}: {e}") from e

        self._written.add(path)
        logger.debug("mirror_file_written", path=str(path), size=written)
        return DownloadedFileRecord(file_name=file_name, file_path=path, size_bytes=written)
