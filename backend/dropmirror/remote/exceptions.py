"""Errors raised by the Dropbox client wrapper."""

from __future__ import annotations


class DropboxApiError(Exception):
    """A Dropbox call failed.

    ``summary`` is the slash-joined error tag path, the same shape as the
    ``error_summary`` field of Dropbox API responses (e.g. ``path/not_found``
    or ``shared_link_access_denied``).
    """

    def __init__(self, operation: str, summary: str, request_id: str | None = None):
        self.operation = operation
        self.summary = summary
        self.request_id = request_id
        super().__init__(f"{operation} failed: {summary}")


class DropboxTimeoutError(DropboxApiError):
    """A Dropbox call did not complete within the configured timeout."""

    def __init__(self, operation: str):
        super().__init__(operation, "timeout")
