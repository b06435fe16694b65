"""Error taxonomy for the download engine.

Every error a caller can see is a ``DropmirrorError``. Each carries a stable
``code`` and the HTTP status the API layer answers with.
"""

from __future__ import annotations

from fastapi import status

NOT_AUTHORIZED_MESSAGE = (
    "Dropbox access not authorized for this user. "
    "Please ensure the user has pre-authorized your application."
)


class DropmirrorError(Exception):
    """Base exception for all download engine errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, code: str = "DROPMIRROR_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidRequestError(DropmirrorError):
    """Raised when required request fields are missing."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "'remoteTarget' and 'userIdentity' are required"):
        super().__init__(message, "INVALID_REQUEST")


class DropboxNotConfiguredError(DropmirrorError):
    """Raised when the Dropbox app key or secret is not configured."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Dropbox app credentials not configured"):
        super().__init__(message, "NOT_CONFIGURED")


class UserNotAuthorizedError(DropmirrorError):
    """Raised when the user has to (re-)authorize the application.

    Covers both a missing credential record and a refresh token the remote
    rejected as invalid or revoked.
    """

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = NOT_AUTHORIZED_MESSAGE):
        super().__init__(message, "USER_NOT_AUTHORIZED")


class AccessDeniedError(DropmirrorError):
    """Raised when Dropbox denies access to the target."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Access denied to the Dropbox link"):
        super().__init__(message, "ACCESS_DENIED")


class UserNotFoundError(DropmirrorError):
    """Raised when resolving the user's credential failed unexpectedly."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "User not found"):
        super().__init__(message, "USER_NOT_FOUND")


class RemoteTargetNotFoundError(DropmirrorError):
    """Raised when the shared link or path does not exist."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Dropbox link not found"):
        super().__init__(message, "REMOTE_TARGET_NOT_FOUND")


class TokenRefreshFailedError(DropmirrorError):
    """Raised when the refresh exchange failed for a reason other than invalid grant."""

    def __init__(self, message: str = "Failed to refresh access token"):
        super().__init__(message, "TOKEN_REFRESH_FAILED")


class IOWriteFailedError(DropmirrorError):
    """Raised when a file or directory could not be written locally."""

    def __init__(self, message: str = "Failed to write downloaded file"):
        super().__init__(message, "IO_WRITE_FAILED")


class UnknownRemoteEntryTypeError(DropmirrorError):
    """Raised when the target is neither a file nor a folder."""

    def __init__(self, message: str = "Unknown Dropbox metadata type"):
        super().__init__(message, "UNKNOWN_ENTRY_TYPE")


class TraversalError(DropmirrorError):
    """Raised when a folder listing cannot be walked safely."""

    def __init__(self, message: str):
        super().__init__(message, "TRAVERSAL_ERROR")


class UnexpectedDownloadError(DropmirrorError):
    """Raised for any remote failure without a more specific category."""

    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message, "UNEXPECTED_DOWNLOAD_ERROR")


class OAuthExchangeError(DropmirrorError):
    """Raised when an authorization code could not be turned into a credential."""

    def __init__(self, message: str):
        super().__init__(message, "OAUTH_EXCHANGE_FAILED")
