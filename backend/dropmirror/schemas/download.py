"""Pydantic schemas for the Dropbox download API."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from dropmirror.services.download import DownloadManifest


class CamelModel(BaseModel):
    """Base for response bodies serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DownloadRequest(BaseModel):
    """Download request body.

    All fields are optional at this layer; the download service decides what
    is missing so every client gets the same error.
    """

    remote_target: str | None = Field(
        default=None,
        validation_alias=AliasChoices("remoteTarget", "dropboxLink", "remote_target"),
        description="Shared link URL or private Dropbox path",
    )
    user_identity: str | None = Field(
        default=None,
        validation_alias=AliasChoices("userIdentity", "user_identity"),
        description="Email of a user who authorized the app",
    )
    destination_folder: str | None = Field(
        default=None,
        validation_alias=AliasChoices("destinationFolder", "destination_folder"),
        description="Local folder to download into",
    )


class DownloadedFile(CamelModel):
    """A file written by a download."""

    file_name: str
    file_path: str
    size_bytes: int


class DownloadResponse(CamelModel):
    """Successful download result."""

    status: Literal["success"] = "success"
    message: str = "Files downloaded successfully."
    downloaded_files: list[DownloadedFile]
    destination_folder: str

    @classmethod
    def from_manifest(cls, manifest: DownloadManifest) -> DownloadResponse:
        return cls(
            downloaded_files=[
                DownloadedFile(
                    file_name=record.file_name,
                    file_path=str(record.file_path),
                    size_bytes=record.size_bytes,
                )
                for record in manifest.files
            ],
            destination_folder=str(manifest.destination_folder),
        )


class ErrorResponse(BaseModel):
    """Body of every error response."""

    status: Literal["error"] = "error"
    message: str


class OAuthAuthorizeResponse(CamelModel):
    """Dropbox consent URL."""

    auth_url: str
    state: str


class OAuthCallbackResponse(CamelModel):
    """OAuth callback result."""

    status: Literal["success"] = "success"
    message: str = "Dropbox authorized successfully"
