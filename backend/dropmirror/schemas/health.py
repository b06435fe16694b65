"""Health check schemas."""

from __future__ import annotations

from dropmirror.schemas.download import CamelModel


class HealthResponse(CamelModel):
    """Health check response schema."""

    status: str
    version: str
    dropbox_configured: bool
