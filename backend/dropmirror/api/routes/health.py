"""Health check endpoint."""

from fastapi import APIRouter

from dropmirror.core.config import settings
from dropmirror.schemas.health import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check application health.

    Returns:
        Health status, application version and whether the Dropbox app is configured.
    """
    return HealthResponse(
        status="ok",
        version=settings.version,
        dropbox_configured=settings.dropbox_configured,
    )
