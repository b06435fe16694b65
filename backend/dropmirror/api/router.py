"""API router that aggregates all routes."""

from fastapi import APIRouter

from dropmirror.api.routes import dropbox, health

api_router = APIRouter(prefix="/api")

api_router.include_router(health.router)
api_router.include_router(dropbox.router)
