"""Health check endpoint: no dependencies, always available."""

from fastapi import APIRouter

from recipe_ingest.config import get_settings
from recipe_ingest.infrastructure.dependencies import get_event_broker, get_import_runner

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict:
    """Returns the current application health status."""
    settings = get_settings()
    runner = get_import_runner()
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.app_env,
        "active_imports": runner.active_count if runner else 0,
        "sse_clients": get_event_broker().client_count,
    }
