"""Health and version endpoints."""

from fastapi import APIRouter, Depends

from tickquest.config import Settings
from tickquest.dependencies import get_app_settings

router = APIRouter()


@router.get("/health")
@router.get("/healthz", include_in_schema=False)
async def health() -> dict[str, str]:
    """Liveness probe. Returns 200 if the process is alive."""
    return {"status": "ok"}


@router.get("/version")
async def version(settings: Settings = Depends(get_app_settings)) -> dict[str, str]:
    """Return API version and environment."""
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
