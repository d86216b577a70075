"""Health check endpoint."""

from fastapi import APIRouter

from config.settings import get_settings

router = APIRouter()


@router.get("/api/health")
async def health():
    settings = get_settings()
    return {
        "status": "healthy",
        "storeType": settings.evaluation_store_type,
        "scoringConfigured": settings.get_default_connection().is_complete(),
    }
