from fastapi import APIRouter

from config import settings
from .harvest_router import router as harvest_router

router = APIRouter(prefix="/api/v1", tags=["v1"])
router.include_router(harvest_router)


@router.get("/health")
async def health():
    return {"status": "ok", "version": settings.app_version}


@router.get("/info")
async def info():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "debug": settings.debug,
        "cors_origins": settings.cors_origins,
        "stamp_interval_hours": settings.stamp_interval_hours,
        "harvest_enabled": settings.harvest_enabled,
        "harvest_interval_minutes": settings.harvest_interval_minutes,
        "backfill_max_depth": settings.backfill_max_depth,
    }
