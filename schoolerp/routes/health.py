from fastapi import APIRouter, Request
from sqlalchemy import text

from schoolerp.core.logging import logger

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Directory reachability and the school databases currently held open"""
    directory_status = "connected"
    try:
        async with request.app.state.directory.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Directory health check failed: {e}")
        directory_status = "disconnected"

    return {
        "success": directory_status == "connected",
        "status": "ok" if directory_status == "connected" else "degraded",
        "directory": directory_status,
        "tenants": request.app.state.registry.cached_codes(),
        "version": request.app.state.settings.VERSION,
    }
