"""
Liveness and readiness probes.
/health answers 200 even with the database down; the body says which.
"""

from typing import Optional

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.config import settings
from app.models.database import async_session_factory

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["health"])


async def _ping_database() -> Optional[str]:
    """None when the database answers SELECT 1, else a truncated error."""
    try:
        async with async_session_factory() as session:
            answered = (await session.execute(text("SELECT 1"))).scalar() == 1
    except Exception as e:
        logger.warning("database_ping_failed", error=str(e))
        return str(e)[:200]
    return None if answered else "unexpected ping result"


@router.get("/health")
async def health_check():
    error = await _ping_database()
    body = {
        "status": "degraded" if error else "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "database": "unreachable" if error else "connected",
    }
    if error:
        body["database_error"] = error
    return body


@router.get("/health/ready")
async def readiness_check():
    """503 until the database answers."""
    if await _ping_database():
        return JSONResponse(status_code=503, content={"ready": False})
    return {"ready": True}
