"""
/api/me: who the auth cookie says the caller is.
"""

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.config import settings
from app.dependencies import InvalidToken, decode_principal

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["me"])


@router.get("/me")
async def me(request: Request):
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not token:
        return {"isAuthenticated": False}
    try:
        principal = decode_principal(token)
    except InvalidToken as e:
        logger.info("me_token_rejected", reason=str(e))
        return JSONResponse(status_code=401, content={"isAuthenticated": False})
    return {"isAuthenticated": True, "user": principal.model_dump()}
