"""
FastAPI application factory.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.api.router import api_router
from app.errors import STATUS_BY_KIND, ClaimServiceError
from app.models.database import close_db
from app.models.enums import ErrorKind
from app.observability.logging import RequestContextMiddleware, setup_logging

logger = structlog.get_logger(__name__)

KIND_BY_STATUS = {code: kind for kind, code in reversed(list(STATUS_BY_KIND.items()))}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    # Startup
    setup_logging()
    logger.info("startup", app=settings.APP_NAME, version=settings.APP_VERSION)

    # Sentry init if configured
    if settings.SENTRY_DSN:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            integrations=[FastApiIntegration()],
            traces_sample_rate=0.1,
        )

    yield

    # Shutdown
    await close_db()


def _error(status_code: int, kind: ErrorKind, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "error": kind.value, "message": message},
    )


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "invalid payload"
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    return f"{loc}: {first.get('msg', 'invalid')}" if loc else first.get("msg", "invalid payload")


def install_error_handlers(app: FastAPI) -> None:
    """Every failure leaves as {ok: false, error: <kind>, message}."""

    @app.exception_handler(ClaimServiceError)
    async def claim_error_handler(request: Request, exc: ClaimServiceError):
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, kind=exc.kind.value)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error(400, ErrorKind.VALIDATION, _validation_message(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        kind = KIND_BY_STATUS.get(exc.status_code, ErrorKind.VALIDATION)
        if exc.status_code >= 500:
            kind = ErrorKind.INTERNAL
        return _error(exc.status_code, kind, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path, error=str(exc))
        return _error(500, ErrorKind.INTERNAL, "server error")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Claim Intake Service",
        description="Accident claim submission, damage annotation and review workflow.",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestContextMiddleware)

    install_error_handlers(app)

    # Prometheus metrics endpoint
    if settings.PROMETHEUS_ENABLED:
        from prometheus_client import make_asgi_app
        metrics_app = make_asgi_app()
        app.mount("/metrics", metrics_app)

    # Include all API routes
    app.include_router(api_router)

    return app


# Application instance
app = create_app()
