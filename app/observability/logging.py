"""
Structured logging configuration using structlog.
JSON output for production, coloured console for dev.
Each request gets a request_id bound into the log context.
"""

import logging
import sys
import uuid

import structlog
from starlette.types import ASGIApp, Receive, Scope, Send

from app.config import settings


def setup_logging() -> None:
    """Configure structlog for the application."""

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.DEBUG:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for name, level in quiet_logger_levels().items():
        logging.getLogger(name).setLevel(level)


def quiet_logger_levels() -> dict[str, int]:
    """Levels for chatty library loggers. DB_ECHO lets SQL statements through."""
    sql_level = logging.INFO if settings.DB_ECHO else logging.WARNING
    return {
        "uvicorn.access": logging.WARNING,
        "sqlalchemy.engine": sql_level,
        "sqlalchemy.pool": logging.WARNING,
        "asyncpg": logging.WARNING,
        "aiosqlite": logging.WARNING,
    }


class RequestContextMiddleware:
    """Bind request_id, method and path into structlog's context for one request."""

    header = b"x-request-id"

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers") or [])
        request_id = headers.get(self.header, b"").decode("latin-1") or uuid.uuid4().hex

        async def send_with_id(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].append((self.header, request_id.encode("latin-1")))
            await send(message)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=scope.get("method"),
            path=scope.get("path"),
        )
        try:
            await self.app(scope, receive, send_with_id)
        finally:
            structlog.contextvars.clear_contextvars()
