"""
fairbet application entry point.
FastAPI service exposing the dice, mines and blackjack wagering core.
"""

from typing import Optional

import orjson
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from fairbet.config import settings
from fairbet.core.casino import Casino
from fairbet.core.exceptions import IntegrityFatal, WagerError
from fairbet.core.logger import get_logger, init_logging
from fairbet.core.scheduler import SessionSweeper
from fairbet.routers import api

# Initialize logging first
init_logging(
    level=settings.logging.level,
    log_to_file=settings.logging.log_to_file,
    formatter=settings.logging.formatter,
    log_file_path=settings.paths.get_log_path(),
)
logger = get_logger("main")


class ORJSONResponse(JSONResponse):
    media_type = "application/json"

    def render(self, content) -> bytes:
        return orjson.dumps(content)


# ==================== Security Headers Middleware ====================


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        return response


# ==================== Exception Handlers ====================


async def wager_error_handler(request: Request, exc: WagerError):
    if isinstance(exc, IntegrityFatal):
        logger.error(
            f"Integrity failure: {exc.message}",
            extra={"path": request.url.path},
            exc_info=exc,
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": "Internal server error",
                "message": exc.message if settings.server.debug else "Wager aborted",
            },
        )

    logger.warning(
        f"Rejected: {exc.message}",
        extra={"path": request.url.path, "error": type(exc).__name__},
    )
    return ORJSONResponse(
        status_code=exc.status_code,
        content={"error": type(exc).__name__, "message": exc.message},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Schema failures are client errors like any other ValidationError."""
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{location}: {err.get('msg')}" if location else err.get("msg"))
    return ORJSONResponse(
        status_code=400,
        content={"error": "ValidationError", "message": "; ".join(messages)},
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=exc)
    return ORJSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.server.debug else None,
        },
    )


# ==================== Application Setup ====================


def create_app(casino: Optional[Casino] = None, start_sweeper: Optional[bool] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.server.name,
        docs_url="/docs" if settings.server.debug else None,
        redoc_url=None,
        default_response_class=ORJSONResponse,
    )

    app.state.casino = casino if casino is not None else Casino(config=settings)
    if start_sweeper is None:
        start_sweeper = settings.sessions.sweeper_enabled
    sweeper = SessionSweeper(app.state.casino, settings.sessions.sweep_interval_seconds)

    app.state.limiter = api.limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(WagerError, wager_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.add_middleware(SecurityHeadersMiddleware)

    # CORS middleware (for development)
    if settings.server.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(api.router, prefix="/api")

    @app.get("/health")
    async def health(request: Request):
        return {"status": "ok", **request.app.state.casino.stats()}

    @app.on_event("startup")
    def startup_event():
        app.state.casino.open()
        if start_sweeper:
            sweeper.start()
        logger.info(f"Application '{settings.server.name}' started")

    @app.on_event("shutdown")
    def shutdown_event():
        sweeper.shutdown()
        app.state.casino.close()

    return app


# ==================== Main Entry Point ====================

if __name__ == "__main__":
    logger.info(f"Starting server on {settings.server.host}:{settings.server.port}")
    uvicorn.run(
        "fairbet.main:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.debug,
    )
