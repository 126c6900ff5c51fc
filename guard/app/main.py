import asyncio
import traceback
from contextlib import asynccontextmanager, suppress
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from guard.app.api import admin_router, health_router, reports_router, submissions_router
from guard.app.core.config import settings
from guard.app.core.logging import get_logger, setup_logging
from guard.app.db import (
    SqlAuditStore,
    SqlEntityStore,
    close_async_engine,
    get_async_session_maker,
    init_async_db,
)
from guard.app.exceptions import GuardException
from guard.app.middleware.request_id import RequestIdMiddleware
from guard.app.services.duplicate_detector import DuplicateDetector
from guard.app.services.pipeline import AbuseControlPipeline
from guard.app.services.rate_limit import REQUIRED_POLICIES, RateLimiter, get_rate_limiter
from guard.app.services.spam_filter import SpamFilter


def build_pipeline(
    session_maker: async_sessionmaker[AsyncSession],
    rate_limiter: RateLimiter,
) -> AbuseControlPipeline:
    """Wire the abuse-control pipeline over SQL-backed stores."""
    entity_store = SqlEntityStore(session_maker)
    audit_store = SqlAuditStore(session_maker)
    return AbuseControlPipeline(
        spam_filter=SpamFilter(),
        rate_limiter=rate_limiter,
        duplicate_detector=DuplicateDetector.from_settings(entity_store, audit_store),
        entity_store=entity_store,
        audit_store=audit_store,
    )


async def _cleanup_loop(rate_limiter: RateLimiter, interval: int) -> None:
    """Periodically drop expired counters from a process-local store."""
    logger = get_logger(__name__)
    while True:
        await asyncio.sleep(interval)
        try:
            removed = await rate_limiter.cleanup()
        except Exception as e:
            logger.error(f"Rate limit cleanup failed: {e}")
            continue
        if removed:
            logger.debug(f"Rate limit cleanup removed {removed} expired records")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan context manager.

        Creates tables, wires the pipeline and validates rate limit tiers
        on startup; releases the counter store and engine on shutdown.
        A pipeline already placed on ``app.state`` is used as is.
        """
        if getattr(app.state, "pipeline", None) is None:
            await init_async_db()
            app.state.session_maker = get_async_session_maker()
            app.state.pipeline = build_pipeline(app.state.session_maker, get_rate_limiter())

        pipeline: AbuseControlPipeline = app.state.pipeline
        # Fails startup if a route references a tier that is not configured
        pipeline.rate_limiter.policies.validate(REQUIRED_POLICIES)

        cleanup_task = asyncio.create_task(
            _cleanup_loop(pipeline.rate_limiter, settings.rate_limit_cleanup_interval_seconds)
        )
        logger.info(
            "Application startup complete",
            extra={
                "policies": sorted(policy.name for policy in pipeline.rate_limiter.policies),
                "debug_mode": settings.debug,
            },
        )

        yield

        cleanup_task.cancel()
        with suppress(asyncio.CancelledError):
            await cleanup_task
        await pipeline.rate_limiter.close()
        await close_async_engine()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Directory Guard",
        description="Abuse-controlled write API for a public events and shops directory",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
        max_age=600,
    )
    app.add_middleware(RequestIdMiddleware)

    app.include_router(health_router)
    app.include_router(reports_router)
    app.include_router(submissions_router)
    app.include_router(admin_router)

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        """Payload rejected by a request schema; return HTTP 400."""
        details = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        logger.info(
            "Payload validation failed",
            extra={"path": request.url.path, "error_count": len(details)},
        )
        return JSONResponse(
            status_code=400,
            content={"error": "Validation error", "details": details},
        )

    @app.exception_handler(GuardException)
    async def guard_exception_handler(request: Request, exc: GuardException) -> JSONResponse:
        """Map GuardException subclasses to their status code."""
        request_id = getattr(request.state, "request_id", "unknown")
        if exc.status_code >= 500:
            logger.error(
                f"{type(exc).__name__}: {exc.message}",
                extra={"request_id": request_id, "path": request.url.path},
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "request_id": request_id},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        The traceback is logged server-side and never sent to the client.
        """
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
                "traceback": "".join(traceback.format_exception(exc)),
            },
        )
        content = {
            "error": "internal_error",
            "message": "Internal server error",
            "request_id": request_id,
        }
        if settings.debug:
            content["message"] = str(exc)
            content["exception_type"] = type(exc).__name__
        return JSONResponse(status_code=500, content=content)

    return app


# Create the application instance
app = create_app()


def run() -> None:
    """Serve the application with uvicorn."""
    uvicorn.run(
        "guard.app.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
