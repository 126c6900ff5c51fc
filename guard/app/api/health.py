"""Health check endpoint."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from guard.app.api.dependencies import ContextDep, PipelineDep
from guard.app.api.responses import rate_limited_response
from guard.app.core.utils import utc_now
from guard.app.services.rate_limit import DEFAULT

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(ctx: ContextDep, pipeline: PipelineDep) -> JSONResponse:
    """Liveness plus database status, under the default tier."""
    rate_limit = await pipeline.rate_limiter.check(f"health:{ctx.ip_address}", DEFAULT)
    if not rate_limit.success:
        return rate_limited_response(rate_limit, message="Too many requests")

    database_ok = await pipeline.entity_store.ping()
    return JSONResponse(
        status_code=200,
        content={
            "status": "ok" if database_ok else "degraded",
            "timestamp": utc_now().isoformat(),
            "components": {"database": {"status": "ok" if database_ok else "error"}},
        },
        headers=rate_limit.headers(),
    )
