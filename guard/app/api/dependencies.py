"""FastAPI dependencies shared by the gated routers."""

from typing import Any, AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing_extensions import Annotated

from guard.app.core.logging import get_logger
from guard.app.core.utils import get_client_ip
from guard.app.middleware.request_id import get_request_id
from guard.app.services.pipeline import AbuseControlPipeline, RequestContext

logger = get_logger(__name__)


def get_pipeline(request: Request) -> AbuseControlPipeline:
    """The pipeline built at startup and stored on ``app.state``."""
    return request.app.state.pipeline


async def read_payload(request: Request) -> Any:
    """Raw JSON body, or None if the body is empty or not JSON.

    Validation happens inside the pipeline, after the spam and rate
    limit checks, so a malformed body is not rejected here.
    """
    body = await request.body()
    if not body:
        return None
    try:
        return await request.json()
    except ValueError:
        logger.debug("Request body is not valid JSON")
        return None


async def build_context(
    request: Request,
    payload: Annotated[Any, Depends(read_payload)],
) -> RequestContext:
    return RequestContext(
        ip_address=get_client_ip(request),
        payload=payload,
        request_id=get_request_id(request),
    )


PipelineDep = Annotated[AbuseControlPipeline, Depends(get_pipeline)]
ContextDep = Annotated[RequestContext, Depends(build_context)]


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Database session from the session maker stored on ``app.state``.

    Commits are issued by the CRUD helpers; anything left uncommitted
    after an exception is rolled back.
    """
    session_maker = request.app.state.session_maker
    async with session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


SessionDep = Annotated[AsyncSession, Depends(get_db)]
