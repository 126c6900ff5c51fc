"""Public submissions of new events and shops for moderation."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from guard.app.api.dependencies import ContextDep, PipelineDep
from guard.app.api.responses import accepted_response, rejection_response
from guard.app.api.schemas import parse_submission
from guard.app.services.rate_limit import STRICT
from guard.app.services.stores import RecordType

router = APIRouter(prefix="/api/submissions", tags=["submissions"])


@router.post("")
async def create_submission(ctx: ContextDep, pipeline: PipelineDep) -> JSONResponse:
    """Submit a new event or shop (strict tier, keyed by address).

    Resubmitting the same name and address from the same address within
    the lookback window is refused.
    """
    decision = await pipeline.gate(
        ctx,
        STRICT,
        RecordType.SUBMISSION,
        parse_submission,
        identifier=f"submission:{ctx.ip_address}",
    )
    if not decision.proceed:
        return rejection_response(decision)

    data = decision.subject
    await pipeline.complete(
        ctx,
        RecordType.SUBMISSION.create_action,
        lambda: pipeline.entity_store.create(RecordType.SUBMISSION, data.record_fields()),
        metadata={"entity_type": data.entity_type},
    )
    return accepted_response(decision.rate_limit)
