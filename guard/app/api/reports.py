"""Public issue reports about existing events and shops."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from guard.app.api.dependencies import ContextDep, PipelineDep
from guard.app.api.responses import accepted_response, rejection_response
from guard.app.api.schemas import ReportCreate
from guard.app.services.rate_limit import STRICT
from guard.app.services.stores import RecordType

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.post("")
async def create_report(ctx: ContextDep, pipeline: PipelineDep) -> JSONResponse:
    """Submit a report (strict tier, keyed by address)."""
    decision = await pipeline.gate(
        ctx,
        STRICT,
        RecordType.REPORT,
        ReportCreate.model_validate,
        identifier=f"report:{ctx.ip_address}",
    )
    if not decision.proceed:
        return rejection_response(
            decision,
            duplicate_message=(
                "You have already reported this item recently. "
                "Please wait before submitting another report."
            ),
            not_found_message="The entity you are trying to report does not exist.",
        )

    data: ReportCreate = decision.subject
    await pipeline.complete(
        ctx,
        RecordType.REPORT.create_action,
        lambda: pipeline.entity_store.create(
            RecordType.REPORT,
            {
                "entity_type": data.entity_type,
                "entity_id": data.entity_id,
                "issue_type": data.issue_type,
                "description": data.description,
                "reporter_email": data.reporter_email,
                "status": "pending",
            },
        ),
        metadata={"entity_type": data.entity_type},
    )
    return accepted_response(decision.rate_limit)
