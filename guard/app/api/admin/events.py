"""Admin event mutations.

Creation is limited per authenticated admin; update and delete use the
very strict tier keyed by address.
"""

from dataclasses import replace

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from typing_extensions import Annotated

from guard.app.api.dependencies import ContextDep, PipelineDep, SessionDep
from guard.app.api.responses import success_response, rejection_response
from guard.app.api.schemas import EventCreate, EventResponse, EventUpdate
from guard.app.db import crud
from guard.app.exceptions import NotFoundError
from guard.app.middleware.auth import require_admin
from guard.app.services.rate_limit import ADMIN, VERY_STRICT
from guard.app.services.stores import RecordType, TargetIdentity

router = APIRouter()

AdminUser = Annotated[str, Depends(require_admin)]


@router.post("", status_code=201, response_model=EventResponse)
async def create_event(
    ctx: ContextDep,
    user_id: AdminUser,
    pipeline: PipelineDep,
    session: SessionDep,
) -> JSONResponse:
    """Create an event."""
    ctx = replace(ctx, user_id=user_id)
    decision = await pipeline.gate(
        ctx,
        ADMIN,
        RecordType.EVENT,
        EventCreate.model_validate,
        identifier=f"admin:event:create:{user_id}",
    )
    if not decision.proceed:
        return rejection_response(decision)

    data: EventCreate = decision.subject
    event = await pipeline.complete(
        ctx,
        "event.create",
        lambda: crud.create_event(session, data.model_dump()),
        metadata={"name": data.name},
    )
    return success_response(decision, EventResponse.model_validate(event))


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: str,
    ctx: ContextDep,
    user_id: AdminUser,
    pipeline: PipelineDep,
    session: SessionDep,
) -> JSONResponse:
    """Update the fields sent in the body."""
    ctx = replace(ctx, user_id=user_id)
    decision = await pipeline.gate(
        ctx,
        VERY_STRICT,
        RecordType.EVENT,
        TargetIdentity.for_resource("Event", event_id),
        identifier=f"admin:event:update:{ctx.ip_address}",
    )
    if not decision.proceed:
        return rejection_response(decision, not_found_message="Event not found")

    changes = EventUpdate.model_validate(ctx.payload).model_dump(exclude_unset=True)

    async def apply():
        event = await crud.update_event(session, event_id, changes)
        if event is None:
            # Deleted between the existence check and the write
            raise NotFoundError("Event", event_id)
        return event

    event = await pipeline.complete(
        ctx,
        "event.update",
        apply,
        resource_id=event_id,
        metadata={"fields": sorted(changes)},
    )
    return success_response(decision, EventResponse.model_validate(event), status_code=200)


@router.delete("/{event_id}")
async def delete_event(
    event_id: str,
    ctx: ContextDep,
    user_id: AdminUser,
    pipeline: PipelineDep,
    session: SessionDep,
) -> JSONResponse:
    """Delete an event."""
    ctx = replace(ctx, user_id=user_id)
    decision = await pipeline.gate(
        ctx,
        VERY_STRICT,
        RecordType.EVENT,
        TargetIdentity.for_resource("Event", event_id),
        identifier=f"admin:event:delete:{ctx.ip_address}",
    )
    if not decision.proceed:
        return rejection_response(decision, not_found_message="Event not found")

    async def apply():
        if not await crud.delete_event(session, event_id):
            raise NotFoundError("Event", event_id)

    await pipeline.complete(
        ctx,
        "event.delete",
        apply,
        resource_id=event_id,
    )
    return success_response(decision, {"success": True}, status_code=200)
