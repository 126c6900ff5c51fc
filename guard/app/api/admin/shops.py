"""Admin shop creation, limited by address on the very strict tier."""

from dataclasses import replace

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from typing_extensions import Annotated

from guard.app.api.dependencies import ContextDep, PipelineDep
from guard.app.api.responses import success_response, rejection_response
from guard.app.api.schemas import ShopCreate, ShopResponse
from guard.app.middleware.auth import require_admin
from guard.app.services.rate_limit import VERY_STRICT
from guard.app.services.stores import RecordType

router = APIRouter()


@router.post("", status_code=201, response_model=ShopResponse)
async def create_shop(
    ctx: ContextDep,
    user_id: Annotated[str, Depends(require_admin)],
    pipeline: PipelineDep,
) -> JSONResponse:
    """Create a shop."""
    ctx = replace(ctx, user_id=user_id)
    decision = await pipeline.gate(
        ctx,
        VERY_STRICT,
        RecordType.SHOP,
        ShopCreate.model_validate,
        identifier=f"admin:shop:create:{ctx.ip_address}",
    )
    if not decision.proceed:
        return rejection_response(decision)

    data: ShopCreate = decision.subject
    shop = await pipeline.complete(
        ctx,
        RecordType.SHOP.create_action,
        lambda: pipeline.entity_store.create(RecordType.SHOP, data.model_dump()),
        metadata={"name": data.name},
    )
    return success_response(decision, ShopResponse.model_validate(shop))
