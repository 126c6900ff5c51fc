from fastapi import APIRouter, Depends

from guard.app.middleware.auth import require_admin

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])

from . import events, shops  # noqa: E402

router.include_router(events.router, prefix="/events", tags=["admin-events"])
router.include_router(shops.router, prefix="/shops", tags=["admin-shops"])
