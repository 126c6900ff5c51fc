"""API endpoints package for the guard."""

from guard.app.api.admin import router as admin_router
from guard.app.api.health import router as health_router
from guard.app.api.reports import router as reports_router
from guard.app.api.submissions import router as submissions_router

__all__ = [
    "admin_router",
    "health_router",
    "reports_router",
    "submissions_router",
]
