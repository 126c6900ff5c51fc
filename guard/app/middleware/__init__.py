"""Middleware package for the guard."""

from guard.app.middleware.auth import get_bearer_token, require_admin
from guard.app.middleware.request_id import RequestIdMiddleware, get_request_id

__all__ = [
    "get_bearer_token",
    "require_admin",
    "RequestIdMiddleware",
    "get_request_id",
]
