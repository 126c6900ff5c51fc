"""Utility functions for the directory guard."""

from datetime import datetime, timezone
from typing import Optional

from starlette.requests import Request

from guard.app.core.config import settings

UNKNOWN_CLIENT = "unknown"


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def get_client_ip(request: Request, trust_forwarded_for: Optional[bool] = None) -> str:
    """Resolve the network address a request originated from.

    The first hop of X-Forwarded-For wins when forwarded headers are trusted,
    then the socket peer. Requests with neither are attributed to "unknown",
    which means they share a single rate-limit bucket.

    Examples:
        X-Forwarded-For: "203.0.113.7, 10.0.0.2"  ->  "203.0.113.7"
    """
    trust = settings.trust_forwarded_for if trust_forwarded_for is None else trust_forwarded_for
    if trust:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            first_hop = forwarded.split(",")[0].strip()
            if first_hop:
                return first_hop
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT
