"""Translate pipeline decisions into HTTP responses."""

import time
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from guard.app.services.pipeline import (
    Decision,
    Proceed,
    RejectedDuplicate,
    RejectedNotFound,
    RejectedRateLimited,
    RejectedSilentSpam,
)
from guard.app.services.rate_limit import RateLimitResult

TOO_MANY_REQUESTS = "Too many requests. Please try again later."
ALREADY_SUBMITTED = (
    "You have already submitted this item recently. Please wait before submitting again."
)


def rate_limited_response(
    rate_limit: RateLimitResult,
    message: str = TOO_MANY_REQUESTS,
    now: Optional[float] = None,
) -> JSONResponse:
    """429 with the reset instant in the body and the usual backoff headers."""
    now = time.time() if now is None else now
    headers = rate_limit.headers()
    headers["Retry-After"] = str(rate_limit.retry_after(now))
    return JSONResponse(
        status_code=429,
        content={"error": message, "reset": rate_limit.reset_time},
        headers=headers,
    )


def rejection_response(
    decision: Decision,
    duplicate_message: str = ALREADY_SUBMITTED,
    not_found_message: Optional[str] = None,
) -> JSONResponse:
    """Response for any decision that does not proceed.

    Raises:
        ValueError: If called with a Proceed decision
    """
    if isinstance(decision, RejectedSilentSpam):
        return accepted_response(decision.rate_limit)
    if isinstance(decision, RejectedRateLimited):
        return rate_limited_response(decision.rate_limit)
    if isinstance(decision, RejectedNotFound):
        return JSONResponse(
            status_code=404,
            content={"error": not_found_message or f"{decision.entity_type} not found"},
        )
    if isinstance(decision, RejectedDuplicate):
        return rate_limited_response(decision.rate_limit, message=duplicate_message)
    raise ValueError(f"Not a rejection: {decision!r}")


def success_response(
    decision: Proceed,
    content: Any,
    status_code: int = 201,
) -> JSONResponse:
    """Success response carrying the caller's remaining quota."""
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(content),
        headers=decision.rate_limit.headers(),
    )


def accepted_response(rate_limit: RateLimitResult) -> JSONResponse:
    """Generic 200 for public writes.

    Discarded spam gets this same reply, so status, body and header names
    never reveal whether the write was stored.
    """
    return JSONResponse(
        status_code=200,
        content={"success": True},
        headers=rate_limit.headers(),
    )
