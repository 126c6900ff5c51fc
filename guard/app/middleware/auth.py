"""Admin authentication."""

import hmac

from fastapi import Request

from guard.app.core.config import settings
from guard.app.exceptions import AuthenticationError


def get_bearer_token(request: Request) -> str | None:
    """Extract Bearer token from Authorization header.

    Args:
        request: The incoming request

    Returns:
        The token string if present, None otherwise
    """
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth.replace("Bearer ", "", 1).strip()


def require_admin(request: Request) -> str:
    """Validate the admin token for protected endpoints.

    Returns:
        The admin user id the token maps to; admin create quotas are keyed on it

    Raises:
        AuthenticationError: If the token is missing or invalid, or no
            admin token is configured
    """
    expected_token = settings.admin_token
    token = get_bearer_token(request) or ""

    # Always compare so that timing does not reveal whether a token was sent
    valid = hmac.compare_digest(token.encode(), expected_token.encode())
    if not expected_token or not valid:
        raise AuthenticationError()

    return settings.admin_user_id
