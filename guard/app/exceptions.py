"""Custom exceptions for the directory guard."""


class GuardException(Exception):
    """Base class for guard exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Guard error"):
        self.message = message
        super().__init__(message)


class UnknownPolicyError(GuardException):
    """Raised when a rate limit tier name is not configured.

    This is a deployment/programming error: policy names come from code,
    never from request data. Startup validation should surface it before
    any request is served.
    """
    status_code = 500

    def __init__(self, policy_name: str):
        self.policy_name = policy_name
        super().__init__(f"Unknown rate limit policy: {policy_name!r}")


class CounterStoreUnavailableError(GuardException):
    """Raised by a counter backend when the backing store cannot be reached.

    The rate limiter converts this into its configured fail-open or
    fail-closed result; it never reaches a request handler.
    """
    status_code = 503

    def __init__(self, reason: str = "unavailable", detail: str | None = None):
        self.reason = reason
        super().__init__(detail or f"Rate limit counter store {reason}")


class StoreUnavailableError(GuardException):
    """Raised by the entity or audit store when a query fails.

    The duplicate detector converts this into its configured outcome.
    """
    status_code = 503

    def __init__(self, store: str, detail: str | None = None):
        self.store = store
        super().__init__(detail or f"{store} store unavailable")


class AuthenticationError(GuardException):
    """Raised when admin authentication fails.

    Maps to HTTP 401 Unauthorized.
    """
    status_code = 401

    def __init__(self, detail: str = "Invalid or missing admin token"):
        self.detail = detail
        super().__init__(detail)


class NotFoundError(GuardException):
    """Raised when a write targets a record that no longer exists.

    Maps to HTTP 404 Not Found.
    """
    status_code = 404

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found")
