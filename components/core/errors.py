"""Error taxonomy shared by the ledger, the workflow engine and the API."""

from typing import Optional


class ServiceError(Exception):
    """Base class for errors with a known kind.

    Each subclass fixes the HTTP status and the machine readable code that
    the REST layer reports; ``message`` is meant for humans.
    """
    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


class ValidationError(ServiceError):
    """Malformed, missing or out-of-range input."""
    status_code = 400
    code = "validation_error"


class AuthenticationError(ServiceError):
    """Could not validate credentials."""
    status_code = 401
    code = "authentication_error"


class AuthorizationError(ServiceError):
    """Caller lacks the role or ownership required."""
    status_code = 403
    code = "authorization_error"


class NotFoundError(ServiceError):
    """Unknown id."""
    status_code = 404
    code = "not_found"


class ConflictError(ServiceError):
    """The operation conflicts with existing state."""
    status_code = 409
    code = "conflict"


class InvalidTransitionError(ServiceError):
    """The request is not in a state that allows this transition."""
    status_code = 409
    code = "invalid_transition"


class StoreTimeoutError(ServiceError):
    """The store did not answer in time."""
    status_code = 503
    code = "timeout"


class StoreUnavailableError(ServiceError):
    """The store is unavailable."""
    status_code = 503
    code = "store_unavailable"
