"""Service error taxonomy and its mapping to HTTP responses."""

from enum import Enum

from pydantic import BaseModel


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions.

    Codes are used in logs only; API responses carry the HTTP status and a message.
    """

    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_INVALID_CREDENTIALS = "ERR_INVALID_CREDENTIALS"
    ERR_AUTHENTICATION_FAILED = "ERR_AUTHENTICATION_FAILED"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_CONFLICT = "ERR_CONFLICT"
    ERR_RATE_LIMIT_EXCEEDED = "ERR_RATE_LIMIT_EXCEEDED"
    ERR_STORAGE = "ERR_STORAGE"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ServiceError(Exception):
    """Base class for business-rule failures raised by the service layer."""

    status_code: int = 500
    code: str = ErrorCode.ERR_UNKNOWN
    severity: ErrorSeverity = ErrorSeverity.MEDIUM

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationFailedError(ServiceError):
    """Malformed or rule-violating input."""

    status_code = 400
    code = ErrorCode.ERR_VALIDATION
    severity = ErrorSeverity.LOW


class InvalidCredentialsError(ServiceError):
    """Email/password pair does not match."""

    status_code = 400
    code = ErrorCode.ERR_INVALID_CREDENTIALS
    severity = ErrorSeverity.LOW

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class AuthenticationError(ServiceError):
    """Missing, malformed or expired bearer credential."""

    status_code = 401
    code = ErrorCode.ERR_AUTHENTICATION_FAILED
    severity = ErrorSeverity.MEDIUM

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class NotFoundError(ServiceError):
    """Referenced resource does not exist or is not owned by the requester."""

    status_code = 404
    code = ErrorCode.ERR_NOT_FOUND
    severity = ErrorSeverity.LOW


class ConflictError(ServiceError):
    """Operation conflicts with the current state (duplicates, repeated transitions)."""

    status_code = 409
    code = ErrorCode.ERR_CONFLICT
    severity = ErrorSeverity.LOW


class RateLimitExceededError(ServiceError):
    """Too many requests within the rate limit window."""

    status_code = 429
    code = ErrorCode.ERR_RATE_LIMIT_EXCEEDED
    severity = ErrorSeverity.MEDIUM

    def __init__(self, message: str, *, retry_after: int, limit: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after
        self.limit = limit


class ErrorResponse(BaseModel):
    """JSON body returned for every failed request."""

    success: bool = False
    message: str


def classify_error_with_response(exception: Exception) -> tuple[int, ErrorResponse]:
    """Map an exception to an HTTP status and a client-safe response body.

    Service errors keep their message; anything else is reported generically so
    that internals never leak to the client.

    Args:
        exception: The exception raised while handling a request

    Returns:
        Tuple of (status_code, ErrorResponse)
    """
    if isinstance(exception, ServiceError):
        return exception.status_code, ErrorResponse(message=exception.message)

    return 500, ErrorResponse(message="Internal server error")
