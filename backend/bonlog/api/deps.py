"""Shared API dependencies — single import point for all routers.

Re-exports database session, authentication and membership dependencies so
that router modules can import everything they need from one place::

    from bonlog.api.deps import get_db, get_current_user
"""

from fastapi import HTTPException, status

from bonlog.auth.dependencies import get_current_user, get_optional_user, require_admin
from bonlog.billing.dependencies import get_user_limits, require_schedule_access
from bonlog.billing.results import Err, ErrorCode
from bonlog.database import get_db

_ERROR_STATUS: dict[ErrorCode, int] = {
    ErrorCode.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ALREADY_PREMIUM: status.HTTP_409_CONFLICT,
    ErrorCode.NOT_PREMIUM: status.HTTP_400_BAD_REQUEST,
    ErrorCode.PRICE_NOT_CONFIGURED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.NO_CUSTOMER: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NO_SUBSCRIPTION: status.HTTP_404_NOT_FOUND,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorCode.PROVIDER_ERROR: status.HTTP_502_BAD_GATEWAY,
}


def http_error(error: Err) -> HTTPException:
    """Translate a service ``Err`` into an HTTP error with a structured body."""
    return HTTPException(
        status_code=_ERROR_STATUS[error.code],
        detail={"error": error.message, "code": error.code.value},
    )


__all__ = [
    "get_db",
    "get_current_user",
    "get_optional_user",
    "require_admin",
    "get_user_limits",
    "require_schedule_access",
    "http_error",
]
