"""Error taxonomy for payment lifecycle operations.

Every error carries a machine-readable code and the HTTP status the API
layer responds with. A failed signature check is not an error: it is a
normal outcome returned by ``verify_payment``.
"""

from typing import Any, Dict

from fastapi import HTTPException, status


class AppError(Exception):
    """Base application error."""

    def __init__(self, message: str, code: str, http_status: int = 400):
        """Initialize error."""
        self.message = message
        self.code = code
        self.http_status = http_status
        super().__init__(message)


class NotFoundError(AppError):
    """Referenced payment or tenant does not exist."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, "not_found", status.HTTP_404_NOT_FOUND)


class InvalidStateError(AppError):
    """Payment status does not permit the requested operation."""

    def __init__(self, message: str = "Operation not allowed in current state", code: str = "invalid_state"):
        super().__init__(message, code, status.HTTP_409_CONFLICT)


class DuplicateObligationError(InvalidStateError):
    """A persisted obligation already exists for the tenant, type and month."""

    def __init__(self, message: str = "Obligation already exists for this period"):
        super().__init__(message, "duplicate_obligation")


class MismatchError(AppError):
    """Supplied identifiers do not match the stored payment."""

    def __init__(self, message: str = "Identifier mismatch"):
        super().__init__(message, "mismatch", status.HTTP_409_CONFLICT)


class GatewayUnavailableError(AppError):
    """The payment gateway could not complete a remote call."""

    def __init__(self, message: str = "Payment gateway unavailable"):
        super().__init__(message, "gateway_unavailable", status.HTTP_503_SERVICE_UNAVAILABLE)


class InvalidFilterError(AppError):
    """Payment filter values are not recognised."""

    def __init__(self, message: str = "Invalid payment filter"):
        super().__init__(message, "invalid_filter", status.HTTP_400_BAD_REQUEST)


def error_response(error: AppError) -> Dict[str, Any]:
    """Create a standardized error response."""
    return {
        "error": {
            "code": error.code,
            "message": error.message,
        }
    }


def raise_app_error(error: AppError) -> None:
    """Raise an HTTPException from an AppError."""
    raise HTTPException(
        status_code=error.http_status,
        detail=error_response(error),
    ) from error


__all__ = [
    "AppError",
    "DuplicateObligationError",
    "GatewayUnavailableError",
    "InvalidFilterError",
    "InvalidStateError",
    "MismatchError",
    "NotFoundError",
    "error_response",
    "raise_app_error",
]
