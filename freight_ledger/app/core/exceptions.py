"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers. Every
error body carries ``success: false`` and an ``error`` message so clients
of the ledger endpoints can branch on a single flag.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from typing import Any, Dict

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "An internal server error occurred"


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class UserNotFoundError(ResourceNotFoundError):
    """Raised when a ledger participant does not resolve to a user record."""

    def __init__(self, user_id: Any = None):
        super().__init__("User", user_id)


class OrderNotFoundError(ResourceNotFoundError):
    """Raised when the order behind a ledger operation does not exist."""

    def __init__(self, order_id: Any = None):
        super().__init__("Order", order_id)


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class LedgerValidationError(AppException):
    """Raised for missing or invalid amounts, order ids, ratios or transaction types."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class OrderStateError(AppException):
    """Raised when an order action is not allowed from the order's current status."""

    def __init__(self, action: str, current_status: str):
        super().__init__(
            message=f"Order cannot be {action} from status '{current_status}'",
            error_code="ERR_ORDER_STATE_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"status": current_status}
        )


class TransactionCreationFailed(AppException):
    """Raised when the atomic dual write is rejected by the database."""

    def __init__(self, cause: str):
        super().__init__(
            message="Failed to create transaction",
            error_code="ERR_LEDGER_001",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"cause": cause}
        )


class RefundCreationFailed(AppException):
    """Raised when a refund pair could not be written."""

    def __init__(self, cause: str):
        super().__init__(
            message="Failed to create refund transaction",
            error_code="ERR_LEDGER_002",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"cause": cause}
        )


class LedgerImmutableError(AppException):
    """Raised when code attempts to modify or delete a written ledger entry."""

    def __init__(self, transaction_id: str = None):
        super().__init__(
            message="Ledger entries are immutable",
            error_code="ERR_LEDGER_003",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"transaction_id": transaction_id}
        )


class CarrierUnavailableError(AppException):
    """Raised when the carrier API fails or its circuit is open."""

    def __init__(self, message: str = "Carrier service unavailable", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_CARRIER_001",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details=details
        )


def _error_body(message: str, error_code: str, details: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "success": False,
        "error": message,
        "error_code": error_code,
        "details": details,
    }


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    if exc.status_code >= 500:
        # Operators get the underlying cause; clients get a generic failure.
        logger.error(
            "%s on %s %s: %s",
            exc.error_code, request.method, request.url.path, exc.details.get("cause", exc.message)
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.message, exc.error_code, {})
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, exc.error_code, exc.details)
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail), error_code, {}),
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body("Validation error", "ERR_VALIDATION", {"errors": jsonable_encoder(exc.errors())})
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(GENERIC_FAILURE_MESSAGE, "ERR_INTERNAL_SERVER", {})
    )
