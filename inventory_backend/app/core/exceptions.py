"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
Ledger errors carry the partition / entry context in `details` so callers
can surface them verbatim.
"""

import logging
from datetime import datetime
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict, Optional

logger = logging.getLogger("inventory_ledger")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


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


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class ValidationError(AppException):
    """Raised before any persistence when a movement request is malformed."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_LEDGER_VALIDATION",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details
        )


class LockedPeriodError(AppException):
    """Raised when a mutation falls at or before an existing checkpoint."""

    def __init__(
        self,
        product_id: int,
        location_code: str,
        lock_boundary: datetime,
        lock_source_ref: Optional[str] = None
    ):
        self.product_id = product_id
        self.location_code = location_code
        self.lock_boundary = lock_boundary
        self.lock_source_ref = lock_source_ref
        super().__init__(
            message=(
                f"Period is locked by {lock_source_ref or 'checkpoint'} "
                f"starting from {lock_boundary.isoformat()}"
            ),
            error_code="ERR_LEDGER_LOCKED",
            status_code=status.HTTP_409_CONFLICT,
            details={
                "product_id": product_id,
                "location_code": location_code,
                "lock_boundary": lock_boundary.isoformat(),
                "lock_source_ref": lock_source_ref,
            }
        )


class ProtectedSourceError(AppException):
    """Raised on a direct edit/delete of an entry owned by another workflow."""

    def __init__(self, entry_id: int, source_type: str):
        self.entry_id = entry_id
        self.source_type = source_type
        super().__init__(
            message=f"Ledger entry {entry_id} is protected ({source_type}) and cannot be changed directly",
            error_code="ERR_LEDGER_PROTECTED",
            status_code=status.HTTP_409_CONFLICT,
            details={"entry_id": entry_id, "source_type": source_type}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": exc.errors()
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s: %s", type(exc).__name__, exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
