"""
Custom exceptions and error handlers for consistent error responses.

Every ledger failure is a typed exception carrying a machine-readable
error code and structured details (offending field, current vs. expected
state). Handlers translate them into JSON bodies; no localized text is
produced here.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""
    
    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class LedgerValidationError(AppException):
    """Malformed or out-of-range input. Never retried."""
    
    def __init__(self, message: str, field: str = None, value: Any = None, details: Dict[str, Any] = None):
        payload = dict(details or {})
        if field is not None:
            payload.setdefault("field", field)
        if value is not None:
            payload.setdefault("value", str(value))
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_LEDGER",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=payload
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""
    
    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class InvalidTransitionError(AppException):
    """Illegal invoice or pending-entry state change."""
    
    def __init__(self, resource: str, current: str, requested: str, reason: str = None):
        details = {"resource": resource, "current": current, "requested": requested}
        if reason:
            details["reason"] = reason
        super().__init__(
            message=f"{resource} cannot move from {current} to {requested}",
            error_code="ERR_INVALID_TRANSITION",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class InvalidStateError(AppException):
    """Operation would leave an account in a state its policy forbids."""
    
    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_INVALID_STATE",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class ConflictError(AppException):
    """Lost the race on a concurrent balance update. Safe to retry with a fresh read."""
    
    def __init__(self, message: str = "Concurrent modification detected", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_CONFLICT",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class ExpiredError(AppException):
    """Pending entry is no longer live; the caller must resubmit."""
    
    def __init__(self, resource: str, resource_id: Any = None, expired_at: Any = None):
        super().__init__(
            message=f"{resource} has expired",
            error_code="ERR_EXPIRED",
            status_code=status.HTTP_410_GONE,
            details={
                "resource": resource,
                "id": resource_id,
                "expired_at": expired_at.isoformat() if expired_at is not None else None
            }
        )


class TenantContextError(AppException):
    """Raised when the caller did not supply a usable organization context."""
    
    def __init__(self, message: str = "Organization context missing or invalid"):
        super().__init__(
            message=message,
            error_code="ERR_TENANT_001",
            status_code=status.HTTP_400_BAD_REQUEST
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
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
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
                "errors": [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
                    for err in exc.errors()
                ]
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception", extra={"path": request.url.path})
    
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
