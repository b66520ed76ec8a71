"""
Domain exceptions and global exception handlers for the FastAPI application.

Centralises error formatting so every error response follows a consistent
JSON structure::

    {
        "error": true,
        "code": "<error kind, e.g. LockupNotExpired>",
        "message": "<human-readable description>"
    }

The engine and service layers raise the typed exceptions below without
importing FastAPI, keeping business logic framework-agnostic.  Each business
rule has its own class (and ``code``) so callers can render a specific
message instead of a generic failure.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────────────────
# Base exceptions
# ────────────────────────────────────────────────────────────────────────────


class AppException(Exception):
    """Base exception for all application-level errors."""

    code = "AppError"

    def __init__(self, status_code: int, message: str, details: Any = None):
        self.status_code = status_code
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundException(AppException):
    """Resource not found (404)."""

    code = "NotFound"

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            status_code=404,
            message=f"{resource} with id '{identifier}' not found",
        )


class ConflictException(AppException):
    """Resource already exists / unique-constraint violation (409)."""

    code = "Conflict"

    def __init__(self, message: str):
        super().__init__(status_code=409, message=message)


class ForbiddenException(AppException):
    """The calling actor is not allowed to perform the action (403)."""

    code = "Forbidden"

    def __init__(self, message: str):
        super().__init__(status_code=403, message=message)


class BusinessRuleViolation(AppException):
    """Business rule was violated (422)."""

    code = "BusinessRuleViolation"

    def __init__(self, message: str, status_code: int = 422, details: Any = None):
        super().__init__(status_code=status_code, message=message, details=details)


# ────────────────────────────────────────────────────────────────────────────
# Lifecycle engine errors
# ────────────────────────────────────────────────────────────────────────────


class InvalidTransition(BusinessRuleViolation):
    """The requested status is not reachable from the current status."""

    code = "InvalidTransition"

    def __init__(self, current: Any, target: Any):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot transition investment from '{_value(current)}' to '{_value(target)}'",
            status_code=409,
        )


class AmountLocked(BusinessRuleViolation):
    """The amount of a submitted or active investment cannot change."""

    code = "AmountLocked"

    def __init__(self, message: str):
        super().__init__(message, status_code=409)


class AccountTypeMismatch(BusinessRuleViolation):
    """The investment's account type does not match its owner's."""

    code = "AccountTypeMismatch"

    def __init__(self, message: str):
        super().__init__(message, status_code=422)


class LockupNotExpired(BusinessRuleViolation):
    """A withdrawal was settled inside lockup without an override."""

    code = "LockupNotExpired"

    def __init__(self, lockup_end_date: Any):
        self.lockup_end_date = lockup_end_date
        super().__init__(
            f"Lockup period has not expired (ends {lockup_end_date}); "
            f"an authorized override is required",
            status_code=409,
        )


class InvalidEntryState(BusinessRuleViolation):
    """A ledger entry or withdrawal request is not in a state that allows the action."""

    code = "InvalidEntryState"

    def __init__(self, message: str):
        super().__init__(message, status_code=409)


class DuplicateAccrual(BusinessRuleViolation):
    """The persistence layer saw a second entry for an existing reconciliation key."""

    code = "DuplicateAccrual"

    def __init__(self, investment_id: Any):
        self.investment_id = investment_id
        super().__init__(
            f"Ledger for investment {investment_id} was reconciled concurrently; "
            f"no entries were written",
            status_code=409,
        )


class ValidationError(BusinessRuleViolation):
    """Investment terms are invalid (amount, increment, account/frequency combination)."""

    code = "ValidationError"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message, status_code=422, details=details)


def _value(status: Any) -> Any:
    return getattr(status, "value", status)


# ────────────────────────────────────────────────────────────────────────────
# FastAPI exception handler registration
# ────────────────────────────────────────────────────────────────────────────


def add_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI application instance."""
    from investment_engine.core.resilience import CircuitBreakerError


    @app.exception_handler(AppException)
    async def app_exception_handler(
        request: Request, exc: AppException
    ) -> JSONResponse:
        """Handle domain-specific exceptions raised by the engine and services."""
        content = {"error": True, "code": exc.code, "message": exc.message}
        if exc.details is not None:
            content["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(CircuitBreakerError)
    async def circuit_open_handler(
        request: Request, exc: CircuitBreakerError
    ) -> JSONResponse:
        """Database breaker is open: tell the caller when to come back."""
        return JSONResponse(
            status_code=503,
            headers={"Retry-After": str(int(exc.retry_after) + 1)},
            content={
                "error": True,
                "code": "ServiceUnavailable",
                "message": "Database temporarily unavailable. Please retry shortly.",
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle standard HTTP exceptions (e.g. 404 from path-not-found)."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": True, "code": "HTTPError", "message": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """
        Handle Pydantic / FastAPI request-validation errors.

        Returns a 422 with a concise list of validation issues so the caller
        knows exactly which fields failed and why.
        """
        errors = []
        for err in exc.errors():
            loc = " -> ".join(str(part) for part in err["loc"])
            errors.append({"field": loc, "message": err["msg"]})
        return JSONResponse(
            status_code=422,
            content={
                "error": True,
                "code": "ValidationError",
                "message": "Validation failed",
                "details": errors,
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all for unexpected exceptions."""
        logger.exception(
            "Unhandled exception on %s %s", request.method, request.url.path
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": True,
                "code": "InternalError",
                "message": "Internal Server Error. Please contact support.",
            },
        )
