"""
Unit tests for domain exceptions and exception handler registration.

Tests cover:
- Status codes and error codes of every lifecycle error
- add_exception_handlers registration
- The JSON rendering of domain, validation, HTTP, breaker and unexpected errors
"""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from investment_engine.core.exceptions import (
    AccountTypeMismatch,
    AmountLocked,
    AppException,
    BusinessRuleViolation,
    ConflictException,
    DuplicateAccrual,
    ForbiddenException,
    InvalidEntryState,
    InvalidTransition,
    LockupNotExpired,
    NotFoundException,
    ValidationError,
    add_exception_handlers,
)
from investment_engine.models.investment import InvestmentStatus


class TestAppException:
    """Tests for the base AppException."""

    def test_attributes(self):
        exc = AppException(status_code=400, message="bad request", details={"key": "v"})
        assert exc.status_code == 400
        assert exc.message == "bad request"
        assert exc.details == {"key": "v"}
        assert str(exc) == "bad request"

    def test_not_found_message(self):
        exc = NotFoundException("Investment", 12)
        assert exc.status_code == 404
        assert exc.message == "Investment with id '12' not found"


class TestLifecycleErrors:
    @pytest.mark.parametrize(
        "exc, status_code, code",
        [
            (ConflictException("dup"), 409, "Conflict"),
            (ForbiddenException("no"), 403, "Forbidden"),
            (BusinessRuleViolation("rule"), 422, "BusinessRuleViolation"),
            (InvalidTransition(InvestmentStatus.DRAFT, InvestmentStatus.ACTIVE), 409, "InvalidTransition"),
            (AmountLocked("locked"), 409, "AmountLocked"),
            (AccountTypeMismatch("ira vs joint"), 422, "AccountTypeMismatch"),
            (LockupNotExpired("2025-01-01"), 409, "LockupNotExpired"),
            (InvalidEntryState("rejected"), 409, "InvalidEntryState"),
            (DuplicateAccrual(12), 409, "DuplicateAccrual"),
            (ValidationError("bad terms"), 422, "ValidationError"),
        ],
    )
    def test_status_and_code(self, exc, status_code, code):
        assert exc.status_code == status_code
        assert exc.code == code
        assert isinstance(exc, AppException)

    def test_invalid_transition_names_both_states(self):
        exc = InvalidTransition(InvestmentStatus.DRAFT, InvestmentStatus.ACTIVE)
        assert "'draft'" in exc.message
        assert "'active'" in exc.message
        assert exc.current == InvestmentStatus.DRAFT


class TestAddExceptionHandlers:
    """Tests that add_exception_handlers registers handlers on the FastAPI app."""

    def test_handlers_registered(self):
        from unittest.mock import MagicMock

        mock_app = MagicMock()
        mock_app.exception_handler = MagicMock(return_value=lambda fn: fn)
        add_exception_handlers(mock_app)
        # AppException, CircuitBreakerError, StarletteHTTPException,
        # RequestValidationError, Exception
        assert mock_app.exception_handler.call_count == 5


class TestExceptionHandlersIntegration:
    """Invoke the actual exception handlers to cover their response logic."""

    @pytest.mark.asyncio
    async def test_domain_error_carries_code_and_details(self):
        app = FastAPI()
        add_exception_handlers(app)

        @app.get("/terms")
        async def terms():
            raise ValidationError(
                "Minimum investment is $1,000",
                details=[{"field": "amount", "message": "Minimum investment is $1,000"}],
            )

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            resp = await client.get("/terms")
        assert resp.status_code == 422
        body = resp.json()
        assert body["code"] == "ValidationError"
        assert body["details"][0]["field"] == "amount"

    @pytest.mark.asyncio
    async def test_circuit_breaker_handler_returns_503(self):
        """CircuitBreakerError → 503 with Retry-After header."""
        from investment_engine.core.resilience import CircuitBreakerError

        app = FastAPI()
        add_exception_handlers(app)

        @app.get("/boom")
        async def boom():
            raise CircuitBreakerError(name="database", retry_after=10.0)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            resp = await client.get("/boom")
        assert resp.status_code == 503
        assert resp.headers["Retry-After"] == "11"
        body = resp.json()
        assert body["error"] is True
        assert body["code"] == "ServiceUnavailable"

    @pytest.mark.asyncio
    async def test_global_500_handler(self):
        """Unhandled exception → 500 with generic message."""
        # debug=False prevents Starlette's ServerErrorMiddleware from
        # re-raising the exception before our catch-all handler runs.
        app = FastAPI(debug=False)
        add_exception_handlers(app)

        @app.get("/crash")
        async def crash():
            raise RuntimeError("unexpected")

        async with AsyncClient(
            transport=ASGITransport(app=app, raise_app_exceptions=False),
            base_url="http://test",
        ) as client:
            resp = await client.get("/crash")
        assert resp.status_code == 500
        body = resp.json()
        assert body["code"] == "InternalError"
        assert "Internal Server Error" in body["message"]

    @pytest.mark.asyncio
    async def test_validation_handler_returns_422(self):
        """Pydantic validation error → 422 with field details."""
        from pydantic import BaseModel

        app = FastAPI()
        add_exception_handlers(app)

        class Body(BaseModel):
            name: str

        @app.post("/validate")
        async def validate(body: Body):
            return {"ok": True}

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            resp = await client.post("/validate", json={})
        assert resp.status_code == 422
        body = resp.json()
        assert body["error"] is True
        assert body["details"][0]["field"] == "body -> name"

    @pytest.mark.asyncio
    async def test_http_exception_handler(self):
        """StarletteHTTPException (e.g. 404 from unknown route) → proper JSON."""
        app = FastAPI()
        add_exception_handlers(app)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            resp = await client.get("/nonexistent")
        assert resp.status_code == 404
        body = resp.json()
        assert body["error"] is True
        assert body["code"] == "HTTPError"
