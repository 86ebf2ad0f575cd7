"""
Global exception handlers for the FastAPI application.

Centralises error formatting so every error response follows a consistent
JSON structure::

    {
        "error": true,
        "code": "<stable machine-readable kind>",
        "message": "<human-readable description>"
    }

This module also defines the domain exceptions that the service layer raises
without importing FastAPI, keeping business logic framework-agnostic.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────────────────
# Domain exceptions  (raised by service layer, caught by handlers below)
# ────────────────────────────────────────────────────────────────────────────


class AppException(Exception):
    """Base exception for all application-level errors."""

    code = "APP_ERROR"

    def __init__(self, status_code: int, message: str, details: Any = None):
        self.status_code = status_code
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundException(AppException):
    """Resource missing or not owned by the caller (404).

    Ownership failures use the same message as a missing row so the API
    never reveals that another user's record exists.
    """

    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            status_code=404,
            message=f"{resource} with id '{identifier}' not found",
        )


class UnauthorizedException(AppException):
    """Caller identity missing or malformed (401)."""

    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(status_code=401, message=message)


class InvalidStateError(AppException):
    """Operation not allowed in the record's current state (409)."""

    code = "INVALID_STATE"

    def __init__(self, message: str):
        super().__init__(status_code=409, message=message)


class InvalidInputError(AppException):
    """Input failed a business validation rule (422)."""

    code = "INVALID_INPUT"

    def __init__(self, message: str, details: Any = None):
        super().__init__(status_code=422, message=message, details=details)


class NegativeBalanceError(AppException):
    """The operation would drive an investment balance below zero (422)."""

    code = "NEGATIVE_BALANCE"

    def __init__(self, message: str):
        super().__init__(status_code=422, message=message)


class ConflictException(AppException):
    """Concurrent modification or unique-constraint violation (409)."""

    code = "CONFLICT"

    def __init__(self, message: str):
        super().__init__(status_code=409, message=message)


# ────────────────────────────────────────────────────────────────────────────
# FastAPI exception handler registration
# ────────────────────────────────────────────────────────────────────────────


def add_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI application instance."""

    @app.exception_handler(AppException)
    async def app_exception_handler(
        request: Request, exc: AppException
    ) -> JSONResponse:
        """Handle domain-specific exceptions raised by the service layer."""
        content = {"error": True, "code": exc.code, "message": exc.message}
        if exc.details is not None:
            content["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle standard HTTP exceptions (e.g. 404 from path-not-found)."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": True, "code": "HTTP_ERROR", "message": exc.detail},
            headers=getattr(exc, "headers", None),
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
                "code": "VALIDATION_ERROR",
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
                "code": "INTERNAL_ERROR",
                "message": "Internal Server Error. Please contact support.",
            },
        )
