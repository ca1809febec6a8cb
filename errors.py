"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The handlers render every client
error in one JSON shape, ``{error, code, field?, details?}``, including
request-schema failures, which FastAPI would otherwise answer with its own
422 body.

Non-AppError exceptions bubble up as 500s (with Sentry reporting in production).
Storefront routes never let those escape; they degrade to a no-action response.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic.alias_generators import to_snake

from shared.logging import get_logger

log = get_logger(__name__)


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class ForbiddenError(AppError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


def _field_from_loc(loc: Sequence[Any]) -> Optional[str]:
    # ("body", "countryCodes", 0) -> "country_codes"
    names = [part for part in loc[1:] if isinstance(part, str)]
    return to_snake(names[0]) if names else None


def request_validation_error(exc: RequestValidationError) -> ValidationError:
    """Translate FastAPI's request-schema error into a ValidationError."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    return ValidationError(
        first.get("msg", "Invalid request"),
        field=_field_from_loc(first.get("loc", ())),
        details=[
            {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in errors
        ],
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error = request_validation_error(exc)
        log.info(
            "request_validation_failed",
            path=request.url.path,
            field=error.field,
        )
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry's FastAPI integration captures the exception before this runs
        log.error(
            "unhandled_exception",
            path=request.url.path,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
