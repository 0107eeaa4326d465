"""
Custom exception hierarchy for the context service.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

The emotional context engine itself never raises these: its public
contract degrades to "no context". They exist for the HTTP surface
around it (signal recording, consent management).
"""
from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette import status


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class EngineException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class SubjectRequiredError(EngineException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "SUBJECT_REQUIRED"

    def __init__(self, fields: tuple[str, ...] = ("user_id", "device_id")):
        super().__init__(
            message=f"At least one of {', '.join(fields)} is required.",
            details={"fields": list(fields)},
        )


class InvalidConsentError(EngineException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_CONSENT"

    def __init__(self, consent: str):
        super().__init__(
            message=f"Unknown consent value '{consent}'.",
            details={"consent": consent, "allowed": ["yes", "no", "revoked"]},
        )


class ConsentUpdateError(EngineException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "CONSENT_UPDATE_FAILED"

    def __init__(self, subject: str):
        super().__init__(
            message="Consent could not be stored. Try again later.",
            details={"subject": subject},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def engine_exception_handler(request: Request, exc: EngineException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc not in ("body", "query")),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on {} {}: {}", request.method, request.url.path, type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
