"""
Error envelope shared by every router, used for OpenAPI `responses=`.

    {"code": "INVALID_CONSENT", "message": "...", "details": {...}}

Validation failures list per-field entries (`field`, `message`, `type`)
under details.errors.
"""
from typing import Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    code: str = Field(description="Machine-readable error code.", examples=["SUBJECT_REQUIRED"])
    message: str
    details: Optional[dict[str, Any]] = None
