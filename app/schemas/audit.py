"""
Audit event response schemas.

GET /audit/events → AuditEventListResponse
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class AuditEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event: str = Field(description='e.g. "emotional_intelligence_used", "consent_granted"')
    timestamp: str = Field(description="ISO timestamp at which the decision was taken.")
    subject: str = Field(description="Truncated subject key.")
    policy_version: str
    trigger: str
    payload: Optional[dict[str, Any]] = Field(
        default=None,
        description="Context specific to each event.",
    )


class AuditEventListResponse(BaseModel):
    total: int
    items: list[AuditEventResponse]
