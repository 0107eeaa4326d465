"""
Pattern reflection schemas.

GET  /patterns/context   → PatternContextResponse
POST /patterns/consent   → ConsentUpdateRequest   → ConsentStatusResponse
POST /patterns/classify  → ClassifyRequest        → ClassifyResponse
"""
from __future__ import annotations

from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.services.audit_log import Trigger


class PatternSummaryResponse(BaseModel):
    common_heavy_days: list[str] = Field(default_factory=list)
    preferred_time: Optional[str] = Field(default=None, description='"morning" | "afternoon" | "evening"')
    most_used_activity: Optional[str] = None
    notes: list[str] = Field(default_factory=list)


class PatternContextResponse(BaseModel):
    consent: str = Field(description='"undecided" | "yes" | "no"')
    can_offer_consent: bool
    pattern_summary: Optional[PatternSummaryResponse] = None


class ConsentUpdateRequest(BaseModel):
    user_id: Annotated[str, Field(min_length=1, max_length=64)]
    consent: str = Field(description='"yes" | "no" | "revoked"', examples=["yes"])
    method: str = Field(default="verbal", max_length=32, examples=["verbal", "settings"])
    trigger: Trigger = Trigger.consent_response


class ConsentStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    pattern_reflection_consent: str
    pattern_reflection_enabled_at: Optional[str] = None
    pattern_reflection_last_prompt_at: Optional[str] = None


class ClassifyRequest(BaseModel):
    text: Annotated[str, Field(max_length=2_000)]


class ClassifyResponse(BaseModel):
    classification: Literal["yes", "no", "unclear"]
    is_revoking: bool
