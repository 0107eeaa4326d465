"""
Emotional context schemas.

POST /context/emotional → EmotionalContextRequest → EmotionalContextResponse
"""
from typing import Optional

from pydantic import BaseModel, Field

from app.services.audit_log import Trigger


class EmotionalContextRequest(BaseModel):
    user_id: Optional[str] = Field(default=None, max_length=64)
    device_id: Optional[str] = Field(default=None, max_length=64)
    effective_user_id: Optional[str] = Field(
        default=None,
        max_length=64,
        description="Fallback handle when neither user_id nor device_id is known.",
    )
    is_crisis_mode: bool = Field(
        default=False,
        description="Safety override. When true no context is built.",
    )
    trigger: Trigger = Trigger.user_message


class EmotionalContextResponse(BaseModel):
    context: Optional[str] = Field(
        default=None,
        description="Advisory guidance text for the reply generator, or null for no context.",
    )
