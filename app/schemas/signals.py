"""
Signal recording schemas.

POST /signals/mood      → MoodCheckinRequest     → MoodCheckinResponse
POST /signals/activity  → ActivityRequest        → ActivityResponse
POST /signals/memory    → MemoryTopicRequest     → MemoryTopicResponse
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.long_term_memory import MemoryKind


def _strip_or_none(v):
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


class _SubjectFields(BaseModel):
    user_id: Optional[str] = Field(default=None, max_length=64, examples=["acct_8f3e2c91d4"])
    device_id: Optional[str] = Field(default=None, max_length=64, examples=["dev_2b7c"])

    @field_validator("user_id", "device_id", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return _strip_or_none(v)


class MoodCheckinRequest(_SubjectFields):
    """One mood self-report."""
    rating: Annotated[int, Field(ge=1, le=10, description="Mood rating, 1 (low) – 10 (high).")]
    recorded_at: Optional[datetime] = Field(
        default=None,
        description="When the check-in happened. Defaults to now (UTC).",
    )


class MoodCheckinResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    rating: int
    recorded_at: str


class ActivityRequest(_SubjectFields):
    """A completed guided activity."""
    activity_type: Annotated[str, Field(
        min_length=1, max_length=64, examples=["breathing", "grounding"],
    )]
    completed_at: Optional[datetime] = Field(default=None, description="Defaults to now (UTC).")


class ActivityResponse(BaseModel):
    id: int
    activity_type: str
    completed_at: str


class MemoryTopicRequest(BaseModel):
    """A topic remembered by the long-term memory service."""
    model_config = ConfigDict(use_enum_values=True)

    user_id: Annotated[str, Field(min_length=1, max_length=64)]
    kind: MemoryKind = Field(examples=["goals"])
    content: Annotated[str, Field(min_length=1, max_length=2_000)]
    is_active: bool = True
    updated_at: Optional[datetime] = Field(default=None, description="Defaults to now (UTC).")

    @field_validator("content", mode="before")
    @classmethod
    def strip_and_check_empty(cls, v: str) -> str:
        stripped = v.strip() if isinstance(v, str) else v
        if not stripped:
            raise ValueError("content must not be empty after stripping whitespace")
        return stripped


class MemoryTopicResponse(BaseModel):
    id: int
    kind: str
    content: str
    is_active: bool
    updated_at: str
