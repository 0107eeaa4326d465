"""
Signals router.

POST /signals/mood       record a mood check-in
POST /signals/activity   record a completed activity
POST /signals/memory     record a long-term memory topic
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.errors import SubjectRequiredError
from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.schemas.signals import (
    ActivityRequest,
    ActivityResponse,
    MemoryTopicRequest,
    MemoryTopicResponse,
    MoodCheckinRequest,
    MoodCheckinResponse,
)
from app.services.signals import record_activity, record_memory_topic, record_mood_checkin

router = APIRouter(prefix="/signals", tags=["signals"])


@router.post(
    "/mood",
    response_model=MoodCheckinResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a mood check-in",
    responses={
        201: {"description": "Check-in stored."},
        422: {"model": ErrorResponse, "description": "Missing subject or rating outside 1–10."},
    },
)
def create_mood_checkin(payload: MoodCheckinRequest, db: Session = Depends(get_db)):
    if not payload.user_id and not payload.device_id:
        raise SubjectRequiredError()
    row = record_mood_checkin(
        db,
        rating=payload.rating,
        user_id=payload.user_id,
        device_id=payload.device_id,
        recorded_at=payload.recorded_at,
    )
    return MoodCheckinResponse(
        id=row.id,
        rating=row.mood_rating,
        recorded_at=row.created_at.isoformat(),
    )


@router.post(
    "/activity",
    response_model=ActivityResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a completed activity",
    responses={422: {"model": ErrorResponse, "description": "Missing subject or empty activity_type."}},
)
def create_activity(payload: ActivityRequest, db: Session = Depends(get_db)):
    if not payload.user_id and not payload.device_id:
        raise SubjectRequiredError()
    row = record_activity(
        db,
        activity_type=payload.activity_type,
        user_id=payload.user_id,
        device_id=payload.device_id,
        completed_at=payload.completed_at,
    )
    return ActivityResponse(
        id=row.id,
        activity_type=row.activity_type,
        completed_at=row.completed_at.isoformat(),
    )


@router.post(
    "/memory",
    response_model=MemoryTopicResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a long-term memory topic",
)
def create_memory_topic(payload: MemoryTopicRequest, db: Session = Depends(get_db)):
    row = record_memory_topic(
        db,
        user_id=payload.user_id,
        kind=payload.kind,
        content=payload.content,
        is_active=payload.is_active,
        updated_at=payload.updated_at,
    )
    return MemoryTopicResponse(
        id=row.id,
        kind=row.kind,
        content=row.content,
        is_active=row.is_active,
        updated_at=row.updated_at.isoformat(),
    )
