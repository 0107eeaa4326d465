"""
Signal store: read access to the user's historical signals, plus the small
write helpers used by the /signals endpoints.

Signals
-------
  mood_checkins        rating time series        (check-in flow)
  activity_logs        completed activities      (activity flow)
  long_term_memories   remembered topics         (memory service)

The engine only reads. It talks to a SignalStore, never to the ORM, so the
analyzers can be exercised with an in-memory fake.

Public API
----------
SqlSignalStore(db).ratings_since(subject_key, since)            -> list[RatingPoint]
SqlSignalStore(db).latest_interaction(subject_key)              -> datetime | None
SqlSignalStore(db).memory_topics(subject_key, kinds, since, n)  -> list[MemoryTopic]
record_mood_checkin / record_activity / record_memory_topic     -> ORM row (commits)
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional, Protocol

from sqlalchemy import or_, select, union_all
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.activity_log import ActivityLog
from app.models.long_term_memory import LongTermMemory
from app.models.mood_checkin import MoodCheckin


# ---------------------------------------------------------------------------
# Read models (plain dataclasses: no ORM leaks into the engine)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RatingPoint:
    rating: int
    recorded_at: datetime


@dataclass(frozen=True)
class MemoryTopic:
    kind: str
    content: str
    updated_at: datetime


class SignalStore(Protocol):
    def ratings_since(self, subject_key: str, since: datetime) -> list[RatingPoint]: ...

    def latest_interaction(self, subject_key: str) -> Optional[datetime]: ...

    def memory_topics(
        self,
        subject_key: str,
        kinds: Iterable[str],
        since: datetime,
        limit: int,
    ) -> list[MemoryTopic]: ...


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def as_utc(ts: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat those as UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _subject_filter(model, subject_key: str):
    return or_(model.user_id == subject_key, model.device_id == subject_key)


# ---------------------------------------------------------------------------
# SQLAlchemy implementation
# ---------------------------------------------------------------------------

class SqlSignalStore:
    """
    SignalStore over the request's Session. One round-trip per call.

    A failed query rolls the session back before re-raising, so the next
    analyzer sharing this session starts from a clean transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def ratings_since(self, subject_key: str, since: datetime) -> list[RatingPoint]:
        try:
            rows = (
                self.db.query(MoodCheckin.mood_rating, MoodCheckin.created_at)
                .filter(_subject_filter(MoodCheckin, subject_key))
                .filter(MoodCheckin.created_at >= since)
                .order_by(MoodCheckin.created_at.asc(), MoodCheckin.id.asc())
                .all()
            )
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return [RatingPoint(rating=r.mood_rating, recorded_at=as_utc(r.created_at)) for r in rows]

    def latest_interaction(self, subject_key: str) -> Optional[datetime]:
        combined = union_all(
            select(MoodCheckin.created_at.label("last_time"))
            .where(_subject_filter(MoodCheckin, subject_key)),
            select(ActivityLog.completed_at.label("last_time"))
            .where(_subject_filter(ActivityLog, subject_key)),
        ).subquery()
        stmt = select(combined.c.last_time).order_by(combined.c.last_time.desc()).limit(1)
        try:
            last = self.db.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return as_utc(last) if last is not None else None

    def memory_topics(
        self,
        subject_key: str,
        kinds: Iterable[str],
        since: datetime,
        limit: int,
    ) -> list[MemoryTopic]:
        try:
            rows = (
                self.db.query(LongTermMemory.kind, LongTermMemory.content, LongTermMemory.updated_at)
                .filter(
                    LongTermMemory.user_id == subject_key,
                    LongTermMemory.is_active.is_(True),
                    LongTermMemory.kind.in_(list(kinds)),
                    LongTermMemory.updated_at >= since,
                )
                .order_by(LongTermMemory.updated_at.desc(), LongTermMemory.id.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return [
            MemoryTopic(kind=r.kind, content=r.content, updated_at=as_utc(r.updated_at))
            for r in rows
        ]


# ---------------------------------------------------------------------------
# Writes (used by the /signals router, not by the engine)
# ---------------------------------------------------------------------------

def record_mood_checkin(
    db: Session,
    rating: int,
    user_id: Optional[str] = None,
    device_id: Optional[str] = None,
    recorded_at: Optional[datetime] = None,
) -> MoodCheckin:
    row = MoodCheckin(
        user_id=user_id,
        device_id=device_id,
        mood_rating=rating,
        created_at=recorded_at or utcnow(),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def record_activity(
    db: Session,
    activity_type: str,
    user_id: Optional[str] = None,
    device_id: Optional[str] = None,
    completed_at: Optional[datetime] = None,
) -> ActivityLog:
    row = ActivityLog(
        user_id=user_id,
        device_id=device_id,
        activity_type=activity_type,
        completed_at=completed_at or utcnow(),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def record_memory_topic(
    db: Session,
    user_id: str,
    kind: str,
    content: str,
    is_active: bool = True,
    updated_at: Optional[datetime] = None,
) -> LongTermMemory:
    row = LongTermMemory(
        user_id=user_id,
        kind=kind,
        content=content,
        is_active=is_active,
        updated_at=updated_at or utcnow(),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row
