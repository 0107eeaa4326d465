"""
AuditEvent: audit records persisted by the database sink.

Append-only, write-once. The engine never reads these back; they exist for
operators (GET /audit/events).

event values follow "<family>_<action>", e.g.:
  "emotional_intelligence_used"      context composed (features that fired)
  "emotional_intelligence_blocked"   crisis mode override
  "emotional_intelligence_fallback"  a sub-computation degraded
  "consent_granted"                  pattern reflection consent given

payload: JSON-encoded dict stored as Text.
"""
from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    event: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    subject: Mapped[str] = mapped_column(String(16), nullable=False)
    policy_version: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    trigger: Mapped[str] = mapped_column(String(32), nullable=False)
    payload: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON-encoded dict with context specific to each event",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
