"""
Audit log for pattern reflections and emotional intelligence.

Every decision the engine takes (included / blocked / skipped / degraded)
produces exactly one AuditRecord, written synchronously to an injected sink.
Records are never read back by the engine.

Record shape
------------
  event           "<family>_<action>", see AuditEventKind
  timestamp       ISO-8601 UTC
  subject         first 8 chars of the subject key + "..." (never the full key)
  policy_version  version of the policy family that produced the decision
  trigger         what caused the check (Trigger)
  payload         event-specific dict

Fallback records carry the failing component name and the error *message*
only. Exception objects and tracebacks never reach a sink.

Sinks
-----
  LogAuditSink       one JSON line per record via loguru (default)
  DatabaseAuditSink  one audit_events row per record, own session
  MemoryAuditSink    keeps records in a list (tests, debugging)
  FanOutAuditSink    writes to several sinks
"""
from __future__ import annotations

import enum
import json
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol

from loguru import logger
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.policy import (
    DEFAULT_CONSENT_POLICY,
    DEFAULT_EI_POLICY,
    DEFAULT_PATTERN_POLICY,
    ConsentPolicy,
    EmotionalIntelligencePolicy,
    PatternReflectionPolicy,
)
from app.models.audit_event import AuditEvent

LOG_PREFIX = "[PATTERN AUDIT]"
SUBJECT_PREFIX_LEN = 8


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

class Trigger(str, enum.Enum):
    user_message = "user_message"
    session_start = "session_start"
    consent_response = "consent_response"
    scheduled = "scheduled"
    manual = "manual"


class AuditEventKind:
    CONSENT_OFFERED = "consent_offered"
    CONSENT_GRANTED = "consent_granted"
    CONSENT_DENIED = "consent_denied"
    CONSENT_REVOKED = "consent_revoked"
    CONSENT_CHECK_SKIPPED = "consent_check_skipped"

    PATTERN_REFLECTION_INCLUDED = "pattern_reflection_included"
    PATTERN_REFLECTION_BLOCKED = "pattern_reflection_blocked"
    PATTERN_FEATURES_SKIPPED = "pattern_features_skipped"
    PATTERN_FALLBACK = "pattern_fallback"

    EI_USED = "emotional_intelligence_used"
    EI_BLOCKED = "emotional_intelligence_blocked"
    EI_SKIPPED = "emotional_intelligence_skipped"
    EI_FALLBACK = "emotional_intelligence_fallback"


# Written at WARNING so operators see degradations and safety overrides.
_WARNING_EVENTS = frozenset({
    AuditEventKind.PATTERN_FALLBACK,
    AuditEventKind.EI_FALLBACK,
    AuditEventKind.EI_BLOCKED,
    AuditEventKind.PATTERN_REFLECTION_BLOCKED,
})


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AuditRecord:
    event: str
    timestamp: str
    subject: str
    policy_version: str
    trigger: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str, ensure_ascii=False)


def truncate_subject(subject: Optional[str]) -> str:
    """First SUBJECT_PREFIX_LEN chars plus an ellipsis; "unknown" when missing."""
    if not subject:
        return "unknown"
    return f"{str(subject)[:SUBJECT_PREFIX_LEN]}..."


def error_message(error: BaseException | str | None) -> str:
    """Stringify an error for a record. Never returns the object itself."""
    if error is None:
        return "unknown error"
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return str(error)


def enum_value(v) -> str:
    """Bare string of a str-enum member or a plain string."""
    return v.value if hasattr(v, "value") else str(v)


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------

class AuditSink(Protocol):
    def emit(self, record: AuditRecord) -> None: ...


class LogAuditSink:
    """One JSON line per record through loguru."""

    def emit(self, record: AuditRecord) -> None:
        level = "WARNING" if record.event in _WARNING_EVENTS else "INFO"
        logger.log(level, "{} {}", LOG_PREFIX, record.to_json())


class MemoryAuditSink:
    def __init__(self) -> None:
        self.records: list[AuditRecord] = []
        self._lock = threading.Lock()

    def emit(self, record: AuditRecord) -> None:
        with self._lock:
            self.records.append(record)

    def events(self, kind: Optional[str] = None) -> list[AuditRecord]:
        with self._lock:
            if kind is None:
                return list(self.records)
            return [r for r in self.records if r.event == kind]

    def clear(self) -> None:
        with self._lock:
            self.records.clear()


class DatabaseAuditSink:
    """
    Persist each record as one audit_events row.

    Uses its own short-lived session per record so an audit write never
    joins (or rolls back) the caller's transaction.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def emit(self, record: AuditRecord) -> None:
        db = self._session_factory()
        try:
            db.add(AuditEvent(
                event=record.event,
                occurred_at=datetime.fromisoformat(record.timestamp),
                subject=record.subject,
                policy_version=record.policy_version,
                trigger=record.trigger,
                payload=json.dumps(record.payload, default=str, ensure_ascii=False),
            ))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


class FanOutAuditSink:
    def __init__(self, *sinks: AuditSink):
        self.sinks = list(sinks)

    def emit(self, record: AuditRecord) -> None:
        for sink in self.sinks:
            sink.emit(record)


# ---------------------------------------------------------------------------
# AuditLog: one emit method per event kind
# ---------------------------------------------------------------------------

class AuditLog:
    """
    Emit-only audit API. Each method builds a record, writes it to the sink
    and returns it so tests can inspect what was written.

    A failing sink is reported through loguru and otherwise ignored: audit
    is a side channel and must never break the request it describes.
    """

    def __init__(
        self,
        sink: Optional[AuditSink] = None,
        ei_policy: EmotionalIntelligencePolicy = DEFAULT_EI_POLICY,
        consent_policy: ConsentPolicy = DEFAULT_CONSENT_POLICY,
        pattern_policy: PatternReflectionPolicy = DEFAULT_PATTERN_POLICY,
        clock: Callable[[], datetime] = lambda: datetime.now(tz=timezone.utc),
    ):
        self.sink = sink if sink is not None else LogAuditSink()
        self.ei_policy = ei_policy
        self.consent_policy = consent_policy
        self.pattern_policy = pattern_policy
        self._clock = clock

    def _write(
        self,
        event: str,
        subject: Optional[str],
        policy_version: str,
        trigger: Trigger | str,
        payload: dict[str, Any],
    ) -> AuditRecord:
        record = AuditRecord(
            event=event,
            timestamp=self._clock().isoformat(),
            subject=truncate_subject(subject),
            policy_version=policy_version,
            trigger=enum_value(trigger),
            payload=payload,
        )
        try:
            self.sink.emit(record)
        except Exception as exc:
            logger.warning(
                "{} sink {} failed for {}: {}",
                LOG_PREFIX, type(self.sink).__name__, event, error_message(exc),
            )
        return record

    # --- consent -----------------------------------------------------------

    def consent_offered(self, subject, stats: dict, trigger=Trigger.user_message) -> AuditRecord:
        return self._write(
            AuditEventKind.CONSENT_OFFERED, subject, self.consent_policy.version, trigger,
            {
                "days_since_first_use": stats.get("days_since_first_use"),
                "activity_count": stats.get("activity_count"),
                "total_messages": stats.get("total_messages"),
            },
        )

    def consent_granted(self, subject, method: str = "verbal", trigger=Trigger.consent_response) -> AuditRecord:
        return self._write(
            AuditEventKind.CONSENT_GRANTED, subject, self.consent_policy.version, trigger,
            {"method": method or "verbal"},
        )

    def consent_denied(self, subject, method: str = "verbal", trigger=Trigger.consent_response) -> AuditRecord:
        return self._write(
            AuditEventKind.CONSENT_DENIED, subject, self.consent_policy.version, trigger,
            {
                "method": method or "verbal",
                "cooldown_days": self.consent_policy.cooldown_days_after_no,
            },
        )

    def consent_revoked(self, subject, method: str = "keyword", trigger=Trigger.user_message) -> AuditRecord:
        return self._write(
            AuditEventKind.CONSENT_REVOKED, subject, self.consent_policy.version, trigger,
            {"method": method or "keyword"},
        )

    def consent_check_skipped(self, subject, reason: str, trigger=Trigger.user_message) -> AuditRecord:
        return self._write(
            AuditEventKind.CONSENT_CHECK_SKIPPED, subject, self.consent_policy.version, trigger,
            {"reason": reason},
        )

    # --- pattern reflections -------------------------------------------------

    def pattern_reflection_included(self, subject, summary: dict, trigger=Trigger.user_message) -> AuditRecord:
        summary = summary or {}
        return self._write(
            AuditEventKind.PATTERN_REFLECTION_INCLUDED, subject, self.pattern_policy.version, trigger,
            {
                "summary_notes": len(summary.get("notes") or []),
                "observations": {
                    "has_heavy_days": bool(summary.get("common_heavy_days")),
                    "has_preferred_time": bool(summary.get("preferred_time")),
                    "has_most_used_activity": bool(summary.get("most_used_activity")),
                },
            },
        )

    def pattern_reflection_blocked(self, subject, reason: str, trigger=Trigger.user_message) -> AuditRecord:
        return self._write(
            AuditEventKind.PATTERN_REFLECTION_BLOCKED, subject, self.pattern_policy.version, trigger,
            {"reason": reason},
        )

    def pattern_features_skipped(self, subject, reason: str, trigger=Trigger.user_message) -> AuditRecord:
        return self._write(
            AuditEventKind.PATTERN_FEATURES_SKIPPED, subject, self.pattern_policy.version, trigger,
            {"reason": reason},
        )

    def pattern_fallback(self, subject, error, component: str, trigger=Trigger.user_message) -> AuditRecord:
        return self._write(
            AuditEventKind.PATTERN_FALLBACK, subject, self.pattern_policy.version, trigger,
            {"component": component, "error": error_message(error)},
        )

    # --- emotional intelligence ------------------------------------------------

    def emotional_intelligence_used(
        self,
        subject,
        trajectory: Optional[str],
        is_returning: bool,
        checkback_count: int,
        trigger=Trigger.user_message,
    ) -> AuditRecord:
        return self._write(
            AuditEventKind.EI_USED, subject, self.ei_policy.version, trigger,
            {
                "features": {
                    "trajectory": trajectory,
                    "is_returning": bool(is_returning),
                    "checkback_count": int(checkback_count or 0),
                },
            },
        )

    def emotional_intelligence_blocked(self, subject, reason: str = "crisis_mode", trigger=Trigger.user_message) -> AuditRecord:
        return self._write(
            AuditEventKind.EI_BLOCKED, subject, self.ei_policy.version, trigger,
            {"reason": reason or "crisis_mode"},
        )

    def emotional_intelligence_skipped(self, subject, reason: str, component: str, trigger=Trigger.user_message) -> AuditRecord:
        return self._write(
            AuditEventKind.EI_SKIPPED, subject, self.ei_policy.version, trigger,
            {"reason": reason, "component": component},
        )

    def emotional_intelligence_fallback(self, subject, error, component: str, trigger=Trigger.user_message) -> AuditRecord:
        return self._write(
            AuditEventKind.EI_FALLBACK, subject, self.ei_policy.version, trigger,
            {"component": component, "error": error_message(error)},
        )


# ---------------------------------------------------------------------------
# Default wiring
# ---------------------------------------------------------------------------

def build_default_sink() -> AuditSink:
    """Sink selected by settings.AUDIT_SINK."""
    from app.db.base import SessionLocal

    sinks: list[AuditSink] = []
    wanted = settings.audit_sinks
    if "log" in wanted:
        sinks.append(LogAuditSink())
    if "database" in wanted:
        sinks.append(DatabaseAuditSink(SessionLocal))
    if not sinks:
        return LogAuditSink()
    if len(sinks) == 1:
        return sinks[0]
    return FanOutAuditSink(*sinks)


_default_audit_log: Optional[AuditLog] = None


def get_audit_log() -> AuditLog:
    """Process-wide AuditLog. Also the FastAPI dependency (override in tests)."""
    global _default_audit_log
    if _default_audit_log is None:
        _default_audit_log = AuditLog(build_default_sink())
    return _default_audit_log


# ---------------------------------------------------------------------------
# Operator queries (GET /audit/events). The engine itself never reads back.
# ---------------------------------------------------------------------------

def list_audit_events(
    db: Session,
    event: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, list[AuditEvent]]:
    """Return (total, page) of persisted audit events, newest first."""
    q = db.query(AuditEvent)
    if event:
        q = q.filter(AuditEvent.event == event)
    total = q.count()
    items = (
        q.order_by(AuditEvent.occurred_at.desc(), AuditEvent.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return total, items
