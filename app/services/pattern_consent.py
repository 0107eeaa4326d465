"""
Pattern reflection consent.

Controls verbal pattern comments in chat such as "Mondays often feel
heavier for you" or "You usually come here in the evenings".

Safety rules
------------
- Opt-in only: nothing is reflected until the user says yes.
- Revocable at any time ("stop reflecting my patterns").
- Disabled during crisis mode.
- High-level only: weekdays, time of day, favourite activity. No
  timestamps, counts or other specifics are ever surfaced.

Offer thresholds (ConsentPolicy): 14 days since first activity, 6
activities in the last 90 days, 25 interactions overall, and 60 days of
quiet after a "no".

Public API
----------
get_user_pattern_stats(db, user_id)                  -> PatternStats
get_user_settings(db, user_id)                       -> UserSettings (created if missing)
update_pattern_consent(db, user_id, consent, ...)    -> UserSettings
should_offer_pattern_consent(settings, stats, ...)   -> bool
is_revoking_pattern_consent(text)                    -> bool
classify_consent_response(text)                      -> "yes" | "no" | "unclear"
compute_pattern_summary(db, user_id)                 -> PatternSummary | None
get_safe_pattern_context(db, user_id, audit, ...)    -> PatternContext (never raises)
"""
from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import ConsentUpdateError, InvalidConsentError
from app.core.policy import (
    DEFAULT_CONSENT_POLICY,
    DEFAULT_PATTERN_POLICY,
    ConsentPolicy,
    PatternReflectionPolicy,
)
from app.models.activity_log import ActivityLog
from app.models.mood_checkin import MoodCheckin
from app.models.user_settings import ConsentStatus, UserSettings
from app.services.audit_log import AuditLog, Trigger, enum_value, truncate_subject
from app.services.signals import as_utc, utcnow


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class PatternStats:
    days_since_first_use: int = 0
    activity_count: int = 0
    total_messages: int = 0

    def as_dict(self) -> dict:
        return {
            "days_since_first_use": self.days_since_first_use,
            "activity_count": self.activity_count,
            "total_messages": self.total_messages,
        }


@dataclass
class PatternSummary:
    common_heavy_days: list[str] = field(default_factory=list)
    preferred_time: Optional[str] = None
    most_used_activity: Optional[str] = None
    notes: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "common_heavy_days": list(self.common_heavy_days),
            "preferred_time": self.preferred_time,
            "most_used_activity": self.most_used_activity,
            "notes": list(self.notes),
        }


@dataclass
class PatternContext:
    consent: str = ConsentStatus.undecided.value
    can_offer_consent: bool = False
    pattern_summary: Optional[PatternSummary] = None


_WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def _subject(model, user_id: str):
    return (model.user_id == user_id) | (model.device_id == user_id)


# ---------------------------------------------------------------------------
# Stats and settings
# ---------------------------------------------------------------------------

def get_user_pattern_stats(
    db: Session,
    user_id: Optional[str],
    policy: ConsentPolicy = DEFAULT_CONSENT_POLICY,
    now: Optional[datetime] = None,
) -> PatternStats:
    """Usage stats that gate the consent offer. Raises on DB failure."""
    if not user_id:
        return PatternStats()
    now = now or utcnow()
    try:
        first_activity = (
            db.query(func.min(ActivityLog.completed_at))
            .filter(_subject(ActivityLog, user_id))
            .scalar()
        )
        activity_count: int = (
            db.query(func.count(ActivityLog.id))
            .filter(
                _subject(ActivityLog, user_id),
                ActivityLog.completed_at > now - timedelta(days=policy.activity_window_days),
            )
            .scalar()
            or 0
        )
        checkin_count: int = (
            db.query(func.count(MoodCheckin.id))
            .filter(_subject(MoodCheckin, user_id))
            .scalar()
            or 0
        )
    except SQLAlchemyError:
        db.rollback()
        raise

    days_since_first_use = 0
    if first_activity is not None:
        days_since_first_use = max(0, (now - as_utc(first_activity)).days)

    return PatternStats(
        days_since_first_use=days_since_first_use,
        activity_count=activity_count,
        total_messages=checkin_count + activity_count,
    )


def get_user_settings(db: Session, user_id: str) -> UserSettings:
    """Fetch the settings row, creating an "undecided" one on first use."""
    row = db.get(UserSettings, user_id)
    if row is not None:
        return row
    row = UserSettings(
        user_id=user_id,
        pattern_reflection_consent=ConsentStatus.undecided.value,
    )
    db.add(row)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        # Created concurrently by another request.
        existing = db.get(UserSettings, user_id)
        if existing is None:
            raise
        return existing
    db.refresh(row)
    return row


def update_pattern_consent(
    db: Session,
    user_id: str,
    consent: str,
    audit: AuditLog,
    method: str = "verbal",
    trigger: Trigger = Trigger.consent_response,
    now: Optional[datetime] = None,
) -> UserSettings:
    """
    Store a consent decision.

      yes      → consent yes, enabled_at = now
      no       → consent no, last_prompt_at = now (starts the cooldown)
      revoked  → same as no, audited as a revocation
    """
    if consent not in ("yes", "no", "revoked"):
        raise InvalidConsentError(consent)
    now = now or utcnow()

    try:
        row = db.get(UserSettings, user_id)
        if row is None:
            row = UserSettings(user_id=user_id)
            db.add(row)
        if consent == "yes":
            row.pattern_reflection_consent = ConsentStatus.yes.value
            row.pattern_reflection_enabled_at = now
        else:
            row.pattern_reflection_consent = ConsentStatus.no.value
            row.pattern_reflection_last_prompt_at = now
        row.updated_at = now
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        audit.pattern_fallback(user_id, exc, "update_pattern_consent", trigger)
        raise ConsentUpdateError(subject=truncate_subject(user_id)) from exc

    if consent == "yes":
        audit.consent_granted(user_id, method, trigger)
    elif consent == "no":
        audit.consent_denied(user_id, method, trigger)
    else:
        audit.consent_revoked(user_id, method, trigger)

    db.refresh(row)
    return row


# ---------------------------------------------------------------------------
# Offer decision
# ---------------------------------------------------------------------------

def consent_skip_reason(stats: PatternStats, policy: ConsentPolicy = DEFAULT_CONSENT_POLICY) -> str:
    if stats.days_since_first_use < policy.min_days_since_first_use:
        return "insufficient_days"
    if stats.activity_count < policy.min_activity_count:
        return "insufficient_activities"
    if stats.total_messages < policy.min_messages_for_trust:
        return "insufficient_messages"
    return "unknown"


def should_offer_pattern_consent(
    settings: UserSettings,
    stats: PatternStats,
    is_crisis_mode: bool = False,
    policy: ConsentPolicy = DEFAULT_CONSENT_POLICY,
    now: Optional[datetime] = None,
) -> bool:
    if is_crisis_mode:
        return False

    consent = settings.pattern_reflection_consent
    if consent == ConsentStatus.yes.value:
        return False

    if consent == ConsentStatus.no.value:
        last_prompt = settings.pattern_reflection_last_prompt_at
        if last_prompt is None:
            return False
        elapsed = (now or utcnow()) - as_utc(last_prompt)
        if elapsed < timedelta(days=policy.cooldown_days_after_no):
            return False

    if stats.days_since_first_use < policy.min_days_since_first_use:
        return False
    if stats.activity_count < policy.min_activity_count:
        return False
    if stats.total_messages < policy.min_messages_for_trust:
        return False
    return True


# ---------------------------------------------------------------------------
# Text classification (keyword lists, no model)
# ---------------------------------------------------------------------------

_REVOKE_RE = [
    re.compile(p)
    for p in (
        r"stop\s+(?:\w+\s+)?reflect(?:ing)?\s+(?:my\s+)?patterns",
        r"stop\s+(?:\w+\s+)?analyz(?:ing|e)\s+(?:my\s+)?patterns",
        r"stop\s+(?:\w+\s+)?notic(?:ing|e)\s+(?:my\s+)?patterns",
        r"stop\s+(?:\w+\s+)?track(?:ing)?\s+(?:my\s+)?patterns",
        r"stop\s+pattern\s+reflections?",
        r"no\s+more\s+patterns?",
        r"don'?t\s+(?:\w+\s+)?reflect\s+(?:my\s+)?patterns",
        r"don'?t\s+(?:\w+\s+)?analyz(?:e|ing)\s+(?:my\s+)?patterns",
        r"don'?t\s+(?:\w+\s+)?notice\s+(?:my\s+)?patterns",
        r"disable\s+pattern",
        r"turn\s+off\s+pattern",
    )
]

_YES_PHRASES = (
    "yes", "yeah", "yep", "sure", "okay", "ok", "yes please",
    "i'd like that", "sounds good", "that would be nice", "go ahead",
    "i'm okay with that", "that's fine", "please do", "i consent",
)

_NO_PHRASES = (
    "no", "nope", "no thanks", "not really", "i'd rather not",
    "no thank you", "prefer not", "not now", "maybe later", "pass",
    "i don't want that", "not interested", "skip", "i decline",
)


def is_revoking_pattern_consent(text: Optional[str]) -> bool:
    if not text:
        return False
    lower = text.lower()
    return any(p.search(lower) for p in _REVOKE_RE)


def _matches_phrase(lower: str, phrase: str) -> bool:
    return lower == phrase or lower.startswith(phrase + " ") or lower.startswith(phrase + ",")


def classify_consent_response(text: Optional[str]) -> str:
    """Classify a reply to the consent question as yes / no / unclear."""
    if not text:
        return "unclear"
    lower = text.lower().strip()

    if any(_matches_phrase(lower, p) for p in _YES_PHRASES):
        return "yes"
    if any(_matches_phrase(lower, p) for p in _NO_PHRASES):
        return "no"

    # Substring fallback, only when unambiguous.
    if "yes" in lower and "no" not in lower:
        return "yes"
    if "no" in lower and "yes" not in lower:
        return "no"
    return "unclear"


# ---------------------------------------------------------------------------
# Pattern summary
# ---------------------------------------------------------------------------

def _time_of_day(hour: int) -> str:
    if hour < 12:
        return "morning"
    if hour < 18:
        return "afternoon"
    return "evening"


def compute_pattern_summary(
    db: Session,
    user_id: Optional[str],
    policy: PatternReflectionPolicy = DEFAULT_PATTERN_POLICY,
    now: Optional[datetime] = None,
) -> Optional[PatternSummary]:
    """
    Aggregated, soft observations over the last `summary_window_days`.
    Hours and weekdays are taken in UTC.
    """
    if not user_id:
        return None
    since = (now or utcnow()) - timedelta(days=policy.summary_window_days)
    try:
        heavy_rows = (
            db.query(MoodCheckin.created_at)
            .filter(
                _subject(MoodCheckin, user_id),
                MoodCheckin.mood_rating < policy.heavy_rating_below,
                MoodCheckin.created_at > since,
            )
            .all()
        )
        activity_rows = (
            db.query(ActivityLog.activity_type, ActivityLog.completed_at)
            .filter(
                _subject(ActivityLog, user_id),
                ActivityLog.completed_at > since,
            )
            .all()
        )
    except SQLAlchemyError:
        db.rollback()
        raise

    heavy = Counter(_WEEKDAYS[as_utc(r.created_at).weekday()] for r in heavy_rows)
    common_heavy_days = [
        day for day, count in heavy.most_common(policy.heavy_day_max)
        if count >= policy.heavy_day_min_count
    ]

    preferred_time = None
    most_used_activity = None
    if activity_rows:
        hours = Counter(as_utc(r.completed_at).hour for r in activity_rows)
        preferred_time = _time_of_day(hours.most_common(1)[0][0])
        kinds = Counter(r.activity_type for r in activity_rows)
        most_used_activity = kinds.most_common(1)[0][0]

    notes: list[str] = []
    if common_heavy_days:
        notes.append(f"{' and '.join(common_heavy_days)} often feel heavier")
    if preferred_time:
        notes.append(f"Usually engages during {preferred_time}")
    if most_used_activity:
        notes.append(f"{most_used_activity} is a frequent choice")

    return PatternSummary(
        common_heavy_days=common_heavy_days,
        preferred_time=preferred_time,
        most_used_activity=most_used_activity,
        notes=notes,
    )


# ---------------------------------------------------------------------------
# Public: main entry point
# ---------------------------------------------------------------------------

def get_safe_pattern_context(
    db: Session,
    user_id: Optional[str],
    audit: AuditLog,
    is_crisis_mode: bool = False,
    trigger: Trigger = Trigger.user_message,
    settings: Optional[UserSettings] = None,
    stats: Optional[PatternStats] = None,
    consent_policy: ConsentPolicy = DEFAULT_CONSENT_POLICY,
    pattern_policy: PatternReflectionPolicy = DEFAULT_PATTERN_POLICY,
    now: Optional[datetime] = None,
) -> PatternContext:
    """
    Consent state, whether to offer consent now, and (only with consent)
    the pattern summary. Never raises: every failing step is audited as a
    pattern_fallback and replaced by its safe default.
    """
    try:
        if db is None or not user_id:
            audit.pattern_features_skipped(user_id, "missing_db_or_user_id", trigger)
            return PatternContext()

        if is_crisis_mode:
            audit.pattern_reflection_blocked(user_id, "crisis_mode", trigger)
            consent = settings.pattern_reflection_consent if settings else ConsentStatus.undecided.value
            return PatternContext(consent=consent)

        now = now or utcnow()

        if settings is None:
            try:
                settings = get_user_settings(db, user_id)
            except Exception as exc:
                audit.pattern_fallback(user_id, exc, "get_user_settings", trigger)
                settings = UserSettings(
                    user_id=user_id,
                    pattern_reflection_consent=ConsentStatus.undecided.value,
                )

        if stats is None:
            try:
                stats = get_user_pattern_stats(db, user_id, consent_policy, now)
            except Exception as exc:
                audit.pattern_fallback(user_id, exc, "get_user_pattern_stats", trigger)
                stats = PatternStats()

        consent = enum_value(settings.pattern_reflection_consent or ConsentStatus.undecided.value)

        can_offer = False
        try:
            can_offer = should_offer_pattern_consent(settings, stats, False, consent_policy, now)
            if can_offer:
                audit.consent_offered(user_id, stats.as_dict(), trigger)
            elif consent == ConsentStatus.undecided.value:
                audit.consent_check_skipped(user_id, consent_skip_reason(stats, consent_policy), trigger)
        except Exception as exc:
            audit.pattern_fallback(user_id, exc, "should_offer_pattern_consent", trigger)
            can_offer = False

        summary: Optional[PatternSummary] = None
        if (
            consent == ConsentStatus.yes.value
            and stats.days_since_first_use >= consent_policy.min_days_since_first_use
            and stats.activity_count >= consent_policy.min_activity_count
        ):
            try:
                summary = compute_pattern_summary(db, user_id, pattern_policy, now)
                if summary is not None and summary.notes:
                    audit.pattern_reflection_included(user_id, summary.as_dict(), trigger)
                else:
                    audit.pattern_features_skipped(user_id, "no_pattern_data", trigger)
            except Exception as exc:
                audit.pattern_fallback(user_id, exc, "compute_pattern_summary", trigger)
                summary = None
        elif consent == ConsentStatus.no.value:
            audit.pattern_reflection_blocked(user_id, "consent_denied", trigger)
        elif consent == ConsentStatus.undecided.value:
            audit.pattern_features_skipped(user_id, "consent_undecided", trigger)

        return PatternContext(consent=consent, can_offer_consent=can_offer, pattern_summary=summary)
    except Exception as exc:
        audit.pattern_fallback(user_id, exc, "get_safe_pattern_context", trigger)
        return PatternContext()
