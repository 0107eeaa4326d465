"""
Absence awareness: has the user been away, and for roughly how long?

The last interaction is the single most recent timestamp across mood
check-ins and activity completions, whichever source it comes from.

  no prior record            → first interaction
  hours since < 48           → not returning, days = 0
  hours since >= 48          → returning, described by floor(hours / 24):
        2      "a couple of days"
        3–4    "a few days"
        5–7    "about a week"
        8–14   "a little while"
        > 14   "some time"

Descriptions stay vague: no exact day counts reach the text.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.core.policy import DEFAULT_EI_POLICY, EmotionalIntelligencePolicy
from app.services.audit_log import AuditLog, Trigger, error_message
from app.services.outcome import Outcome
from app.services.signals import SignalStore, as_utc, utcnow

COMPONENT = "absence_context"


@dataclass(frozen=True)
class AbsenceState:
    is_first_interaction: bool
    is_returning: bool
    days_since_last_interaction: Optional[int]
    absence_description: Optional[str]


FIRST_INTERACTION = AbsenceState(
    is_first_interaction=True,
    is_returning=False,
    days_since_last_interaction=None,
    absence_description=None,
)


def describe_absence(days_since: int) -> str:
    if days_since <= 2:
        return "a couple of days"
    if days_since <= 4:
        return "a few days"
    if days_since <= 7:
        return "about a week"
    if days_since <= 14:
        return "a little while"
    return "some time"


def classify_absence(
    last_interaction: Optional[datetime],
    now: datetime,
    policy: EmotionalIntelligencePolicy = DEFAULT_EI_POLICY,
) -> AbsenceState:
    """Pure classification of the gap between the last interaction and now."""
    if last_interaction is None:
        return FIRST_INTERACTION

    hours_since = (as_utc(now) - as_utc(last_interaction)).total_seconds() / 3600
    if hours_since < policy.absence_threshold_hours:
        return AbsenceState(
            is_first_interaction=False,
            is_returning=False,
            days_since_last_interaction=0,
            absence_description=None,
        )

    days_since = math.floor(hours_since / 24)
    return AbsenceState(
        is_first_interaction=False,
        is_returning=True,
        days_since_last_interaction=days_since,
        absence_description=describe_absence(days_since),
    )


def get_absence_context(
    store: SignalStore,
    subject_key: Optional[str],
    audit: AuditLog,
    policy: EmotionalIntelligencePolicy = DEFAULT_EI_POLICY,
    now: Optional[datetime] = None,
    trigger: Trigger = Trigger.user_message,
    audit_subject: Optional[str] = None,
) -> Outcome[AbsenceState]:
    audit_subject = audit_subject or subject_key
    if store is None or not subject_key:
        audit.emotional_intelligence_skipped(audit_subject, "missing_subject", COMPONENT, trigger)
        return Outcome.ok(None)

    try:
        last = store.latest_interaction(subject_key)
        state = classify_absence(last, now or utcnow(), policy)
    except Exception as exc:
        audit.emotional_intelligence_fallback(audit_subject, exc, COMPONENT, trigger)
        return Outcome.unavailable(COMPONENT, error_message(exc))

    return Outcome.ok(state)
