"""
Gentle check-backs: recent memory topics the assistant may follow up on.

Active long-term memories of kind themes / goals / triggers, updated within
the last 7 days, newest first, at most 3. Each carries how many whole days
ago it was last updated.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.core.policy import DEFAULT_EI_POLICY, EmotionalIntelligencePolicy
from app.services.audit_log import AuditLog, Trigger, error_message
from app.services.outcome import Outcome
from app.services.signals import MemoryTopic, SignalStore, as_utc, utcnow

COMPONENT = "checkback_topics"

_SECONDS_PER_DAY = 24 * 60 * 60


class MalformedResponseError(ValueError):
    """The memory accessor answered with something that is not a topic list."""


@dataclass(frozen=True)
class Checkback:
    type: str
    content: str
    days_ago: int


def to_checkbacks(
    topics: list[MemoryTopic],
    now: datetime,
    policy: EmotionalIntelligencePolicy = DEFAULT_EI_POLICY,
) -> list[Checkback]:
    """Keep the recency window, order newest first, cap, compute days ago."""
    cutoff = as_utc(now) - policy.checkback_max_age
    recent = [t for t in topics if as_utc(t.updated_at) >= cutoff]
    ordered = sorted(recent, key=lambda t: as_utc(t.updated_at), reverse=True)
    out: list[Checkback] = []
    for t in ordered[: policy.checkback_max_count]:
        elapsed = (as_utc(now) - as_utc(t.updated_at)).total_seconds()
        out.append(Checkback(
            type=t.kind,
            content=t.content,
            days_ago=max(0, math.floor(elapsed / _SECONDS_PER_DAY)),
        ))
    return out


def get_checkback_topics(
    store: SignalStore,
    subject_key: Optional[str],
    audit: AuditLog,
    policy: EmotionalIntelligencePolicy = DEFAULT_EI_POLICY,
    now: Optional[datetime] = None,
    trigger: Trigger = Trigger.user_message,
    audit_subject: Optional[str] = None,
) -> Outcome[list[Checkback]]:
    audit_subject = audit_subject or subject_key
    if store is None or not subject_key:
        audit.emotional_intelligence_skipped(audit_subject, "missing_subject", COMPONENT, trigger)
        return Outcome.ok([])

    now = now or utcnow()
    try:
        topics = store.memory_topics(
            subject_key,
            kinds=policy.checkback_kinds,
            since=now - policy.checkback_max_age,
            limit=policy.checkback_max_count,
        )
        if topics is None or not isinstance(topics, (list, tuple)):
            raise MalformedResponseError(
                f"memory accessor returned {type(topics).__name__}, expected a list"
            )
        checkbacks = to_checkbacks(list(topics), now, policy)
    except Exception as exc:
        audit.emotional_intelligence_fallback(audit_subject, exc, COMPONENT, trigger)
        return Outcome.unavailable(COMPONENT, error_message(exc), default=[])

    return Outcome.ok(checkbacks)
