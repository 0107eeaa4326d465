"""
Mood trajectory: is the user's mood trending up, down, or holding steady?

Algorithm
---------
  1. Ratings recorded in the last `trajectory_lookback_days` (14), oldest first.
  2. Fewer than `trajectory_min_checkins` (3) → None. Never a guess.
  3. Split at len // 2 (the middle rating of an odd series goes to the
     second half) and compare half means:
        diff >= +0.5  → improving
        diff <= -0.5  → declining
        otherwise     → stable

A failed read is reported as an emotional_intelligence_fallback record and
returned as Outcome.unavailable. Nothing is raised.
"""
from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional, Sequence

from app.core.policy import DEFAULT_EI_POLICY, EmotionalIntelligencePolicy
from app.services.audit_log import AuditLog, Trigger, error_message
from app.services.outcome import Outcome
from app.services.signals import RatingPoint, SignalStore, utcnow

COMPONENT = "mood_trajectory"


class Trajectory(str, enum.Enum):
    improving = "improving"
    declining = "declining"
    stable = "stable"


def _mean(values: Sequence[int]) -> float:
    return sum(values) / len(values)


def classify_trajectory(
    ratings: Sequence[int],
    policy: EmotionalIntelligencePolicy = DEFAULT_EI_POLICY,
) -> Optional[Trajectory]:
    """Pure classification over ratings already ordered oldest → newest."""
    if len(ratings) < policy.trajectory_min_checkins:
        return None

    split = len(ratings) // 2
    diff = _mean(ratings[split:]) - _mean(ratings[:split])

    if diff >= policy.trajectory_threshold:
        return Trajectory.improving
    if diff <= -policy.trajectory_threshold:
        return Trajectory.declining
    return Trajectory.stable


def get_mood_trajectory(
    store: SignalStore,
    subject_key: Optional[str],
    audit: AuditLog,
    policy: EmotionalIntelligencePolicy = DEFAULT_EI_POLICY,
    now: Optional[datetime] = None,
    trigger: Trigger = Trigger.user_message,
    audit_subject: Optional[str] = None,
) -> Outcome[Trajectory]:
    audit_subject = audit_subject or subject_key
    if store is None or not subject_key:
        audit.emotional_intelligence_skipped(audit_subject, "missing_subject", COMPONENT, trigger)
        return Outcome.ok(None)

    since = (now or utcnow()) - policy.trajectory_lookback
    try:
        points: list[RatingPoint] = store.ratings_since(subject_key, since)
        trajectory = classify_trajectory([p.rating for p in points], policy)
    except Exception as exc:
        audit.emotional_intelligence_fallback(audit_subject, exc, COMPONENT, trigger)
        return Outcome.unavailable(COMPONENT, error_message(exc))

    return Outcome.ok(trajectory)
