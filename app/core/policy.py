"""
Versioned policy constants.

Every threshold the engine applies lives here, grouped per feature family.
The `version` string of each policy is stamped on every audit record the
feature emits, so a behavior change means a new version here.

These are fixed product policy, not deployment settings: they are not read
from the environment. Callers that need a different policy (tests, a staged
rollout) pass their own instance explicitly.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class EmotionalIntelligencePolicy:
    version: str = "ei-2025.1"

    # Mood trajectory
    trajectory_lookback_days: int = 14
    trajectory_min_checkins: int = 3
    trajectory_threshold: float = 0.5

    # Absence awareness
    absence_threshold_hours: float = 48

    # Gentle check-backs
    checkback_max_age_days: int = 7
    checkback_max_count: int = 3
    checkback_kinds: tuple[str, ...] = ("themes", "goals", "triggers")

    @property
    def trajectory_lookback(self) -> timedelta:
        return timedelta(days=self.trajectory_lookback_days)

    @property
    def checkback_max_age(self) -> timedelta:
        return timedelta(days=self.checkback_max_age_days)


@dataclass(frozen=True)
class ConsentPolicy:
    version: str = "consent-2025.1"

    min_days_since_first_use: int = 14
    min_activity_count: int = 6
    min_messages_for_trust: int = 25
    cooldown_days_after_no: int = 60
    activity_window_days: int = 90


@dataclass(frozen=True)
class PatternReflectionPolicy:
    version: str = "pattern-2025.1"

    summary_window_days: int = 60
    heavy_rating_below: int = 3
    heavy_day_min_count: int = 2
    heavy_day_max: int = 2


DEFAULT_EI_POLICY = EmotionalIntelligencePolicy()
DEFAULT_CONSENT_POLICY = ConsentPolicy()
DEFAULT_PATTERN_POLICY = PatternReflectionPolicy()
