"""
Tests for the mood trajectory analyzer.

Covers:
- classify_trajectory: minimum series length, floor half split, ±0.5 thresholds
- get_mood_trajectory: lookback window, read failures, missing subject
- SqlSignalStore.ratings_since against the SQLite test database
"""
from datetime import timedelta

import pytest

from app.core.policy import EmotionalIntelligencePolicy
from app.services.audit_log import AuditEventKind
from app.services.signals import RatingPoint, SqlSignalStore, record_mood_checkin
from app.services.trajectory import Trajectory, classify_trajectory, get_mood_trajectory

from conftest import NOW


def _points(ratings, days_ago_start=10):
    """Ratings spread one day apart, oldest first, ending near NOW."""
    return [
        RatingPoint(rating=r, recorded_at=NOW - timedelta(days=days_ago_start - i))
        for i, r in enumerate(ratings)
    ]


# ---------------------------------------------------------------------------
# Pure classification
# ---------------------------------------------------------------------------

class TestClassifyTrajectory:
    @pytest.mark.parametrize("ratings", [[], [5], [1, 9]])
    def test_fewer_than_three_is_none(self, ratings):
        assert classify_trajectory(ratings) is None

    def test_scenario_two_then_eight_is_improving(self):
        # floor(5/2) = 2 → first half [2, 2] (mean 2.0), second [2, 8, 8] (mean 6.0)
        assert classify_trajectory([2, 2, 2, 8, 8]) == Trajectory.improving

    def test_middle_of_odd_series_goes_to_second_half(self):
        # first half [5], second half [9, 1] → diff 0 → stable.
        # If the middle went to the first half: [5, 9] vs [1] → declining.
        assert classify_trajectory([5, 9, 1]) == Trajectory.stable

    def test_exactly_plus_half_is_improving(self):
        # [4, 4] vs [4, 5] → 4.5 - 4.0 = 0.5
        assert classify_trajectory([4, 4, 4, 5]) == Trajectory.improving

    def test_exactly_minus_half_is_declining(self):
        assert classify_trajectory([5, 5, 5, 4]) == Trajectory.declining

    def test_small_change_is_stable(self):
        # [6, 6] vs [6, 6, 7] → 6.333 - 6.0 = 0.333
        assert classify_trajectory([6, 6, 6, 6, 7]) == Trajectory.stable

    def test_clear_decline(self):
        assert classify_trajectory([8, 8, 7, 3, 2, 2]) == Trajectory.declining

    @pytest.mark.parametrize("series", [
        [5, 5, 5, 5],
        [5, 5, 5, 5.2],
        [5.1, 5, 5, 5.3],
        [4.9, 5, 5.1, 5.3],
    ])
    def test_perturbation_below_threshold_keeps_class(self, series):
        assert classify_trajectory(series) == Trajectory.stable

    def test_policy_threshold_is_respected(self):
        strict = EmotionalIntelligencePolicy(trajectory_threshold=2.0)
        assert classify_trajectory([4, 4, 5, 5], strict) == Trajectory.stable
        assert classify_trajectory([4, 4, 5, 5]) == Trajectory.improving

    def test_policy_min_checkins_is_respected(self):
        lenient = EmotionalIntelligencePolicy(trajectory_min_checkins=2)
        assert classify_trajectory([1, 9], lenient) == Trajectory.improving


# ---------------------------------------------------------------------------
# Analyzer with an in-memory store
# ---------------------------------------------------------------------------

class TestGetMoodTrajectory:
    def test_improving_from_store(self, make_store, audit):
        store = make_store(ratings=_points([2, 2, 2, 8, 8]))
        outcome = get_mood_trajectory(store, "device-1", audit, now=NOW)
        assert outcome.available
        assert outcome.value == Trajectory.improving

    def test_ratings_outside_window_are_ignored(self, make_store, audit):
        old = [RatingPoint(rating=1, recorded_at=NOW - timedelta(days=20 + i)) for i in range(5)]
        recent = _points([7, 7], days_ago_start=3)
        store = make_store(ratings=old + recent)
        outcome = get_mood_trajectory(store, "device-1", audit, now=NOW)
        assert outcome.available
        assert outcome.value is None  # only 2 ratings inside 14 days

    def test_read_failure_is_unavailable_and_audited(self, make_store, audit, sink):
        store = make_store(fail=("ratings_since",))
        outcome = get_mood_trajectory(store, "device-1", audit, now=NOW, audit_subject="account-12345")
        assert not outcome.available
        assert outcome.value is None
        assert "unreachable" in outcome.error

        fallbacks = sink.events(AuditEventKind.EI_FALLBACK)
        assert len(fallbacks) == 1
        assert fallbacks[0].payload["component"] == "mood_trajectory"
        assert fallbacks[0].payload["error"] == "ratings_since unreachable"
        assert fallbacks[0].subject == "account-..."

    def test_missing_subject_short_circuits(self, make_store, audit, sink):
        store = make_store(ratings=_points([2, 2, 2, 8, 8]))
        outcome = get_mood_trajectory(store, None, audit, now=NOW)
        assert outcome.available
        assert outcome.value is None
        assert store.calls == []
        skipped = sink.events(AuditEventKind.EI_SKIPPED)
        assert skipped and skipped[0].payload["reason"] == "missing_subject"

    def test_missing_store_skips_like_other_analyzers(self, audit, sink):
        outcome = get_mood_trajectory(None, "device-1", audit, now=NOW)
        assert outcome.available
        assert outcome.value is None
        assert sink.events(AuditEventKind.EI_FALLBACK) == []
        skipped = sink.events(AuditEventKind.EI_SKIPPED)
        assert skipped[0].payload == {"reason": "missing_subject", "component": "mood_trajectory"}


# ---------------------------------------------------------------------------
# SQL store
# ---------------------------------------------------------------------------

class TestSqlRatings:
    def test_matches_user_or_device_and_orders_ascending(self, db, subject):
        record_mood_checkin(db, 3, device_id=subject, recorded_at=NOW - timedelta(days=2))
        record_mood_checkin(db, 8, user_id=subject, recorded_at=NOW - timedelta(days=1))
        record_mood_checkin(db, 5, device_id=subject, recorded_at=NOW - timedelta(days=5))
        record_mood_checkin(db, 9, device_id=subject, recorded_at=NOW - timedelta(days=30))
        record_mood_checkin(db, 1, device_id="someone-else", recorded_at=NOW - timedelta(days=1))

        store = SqlSignalStore(db)
        points = store.ratings_since(subject, NOW - timedelta(days=14))
        assert [p.rating for p in points] == [5, 3, 8]
        assert all(p.recorded_at.tzinfo is not None for p in points)

    def test_trajectory_end_to_end(self, db, subject, audit):
        for i, rating in enumerate([2, 2, 2, 8, 8]):
            record_mood_checkin(db, rating, device_id=subject, recorded_at=NOW - timedelta(days=10 - i))
        outcome = get_mood_trajectory(SqlSignalStore(db), subject, audit, now=NOW)
        assert outcome.value == Trajectory.improving
