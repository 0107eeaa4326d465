"""
Tests for pattern reflection consent.

Covers:
- classify_consent_response / is_revoking_pattern_consent keyword matching
- should_offer_pattern_consent thresholds and the 60-day cooldown after "no"
- get_user_pattern_stats and compute_pattern_summary against SQLite
- update_pattern_consent persistence and audit
- get_safe_pattern_context audit trail and degradation
- /patterns endpoints
"""
from datetime import timedelta

import pytest

from app.core.errors import InvalidConsentError
from app.models.user_settings import ConsentStatus, UserSettings
from app.services import pattern_consent
from app.services.audit_log import AuditEventKind
from app.services.pattern_consent import (
    PatternStats,
    classify_consent_response,
    compute_pattern_summary,
    consent_skip_reason,
    get_safe_pattern_context,
    get_user_pattern_stats,
    get_user_settings,
    is_revoking_pattern_consent,
    should_offer_pattern_consent,
    update_pattern_consent,
)
from app.services.signals import record_activity, record_mood_checkin

from conftest import NOW  # Sunday 2026-03-01 12:00 UTC

READY = PatternStats(days_since_first_use=20, activity_count=8, total_messages=30)


def _settings(consent="undecided", last_prompt=None):
    return UserSettings(
        user_id="u-1",
        pattern_reflection_consent=consent,
        pattern_reflection_last_prompt_at=last_prompt,
    )


def _seed_patterns(db, subject):
    """Two heavy Mondays, one heavy Tuesday, evening breathing sessions."""
    monday_1 = NOW - timedelta(days=6)
    monday_2 = NOW - timedelta(days=13)
    tuesday = NOW - timedelta(days=5)
    record_mood_checkin(db, 2, user_id=subject, recorded_at=monday_1)
    record_mood_checkin(db, 1, user_id=subject, recorded_at=monday_2)
    record_mood_checkin(db, 2, user_id=subject, recorded_at=tuesday)
    record_mood_checkin(db, 7, user_id=subject, recorded_at=NOW - timedelta(days=20))

    evening = NOW.replace(hour=20)
    record_activity(db, "breathing", user_id=subject, completed_at=evening - timedelta(days=1))
    record_activity(db, "breathing", user_id=subject, completed_at=evening - timedelta(days=3))
    record_activity(db, "journal", user_id=subject, completed_at=NOW.replace(hour=9) - timedelta(days=2))


# ---------------------------------------------------------------------------
# Text classification
# ---------------------------------------------------------------------------

class TestClassifyConsentResponse:
    @pytest.mark.parametrize("text", ["yes", "Yeah", "sure, go ahead", "OK", "I'd like that", "yes please!"])
    def test_yes(self, text):
        assert classify_consent_response(text) == "yes"

    @pytest.mark.parametrize("text", ["no", "Nope", "no thanks", "maybe later", "not now", "I'd rather not"])
    def test_no(self, text):
        assert classify_consent_response(text) == "no"

    @pytest.mark.parametrize("text", ["", None, "hmm", "tell me more first", "what would that look like?"])
    def test_unclear(self, text):
        assert classify_consent_response(text) == "unclear"


class TestRevocation:
    @pytest.mark.parametrize("text", [
        "Please stop reflecting my patterns",
        "can you stop noticing patterns?",
        "Turn off pattern reflections",
        "no more patterns please",
        "don't analyze my patterns",
    ])
    def test_revoking(self, text):
        assert is_revoking_pattern_consent(text) is True

    @pytest.mark.parametrize("text", ["I had a tough day", "", None, "stop it"])
    def test_not_revoking(self, text):
        assert is_revoking_pattern_consent(text) is False


# ---------------------------------------------------------------------------
# Offer decision
# ---------------------------------------------------------------------------

class TestShouldOffer:
    def test_ready_and_undecided(self):
        assert should_offer_pattern_consent(_settings(), READY, now=NOW) is True

    def test_never_during_crisis(self):
        assert should_offer_pattern_consent(_settings(), READY, is_crisis_mode=True, now=NOW) is False

    def test_never_when_already_yes(self):
        assert should_offer_pattern_consent(_settings("yes"), READY, now=NOW) is False

    def test_no_within_cooldown(self):
        s = _settings("no", last_prompt=NOW - timedelta(days=30))
        assert should_offer_pattern_consent(s, READY, now=NOW) is False

    def test_no_after_cooldown(self):
        s = _settings("no", last_prompt=NOW - timedelta(days=61))
        assert should_offer_pattern_consent(s, READY, now=NOW) is True

    def test_no_without_prompt_date_is_never_offered(self):
        assert should_offer_pattern_consent(_settings("no"), READY, now=NOW) is False

    @pytest.mark.parametrize("stats,reason", [
        (PatternStats(13, 8, 30), "insufficient_days"),
        (PatternStats(20, 5, 30), "insufficient_activities"),
        (PatternStats(20, 8, 24), "insufficient_messages"),
    ])
    def test_each_threshold(self, stats, reason):
        assert should_offer_pattern_consent(_settings(), stats, now=NOW) is False
        assert consent_skip_reason(stats) == reason


# ---------------------------------------------------------------------------
# Stats and summary
# ---------------------------------------------------------------------------

class TestStats:
    def test_no_history(self, db, subject):
        assert get_user_pattern_stats(db, subject, now=NOW) == PatternStats()

    def test_counts(self, db, subject):
        record_activity(db, "breathing", device_id=subject, completed_at=NOW - timedelta(days=100))
        for i in range(6):
            record_activity(db, "grounding", user_id=subject, completed_at=NOW - timedelta(days=i + 1))
        for i in range(19):
            record_mood_checkin(db, 5, user_id=subject, recorded_at=NOW - timedelta(days=i, hours=1))

        stats = get_user_pattern_stats(db, subject, now=NOW)
        assert stats.days_since_first_use == 100
        assert stats.activity_count == 6  # the 100-day-old one is outside the 90-day window
        assert stats.total_messages == 25


class TestPatternSummary:
    def test_summary(self, db, subject):
        _seed_patterns(db, subject)
        summary = compute_pattern_summary(db, subject, now=NOW)

        assert summary.common_heavy_days == ["Monday"]
        assert summary.preferred_time == "evening"
        assert summary.most_used_activity == "breathing"
        assert len(summary.notes) == 3

    def test_no_activities_has_no_preferred_time(self, db, subject):
        record_mood_checkin(db, 8, user_id=subject, recorded_at=NOW - timedelta(days=1))
        summary = compute_pattern_summary(db, subject, now=NOW)
        assert summary.preferred_time is None
        assert summary.most_used_activity is None
        assert summary.common_heavy_days == []
        assert summary.notes == []

    def test_no_user(self, db):
        assert compute_pattern_summary(db, None) is None


# ---------------------------------------------------------------------------
# Consent updates
# ---------------------------------------------------------------------------

class TestUpdateConsent:
    def test_settings_created_on_first_read(self, db, subject):
        row = get_user_settings(db, subject)
        assert row.pattern_reflection_consent == "undecided"
        assert get_user_settings(db, subject).user_id == subject

    def test_yes(self, db, subject, audit, sink):
        row = update_pattern_consent(db, subject, "yes", audit, now=NOW)
        assert row.pattern_reflection_consent == "yes"
        assert row.pattern_reflection_enabled_at is not None

        granted = sink.events(AuditEventKind.CONSENT_GRANTED)
        assert len(granted) == 1
        assert granted[0].payload == {"method": "verbal"}
        assert granted[0].policy_version == "consent-2025.1"

    def test_no_starts_cooldown(self, db, subject, audit, sink):
        row = update_pattern_consent(db, subject, "no", audit, now=NOW)
        assert row.pattern_reflection_consent == "no"
        assert row.pattern_reflection_last_prompt_at is not None
        assert sink.events(AuditEventKind.CONSENT_DENIED)[0].payload["cooldown_days"] == 60

    def test_revoked_is_stored_as_no(self, db, subject, audit, sink):
        update_pattern_consent(db, subject, "yes", audit, now=NOW)
        row = update_pattern_consent(db, subject, "revoked", audit, method="keyword", now=NOW)
        assert row.pattern_reflection_consent == "no"
        assert sink.events(AuditEventKind.CONSENT_REVOKED)[0].payload == {"method": "keyword"}

    def test_invalid_value(self, db, subject, audit, sink):
        with pytest.raises(InvalidConsentError):
            update_pattern_consent(db, subject, "perhaps", audit)
        assert sink.records == []


# ---------------------------------------------------------------------------
# Safe context
# ---------------------------------------------------------------------------

class TestSafePatternContext:
    def test_missing_user(self, db, audit, sink):
        ctx = get_safe_pattern_context(db, None, audit)
        assert ctx.consent == "undecided"
        assert ctx.can_offer_consent is False
        assert sink.events(AuditEventKind.PATTERN_FEATURES_SKIPPED)[0].payload == {
            "reason": "missing_db_or_user_id",
        }

    def test_crisis_blocks_everything(self, db, subject, audit, sink):
        ctx = get_safe_pattern_context(db, subject, audit, is_crisis_mode=True)
        assert ctx.can_offer_consent is False
        assert ctx.pattern_summary is None
        assert [r.event for r in sink.records] == [AuditEventKind.PATTERN_REFLECTION_BLOCKED]
        assert sink.records[0].payload == {"reason": "crisis_mode"}

    def test_new_user_is_not_offered(self, db, subject, audit, sink):
        ctx = get_safe_pattern_context(db, subject, audit, now=NOW)
        assert ctx.consent == "undecided"
        assert ctx.can_offer_consent is False
        assert sink.events(AuditEventKind.CONSENT_CHECK_SKIPPED)[0].payload == {"reason": "insufficient_days"}
        assert sink.events(AuditEventKind.PATTERN_FEATURES_SKIPPED)[0].payload == {"reason": "consent_undecided"}

    def test_ready_user_is_offered(self, db, subject, audit, sink):
        ctx = get_safe_pattern_context(db, subject, audit, stats=READY, now=NOW)
        assert ctx.can_offer_consent is True
        offered = sink.events(AuditEventKind.CONSENT_OFFERED)[0]
        assert offered.payload == READY.as_dict()

    def test_consented_user_gets_summary(self, db, subject, audit, sink):
        _seed_patterns(db, subject)
        update_pattern_consent(db, subject, "yes", audit, now=NOW)
        sink.clear()

        ctx = get_safe_pattern_context(db, subject, audit, stats=READY, now=NOW)
        assert ctx.consent == "yes"
        assert ctx.can_offer_consent is False
        assert ctx.pattern_summary.most_used_activity == "breathing"

        included = sink.events(AuditEventKind.PATTERN_REFLECTION_INCLUDED)[0]
        assert included.payload["summary_notes"] == 3
        assert included.payload["observations"]["has_heavy_days"] is True

    def test_denied_user_is_blocked(self, db, subject, audit, sink):
        update_pattern_consent(db, subject, "no", audit, now=NOW)
        sink.clear()

        ctx = get_safe_pattern_context(db, subject, audit, stats=READY, now=NOW + timedelta(days=1))
        assert ctx.consent == "no"
        assert ctx.can_offer_consent is False
        assert sink.events(AuditEventKind.PATTERN_REFLECTION_BLOCKED)[0].payload == {"reason": "consent_denied"}

    def test_enum_consent_on_settings_object(self, db, subject, audit):
        row = UserSettings(user_id=subject, pattern_reflection_consent=ConsentStatus.no)
        ctx = get_safe_pattern_context(db, subject, audit, settings=row, stats=READY, now=NOW)
        assert ctx.consent == "no"

    def test_stats_failure_degrades(self, db, subject, audit, sink, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("stats query timed out")

        monkeypatch.setattr(pattern_consent, "get_user_pattern_stats", broken)
        ctx = get_safe_pattern_context(db, subject, audit, now=NOW)

        assert ctx.can_offer_consent is False
        fallback = sink.events(AuditEventKind.PATTERN_FALLBACK)[0]
        assert fallback.payload == {"component": "get_user_pattern_stats", "error": "stats query timed out"}


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

class TestPatternEndpoints:
    def test_context_for_new_user(self, client, subject):
        r = client.get("/patterns/context", params={"user_id": subject})
        assert r.status_code == 200
        assert r.json() == {"consent": "undecided", "can_offer_consent": False, "pattern_summary": None}

    def test_context_requires_user_id(self, client):
        r = client.get("/patterns/context")
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"

    def test_store_consent(self, client, subject, sink):
        r = client.post("/patterns/consent", json={"user_id": subject, "consent": "yes"})
        assert r.status_code == 200
        body = r.json()
        assert body["user_id"] == subject
        assert body["pattern_reflection_consent"] == "yes"
        assert body["pattern_reflection_enabled_at"] is not None
        assert len(sink.events(AuditEventKind.CONSENT_GRANTED)) == 1

        r = client.get("/patterns/context", params={"user_id": subject})
        assert r.json()["consent"] == "yes"

    def test_invalid_consent(self, client, subject):
        r = client.post("/patterns/consent", json={"user_id": subject, "consent": "perhaps"})
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "INVALID_CONSENT"
        assert body["details"]["allowed"] == ["yes", "no", "revoked"]

    def test_classify(self, client):
        r = client.post("/patterns/classify", json={"text": "Please stop reflecting my patterns"})
        assert r.status_code == 200
        assert r.json() == {"classification": "unclear", "is_revoking": True}

        r = client.post("/patterns/classify", json={"text": "sure"})
        assert r.json() == {"classification": "yes", "is_revoking": False}
