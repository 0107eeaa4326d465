"""
Pattern reflections router.

GET  /patterns/context    consent state, offer decision and (with consent) summary
POST /patterns/consent    store a consent decision (yes / no / revoked)
POST /patterns/classify   classify a reply to the consent question
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.base import get_db
from app.models.user_settings import UserSettings
from app.schemas.common import ErrorResponse
from app.schemas.patterns import (
    ClassifyRequest,
    ClassifyResponse,
    ConsentStatusResponse,
    ConsentUpdateRequest,
    PatternContextResponse,
    PatternSummaryResponse,
)
from app.services.audit_log import AuditLog, Trigger, get_audit_log
from app.services.pattern_consent import (
    classify_consent_response,
    get_safe_pattern_context,
    is_revoking_pattern_consent,
    update_pattern_consent,
)

router = APIRouter(prefix="/patterns", tags=["patterns"])


def _iso(ts) -> Optional[str]:
    return ts.isoformat() if ts else None


def _settings_to_response(row: UserSettings) -> ConsentStatusResponse:
    return ConsentStatusResponse(
        user_id=row.user_id,
        pattern_reflection_consent=row.pattern_reflection_consent,
        pattern_reflection_enabled_at=_iso(row.pattern_reflection_enabled_at),
        pattern_reflection_last_prompt_at=_iso(row.pattern_reflection_last_prompt_at),
    )


@router.get(
    "/context",
    response_model=PatternContextResponse,
    summary="Safe pattern-reflection context for a user",
)
def pattern_context(
    user_id: str = Query(min_length=1, max_length=64),
    is_crisis_mode: bool = Query(default=False),
    trigger: Trigger = Query(default=Trigger.user_message),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """
    Returns the user's consent state, whether the assistant may ask for
    consent now, and, only when consent is "yes" and usage thresholds are
    met, a high-level pattern summary. Degrades to
    `{"consent": "undecided", "can_offer_consent": false}` on any failure.
    """
    ctx = get_safe_pattern_context(
        db, user_id, audit, is_crisis_mode=is_crisis_mode, trigger=trigger,
    )
    summary = None
    if ctx.pattern_summary is not None:
        summary = PatternSummaryResponse(**ctx.pattern_summary.as_dict())
    return PatternContextResponse(
        consent=ctx.consent,
        can_offer_consent=ctx.can_offer_consent,
        pattern_summary=summary,
    )


@router.post(
    "/consent",
    response_model=ConsentStatusResponse,
    summary="Store a pattern-reflection consent decision",
    responses={
        200: {"description": "Consent stored."},
        422: {"model": ErrorResponse, "description": "Unknown consent value."},
        500: {"model": ErrorResponse, "description": "Consent could not be stored."},
    },
)
def pattern_consent(
    payload: ConsentUpdateRequest,
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    row = update_pattern_consent(
        db,
        payload.user_id,
        payload.consent,
        audit,
        method=payload.method,
        trigger=payload.trigger,
    )
    return _settings_to_response(row)


@router.post(
    "/classify",
    response_model=ClassifyResponse,
    summary="Classify a reply to the consent question",
)
def classify_reply(payload: ClassifyRequest):
    return ClassifyResponse(
        classification=classify_consent_response(payload.text),
        is_revoking=is_revoking_pattern_consent(payload.text),
    )
