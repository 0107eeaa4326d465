"""
Emotional context router.

POST /context/emotional   compose the emotional intelligence context for one turn
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.base import get_db
from app.schemas.context import EmotionalContextRequest, EmotionalContextResponse
from app.services.audit_log import AuditLog, get_audit_log
from app.services.context_composer import SubjectIdentifiers, build_emotional_intelligence_context
from app.services.signals import SqlSignalStore

router = APIRouter(prefix="/context", tags=["context"])


@router.post(
    "/emotional",
    response_model=EmotionalContextResponse,
    summary="Emotional intelligence context for the next assistant turn",
    responses={
        200: {"description": "Guidance text, or null when no context applies."},
    },
)
def emotional_context(
    payload: EmotionalContextRequest,
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """
    Build the advisory context block from the user's mood trend, time away,
    and recently remembered topics.

    ### Blocks
    | Block | Emitted when |
    |---|---|
    | `MOOD TRAJECTORY`    | ≥ 3 check-ins in the last 14 days |
    | `RETURN WARMTH`      | last interaction ≥ 48 h ago |
    | `FIRST INTERACTION`  | no prior check-in or activity |
    | `GENTLE CHECK-BACKS` | active themes/goals/triggers updated in the last 7 days |

    With `is_crisis_mode` the engine is bypassed entirely and `context` is null.
    This endpoint never fails because of the engine: any degradation shows
    up as a missing block (or a null context) plus an audit record.
    """
    subjects = SubjectIdentifiers(
        user_id=payload.user_id,
        device_id=payload.device_id,
        effective_user_id=payload.effective_user_id,
    )
    text = build_emotional_intelligence_context(
        SqlSignalStore(db),
        subjects,
        audit,
        is_crisis_mode=payload.is_crisis_mode,
        trigger=payload.trigger,
    )
    return EmotionalContextResponse(context=text)
