"""
Audit router.

GET /audit/events   audit records persisted by the database sink (newest first)
"""
from __future__ import annotations

import json
from typing import Optional, Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.base import get_db
from app.models.audit_event import AuditEvent
from app.schemas.audit import AuditEventListResponse, AuditEventResponse
from app.services.audit_log import AuditEventKind, list_audit_events

router = APIRouter(prefix="/audit", tags=["audit"])


# ---------------------------------------------------------------------------
# Serialization helper
# ---------------------------------------------------------------------------

def _parse_payload(raw: Optional[str]) -> Optional[dict[str, Any]]:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (ValueError, TypeError):
        return None


def _event_to_response(ev: AuditEvent) -> AuditEventResponse:
    return AuditEventResponse(
        id=ev.id,
        event=ev.event,
        timestamp=ev.occurred_at.isoformat() if ev.occurred_at else "",
        subject=ev.subject,
        policy_version=ev.policy_version,
        trigger=ev.trigger,
        payload=_parse_payload(ev.payload),
    )


# ---------------------------------------------------------------------------
# GET /audit/events
# ---------------------------------------------------------------------------

@router.get(
    "/events",
    response_model=AuditEventListResponse,
    summary="List audit events (newest first)",
    responses={
        200: {"description": "Paginated list of persisted audit records."},
    },
)
def list_events(
    event: Optional[str] = Query(
        default=None,
        description=(
            f'Filter by event, e.g. "{AuditEventKind.EI_USED}", '
            f'"{AuditEventKind.EI_BLOCKED}", "{AuditEventKind.EI_FALLBACK}". '
            "Omit for all."
        ),
        examples=["emotional_intelligence_fallback"],
    ),
    limit: int = Query(default=50, ge=1, le=200, description="Page size."),
    offset: int = Query(default=0, ge=0, description="Skip N items."),
    db: Session = Depends(get_db),
):
    """
    Return audit records written by the `database` audit sink
    (`AUDIT_SINK=database` or `both`). With the default `log` sink this
    list stays empty and records go to stderr instead.

    Subjects are stored truncated; the full key is never persisted here.
    """
    total, items = list_audit_events(db=db, event=event, limit=limit, offset=offset)
    return AuditEventListResponse(
        total=total,
        items=[_event_to_response(ev) for ev in items],
    )
