"""
Emotional intelligence context composer.

Builds the short, advisory context block handed to the reply generator
before every assistant turn. Three signals feed it:

  MOOD TRAJECTORY     trend of recent mood check-ins       (trajectory.py)
  RETURN WARMTH /     time since the last interaction      (absence.py)
  FIRST INTERACTION
  GENTLE CHECK-BACKS  recently remembered topics           (checkbacks.py)

Flow
----
  blocked     is_crisis_mode → one emotional_intelligence_blocked record,
              no analyzer runs, returns None
  composing   each analyzer runs in isolation; one failing never stops
              the others
  assembling  one labeled block per signal that fired; no blocks → None
  terminal    one emotional_intelligence_used record, then the text

Guarantee: build_emotional_intelligence_context never raises. Anything
unexpected is recorded as a fallback for the "context_composer" component
and the caller gets None, which is indistinguishable from "no context
warranted".

The check-back limits ("one per conversation", "skip when distressed")
are guidance for the generator only. Nothing here tracks conversations.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, TypeVar

from loguru import logger

from app.core.policy import DEFAULT_EI_POLICY, EmotionalIntelligencePolicy
from app.services.absence import AbsenceState, get_absence_context
from app.services.audit_log import AuditLog, Trigger, error_message
from app.services.checkbacks import Checkback, get_checkback_topics
from app.services.outcome import Outcome
from app.services.signals import SignalStore, utcnow
from app.services.trajectory import Trajectory, get_mood_trajectory

T = TypeVar("T")

COMPONENT = "context_composer"


# ---------------------------------------------------------------------------
# Request / result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SubjectIdentifiers:
    """
    The handles a request may carry. Check-ins and activities are keyed by
    device first, memories and audit records by account first.
    """
    user_id: Optional[str] = None
    device_id: Optional[str] = None
    effective_user_id: Optional[str] = None

    @property
    def audit_subject(self) -> Optional[str]:
        return self.user_id or self.effective_user_id

    @property
    def signal_subject(self) -> Optional[str]:
        return self.device_id or self.user_id or self.effective_user_id

    @property
    def memory_subject(self) -> Optional[str]:
        return self.user_id or self.effective_user_id


@dataclass
class ContextResult:
    trajectory: Optional[Trajectory] = None
    absence: Optional[AbsenceState] = None
    checkbacks: list[Checkback] = field(default_factory=list)

    @property
    def is_returning(self) -> bool:
        return bool(self.absence and self.absence.is_returning)


# ---------------------------------------------------------------------------
# Guidance text
# ---------------------------------------------------------------------------

_TRAJECTORY_GUIDANCE = {
    Trajectory.improving: (
        "User's mood has been trending upward. You may gently acknowledge this "
        "without making it performative: \"Things seem to be feeling a bit lighter "
        "lately\" (only if natural and consent allows)."
    ),
    Trajectory.declining: (
        "User's mood has been trending downward. Approach with extra gentleness. "
        "Do NOT point this out directly. Just be more present and warm."
    ),
    Trajectory.stable: (
        "User's mood has been relatively steady. No special handling needed."
    ),
}

_HEADER = "EMOTIONAL INTELLIGENCE CONTEXT:"

_GUIDELINES = """GUIDELINES:
- These are subtle cues to help you be more attuned, not scripts to follow
- User's current message always takes priority
- Never make the user feel observed or analyzed
- If in doubt, just be present without using any of this context"""


def relative_day(days_ago: int) -> str:
    if days_ago <= 0:
        return "today"
    if days_ago == 1:
        return "yesterday"
    return f"{days_ago} days ago"


def _trajectory_block(trajectory: Trajectory) -> str:
    return (
        "MOOD TRAJECTORY:\n"
        f"- Recent trend: {trajectory.value}\n"
        f"- {_TRAJECTORY_GUIDANCE[trajectory]}"
    )


def _return_warmth_block(absence: AbsenceState) -> str:
    return (
        "RETURN WARMTH:\n"
        f"- User is returning after {absence.absence_description}\n"
        "- Welcome them back gently: \"It's good to see you\" or \"I'm glad you're here\"\n"
        "- NEVER say \"I missed you\" or \"Where have you been?\" or make them feel guilty\n"
        "- Don't make a big deal of it. A brief warm acknowledgment, then follow their lead"
    )


def _first_interaction_block() -> str:
    return (
        "FIRST INTERACTION:\n"
        "- This appears to be the user's first message\n"
        "- Be warm and welcoming without being overwhelming\n"
        "- Let them set the tone"
    )


def _checkback_block(checkbacks: list[Checkback]) -> str:
    topics = "; ".join(
        f"\"{c.content}\" ({c.type}, mentioned {relative_day(c.days_ago)})"
        for c in checkbacks
    )
    return (
        "GENTLE CHECK-BACKS (optional):\n"
        f"- Recent topics from memory: {topics}\n"
        "- If natural and the moment feels right, you may gently reference: "
        "\"I remember you mentioned [topic]. How's that been going?\"\n"
        "- NEVER force a check-back if user seems to want to talk about something else\n"
        "- Maximum one check-back per conversation\n"
        "- Skip entirely if user is distressed or focused on something new"
    )


def render_context(result: ContextResult) -> Optional[str]:
    """Assemble labeled blocks. Returns None when no block applies."""
    parts: list[str] = []

    if result.trajectory is not None:
        parts.append(_trajectory_block(Trajectory(result.trajectory)))

    if result.absence is not None:
        if result.absence.is_returning:
            parts.append(_return_warmth_block(result.absence))
        elif result.absence.is_first_interaction:
            parts.append(_first_interaction_block())

    if result.checkbacks:
        parts.append(_checkback_block(result.checkbacks))

    if not parts:
        return None

    body = "\n\n".join(parts)
    return f"{_HEADER}\n\n{body}\n\n{_GUIDELINES}"


# ---------------------------------------------------------------------------
# Composing
# ---------------------------------------------------------------------------

def _isolated(
    run: Callable[[], Outcome[T]],
    component: str,
    audit: AuditLog,
    audit_subject: Optional[str],
    trigger: Trigger,
    default: Optional[T] = None,
) -> Outcome[T]:
    """Run one analyzer; an escaped exception becomes an unavailable outcome."""
    try:
        return run()
    except Exception as exc:
        audit.emotional_intelligence_fallback(audit_subject, exc, component, trigger)
        return Outcome.unavailable(component, error_message(exc), default=default)


def collect_context(
    signal_store: SignalStore,
    memory_store: SignalStore,
    subjects: SubjectIdentifiers,
    audit: AuditLog,
    policy: EmotionalIntelligencePolicy = DEFAULT_EI_POLICY,
    now: Optional[datetime] = None,
    trigger: Trigger = Trigger.user_message,
) -> ContextResult:
    """Run the three analyzers. Partial results are expected."""
    now = now or utcnow()
    who = subjects.audit_subject
    common = dict(audit=audit, policy=policy, now=now, trigger=trigger, audit_subject=who)

    trajectory = _isolated(
        lambda: get_mood_trajectory(signal_store, subjects.signal_subject, **common),
        "mood_trajectory", audit, who, trigger,
    )
    absence = _isolated(
        lambda: get_absence_context(signal_store, subjects.signal_subject, **common),
        "absence_context", audit, who, trigger,
    )
    checkbacks = _isolated(
        lambda: get_checkback_topics(memory_store, subjects.memory_subject, **common),
        "checkback_topics", audit, who, trigger, default=[],
    )

    return ContextResult(
        trajectory=trajectory.value if trajectory.available else None,
        absence=absence.value if absence.available else None,
        checkbacks=checkbacks.value_or([]),
    )


# ---------------------------------------------------------------------------
# Public: main entry point
# ---------------------------------------------------------------------------

def build_emotional_intelligence_context(
    signal_store: SignalStore,
    subjects: SubjectIdentifiers,
    audit: AuditLog,
    is_crisis_mode: bool = False,
    memory_store: Optional[SignalStore] = None,
    policy: EmotionalIntelligencePolicy = DEFAULT_EI_POLICY,
    now: Optional[datetime] = None,
    trigger: Trigger = Trigger.user_message,
) -> Optional[str]:
    """
    Compose the emotional intelligence context for one chat turn.

    Returns the guidance text, or None when crisis mode is on, when no
    signal fired, or when anything went wrong. Never raises.
    """
    who = subjects.audit_subject if subjects is not None else None
    try:
        if is_crisis_mode:
            audit.emotional_intelligence_blocked(who, "crisis_mode", trigger)
            return None

        result = collect_context(
            signal_store,
            memory_store if memory_store is not None else signal_store,
            subjects,
            audit,
            policy=policy,
            now=now,
            trigger=trigger,
        )
        text = render_context(result)

        audit.emotional_intelligence_used(
            who,
            trajectory=result.trajectory.value if result.trajectory is not None else None,
            is_returning=result.is_returning,
            checkback_count=len(result.checkbacks),
            trigger=trigger,
        )
        return text
    except Exception as exc:
        try:
            audit.emotional_intelligence_fallback(who, exc, COMPONENT, trigger)
        except Exception as audit_exc:
            logger.error(
                "context composer failed and audit is unavailable: {}",
                error_message(audit_exc),
            )
        return None
