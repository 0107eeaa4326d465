from .mood_checkin import MoodCheckin
from .activity_log import ActivityLog
from .long_term_memory import LongTermMemory, MemoryKind
from .user_settings import UserSettings, ConsentStatus
from .audit_event import AuditEvent

__all__ = [
    "MoodCheckin",
    "ActivityLog",
    "LongTermMemory",
    "MemoryKind",
    "UserSettings",
    "ConsentStatus",
    "AuditEvent",
]
