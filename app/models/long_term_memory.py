"""
LongTermMemory: a remembered topic owned by the long-term memory service.

kind values read by the engine:
  "themes"    recurring subjects the user brings up
  "goals"     things the user said they want to work towards
  "triggers"  situations the user described as hard

Other kinds may exist; the engine only ever reads active rows.
"""
from datetime import datetime
import enum

from sqlalchemy import Integer, String, Text, Boolean, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class MemoryKind(str, enum.Enum):
    themes = "themes"
    goals = "goals"
    triggers = "triggers"
    preferences = "preferences"
    people = "people"


class LongTermMemory(Base):
    __tablename__ = "long_term_memories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
        index=True,
    )
