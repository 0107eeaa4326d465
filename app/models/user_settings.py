from datetime import datetime
import enum

from sqlalchemy import String, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class ConsentStatus(str, enum.Enum):
    undecided = "undecided"
    yes = "yes"
    no = "no"


class UserSettings(Base):
    """Per-user feature settings. Currently only pattern-reflection consent."""

    __tablename__ = "user_settings"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    pattern_reflection_consent: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ConsentStatus.undecided.value
    )
    pattern_reflection_enabled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    pattern_reflection_last_prompt_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
