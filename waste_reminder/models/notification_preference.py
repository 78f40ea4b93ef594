from __future__ import annotations

from datetime import datetime
from enum import Enum
from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from waste_reminder.db.base import Base


class NotificationType(str, Enum):
    DAY_BEFORE = "day_before"
    SAME_DAY = "same_day"


class NotificationPreference(Base):
    """When to text a user about one address. hour/minute are Central European wall-clock time, not UTC."""

    __tablename__ = "notification_preferences"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    address_id: Mapped[int] = mapped_column(ForeignKey("addresses.id", ondelete="CASCADE"), nullable=False, index=True)
    notification_type: Mapped[str] = mapped_column(String(16), nullable=False)  # day_before | same_day
    hour: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    minute: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow
    )

    user: Mapped["User"] = relationship("User", back_populates="notification_preferences")
    address: Mapped["Address"] = relationship("Address")
