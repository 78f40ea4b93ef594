"""One row per intended SMS delivery; the unique key makes queue redelivery idempotent."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from waste_reminder.db.base import Base


class NotificationStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    DELIVERED = "delivered"


# A log in one of these states means the SMS went out; never send again for the same key
EFFECTIVE_STATUSES = frozenset({NotificationStatus.SENT.value, NotificationStatus.DELIVERED.value})


class NotificationLog(Base):
    __tablename__ = "notification_logs"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "address_id",
            "scheduled_date",
            "notification_preference_id",
            name="uq_notification_log_delivery",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    address_id: Mapped[int] = mapped_column(ForeignKey("addresses.id", ondelete="CASCADE"), nullable=False)
    notification_preference_id: Mapped[int] = mapped_column(
        ForeignKey("notification_preferences.id", ondelete="CASCADE"), nullable=False
    )
    waste_type_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    scheduled_date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)  # collection day, YYYY-MM-DD
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)
    sms_content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", index=True)
    serwersms_message_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    serwersms_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    message_parts: Mapped[int | None] = mapped_column(Integer, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
