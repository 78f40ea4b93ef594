"""
Notification log store: insert pending, update outcome, look up by idempotency key
(user_id, address_id, scheduled_date, notification_preference_id).
Writes commit immediately so concurrent workers see the row before the gateway call.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from waste_reminder.config import settings
from waste_reminder.models.notification_log import NotificationLog, NotificationStatus

logger = logging.getLogger(__name__)


class LogAlreadyClaimed(Exception):
    """The key already has a log row that this worker may not take over."""

    def __init__(self, log_id: int | None, status: str | None):
        super().__init__(f"notification log {log_id} already {status}")
        self.log_id = log_id
        self.status = status


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _key_clause(user_id: int, address_id: int, scheduled_date: str, notification_preference_id: int):
    return and_(
        NotificationLog.user_id == user_id,
        NotificationLog.address_id == address_id,
        NotificationLog.scheduled_date == scheduled_date,
        NotificationLog.notification_preference_id == notification_preference_id,
    )


async def get_log_by_key(
    session: AsyncSession,
    user_id: int,
    address_id: int,
    scheduled_date: str,
    notification_preference_id: int,
) -> NotificationLog | None:
    r = await session.execute(
        select(NotificationLog)
        .where(_key_clause(user_id, address_id, scheduled_date, notification_preference_id))
        .execution_options(populate_existing=True)
    )
    return r.scalar_one_or_none()


async def create_pending_log(
    session: AsyncSession,
    *,
    user_id: int,
    address_id: int,
    notification_preference_id: int,
    waste_type_ids: list[int],
    scheduled_date: str,
    phone_number: str,
    sms_content: str,
    stale_after_seconds: int | None = None,
) -> NotificationLog:
    """
    Insert a pending row for the key. If the unique constraint fires, take over the existing row
    when it is failed or a pending row abandoned for longer than stale_after_seconds.
    Raises LogAlreadyClaimed otherwise (already sent, or another worker is mid-delivery).
    """
    now = _utcnow()
    log = NotificationLog(
        user_id=user_id,
        address_id=address_id,
        notification_preference_id=notification_preference_id,
        waste_type_ids=list(waste_type_ids),
        scheduled_date=scheduled_date,
        phone_number=phone_number,
        sms_content=sms_content,
        status=NotificationStatus.PENDING.value,
        attempts=1,
        created_at=now,
        updated_at=now,
    )
    session.add(log)
    try:
        await session.commit()
        return log
    except IntegrityError:
        await session.rollback()

    stale = settings.pending_log_stale_seconds if stale_after_seconds is None else stale_after_seconds
    cutoff = now - timedelta(seconds=stale)
    key = _key_clause(user_id, address_id, scheduled_date, notification_preference_id)
    result = await session.execute(
        update(NotificationLog)
        .where(
            key,
            or_(
                NotificationLog.status == NotificationStatus.FAILED.value,
                and_(
                    NotificationLog.status == NotificationStatus.PENDING.value,
                    NotificationLog.updated_at < cutoff,
                ),
            ),
        )
        .values(
            status=NotificationStatus.PENDING.value,
            waste_type_ids=list(waste_type_ids),
            phone_number=phone_number,
            sms_content=sms_content,
            error_message=None,
            attempts=NotificationLog.attempts + 1,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    existing = await get_log_by_key(session, user_id, address_id, scheduled_date, notification_preference_id)
    if result.rowcount == 1 and existing is not None:
        logger.info("Notification log %s reclaimed for attempt %s", existing.id, existing.attempts)
        return existing
    raise LogAlreadyClaimed(
        existing.id if existing else None,
        existing.status if existing else None,
    )


async def update_log_status(
    session: AsyncSession,
    log_id: int,
    status: NotificationStatus | str,
    *,
    serwersms_status: str | None = None,
    serwersms_message_id: str | None = None,
    message_parts: int | None = None,
    error_message: str | None = None,
    delivered_at: datetime | None = None,
) -> None:
    status = NotificationStatus(status)
    now = _utcnow()
    values: dict = {"status": status.value, "updated_at": now}
    if serwersms_status is not None:
        values["serwersms_status"] = serwersms_status
    if serwersms_message_id is not None:
        values["serwersms_message_id"] = serwersms_message_id
    if message_parts is not None:
        values["message_parts"] = message_parts
    if error_message is not None:
        values["error_message"] = error_message[:2000]
    if status == NotificationStatus.SENT:
        values["sent_at"] = now
    if status == NotificationStatus.DELIVERED:
        values["delivered_at"] = delivered_at or now
    await session.execute(
        update(NotificationLog)
        .where(NotificationLog.id == log_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
