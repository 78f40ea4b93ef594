"""Notification preferences: default pair per address, listing and toggles. Address CRUD calls these."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from waste_reminder.models.notification_preference import NotificationPreference, NotificationType

# (type, hour, minute) created for every new address
DEFAULT_PREFERENCES = (
    (NotificationType.DAY_BEFORE, 19, 0),
    (NotificationType.SAME_DAY, 7, 0),
)


async def create_default_preferences(
    session: AsyncSession,
    user_id: int,
    address_id: int,
) -> list[NotificationPreference]:
    prefs = [
        NotificationPreference(
            user_id=user_id,
            address_id=address_id,
            notification_type=notification_type.value,
            hour=hour,
            minute=minute,
            enabled=True,
        )
        for notification_type, hour, minute in DEFAULT_PREFERENCES
    ]
    session.add_all(prefs)
    await session.flush()
    return prefs


async def list_preferences(
    session: AsyncSession,
    user_id: int,
    address_id: int | None = None,
) -> list[NotificationPreference]:
    q = select(NotificationPreference).where(NotificationPreference.user_id == user_id)
    if address_id is not None:
        q = q.where(NotificationPreference.address_id == address_id)
    r = await session.execute(q.order_by(NotificationPreference.id))
    return list(r.scalars().all())


async def update_preference(
    session: AsyncSession,
    preference_id: int,
    *,
    hour: int | None = None,
    minute: int | None = None,
    enabled: bool | None = None,
) -> NotificationPreference | None:
    """Change delivery time or toggle a preference. Returns None if it does not exist."""
    if hour is not None and not 0 <= hour <= 23:
        raise ValueError("hour must be between 0 and 23")
    if minute is not None and not 0 <= minute <= 59:
        raise ValueError("minute must be between 0 and 59")
    pref = await session.get(NotificationPreference, preference_id)
    if pref is None:
        return None
    if hour is not None:
        pref.hour = hour
    if minute is not None:
        pref.minute = minute
    if enabled is not None:
        pref.enabled = enabled
    await session.flush()
    return pref
