"""
Why does (or doesn't) a user get SMS reminders? Collects everything the matcher looks at for one user
and lists the blocking issues. Used by the internal API and scripts/diagnose_notifications.py.
"""

from datetime import datetime, timezone

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from waste_reminder.core.phone import is_valid_phone
from waste_reminder.models.address import Address, City, Street
from waste_reminder.models.notification_preference import NotificationPreference
from waste_reminder.models.user import User
from waste_reminder.services.local_time import resolve_slot
from waste_reminder.services.matcher import merge_waste_types, waste_types_due


class DiagnosisUser(BaseModel):
    id: int
    email: str
    phone: str | None
    phone_valid: bool


class DiagnosisAddress(BaseModel):
    address_id: int
    city_id: int | None
    street_id: int | None
    city_name: str | None
    street_name: str | None


class DiagnosisPreference(BaseModel):
    id: int
    address_id: int
    notification_type: str
    hour: int
    minute: int
    enabled: bool


class DiagnosisTiming(BaseModel):
    now: str
    local_hour: int
    local_minute: int
    is_summer_time: bool
    today: str
    tomorrow: str


class DueWasteTypes(BaseModel):
    tomorrow: list[str] = []
    today: list[str] = []


class NotificationDiagnosis(BaseModel):
    user: DiagnosisUser
    addresses: list[DiagnosisAddress]
    notification_preferences: list[DiagnosisPreference]
    timing: DiagnosisTiming
    waste_schedules: dict[int, DueWasteTypes]  # by address_id
    issues: list[str]
    would_receive_notification: bool


async def diagnose_user(
    session: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> NotificationDiagnosis | None:
    """Return the diagnosis, or None if the user does not exist."""
    user = await session.get(User, user_id)
    if user is None:
        return None
    now = now or datetime.now(timezone.utc)
    slot = resolve_slot(now)

    r = await session.execute(
        select(Address.id, Address.city_id, Address.street_id, City.name, Street.name)
        .outerjoin(City, Address.city_id == City.id)
        .outerjoin(Street, Address.street_id == Street.id)
        .where(Address.user_id == user_id)
        .order_by(Address.id)
    )
    addresses = [
        DiagnosisAddress(address_id=a_id, city_id=c_id, street_id=s_id, city_name=c_name, street_name=s_name)
        for a_id, c_id, s_id, c_name, s_name in r.all()
    ]

    r = await session.execute(
        select(NotificationPreference)
        .where(NotificationPreference.user_id == user_id)
        .order_by(NotificationPreference.id)
    )
    prefs = [
        DiagnosisPreference(
            id=p.id,
            address_id=p.address_id,
            notification_type=p.notification_type,
            hour=p.hour,
            minute=p.minute,
            enabled=p.enabled,
        )
        for p in r.scalars().all()
    ]

    complete = [a for a in addresses if a.city_id and a.street_id]
    city_ids = {a.city_id for a in complete}
    due_tomorrow = await waste_types_due(session, city_ids, slot.tomorrow)
    due_today = await waste_types_due(session, city_ids, slot.today)
    schedules: dict[int, DueWasteTypes] = {}
    for a in complete:
        tomorrow = merge_waste_types(due_tomorrow.get((a.city_id, a.street_id), []), due_tomorrow.get((a.city_id, None), []))
        today = merge_waste_types(due_today.get((a.city_id, a.street_id), []), due_today.get((a.city_id, None), []))
        schedules[a.address_id] = DueWasteTypes(
            tomorrow=[wt.waste_type_name or "unknown" for wt in tomorrow],
            today=[wt.waste_type_name or "unknown" for wt in today],
        )

    phone_valid = is_valid_phone(user.phone)
    issues: list[str] = []
    if not user.phone:
        issues.append("NO_PHONE")
    elif not phone_valid:
        issues.append(f'INVALID_PHONE_FORMAT: "{user.phone}"')

    if not addresses:
        issues.append("NO_ADDRESSES")
    else:
        missing_city = [str(a.address_id) for a in addresses if not a.city_id]
        missing_street = [str(a.address_id) for a in addresses if not a.street_id]
        if missing_city:
            issues.append(f"MISSING_CITY: {','.join(missing_city)}")
        if missing_street:
            issues.append(f"MISSING_STREET: {','.join(missing_street)}")

    if not prefs:
        issues.append("NO_NOTIFICATION_PREFS")
    else:
        if all(not p.enabled for p in prefs):
            issues.append("ALL_NOTIFICATIONS_DISABLED")
        enabled_hours = [p.hour for p in prefs if p.enabled]
        if enabled_hours and slot.local_hour not in enabled_hours:
            hours = ",".join(str(h) for h in enabled_hours)
            issues.append(f"HOUR_MISMATCH: prefs={hours} current_local={slot.local_hour}")

    if complete and all(not s.tomorrow and not s.today for s in schedules.values()):
        issues.append(f"NO_WASTE_SCHEDULES_FOR_DATES: tomorrow={slot.tomorrow_str} today={slot.today_str}")

    return NotificationDiagnosis(
        user=DiagnosisUser(id=user.id, email=user.email, phone=user.phone, phone_valid=phone_valid),
        addresses=addresses,
        notification_preferences=prefs,
        timing=DiagnosisTiming(
            now=now.isoformat(),
            local_hour=slot.local_hour,
            local_minute=slot.local_minute,
            is_summer_time=slot.is_summer_time,
            today=slot.today_str,
            tomorrow=slot.tomorrow_str,
        ),
        waste_schedules=schedules,
        issues=issues,
        would_receive_notification=not issues,
    )
