"""
Matcher: once per scheduling tick, find every (user, address, preference) whose local delivery hour is now
and whose address has a collection tomorrow (day_before) or today (same_day); batch-enqueue one job per match.
"""

import asyncio
import json
import logging
from collections import defaultdict
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from waste_reminder.config import settings
from waste_reminder.core.metrics import JOBS_ENQUEUED, MATCHER_RUNS
from waste_reminder.core.phone import compact_phone, is_valid_phone
from waste_reminder.models.address import Address, City, Street
from waste_reminder.models.notification_preference import NotificationPreference, NotificationType
from waste_reminder.models.user import User
from waste_reminder.models.waste_schedule import WasteSchedule, WasteType
from waste_reminder.schemas.notification_job import JobWasteType, NotificationJob
from waste_reminder.services.local_time import TimeSlot, resolve_slot
from waste_reminder.services.notification_queue import NotificationQueue

logger = logging.getLogger(__name__)


def parse_schedule_days(raw: str | None) -> set[int]:
    """Decode the JSON day list of a schedule row; malformed rows count as no collection."""
    if not raw:
        return set()
    try:
        days = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Matcher: malformed schedule days %r", raw[:100])
        return set()
    if not isinstance(days, list):
        return set()
    return {int(d) for d in days if isinstance(d, int) or (isinstance(d, str) and d.isdigit())}


def notification_type_for(slot: TimeSlot, target_date: date) -> NotificationType | None:
    """day_before targets tomorrow's collection, same_day targets today's."""
    if target_date == slot.tomorrow:
        return NotificationType.DAY_BEFORE
    if target_date == slot.today:
        return NotificationType.SAME_DAY
    return None


async def waste_types_due(
    session: AsyncSession,
    city_ids: set[int],
    target_date: date,
) -> dict[tuple[int, int | None], list[JobWasteType]]:
    """
    Waste types collected on target_date, keyed by (city_id, street_id).
    street_id None marks a city-wide schedule.
    """
    if not city_ids:
        return {}
    r = await session.execute(
        select(
            WasteSchedule.city_id,
            WasteSchedule.street_id,
            WasteSchedule.waste_type_id,
            WasteType.name,
            WasteSchedule.days,
        )
        .outerjoin(WasteType, WasteSchedule.waste_type_id == WasteType.id)
        .where(
            WasteSchedule.city_id.in_(city_ids),
            WasteSchedule.year == target_date.year,
            WasteSchedule.month == str(target_date.month),
        )
        .order_by(WasteSchedule.id)
    )
    out: dict[tuple[int, int | None], list[JobWasteType]] = defaultdict(list)
    for city_id, street_id, waste_type_id, waste_type_name, days in r.all():
        if target_date.day not in parse_schedule_days(days):
            continue
        out[(city_id, street_id)].append(
            JobWasteType(waste_type_id=waste_type_id, waste_type_name=waste_type_name or "")
        )
    return out


def merge_waste_types(*groups: list[JobWasteType]) -> list[JobWasteType]:
    seen: set[int] = set()
    merged: list[JobWasteType] = []
    for group in groups:
        for wt in group:
            if wt.waste_type_id in seen:
                continue
            seen.add(wt.waste_type_id)
            merged.append(wt)
    return merged


async def find_candidates(
    session: AsyncSession,
    slot: TimeSlot,
    target_date: date,
    *,
    match_minute: bool | None = None,
) -> list[NotificationJob]:
    """
    Jobs for one target date: enabled preferences at the slot's local hour, user with a phone,
    address with city and street, preference type matching the target, and at least one waste type due.
    """
    notification_type = notification_type_for(slot, target_date)
    if notification_type is None:
        return []
    match_minute = settings.matcher_match_minute if match_minute is None else match_minute

    conditions = [
        NotificationPreference.enabled.is_(True),
        NotificationPreference.hour == slot.local_hour,
        NotificationPreference.notification_type == notification_type.value,
        User.phone.isnot(None),
        Address.city_id.isnot(None),
        Address.street_id.isnot(None),
    ]
    if match_minute:
        conditions.append(NotificationPreference.minute == slot.local_minute)

    r = await session.execute(
        select(
            NotificationPreference.id,
            User.id,
            User.phone,
            User.preferred_language,
            Address.id,
            Address.city_id,
            Address.street_id,
            City.name,
            Street.name,
        )
        .join(User, NotificationPreference.user_id == User.id)
        .join(Address, NotificationPreference.address_id == Address.id)
        .outerjoin(City, Address.city_id == City.id)
        .outerjoin(Street, Address.street_id == Street.id)
        .where(*conditions)
        .order_by(NotificationPreference.id)
    )
    rows = r.all()
    if not rows:
        return []

    due = await waste_types_due(session, {row[5] for row in rows}, target_date)
    if not due:
        return []

    jobs: list[NotificationJob] = []
    for pref_id, user_id, phone, language, address_id, city_id, street_id, city_name, street_name in rows:
        if not is_valid_phone(phone):
            logger.debug("Matcher: skipping user_id=%s, phone not deliverable", user_id)
            continue
        waste_types = merge_waste_types(due.get((city_id, street_id), []), due.get((city_id, None), []))
        if not waste_types:
            continue
        jobs.append(
            NotificationJob(
                user_id=user_id,
                phone=compact_phone(phone),
                address_id=address_id,
                city_id=city_id,
                street_id=street_id,
                city_name=city_name or "",
                street_name=street_name or "",
                notification_preference_id=pref_id,
                notification_type=notification_type,
                waste_types=waste_types,
                scheduled_date=target_date.isoformat(),
                language=language or "pl",
            )
        )
    return jobs


async def run_matcher(
    session_maker: async_sessionmaker,
    queue: NotificationQueue,
    now: datetime | None = None,
) -> int:
    """Evaluate the current slot and enqueue the whole batch in one call. Returns the number of jobs."""
    slot = resolve_slot(now)
    logger.info(
        "Matcher tick: local %02d:%02d (summer_time=%s) today=%s tomorrow=%s",
        slot.local_hour,
        slot.local_minute,
        slot.is_summer_time,
        slot.today_str,
        slot.tomorrow_str,
    )

    async def collect(target_date: date) -> list[NotificationJob]:
        async with session_maker() as session:
            return await find_candidates(session, slot, target_date)

    tomorrow_jobs, today_jobs = await asyncio.gather(collect(slot.tomorrow), collect(slot.today))
    jobs = [*tomorrow_jobs, *today_jobs]
    logger.info("Matcher: found %s users to notify", len(jobs))
    if jobs:
        await queue.enqueue_batch(jobs)
        JOBS_ENQUEUED.inc(len(jobs))
        logger.info("Matcher: queued %s notifications", len(jobs))
    return len(jobs)


async def run_matcher_job() -> None:
    """
    Scheduled job (every minute). A failed tick only logs; the next tick re-evaluates,
    and consumer idempotency absorbs jobs emitted again for the same hour.
    """
    from waste_reminder.db.session import async_session_maker
    from waste_reminder.services.notification_queue import get_notification_queue

    try:
        await run_matcher(async_session_maker, get_notification_queue())
        MATCHER_RUNS.labels(outcome="ok").inc()
    except Exception as e:
        MATCHER_RUNS.labels(outcome="error").inc()
        logger.exception("Matcher: run failed: %s", e)
