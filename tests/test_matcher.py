"""Matcher: candidate selection per local hour, waste types due and batch enqueue."""

from datetime import date, datetime, timezone

import pytest

from waste_reminder.models.notification_preference import NotificationType
from waste_reminder.services.local_time import resolve_slot
from waste_reminder.services.matcher import (
    find_candidates,
    merge_waste_types,
    notification_type_for,
    parse_schedule_days,
    run_matcher,
    waste_types_due,
)
from waste_reminder.schemas.notification_job import JobWasteType
from waste_reminder.services.notification_queue import InMemoryNotificationQueue

# 19:00 in Warsaw (CEST) on Monday 2026-10-19; collection tomorrow is 2026-10-20
EVENING = datetime(2026, 10, 19, 17, 0, tzinfo=timezone.utc)
# 07:00 in Warsaw on the collection day
MORNING = datetime(2026, 10, 20, 5, 0, tzinfo=timezone.utc)
COLLECTION_DAY = date(2026, 10, 20)


async def _candidates(session_maker, now, target_date=None, **kwargs):
    slot = resolve_slot(now, mode="zoneinfo")
    async with session_maker() as s:
        return await find_candidates(s, slot, target_date or slot.tomorrow, **kwargs)


def test_parse_schedule_days():
    assert parse_schedule_days("[1, 15, 29]") == {1, 15, 29}
    assert parse_schedule_days('["3", 4]') == {3, 4}
    assert parse_schedule_days("") == set()
    assert parse_schedule_days(None) == set()
    assert parse_schedule_days("{not json") == set()
    assert parse_schedule_days('{"day": 1}') == set()


def test_notification_type_for():
    slot = resolve_slot(EVENING, mode="zoneinfo")
    assert notification_type_for(slot, slot.tomorrow) == NotificationType.DAY_BEFORE
    assert notification_type_for(slot, slot.today) == NotificationType.SAME_DAY
    assert notification_type_for(slot, date(2026, 1, 1)) is None


def test_merge_waste_types_dedupes_by_id():
    a = [JobWasteType(waste_type_id=1, waste_type_name="Plastik")]
    b = [JobWasteType(waste_type_id=1, waste_type_name="Plastik"), JobWasteType(waste_type_id=2, waste_type_name="Szkło")]
    assert [wt.waste_type_id for wt in merge_waste_types(a, b)] == [1, 2]


@pytest.mark.asyncio
async def test_day_before_match_at_preferred_hour(session_maker, seed_subscriber, add_schedule):
    sub = await seed_subscriber()
    await add_schedule(sub.city_id, "Plastik", year=2026, month=10, days=[20], street_id=sub.street_id)

    jobs = await _candidates(session_maker, EVENING)
    assert len(jobs) == 1
    job = jobs[0]
    assert job.user_id == sub.user_id
    assert job.phone == "+48600100200"
    assert job.notification_type == NotificationType.DAY_BEFORE
    assert job.notification_preference_id == sub.preference_ids[NotificationType.DAY_BEFORE]
    assert job.scheduled_date == "2026-10-20"
    assert (job.city_name, job.street_name) == ("Gdańsk", "Długa")
    assert [wt.waste_type_name for wt in job.waste_types] == ["Plastik"]
    assert job.language == "pl"


@pytest.mark.asyncio
async def test_no_match_outside_preferred_hour(session_maker, seed_subscriber, add_schedule):
    sub = await seed_subscriber()
    await add_schedule(sub.city_id, "Plastik", year=2026, month=10, days=[20], street_id=sub.street_id)
    assert await _candidates(session_maker, datetime(2026, 10, 19, 16, 0, tzinfo=timezone.utc)) == []


@pytest.mark.asyncio
async def test_same_day_match_in_the_morning(session_maker, seed_subscriber, add_schedule):
    sub = await seed_subscriber()
    await add_schedule(sub.city_id, "Bio", year=2026, month=10, days=[20], street_id=sub.street_id)

    slot = resolve_slot(MORNING, mode="zoneinfo")
    assert await _candidates(session_maker, MORNING, slot.tomorrow) == []
    [job] = await _candidates(session_maker, MORNING, slot.today)
    assert job.notification_type == NotificationType.SAME_DAY
    assert job.scheduled_date == "2026-10-20"


@pytest.mark.asyncio
async def test_minute_is_ignored_unless_configured(session_maker, seed_subscriber, add_schedule):
    sub = await seed_subscriber(preferences=((NotificationType.DAY_BEFORE, 19, 30, True),))
    await add_schedule(sub.city_id, "Plastik", year=2026, month=10, days=[20], street_id=sub.street_id)
    assert len(await _candidates(session_maker, EVENING, match_minute=False)) == 1
    assert await _candidates(session_maker, EVENING, match_minute=True) == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "seed_kwargs",
    [
        {"phone": None},
        {"phone": "600100200"},  # stored without the +48 prefix
        {"street_name": None},
        {"preferences": ((NotificationType.DAY_BEFORE, 19, 0, False),)},
        {"preferences": ((NotificationType.SAME_DAY, 19, 0, True),)},
    ],
    ids=["no-phone", "bare-phone", "no-street", "disabled", "wrong-type"],
)
async def test_excluded_subscribers(session_maker, seed_subscriber, add_schedule, seed_kwargs):
    sub = await seed_subscriber(**seed_kwargs)
    await add_schedule(sub.city_id, "Plastik", year=2026, month=10, days=[20], street_id=sub.street_id)
    assert await _candidates(session_maker, EVENING) == []


@pytest.mark.asyncio
async def test_no_waste_types_due_means_no_job(session_maker, seed_subscriber, add_schedule):
    sub = await seed_subscriber()
    await add_schedule(sub.city_id, "Plastik", year=2026, month=10, days=[21, 22], street_id=sub.street_id)
    await add_schedule(sub.city_id, "Papier", year=2025, month=10, days=[20], street_id=sub.street_id)
    await add_schedule(sub.city_id, "Szkło", year=2026, month=11, days=[20], street_id=sub.street_id)
    assert await _candidates(session_maker, EVENING) == []


@pytest.mark.asyncio
async def test_city_wide_schedule_merges_with_street_schedule(session_maker, seed_subscriber, add_schedule):
    sub = await seed_subscriber()
    plastic = await add_schedule(sub.city_id, "Plastik", year=2026, month=10, days=[20], street_id=sub.street_id)
    await add_schedule(sub.city_id, "Gabaryty", year=2026, month=10, days=[20])
    await add_schedule(sub.city_id, "Plastik", year=2026, month=10, days=[20], waste_type_id=plastic)

    [job] = await _candidates(session_maker, EVENING)
    assert [wt.waste_type_name for wt in job.waste_types] == ["Plastik", "Gabaryty"]


@pytest.mark.asyncio
async def test_other_street_schedule_does_not_apply(session_maker, seed_subscriber, add_schedule):
    sub = await seed_subscriber()
    other = await seed_subscriber(email="anna@example.com", city_id=sub.city_id, street_name="Mariacka")
    await add_schedule(sub.city_id, "Plastik", year=2026, month=10, days=[20], street_id=other.street_id)

    jobs = await _candidates(session_maker, EVENING)
    assert [j.user_id for j in jobs] == [other.user_id]


@pytest.mark.asyncio
async def test_waste_types_due_keys(session_maker, seed_subscriber, add_schedule):
    sub = await seed_subscriber()
    await add_schedule(sub.city_id, "Plastik", year=2026, month=10, days=[20], street_id=sub.street_id)
    await add_schedule(sub.city_id, "Bio", year=2026, month=10, days=[20])
    async with session_maker() as s:
        due = await waste_types_due(s, {sub.city_id}, COLLECTION_DAY)
        assert await waste_types_due(s, set(), COLLECTION_DAY) == {}
    assert set(due) == {(sub.city_id, sub.street_id), (sub.city_id, None)}


@pytest.mark.asyncio
async def test_run_matcher_enqueues_one_batch(session_maker, seed_subscriber, add_schedule):
    first = await seed_subscriber()
    second = await seed_subscriber(email="ewa@example.com", phone="+48 700 200 300", language="en")
    await add_schedule(first.city_id, "Plastik", year=2026, month=10, days=[20], street_id=first.street_id)
    await add_schedule(second.city_id, "Papier", year=2026, month=10, days=[20])

    queue = InMemoryNotificationQueue()
    assert await run_matcher(session_maker, queue, now=EVENING) == 2
    messages = await queue.receive(10)
    assert {m.job.user_id for m in messages} == {first.user_id, second.user_id}
    assert {m.job.language for m in messages} == {"pl", "en"}


@pytest.mark.asyncio
async def test_run_matcher_nothing_due(session_maker, seed_subscriber):
    await seed_subscriber()
    queue = InMemoryNotificationQueue()
    assert await run_matcher(session_maker, queue, now=EVENING) == 0
    assert len(queue) == 0
