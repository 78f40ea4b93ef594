"""Pytest configuration and shared fixtures: file-backed SQLite per test and seed helpers."""

import json
import os
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Set env before app imports so config/engine pick it up
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["QUEUE_BACKEND"] = "memory"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["SERWERSMS_API_TOKEN"] = "test-serwersms-token"
os.environ["SMS_PACING_SECONDS"] = "0"
os.environ["LOCAL_TIME_MODE"] = "zoneinfo"
os.environ["LOCAL_TIMEZONE"] = "Europe/Warsaw"

import waste_reminder.models  # noqa: E402,F401
from waste_reminder.db.base import Base  # noqa: E402
from waste_reminder.models import (  # noqa: E402
    Address,
    City,
    NotificationPreference,
    NotificationType,
    Street,
    User,
    WasteSchedule,
    WasteType,
)


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    """One SQLite file per test; every session gets its own connection like in production."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest.fixture
def seed_subscriber(session_maker):
    """
    Factory: user with one address and notification preferences, committed.
    Defaults give a Gdańsk / Długa subscriber with day_before@19:00 and same_day@07:00.
    """

    async def _seed(
        *,
        email: str = "jan@example.com",
        phone: str | None = "+48 600 100 200",
        language: str = "pl",
        city_name: str = "Gdańsk",
        street_name: str | None = "Długa",
        city_id: int | None = None,
        preferences=((NotificationType.DAY_BEFORE, 19, 0, True), (NotificationType.SAME_DAY, 7, 0, True)),
    ) -> SimpleNamespace:
        async with session_maker() as s:
            user = User(email=email, phone=phone, preferred_language=language)
            s.add(user)
            if city_id is None:
                city = City(name=city_name)
                s.add(city)
                await s.flush()
                city_id = city.id
            street_id = None
            if street_name is not None:
                street = Street(name=street_name, city_id=city_id)
                s.add(street)
                await s.flush()
                street_id = street.id
            await s.flush()
            address = Address(user_id=user.id, city_id=city_id, street_id=street_id, is_default=True)
            s.add(address)
            await s.flush()
            prefs = [
                NotificationPreference(
                    user_id=user.id,
                    address_id=address.id,
                    notification_type=notification_type.value,
                    hour=hour,
                    minute=minute,
                    enabled=enabled,
                )
                for notification_type, hour, minute, enabled in preferences
            ]
            s.add_all(prefs)
            await s.commit()
            return SimpleNamespace(
                user_id=user.id,
                address_id=address.id,
                city_id=city_id,
                street_id=street_id,
                preference_ids={NotificationType(p.notification_type): p.id for p in prefs},
            )

    return _seed


@pytest.fixture
def add_schedule(session_maker):
    """Factory: waste type plus one schedule row (city-wide when street_id is None). Returns the waste type id."""

    async def _add(
        city_id: int,
        waste_type_name: str,
        *,
        year: int,
        month: int,
        days: list[int],
        street_id: int | None = None,
        waste_type_id: int | None = None,
    ) -> int:
        async with session_maker() as s:
            if waste_type_id is None:
                waste_type = WasteType(name=waste_type_name)
                s.add(waste_type)
                await s.flush()
                waste_type_id = waste_type.id
            s.add(
                WasteSchedule(
                    city_id=city_id,
                    street_id=street_id,
                    waste_type_id=waste_type_id,
                    year=year,
                    month=str(month),
                    days=json.dumps(days),
                )
            )
            await s.commit()
            return waste_type_id

    return _add
