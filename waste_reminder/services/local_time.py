"""
Scheduling slot for the matcher: which local wall-clock hour it is, and which dates are today/tomorrow.
Preferences store Central European time, so the UTC clock has to be converted first.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from waste_reminder.config import settings

MODE_ZONEINFO = "zoneinfo"
MODE_MONTH_HEURISTIC = "month_heuristic"


@dataclass(frozen=True)
class TimeSlot:
    local_hour: int
    local_minute: int
    today: date
    tomorrow: date
    is_summer_time: bool

    @property
    def today_str(self) -> str:
        return self.today.isoformat()

    @property
    def tomorrow_str(self) -> str:
        return self.tomorrow.isoformat()


def _as_utc(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def month_heuristic_offset(utc_now: datetime) -> int:
    """Legacy CET/CEST guess: +2 for April-October (zero-based month index 3..9), else +1."""
    month_index = utc_now.month - 1
    return 2 if 3 <= month_index <= 9 else 1


def resolve_slot(
    now: datetime | None = None,
    mode: str | None = None,
    tz_name: str | None = None,
) -> TimeSlot:
    """
    zoneinfo mode: local hour and local calendar dates from the IANA zone (real DST transitions).
    month_heuristic mode: legacy offset rule with UTC calendar dates, kept for parity checks.
    """
    utc_now = _as_utc(now)
    mode = mode or settings.local_time_mode
    if mode == MODE_MONTH_HEURISTIC:
        offset = month_heuristic_offset(utc_now)
        today = utc_now.date()
        return TimeSlot(
            local_hour=(utc_now.hour + offset) % 24,
            local_minute=utc_now.minute,
            today=today,
            tomorrow=today + timedelta(days=1),
            is_summer_time=offset == 2,
        )
    if mode != MODE_ZONEINFO:
        raise ValueError(f"Unknown local_time_mode: {mode!r}")
    local = utc_now.astimezone(ZoneInfo(tz_name or settings.local_timezone))
    today = local.date()
    return TimeSlot(
        local_hour=local.hour,
        local_minute=local.minute,
        today=today,
        tomorrow=today + timedelta(days=1),
        is_summer_time=bool(local.dst()),
    )
