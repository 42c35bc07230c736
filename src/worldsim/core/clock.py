"""
Simulation calendar, leap occurrences and valley time zones.

The calendar has 24-hour days, 6-day weeks, 30-day months and 12-month
(360-day) years. Twice a year, when day-of-year 120 and 240 begin, a leap
occurrence freezes the calendar date for 60 hours (72 hours in every
fourth year, starting with year 0) while the hour counter keeps going.
``hour_of_day`` always follows the raw counter.

The continent has four valleys whose local time of day is shifted relative
to Day valley: Dawn is one period ahead, Dusk one behind, Night opposite.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

HOURS_PER_DAY = 24
DAYS_PER_WEEK = 6
DAYS_PER_MONTH = 30
MONTHS_PER_YEAR = 12
DAYS_PER_YEAR = DAYS_PER_MONTH * MONTHS_PER_YEAR
HOURS_PER_WEEK = HOURS_PER_DAY * DAYS_PER_WEEK
CASCADE_WEEK_HOURS = 168

LEAP_DAYS = (120, 240)
LEAP_HOURS = 60
QUADRENNIAL_LEAP_HOURS = 72

DAY_NAMES = ("Solday", "Lunday", "Marday", "Merday", "Jovday", "Venday")
MONTH_NAMES = (
    "Primos", "Secundos", "Tertios", "Quartos", "Quintos", "Sextos",
    "Septimos", "Octavos", "Novenos", "Decimios", "Undecimos", "Decimoseg",
)


class TimeOfDay(str, Enum):
    DAWN = "dawn"
    DAY = "day"
    DUSK = "dusk"
    NIGHT = "night"


_CYCLE = (TimeOfDay.DAWN, TimeOfDay.DAY, TimeOfDay.DUSK, TimeOfDay.NIGHT)


class Valley(str, Enum):
    DAY = "day"
    DAWN = "dawn"
    DUSK = "dusk"
    NIGHT = "night"


VALLEY_OFFSETS: dict[Valley, int] = {
    Valley.DAY: 0,
    Valley.DAWN: 6,
    Valley.DUSK: -6,
    Valley.NIGHT: 12,
}

# Steps along the Dawn -> Day -> Dusk -> Night cycle
_VALLEY_SHIFT: dict[Valley, int] = {
    Valley.DAY: 0,
    Valley.DAWN: 1,
    Valley.DUSK: -1,
    Valley.NIGHT: 2,
}


# ---------------------------------------------------------------------------
# Leap arithmetic
# ---------------------------------------------------------------------------

def leap_hours(year: int) -> int:
    """Length of each leap occurrence in *year*."""
    return QUADRENNIAL_LEAP_HOURS if year % 4 == 0 else LEAP_HOURS


def year_hours(year: int) -> int:
    return DAYS_PER_YEAR * HOURS_PER_DAY + len(LEAP_DAYS) * leap_hours(year)


_FOUR_YEAR_HOURS = sum(year_hours(y) for y in range(4))


def split_year(hour: int) -> tuple[int, int]:
    """Return ``(year, hour_within_year)`` for a raw hour counter."""
    if hour < 0:
        raise ValueError(f"hour must be non-negative, got {hour}")
    cycles, rest = divmod(hour, _FOUR_YEAR_HOURS)
    year = cycles * 4
    while rest >= year_hours(year):
        rest -= year_hours(year)
        year += 1
    return year, rest


def _effective_hour(hour_in_year: int, leap: int) -> tuple[int, bool, int]:
    """Map a raw in-year hour to calendar hours with leap windows removed.

    Returns ``(effective_hour, in_leap, leap_hours_remaining)``.
    """
    skipped = 0
    for leap_day in LEAP_DAYS:
        start = leap_day * HOURS_PER_DAY + skipped
        if hour_in_year < start:
            break
        if hour_in_year < start + leap:
            return leap_day * HOURS_PER_DAY, True, start + leap - hour_in_year
        skipped += leap
    return hour_in_year - skipped, False, 0


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CalendarDate:
    """Calendar reading of one raw hour. Day/month numbers are 1-based."""

    hour: int
    year: int
    day_of_year: int  # 0-based
    month: int
    day_of_month: int
    day_of_week: int  # 0-based index into DAY_NAMES
    hour_of_day: int
    in_leap: bool
    leap_hours_remaining: int
    time_of_day: TimeOfDay

    @property
    def day_name(self) -> str:
        return DAY_NAMES[self.day_of_week]

    @property
    def month_name(self) -> str:
        return MONTH_NAMES[self.month - 1]

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["time_of_day"] = self.time_of_day.value
        d["day_name"] = self.day_name
        d["month_name"] = self.month_name
        d["formatted"] = format_date(self)
        return d


def time_of_day(hour: int) -> TimeOfDay:
    """Base (Day valley) time of day for a raw hour."""
    h = hour % HOURS_PER_DAY
    if 5 <= h < 12:
        return TimeOfDay.DAWN
    if 12 <= h < 17:
        return TimeOfDay.DAY
    if 17 <= h < 21:
        return TimeOfDay.DUSK
    return TimeOfDay.NIGHT


def valley_time_of_day(valley: Valley | str, hour: int) -> TimeOfDay:
    """Local time of day in *valley*, derived from the base reading."""
    base = time_of_day(hour)
    shift = _VALLEY_SHIFT[Valley(valley)]
    return _CYCLE[(_CYCLE.index(base) + shift) % len(_CYCLE)]


def valley_offset(from_valley: Valley | str, to_valley: Valley | str) -> int:
    """Hours to add to a *from_valley* time to get *to_valley* local time."""
    return VALLEY_OFFSETS[Valley(to_valley)] - VALLEY_OFFSETS[Valley(from_valley)]


def calendar_date(hour: int) -> CalendarDate:
    year, in_year = split_year(hour)
    effective, in_leap, remaining = _effective_hour(in_year, leap_hours(year))
    day_of_year = effective // HOURS_PER_DAY
    return CalendarDate(
        hour=hour,
        year=year,
        day_of_year=day_of_year,
        month=day_of_year // DAYS_PER_MONTH + 1,
        day_of_month=day_of_year % DAYS_PER_MONTH + 1,
        day_of_week=day_of_year % DAYS_PER_WEEK,
        hour_of_day=hour % HOURS_PER_DAY,
        in_leap=in_leap,
        leap_hours_remaining=remaining,
        time_of_day=time_of_day(hour),
    )


def format_date(date: CalendarDate, include_time: bool = True) -> str:
    """E.g. ``"Lunday, 2 Primos Year 0, 05:00"``."""
    text = f"{date.day_name}, {date.day_of_month} {date.month_name} Year {date.year}"
    if include_time:
        text += f", {date.hour_of_day:02d}:00"
    return text


class SimulationClock:
    """Calendar view over a world's monotonic hour counter.

    The counter itself lives on the world so that snapshots and rollback
    cover it; the clock only reads it and advances it.
    """

    def __init__(self, world: Any):
        self.world = world

    @property
    def current_hour(self) -> int:
        return self.world.current_hour

    def advance(self) -> int:
        self.world.current_hour += 1
        return self.world.current_hour

    @staticmethod
    def is_day_boundary(hour: int) -> bool:
        return hour > 0 and hour % HOURS_PER_DAY == 0

    @staticmethod
    def is_week_boundary(hour: int) -> bool:
        # Cities run on a 168-hour cadence, independent of the 6-day calendar week
        return hour > 0 and hour % CASCADE_WEEK_HOURS == 0

    def date(self) -> CalendarDate:
        return calendar_date(self.current_hour)

    def valley_times(self) -> dict[str, str]:
        return {v.value: valley_time_of_day(v, self.current_hour).value for v in Valley}
