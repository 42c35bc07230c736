"""Tests for the calendar, leap occurrences and valley time zones."""

import pytest

from worldsim.core.clock import (
    SimulationClock,
    TimeOfDay,
    Valley,
    calendar_date,
    format_date,
    leap_hours,
    split_year,
    valley_offset,
    valley_time_of_day,
    year_hours,
)
from worldsim.core.world import World


class TestYears:
    def test_leap_lengths(self):
        assert leap_hours(0) == 72
        assert leap_hours(1) == 60
        assert leap_hours(4) == 72

    def test_year_lengths(self):
        assert year_hours(0) == 8784
        assert year_hours(3) == 8760

    def test_split_year(self):
        assert split_year(0) == (0, 0)
        assert split_year(8783) == (0, 8783)
        assert split_year(8784) == (1, 0)
        assert split_year(8784 + 3 * 8760) == (4, 0)

    def test_negative_hour_rejected(self):
        with pytest.raises(ValueError):
            split_year(-1)


class TestCalendar:
    def test_first_hour(self):
        date = calendar_date(0)
        assert (date.year, date.day_of_year, date.month, date.day_of_month) == (0, 0, 1, 1)
        assert date.day_name == "Solday"
        assert not date.in_leap

    def test_formatted(self):
        date = calendar_date(29)
        assert format_date(date) == "Lunday, 2 Primos Year 0, 05:00"
        assert format_date(date, include_time=False) == "Lunday, 2 Primos Year 0"
        assert date.time_of_day == TimeOfDay.DAWN

    def test_week_has_six_days(self):
        assert calendar_date(6 * 24).day_of_week == 0
        assert calendar_date(5 * 24).day_name == "Venday"

    def test_month_rollover(self):
        date = calendar_date(30 * 24)
        assert (date.month, date.day_of_month, date.month_name) == (2, 1, "Secundos")

    @pytest.mark.parametrize("hour", [2880, 2900, 2951])
    def test_first_leap_freezes_date(self, hour):
        date = calendar_date(hour)
        assert date.in_leap
        assert date.day_of_year == 120
        assert date.leap_hours_remaining == 2952 - hour
        assert date.hour_of_day == hour % 24

    def test_leap_day_runs_after_window(self):
        after = calendar_date(2952)
        assert not after.in_leap
        assert after.day_of_year == 120
        assert calendar_date(2976).day_of_year == 121

    def test_second_leap_of_year_zero(self):
        assert not calendar_date(5831).in_leap
        assert calendar_date(5832).in_leap
        assert calendar_date(5903).in_leap
        assert not calendar_date(5904).in_leap
        assert calendar_date(5832).day_of_year == 240

    def test_last_hour_of_year(self):
        date = calendar_date(8783)
        assert (date.year, date.day_of_year, date.month, date.day_of_month) == (0, 359, 12, 30)

    def test_ordinary_year_leap_is_shorter(self):
        start = 8784 + 2880
        assert calendar_date(start).in_leap
        assert calendar_date(start + 59).leap_hours_remaining == 1
        assert not calendar_date(start + 60).in_leap

    def test_to_dict(self):
        d = calendar_date(29).to_dict()
        assert d["formatted"] == "Lunday, 2 Primos Year 0, 05:00"
        assert d["time_of_day"] == "dawn"
        assert d["month_name"] == "Primos"


class TestValleys:
    @pytest.mark.parametrize("valley, expected", [
        (Valley.DAY, TimeOfDay.DAY),
        (Valley.DAWN, TimeOfDay.DUSK),
        (Valley.DUSK, TimeOfDay.DAWN),
        (Valley.NIGHT, TimeOfDay.NIGHT),
    ])
    def test_midday(self, valley, expected):
        assert valley_time_of_day(valley, 13) == expected

    @pytest.mark.parametrize("hour", range(24))
    def test_cycle_consistent(self, hour):
        cycle = [TimeOfDay.DAWN, TimeOfDay.DAY, TimeOfDay.DUSK, TimeOfDay.NIGHT]
        day = cycle.index(valley_time_of_day(Valley.DAY, hour))
        assert valley_time_of_day(Valley.DAWN, hour) == cycle[(day + 1) % 4]
        assert valley_time_of_day(Valley.NIGHT, hour) == cycle[(day + 2) % 4]

    def test_accepts_strings(self):
        assert valley_time_of_day("night", 2) == TimeOfDay.DAY

    def test_offsets(self):
        assert valley_offset("day", "night") == 12
        assert valley_offset(Valley.DAWN, Valley.DUSK) == -12
        assert valley_offset("dusk", "dusk") == 0


class TestSimulationClock:
    def test_advance(self):
        world = World()
        clock = SimulationClock(world)
        assert clock.advance() == 1
        assert world.current_hour == 1
        assert clock.date().hour == 1

    def test_boundaries(self):
        assert not SimulationClock.is_day_boundary(0)
        assert SimulationClock.is_day_boundary(24)
        assert not SimulationClock.is_day_boundary(25)
        assert not SimulationClock.is_week_boundary(144)
        assert SimulationClock.is_week_boundary(168)

    def test_valley_times(self):
        world = World()
        world.current_hour = 13
        times = SimulationClock(world).valley_times()
        assert times == {"day": "day", "dawn": "dusk", "dusk": "dawn", "night": "night"}
