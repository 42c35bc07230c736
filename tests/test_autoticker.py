"""Tests for the real-time synchronizer."""

import logging

import pytest

from worldsim.core.autoticker import NAMED_RATES, resolve_rate
from worldsim.core.errors import StorageUnavailable, ValidationError
from worldsim.core.simulation import Simulation
from worldsim.core.world import InMemoryWorldStore


class _FakeClock:
    def __init__(self, now=0):
        self.now = now

    def __call__(self):
        return self.now


def _make_sim(rate="test", store=None):
    clock = _FakeClock()
    sim = Simulation(store=store, now_ms=clock)
    city = sim.add_city("Ashford")
    home = sim.add_building(city, "home", capacity=2)
    sim.add_person("Ada", home_id=home)
    sim.set_tick_rate(rate)
    return sim, clock


class TestRates:
    def test_named(self):
        assert resolve_rate("fast") == (60_000, "fast")
        assert resolve_rate("realtime") == (NAMED_RATES["realtime"], "realtime")

    def test_custom(self):
        assert resolve_rate(2_500) == (2_500, None)
        assert resolve_rate("2500") == (2_500, None)

    def test_custom_matching_named_rate(self):
        assert resolve_rate("60000") == (60_000, "fast")

    @pytest.mark.parametrize("rate", ["warp", 500, "999", True])
    def test_invalid(self, rate):
        with pytest.raises(ValidationError):
            resolve_rate(rate)

    def test_set_rate_while_running_reschedules(self):
        sim, clock = _make_sim()
        sim.start_autoticker(now_ms=0)
        state = sim.set_tick_rate("very_fast", now_ms=400)
        assert state["interval_ms"] == 10_000
        assert state["next_due_ms"] == 10_400


class TestCheck:
    def test_not_enabled(self):
        sim, _ = _make_sim()
        assert sim.check_autotick(now_ms=10_000) == 0
        assert sim.get_current_hour() == 0

    def test_before_due(self):
        sim, _ = _make_sim()
        sim.start_autoticker(now_ms=0)
        assert sim.check_autotick(now_ms=999) == 0

    def test_steady_polling(self):
        sim, _ = _make_sim()
        sim.start_autoticker(now_ms=0)
        applied = [sim.check_autotick(now_ms=t) for t in (1_100, 2_200, 3_300, 4_400, 5_500)]
        assert applied == [1, 1, 1, 1, 1]
        assert sim.get_current_hour() == 5
        assert sim.get_autoticker_status(now_ms=5_500)["total_auto_ticks"] == 5

    def test_sparse_polling_catches_up(self):
        sim, _ = _make_sim()
        sim.start_autoticker(now_ms=0)
        assert sim.check_autotick(now_ms=10_500) == 10
        assert sim.get_current_hour() == 10
        status = sim.get_autoticker_status(now_ms=10_500)
        assert status["next_due_ms"] == 11_500
        assert status["hours_behind"] == 0
        assert status["ms_until_next"] == 1_000

    def test_catch_up_is_capped(self, caplog):
        sim, _ = _make_sim()
        sim.start_autoticker(now_ms=0)
        with caplog.at_level(logging.WARNING, logger="worldsim.core.autoticker"):
            applied = sim.check_autotick(now_ms=1_000_000)
        assert applied == 168
        assert sim.get_current_hour() == 168
        assert "behind" in caplog.text

    def test_uses_injected_clock(self):
        sim, clock = _make_sim()
        sim.start_autoticker()
        clock.now = 3_000
        assert sim.check_autotick() == 3

    def test_paused_world_does_not_tick(self):
        sim, _ = _make_sim()
        sim.start_autoticker(now_ms=0)
        sim.toggle()
        assert sim.check_autotick(now_ms=5_000) == 0
        assert sim.get_current_hour() == 0

    def test_resume_does_not_catch_up_paused_hours(self):
        sim, clock = _make_sim()
        sim.start_autoticker(now_ms=0)
        sim.toggle()
        clock.now = 50_000
        assert sim.toggle() is False
        assert sim.check_autotick(now_ms=50_500) == 0
        assert sim.check_autotick(now_ms=51_000) == 1

    def test_stop(self):
        sim, _ = _make_sim()
        sim.start_autoticker(now_ms=0)
        state = sim.stop_autoticker()
        assert not state["enabled"]
        assert sim.check_autotick(now_ms=10_000) == 0

    def test_racing_check_applies_due_hours_once(self, caplog):
        sim, _ = _make_sim()
        sim.start_autoticker(now_ms=0)
        readings = []

        def racing_clock():
            readings.append(2_500)
            if len(readings) == 1:
                # Another poller claims the same slot in between
                assert sim.check_autotick(now_ms=2_500) == 2
            return 2_500

        sim.autoticker.now_ms = racing_clock
        with caplog.at_level(logging.INFO, logger="worldsim.core.autoticker"):
            assert sim.check_autotick() == 0
        assert "retrying" in caplog.text
        assert len(readings) == 2
        assert sim.get_current_hour() == 2
        assert sim.get_autoticker_status(now_ms=2_500)["total_auto_ticks"] == 2

    def test_rate_change_during_check_wins(self):
        sim, _ = _make_sim()
        sim.start_autoticker(now_ms=0)
        readings = []

        def racing_clock():
            readings.append(5_000)
            if len(readings) == 1:
                sim.set_tick_rate("fast", now_ms=5_000)
            return 5_000

        sim.autoticker.now_ms = racing_clock
        assert sim.check_autotick() == 0
        assert sim.get_current_hour() == 0
        assert sim.get_autoticker_status(now_ms=5_000)["next_due_ms"] == 65_000

    def test_failed_advance_restores_schedule(self):
        store = InMemoryWorldStore()
        sim, _ = _make_sim(store=store)
        sim.start_autoticker(now_ms=0)
        before = sim.get_autoticker_status(now_ms=0)
        store.available = False
        with pytest.raises(StorageUnavailable):
            sim.check_autotick(now_ms=2_500)
        after = sim.get_autoticker_status(now_ms=0)
        assert after["next_due_ms"] == before["next_due_ms"]
        assert after["version"] == before["version"]
        assert after["total_auto_ticks"] == 0
        assert sim.get_current_hour() == 0
        store.available = True
        assert sim.check_autotick(now_ms=2_500) == 2
