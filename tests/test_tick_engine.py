"""Tests for the tick scheduler: cadences, atomicity, locking."""

import threading

import pytest

from worldsim.core.config import SimulationConfig
from worldsim.core.errors import ConcurrencyConflict, StorageUnavailable, ValidationError
from worldsim.core.events import EventKind
from worldsim.core.needs import CHANNEL_SPECS
from worldsim.core.tick_engine import TickScheduler
from worldsim.core.types import TickPhase
from worldsim.core.world import InMemoryWorldStore, World


def _make_world(config=None):
    world = World(config or SimulationConfig())
    city = world.add_city("Ashford")
    home = world.add_building(city.id, "home", "Cottage", capacity=4, x=0, y=0)
    diner = world.add_building(city.id, "restaurant", "Diner", capacity=4, x=10, y=0)
    mill = world.add_building(city.id, "workplace", "Mill", capacity=4, x=30, y=0)
    world.add_building(city.id, "park", "Green", capacity=10, x=20, y=0)
    world.add_person("Ada", home.id, mill.id)
    world.add_person("Bo", home.id, mill.id)
    world.add_person("Cy", home.id, location_id=diner.id)
    return world


class _BrokenStore:
    def commit(self, snapshot):
        raise OSError("disk full")


class TestCadence:
    def test_first_tick(self):
        world = _make_world()
        scheduler = TickScheduler(world)
        report = scheduler.tick()
        assert report.hour == 1
        assert not report.daily
        assert not report.weekly
        assert world.current_hour == 1
        assert scheduler.phase == TickPhase.IDLE

    def test_hungry_person_eats_at_home(self):
        world = World()
        city = world.add_city("Ashford")
        home = world.add_building(city.id, "home", capacity=2)
        person = world.add_person("Ada", home.id)
        report = TickScheduler(world).tick()
        assert report.actions == {person.id: "eat"}
        assert home.occupant_hours == 1.0

    def test_daily_and_weekly_flags(self):
        world = _make_world()
        reports = TickScheduler(world).skip(168)
        daily = [r.hour for r in reports if r.daily]
        weekly = [r.hour for r in reports if r.weekly]
        assert daily == [24, 48, 72, 96, 120, 144, 168]
        assert weekly == [168]

    def test_daily_pass_resets_building_accumulators(self):
        world = _make_world()
        TickScheduler(world).skip(24)
        for building in world.buildings.values():
            assert building.occupant_hours == 0.0
            assert building.worker_hours == 0.0

    def test_skip_matches_repeated_ticks(self):
        a, b = _make_world(), _make_world()
        TickScheduler(a).skip(48)
        scheduler = TickScheduler(b)
        for _ in range(48):
            scheduler.tick()
        assert a.to_dict() == b.to_dict()

    def test_deterministic(self):
        a, b = _make_world(), _make_world()
        TickScheduler(a).skip(200)
        TickScheduler(b).skip(200)
        assert a.to_dict() == b.to_dict()

    def test_channels_stay_in_range(self):
        world = _make_world()
        TickScheduler(world).skip(200)
        for person in world.persons.values():
            for channel, value in person.needs.items():
                assert 0.0 <= value <= CHANNEL_SPECS[channel].maximum

    def test_events_are_ordered(self):
        world = _make_world()
        TickScheduler(world).skip(72)
        hours = [e.hour for e in world.events]
        assert hours == sorted(hours)
        assert len(hours) > 0

    def test_starving_person_dies_once(self):
        world = World()
        city = world.add_city("Ashford")
        park = world.add_building(city.id, "park", capacity=5)
        person = world.add_person("Ada", location_id=park.id, needs={"consumption": 0.0})
        reports = TickScheduler(world).skip(30)
        deaths = [(r.hour, r.deaths) for r in reports if r.deaths]
        assert deaths == [(24, [person.id])]
        died = world.events.query(entity_id=person.id, kind=EventKind.THRESHOLD)
        assert len(died) == 1
        assert not person.is_alive
        assert world.occupancy(park.id) == 0


class TestValidation:
    @pytest.mark.parametrize("hours", [0, -3, 1.5, True, "2"])
    def test_bad_hours(self, hours):
        scheduler = TickScheduler(_make_world())
        with pytest.raises(ValidationError):
            scheduler.advance(hours)

    def test_paused_world_rejects_manual_ticks(self):
        world = _make_world()
        world.paused = True
        scheduler = TickScheduler(world)
        with pytest.raises(ValidationError):
            scheduler.tick()
        assert scheduler.advance(1, automatic=True)[0].hour == 1


class TestAtomicity:
    def test_commit_per_advance(self):
        store = InMemoryWorldStore()
        world = _make_world()
        scheduler = TickScheduler(world, store=store)
        scheduler.skip(10)
        scheduler.tick()
        assert store.commits == 2
        assert store.snapshots["default"]["current_hour"] == 11

    def test_unavailable_store_rolls_back(self):
        store = InMemoryWorldStore()
        store.available = False
        world = _make_world()
        before = world.to_dict()
        with pytest.raises(StorageUnavailable):
            TickScheduler(world, store=store).skip(30)
        assert world.to_dict() == before

    def test_commit_size_independent_of_history(self):
        store = InMemoryWorldStore()
        world = _make_world()
        scheduler = TickScheduler(world, store=store)
        scheduler.skip(400)
        assert len(world.events) > 0
        for _ in range(24):
            committed = len(world.events)
            report = scheduler.tick()
            payload = store.snapshots["default"]
            assert payload["events_offset"] == committed
            assert len(payload["events"]) == report.events
        assert store.load("default")["events"] == world.events.to_list()

    def test_rollback_after_long_history_truncates_events(self):
        store = InMemoryWorldStore()
        world = _make_world()
        scheduler = TickScheduler(world, store=store)
        scheduler.skip(200)
        before = world.to_dict()
        store.available = False
        with pytest.raises(StorageUnavailable):
            scheduler.skip(30)
        assert world.to_dict() == before
        store.available = True
        scheduler.tick()
        assert store.load("default")["events"] == world.events.to_list()

    def test_store_errors_become_storage_unavailable(self):
        world = _make_world()
        with pytest.raises(StorageUnavailable):
            TickScheduler(world, store=_BrokenStore()).tick()
        assert world.current_hour == 0
        assert len(world.events) == 0

    def test_busy_world_raises_conflict(self):
        world = _make_world(SimulationConfig(lock_timeout_s=0.01))
        scheduler = TickScheduler(world)
        holding = threading.Event()
        release = threading.Event()

        def hold():
            with world.lock:
                holding.set()
                release.wait(5)

        thread = threading.Thread(target=hold)
        thread.start()
        try:
            holding.wait(5)
            with pytest.raises(ConcurrencyConflict):
                scheduler.tick()
        finally:
            release.set()
            thread.join()
        assert world.current_hour == 0
        assert scheduler.tick().hour == 1
