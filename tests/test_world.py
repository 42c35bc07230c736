"""Tests for the world arena, entities and event log."""

import pytest

from worldsim.core.entities import Building, Person
from worldsim.core.errors import StorageUnavailable, UnknownEntityError, ValidationError
from worldsim.core.events import Event, EventKind, EventLog
from worldsim.core.types import BuildingKind, PersonStatus
from worldsim.core.world import InMemoryWorldStore, World


def _make_world():
    world = World()
    city = world.add_city("Ashford")
    home = world.add_building(city.id, "home", "Cottage", capacity=2)
    park = world.add_building(city.id, BuildingKind.PARK, capacity=5, x=20)
    return world, city, home, park


def _event(hour, entity_id=1, kind=EventKind.MOVEMENT):
    return Event(hour=hour, entity_id=entity_id, entity_type="person", kind=kind,
                 description="moved")


class TestWorld:
    def test_buildings_join_their_city(self):
        world, city, home, park = _make_world()
        assert city.building_ids == [home.id, park.id]
        assert park.name == "park-3"

    def test_start_location_defaults_to_home(self):
        world, _, home, _ = _make_world()
        person = world.add_person("Ada", home.id)
        assert person.location_id == home.id
        assert world.occupants(home.id) == [person]

    def test_invalid_capacity(self):
        world, city, *_ = _make_world()
        with pytest.raises(ValidationError):
            world.add_building(city.id, "home", capacity=0)

    def test_unknown_role(self):
        world, _, home, _ = _make_world()
        with pytest.raises(ValidationError):
            world.add_person("Ada", home.id, specialized_role="wizard")

    @pytest.mark.parametrize("needs", [
        {"consumption": 500.0},
        {"rest": -40.0},
        {"relationship": 90.0},
        {"income": 1000.5},
        {"safety": "high"},
    ])
    def test_seeded_needs_out_of_range_rejected(self, needs):
        world, _, home, _ = _make_world()
        with pytest.raises(ValidationError):
            world.add_person("Ada", home.id, needs=needs)
        assert world.persons == {}

    def test_seeded_needs_at_bounds_accepted(self):
        world, _, home, _ = _make_world()
        person = world.add_person(
            "Ada", home.id, needs={"consumption": 100.0, "relationship": 33.3, "rest": 0},
        )
        assert person.needs["consumption"] == 100.0
        assert person.needs["relationship"] == 33.3
        assert person.needs["rest"] == 0.0

    def test_unknown_lookups(self):
        world, *_ = _make_world()
        with pytest.raises(UnknownEntityError) as excinfo:
            world.get_person(42)
        assert excinfo.value.entity_id == 42
        assert isinstance(excinfo.value, LookupError)

    def test_co_located_skips_travellers(self):
        world, _, _, park = _make_world()
        a = world.add_person("A", location_id=park.id)
        b = world.add_person("B", location_id=park.id)
        c = world.add_person("C", location_id=park.id)
        c.status = PersonStatus.IN_TRANSIT
        assert world.co_located(a) == [b]

    def test_residents_and_city_of(self):
        world, city, home, park = _make_world()
        resident = world.add_person("A", home.id, location_id=park.id)
        visitor = world.add_person("B", location_id=park.id)
        assert world.residents(city) == [resident]
        assert world.city_of(visitor) is city

    def test_snapshot_restore(self):
        world, _, home, _ = _make_world()
        person = world.add_person("Ada", home.id)
        snapshot = world.snapshot()
        person.needs["consumption"] = 0.0
        world.current_hour = 10
        world.restore(snapshot)
        assert world.current_hour == 0
        assert world.persons[person.id].needs["consumption"] == 70.0

    def test_dict_roundtrip(self):
        world, _, home, park = _make_world()
        world.add_person("Ada", home.id, needs={"income": 300.0})
        world.record(_event(0))
        restored = World.from_dict(world.to_dict())
        assert restored.to_dict() == world.to_dict()
        assert restored.add_city("Second").id == 5

    def test_in_memory_store(self):
        world, *_ = _make_world()
        store = InMemoryWorldStore()
        store.commit(world.to_dict())
        assert store.snapshots["default"]["world_id"] == "default"
        assert store.commits == 1


class TestEntities:
    def test_person_roundtrip(self):
        person = Person(id=1, name="Ada")
        assert Person.from_dict(person.to_dict()) == person

    def test_building_flags(self):
        home = Building(id=1, name="h", city_id=0, kind=BuildingKind.HOME, capacity=1)
        assert home.is_home and not home.is_workplace
        assert Building.from_dict(home.to_dict()) == home


class TestEventLog:
    def test_rejects_out_of_order(self):
        log = EventLog()
        log.append(_event(5))
        with pytest.raises(ValueError):
            log.append(_event(4))

    def test_query(self):
        log = EventLog()
        log.append(_event(1, entity_id=1))
        log.append(_event(2, entity_id=2, kind=EventKind.WORK))
        log.append(_event(3, entity_id=1, kind=EventKind.WORK))
        assert [e.hour for e in log.query(entity_id=1)] == [1, 3]
        assert [e.hour for e in log.query(since_hour=2)] == [2, 3]
        assert [e.hour for e in log.query(entity_id=1, since_hour=2)] == [3]
        assert [e.hour for e in log.query(kind=EventKind.WORK)] == [2, 3]

    def test_roundtrip(self):
        log = EventLog([_event(1), _event(2)])
        assert EventLog.from_list(log.to_list()).to_list() == log.to_list()
        assert len(log) == 2

    def test_truncate_drops_tail_and_index(self):
        log = EventLog([_event(0, 1), _event(1, 2), _event(2, 1), _event(3, 3), _event(3, 1)])
        log.truncate(2)
        assert len(log) == 2
        assert [e.hour for e in log.query(entity_id=1)] == [0]
        assert log.query(entity_id=3) == []
        log.append(_event(4, 1))
        assert [e.hour for e in log.query(entity_id=1)] == [0, 4]

    def test_truncate_past_end_is_noop(self):
        log = EventLog([_event(1), _event(2)])
        log.truncate(5)
        assert len(log) == 2

    def test_tail_serialization(self):
        log = EventLog([_event(1), _event(2), _event(3)])
        assert [d["hour"] for d in log.to_list(1)] == [2, 3]


class TestSnapshots:
    def test_snapshot_leaves_event_log_out(self):
        world, _, home, _ = _make_world()
        world.add_person("Ada", home.id)
        world.record(_event(0))
        snapshot = world.snapshot()
        assert "events" not in snapshot
        assert snapshot["events_length"] == 1

    def test_restore_truncates_events(self):
        world, _, home, _ = _make_world()
        world.record(_event(0))
        snapshot = world.snapshot()
        world.record(_event(1))
        world.record(_event(2, entity_id=7))
        world.restore(snapshot)
        assert [e.hour for e in world.events] == [0]
        assert world.events.query(entity_id=7) == []

    def test_commit_sends_only_new_events(self):
        world, *_ = _make_world()
        store = InMemoryWorldStore()
        world.record(_event(0))
        world.commit_to(store)
        world.record(_event(1))
        world.record(_event(2))
        world.commit_to(store)
        payload = store.snapshots["default"]
        assert payload["events_offset"] == 1
        assert [e["hour"] for e in payload["events"]] == [1, 2]
        assert store.load("default")["events"] == world.events.to_list()
        assert World.from_dict(store.load("default")).to_dict() == world.to_dict()

    def test_partial_state_cannot_be_loaded(self):
        world, *_ = _make_world()
        world.record(_event(0))
        world.record(_event(1))
        with pytest.raises(ValueError):
            World.from_dict(world.to_dict(events_since=1))

    def test_store_rejects_gap_in_event_log(self):
        world, *_ = _make_world()
        world.record(_event(0))
        world.record(_event(1))
        store = InMemoryWorldStore()
        with pytest.raises(StorageUnavailable):
            store.commit(world.to_dict(events_since=1))
        assert store.commits == 0
