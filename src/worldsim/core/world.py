"""
World arena: the id-addressed store of persons, buildings and cities.

Entities refer to each other by integer id. Ids come from one counter so
an id is unique across all three kinds, which lets the event log key on
``entity_id`` alone. Persons are kept in insertion order; the scheduler
relies on that order for determinism.
"""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, fields
from typing import Any, Protocol

from worldsim.core import locations
from worldsim.core.config import SimulationConfig
from worldsim.core.entities import Building, City, Person
from worldsim.core.errors import StorageUnavailable, UnknownEntityError, ValidationError
from worldsim.core.events import Event, EventLog
from worldsim.core.needs import CHANNEL_SPECS
from worldsim.core.types import BuildingKind, PersonStatus, SpecializedRole


@dataclass
class AutotickerState:
    """Real-time synchronizer settings and schedule for one world."""

    enabled: bool = False
    interval_ms: int = 3_600_000
    rate_name: str | None = "realtime"
    last_checked_ms: int | None = None
    next_due_ms: int | None = None
    version: int = 0
    total_auto_ticks: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> AutotickerState:
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in d.items() if k in known})


class WorldStore(Protocol):
    """Persistence collaborator. ``commit`` raises ``StorageUnavailable``."""

    def commit(self, snapshot: dict[str, Any]) -> None: ...


class InMemoryWorldStore:
    """Keeps the most recent committed snapshot per world in memory.

    Commits carry only the events appended since the previous commit
    (``events_offset`` onwards); the full log is kept in ``events``.
    """

    def __init__(self) -> None:
        self.snapshots: dict[str, dict[str, Any]] = {}
        self.events: dict[str, list[dict[str, Any]]] = {}
        self.commits = 0
        self.available = True

    def commit(self, snapshot: dict[str, Any]) -> None:
        if not self.available:
            raise StorageUnavailable("in-memory store marked unavailable")
        log = self.events.setdefault(snapshot["world_id"], [])
        offset = snapshot.get("events_offset", 0)
        if offset > len(log):
            raise StorageUnavailable(
                f"World {snapshot['world_id']!r} commits events from {offset} "
                f"but only {len(log)} are stored"
            )
        del log[offset:]
        log.extend(snapshot.get("events", []))
        self.snapshots[snapshot["world_id"]] = snapshot
        self.commits += 1

    def load(self, world_id: str) -> dict[str, Any]:
        """The committed state of *world_id* with its full event log."""
        return {
            **self.snapshots[world_id],
            "events_offset": 0,
            "events": list(self.events[world_id]),
        }


# Fields that make up a world's mutable state (everything but the lock and
# the append-only event log, which rolls back by truncation)
_STATE_FIELDS = (
    "current_hour", "paused", "persons", "buildings", "cities",
    "autoticker", "_next_id",
)


class World:
    """All entities of one simulation plus its clock and event log."""

    def __init__(self, config: SimulationConfig | None = None, world_id: str = "default"):
        self.config = config or SimulationConfig()
        self.world_id = world_id
        self.current_hour: int = 0
        self.paused: bool = self.config.start_paused
        self.persons: dict[int, Person] = {}
        self.buildings: dict[int, Building] = {}
        self.cities: dict[int, City] = {}
        self.events = EventLog()
        self.autoticker = AutotickerState(
            interval_ms=int(self.config.autoticker_config["default_interval_ms"]),
        )
        self._next_id = 1
        # Events already handed to the store
        self.committed_events = 0
        self.lock = threading.RLock()

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def _allocate_id(self) -> int:
        entity_id = self._next_id
        self._next_id += 1
        return entity_id

    def add_city(self, name: str) -> City:
        city = City(
            id=self._allocate_id(),
            name=name,
            tax_reserve=self.config.city_rates["initial_tax_reserve"],
        )
        self.cities[city.id] = city
        return city

    def add_building(
        self,
        city_id: int,
        kind: BuildingKind | str,
        name: str | None = None,
        capacity: int = 10,
        x: float = 0.0,
        y: float = 0.0,
        quality: float | None = None,
    ) -> Building:
        city = self.get_city(city_id)
        try:
            kind = BuildingKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown building kind {kind!r}") from None
        if capacity <= 0:
            raise ValidationError(f"Building capacity must be positive, got {capacity}")
        low, high = locations.QUALITY_RANGE
        if quality is not None and not low <= quality <= high:
            raise ValidationError(
                f"Environmental quality must lie in [{low}, {high}], got {quality}"
            )
        building_id = self._allocate_id()
        building = Building(
            id=building_id,
            name=name or f"{kind.value}-{building_id}",
            city_id=city.id,
            kind=kind,
            capacity=capacity,
            x=x,
            y=y,
            environmental_quality=quality,
        )
        if building.is_workplace:
            building.stockpile = self.config.building_rates["initial_stockpile"]
        self.buildings[building.id] = building
        city.building_ids.append(building.id)
        return building

    def add_person(
        self,
        name: str,
        home_id: int | None = None,
        workplace_id: int | None = None,
        location_id: int | None = None,
        specialized_role: SpecializedRole | str = SpecializedRole.NONE,
        needs: dict[str, float] | None = None,
    ) -> Person:
        for building_id in (home_id, workplace_id, location_id):
            if building_id is not None:
                self.get_building(building_id)
        if home_id is not None and not self.buildings[home_id].is_home:
            raise ValidationError(f"Building {home_id} is not a home")
        if workplace_id is not None and not self.buildings[workplace_id].is_workplace:
            raise ValidationError(f"Building {workplace_id} is not a workplace")
        try:
            specialized_role = SpecializedRole(specialized_role)
        except ValueError:
            raise ValidationError(f"Unknown specialized role {specialized_role!r}") from None
        if needs:
            unknown = set(needs) - set(CHANNEL_SPECS)
            if unknown:
                raise ValidationError(f"Unknown need channels: {sorted(unknown)}")
            for channel, value in needs.items():
                maximum = CHANNEL_SPECS[channel].maximum
                if (isinstance(value, bool) or not isinstance(value, (int, float))
                        or not 0.0 <= value <= maximum):
                    raise ValidationError(
                        f"Need {channel!r} must lie in [0, {maximum}], got {value!r}"
                    )
        start = location_id if location_id is not None else home_id
        if start is not None and self.occupancy(start) >= self.buildings[start].capacity:
            raise ValidationError(f"Building {start} is at capacity")
        person = Person(
            id=self._allocate_id(),
            name=name,
            home_id=home_id,
            workplace_id=workplace_id,
            location_id=start,
            specialized_role=specialized_role,
        )
        if needs:
            person.needs.update({k: float(v) for k, v in needs.items()})
        self.persons[person.id] = person
        return person

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_person(self, person_id: int) -> Person:
        try:
            return self.persons[person_id]
        except KeyError:
            raise UnknownEntityError("person", person_id) from None

    def get_building(self, building_id: int) -> Building:
        try:
            return self.buildings[building_id]
        except KeyError:
            raise UnknownEntityError("building", building_id) from None

    def get_city(self, city_id: int) -> City:
        try:
            return self.cities[city_id]
        except KeyError:
            raise UnknownEntityError("city", city_id) from None

    def alive_persons(self) -> list[Person]:
        return [p for p in self.persons.values() if p.is_alive]

    def occupants(self, building_id: int) -> list[Person]:
        """Alive persons located at (or travelling to) *building_id*."""
        return [
            p for p in self.persons.values()
            if p.is_alive and p.location_id == building_id
        ]

    def occupancy(self, building_id: int) -> int:
        return len(self.occupants(building_id))

    def residents(self, city: City) -> list[Person]:
        """Alive persons whose home lies in *city*."""
        homes = set(city.building_ids)
        return [p for p in self.persons.values() if p.is_alive and p.home_id in homes]

    def city_of(self, person: Person) -> City | None:
        building_id = person.location_id if person.location_id is not None else person.home_id
        if building_id is None:
            return None
        return self.cities.get(self.buildings[building_id].city_id)

    def co_located(self, person: Person) -> list[Person]:
        """Other persons present (not in transit) at *person*'s location."""
        if person.location_id is None:
            return []
        return [
            p for p in self.occupants(person.location_id)
            if p.id != person.id and p.status != PersonStatus.IN_TRANSIT
        ]

    def record(self, event: Event) -> Event:
        return self.events.append(event)

    # ------------------------------------------------------------------
    # Snapshot / restore
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Deep copy of the mutable state, for rollback.

        The event log is append-only, so only its length is recorded.
        """
        state = copy.deepcopy({name: getattr(self, name) for name in _STATE_FIELDS})
        state["events_length"] = len(self.events)
        return state

    def restore(self, snapshot: dict[str, Any]) -> None:
        for name in _STATE_FIELDS:
            setattr(self, name, snapshot[name])
        self.events.truncate(snapshot["events_length"])
        self.committed_events = min(self.committed_events, len(self.events))

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self, events_since: int = 0) -> dict[str, Any]:
        """
        Serialized state. Only events from position *events_since* on are
        included; ``events_offset`` records where they start.
        """
        return {
            "world_id": self.world_id,
            "config": self.config.to_dict(),
            "current_hour": self.current_hour,
            "paused": self.paused,
            "next_id": self._next_id,
            "persons": [p.to_dict() for p in self.persons.values()],
            "buildings": [b.to_dict() for b in self.buildings.values()],
            "cities": [c.to_dict() for c in self.cities.values()],
            "events_offset": events_since,
            "events": self.events.to_list(events_since),
            "autoticker": self.autoticker.to_dict(),
        }

    def commit_to(self, store: WorldStore) -> None:
        """Commit entity state plus the events *store* has not seen yet."""
        store.commit(self.to_dict(events_since=self.committed_events))
        self.committed_events = len(self.events)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> World:
        if d.get("events_offset", 0):
            raise ValueError(
                f"World {d['world_id']!r} state holds events from "
                f"{d['events_offset']} on, not the full log"
            )
        world = cls(SimulationConfig.from_dict(d.get("config", {})), world_id=d["world_id"])
        world.current_hour = d["current_hour"]
        world.paused = d["paused"]
        world._next_id = d["next_id"]
        world.cities = {c["id"]: City.from_dict(c) for c in d["cities"]}
        world.buildings = {b["id"]: Building.from_dict(b) for b in d["buildings"]}
        world.persons = {p["id"]: Person.from_dict(p) for p in d["persons"]}
        world.events = EventLog.from_list(d.get("events", []))
        world.autoticker = AutotickerState.from_dict(d.get("autoticker", {}))
        return world
