"""
Control and query facade for one world.

Bundles the world arena, the tick scheduler and the real-time
synchronizer behind the control surface (tick, skip, toggle, autoticker)
and the query surface (current hour, city/building/person status,
calendar, events). Every query takes the world lock and returns plain
copies, so callers only ever observe pre- or post-tick state.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from worldsim.core import locations
from worldsim.core.autoticker import RealTimeSynchronizer
from worldsim.core.clock import calendar_date, valley_time_of_day, Valley
from worldsim.core.config import SimulationConfig
from worldsim.core.entities import Building, City, Person
from worldsim.core.needs import CHANNEL_SPECS, satisfaction
from worldsim.core.priorities import LocationStrategy
from worldsim.core.tick_engine import TickScheduler
from worldsim.core.types import BuildingKind, SpecializedRole
from worldsim.core.world import World, WorldStore

logger = logging.getLogger(__name__)


class Simulation:
    """
    One simulated world and everything that advances or inspects it.

    Parameters
    ----------
    config : SimulationConfig, optional
        Tunables; ignored when *world* is given.
    world : World, optional
        An existing arena (e.g. restored from storage).
    store : WorldStore, optional
        Persistence collaborator committed after each advance.
    strategy : LocationStrategy, optional
        Location heuristic for the priority resolver.
    now_ms : callable, optional
        Wall-clock source for the autoticker.
    """

    def __init__(
        self,
        config: SimulationConfig | None = None,
        world: World | None = None,
        world_id: str = "default",
        store: WorldStore | None = None,
        strategy: LocationStrategy | None = None,
        now_ms: Callable[[], int] | None = None,
    ):
        self.world = world or World(config or SimulationConfig(), world_id=world_id)
        self.config = self.world.config
        self.scheduler = TickScheduler(self.world, store=store, strategy=strategy)
        self.autoticker = RealTimeSynchronizer(self.scheduler, now_ms=now_ms)

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def add_city(self, name: str) -> int:
        with self.scheduler.locked() as world:
            return world.add_city(name).id

    def add_building(
        self,
        city_id: int,
        kind: BuildingKind | str,
        name: str | None = None,
        capacity: int = 10,
        x: float = 0.0,
        y: float = 0.0,
        quality: float | None = None,
    ) -> int:
        with self.scheduler.locked() as world:
            return world.add_building(city_id, kind, name, capacity, x, y, quality).id

    def add_person(
        self,
        name: str,
        home_id: int | None = None,
        workplace_id: int | None = None,
        location_id: int | None = None,
        specialized_role: SpecializedRole | str = SpecializedRole.NONE,
        needs: dict[str, float] | None = None,
    ) -> int:
        with self.scheduler.locked() as world:
            return world.add_person(
                name, home_id, workplace_id, location_id, specialized_role, needs,
            ).id

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def tick(self) -> dict[str, Any]:
        return self.scheduler.tick().to_dict()

    def skip(self, n_hours: int) -> dict[str, Any]:
        reports = self.scheduler.skip(n_hours)
        return {
            "hours": len(reports),
            "current_hour": reports[-1].hour,
            "events": sum(r.events for r in reports),
            "deaths": [pid for r in reports for pid in r.deaths],
        }

    def toggle(self) -> bool:
        """Pause or resume; returns the new paused flag."""
        with self.scheduler.locked() as world:
            world.paused = not world.paused
            logger.info("World %s %s", world.world_id, "paused" if world.paused else "resumed")
            if not world.paused and world.autoticker.enabled:
                # Hours spent paused are not caught up
                self.autoticker.start()
            return world.paused

    def start_autoticker(self, now_ms: int | None = None) -> dict[str, Any]:
        return self.autoticker.start(now_ms).to_dict()

    def stop_autoticker(self) -> dict[str, Any]:
        return self.autoticker.stop().to_dict()

    def check_autotick(self, now_ms: int | None = None) -> int:
        return self.autoticker.check(now_ms)

    def set_tick_rate(self, rate: str | int, now_ms: int | None = None) -> dict[str, Any]:
        return self.autoticker.set_rate(rate, now_ms).to_dict()

    def get_autoticker_status(self, now_ms: int | None = None) -> dict[str, Any]:
        return self.autoticker.status(now_ms)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_current_hour(self) -> int:
        with self.scheduler.locked() as world:
            return world.current_hour

    def get_calendar(self) -> dict[str, Any]:
        with self.scheduler.locked() as world:
            hour = world.current_hour
        date = calendar_date(hour).to_dict()
        date["valleys"] = {v.value: valley_time_of_day(v, hour).value for v in Valley}
        return date

    def get_individual_needs(self, person_id: int) -> dict[str, Any]:
        with self.scheduler.locked() as world:
            return self._person_status(world.get_person(person_id))

    def get_building_status(self, building_id: int) -> dict[str, Any]:
        with self.scheduler.locked() as world:
            return self._building_status(world, world.get_building(building_id))

    def get_city_status(self, city_id: int) -> dict[str, Any]:
        with self.scheduler.locked() as world:
            return self._city_status(world, world.get_city(city_id))

    def get_events(
        self, entity_id: int | None = None, since_hour: int | None = None,
    ) -> list[dict[str, Any]]:
        with self.scheduler.locked() as world:
            return [e.to_dict() for e in world.events.query(entity_id, since_hour)]

    def list_persons(self) -> list[dict[str, Any]]:
        with self.scheduler.locked() as world:
            return [
                {"id": p.id, "name": p.name, "status": p.status.value,
                 "location_id": p.location_id, "is_alive": p.is_alive}
                for p in world.persons.values()
            ]

    # ------------------------------------------------------------------
    # Status builders
    # ------------------------------------------------------------------

    def _person_status(self, person: Person) -> dict[str, Any]:
        summary = self.scheduler.calculator.level_summary(person.needs)
        return {
            **person.to_dict(),
            "satisfaction": {
                channel: satisfaction(channel, person.needs[channel])
                for channel in CHANNEL_SPECS
            },
            "level_adequacy": {str(k): v for k, v in summary["adequacy"].items()},
            "active_levels": summary["active_levels"],
        }

    def _building_status(self, world: World, building: Building) -> dict[str, Any]:
        return {
            **building.to_dict(),
            "occupancy": world.occupancy(building.id),
            "provides": sorted(locations.provides(building)),
            "environmental_quality": locations.base_quality(
                building, self.config.upgrade_config["prestige_quality_bonus"],
            ),
        }

    def _city_status(self, world: World, city: City) -> dict[str, Any]:
        return {
            **city.to_dict(),
            "infrastructure_factor": city.infrastructure_factor,
            "current_hour": world.current_hour,
        }
