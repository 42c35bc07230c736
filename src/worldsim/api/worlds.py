"""
World manager with SQLite persistence.

Each world wraps a ``Simulation`` (arena + scheduler + autoticker). Worlds
are committed to SQLite by the scheduler after every advance and by the
manager after seeding and control changes. On startup only metadata is
loaded; full state is deserialized lazily on first access.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from worldsim.core.config import SimulationConfig
from worldsim.core.errors import StorageUnavailable, ValidationError
from worldsim.core.simulation import Simulation

logger = logging.getLogger(__name__)


class WorldManager:
    """Manages multiple worlds with optional SQLite persistence.

    Parameters
    ----------
    db_path : str | None
        Path to the SQLite database file. ``None`` disables persistence
        (pure in-memory mode). Default ``"data/worldsim.db"``.
    """

    def __init__(self, db_path: str | None = "data/worldsim.db"):
        self.worlds: dict[str, Simulation] = {}

        # Metadata for worlds persisted but not yet loaded into memory
        self._world_index: dict[str, dict[str, Any]] = {}

        self._store = None
        if db_path is not None:
            from worldsim.api.persistence import SqliteWorldStore
            self._store = SqliteWorldStore(db_path)
            self._load_index()

    def _load_index(self) -> None:
        if self._store is None or not self._store.available:
            return
        for row in self._store.list_worlds():
            if row["id"] not in self.worlds:
                self._world_index[row["id"]] = row

    @property
    def _active_store(self):
        if self._store is not None and self._store.available:
            return self._store
        return None

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def persist(self, sim: Simulation) -> None:
        """Save a world outside of an advance (after seeding or control changes)."""
        store = self._active_store
        if store is None:
            return
        with sim.scheduler.locked() as world:
            try:
                world.commit_to(store)
            except StorageUnavailable:
                logger.warning("Failed to persist world %s", world.world_id, exc_info=True)
                raise
        self._world_index.pop(sim.world.world_id, None)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create_world(
        self,
        config: SimulationConfig | None = None,
        seed: dict[str, Any] | None = None,
    ) -> Simulation:
        """Create a world, optionally seeded with cities, buildings and persons."""
        config = config or SimulationConfig()
        world_id = uuid.uuid4().hex[:8]
        sim = Simulation(config, world_id=world_id, store=self._active_store)
        if seed:
            seed_world(sim, seed)
        self.worlds[world_id] = sim
        self.persist(sim)
        logger.info("Created world %s (%s)", world_id, config.world_name)
        return sim

    def get_world(self, world_id: str) -> Simulation:
        """Get a world by id, lazy-loading it from the database.

        Raises KeyError if not found in memory or database.
        """
        if world_id in self.worlds:
            return self.worlds[world_id]

        store = self._active_store
        if store is not None and (world_id in self._world_index or store.has_world(world_id)):
            world = store.load_world(world_id)
            if world is not None:
                sim = Simulation(world=world, store=store)
                self.worlds[world_id] = sim
                self._world_index.pop(world_id, None)
                return sim

        raise KeyError(f"World '{world_id}' not found")

    def delete_world(self, world_id: str) -> None:
        in_memory = self.worlds.pop(world_id, None) is not None
        in_index = self._world_index.pop(world_id, None) is not None
        in_store = self._store is not None and self._store.has_world(world_id)
        if not (in_memory or in_index or in_store):
            raise KeyError(f"World '{world_id}' not found")
        if self._store is not None:
            self._store.delete_world(world_id)

    def list_worlds(self) -> list[dict[str, Any]]:
        result = [
            {
                "id": wid,
                "name": sim.config.world_name,
                "current_hour": sim.world.current_hour,
                "paused": sim.world.paused,
                "population": len(sim.world.alive_persons()),
            }
            for wid, sim in self.worlds.items()
        ]
        for wid, row in self._world_index.items():
            if wid not in self.worlds:
                result.append({
                    "id": wid,
                    "name": row["name"],
                    "current_hour": row["current_hour"],
                    "paused": row["paused"],
                    "population": row["population"],
                })
        return result


def seed_world(sim: Simulation, seed: dict[str, Any]) -> None:
    """
    Populate *sim* from a nested seed description.

    ``seed["cities"]`` is a list of cities, each with ``buildings`` and
    ``persons``. Persons refer to buildings of their city by position in
    that city's ``buildings`` list (``home``, ``workplace``, ``location``).
    """
    for city_seed in seed.get("cities", []):
        city_id = sim.add_city(city_seed["name"])
        building_ids: list[int] = []
        for b in city_seed.get("buildings", []):
            building_ids.append(sim.add_building(
                city_id, b["kind"], b.get("name"), b.get("capacity", 10),
                b.get("x", 0.0), b.get("y", 0.0), b.get("quality"),
            ))

        def _ref(index: int | None) -> int | None:
            if index is None:
                return None
            if not 0 <= index < len(building_ids):
                raise ValidationError(
                    f"City {city_seed['name']!r} has no building at index {index}"
                )
            return building_ids[index]

        for p in city_seed.get("persons", []):
            sim.add_person(
                p["name"],
                home_id=_ref(p.get("home")),
                workplace_id=_ref(p.get("workplace")),
                location_id=_ref(p.get("location")),
                specialized_role=p.get("role", "none"),
                needs=p.get("needs"),
            )
