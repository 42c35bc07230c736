"""
Multi-frequency cascading tick engine.

One monotonic hour counter drives three cadences:

- every hour, each alive person is advanced, re-evaluated and acted on,
  in insertion order;
- when ``hour % 24 == 0`` the cascade runs at building scope for every city;
- when ``hour % 168 == 0`` it additionally runs at city scope.

Per-person building effects are collected during the hourly pass and
folded only after every person has acted (the join barrier), so the
order of persons never changes what a building sees.

``tick()``, ``skip(n)`` and the real-time synchronizer all funnel through
``advance()``, which holds the world lock, snapshots the world first and
restores it if anything fails. A tick either happens completely or not at
all.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

from worldsim.core.actions import ActionExecutor
from worldsim.core.cascade import BUILDING_SCOPE, CITY_SCOPE, CascadePropagator
from worldsim.core.clock import SimulationClock
from worldsim.core.errors import ConcurrencyConflict, StorageUnavailable, ValidationError
from worldsim.core.needs import NeedsCalculator
from worldsim.core.priorities import LocationStrategy, PriorityResolver
from worldsim.core.types import PersonStatus, TickPhase
from worldsim.core.world import World, WorldStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tick report
# ---------------------------------------------------------------------------

@dataclass
class TickReport:
    """What happened during one simulated hour."""

    hour: int
    daily: bool = False
    weekly: bool = False
    # person_id -> action started this hour
    actions: dict[int, str] = field(default_factory=dict)
    events: int = 0
    deaths: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "hour": self.hour,
            "daily": self.daily,
            "weekly": self.weekly,
            "actions": {str(k): v for k, v in self.actions.items()},
            "events": self.events,
            "deaths": list(self.deaths),
        }


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------

class TickScheduler:
    """
    Single entry point for advancing one world.

    Parameters
    ----------
    world : World
        The arena to advance.
    store : WorldStore, optional
        Persistence collaborator; committed once per successful advance.
    strategy : LocationStrategy, optional
        Location-selection heuristic handed to the priority resolver.
    """

    def __init__(
        self,
        world: World,
        store: WorldStore | None = None,
        strategy: LocationStrategy | None = None,
    ):
        self.world = world
        self.config = world.config
        self.store = store
        self.clock = SimulationClock(world)
        self.calculator = NeedsCalculator(self.config)
        self.resolver = PriorityResolver(self.config, world, strategy)
        self.executor = ActionExecutor(self.config, world, self.calculator)
        self.propagator = CascadePropagator(self.config, world)
        self.phase = TickPhase.IDLE
        self.last_report: TickReport | None = None

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @contextmanager
    def locked(self) -> Iterator[World]:
        """Hold the world lock, retrying the acquisition once."""
        lock = self.world.lock
        timeout = self.config.lock_timeout_s
        acquired = lock.acquire(timeout=timeout) or lock.acquire(timeout=timeout)
        if not acquired:
            raise ConcurrencyConflict(
                f"World {self.world.world_id!r} is busy; try again"
            )
        try:
            yield self.world
        finally:
            lock.release()

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def tick(self) -> TickReport:
        """Advance one simulated hour."""
        return self.advance(1)[-1]

    def skip(self, n_hours: int) -> list[TickReport]:
        """Advance *n_hours* as one atomic unit."""
        return self.advance(n_hours)

    def advance(self, n_hours: int, *, automatic: bool = False) -> list[TickReport]:
        """
        Run *n_hours* ticks under the world lock.

        Manual advancement of a paused world is rejected; the synchronizer
        checks the pause flag itself and passes ``automatic=True``.
        """
        if isinstance(n_hours, bool) or not isinstance(n_hours, int) or n_hours < 1:
            raise ValidationError(f"Hours to advance must be a positive integer, got {n_hours!r}")
        with self.locked() as world:
            if world.paused and not automatic:
                raise ValidationError(f"World {world.world_id!r} is paused")
            snapshot = world.snapshot()
            try:
                reports = [self._run_hour() for _ in range(n_hours)]
                self._commit()
            except Exception:
                world.restore(snapshot)
                logger.warning(
                    "Rolled back world %s to hour %d", world.world_id, world.current_hour,
                    exc_info=True,
                )
                raise
            finally:
                self.phase = TickPhase.IDLE
        self.last_report = reports[-1]
        return reports

    # ------------------------------------------------------------------
    # One hour
    # ------------------------------------------------------------------

    def _run_hour(self) -> TickReport:
        world = self.world
        hour = self.clock.advance()
        report = TickReport(hour=hour)
        events_before = len(world.events)

        self.phase = TickPhase.HOURLY
        building_deltas: dict[int, dict[str, float]] = defaultdict(dict)
        for person in list(world.persons.values()):
            if person.is_alive:
                self._step_person(person, hour, building_deltas, report)

        # Join barrier
        self.propagator.fold(building_deltas)

        if self.clock.is_day_boundary(hour):
            self.phase = TickPhase.DAILY
            report.daily = True
            for city in world.cities.values():
                self.propagator.propagate(city, BUILDING_SCOPE)
        if self.clock.is_week_boundary(hour):
            self.phase = TickPhase.WEEKLY
            report.weekly = True
            for city in world.cities.values():
                self.propagator.propagate(city, CITY_SCOPE)

        self.phase = TickPhase.IDLE
        report.events = len(world.events) - events_before
        logger.debug(
            "Hour %d: %d actions, %d events%s%s", hour, len(report.actions), report.events,
            " [daily]" if report.daily else "", " [weekly]" if report.weekly else "",
        )
        return report

    def _step_person(
        self,
        person,
        hour: int,
        building_deltas: dict[int, dict[str, float]],
        report: TickReport,
    ) -> None:
        world = self.world
        modifiers = self.propagator.location_modifiers(person)
        person.needs = self.calculator.advance(person, modifiers, 1)

        for event in self.executor.check_thresholds(person, hour):
            world.record(event)
        if not person.is_alive:
            report.deaths.append(person.id)
            return

        if person.location_id is not None and person.status != PersonStatus.IN_TRANSIT:
            _add(building_deltas, person.location_id, "occupant_hours", 1.0)

        if hour < person.until_hour:
            return
        for event in self.executor.finish(person, hour):
            world.record(event)
        decision = self.resolver.select_action(person)
        if decision is None:
            return
        effects = self.executor.apply(person, decision, hour)
        for event in effects.events:
            world.record(event)
        for building_id, deltas in effects.building_deltas.items():
            for key, amount in deltas.items():
                _add(building_deltas, building_id, key, amount)
        report.actions[person.id] = decision.action.value

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _commit(self) -> None:
        if self.store is None:
            return
        try:
            self.world.commit_to(self.store)
        except StorageUnavailable:
            raise
        except Exception as exc:
            raise StorageUnavailable(f"Could not commit world {self.world.world_id!r}") from exc


def _add(deltas: dict[int, dict[str, float]], building_id: int, key: str, amount: float) -> None:
    bucket = deltas[building_id]
    bucket[key] = bucket.get(key, 0.0) + amount
