"""
Priority resolver: which unmet need a person acts on next.

Urgency of a channel is ``(100 - satisfaction%) * weight``. Only channels
of active Maslow levels that sit below the satisfied threshold compete.
The highest score wins; ties go to the lower level, then to channel
declaration order. The winning channel maps to an action and a location
chosen by a pluggable ``LocationStrategy``. If nothing reachable serves
the winner, the next-ranked need is tried.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Protocol

from worldsim.core import locations
from worldsim.core.needs import CHANNEL_SPECS, active_levels, satisfaction
from worldsim.core.types import ActionType, SpecializedRole

if TYPE_CHECKING:
    from worldsim.core.config import SimulationConfig
    from worldsim.core.entities import Building, Person
    from worldsim.core.world import World


# channel -> (action, capability the target building must provide)
NEED_ACTIONS: dict[str, tuple[ActionType, str]] = {
    "waste": (ActionType.USE_FACILITIES, locations.FACILITIES),
    "consumption": (ActionType.EAT, locations.FOOD),
    "rest": (ActionType.SLEEP, locations.REST),
    "environment": (ActionType.SHELTER, locations.REST),
    "threat": (ActionType.SHELTER, locations.REST),
    "safety": (ActionType.SHELTER, locations.REST),
    "income": (ActionType.WORK, locations.WORK),
    "stress": (ActionType.SOCIALIZE, locations.SOCIAL),
    "connection": (ActionType.SOCIALIZE, locations.SOCIAL),
    "relationship": (ActionType.SOCIALIZE, locations.SOCIAL),
    "social": (ActionType.SOCIALIZE, locations.SOCIAL),
    "community": (ActionType.SOCIALIZE, locations.SOCIAL),
    "achievement": (ActionType.WORK, locations.WORK),
    "progression": (ActionType.WORK, locations.WORK),
}


@dataclass
class Decision:
    """A chosen action with the need it serves and where it happens."""

    need: str | None
    action: ActionType
    target_id: int | None
    # The action to perform on arrival when ``action`` is MOVE
    intended: ActionType | None = None
    scores: dict[str, float] = field(default_factory=dict)

    def __iter__(self):
        yield self.need
        yield self.action

    def to_dict(self) -> dict[str, Any]:
        return {
            "need": self.need,
            "action": self.action.value,
            "target_id": self.target_id,
            "intended": self.intended.value if self.intended else None,
            "scores": dict(self.scores),
        }


# ---------------------------------------------------------------------------
# Location strategies
# ---------------------------------------------------------------------------

class LocationStrategy(Protocol):
    """Picks the building where *person* should satisfy *capability*."""

    def choose(
        self,
        person: Person,
        capability: str,
        world: World,
        accept: Callable[[Building], bool] | None = None,
    ) -> int | None: ...


class NearestCapableStrategy:
    """
    Score every capable building by
    ``quality + home bonus + work bonus - distance * penalty``
    (quality already carries the prestige bonus) and take the best.

    Condemned, shut-down and full buildings are skipped; the building the
    person already occupies never counts as full for them.
    """

    def __init__(
        self,
        home_bonus: float = 2.0,
        work_bonus: float = 1.0,
        distance_penalty: float = 0.1,
        prestige_bonus: float = 0.2,
    ):
        self.home_bonus = home_bonus
        self.work_bonus = work_bonus
        self.distance_penalty = distance_penalty
        self.prestige_bonus = prestige_bonus

    def choose(
        self,
        person: Person,
        capability: str,
        world: World,
        accept: Callable[[Building], bool] | None = None,
    ) -> int | None:
        origin = world.buildings.get(person.location_id) if person.location_id else None
        best_id: int | None = None
        best_score = float("-inf")
        for building in world.buildings.values():
            if capability not in locations.provides(building):
                continue
            if building.condemned or building.shut_down:
                continue
            if accept is not None and not accept(building):
                continue
            if (building.id != person.location_id
                    and world.occupancy(building.id) >= building.capacity):
                continue
            score = locations.base_quality(building, self.prestige_bonus)
            if building.id == person.home_id:
                score += self.home_bonus
            if building.id == person.workplace_id:
                score += self.work_bonus
            if origin is not None:
                score -= locations.distance(origin, building) * self.distance_penalty
            if score > best_score:
                best_score = score
                best_id = building.id
        return best_id


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class PriorityResolver:
    """Turns a person's need vector into a single ``Decision``."""

    def __init__(
        self,
        config: SimulationConfig,
        world: World,
        strategy: LocationStrategy | None = None,
    ):
        self.config = config
        self.world = world
        self.strategy: LocationStrategy = strategy or NearestCapableStrategy(
            prestige_bonus=config.upgrade_config["prestige_quality_bonus"],
        )
        self.weights = config.priority_weights
        self._satisfied: float = config.thresholds["satisfied"]
        self._adequate: float = config.thresholds["level_adequate"]

    def rank(self, person: Person) -> list[tuple[str, float]]:
        """Candidate channels with their urgency, most urgent first."""
        levels = active_levels(person.needs, self._adequate)
        order = list(CHANNEL_SPECS)
        scored: list[tuple[str, float]] = []
        for channel, spec in CHANNEL_SPECS.items():
            if spec.level not in levels:
                continue
            sat = satisfaction(channel, person.needs.get(channel, 0.0))
            if sat >= self._satisfied:
                continue
            scored.append((channel, (100.0 - sat) * self.weights.get(channel, 1.0)))
        scored.sort(key=lambda item: (
            -item[1], CHANNEL_SPECS[item[0]].level, order.index(item[0]),
        ))
        return scored

    def select_action(self, person: Person) -> Decision | None:
        """
        Pick the next action for *person*.

        Returns ``None`` when no need is unmet and no chore is due, or when
        nothing reachable serves any unmet need.
        """
        if person.forced_rest:
            target = self._target_for(person, ActionType.SLEEP, locations.REST)
            if target is not None:
                return self._decide(person, "rest", ActionType.SLEEP, target, {})

        ranked = self.rank(person)
        scores = dict(ranked)
        for channel, _ in ranked:
            action, capability = NEED_ACTIONS[channel]
            if action == ActionType.WORK and not self._can_work(person):
                continue
            target = self._target_for(person, action, capability)
            if target is None:
                continue
            return self._decide(person, channel, action, target, scores)

        if not ranked:
            return self._chore(person)
        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _decide(
        self,
        person: Person,
        need: str | None,
        action: ActionType,
        target: int,
        scores: dict[str, float],
    ) -> Decision:
        if target != person.location_id:
            return Decision(need, ActionType.MOVE, target, intended=action, scores=scores)
        return Decision(need, action, target, scores=scores)

    @staticmethod
    def _can_work(person: Person) -> bool:
        """Employed persons work their job; specialists find any workplace."""
        return (person.workplace_id is not None
                or person.specialized_role != SpecializedRole.NONE)

    def _target_for(self, person: Person, action: ActionType, capability: str) -> int | None:
        world = self.world
        if action == ActionType.WORK and person.workplace_id is not None:
            workplace = world.buildings[person.workplace_id]
            if workplace.condemned or workplace.shut_down:
                return None
            if (workplace.id != person.location_id
                    and world.occupancy(workplace.id) >= workplace.capacity):
                return None
            return workplace.id
        if action == ActionType.SLEEP and person.home_id is not None:
            home = world.buildings[person.home_id]
            if not home.condemned and (
                home.id == person.location_id or world.occupancy(home.id) < home.capacity
            ):
                return home.id
        if action == ActionType.EAT:
            meal_cost = self.config.action_config["eat"]["meal_cost"]
            can_pay = person.needs.get("income", 0.0) >= meal_cost
            return self.strategy.choose(
                person, capability, world,
                accept=lambda b: b.id == person.home_id or can_pay,
            )
        return self.strategy.choose(person, capability, world)

    def _chore(self, person: Person) -> Decision | None:
        """Household upkeep when every need is satisfied."""
        if person.home_id is None:
            return None
        home = self.world.buildings[person.home_id]
        if home.condemned:
            return None
        if home.id != person.location_id and self.world.occupancy(home.id) >= home.capacity:
            return None
        th = self.config.thresholds
        if home.rent < th["rent_low"] and person.needs.get("income", 0.0) > 0:
            return self._decide(person, None, ActionType.PAY_RENT, home.id, {})
        if home.maintenance < th["home_run_down"]:
            return self._decide(person, None, ActionType.MAINTAIN_BUILDING, home.id, {})
        if home.cleanliness < th["home_run_down"]:
            return self._decide(person, None, ActionType.CLEAN_BUILDING, home.id, {})
        return None
