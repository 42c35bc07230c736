"""
Action executor: applies a person's decision to the world.

Actor deltas are applied immediately through the needs calculator (so
level gating and clamping hold). Deltas aimed at buildings are returned
in ``ActionEffects.building_deltas`` and folded by the scheduler at the
hourly join barrier, after every person has acted.

The executor also owns the person-level thresholds: starvation (death),
exhaustion (forced rest) and eviction.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from worldsim.core import locations
from worldsim.core.errors import ValidationError
from worldsim.core.events import Event, EventKind
from worldsim.core.needs import NeedsCalculator
from worldsim.core.types import (
    ACTION_STATUS,
    AchievementType,
    ActionType,
    PersonStatus,
)

if TYPE_CHECKING:
    from worldsim.core.config import SimulationConfig
    from worldsim.core.entities import Person
    from worldsim.core.priorities import Decision
    from worldsim.core.world import World

logger = logging.getLogger(__name__)


@dataclass
class ActionEffects:
    """Everything one action changed or wants changed."""

    action: ActionType
    duration: int
    actor_deltas: dict[str, float] = field(default_factory=dict)
    building_deltas: dict[int, dict[str, float]] = field(
        default_factory=lambda: defaultdict(dict),
    )
    events: list[Event] = field(default_factory=list)

    def add_building_delta(self, building_id: int, key: str, amount: float) -> None:
        deltas = self.building_deltas[building_id]
        deltas[key] = deltas.get(key, 0.0) + amount


class ActionExecutor:
    """Applies decisions and person thresholds for one world."""

    def __init__(self, config: SimulationConfig, world: World, calculator: NeedsCalculator):
        self.config = config
        self.world = world
        self.calculator = calculator
        self.actions = config.action_config
        self.thresholds = config.thresholds
        self._points = config.achievement_config["points_per_achievement"]
        self._mastery_hours = config.achievement_config["skill_mastery_hours"]

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def apply(self, person: Person, decision: Decision, hour: int) -> ActionEffects:
        """Start *decision* for *person* at *hour*.

        Malformed decisions raise ``ValidationError`` before anything on
        the person or the world changes.
        """
        self._validate(person, decision)

        action = decision.action
        person.current_need = decision.need
        if action == ActionType.MOVE:
            effects = self._move(person, decision, hour)
        else:
            duration = int(self.actions[action.value].get("duration", 1))
            effects = ActionEffects(action=action, duration=duration)
            handler = getattr(self, f"_{action.value}")
            handler(person, effects, hour)

        person.status = ACTION_STATUS[action]
        person.current_action = action
        person.until_hour = hour + effects.duration
        return effects

    def _validate(self, person: Person, decision: Decision) -> None:
        action = decision.action
        if not person.is_alive:
            raise ValidationError(f"Person {person.id} is deceased")
        if action.value not in self.actions:
            raise ValidationError(f"Unsupported action {action.value!r}")
        if decision.target_id is not None and decision.target_id not in self.world.buildings:
            raise ValidationError(f"Unknown target building {decision.target_id}")
        if action == ActionType.MOVE:
            if decision.target_id is None:
                raise ValidationError(f"Person {person.id} cannot move without a destination")
            return
        if person.location_id is None:
            raise ValidationError(f"Person {person.id} is not at any building")
        if decision.target_id is not None and decision.target_id != person.location_id:
            raise ValidationError(
                f"{action.value} targets building {decision.target_id} but "
                f"person {person.id} is at {person.location_id}"
            )
        if action == ActionType.PAY_RENT and person.location_id != person.home_id:
            raise ValidationError(f"Person {person.id} must be at home to pay rent")

    def finish(self, person: Person, hour: int) -> list[Event]:
        """Complete the current action once its duration has elapsed."""
        events: list[Event] = []
        if person.current_action == ActionType.MOVE:
            events.append(self._event(
                person, hour, EventKind.MOVEMENT,
                f"{person.name} arrived", location_id=person.location_id,
            ))
        person.status = PersonStatus.IDLE
        person.current_action = None
        person.current_need = None
        return events

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _move(self, person: Person, decision: Decision, hour: int) -> ActionEffects:
        cfg = self.actions["move"]
        target = self.world.buildings[decision.target_id]
        origin = self.world.buildings.get(person.location_id) if person.location_id else None
        hours = 1
        if origin is not None:
            hours = locations.travel_hours(origin, target, cfg["distance_per_hour"])
        effects = ActionEffects(action=ActionType.MOVE, duration=hours)
        effects.actor_deltas = self.calculator.apply_deltas(
            person, {"rest": cfg["rest_per_hour"] * hours},
        )
        # The destination is reserved for the whole trip
        person.location_id = target.id
        effects.events.append(self._event(
            person, hour, EventKind.MOVEMENT,
            f"{person.name} set out for {target.name}",
            location_id=target.id,
            origin_id=origin.id if origin else None,
            hours=hours,
            intended=decision.intended.value if decision.intended else None,
        ))
        return effects

    def _work(self, person: Person, effects: ActionEffects, hour: int) -> None:
        cfg = self.actions["work"]
        effects.actor_deltas = self.calculator.apply_deltas(person, {
            "rest": cfg["rest"], "stress": cfg["stress"], "income": cfg["income"],
        })
        person.work_hours += effects.duration
        building_id = person.location_id
        effects.add_building_delta(building_id, "worker_hours", effects.duration)
        effects.add_building_delta(building_id, "efficiency_progress", effects.duration)
        effects.add_building_delta(building_id, "wages_today", cfg["income"])
        effects.events.append(self._event(
            person, hour, EventKind.WORK, f"{person.name} started a shift",
            location_id=building_id, hours=effects.duration,
        ))
        self._achieve(person, AchievementType.FIRST_JOB, effects, hour)
        if person.work_hours >= self._mastery_hours:
            self._achieve(person, AchievementType.SKILL_MASTERY, effects, hour)

    def _sleep(self, person: Person, effects: ActionEffects, hour: int) -> None:
        effects.actor_deltas = self.calculator.apply_deltas(
            person, {"rest": self.actions["sleep"]["rest"]},
        )
        person.forced_rest = False
        self._fulfilled(person, effects, hour, "rest")

    def _eat(self, person: Person, effects: ActionEffects, hour: int) -> None:
        cfg = self.actions["eat"]
        deltas = {"consumption": cfg["consumption"]}
        if person.location_id != person.home_id:
            deltas["income"] = -cfg["meal_cost"]
        effects.actor_deltas = self.calculator.apply_deltas(person, deltas)
        self._fulfilled(person, effects, hour, "consumption")

    def _socialize(self, person: Person, effects: ActionEffects, hour: int) -> None:
        cfg = self.actions["socialize"]
        effects.actor_deltas = self.calculator.apply_deltas(person, {
            "social": cfg["social"], "stress": cfg["stress"],
        })
        others = self.world.co_located(person)
        if not others:
            return
        partner = others[0]
        effects.events.append(self._event(
            person, hour, EventKind.SOCIAL,
            f"{person.name} spent time with {partner.name}",
            location_id=person.location_id, partner_id=partner.id,
        ))
        if partner.id not in person.relationships:
            person.relationships.append(partner.id)
            if person.id not in partner.relationships:
                partner.relationships.append(person.id)
            bond = {"relationship": cfg["relationship_bond"]}
            applied = self.calculator.apply_deltas(person, bond)
            for channel, delta in applied.items():
                effects.actor_deltas[channel] = effects.actor_deltas.get(channel, 0.0) + delta
            self.calculator.apply_deltas(partner, bond)
            self._achieve(person, AchievementType.RELATIONSHIP_FORMED, effects, hour)
            self._achieve(partner, AchievementType.RELATIONSHIP_FORMED, effects, hour)

    def _use_facilities(self, person: Person, effects: ActionEffects, hour: int) -> None:
        cfg = self.actions["use_facilities"]
        effects.actor_deltas = self.calculator.apply_deltas(person, {"waste": cfg["waste"]})
        effects.add_building_delta(person.location_id, "cleanliness", cfg["cleanliness"])
        self._fulfilled(person, effects, hour, "waste")

    def _shelter(self, person: Person, effects: ActionEffects, hour: int) -> None:
        self._fulfilled(person, effects, hour, person.current_need or "safety")

    def _maintain_building(self, person: Person, effects: ActionEffects, hour: int) -> None:
        cfg = self.actions["maintain_building"]
        effects.actor_deltas = self.calculator.apply_deltas(person, {"rest": cfg["rest"]})
        building_id = person.location_id
        effects.add_building_delta(building_id, "maintenance", cfg["maintenance"])
        effects.add_building_delta(building_id, "prestige_progress", effects.duration)
        effects.events.append(self._event(
            person, hour, EventKind.BUILDING, f"{person.name} repaired their home",
            location_id=building_id,
        ))

    def _clean_building(self, person: Person, effects: ActionEffects, hour: int) -> None:
        cfg = self.actions["clean_building"]
        effects.actor_deltas = self.calculator.apply_deltas(person, {"rest": cfg["rest"]})
        building_id = person.location_id
        effects.add_building_delta(building_id, "cleanliness", cfg["cleanliness"])
        effects.add_building_delta(building_id, "prestige_progress", effects.duration)
        effects.events.append(self._event(
            person, hour, EventKind.BUILDING, f"{person.name} cleaned their home",
            location_id=building_id,
        ))

    def _pay_rent(self, person: Person, effects: ActionEffects, hour: int) -> None:
        home = self.world.buildings[person.home_id]
        amount = min(100.0 - home.rent, person.needs.get("income", 0.0))
        if amount <= 0:
            return
        effects.actor_deltas = self.calculator.apply_deltas(person, {"income": -amount})
        effects.add_building_delta(home.id, "rent", amount)
        effects.events.append(self._event(
            person, hour, EventKind.BUILDING, f"{person.name} paid rent",
            location_id=home.id, amount=amount,
        ))

    # ------------------------------------------------------------------
    # Thresholds
    # ------------------------------------------------------------------

    def check_thresholds(self, person: Person, hour: int) -> list[Event]:
        """Update consecutive-hour counters and fire any breach."""
        if not person.is_alive:
            return []
        events: list[Event] = []
        needs = person.needs
        th = self.thresholds

        person.starving_hours = person.starving_hours + 1 if needs["consumption"] <= 0 else 0
        person.exhausted_hours = person.exhausted_hours + 1 if needs["rest"] <= 0 else 0
        person.broke_hours = person.broke_hours + 1 if needs["income"] <= 0 else 0

        if person.starving_hours >= th["starvation_hours"]:
            person.is_alive = False
            person.died_at_hour = hour
            person.status = PersonStatus.IDLE
            person.current_action = None
            location_id = person.location_id
            person.location_id = None
            logger.info("Person %d (%s) died of starvation at hour %d",
                        person.id, person.name, hour)
            events.append(self._event(
                person, hour, EventKind.THRESHOLD, f"{person.name} died of starvation",
                location_id=location_id, threshold="death",
            ))
            return events

        if person.exhausted_hours >= th["exhaustion_hours"] and not person.forced_rest:
            person.forced_rest = True
            person.exhausted_hours = 0
            events.append(self._event(
                person, hour, EventKind.THRESHOLD, f"{person.name} collapsed from exhaustion",
                location_id=person.location_id, threshold="forced_rest",
            ))

        if person.broke_hours >= th["eviction_hours"] and person.home_id is not None:
            home_id = person.home_id
            person.home_id = None
            person.broke_hours = 0
            events.append(self._event(
                person, hour, EventKind.THRESHOLD, f"{person.name} was evicted",
                location_id=home_id, threshold="eviction",
            ))
        return events

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _achieve(
        self, person: Person, achievement: AchievementType, effects: ActionEffects, hour: int,
    ) -> None:
        if achievement in person.achievements:
            return
        person.achievements.append(achievement)
        self.calculator.apply_deltas(person, {"achievement": self._points})
        effects.events.append(self._event(
            person, hour, EventKind.ACHIEVEMENT,
            f"{person.name} earned {achievement.value.replace('_', ' ')}",
            location_id=person.location_id, achievement=achievement.value,
        ))

    def _fulfilled(self, person: Person, effects: ActionEffects, hour: int, need: str) -> None:
        effects.events.append(self._event(
            person, hour, EventKind.NEED_FULFILLMENT,
            f"{person.name} tended to {need}",
            location_id=person.location_id, need=need,
            action=effects.action.value,
        ))

    @staticmethod
    def _event(
        person: Person,
        hour: int,
        kind: EventKind,
        description: str,
        location_id: int | None = None,
        **data,
    ) -> Event:
        return Event(
            hour=hour,
            entity_id=person.id,
            entity_type="person",
            kind=kind,
            description=description,
            location_id=location_id,
            data=data,
        )
