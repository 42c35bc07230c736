"""
Need channels and the depletion/fulfillment calculator.

Persons carry fourteen channels grouped into five Maslow levels. Most
channels are "higher is better"; waste, threat and stress are inverted
(they accumulate and higher is worse). Every level above the first is
*gated*: it accepts fulfillment only while the level below averages at
least 50% satisfaction and is itself active. Natural depletion is never
gated.

Location keys are plain strings on ``LocationModifiers`` so this module
does not depend on the building model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TYPE_CHECKING

import numpy as np

from worldsim.core.types import PersonStatus, SpecializedRole

if TYPE_CHECKING:
    from worldsim.core.config import SimulationConfig
    from worldsim.core.entities import Person


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------

class NeedChannel(str, Enum):
    """Scalar dimensions of a person's well-being."""

    # Level 1: physiological (the five base channels)
    ENVIRONMENT = "environment"
    CONSUMPTION = "consumption"
    CONNECTION = "connection"
    REST = "rest"
    WASTE = "waste"
    # Level 2: safety & security
    THREAT = "threat"
    INCOME = "income"
    STRESS = "stress"
    SAFETY = "safety"
    # Level 3: love & belonging
    RELATIONSHIP = "relationship"
    SOCIAL = "social"
    COMMUNITY = "community"
    # Level 4: esteem
    ACHIEVEMENT = "achievement"
    # Level 5: self-actualization
    PROGRESSION = "progression"


BASE_CHANNELS: tuple[str, ...] = (
    NeedChannel.ENVIRONMENT.value,
    NeedChannel.CONSUMPTION.value,
    NeedChannel.CONNECTION.value,
    NeedChannel.REST.value,
    NeedChannel.WASTE.value,
)

SUB_CHANNEL_MAX = 33.3


@dataclass(frozen=True)
class ChannelSpec:
    """Static description of one channel."""

    level: int
    maximum: float = 100.0
    inverted: bool = False
    # Satisfaction is computed against this cap (income may exceed it)
    satisfaction_cap: float | None = None


CHANNEL_SPECS: dict[str, ChannelSpec] = {
    "environment": ChannelSpec(level=1),
    "consumption": ChannelSpec(level=1),
    "connection": ChannelSpec(level=1),
    "rest": ChannelSpec(level=1),
    "waste": ChannelSpec(level=1, inverted=True),
    "threat": ChannelSpec(level=2, inverted=True),
    "income": ChannelSpec(level=2, maximum=1000.0, satisfaction_cap=100.0),
    "stress": ChannelSpec(level=2, inverted=True),
    "safety": ChannelSpec(level=2),
    "relationship": ChannelSpec(level=3, maximum=SUB_CHANNEL_MAX),
    "social": ChannelSpec(level=3, maximum=SUB_CHANNEL_MAX),
    "community": ChannelSpec(level=3, maximum=SUB_CHANNEL_MAX),
    "achievement": ChannelSpec(level=4),
    "progression": ChannelSpec(level=5),
}

LEVEL_CHANNELS: dict[int, tuple[str, ...]] = {
    level: tuple(name for name, spec in CHANNEL_SPECS.items() if spec.level == level)
    for level in range(1, 6)
}


def default_person_needs() -> dict[str, float]:
    """Starting vector for a freshly seeded person."""
    return {
        "environment": 80.0,
        "consumption": 70.0,
        "connection": 50.0,
        "rest": 80.0,
        "waste": 20.0,
        "threat": 20.0,
        "income": 50.0,
        "stress": 30.0,
        "safety": 70.0,
        "relationship": 0.0,
        "social": 0.0,
        "community": 20.0,
        "achievement": 0.0,
        "progression": 0.0,
    }


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def clamp_channel(channel: str, value: float) -> float:
    """Clamp *value* into the declared range of *channel*."""
    spec = CHANNEL_SPECS[channel]
    return float(np.clip(value, 0.0, spec.maximum))


def satisfaction(channel: str, value: float) -> float:
    """Satisfaction of *channel* at *value* as a percentage (0-100)."""
    spec = CHANNEL_SPECS[channel]
    cap = spec.satisfaction_cap or spec.maximum
    level = min(value, cap)
    if spec.inverted:
        level = cap - level
    return 100.0 * level / cap


def level_adequacy(needs: dict[str, float], level: int) -> float:
    """Mean satisfaction percentage of the channels of *level*."""
    channels = LEVEL_CHANNELS[level]
    return float(np.mean([satisfaction(c, needs.get(c, 0.0)) for c in channels]))


def active_levels(needs: dict[str, float], adequate: float = 50.0) -> set[int]:
    """Levels whose channels currently accept fulfillment.

    Level 1 is always active; level N is active when level N-1 is active
    and averages at least *adequate*.
    """
    active = {1}
    for level in range(2, 6):
        if level - 1 in active and level_adequacy(needs, level - 1) >= adequate:
            active.add(level)
        else:
            break
    return active


def is_fulfillment(channel: str, delta: float) -> bool:
    """True when *delta* raises the satisfaction of *channel*."""
    if CHANNEL_SPECS[channel].inverted:
        return delta < 0
    return delta > 0


# ---------------------------------------------------------------------------
# Location modifiers
# ---------------------------------------------------------------------------

@dataclass
class LocationModifiers:
    """
    What a person's current location does to their need rates.

    ``multipliers`` scale a channel's base rate and ``offsets`` are added
    afterwards; both are filled in by the cascade when aggregates are
    pushed down from buildings and cities.
    """

    environmental_quality: float = 0.0
    provides: frozenset[str] = frozenset()
    is_own_home: bool = False
    multipliers: dict[str, float] = field(default_factory=dict)
    offsets: dict[str, float] = field(default_factory=dict)

    def is_hazardous(self, hazard_threshold: float = -1.0) -> bool:
        return self.environmental_quality < hazard_threshold

    @property
    def is_healing(self) -> bool:
        return self.environmental_quality > 0.0


NEUTRAL_LOCATION = LocationModifiers()


# ---------------------------------------------------------------------------
# NeedsCalculator
# ---------------------------------------------------------------------------

class NeedsCalculator:
    """
    Computes need vectors from the current one, location modifiers and
    elapsed hours, and applies action deltas under the same gating rule.

    All rates and thresholds come from ``SimulationConfig``.
    """

    def __init__(self, config: SimulationConfig) -> None:
        self.config = config
        self._rates = config.person_rates
        self._adequate: float = config.thresholds["level_adequate"]
        self._income_critical: float = config.thresholds["income_critical"]
        self._hazard: float = config.thresholds["hazardous_quality"]

    # ------------------------------------------------------------------
    # Rates
    # ------------------------------------------------------------------

    def hourly_rates(
        self, person: Person, modifiers: LocationModifiers,
    ) -> dict[str, float]:
        """Signed per-hour rate for every channel, before gating."""
        r = self._rates
        status = person.status
        needs = person.needs
        working = status == PersonStatus.WORKING
        sleeping = status == PersonStatus.SLEEPING
        socializing = status == PersonStatus.SOCIALIZING
        hazardous = modifiers.is_hazardous(self._hazard)
        safe_building = bool({"rest", "healthcare"} & modifiers.provides)
        poor = needs.get("income", 0.0) < self._income_critical

        rates: dict[str, float] = {}

        if working:
            rates["consumption"] = r["consumption_working"]
        elif sleeping:
            rates["consumption"] = r["consumption_sleeping"]
        else:
            rates["consumption"] = r["consumption_idle"]

        if modifiers.is_healing:
            rates["environment"] = r["environment_healing"]
        elif hazardous:
            rates["environment"] = (
                r["environment_neutral"] * r["environment_hazard_multiplier"]
            )
        else:
            rates["environment"] = r["environment_neutral"]

        rates["connection"] = r["connection_base"]

        if sleeping:
            rest = r["rest_sleeping"]
        elif working:
            rest = r["rest_working"]
        else:
            rest = r["rest_idle"]
        rates["rest"] = rest + (needs.get("stress", 0.0) / 10.0) * r["rest_per_10_stress"]

        rates["waste"] = r["waste_base"]

        if safe_building:
            rates["threat"] = r["threat_safe_building"]
        elif hazardous:
            rates["threat"] = r["threat_dangerous"]
        else:
            rates["threat"] = r["threat_base"]

        rates["income"] = r["income_working"] if working else r["income_living_cost"]

        if working:
            stress = r["stress_working"]
        elif socializing:
            stress = r["stress_socializing"]
        else:
            stress = r["stress_base"]
        rates["stress"] = stress + (r["stress_low_income"] if poor else 0.0)

        if modifiers.is_own_home and "rest" in modifiers.provides:
            safety = r["safety_at_home"]
        elif "healthcare" in modifiers.provides or modifiers.is_healing:
            safety = r["safety_safe_location"]
        elif hazardous:
            safety = r["safety_unsafe_area"]
        else:
            safety = r["safety_base"]
        rates["safety"] = safety + (r["safety_low_income"] if poor else 0.0)

        rates["relationship"] = r["relationship_base"]
        rates["social"] = r["social_base"]
        rates["community"] = (
            r["community_socializing"] if socializing else r["community_base"]
        )
        rates["achievement"] = 0.0

        meaningful = working and person.specialized_role != SpecializedRole.NONE
        rates["progression"] = r["progression_meaningful_work"] if meaningful else 0.0

        for channel, mult in modifiers.multipliers.items():
            if channel in rates:
                rates[channel] *= mult
        for channel, offset in modifiers.offsets.items():
            if channel in rates:
                rates[channel] += offset
        return rates

    # ------------------------------------------------------------------
    # Advance
    # ------------------------------------------------------------------

    def advance(
        self,
        person: Person,
        modifiers: LocationModifiers,
        elapsed_units: int = 1,
    ) -> dict[str, float]:
        """
        Return the need vector after *elapsed_units* hours.

        Pure: *person* is not mutated. Gating is judged against the vector
        at the start of the interval.
        """
        if elapsed_units <= 0:
            return dict(person.needs)
        rates = self.hourly_rates(person, modifiers)
        levels = active_levels(person.needs, self._adequate)
        result: dict[str, float] = {}
        for channel, spec in CHANNEL_SPECS.items():
            current = person.needs.get(channel, 0.0)
            delta = rates.get(channel, 0.0) * elapsed_units
            if spec.level not in levels and is_fulfillment(channel, delta):
                delta = 0.0
            result[channel] = clamp_channel(channel, current + delta)
        return result

    def apply_deltas(
        self, person: Person, deltas: dict[str, float],
    ) -> dict[str, float]:
        """
        Apply action deltas to *person* in place.

        Returns the deltas actually applied after gating and clamping.
        """
        levels = active_levels(person.needs, self._adequate)
        applied: dict[str, float] = {}
        for channel, delta in deltas.items():
            spec = CHANNEL_SPECS.get(channel)
            if spec is None or delta == 0:
                continue
            if spec.level not in levels and is_fulfillment(channel, delta):
                continue
            before = person.needs.get(channel, 0.0)
            after = clamp_channel(channel, before + delta)
            person.needs[channel] = after
            if after != before:
                applied[channel] = after - before
        return applied

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def level_summary(self, needs: dict[str, float]) -> dict[str, Any]:
        """Adequacy per level plus the set of active levels."""
        return {
            "adequacy": {level: level_adequacy(needs, level) for level in range(1, 6)},
            "active_levels": sorted(active_levels(needs, self._adequate)),
        }
