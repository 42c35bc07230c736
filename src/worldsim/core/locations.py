"""
Building capabilities and the location modifiers they imply.

Each building kind provides a fixed set of capabilities (food, rest,
social, facilities, healthcare, culture, work) and a default environmental
quality, which a seeded building may override (a tannery, a slum).
The modifiers a person experiences combine these with the building's
prestige stage and whatever the cascade pushed down from the city.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from worldsim.core.needs import LocationModifiers
from worldsim.core.types import BuildingKind

if TYPE_CHECKING:
    from worldsim.core.entities import Building, Person


FOOD = "food"
REST = "rest"
SOCIAL = "social"
FACILITIES = "facilities"
HEALTHCARE = "healthcare"
CULTURE = "culture"
WORK = "work"


# Seeded qualities must lie in this range; below the hazard threshold
# (-1.0 by default) a location is dangerous
QUALITY_RANGE: tuple[float, float] = (-3.0, 2.0)

# kind -> (capabilities, default environmental quality)
CAPABILITIES: dict[BuildingKind, tuple[frozenset[str], float]] = {
    BuildingKind.HOME: (frozenset({FOOD, REST, FACILITIES}), 0.5),
    BuildingKind.WORKPLACE: (frozenset({SOCIAL, FACILITIES, WORK}), -0.5),
    BuildingKind.RESTAURANT: (frozenset({FOOD, SOCIAL, FACILITIES}), 0.0),
    BuildingKind.PARK: (frozenset({REST, SOCIAL, CULTURE}), 1.5),
    BuildingKind.HOSPITAL: (frozenset({REST, FACILITIES, HEALTHCARE}), 2.0),
    BuildingKind.POLICE_STATION: (frozenset({FACILITIES}), 0.0),
    BuildingKind.SCHOOL: (frozenset({FACILITIES}), 0.0),
    BuildingKind.RESEARCH_LAB: (frozenset({FACILITIES}), 0.0),
    BuildingKind.CULTURE_CENTER: (frozenset({FACILITIES}), 0.0),
    BuildingKind.CITY_HALL: (frozenset({FACILITIES}), 0.0),
}


def provides(building: Building) -> frozenset[str]:
    return CAPABILITIES[building.kind][0]


def base_quality(building: Building, prestige_bonus: float = 0.2) -> float:
    """Environmental quality including the prestige upgrade bonus."""
    quality = building.environmental_quality
    if quality is None:
        quality = CAPABILITIES[building.kind][1]
    return quality + building.prestige_stage * prestige_bonus


def distance(a: Building, b: Building) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


def travel_hours(a: Building, b: Building, distance_per_hour: float = 10.0) -> int:
    """Whole hours needed to move between two buildings (at least one)."""
    return max(1, math.ceil(distance(a, b) / distance_per_hour))


def modifiers_for(
    person: Person,
    building: Building | None,
    prestige_bonus: float = 0.2,
    city_offsets: dict[str, float] | None = None,
) -> LocationModifiers:
    """Location modifiers for *person* standing in *building*."""
    offsets = dict(city_offsets or {})
    if building is None:
        return LocationModifiers(offsets=offsets)
    return LocationModifiers(
        environmental_quality=base_quality(building, prestige_bonus),
        provides=provides(building),
        is_own_home=building.id == person.home_id,
        offsets=offsets,
    )
