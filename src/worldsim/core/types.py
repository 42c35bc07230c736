"""
Shared enums for the world simulation.

Kept free of imports from the rest of the package so every module can use
them without import cycles.
"""

from __future__ import annotations

from enum import Enum


class PersonStatus(str, Enum):
    """What a person is currently busy with."""

    IDLE = "idle"
    WORKING = "working"
    SLEEPING = "sleeping"
    EATING = "eating"
    SOCIALIZING = "socializing"
    IN_TRANSIT = "in_transit"
    MAINTAINING = "maintaining"
    USING_FACILITIES = "using_facilities"
    SHELTERING = "sheltering"


class SpecializedRole(str, Enum):
    """Level-5 self-actualization roles."""

    NONE = "none"
    ARTIST = "artist"
    SCIENTIST = "scientist"
    LEADER = "leader"
    EDUCATOR = "educator"
    HEALER = "healer"


class BuildingKind(str, Enum):
    """Closed set of building variants, dispatched by tag."""

    HOME = "home"
    WORKPLACE = "workplace"
    RESTAURANT = "restaurant"
    PARK = "park"
    HOSPITAL = "hospital"
    POLICE_STATION = "police_station"
    SCHOOL = "school"
    RESEARCH_LAB = "research_lab"
    CULTURE_CENTER = "culture_center"
    CITY_HALL = "city_hall"


class ActionType(str, Enum):
    """Actions a person can take."""

    MOVE = "move"
    WORK = "work"
    SLEEP = "sleep"
    EAT = "eat"
    SOCIALIZE = "socialize"
    USE_FACILITIES = "use_facilities"
    SHELTER = "shelter"
    MAINTAIN_BUILDING = "maintain_building"
    CLEAN_BUILDING = "clean_building"
    PAY_RENT = "pay_rent"


# Status a person holds while performing each action
ACTION_STATUS: dict[ActionType, PersonStatus] = {
    ActionType.MOVE: PersonStatus.IN_TRANSIT,
    ActionType.WORK: PersonStatus.WORKING,
    ActionType.SLEEP: PersonStatus.SLEEPING,
    ActionType.EAT: PersonStatus.EATING,
    ActionType.SOCIALIZE: PersonStatus.SOCIALIZING,
    ActionType.USE_FACILITIES: PersonStatus.USING_FACILITIES,
    ActionType.SHELTER: PersonStatus.SHELTERING,
    ActionType.MAINTAIN_BUILDING: PersonStatus.MAINTAINING,
    ActionType.CLEAN_BUILDING: PersonStatus.MAINTAINING,
    ActionType.PAY_RENT: PersonStatus.IDLE,
}


class AchievementType(str, Enum):
    FIRST_JOB = "first_job"
    SKILL_MASTERY = "skill_mastery"
    RELATIONSHIP_FORMED = "relationship_formed"


class TickPhase(str, Enum):
    """Scheduler state machine."""

    IDLE = "idle"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
