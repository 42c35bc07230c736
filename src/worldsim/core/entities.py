"""
Person, Building and City records.

Entities reference one another by integer id only; the ``World`` arena
owns every record and resolves ids. Each record carries its own
threshold counters and the accumulators the cascade folds up at the
daily and weekly boundaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

from worldsim.core.needs import default_person_needs
from worldsim.core.types import (
    AchievementType,
    ActionType,
    BuildingKind,
    PersonStatus,
    SpecializedRole,
)


def _base_channels(value: float = 100.0) -> dict[str, float]:
    return {
        "environment": value,
        "consumption": value,
        "connection": 0.0,
        "rest": value,
        "waste": 0.0,
    }


@dataclass
class Person:
    """An autonomous individual driven by hourly needs."""

    # === Identity ===
    id: int
    name: str
    home_id: int | None = None
    workplace_id: int | None = None
    location_id: int | None = None
    specialized_role: SpecializedRole = SpecializedRole.NONE

    # === Activity ===
    status: PersonStatus = PersonStatus.IDLE
    until_hour: int = 0
    current_action: ActionType | None = None
    current_need: str | None = None

    # === Needs (channel -> value) ===
    needs: dict[str, float] = field(default_factory=default_person_needs)

    # === Lifecycle ===
    is_alive: bool = True
    died_at_hour: int | None = None

    # === Threshold counters (consecutive hours) ===
    starving_hours: int = 0
    exhausted_hours: int = 0
    broke_hours: int = 0
    forced_rest: bool = False

    # === Progress ===
    work_hours: int = 0
    achievements: list[AchievementType] = field(default_factory=list)
    relationships: list[int] = field(default_factory=list)

    @property
    def achievement_points(self) -> int:
        return len(self.achievements)

    def to_dict(self) -> dict[str, Any]:
        d = {f.name: getattr(self, f.name) for f in fields(self)}
        d["status"] = self.status.value
        d["specialized_role"] = self.specialized_role.value
        d["current_action"] = self.current_action.value if self.current_action else None
        d["achievements"] = [a.value for a in self.achievements]
        d["needs"] = dict(self.needs)
        d["relationships"] = list(self.relationships)
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Person:
        d = dict(d)
        d["status"] = PersonStatus(d.get("status", "idle"))
        d["specialized_role"] = SpecializedRole(d.get("specialized_role", "none"))
        if d.get("current_action"):
            d["current_action"] = ActionType(d["current_action"])
        d["achievements"] = [AchievementType(a) for a in d.get("achievements", [])]
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in d.items() if k in known})


@dataclass
class Building:
    """A location persons occupy. Updated once per simulated day."""

    # === Identity ===
    id: int
    name: str
    city_id: int
    kind: BuildingKind
    capacity: int = 10
    x: float = 0.0
    y: float = 0.0
    # Overrides the base quality of the kind when set
    environmental_quality: float | None = None

    # === Channels ===
    needs: dict[str, float] = field(default_factory=_base_channels)
    maintenance: float = 100.0
    cleanliness: float = 100.0
    # Home only
    rent: float = 100.0
    # Workplace only
    cost: float = 0.0
    consumption: float = 0.0
    production: float = 0.0
    inventory: float = 0.0
    stockpile: float = 100.0

    # === Upgrades ===
    efficiency_stage: int = 0
    prestige_stage: int = 0
    efficiency_progress: float = 0.0
    prestige_progress: float = 0.0

    # === Lifecycle ===
    condemned: bool = False
    shut_down: bool = False
    neglected_days: int = 0
    starved_days: int = 0

    # === Accumulators (folded at the hourly barrier, cleared daily) ===
    occupant_hours: float = 0.0
    worker_hours: float = 0.0
    wages_today: float = 0.0

    @property
    def is_home(self) -> bool:
        return self.kind == BuildingKind.HOME

    @property
    def is_workplace(self) -> bool:
        return self.kind == BuildingKind.WORKPLACE

    def to_dict(self) -> dict[str, Any]:
        d = {f.name: getattr(self, f.name) for f in fields(self)}
        d["kind"] = self.kind.value
        d["needs"] = dict(self.needs)
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Building:
        d = dict(d)
        d["kind"] = BuildingKind(d["kind"])
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in d.items() if k in known})


@dataclass
class City:
    """An aggregate of buildings. Updated once per simulated week."""

    # === Identity ===
    id: int
    name: str
    building_ids: list[int] = field(default_factory=list)
    population: int = 0

    # === Channels ===
    needs: dict[str, float] = field(default_factory=_base_channels)
    # Economic
    tax_base: float = 0.0
    tax_reserve: float = 1000.0
    import_total: float = 0.0
    export_total: float = 0.0
    public_works: float = 100.0
    # Social
    stability: float = 100.0
    health: float = 100.0
    safety: float = 100.0
    # Development
    culture: float = 0.0
    science: float = 0.0
    prestige: float = 0.0
    unemployment_rate: float = 0.0
    average_happiness: float = 0.0

    # === Lifecycle ===
    in_decline: bool = False
    in_unrest: bool = False
    deficit_weeks: int = 0
    unstable_weeks: int = 0

    # === Accumulators (cleared weekly) ===
    wages_week: float = 0.0

    # === Push-down into location modifiers ===
    location_offsets: dict[str, float] = field(default_factory=dict)

    @property
    def infrastructure_factor(self) -> float:
        """Multiplier on building maintenance depletion (1.0 at full repair)."""
        return 2.0 - self.public_works / 100.0

    def to_dict(self) -> dict[str, Any]:
        d = {f.name: getattr(self, f.name) for f in fields(self)}
        d["building_ids"] = list(self.building_ids)
        d["needs"] = dict(self.needs)
        d["location_offsets"] = dict(self.location_offsets)
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> City:
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in d.items() if k in known})
