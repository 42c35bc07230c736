"""
Master configuration for the world simulation.

ALL tunable parameters live here. Rates are per elapsed unit of the entity's
own cadence: per hour for persons, per day for buildings, per week for cities.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class SimulationConfig:
    """
    Master configuration, every rate and threshold as a tunable.

    Use ``to_dict()`` / ``from_dict()`` for serialization and comparison.
    """

    # === World identity ===
    world_name: str = "default"
    start_paused: bool = False

    # === Person need rates (per hour) ===
    person_rates: dict[str, float] = field(default_factory=lambda: {
        "consumption_idle": -2.0,
        "consumption_working": -3.0,
        "consumption_sleeping": -1.5,
        "environment_neutral": -1.0,
        "environment_healing": 0.5,
        "environment_hazard_multiplier": 3.0,
        "connection_base": -0.5,
        "rest_idle": -1.5,
        "rest_working": -2.5,
        "rest_sleeping": 8.0,
        "rest_per_10_stress": -0.1,
        "waste_base": 2.0,
        "threat_base": 0.2,
        "threat_safe_building": -0.5,
        "threat_dangerous": 2.0,
        "income_living_cost": -0.2,
        "income_working": 5.0,
        "stress_base": -0.3,
        "stress_working": 1.0,
        "stress_socializing": -2.0,
        "stress_low_income": 0.5,
        "safety_base": -0.2,
        "safety_at_home": 1.0,
        "safety_safe_location": 0.5,
        "safety_unsafe_area": -2.0,
        "safety_low_income": -0.5,
        "relationship_base": 0.0,
        "social_base": 0.0,
        "community_base": 0.0,
        "community_socializing": 3.0,
        "progression_meaningful_work": 0.5,
    })

    # === Thresholds ===
    thresholds: dict[str, float] = field(default_factory=lambda: {
        "level_adequate": 50.0,
        "satisfied": 80.0,
        "income_critical": 10.0,
        "stress_critical": 70.0,
        "hazardous_quality": -1.0,
        "starvation_hours": 24,
        "exhaustion_hours": 48,
        "eviction_hours": 168,
        "condemn_days": 30,
        "shutdown_days": 7,
        "decline_weeks": 4,
        "unrest_weeks": 2,
        "unrest_stability": 20.0,
        "rent_low": 20.0,
        "home_run_down": 40.0,
    })

    # === Priority weights ===
    priority_weights: dict[str, float] = field(default_factory=lambda: {
        "waste": 10.0,
        "consumption": 8.0,
        "rest": 7.0,
        "safety": 6.0,
        "threat": 6.0,
        "income": 5.0,
        "environment": 4.0,
        "stress": 3.0,
        "connection": 2.0,
        "relationship": 2.0,
        "social": 2.0,
        "community": 2.0,
        "achievement": 1.0,
        "progression": 1.0,
    })

    # === Actions: duration in hours plus fixed deltas ===
    action_config: dict[str, dict[str, float]] = field(default_factory=lambda: {
        "move": {"rest_per_hour": -2.0, "distance_per_hour": 10.0},
        "work": {"duration": 8, "rest": -16.0, "stress": 5.0, "income": 40.0},
        "sleep": {"duration": 8, "rest": 64.0},
        "eat": {"duration": 1, "consumption": 25.0, "meal_cost": 5.0},
        "socialize": {"duration": 2, "social": 10.0, "stress": -5.0,
                      "relationship_bond": 33.3},
        "use_facilities": {"duration": 1, "waste": -50.0, "cleanliness": -1.0},
        "shelter": {"duration": 1},
        "maintain_building": {"duration": 4, "rest": -4.0, "maintenance": 20.0},
        "clean_building": {"duration": 2, "rest": -2.0, "cleanliness": 30.0},
        "pay_rent": {"duration": 1},
    })

    # === Achievements ===
    achievement_config: dict[str, float] = field(default_factory=lambda: {
        "points_per_achievement": 20.0,
        "skill_mastery_hours": 100,
    })

    # === Building rates (per day) ===
    building_rates: dict[str, float] = field(default_factory=lambda: {
        "maintenance_base": -2.0,
        "maintenance_per_occupant": -0.5,
        "cleanliness_base": -3.0,
        "cleanliness_per_occupant": -0.5,
        "rent_base": -10.0,
        "operating_cost_base": 50.0,
        "operating_cost_per_worker": 5.0,
        "consumption_base": 10.0,
        "consumption_per_worker": 5.0,
        "production_base": 5.0,
        "production_per_worker": 10.0,
        "max_inventory": 1000.0,
        "max_stockpile": 1000.0,
        "initial_stockpile": 100.0,
        "hours_per_worker_day": 8.0,
    })

    # === Upgrades ===
    upgrade_config: dict[str, float] = field(default_factory=lambda: {
        "max_stage": 5,
        "efficiency_production_bonus": 0.2,
        "efficiency_consumption_reduction": 0.1,
        "efficiency_hours_per_stage": 100.0,
        "prestige_hours_per_stage": 200.0,
        "prestige_quality_bonus": 0.2,
    })

    # === City rates (per week) ===
    city_rates: dict[str, float] = field(default_factory=lambda: {
        "public_works_per_citizen": -0.01,
        "public_works_repair": 5.0,
        "public_works_repair_cost": 50.0,
        "service_cost_per_100": 10.0,
        "tax_rate": 0.2,
        "import_price": 1.0,
        "export_price": 1.5,
        "import_trigger_fraction": 0.5,
        "stability_per_stressed_fraction": -10.0,
        "stability_recovery": 2.0,
        "calm_fraction": 0.1,
        "artist_culture_rate": 0.5,
        "scientist_science_rate": 0.3,
        "prestige_per_stage": 0.2,
        "prestige_per_achievement_point": 0.05,
        "unrest_stress_offset": 0.2,
        "low_safety": 30.0,
        "low_safety_threat_offset": 0.5,
        "initial_tax_reserve": 1000.0,
    })

    # === Autoticker ===
    autoticker_config: dict[str, Any] = field(default_factory=lambda: {
        "default_interval_ms": 3_600_000,
        "min_interval_ms": 1_000,
        "max_catch_up_ticks": 168,
    })

    # === Concurrency ===
    lock_timeout_s: float = 5.0

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> SimulationConfig:
        """Deserialize from a dict.

        Nested rate tables are merged over the defaults so partial
        overrides keep every other key.
        """
        base = cls()
        kwargs: dict[str, Any] = {}
        for k, v in d.items():
            if k.startswith("_") or not hasattr(base, k):
                continue
            default = getattr(base, k)
            if isinstance(default, dict) and isinstance(v, dict):
                merged = dict(default)
                merged.update(v)
                kwargs[k] = merged
            else:
                kwargs[k] = v
        return cls(**kwargs)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    @classmethod
    def from_json(cls, s: str) -> SimulationConfig:
        return cls.from_dict(json.loads(s))

    def diff(self, other: SimulationConfig) -> dict[str, tuple[Any, Any]]:
        """Return parameters that differ between two configs."""
        diffs: dict[str, tuple[Any, Any]] = {}
        for k in self.to_dict():
            v1 = getattr(self, k)
            v2 = getattr(other, k)
            if v1 != v2:
                diffs[k] = (v1, v2)
        return diffs
