"""
Cascade propagator: folds individual activity up into building and city
aggregates and pushes city conditions back down into location modifiers.

Two scopes:

- ``building`` (daily): occupancy-driven wear, rent, workplace economy,
  upgrade stages, condemnation and shutdown.
- ``city`` (weekly): population, infrastructure, trade and taxes,
  stability, health, safety, development, decline and unrest.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import numpy as np

from worldsim.core import locations
from worldsim.core.events import Event, EventKind
from worldsim.core.needs import LocationModifiers, level_adequacy
from worldsim.core.types import PersonStatus, SpecializedRole

if TYPE_CHECKING:
    from worldsim.core.config import SimulationConfig
    from worldsim.core.entities import Building, City, Person
    from worldsim.core.world import World

logger = logging.getLogger(__name__)

BUILDING_SCOPE = "building"
CITY_SCOPE = "city"

CHANNEL_MAX = 100.0


def _clip(value: float, upper: float = CHANNEL_MAX) -> float:
    return float(np.clip(value, 0.0, upper))


def _mean(values: list[float], default: float = 0.0) -> float:
    return float(np.mean(values)) if values else default


class CascadePropagator:
    """Daily and weekly aggregate updates for one world."""

    def __init__(self, config: SimulationConfig, world: World):
        self.config = config
        self.world = world
        self.b_rates = config.building_rates
        self.c_rates = config.city_rates
        self.upgrades = config.upgrade_config
        self.thresholds = config.thresholds

    # ------------------------------------------------------------------
    # Push-down
    # ------------------------------------------------------------------

    def location_modifiers(self, person: Person) -> LocationModifiers:
        """Modifiers for *person*'s current position, city offsets included."""
        building = None
        if person.location_id is not None and person.status != PersonStatus.IN_TRANSIT:
            building = self.world.buildings.get(person.location_id)
        city = self.world.city_of(person)
        return locations.modifiers_for(
            person,
            building,
            prestige_bonus=self.upgrades["prestige_quality_bonus"],
            city_offsets=city.location_offsets if city else None,
        )

    # ------------------------------------------------------------------
    # Hourly barrier
    # ------------------------------------------------------------------

    def fold(self, building_deltas: dict[int, dict[str, float]]) -> None:
        """Apply per-building deltas collected during the person phase."""
        for building_id, deltas in building_deltas.items():
            building = self.world.buildings[building_id]
            for key, amount in deltas.items():
                value = getattr(building, key) + amount
                if key in ("maintenance", "cleanliness", "rent"):
                    value = _clip(value)
                setattr(building, key, value)

    # ------------------------------------------------------------------
    # Propagate
    # ------------------------------------------------------------------

    def propagate(self, city: City, scope: str = BUILDING_SCOPE) -> dict[str, Any]:
        """Run one cascade pass over *city* and return the updated aggregates."""
        hour = self.world.current_hour
        if scope == BUILDING_SCOPE:
            for building_id in city.building_ids:
                self._update_building(self.world.buildings[building_id], city, hour)
            return {
                b_id: self._building_aggregates(self.world.buildings[b_id])
                for b_id in city.building_ids
            }
        if scope == CITY_SCOPE:
            self._update_city(city, hour)
            return self._city_aggregates(city)
        raise ValueError(f"Unknown cascade scope {scope!r}")

    # ------------------------------------------------------------------
    # Building scope
    # ------------------------------------------------------------------

    def _update_building(self, b: Building, city: City, hour: int) -> None:
        r = self.b_rates
        avg_occupancy = b.occupant_hours / 24.0

        wear = r["maintenance_base"] + r["maintenance_per_occupant"] * avg_occupancy
        b.maintenance = _clip(b.maintenance + wear * city.infrastructure_factor)
        b.cleanliness = _clip(
            b.cleanliness + r["cleanliness_base"] + r["cleanliness_per_occupant"] * avg_occupancy
        )

        if b.is_home:
            b.rent = _clip(b.rent + r["rent_base"])
        elif b.is_workplace and not b.shut_down:
            self._run_workplace(b)

        city.wages_week += b.wages_today
        self._upgrade(b, hour)
        self._derive_building_channels(b, avg_occupancy)
        self._building_thresholds(b, hour)

        b.occupant_hours = 0.0
        b.worker_hours = 0.0
        b.wages_today = 0.0

    def _run_workplace(self, b: Building) -> None:
        r = self.b_rates
        up = self.upgrades
        workers = b.worker_hours / r["hours_per_worker_day"]
        stage = b.efficiency_stage

        b.consumption = (
            (r["consumption_base"] + r["consumption_per_worker"] * workers)
            * (1.0 - up["efficiency_consumption_reduction"] * stage)
        )
        b.stockpile = _clip(b.stockpile - b.consumption, r["max_stockpile"])
        if b.stockpile > 0:
            b.production = (
                (r["production_base"] + r["production_per_worker"] * workers)
                * (1.0 + up["efficiency_production_bonus"] * stage)
            )
        else:
            b.production = 0.0
        b.inventory = _clip(b.inventory + b.production, r["max_inventory"])
        b.cost = r["operating_cost_base"] + r["operating_cost_per_worker"] * workers

    def _upgrade(self, b: Building, hour: int) -> None:
        up = self.upgrades
        max_stage = int(up["max_stage"])
        per_efficiency = up["efficiency_hours_per_stage"]
        per_prestige = up["prestige_hours_per_stage"]
        while b.efficiency_stage < max_stage and b.efficiency_progress >= per_efficiency:
            b.efficiency_progress -= per_efficiency
            b.efficiency_stage += 1
            self._record(b.id, "building", hour, EventKind.BUILDING,
                         f"{b.name} reached efficiency stage {b.efficiency_stage}",
                         location_id=b.id, stage=b.efficiency_stage)
        while b.prestige_stage < max_stage and b.prestige_progress >= per_prestige:
            b.prestige_progress -= per_prestige
            b.prestige_stage += 1
            self._record(b.id, "building", hour, EventKind.BUILDING,
                         f"{b.name} reached prestige stage {b.prestige_stage}",
                         location_id=b.id, stage=b.prestige_stage)
        if b.efficiency_stage >= max_stage:
            b.efficiency_progress = 0.0
        if b.prestige_stage >= max_stage:
            b.prestige_progress = 0.0

    def _derive_building_channels(self, b: Building, avg_occupancy: float) -> None:
        utilization = avg_occupancy / b.capacity
        if b.is_workplace:
            supply = 100.0 * b.stockpile / self.b_rates["max_stockpile"]
        elif b.is_home:
            supply = b.rent
        else:
            supply = 100.0
        # Overcrowding starts to hurt above 80% of capacity
        crowding = max(0.0, utilization - 0.8) / 0.2
        b.needs = {
            "environment": _clip((b.maintenance + b.cleanliness) / 2.0),
            "consumption": _clip(supply),
            "connection": _clip(100.0 * utilization),
            "rest": _clip(100.0 - 100.0 * crowding),
            "waste": _clip(100.0 - b.cleanliness),
        }

    def _building_thresholds(self, b: Building, hour: int) -> None:
        th = self.thresholds
        b.neglected_days = b.neglected_days + 1 if b.maintenance <= 0 else 0
        if not b.condemned and b.neglected_days >= th["condemn_days"]:
            b.condemned = True
            logger.info("Building %d (%s) condemned at hour %d", b.id, b.name, hour)
            self._record(b.id, "building", hour, EventKind.THRESHOLD,
                         f"{b.name} was condemned", location_id=b.id,
                         threshold="condemned")
        if not b.is_workplace:
            return
        b.starved_days = b.starved_days + 1 if b.stockpile <= 0 else 0
        if not b.shut_down and b.starved_days >= th["shutdown_days"]:
            b.shut_down = True
            logger.info("Workplace %d (%s) shut down at hour %d", b.id, b.name, hour)
            self._record(b.id, "building", hour, EventKind.THRESHOLD,
                         f"{b.name} shut down", location_id=b.id,
                         threshold="shutdown")

    # ------------------------------------------------------------------
    # City scope
    # ------------------------------------------------------------------

    def _update_city(self, city: City, hour: int) -> None:
        r = self.c_rates
        world = self.world
        residents = world.residents(city)
        buildings = [world.buildings[b_id] for b_id in city.building_ids]
        workplaces = [b for b in buildings if b.is_workplace]
        city.population = len(residents)

        # Infrastructure
        city.public_works = _clip(
            city.public_works + r["public_works_per_citizen"] * city.population
        )
        if city.public_works < CHANNEL_MAX and city.tax_reserve >= r["public_works_repair_cost"]:
            city.public_works = _clip(city.public_works + r["public_works_repair"])
            city.tax_reserve -= r["public_works_repair_cost"]

        # Trade
        max_stockpile = self.b_rates["max_stockpile"]
        import_cost = 0.0
        export_revenue = 0.0
        for b in workplaces:
            floor = r["import_trigger_fraction"] * max_stockpile
            if b.stockpile < floor:
                quantity = floor - b.stockpile
                b.stockpile = floor
                city.import_total += quantity
                import_cost += quantity * r["import_price"]
                if b.shut_down:
                    b.shut_down = False
                    b.starved_days = 0
                    self._record(b.id, "building", hour, EventKind.BUILDING,
                                 f"{b.name} reopened", location_id=b.id)
            if b.inventory > 0:
                city.export_total += b.inventory
                export_revenue += b.inventory * r["export_price"]
                b.inventory = 0.0

        service_cost = r["service_cost_per_100"] * city.population / 100.0
        city.tax_base = (
            r["tax_rate"] * city.wages_week + export_revenue - service_cost - import_cost
        )
        city.tax_reserve = max(0.0, city.tax_reserve + city.tax_base)
        city.wages_week = 0.0

        # Social
        stress = np.array([p.needs["stress"] for p in residents]) if residents else np.zeros(0)
        stressed_fraction = (
            float(np.mean(stress > self.thresholds["stress_critical"])) if residents else 0.0
        )
        stability_delta = r["stability_per_stressed_fraction"] * stressed_fraction
        if stressed_fraction < r["calm_fraction"]:
            stability_delta += r["stability_recovery"]
        city.stability = _clip(city.stability + stability_delta)
        city.health = _clip(_mean([p.needs["environment"] for p in residents], city.health))
        city.safety = _clip(
            100.0 - _mean([p.needs["threat"] for p in residents], 100.0 - city.safety)
        )

        # Development
        artists = sum(1 for p in residents if p.specialized_role == SpecializedRole.ARTIST)
        scientists = sum(1 for p in residents if p.specialized_role == SpecializedRole.SCIENTIST)
        city.culture += artists * r["artist_culture_rate"] * 168
        city.science += scientists * r["scientist_science_rate"] * 168
        points = self.config.achievement_config["points_per_achievement"]
        city.prestige += (
            sum(b.prestige_stage for b in buildings) * r["prestige_per_stage"]
            + sum(p.achievement_points * points for p in residents)
            * r["prestige_per_achievement_point"]
        )

        city.unemployment_rate = (
            _mean([1.0 if p.workplace_id is None else 0.0 for p in residents])
        )
        city.average_happiness = _mean([level_adequacy(p.needs, 1) for p in residents])
        city.needs = {
            "environment": _mean([b.needs["environment"] for b in buildings], 100.0),
            "consumption": _mean([p.needs["consumption"] for p in residents]),
            "connection": _mean([p.needs["connection"] for p in residents]),
            "rest": _mean([p.needs["rest"] for p in residents]),
            "waste": _mean([p.needs["waste"] for p in residents]),
        }

        self._city_thresholds(city, hour)
        self._push_down(city)

    def _city_thresholds(self, city: City, hour: int) -> None:
        th = self.thresholds
        city.deficit_weeks = city.deficit_weeks + 1 if city.tax_base < 0 else 0
        if not city.in_decline and city.deficit_weeks >= th["decline_weeks"]:
            city.in_decline = True
            logger.info("City %d (%s) entered decline at hour %d", city.id, city.name, hour)
            self._record(city.id, "city", hour, EventKind.THRESHOLD,
                         f"{city.name} entered decline", threshold="decline")
        elif city.in_decline and city.tax_base >= 0:
            city.in_decline = False
            self._record(city.id, "city", hour, EventKind.THRESHOLD,
                         f"{city.name} recovered from decline", threshold="decline_cleared")

        unstable = city.stability < th["unrest_stability"]
        city.unstable_weeks = city.unstable_weeks + 1 if unstable else 0
        if not city.in_unrest and city.unstable_weeks >= th["unrest_weeks"]:
            city.in_unrest = True
            logger.info("City %d (%s) fell into unrest at hour %d", city.id, city.name, hour)
            self._record(city.id, "city", hour, EventKind.THRESHOLD,
                         f"{city.name} fell into unrest", threshold="unrest")
        elif city.in_unrest and not unstable:
            city.in_unrest = False
            self._record(city.id, "city", hour, EventKind.THRESHOLD,
                         f"{city.name} calmed down", threshold="unrest_cleared")

    def _push_down(self, city: City) -> None:
        r = self.c_rates
        offsets: dict[str, float] = {}
        if city.in_unrest:
            offsets["stress"] = r["unrest_stress_offset"]
        if city.safety < r["low_safety"]:
            offsets["threat"] = r["low_safety_threat_offset"]
        city.location_offsets = offsets

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _building_aggregates(self, b: Building) -> dict[str, Any]:
        return {
            "maintenance": b.maintenance,
            "cleanliness": b.cleanliness,
            "needs": dict(b.needs),
            "efficiency_stage": b.efficiency_stage,
            "prestige_stage": b.prestige_stage,
        }

    def _city_aggregates(self, city: City) -> dict[str, Any]:
        return {
            "population": city.population,
            "tax_base": city.tax_base,
            "public_works": city.public_works,
            "stability": city.stability,
            "health": city.health,
            "safety": city.safety,
            "culture": city.culture,
            "science": city.science,
            "prestige": city.prestige,
        }

    def _record(
        self, entity_id: int, entity_type: str, hour: int, kind: EventKind,
        description: str, location_id: int | None = None, **data,
    ) -> None:
        self.world.record(Event(
            hour=hour, entity_id=entity_id, entity_type=entity_type, kind=kind,
            description=description, location_id=location_id, data=data,
        ))
