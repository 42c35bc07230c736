#!/usr/bin/env python3
"""Seed a small town, run it for four simulated weeks and print the results."""

from worldsim.api.worlds import seed_world
from worldsim.core.config import SimulationConfig
from worldsim.core.simulation import Simulation


TOWN = {
    "cities": [{
        "name": "Ashford",
        "buildings": [
            {"kind": "home", "name": "Elm Cottage", "capacity": 4, "x": 0, "y": 0},
            {"kind": "home", "name": "Oak House", "capacity": 4, "x": 5, "y": 10},
            {"kind": "workplace", "name": "Mill", "capacity": 6, "x": 30, "y": 0},
            {"kind": "restaurant", "name": "Corner Diner", "capacity": 6, "x": 10, "y": 5},
            {"kind": "park", "name": "Village Green", "capacity": 20, "x": 20, "y": 10},
            {"kind": "hospital", "name": "Infirmary", "capacity": 5, "x": 40, "y": 20},
            {"kind": "workplace", "name": "Tannery", "capacity": 4, "x": 45, "y": 5,
             "quality": -2.0},
        ],
        "persons": [
            {"name": "Ada", "home": 0, "workplace": 2},
            {"name": "Bo", "home": 0, "workplace": 2, "role": "scientist"},
            {"name": "Cy", "home": 1, "workplace": 2},
            {"name": "Di", "home": 1, "role": "artist"},
            {"name": "Ed", "home": 1, "workplace": 6},
        ],
    }],
}


def main():
    config = SimulationConfig(world_name="ashford")
    sim = Simulation(config)
    seed_world(sim, TOWN)

    print(f"=== World: {config.world_name} ===")
    print(f"Starting {sim.get_calendar()['formatted']}")
    print()

    print(f"{'Week':>4} {'Hour':>5} {'Pop':>4} {'Tax':>8} {'Reserve':>8} "
          f"{'Stab':>5} {'Health':>6} {'Safety':>6} {'Happy':>6}")
    print("-" * 62)

    for week in range(1, 5):
        sim.skip(168)
        city = sim.get_city_status(1)
        print(
            f"{week:4d} {city['current_hour']:5d} {city['population']:4d} "
            f"{city['tax_base']:8.1f} {city['tax_reserve']:8.1f} "
            f"{city['stability']:5.1f} {city['health']:6.1f} "
            f"{city['safety']:6.1f} {city['average_happiness']:6.1f}"
        )

    print()
    print(f"=== Final State ({sim.get_calendar()['formatted']}) ===")
    for person in sim.list_persons():
        status = sim.get_individual_needs(person["id"])
        adequacy = status["level_adequacy"]
        print(
            f"  {status['name']:4s} {status['status']:16s} "
            f"alive={status['is_alive']!s:5s} "
            f"L1={adequacy['1']:5.1f} L2={adequacy['2']:5.1f} "
            f"levels={status['active_levels']} "
            f"achievements={status['achievements']}"
        )

    print("\nBuildings:")
    for building_id in sim.get_city_status(1)["building_ids"]:
        b = sim.get_building_status(building_id)
        flags = [name for name in ("condemned", "shut_down") if b[name]]
        print(
            f"  {b['name']:14s} maint={b['maintenance']:5.1f} "
            f"clean={b['cleanliness']:5.1f} eff={b['efficiency_stage']} "
            f"prestige={b['prestige_stage']} {' '.join(flags)}"
        )

    print(f"\nEvents logged: {len(sim.get_events())}")


if __name__ == "__main__":
    main()
