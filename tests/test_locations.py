"""Tests for building capabilities and location modifiers."""

import pytest

from worldsim.core import locations
from worldsim.core.entities import Building, Person
from worldsim.core.types import BuildingKind


def _make_building(kind, x=0.0, y=0.0, building_id=1):
    return Building(id=building_id, name=kind.value, city_id=0, kind=kind, x=x, y=y)


class TestCapabilities:
    @pytest.mark.parametrize("kind, capability", [
        (BuildingKind.HOME, locations.REST),
        (BuildingKind.RESTAURANT, locations.FOOD),
        (BuildingKind.WORKPLACE, locations.WORK),
        (BuildingKind.PARK, locations.CULTURE),
        (BuildingKind.HOSPITAL, locations.HEALTHCARE),
    ])
    def test_provides(self, kind, capability):
        assert capability in locations.provides(_make_building(kind))

    def test_every_kind_is_described(self):
        assert set(locations.CAPABILITIES) == set(BuildingKind)

    def test_prestige_raises_quality(self):
        park = _make_building(BuildingKind.PARK)
        park.prestige_stage = 2
        assert locations.base_quality(park) == pytest.approx(1.9)

    def test_seeded_quality_overrides_kind(self):
        work = _make_building(BuildingKind.WORKPLACE)
        work.environmental_quality = -2.5
        assert locations.base_quality(work) == pytest.approx(-2.5)
        work.prestige_stage = 1
        assert locations.base_quality(work) == pytest.approx(-2.3)


class TestTravel:
    def test_distance(self):
        a = _make_building(BuildingKind.HOME)
        b = _make_building(BuildingKind.PARK, x=3, y=4, building_id=2)
        assert locations.distance(a, b) == pytest.approx(5.0)

    @pytest.mark.parametrize("x, hours", [(0, 1), (5, 1), (10, 1), (11, 2), (30, 3)])
    def test_travel_hours(self, x, hours):
        a = _make_building(BuildingKind.HOME)
        b = _make_building(BuildingKind.PARK, x=x, building_id=2)
        assert locations.travel_hours(a, b) == hours


class TestModifiers:
    def test_own_home(self):
        home = _make_building(BuildingKind.HOME)
        person = Person(id=5, name="Ada", home_id=home.id)
        mods = locations.modifiers_for(person, home, city_offsets={"threat": 0.5})
        assert mods.is_own_home
        assert mods.is_healing
        assert mods.offsets == {"threat": 0.5}

    def test_workplace_is_not_healing(self):
        work = _make_building(BuildingKind.WORKPLACE)
        mods = locations.modifiers_for(Person(id=5, name="Ada"), work)
        assert not mods.is_healing
        assert not mods.is_hazardous()

    def test_hazardous_building(self):
        work = _make_building(BuildingKind.WORKPLACE)
        work.environmental_quality = -2.0
        mods = locations.modifiers_for(Person(id=5, name="Ada"), work)
        assert mods.is_hazardous()
        assert not mods.is_healing

    def test_no_building(self):
        mods = locations.modifiers_for(Person(id=5, name="Ada"), None)
        assert mods.provides == frozenset()
        assert mods.offsets == {}
