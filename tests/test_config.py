"""Tests for SimulationConfig."""

import pytest

from worldsim.core.config import SimulationConfig


class TestConfigDefaults:
    def test_default_world_name(self):
        assert SimulationConfig().world_name == "default"

    def test_not_paused_by_default(self):
        assert SimulationConfig().start_paused is False

    def test_priority_weights(self):
        w = SimulationConfig().priority_weights
        assert w["waste"] > w["consumption"] > w["rest"] > w["safety"]
        assert w["safety"] > w["income"] > w["environment"] > w["stress"]
        assert w["social"] > w["progression"]

    def test_autoticker_defaults(self):
        cfg = SimulationConfig().autoticker_config
        assert cfg["default_interval_ms"] == 3_600_000
        assert cfg["min_interval_ms"] == 1_000

    def test_instances_do_not_share_tables(self):
        a = SimulationConfig()
        b = SimulationConfig()
        a.person_rates["waste_base"] = 9.0
        assert b.person_rates["waste_base"] == 2.0


class TestSerialization:
    def test_to_dict_roundtrip(self):
        c = SimulationConfig(world_name="ashford", lock_timeout_s=1.0)
        c2 = SimulationConfig.from_dict(c.to_dict())
        assert c2.world_name == "ashford"
        assert c2.lock_timeout_s == 1.0
        assert c2.to_dict() == c.to_dict()

    def test_partial_table_override_keeps_other_keys(self):
        c = SimulationConfig.from_dict({"person_rates": {"waste_base": 3.0}})
        assert c.person_rates["waste_base"] == 3.0
        assert c.person_rates["consumption_idle"] == -2.0

    def test_unknown_keys_ignored(self):
        c = SimulationConfig.from_dict({"world_name": "x", "nonsense": 1})
        assert c.world_name == "x"
        assert not hasattr(c, "nonsense")

    def test_to_json_roundtrip(self):
        c = SimulationConfig(world_name="json_test")
        c2 = SimulationConfig.from_json(c.to_json())
        assert c2.world_name == "json_test"
        assert c2.action_config == c.action_config

    def test_diff(self):
        a = SimulationConfig()
        b = SimulationConfig(world_name="other")
        b.thresholds["starvation_hours"] = 12
        d = a.diff(b)
        assert set(d) == {"world_name", "thresholds"}
        assert d["world_name"] == ("default", "other")

    def test_diff_identical(self):
        assert SimulationConfig().diff(SimulationConfig()) == {}
