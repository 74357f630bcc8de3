from pathlib import Path

import pytest

from car_env.config import build_config
from car_env.errors import ConfigError
from car_env.gym.car_agent_env import CarAgentEnv
from car_env.utils import load_config_dict, load_run_section, split_env_sections

CONFIG_DIR = Path(__file__).resolve().parents[1] / "configs"


def test_defaults():
    cfg = build_config()
    assert cfg.stage.half_x == 20.0
    assert cfg.stage.width_x == 40.0
    assert cfg.min_goal_separation == pytest.approx(10.0)
    assert cfg.rear_ray_range == cfg.stage.half_z
    assert cfg.reward.auxiliary_terms == "telemetry"
    assert cfg.agent.action_mode == "continuous"
    assert cfg.obstacles == ()


def test_obstacles_from_sizes_and_mappings():
    cfg = build_config({"obstacles": [2.0, {"size": 3.0, "tag": "Crate"}]})
    assert [o.size for o in cfg.obstacles] == [2.0, 3.0]
    assert cfg.obstacles[0].tag == "Obstacle"
    assert cfg.obstacles[1].footprint_radius == 3.0
    assert cfg.obstacles[1].body_radius == 1.5


def test_explicit_rear_ray_range():
    cfg = build_config({"sensors": {"rear_ray_range": 7.5}})
    assert cfg.rear_ray_range == 7.5


@pytest.mark.parametrize(
    "env_cfg, agent_cfg, reward_cfg, run_cfg",
    [
        ({"stage": {"half_x": 0.0}}, None, None, None),
        ({"goal": {"radius": -1.0}}, None, None, None),
        ({"obstacles": [{"size": 0.0}]}, None, None, None),
        ({"placement": {"max_attempts": 0}}, None, None, None),
        (None, {"speed": 0.0}, None, None),
        (None, {"action_mode": "joystick"}, None, None),
        (None, None, {"auxiliary_terms": "sometimes"}, None),
        (None, None, {"speed_bonus_min": 1.0, "speed_bonus_max": 0.0}, None),
        (None, None, None, {"dt": 0.0}),
        (None, None, None, {"decision_period": 0}),
        (None, None, None, {"time_scale": -1.0}),
        ({"stage": {"half_x": "wide"}}, None, None, None),
        ({"stage": {"wall_margin": 0.2}}, None, None, None),
        ({"stage": {"wall_margin": 0.5}}, {"radius": 0.8}, None, None),
        ({"placement": {"max_attempts": 100.0}}, None, None, None),
        ({"placement": {"max_attempts": "1e4"}}, None, None, None),
        ({"placement": {"max_attempts": True}}, None, None, None),
        (None, None, None, {"decision_period": 2.0}),
        (None, None, None, {"max_steps": "5000"}),
        ({"obstacles": ["big"]}, None, None, None),
    ],
)
def test_invalid_values_raise(env_cfg, agent_cfg, reward_cfg, run_cfg):
    with pytest.raises(ConfigError):
        build_config(env_cfg, agent_cfg, reward_cfg, run_cfg)


def test_unknown_keys_raise():
    with pytest.raises(ConfigError, match="CFG_BAD"):
        build_config({"stage": {"half_y": 3.0}})
    with pytest.raises(ConfigError):
        build_config({"lidar": {}})
    with pytest.raises(ConfigError):
        build_config(reward_cfg={"goal": 10.0})


def test_config_is_frozen():
    cfg = build_config()
    with pytest.raises(AttributeError):
        cfg.stage.half_x = 3.0


def test_shipped_yaml_builds_env():
    composed = {
        "env": load_config_dict(str(CONFIG_DIR / "env" / "stage.yaml")),
        "agent": load_config_dict(str(CONFIG_DIR / "agent" / "car.yaml")),
        "reward": load_config_dict(str(CONFIG_DIR / "reward" / "default.yaml")),
        "run": load_run_section(str(CONFIG_DIR / "config.yaml")),
    }
    env_cfg, agent_cfg, reward_cfg, run_cfg = split_env_sections(composed)
    assert set(run_cfg) == {"dt", "decision_period", "max_steps", "time_scale"}
    env = CarAgentEnv(env_cfg, agent_cfg, reward_cfg, run_cfg)
    assert env.decision_period == 5
    assert len(env.cfg.obstacles) == 3
    obs, _ = env.reset(seed=0)
    assert obs.shape == (8,)


def test_shaped_reward_yaml_sums_auxiliary_terms():
    reward = load_config_dict(str(CONFIG_DIR / "reward" / "shaped.yaml"))
    assert build_config(reward_cfg=reward).reward.auxiliary_terms == "summed"


def test_split_env_sections_requires_env():
    with pytest.raises(KeyError):
        split_env_sections({"agent": {}, "reward": {}})


def test_load_run_section_skips_hydra_interpolations():
    run = load_run_section(str(CONFIG_DIR / "config.yaml"))
    assert run["decision_period"] == 5
    assert run["time_scale"] == 1.0
