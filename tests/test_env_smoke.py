from dataclasses import replace

import numpy as np
import pytest

from car_env.errors import EpisodeClosedError
from car_env.gym.car_agent_env import CarAgentEnv
from car_env.sim.dynamics import AgentState
from car_env.sim.geometry import planar_distance
from car_env.sim.placement import EpisodeContext, GoalState


def make_cfgs(obstacles=None):
    env_cfg = {
        "stage": {"half_x": 20.0, "half_z": 20.0, "wall_margin": 0.5},
        "goal": {"radius": 0.5},
        "obstacles": [2.0, 2.0, 3.0] if obstacles is None else obstacles,
    }
    agent_cfg = {"speed": 10.0, "turn_rate": 100.0, "radius": 0.5}
    reward_cfg = {}
    run_cfg = {"dt": 0.02, "decision_period": 1, "max_steps": 50}
    return env_cfg, agent_cfg, reward_cfg, run_cfg


def force_state(env, position, yaw_deg, goal=None):
    """Move the car (and optionally the goal) mid-episode."""
    agent = AgentState.at_rest(np.array(position, dtype=float), yaw_deg)
    layout = env._layout
    if goal is not None:
        layout = replace(layout, goal=GoalState(np.array(goal, dtype=float)))
    env._layout = layout
    env._agent = agent
    env._context = EpisodeContext(
        previous_distance_to_goal=planar_distance(agent.position, layout.goal.position),
        previous_position=agent.position.copy(),
    )
    env.world.place(layout.goal.position, layout.obstacles)


def test_env_reset_step_shapes():
    env = CarAgentEnv(*make_cfgs())
    obs, info = env.reset(seed=0)
    assert obs.shape == (8,)
    assert obs.dtype == np.float32
    assert info["placement_attempts"] >= 4
    assert env.observation_space.contains(obs)

    o2, r, term, trunc, info = env.step(np.array([0.0, 0.0], dtype=np.float32))
    assert o2.shape == (8,)
    assert isinstance(r, float)
    assert info["ticks"] == 1
    assert set(info["reward_terms"]["raw"]) >= {"progress", "heading", "alignment", "tick"}


def test_step_before_reset_raises():
    env = CarAgentEnv(*make_cfgs())
    with pytest.raises(EpisodeClosedError):
        env.step(np.zeros(2, dtype=np.float32))


def test_wall_collision_terminates_and_closes_episode():
    env = CarAgentEnv(*make_cfgs(obstacles=[]))
    env.reset(seed=0)
    force_state(env, [19.9, 0.5, 0.0], 90.0, goal=[-15.0, 0.5, 0.0])
    _, r, term, trunc, info = env.step(np.array([1.0, 0.0], dtype=np.float32))
    assert term is True
    assert trunc is False
    assert info["terminal_event"] == "collision"
    assert info["is_success"] is False
    assert r == pytest.approx(-5.0 - 0.05 - 0.05 - 0.001, abs=1e-6)
    with pytest.raises(EpisodeClosedError):
        env.step(np.array([0.0, 0.0], dtype=np.float32))


def test_goal_reach_gives_goal_reward():
    env = CarAgentEnv(*make_cfgs(obstacles=[]))
    env.reset(seed=0)
    force_state(env, [0.0, 0.5, 3.9], 0.0, goal=[0.0, 0.5, 5.0])
    _, r, term, trunc, info = env.step(np.array([1.0, 0.0], dtype=np.float32))
    assert term is True
    assert info["terminal_event"] == "goal"
    assert info["is_success"] is True
    assert r >= 5.0


def test_decision_period_accrues_tick_cost_per_tick():
    env_cfg, agent_cfg, reward_cfg, run_cfg = make_cfgs(obstacles=[])
    run_cfg["decision_period"] = 5
    env = CarAgentEnv(env_cfg, agent_cfg, reward_cfg, run_cfg)
    env.reset(seed=1)
    _, r, term, trunc, info = env.step(np.array([0.0, 0.0], dtype=np.float32))
    assert info["ticks"] == 5
    assert info["reward_terms"]["raw"]["tick"] == pytest.approx(-0.005)
    assert info["reward_terms"]["total"] == pytest.approx(r)


def test_decision_period_moves_for_every_tick():
    env_cfg, agent_cfg, reward_cfg, run_cfg = make_cfgs(obstacles=[])
    run_cfg["decision_period"] = 5
    env = CarAgentEnv(env_cfg, agent_cfg, reward_cfg, run_cfg)
    env.reset(seed=1)
    force_state(env, [0.0, 0.5, -10.0], 0.0, goal=[0.0, 0.5, 10.0])
    env.step(np.array([1.0, 0.0], dtype=np.float32))
    assert env.agent.position[2] == pytest.approx(-10.0 + 5 * 0.02 * 10.0)


def test_truncation_at_max_steps():
    env_cfg, agent_cfg, reward_cfg, run_cfg = make_cfgs(obstacles=[])
    run_cfg["max_steps"] = 3
    env = CarAgentEnv(env_cfg, agent_cfg, reward_cfg, run_cfg)
    env.reset(seed=2)
    a = np.zeros(2, dtype=np.float32)
    for _ in range(2):
        _, _, term, trunc, _ = env.step(a)
        assert not term and not trunc
    _, _, term, trunc, info = env.step(a)
    assert trunc is True and term is False
    assert info["is_success"] is False
    with pytest.raises(EpisodeClosedError):
        env.step(a)
    env.reset(seed=2)
    env.step(a)


def test_discrete_action_mode():
    env_cfg, agent_cfg, reward_cfg, run_cfg = make_cfgs()
    agent_cfg["action_mode"] = "discrete"
    env = CarAgentEnv(env_cfg, agent_cfg, reward_cfg, run_cfg)
    assert env.action_space.n == 4
    env.reset(seed=0)
    yaw0 = env.agent.yaw_deg
    env.step(3)
    assert env.agent.yaw_deg == pytest.approx((yaw0 + 2.0) % 360.0)
    assert env.decode_action(np.array([1])) == (1.0, 0.0)


def test_same_seed_reproduces_episode():
    a = CarAgentEnv(*make_cfgs())
    b = CarAgentEnv(*make_cfgs())
    obs_a, _ = a.reset(seed=7)
    obs_b, _ = b.reset(seed=7)
    np.testing.assert_array_equal(obs_a, obs_b)
    act = np.array([0.5, -0.3], dtype=np.float32)
    for _ in range(5):
        oa, ra, term_a, trunc_a, _ = a.step(act)
        ob, rb, term_b, trunc_b, _ = b.step(act)
        np.testing.assert_array_equal(oa, ob)
        assert ra == rb
        assert (term_a, trunc_a) == (term_b, trunc_b)
        if term_a or trunc_a:
            break


def test_seed_method_applies_to_next_reset():
    a = CarAgentEnv(*make_cfgs())
    b = CarAgentEnv(*make_cfgs())
    a.seed(11)
    obs_a, _ = a.reset()
    obs_b, _ = b.reset(seed=11)
    np.testing.assert_array_equal(obs_a, obs_b)


def test_state_payload():
    env = CarAgentEnv(*make_cfgs())
    env.reset(seed=3)
    env.step(np.array([1.0, 0.0], dtype=np.float32))
    payload = env.get_state_payload()
    assert len(payload["position"]) == 3
    assert len(payload["obstacles"]) == 3
    assert payload["steps"] == 1
    assert payload["goal_distance"] == pytest.approx(
        planar_distance(env.agent.position, env.goal.position)
    )


@pytest.mark.parametrize(
    "env_cfg",
    [
        {"stage": {"wall_margin": 0.5}},
        {"obstacles": [0.6] * 10},
        {"stage": {"half_x": 6.0, "half_z": 6.0}, "obstacles": [1.0, 1.0, 0.8]},
    ],
)
def test_zero_action_never_ends_fresh_episode(env_cfg):
    env = CarAgentEnv(env_cfg, {"radius": 0.5}, {}, {"max_steps": 10})
    for seed in range(300):
        env.reset(seed=seed)
        _, _, term, _, info = env.step(np.zeros(2, dtype=np.float32))
        assert not term, (seed, info.get("terminal_event"))
