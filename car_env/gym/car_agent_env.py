"""Single-car goal-seeking Gymnasium environment.

Observation: 8-vector from `observe` (see observation_builder).
Action: continuous (forward, turn) applied kinematically, or Discrete(4)
when agent.action_mode == "discrete".

One `step` is one decision. The action is held for `run.decision_period`
physics ticks of `run.dt` seconds; every tick moves the car, polls contacts
and accrues its reward (including the per-tick cost). A terminal contact
ends the decision early and closes the episode until `reset`.
"""

from __future__ import annotations

import logging
from typing import Any

import gymnasium as gym
import numpy as np
from gymnasium import spaces

from car_env.config import Configuration, build_config
from car_env.errors import EpisodeClosedError
from car_env.reward import TerminalOutcome, compute_reward, to_breakdown_dict
from car_env.sim.dynamics import DISCRETE_ACTIONS, AgentState, apply_action, decode_discrete
from car_env.sim.geometry import planar_distance
from car_env.sim.placement import EpisodeContext, EpisodeLayout, GoalState, sample_episode
from car_env.sim.stage import StageWorld

from .observation_builder import OBS_DIM, observe

logger = logging.getLogger(__name__)


def _accumulate(into: dict[str, Any] | None, breakdown: dict[str, Any]) -> dict[str, Any]:
    if into is None:
        return {
            **breakdown,
            "raw": dict(breakdown["raw"]),
            "contrib": dict(breakdown["contrib"]),
        }
    for category in ("raw", "contrib"):
        for k, v in breakdown[category].items():
            into[category][k] = into[category].get(k, 0.0) + float(v)
    into["total"] = float(into["total"]) + float(breakdown["total"])
    return into


class CarAgentEnv(gym.Env):
    metadata = {"render_modes": []}

    def __init__(
        self,
        env_cfg: dict[str, Any] | None = None,
        agent_cfg: dict[str, Any] | None = None,
        reward_cfg: dict[str, Any] | None = None,
        run_cfg: dict[str, Any] | None = None,
        *,
        config: Configuration | None = None,
    ):
        super().__init__()
        self.cfg = config if config is not None else build_config(env_cfg, agent_cfg, reward_cfg, run_cfg)
        self.dt = float(self.cfg.run.dt)
        self.decision_period = int(self.cfg.run.decision_period)
        self._max_steps = int(self.cfg.run.max_steps)

        self.world = StageWorld(self.cfg)

        self.observation_space = spaces.Box(
            low=-np.inf, high=np.inf, shape=(OBS_DIM,), dtype=np.float32
        )
        if self.cfg.agent.action_mode == "discrete":
            self.action_space = spaces.Discrete(len(DISCRETE_ACTIONS))
        else:
            self.action_space = spaces.Box(
                low=-1.0, high=1.0, shape=(2,), dtype=np.float32
            )

        # Per-episode state
        self._layout: EpisodeLayout | None = None
        self._agent: AgentState | None = None
        self._context: EpisodeContext | None = None
        self._steps = 0
        self._closed = True
        self._pending_seed: int | None = None
        self._last_reward_terms: dict[str, Any] = {}

    def seed(self, seed: int | None = None):
        # Applied on the next reset that does not pass its own seed
        self._pending_seed = seed

    @property
    def agent(self) -> AgentState:
        self._require_episode()
        return self._agent

    @property
    def goal(self) -> GoalState:
        self._require_episode()
        return self._layout.goal

    @property
    def context(self) -> EpisodeContext:
        self._require_episode()
        return self._context

    def reset(self, *, seed: int | None = None, options: dict[str, Any] | None = None):
        if seed is None and self._pending_seed is not None:
            seed, self._pending_seed = self._pending_seed, None
        super().reset(seed=seed)

        layout = sample_episode(self.cfg, self.np_random)
        self._layout = layout
        self._agent = layout.agent
        self._context = layout.context
        self.world.place(layout.goal.position, layout.obstacles)

        self._steps = 0
        self._closed = False
        self._last_reward_terms = {}
        info = {"placement_attempts": int(layout.attempts)}
        return self._observe(), info

    def decode_action(self, action) -> tuple[float, float]:
        if self.cfg.agent.action_mode == "discrete":
            return decode_discrete(int(np.asarray(action).reshape(-1)[0]))
        a = np.asarray(action, dtype=float).reshape(-1)
        return float(a[0]), float(a[1])

    def step(self, action):
        if self._layout is None:
            raise EpisodeClosedError("Environment must be reset before stepping")
        if self._closed:
            raise EpisodeClosedError(
                "Episode has ended", hint="Call reset() after terminated/truncated"
            )

        command = self.decode_action(action)
        reward = 0.0
        breakdown: dict[str, Any] | None = None
        outcome: TerminalOutcome | None = None
        ticks = 0
        for _ in range(self.decision_period):
            self._agent = apply_action(
                self._agent,
                command,
                self.dt,
                speed=self.cfg.agent.speed,
                turn_rate=self.cfg.agent.turn_rate,
            )
            events = self.world.contacts(self._agent.position)
            result, self._context = compute_reward(
                self._agent,
                self._layout.goal,
                self._context,
                self.cfg,
                self.world,
                events,
            )
            ticks += 1
            reward += result.total
            breakdown = _accumulate(
                breakdown, to_breakdown_dict(result, self.cfg.reward.auxiliary_terms)
            )
            if result.terminated:
                outcome = result.outcome
                break

        terminated = outcome is not None
        self._steps += 1
        truncated = self._steps >= self._max_steps and not terminated
        self._closed = terminated or truncated
        self._last_reward_terms = breakdown or {}

        info: dict[str, Any] = {"reward_terms": breakdown, "ticks": ticks}
        if terminated:
            logger.debug(
                "Episode terminated by %s after %d steps", outcome.value, self._steps
            )
            info["terminal_event"] = outcome.value
        if terminated or truncated:
            info["is_success"] = outcome is TerminalOutcome.GOAL
        return self._observe(), float(reward), terminated, truncated, info

    def get_state_payload(self) -> dict[str, Any]:
        """Plain snapshot of the episode for drivers and debugging tools."""
        self._require_episode()
        agent = self._agent
        return {
            "position": agent.position.tolist(),
            "yaw_deg": float(agent.yaw_deg),
            "linear_velocity": agent.linear_velocity.tolist(),
            "angular_velocity": float(agent.angular_velocity),
            "goal": self._layout.goal.position.tolist(),
            "goal_distance": planar_distance(agent.position, self._layout.goal.position),
            "obstacles": [o.position.tolist() for o in self._layout.obstacles],
            "steps": int(self._steps),
            "reward_terms": dict(self._last_reward_terms),
        }

    def _require_episode(self) -> None:
        if self._layout is None:
            raise EpisodeClosedError("Environment must be reset first")

    def _observe(self) -> np.ndarray:
        return observe(self._agent, self._layout.goal, self.cfg, self.world)
