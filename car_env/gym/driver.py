"""Explicit episode loop for inference and manual driving.

Training drives `CarAgentEnv` through stable-baselines3 VecEnvs and runs as
fast as possible. Interactive runs go through `EpisodeDriver`, which paces
each decision to `dt * decision_period / time_scale` wall-clock seconds.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import numpy as np

from .car_agent_env import CarAgentEnv

Controller = Callable[[np.ndarray], Any]


@dataclass
class EpisodeSummary:
    steps: int = 0
    total_reward: float = 0.0
    terminal_event: Optional[str] = None
    is_success: bool = False
    truncated: bool = False
    reward_terms: dict[str, float] = field(default_factory=dict)


class EpisodeDriver:
    """Runs reset -> (observe -> act -> step)* until the episode ends."""

    def __init__(
        self,
        env: CarAgentEnv,
        controller: Controller,
        *,
        time_scale: float | None = None,
        pace: bool = True,
        sleep: Callable[[float], None] = time.sleep,
        on_step: Callable[[CarAgentEnv, float, dict], None] | None = None,
    ) -> None:
        self.env = env
        self.controller = controller
        self.time_scale = float(time_scale if time_scale is not None else env.cfg.run.time_scale)
        if self.time_scale <= 0.0:
            raise ValueError("time_scale must be > 0")
        self.pace = bool(pace)
        self._sleep = sleep
        self._on_step = on_step

    @property
    def decision_seconds(self) -> float:
        return self.env.dt * self.env.decision_period / self.time_scale

    def run_episode(self, seed: int | None = None) -> EpisodeSummary:
        obs, _ = self.env.reset(seed=seed)
        summary = EpisodeSummary()
        while True:
            t0 = time.perf_counter()
            action = self.controller(obs)
            obs, reward, terminated, truncated, info = self.env.step(action)
            summary.steps += 1
            summary.total_reward += float(reward)
            for k, v in (info.get("reward_terms") or {}).get("raw", {}).items():
                summary.reward_terms[k] = summary.reward_terms.get(k, 0.0) + float(v)
            if self._on_step is not None:
                self._on_step(self.env, float(reward), info)
            if terminated or truncated:
                summary.terminal_event = info.get("terminal_event")
                summary.is_success = bool(info.get("is_success", False))
                summary.truncated = bool(truncated)
                return summary
            if self.pace:
                remaining = self.decision_seconds - (time.perf_counter() - t0)
                if remaining > 0.0:
                    self._sleep(remaining)
