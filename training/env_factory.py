"""Vectorized CarAgentEnv construction for stable-baselines3."""

from __future__ import annotations

from typing import Callable

from stable_baselines3.common.monitor import Monitor
from stable_baselines3.common.vec_env import (
    DummyVecEnv,
    SubprocVecEnv,
    VecEnv,
    VecNormalize,
)

from car_env.config import Configuration
from car_env.gym.car_agent_env import CarAgentEnv


def make_env_ctor(config: Configuration, seed: int) -> Callable[[], Monitor]:
    """Picklable thunk building one monitored env; `seed` applies to its first reset."""

    def _thunk() -> Monitor:
        env = CarAgentEnv(config=config)
        env.seed(seed)
        return Monitor(env, info_keywords=("is_success",))

    return _thunk


def make_vec_envs(
    config: Configuration,
    n_envs: int = 8,
    base_seed: int = 0,
    use_subproc: bool = True,
    normalize_obs: bool = False,
) -> VecEnv:
    # Rank i is seeded base_seed + i
    env_fns = [make_env_ctor(config, base_seed + rank) for rank in range(n_envs)]
    if use_subproc and n_envs > 1:
        venv: VecEnv = SubprocVecEnv(env_fns)
    else:
        venv = DummyVecEnv(env_fns)
    if normalize_obs:
        venv = VecNormalize(venv, norm_obs=True, norm_reward=False, clip_obs=10.0)
    return venv


def make_eval_env(config: Configuration, train_env: VecEnv, seed: int) -> VecEnv:
    """Single-env evaluation VecEnv sharing (and never updating) the train obs stats."""
    eval_env = make_vec_envs(
        config,
        n_envs=1,
        base_seed=seed,
        use_subproc=False,
        normalize_obs=isinstance(train_env, VecNormalize),
    )
    if isinstance(train_env, VecNormalize):
        eval_env.obs_rms = train_env.obs_rms
        eval_env.training = False
        eval_env.norm_reward = False
    return eval_env
