"""Play back a trained policy (or a random controller) at real-time pace.

Episodes run through `EpisodeDriver`; the wall-clock speed is taken from
`run.time_scale` unless `--time_scale` overrides it, and `--no_pace` runs
as fast as possible.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

import numpy as np
from stable_baselines3 import PPO
from stable_baselines3.common.vec_env import DummyVecEnv, VecNormalize

from car_env.gym.car_agent_env import CarAgentEnv
from car_env.gym.driver import EpisodeDriver, EpisodeSummary
from car_env.utils import (
    RunArtifacts,
    load_config_dict,
    load_resolved_run_config,
    load_run_section,
    locate_artifacts,
    split_env_sections,
)


def load_sections(args: argparse.Namespace, run_dir: str | None) -> tuple[dict, dict, dict, dict]:
    cfg: dict[str, Any] = load_resolved_run_config(run_dir) if run_dir else {}
    if not cfg:
        cfg = {
            "env": load_config_dict(args.env_cfg),
            "agent": load_config_dict(args.agent_cfg),
            "reward": load_config_dict(args.reward_cfg),
            "run": load_run_section(args.base_cfg),
        }
    return split_env_sections(cfg)


def make_policy_controller(artifacts: RunArtifacts, env: CarAgentEnv, deterministic: bool):
    print(f"[INFO] Loading PPO model from: {artifacts.model_zip}")
    model = PPO.load(artifacts.model_zip)
    vecnorm = None
    if artifacts.vecnorm_pkl:
        print(f"[INFO] Loading VecNormalize stats: {artifacts.vecnorm_pkl}")
        vecnorm = VecNormalize.load(artifacts.vecnorm_pkl, DummyVecEnv([lambda: env]))
        vecnorm.training = False
    else:
        print("[WARN] No VecNormalize stats found; using raw observations for playback")

    def _act(obs: np.ndarray):
        x = vecnorm.normalize_obs(obs) if vecnorm is not None else obs
        action, _ = model.predict(x, deterministic=deterministic)
        return action

    return _act


def summarize(summaries: list[EpisodeSummary]) -> dict[str, Any]:
    n = len(summaries)
    return {
        "episodes": n,
        "success_rate": float(np.mean([s.is_success for s in summaries])) if n else 0.0,
        "collision_rate": float(np.mean([s.terminal_event == "collision" for s in summaries])) if n else 0.0,
        "mean_return": float(np.mean([s.total_reward for s in summaries])) if n else 0.0,
        "mean_steps": float(np.mean([s.steps for s in summaries])) if n else 0.0,
    }


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--model", type=str, default="", help="best/ | final/ | checkpoints/ckpt_step_N/ | model.zip")
    parser.add_argument("--episodes", type=int, default=5)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--base_cfg", type=str, default="configs/config.yaml")
    parser.add_argument("--env_cfg", type=str, default="configs/env/stage.yaml")
    parser.add_argument("--agent_cfg", type=str, default="configs/agent/car.yaml")
    parser.add_argument("--reward_cfg", type=str, default="configs/reward/default.yaml")
    parser.add_argument("--time_scale", type=float, default=None)
    parser.add_argument("--no_pace", action="store_true")
    parser.add_argument("--deterministic", action="store_true")
    parser.add_argument("--metrics_out", type=str, default="")
    args = parser.parse_args()

    artifacts: RunArtifacts | None = locate_artifacts(args.model) if args.model else None
    env = CarAgentEnv(*load_sections(args, artifacts.run_dir if artifacts else None))

    if artifacts is not None:
        controller = make_policy_controller(artifacts, env, args.deterministic)
    else:
        print("[INFO] No model given; driving with random actions.")
        env.action_space.seed(args.seed)
        controller = lambda obs: env.action_space.sample()  # noqa: E731

    driver = EpisodeDriver(env, controller, time_scale=args.time_scale, pace=not args.no_pace)
    summaries = []
    for ep in range(args.episodes):
        s = driver.run_episode(seed=args.seed + ep)
        outcome = s.terminal_event or ("truncated" if s.truncated else "unknown")
        print(f"[INFO] Episode {ep}: steps={s.steps} return={s.total_reward:.3f} outcome={outcome}")
        summaries.append(s)

    summary = summarize(summaries)
    print(f"[INFO] Rollout summary: {summary}")
    if args.metrics_out:
        out = Path(args.metrics_out)
        out.parent.mkdir(parents=True, exist_ok=True)
        with open(out, "w", encoding="utf-8") as fh:
            json.dump(summary, fh, indent=2, sort_keys=True)
        print(f"[INFO] Metrics saved to {out}")


if __name__ == "__main__":
    main()
