from __future__ import annotations

import argparse
import csv
import os

from car_env.gym.car_agent_env import CarAgentEnv
from car_env.utils import env_run_cfg, load_config_dict, load_run_section


def run_random(env: CarAgentEnv, episodes: int = 3, log_dir: str = "logs", seed: int = 0):
    os.makedirs(log_dir, exist_ok=True)
    env.action_space.seed(seed)
    for ep in range(episodes):
        obs, info = env.reset(seed=seed + ep)
        path = os.path.join(log_dir, f"random_ep{ep:03d}.csv")
        total = 0.0
        with open(path, "w", newline="") as f:
            w = csv.writer(f)
            w.writerow([
                "step", "x", "z", "yaw_deg", "goal_dist", "reward",
                "progress", "heading", "direction", "speed", "terminated", "truncated",
            ])
            t = 0
            while True:
                action = env.action_space.sample()
                obs, reward, terminated, truncated, info = env.step(action)
                total += reward
                s = env.get_state_payload()
                raw = info["reward_terms"]["raw"]
                w.writerow([
                    t, s["position"][0], s["position"][2], s["yaw_deg"], s["goal_distance"], reward,
                    raw["progress"], raw["heading"], raw["direction"], raw["speed"],
                    int(terminated), int(truncated),
                ])
                t += 1
                if terminated or truncated:
                    break
        outcome = info.get("terminal_event", "truncated")
        print(f"[INFO] Episode {ep} -> steps: {t}, return: {total:.3f}, outcome: {outcome}, log: {path}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--episodes", type=int, default=3)
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--log-dir", type=str, default="logs")
    parser.add_argument("--base-cfg", type=str, default="configs/config.yaml")
    parser.add_argument("--env-cfg", type=str, default="configs/env/stage.yaml")
    parser.add_argument("--agent-cfg", type=str, default="configs/agent/car.yaml")
    parser.add_argument("--reward-cfg", type=str, default="configs/reward/default.yaml")
    args = parser.parse_args()
    env = CarAgentEnv(
        load_config_dict(args.env_cfg),
        load_config_dict(args.agent_cfg),
        load_config_dict(args.reward_cfg),
        env_run_cfg(load_run_section(args.base_cfg)),
    )
    run_random(env, episodes=args.episodes, log_dir=args.log_dir, seed=args.seed)
