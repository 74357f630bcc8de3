"""Drive the car from the keyboard.

W/S or up/down: forward/back, A/D or left/right: turn, R: new episode,
Esc/Q: quit. The pygame window only captures keys; progress is printed.
"""

from __future__ import annotations

import argparse

import pygame

from car_env.control.manual import ManualController
from car_env.gym.car_agent_env import CarAgentEnv
from car_env.gym.driver import EpisodeDriver
from car_env.utils import env_run_cfg, load_config_dict, load_run_section

KEY_NAMES = {
    pygame.K_UP: "up",
    pygame.K_DOWN: "down",
    pygame.K_LEFT: "left",
    pygame.K_RIGHT: "right",
    pygame.K_w: "w",
    pygame.K_s: "s",
    pygame.K_a: "a",
    pygame.K_d: "d",
}


class QuitRequested(Exception):
    pass


class ResetRequested(Exception):
    pass


def pygame_key_state() -> dict[str, bool]:
    for event in pygame.event.get():
        if event.type == pygame.QUIT:
            raise QuitRequested()
        if event.type == pygame.KEYDOWN:
            if event.key in (pygame.K_ESCAPE, pygame.K_q):
                raise QuitRequested()
            if event.key == pygame.K_r:
                raise ResetRequested()
    keys = pygame.key.get_pressed()
    return {name: bool(keys[code]) for code, name in KEY_NAMES.items()}


def print_step(env: CarAgentEnv, reward: float, info: dict) -> None:
    payload = env.get_state_payload()
    if payload["steps"] % 25 == 0 or "terminal_event" in info:
        x, _, z = payload["position"]
        print(
            f"step={payload['steps']:5d} pos=({x:6.2f},{z:6.2f}) yaw={payload['yaw_deg']:6.1f} "
            f"goal_dist={payload['goal_distance']:6.2f} r={reward:+.4f}"
        )


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--base_cfg", type=str, default="configs/config.yaml")
    parser.add_argument("--env_cfg", type=str, default="configs/env/stage.yaml")
    parser.add_argument("--agent_cfg", type=str, default="configs/agent/car.yaml")
    parser.add_argument("--reward_cfg", type=str, default="configs/reward/default.yaml")
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args()

    run_cfg = env_run_cfg(load_run_section(args.base_cfg))
    env = CarAgentEnv(
        load_config_dict(args.env_cfg),
        load_config_dict(args.agent_cfg),
        load_config_dict(args.reward_cfg),
        run_cfg,
    )

    pygame.init()
    pygame.display.set_mode((320, 120))
    pygame.display.set_caption("Car manual control: WASD/arrows, R=reset, Q=quit")

    controller = ManualController(
        pygame_key_state,
        dt=env.dt * env.decision_period,
        discrete=env.cfg.agent.action_mode == "discrete",
    )
    # Manual play is always paced in real time
    driver = EpisodeDriver(env, controller, time_scale=1.0, on_step=print_step)
    episode = 0
    try:
        while True:
            controller.axes.reset()
            try:
                seed = None if args.seed is None else args.seed + episode
                s = driver.run_episode(seed=seed)
            except ResetRequested:
                print("[INFO] Episode reset by user")
                continue
            outcome = s.terminal_event or "truncated"
            print(f"[INFO] Episode {episode}: {outcome} after {s.steps} steps, return {s.total_reward:.3f}")
            episode += 1
    except QuitRequested:
        pass
    finally:
        pygame.quit()


if __name__ == "__main__":
    main()
