"""PPO training entrypoint using Hydra config composition.

Saves a resolved config snapshot (resolved.yaml) in the Hydra run directory
alongside artifacts so rollouts can rebuild the exact environment.
"""

from __future__ import annotations

import os
from typing import Any, Dict

import hydra
import torch.nn as nn
from omegaconf import DictConfig, OmegaConf
from stable_baselines3 import PPO
from stable_baselines3.common.callbacks import CallbackList, EvalCallback
from stable_baselines3.common.logger import configure
from stable_baselines3.common.vec_env import VecNormalize

from training.callbacks import (
    RewardTermsLoggingCallback,
    SaveVecNormalizeOnBest,
    StepCheckpointCallback,
)
from training.config_utils import maybe_init_wandb, resolve_cfg
from training.env_factory import make_eval_env, make_vec_envs

ACTIVATIONS = {
    "relu": nn.ReLU,
    "tanh": nn.Tanh,
    "elu": nn.ELU,
    "leaky_relu": nn.LeakyReLU,
}


def build_policy_kwargs(algo_cfg: Dict[str, Any]) -> Dict[str, Any]:
    sizes = list(algo_cfg.get("net_arch", [128, 128]))
    activation_fn = ACTIVATIONS.get(str(algo_cfg.get("activation", "tanh")), nn.Tanh)
    return {"net_arch": dict(pi=sizes, vf=sizes), "activation_fn": activation_fn}


@hydra.main(config_path="../configs", config_name="config", version_base=None)
def main(cfg: DictConfig) -> None:
    sections = resolve_cfg(cfg)
    env_config = sections.env_config()
    algo_cfg, run_cfg = sections.algo, sections.run

    # Hydra sets CWD to the run directory (runs/YYYYMMDD_HHMMSS)
    with open("resolved.yaml", "w", encoding="utf-8") as f:
        f.write(OmegaConf.to_yaml(cfg, resolve=True))
    print(f"[INFO] Training outputs will be saved to: {os.getcwd()}")

    seed = int(run_cfg["seed"])
    n_envs = int(run_cfg["vec_envs"])
    total_timesteps = int(run_cfg["total_timesteps"])
    print(
        f"[INFO] {n_envs} envs, {len(env_config.obstacles)} obstacles, "
        f"action_mode={env_config.agent.action_mode}, "
        f"auxiliary_terms={env_config.reward.auxiliary_terms}"
    )

    wandb_run = maybe_init_wandb(sections)

    train_env = make_vec_envs(
        env_config,
        n_envs=n_envs,
        base_seed=seed,
        use_subproc=(n_envs > 1),
        normalize_obs=bool(algo_cfg.get("normalize_obs", False)),
    )
    eval_env = make_eval_env(env_config, train_env, seed=seed + 1000)

    model = PPO(
        policy="MlpPolicy",
        env=train_env,
        learning_rate=float(algo_cfg["lr"]),
        n_steps=int(algo_cfg["n_steps"]),
        batch_size=int(algo_cfg["batch_size"]),
        n_epochs=int(algo_cfg["n_epochs"]),
        gamma=float(algo_cfg["gamma"]),
        gae_lambda=float(algo_cfg["gae_lambda"]),
        clip_range=float(algo_cfg["clip_range"]),
        ent_coef=float(algo_cfg["ent_coef"]),
        vf_coef=float(algo_cfg["vf_coef"]),
        max_grad_norm=float(algo_cfg["max_grad_norm"]),
        policy_kwargs=build_policy_kwargs(algo_cfg),
        verbose=1,
        seed=seed,
    )
    model.set_logger(configure("logs", ["stdout", "csv", "tensorboard"]))

    eval_cfg = algo_cfg.get("eval", {})
    eval_cb = EvalCallback(
        eval_env,
        callback_on_new_best=SaveVecNormalizeOnBest(train_env, save_dir="best"),
        best_model_save_path="best",
        log_path="eval",
        eval_freq=max(1, int(eval_cfg.get("freq_steps", 20_000)) // n_envs),
        n_eval_episodes=int(eval_cfg.get("episodes", 10)),
        deterministic=True,
        render=False,
    )
    callbacks: list[Any] = [eval_cb, RewardTermsLoggingCallback()]

    ckpt_cfg = algo_cfg.get("checkpoint", {})
    if bool(ckpt_cfg.get("enabled", False)):
        callbacks.append(
            StepCheckpointCallback(
                every_steps=int(ckpt_cfg["every_steps"]),
                save_dir="checkpoints",
                vecnorm_env=train_env,
                keep_last_k=int(ckpt_cfg.get("keep_last_k", 0)),
                prefix=str(ckpt_cfg.get("prefix", "ckpt")),
                wandb_run=wandb_run if bool(ckpt_cfg.get("to_wandb", False)) else None,
            )
        )

    model.learn(total_timesteps=total_timesteps, callback=CallbackList(callbacks))

    os.makedirs("final", exist_ok=True)
    model.save("final/final_model")
    if isinstance(train_env, VecNormalize):
        train_env.save("final/vecnorm_final.pkl")
        if os.path.exists("best/best_model.zip") and not os.path.exists("best/vecnorm_best.pkl"):
            print("[WARN] best_model.zip has no vecnorm_best.pkl; saving final stats in its place")
            train_env.save("best/vecnorm_best.pkl")

    if wandb_run is not None:
        import wandb

        art = wandb.Artifact("models", type="model")
        art.add_file("final/final_model.zip")
        for extra in ("best/best_model.zip", "final/vecnorm_final.pkl", "best/vecnorm_best.pkl"):
            if os.path.exists(extra):
                art.add_file(extra)
        wandb_run.log_artifact(art)
        wandb_run.finish()

    train_env.close()
    eval_env.close()


if __name__ == "__main__":
    main()
