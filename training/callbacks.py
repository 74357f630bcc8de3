"""Training callbacks: best-model normalization stats, checkpoints, reward breakdowns."""

from __future__ import annotations

import json
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from stable_baselines3.common.callbacks import BaseCallback
from stable_baselines3.common.vec_env import VecNormalize


class SaveVecNormalizeOnBest(BaseCallback):
    """`callback_on_new_best` hook for EvalCallback: stores VecNormalize stats
    next to best_model.zip so the pair can be reloaded together.
    """

    def __init__(self, vecnorm_env: Optional[Any], save_dir: str, verbose: int = 0) -> None:
        super().__init__(verbose=verbose)
        self.vecnorm_env = vecnorm_env
        self.save_dir = Path(save_dir)

    def _on_step(self) -> bool:
        best = getattr(self.parent, "best_mean_reward", float("nan"))
        print(f"[CALLBACK] New best mean reward {best:.3f} at {self.num_timesteps} steps")
        if isinstance(self.vecnorm_env, VecNormalize):
            self.save_dir.mkdir(parents=True, exist_ok=True)
            self.vecnorm_env.save(str(self.save_dir / "vecnorm_best.pkl"))
        return True


class StepCheckpointCallback(BaseCallback):
    """Saves `{save_dir}/{prefix}_step_{N}/` holding model.zip, meta.json and,
    when observations are normalized, vecnorm.pkl. Only the newest
    `keep_last_k` checkpoints are kept (0 keeps all).
    """

    def __init__(
        self,
        every_steps: int,
        save_dir: str,
        vecnorm_env: Optional[Any] = None,
        keep_last_k: int = 0,
        prefix: str = "ckpt",
        wandb_run: Optional[Any] = None,
        verbose: int = 0,
    ) -> None:
        super().__init__(verbose=verbose)
        self.every_steps = int(every_steps)
        self.save_dir = Path(save_dir)
        self.vecnorm_env = vecnorm_env
        self.keep_last_k = int(keep_last_k)
        self.prefix = prefix
        self.wandb_run = wandb_run
        self._next_save = self.every_steps

    def _init_callback(self) -> None:
        self.save_dir.mkdir(parents=True, exist_ok=True)

    def _on_step(self) -> bool:
        if self.num_timesteps >= self._next_save:
            self._save()
            self._next_save = self.num_timesteps + self.every_steps
        return True

    def _save(self) -> Path:
        step_dir = self.save_dir / f"{self.prefix}_step_{self.num_timesteps}"
        step_dir.mkdir(parents=True, exist_ok=True)
        files = [step_dir / "model.zip"]
        self.model.save(str(files[0]))
        if isinstance(self.vecnorm_env, VecNormalize):
            files.append(step_dir / "vecnorm.pkl")
            self.vecnorm_env.save(str(files[-1]))

        meta = {
            "step": int(self.num_timesteps),
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "files": [f.name for f in files],
        }
        files.append(step_dir / "meta.json")
        files[-1].write_text(json.dumps(meta, indent=2), encoding="utf-8")

        if self.wandb_run is not None:
            import wandb

            art = wandb.Artifact(f"{self.prefix}_step_{self.num_timesteps}", type="model")
            for f in files:
                art.add_file(str(f))
            self.wandb_run.log_artifact(art)

        self._prune()
        return step_dir

    def _prune(self) -> None:
        if self.keep_last_k <= 0:
            return
        marker = f"{self.prefix}_step_"
        saved = sorted(
            (p for p in self.save_dir.iterdir() if p.is_dir() and p.name.startswith(marker)),
            key=lambda p: int(p.name[len(marker):]),
        )
        for old in saved[: -self.keep_last_k]:
            shutil.rmtree(old, ignore_errors=True)


def flatten_reward_terms(reward_terms: Dict[str, Any], prefix: str) -> Dict[str, float]:
    """`{prefix}/total`, `{prefix}/contrib/<term>`, `{prefix}/raw/<term>` scalars."""
    data = {f"{prefix}/total": float(reward_terms.get("total", 0.0))}
    for category in ("contrib", "raw"):
        terms = reward_terms.get(category, {}) or {}
        for k, v in terms.items():
            data[f"{prefix}/{category}/{k}"] = float(v)
    return data


class RewardTermsLoggingCallback(BaseCallback):
    """Averages per-step reward breakdowns from env infos into the SB3 logger.

    Auxiliary terms appear under `raw` even when the reward policy leaves
    them out of the total. Episode endings also feed `goal_rate` and
    `collision_rate`. W&B picks these up through TensorBoard sync.
    """

    def __init__(self, prefix: str = "train/reward", verbose: int = 0) -> None:
        super().__init__(verbose=verbose)
        self._prefix = prefix

    def _on_step(self) -> bool:
        for info in self.locals.get("infos", []) or []:
            if not isinstance(info, dict):
                continue
            if isinstance(info.get("reward_terms"), dict):
                for key, value in flatten_reward_terms(info["reward_terms"], self._prefix).items():
                    self.logger.record_mean(key, value)
            if "is_success" in info:
                event = info.get("terminal_event")
                self.logger.record_mean(f"{self._prefix}/goal_rate", float(event == "goal"))
                self.logger.record_mean(f"{self._prefix}/collision_rate", float(event == "collision"))
        return True
