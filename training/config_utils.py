"""Hydra config -> plain dict sections, plus optional W&B initialization."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from omegaconf import DictConfig, OmegaConf

from car_env.config import Configuration, build_config
from car_env.utils.config import env_run_cfg

__all__ = ["TrainSections", "resolve_cfg", "maybe_init_wandb"]


@dataclass
class TrainSections:
    env: dict[str, Any]
    agent: dict[str, Any]
    reward: dict[str, Any]
    algo: dict[str, Any]
    run: dict[str, Any]
    wandb: dict[str, Any] = field(default_factory=dict)

    def env_config(self) -> Configuration:
        """Validated env configuration; raises ConfigError before any worker starts."""
        return build_config(self.env, self.agent, self.reward, env_run_cfg(self.run))

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("wandb")
        return data


def _section(cfg: DictConfig, key: str, required: bool = True) -> dict[str, Any]:
    node = cfg.get(key)
    if node is None:
        if required:
            raise KeyError(f"Missing '{key}' section in config")
        return {}
    data = OmegaConf.to_container(node, resolve=True) if isinstance(node, DictConfig) else node
    if not isinstance(data, dict):
        raise TypeError(f"Expected config section '{key}' to resolve to a dict")
    return dict(data)


def resolve_cfg(cfg: DictConfig) -> TrainSections:
    """Split a composed Hydra config (env, agent, reward, algo, run, wandb)."""
    return TrainSections(
        env=_section(cfg, "env"),
        agent=_section(cfg, "agent"),
        reward=_section(cfg, "reward"),
        algo=_section(cfg, "algo"),
        run=_section(cfg, "run"),
        wandb=_section(cfg, "wandb", required=False),
    )


def maybe_init_wandb(sections: TrainSections):
    """Start a W&B run synced with TensorBoard, or None when `wandb.mode` is disabled."""
    mode = str(sections.wandb.get("mode", "disabled"))
    if mode == "disabled":
        return None

    import wandb

    return wandb.init(
        project=sections.wandb.get("project"),
        entity=sections.wandb.get("entity"),
        mode=mode,
        sync_tensorboard=True,
        dir=".",
        config=sections.as_dict(),
        tags=list(sections.wandb.get("tags") or []),
    )
