"""Config loading helpers built around OmegaConf."""

from __future__ import annotations

from typing import Any, Dict

from omegaconf import OmegaConf

ENV_RUN_KEYS = ("dt", "decision_period", "max_steps", "time_scale")


def load_config_any(path: str) -> Any:
    """Load a YAML/OMEGACONF file and return the resolved Python object."""
    return OmegaConf.to_container(OmegaConf.load(path), resolve=True)


def load_config_dict(path: str) -> Dict[str, Any]:
    """Load a config file and guarantee a `dict` result."""
    cfg = load_config_any(path)
    if not isinstance(cfg, dict):
        raise TypeError(f"Expected mapping at {path}, got {type(cfg)}")
    return cfg


def env_run_cfg(run_cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Subset of the `run` section the environment itself consumes."""
    return {k: run_cfg[k] for k in ENV_RUN_KEYS if k in run_cfg}


def split_env_sections(
    cfg: Dict[str, Any],
) -> tuple[Dict[str, Any], Dict[str, Any], Dict[str, Any], Dict[str, Any]]:
    """(env, agent, reward, run) dicts from a composed/resolved run config."""
    for key in ("env", "agent", "reward"):
        if key not in cfg:
            raise KeyError(f"Missing '{key}' section in config")
    return (
        dict(cfg["env"]),
        dict(cfg["agent"]),
        dict(cfg["reward"]),
        env_run_cfg(dict(cfg.get("run", {}))),
    )


def load_run_section(path: str) -> Dict[str, Any]:
    """`run` section of a base Hydra config.

    Only that node is resolved, so Hydra-only interpolations elsewhere in the
    file (e.g. `${now:...}` in `hydra.run.dir`) are left alone.
    """
    run = OmegaConf.load(path).get("run")
    if run is None:
        return {}
    return dict(OmegaConf.to_container(run, resolve=True))
