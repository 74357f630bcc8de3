"""Utility helpers shared across training scripts and tooling."""

from .config import (
    env_run_cfg,
    load_config_any,
    load_config_dict,
    load_run_section,
    split_env_sections,
)
from .runs import RunArtifacts, detect_run_root, load_resolved_run_config, locate_artifacts

__all__ = [
    "env_run_cfg",
    "load_config_dict",
    "load_config_any",
    "load_run_section",
    "split_env_sections",
    "detect_run_root",
    "load_resolved_run_config",
    "locate_artifacts",
    "RunArtifacts",
]
