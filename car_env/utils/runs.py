"""Locating trained-model artifacts inside Hydra run directories.

A training run writes:

    runs/<stamp>/
        resolved.yaml
        best/best_model.zip, best/vecnorm_best.pkl
        final/final_model.zip, final/vecnorm_final.pkl
        checkpoints/<prefix>_step_<N>/model.zip, vecnorm.pkl
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .config import load_config_any

MODEL_NAMES = ("best_model.zip", "final_model.zip", "model.zip")
VECNORM_NAMES = ("vecnorm_best.pkl", "vecnorm_final.pkl", "vecnorm.pkl")
ARTIFACT_DIRS = ("best", "final", "checkpoints")


@dataclass(frozen=True)
class RunArtifacts:
    model_zip: str
    vecnorm_pkl: Optional[str]
    run_dir: str


def detect_run_root(model_path: str) -> str:
    """Hydra run directory owning a model file or artifact folder."""
    p = Path(model_path).resolve()
    folder = p if p.is_dir() else p.parent
    if folder.name in ARTIFACT_DIRS:
        return str(folder.parent)
    if folder.parent.name == "checkpoints":
        return str(folder.parent.parent)
    return str(folder)


def _first_file(folder: Path, names) -> Optional[str]:
    return next((str(folder / n) for n in names if (folder / n).is_file()), None)


def locate_artifacts(path: str) -> RunArtifacts:
    """Model zip, matching VecNormalize stats (if saved) and run dir for a path."""
    p = Path(path)
    if p.is_dir():
        model_zip = _first_file(p, MODEL_NAMES)
        if model_zip is None:
            raise FileNotFoundError(f"No model zip found in {p}")
        vecnorm = _first_file(p, VECNORM_NAMES)
    else:
        model_zip = str(p)
        vecnorm = _first_file(p.parent, VECNORM_NAMES)
    return RunArtifacts(model_zip=model_zip, vecnorm_pkl=vecnorm, run_dir=detect_run_root(model_zip))


def load_resolved_run_config(run_dir: str) -> Dict[str, Any]:
    """Resolved config saved by training, falling back to Hydra's own copy."""
    rd = Path(run_dir)
    for candidate in (rd / "resolved.yaml", rd / ".hydra" / "config.yaml"):
        if candidate.is_file():
            cfg = load_config_any(str(candidate))
            return cfg if isinstance(cfg, dict) else {}
    return {}
