import numpy as np
import pytest
from omegaconf import OmegaConf
from stable_baselines3.common.vec_env import DummyVecEnv, VecNormalize

from car_env.errors import ConfigError
from training.config_utils import maybe_init_wandb, resolve_cfg
from training.env_factory import make_eval_env, make_vec_envs
from training.train_ppo import build_policy_kwargs


def make_hydra_cfg(**reward):
    return OmegaConf.create(
        {
            "env": {"stage": {"half_x": 10.0, "half_z": 10.0}, "obstacles": [1.0]},
            "agent": {"speed": 5.0},
            "reward": reward,
            "algo": {"net_arch": [32, 32], "activation": "relu"},
            "wandb": {"mode": "disabled"},
            "run": {"seed": 0, "dt": 0.02, "decision_period": 2, "max_steps": 20, "vec_envs": 2},
        }
    )


def test_resolve_cfg_splits_sections():
    sections = resolve_cfg(make_hydra_cfg())
    assert sections.agent == {"speed": 5.0}
    cfg = sections.env_config()
    assert cfg.run.decision_period == 2
    assert cfg.stage.half_x == 10.0
    assert "wandb" not in sections.as_dict()


def test_resolve_cfg_fails_fast_on_bad_env():
    sections = resolve_cfg(make_hydra_cfg(auxiliary_terms="both"))
    with pytest.raises(ConfigError):
        sections.env_config()


def test_wandb_disabled_returns_none():
    assert maybe_init_wandb(resolve_cfg(make_hydra_cfg())) is None


def test_policy_kwargs():
    kwargs = build_policy_kwargs({"net_arch": [32, 32], "activation": "relu"})
    assert kwargs["net_arch"] == {"pi": [32, 32], "vf": [32, 32]}
    assert kwargs["activation_fn"].__name__ == "ReLU"


def test_vec_envs_step_and_share_normalization():
    cfg = resolve_cfg(make_hydra_cfg()).env_config()
    venv = make_vec_envs(cfg, n_envs=2, base_seed=3, use_subproc=False, normalize_obs=True)
    assert isinstance(venv, VecNormalize)
    assert isinstance(venv.venv, DummyVecEnv)
    obs = venv.reset()
    assert obs.shape == (2, 8)
    obs, rewards, dones, infos = venv.step(np.zeros((2, 2), dtype=np.float32))
    assert rewards.shape == (2,)
    assert "reward_terms" in infos[0]

    eval_env = make_eval_env(cfg, venv, seed=100)
    assert eval_env.obs_rms is venv.obs_rms
    assert eval_env.training is False
    venv.close()
    eval_env.close()
