"""Validated, immutable configuration for the car agent.

The env is constructed from four plain dicts (env, agent, reward, run) as
produced by Hydra/OmegaConf; `build_config` validates them once and returns a
frozen `Configuration`. Any violation raises `ConfigError`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Mapping, Optional

from .errors import ConfigError

AUXILIARY_POLICIES = ("telemetry", "summed")
ACTION_MODES = ("continuous", "discrete")


def _require(cond: bool, msg: str, hint: str = "") -> None:
    if not cond:
        raise ConfigError(msg, hint=hint)


def _require_count(value: Any, name: str) -> None:
    _require(
        isinstance(value, int) and not isinstance(value, bool) and value >= 1,
        f"{name} must be an integer >= 1, got {value!r}",
    )


def _from_mapping(cls, data: Optional[Mapping[str, Any]], section: str):
    data = dict(data or {})
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    _require(not unknown, f"Unknown keys in '{section}': {unknown}", hint=f"Valid keys: {sorted(known)}")
    return cls(**data)


@dataclass(frozen=True)
class StageConfig:
    half_x: float = 20.0
    half_z: float = 20.0
    spawn_height: float = 0.5
    # Walls sit this far outside the spawn rectangle
    wall_margin: float = 0.5

    def __post_init__(self) -> None:
        _require(self.half_x > 0.0, "stage.half_x must be > 0")
        _require(self.half_z > 0.0, "stage.half_z must be > 0")
        _require(self.wall_margin >= 0.0, "stage.wall_margin must be >= 0")

    @property
    def width_x(self) -> float:
        return 2.0 * self.half_x


@dataclass(frozen=True)
class GoalConfig:
    radius: float = 0.5

    def __post_init__(self) -> None:
        _require(self.radius > 0.0, "goal.radius must be > 0")


@dataclass(frozen=True)
class ObstacleSpec:
    """One obstacle: `size` is both its placement footprint radius and its extent."""

    size: float = 2.0
    tag: str = "Obstacle"

    def __post_init__(self) -> None:
        _require(self.size > 0.0, "obstacle size must be > 0")

    @property
    def footprint_radius(self) -> float:
        return float(self.size)

    @property
    def body_radius(self) -> float:
        return 0.5 * float(self.size)


@dataclass(frozen=True)
class PlacementConfig:
    min_goal_separation_factor: float = 0.25
    obstacle_margin: float = 0.0
    max_attempts: int = 10_000

    def __post_init__(self) -> None:
        _require(self.min_goal_separation_factor >= 0.0, "placement.min_goal_separation_factor must be >= 0")
        _require(self.obstacle_margin >= 0.0, "placement.obstacle_margin must be >= 0")
        _require_count(self.max_attempts, "placement.max_attempts")


@dataclass(frozen=True)
class SensorConfig:
    # None -> half the stage's z-extent
    rear_ray_range: Optional[float] = None
    alignment_ray_range: float = 30.0

    def __post_init__(self) -> None:
        _require(self.rear_ray_range is None or self.rear_ray_range > 0.0, "sensors.rear_ray_range must be > 0")
        _require(self.alignment_ray_range > 0.0, "sensors.alignment_ray_range must be > 0")


@dataclass(frozen=True)
class AgentConfig:
    speed: float = 10.0
    turn_rate: float = 100.0  # deg/s
    radius: float = 0.5
    action_mode: str = "continuous"

    def __post_init__(self) -> None:
        _require(self.speed > 0.0, "agent.speed must be > 0")
        _require(self.turn_rate > 0.0, "agent.turn_rate must be > 0")
        _require(self.radius > 0.0, "agent.radius must be > 0")
        _require(
            self.action_mode in ACTION_MODES,
            f"agent.action_mode must be one of {ACTION_MODES}, got {self.action_mode!r}",
        )


@dataclass(frozen=True)
class RewardConfig:
    progress_scale: float = 5.0
    heading_penalty_scale: float = 0.05
    alignment_bonus: float = 0.001
    tick_cost: float = -0.001
    collision_penalty: float = -5.0
    goal_reward: float = 5.0
    direction_scale: float = 0.01
    speed_bonus_min: float = -0.05
    speed_bonus_max: float = 0.10
    # "telemetry": direction/speed terms are reported only; "summed": folded into the total
    auxiliary_terms: str = "telemetry"

    def __post_init__(self) -> None:
        _require(
            self.auxiliary_terms in AUXILIARY_POLICIES,
            f"reward.auxiliary_terms must be one of {AUXILIARY_POLICIES}, got {self.auxiliary_terms!r}",
        )
        _require(self.speed_bonus_min <= self.speed_bonus_max, "reward.speed_bonus_min must be <= speed_bonus_max")


@dataclass(frozen=True)
class RunConfig:
    dt: float = 0.02
    decision_period: int = 1
    max_steps: int = 5000
    # Wall-clock speed-up used by the driver when pacing inference runs
    time_scale: float = 1.0

    def __post_init__(self) -> None:
        _require(self.dt > 0.0, "run.dt must be > 0")
        _require_count(self.decision_period, "run.decision_period")
        _require_count(self.max_steps, "run.max_steps")
        _require(self.time_scale > 0.0, "run.time_scale must be > 0")


@dataclass(frozen=True)
class Configuration:
    stage: StageConfig = field(default_factory=StageConfig)
    goal: GoalConfig = field(default_factory=GoalConfig)
    obstacles: tuple[ObstacleSpec, ...] = ()
    placement: PlacementConfig = field(default_factory=PlacementConfig)
    sensors: SensorConfig = field(default_factory=SensorConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    reward: RewardConfig = field(default_factory=RewardConfig)
    run: RunConfig = field(default_factory=RunConfig)

    def __post_init__(self) -> None:
        # Spawn points reach the stage edge, so the car disc must fit inside the walls
        _require(
            self.stage.wall_margin >= self.agent.radius,
            f"stage.wall_margin ({self.stage.wall_margin}) must be >= agent.radius ({self.agent.radius})",
            hint="Raise stage.wall_margin or shrink agent.radius",
        )

    @property
    def rear_ray_range(self) -> float:
        if self.sensors.rear_ray_range is not None:
            return float(self.sensors.rear_ray_range)
        return float(self.stage.half_z)

    @property
    def min_goal_separation(self) -> float:
        return self.placement.min_goal_separation_factor * self.stage.width_x


def build_config(
    env_cfg: Mapping[str, Any] | None = None,
    agent_cfg: Mapping[str, Any] | None = None,
    reward_cfg: Mapping[str, Any] | None = None,
    run_cfg: Mapping[str, Any] | None = None,
) -> Configuration:
    """Validate the four config sections and freeze them into a `Configuration`."""
    env_cfg = dict(env_cfg or {})
    for key in env_cfg:
        _require(
            key in ("stage", "goal", "obstacles", "placement", "sensors"),
            f"Unknown section in env config: {key!r}",
        )
    obstacles_raw = env_cfg.get("obstacles") or []
    _require(isinstance(obstacles_raw, (list, tuple)), "env.obstacles must be a list")
    try:
        obstacles = []
        for i, item in enumerate(obstacles_raw):
            if isinstance(item, Mapping):
                obstacles.append(_from_mapping(ObstacleSpec, item, f"env.obstacles[{i}]"))
            else:
                obstacles.append(ObstacleSpec(size=float(item)))
        return Configuration(
            stage=_from_mapping(StageConfig, env_cfg.get("stage"), "env.stage"),
            goal=_from_mapping(GoalConfig, env_cfg.get("goal"), "env.goal"),
            obstacles=tuple(obstacles),
            placement=_from_mapping(PlacementConfig, env_cfg.get("placement"), "env.placement"),
            sensors=_from_mapping(SensorConfig, env_cfg.get("sensors"), "env.sensors"),
            agent=_from_mapping(AgentConfig, agent_cfg, "agent"),
            reward=_from_mapping(RewardConfig, reward_cfg, "reward"),
            run=_from_mapping(RunConfig, run_cfg, "run"),
        )
    except (TypeError, ValueError) as exc:
        # Non-numeric values trip comparisons in __post_init__ or float()
        raise ConfigError(f"Malformed config value: {exc}") from exc
