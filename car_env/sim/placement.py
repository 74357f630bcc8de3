"""Episode placement: agent, goal and obstacles by rejection sampling.

Every rejection loop is bounded by `placement.max_attempts`; running out of
attempts means the stage is too small for the requested separations and
raises `PlacementError` instead of spinning forever.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from car_env.config import Configuration
from car_env.errors import PlacementError

from .dynamics import AgentState
from .geometry import planar_distance
from .stage import SurfaceKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GoalState:
    position: np.ndarray


@dataclass(frozen=True)
class ObstaclePlacement:
    position: np.ndarray
    footprint_radius: float
    surface: SurfaceKind = SurfaceKind.OBSTACLE


@dataclass(frozen=True)
class EpisodeContext:
    """Values carried from the previous tick, used only to form deltas."""

    previous_distance_to_goal: float
    previous_position: np.ndarray


@dataclass(frozen=True)
class EpisodeLayout:
    agent: AgentState
    goal: GoalState
    obstacles: tuple[ObstaclePlacement, ...]
    context: EpisodeContext
    attempts: int = 0


def sample_stage_point(cfg: Configuration, rng: np.random.Generator) -> np.ndarray:
    """Uniform point in [-half_x, half_x] x [-half_z, half_z] at spawn height."""
    hx, hz = cfg.stage.half_x, cfg.stage.half_z
    return np.array(
        [
            float(rng.uniform(-hx, hx)),
            float(cfg.stage.spawn_height),
            float(rng.uniform(-hz, hz)),
        ]
    )


def _sample_agent_goal(cfg: Configuration, rng: np.random.Generator) -> tuple[np.ndarray, np.ndarray, int]:
    # Never start inside the goal trigger
    min_sep = max(cfg.min_goal_separation, cfg.goal.radius + cfg.agent.radius)
    for attempt in range(1, cfg.placement.max_attempts + 1):
        p1 = sample_stage_point(cfg, rng)
        p2 = sample_stage_point(cfg, rng)
        if planar_distance(p1, p2) >= min_sep:
            return p1, p2, attempt
    raise PlacementError(
        f"Could not separate agent and goal by {min_sep:.3f} within "
        f"{cfg.placement.max_attempts} attempts",
        hint="Enlarge the stage or lower placement.min_goal_separation_factor",
    )


def _sample_obstacle(
    cfg: Configuration,
    rng: np.random.Generator,
    agent_clearance: float,
    goal_clearance: float,
    agent_pos: np.ndarray,
    goal_pos: np.ndarray,
    index: int,
) -> tuple[np.ndarray, int]:
    for attempt in range(1, cfg.placement.max_attempts + 1):
        p = sample_stage_point(cfg, rng)
        if (
            planar_distance(p, agent_pos) >= agent_clearance
            and planar_distance(p, goal_pos) >= goal_clearance
        ):
            return p, attempt
    raise PlacementError(
        f"Could not place obstacle {index} with clearance {agent_clearance:.3f} within "
        f"{cfg.placement.max_attempts} attempts",
        hint="Enlarge the stage or shrink obstacle sizes / placement.obstacle_margin",
    )


def sample_episode(cfg: Configuration, rng: np.random.Generator) -> EpisodeLayout:
    """Place agent, goal and obstacles for a fresh episode.

    Obstacles are placed independently of each other; only their clearance
    from the agent and the goal is enforced. The car never starts touching a
    solid body or the goal trigger.
    """
    agent_pos, goal_pos, attempts = _sample_agent_goal(cfg, rng)

    obstacles: list[ObstaclePlacement] = []
    for i, spec in enumerate(cfg.obstacles):
        clearance = spec.footprint_radius + cfg.placement.obstacle_margin
        # The solid body must also clear the car disc
        agent_clearance = max(clearance, spec.body_radius + cfg.agent.radius)
        pos, tries = _sample_obstacle(cfg, rng, agent_clearance, clearance, agent_pos, goal_pos, i)
        attempts += tries
        obstacles.append(
            ObstaclePlacement(
                position=pos,
                footprint_radius=spec.footprint_radius,
                surface=SurfaceKind.from_tag(spec.tag),
            )
        )

    yaw = float(rng.uniform(0.0, 360.0))
    agent = AgentState.at_rest(agent_pos, yaw)
    context = EpisodeContext(
        previous_distance_to_goal=planar_distance(agent_pos, goal_pos),
        previous_position=agent_pos.copy(),
    )
    logger.debug("Episode placed after %d samples (%d obstacles)", attempts, len(obstacles))
    return EpisodeLayout(
        agent=agent,
        goal=GoalState(position=goal_pos),
        obstacles=tuple(obstacles),
        context=context,
        attempts=attempts,
    )
