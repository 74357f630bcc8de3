"""Observation assembly for CarAgentEnv.

Vector layout (8 floats):
- goal_dir_x, goal_dir_z: unit vector agent -> goal (stage frame)
- vel_x, vel_z: linear velocity / target speed
- goal_angle: angle between heading and goal direction, degrees / 180
- goal_dist: planar distance to goal / stage half_x
- yaw_rate: angular velocity / target turn rate
- rear_clearance: rear ray hit distance / range on Wall or Obstacle, else 1.0

Values are normalized but not clipped; extreme kinematics can leave the
nominal ranges.
"""

from __future__ import annotations

import numpy as np

from car_env.config import Configuration
from car_env.sim.dynamics import AgentState
from car_env.sim.geometry import angle_between_deg, planar_distance, unit_toward
from car_env.sim.placement import GoalState
from car_env.sim.stage import RayProbe, SurfaceKind

OBS_FIELDS = (
    "goal_dir_x",
    "goal_dir_z",
    "vel_x",
    "vel_z",
    "goal_angle",
    "goal_dist",
    "yaw_rate",
    "rear_clearance",
)
OBS_DIM = len(OBS_FIELDS)


def rear_clearance(agent: AgentState, cfg: Configuration, probe: RayProbe) -> float:
    max_range = cfg.rear_ray_range
    hit = probe.cast(agent.position, -agent.forward, max_range)
    if hit is None:
        return 1.0
    if hit.surface in (SurfaceKind.WALL, SurfaceKind.OBSTACLE):
        return float(hit.distance / max_range)
    return 1.0


def observe(
    agent: AgentState,
    goal: GoalState,
    cfg: Configuration,
    probe: RayProbe,
) -> np.ndarray:
    to_goal = unit_toward(agent.position, goal.position)
    speed = cfg.agent.speed
    obs = np.array(
        [
            to_goal[0],
            to_goal[2],
            agent.linear_velocity[0] / speed,
            agent.linear_velocity[2] / speed,
            angle_between_deg(agent.forward, to_goal) / 180.0,
            planar_distance(agent.position, goal.position) / cfg.stage.half_x,
            agent.angular_velocity / cfg.agent.turn_rate,
            rear_clearance(agent, cfg, probe),
        ],
        dtype=np.float32,
    )
    return obs
