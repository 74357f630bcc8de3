"""Kinematic car state and action decoding.

Motion is a direct position/orientation update along the current heading;
no mass or inertia model is involved. Commands are not clipped, the policy is
expected to stay near [-1, 1] but nothing here relies on it.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

import numpy as np

from .geometry import forward_vector, wrap_degrees

# Discrete action table: index -> (forward, turn)
DISCRETE_ACTIONS: tuple[tuple[float, float], ...] = (
    (0.0, 0.0),  # idle
    (1.0, 0.0),  # forward
    (0.0, -1.0),  # turn left
    (0.0, 1.0),  # turn right
)


@dataclass(frozen=True)
class AgentState:
    """Kinematic state of the car.

    - position: (x, y, z) stage coordinates, y is height
    - yaw_deg: heading about the vertical axis, in [0, 360)
    - linear_velocity: (vx, vy, vz)
    - angular_velocity: yaw rate in deg/s
    """

    position: np.ndarray
    yaw_deg: float
    linear_velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    angular_velocity: float = 0.0

    @property
    def forward(self) -> np.ndarray:
        return forward_vector(self.yaw_deg)

    @classmethod
    def at_rest(cls, position: np.ndarray, yaw_deg: float) -> "AgentState":
        return cls(
            position=np.asarray(position, dtype=float).copy(),
            yaw_deg=wrap_degrees(float(yaw_deg)),
        )


def apply_action(
    state: AgentState,
    action: tuple[float, float] | np.ndarray,
    dt: float,
    *,
    speed: float,
    turn_rate: float,
) -> AgentState:
    """Move `forward * speed * dt` along the heading, then yaw by `turn * turn_rate * dt`."""
    forward_cmd, turn_cmd = float(action[0]), float(action[1])
    heading = state.forward
    velocity = heading * forward_cmd * speed
    position = state.position + velocity * dt
    yaw_rate = turn_cmd * turn_rate
    yaw = wrap_degrees(state.yaw_deg + yaw_rate * dt)
    return replace(
        state,
        position=position,
        yaw_deg=yaw,
        linear_velocity=velocity,
        angular_velocity=yaw_rate,
    )


def decode_discrete(index: int) -> tuple[float, float]:
    idx = int(index)
    if idx < 0 or idx >= len(DISCRETE_ACTIONS):
        raise ValueError(f"Discrete action must be in [0, {len(DISCRETE_ACTIONS)}), got {idx}")
    return DISCRETE_ACTIONS[idx]
