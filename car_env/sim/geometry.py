"""Planar geometry helpers on 3D stage coordinates.

Positions are (x, y, z) with y vertical. Yaw is measured in degrees about the
vertical axis; yaw 0 faces +z and positive yaw turns toward +x.
"""

from __future__ import annotations

from math import cos, degrees, radians, sin

import numpy as np

# Below this length a direction is treated as undefined (zero vector).
_EPS = 1e-5


def wrap_degrees(angle: float) -> float:
    """Normalize angle to [0, 360)."""
    wrapped = angle % 360.0
    if wrapped >= 360.0:
        wrapped -= 360.0
    return wrapped


def forward_vector(yaw_deg: float) -> np.ndarray:
    th = radians(yaw_deg)
    return np.array([sin(th), 0.0, cos(th)])


def planar_distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.hypot(b[0] - a[0], b[2] - a[2]))


def unit_toward(origin: np.ndarray, target: np.ndarray) -> np.ndarray:
    """Unit vector from origin to target; zero vector when they coincide."""
    delta = np.asarray(target, dtype=float) - np.asarray(origin, dtype=float)
    norm = float(np.linalg.norm(delta))
    if norm < _EPS:
        return np.zeros(3)
    return delta / norm


def angle_between_deg(a: np.ndarray, b: np.ndarray) -> float:
    """Unsigned angle in degrees between two vectors, 0 if either is degenerate."""
    na = float(np.linalg.norm(a))
    nb = float(np.linalg.norm(b))
    if na < _EPS or nb < _EPS:
        return 0.0
    c = float(np.dot(a, b)) / (na * nb)
    return degrees(float(np.arccos(np.clip(c, -1.0, 1.0))))
