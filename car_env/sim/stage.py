"""Kinematic host stage: tagged walls, disc obstacles and a goal trigger.

Provides the two collaborator services the agent core consumes:
- a geometric ray probe, `cast(origin, direction, max_range) -> RayHit | None`
- a contact feed, `contacts(position) -> list[ContactEvent]` (enter transitions only)

Design decisions:
- All tests are planar (x, z); heights are ignored.
- Walls are the four sides of the rectangle |x| = half_x + wall_margin,
  |z| = half_z + wall_margin.
- A ray starting inside a disc does not report that disc.
- Surface tags are resolved to `SurfaceKind` once, when bodies are created.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from math import sqrt
from typing import Protocol, Tuple, Union

import numpy as np

from car_env.config import Configuration


class SurfaceKind(enum.Enum):
    WALL = "Wall"
    OBSTACLE = "Obstacle"
    GOAL = "Goal"
    OTHER = "Other"

    @classmethod
    def from_tag(cls, tag: str | None) -> "SurfaceKind":
        for kind in (cls.WALL, cls.OBSTACLE, cls.GOAL):
            if tag == kind.value:
                return kind
        return cls.OTHER


class ContactKind(enum.Enum):
    SOLID = "solid"
    TRIGGER = "trigger"


@dataclass(frozen=True)
class RayHit:
    distance: float
    surface: SurfaceKind


@dataclass(frozen=True)
class ContactEvent:
    kind: ContactKind
    surface: SurfaceKind


# ("goal",), ("obstacle", index) or ("wall", side)
BodyKey = Union[Tuple[str], Tuple[str, int], Tuple[str, str]]


class RayProbe(Protocol):
    def cast(
        self, origin: np.ndarray, direction: np.ndarray, max_range: float
    ) -> RayHit | None: ...


@dataclass(frozen=True)
class _Disc:
    key: BodyKey
    x: float
    z: float
    radius: float
    surface: SurfaceKind
    contact: ContactKind


def _ray_disc(ox: float, oz: float, dx: float, dz: float, disc: _Disc) -> float | None:
    """Entry distance of a unit planar ray into a disc, None if missed or started inside."""
    fx, fz = ox - disc.x, oz - disc.z
    c = fx * fx + fz * fz - disc.radius * disc.radius
    if c <= 0.0:
        return None
    b = fx * dx + fz * dz
    disc_sq = b * b - c
    if disc_sq < 0.0:
        return None
    t = -b - sqrt(disc_sq)
    return t if t >= 0.0 else None


class StageWorld:
    """Planar stage used as the agent's physics/collision host."""

    def __init__(self, cfg: Configuration) -> None:
        self.cfg = cfg
        self.wall_x = float(cfg.stage.half_x + cfg.stage.wall_margin)
        self.wall_z = float(cfg.stage.half_z + cfg.stage.wall_margin)
        self.agent_radius = float(cfg.agent.radius)
        self._discs: list[_Disc] = []
        self._touching: set[BodyKey] = set()

    def place(self, goal_position: np.ndarray, obstacles) -> None:
        """Move goal and obstacles for a new episode and forget previous contacts."""
        discs = [
            _Disc(
                key=("goal",),
                x=float(goal_position[0]),
                z=float(goal_position[2]),
                radius=float(self.cfg.goal.radius),
                surface=SurfaceKind.GOAL,
                contact=ContactKind.TRIGGER,
            )
        ]
        for i, (obstacle, spec) in enumerate(zip(obstacles, self.cfg.obstacles)):
            discs.append(
                _Disc(
                    key=("obstacle", i),
                    x=float(obstacle.position[0]),
                    z=float(obstacle.position[2]),
                    radius=spec.body_radius,
                    surface=obstacle.surface,
                    contact=ContactKind.SOLID,
                )
            )
        self._discs = discs
        self._touching = set()

    def cast(
        self, origin: np.ndarray, direction: np.ndarray, max_range: float
    ) -> RayHit | None:
        dx, dz = float(direction[0]), float(direction[2])
        norm = float(np.hypot(dx, dz))
        if norm == 0.0:
            return None
        dx, dz = dx / norm, dz / norm
        ox, oz = float(origin[0]), float(origin[2])

        best_t = float("inf")
        best_kind: SurfaceKind | None = None

        t_wall = self._ray_walls(ox, oz, dx, dz)
        if t_wall is not None:
            best_t, best_kind = t_wall, SurfaceKind.WALL

        for disc in self._discs:
            t = _ray_disc(ox, oz, dx, dz, disc)
            if t is not None and t < best_t:
                best_t, best_kind = t, disc.surface

        if best_kind is None or best_t > max_range:
            return None
        return RayHit(distance=float(best_t), surface=best_kind)

    def _ray_walls(self, ox: float, oz: float, dx: float, dz: float) -> float | None:
        wx, wz = self.wall_x, self.wall_z
        best: float | None = None
        # x = +-wx spans z in [-wz, wz]; z = +-wz spans x in [-wx, wx]
        if dx != 0.0:
            for bound in (-wx, wx):
                t = (bound - ox) / dx
                if t >= 0.0 and abs(oz + t * dz) <= wz and (best is None or t < best):
                    best = t
        if dz != 0.0:
            for bound in (-wz, wz):
                t = (bound - oz) / dz
                if t >= 0.0 and abs(ox + t * dx) <= wx and (best is None or t < best):
                    best = t
        return best

    def overlapping(self, position: np.ndarray) -> list[tuple[BodyKey, ContactKind, SurfaceKind]]:
        """Bodies currently overlapping the agent disc, walls first."""
        x, z = float(position[0]), float(position[2])
        r = self.agent_radius
        hits: list[tuple[BodyKey, ContactKind, SurfaceKind]] = []
        if x + r > self.wall_x:
            hits.append((("wall", "+x"), ContactKind.SOLID, SurfaceKind.WALL))
        if x - r < -self.wall_x:
            hits.append((("wall", "-x"), ContactKind.SOLID, SurfaceKind.WALL))
        if z + r > self.wall_z:
            hits.append((("wall", "+z"), ContactKind.SOLID, SurfaceKind.WALL))
        if z - r < -self.wall_z:
            hits.append((("wall", "-z"), ContactKind.SOLID, SurfaceKind.WALL))
        for disc in self._discs:
            if np.hypot(x - disc.x, z - disc.z) < r + disc.radius:
                hits.append((disc.key, disc.contact, disc.surface))
        return hits

    def contacts(self, position: np.ndarray) -> list[ContactEvent]:
        """Contact events for bodies the agent started touching since the last call.

        Solid contacts are listed before trigger entries.
        """
        current = self.overlapping(position)
        entered = [item for item in current if item[0] not in self._touching]
        self._touching = {item[0] for item in current}
        solids = [ContactEvent(k, s) for _, k, s in entered if k is ContactKind.SOLID]
        triggers = [ContactEvent(k, s) for _, k, s in entered if k is ContactKind.TRIGGER]
        return solids + triggers
