import numpy as np
import pytest

from car_env.config import build_config
from car_env.sim.placement import ObstaclePlacement
from car_env.sim.stage import ContactKind, StageWorld, SurfaceKind


def make_world(obstacles=(), sizes=None, tags=None):
    sizes = sizes or [2.0] * len(obstacles)
    tags = tags or ["Obstacle"] * len(obstacles)
    cfg = build_config(
        {
            "stage": {"half_x": 10.0, "half_z": 10.0, "wall_margin": 0.5},
            "obstacles": [{"size": s, "tag": t} for s, t in zip(sizes, tags)],
        }
    )
    world = StageWorld(cfg)
    placements = [
        ObstaclePlacement(
            position=np.array(p, dtype=float),
            footprint_radius=s,
            surface=SurfaceKind.from_tag(t),
        )
        for p, s, t in zip(obstacles, sizes, tags)
    ]
    world.place(np.array([0.0, 0.5, 8.0]), placements)
    return world


def test_surface_tags_resolve():
    assert SurfaceKind.from_tag("Wall") is SurfaceKind.WALL
    assert SurfaceKind.from_tag("Obstacle") is SurfaceKind.OBSTACLE
    assert SurfaceKind.from_tag("Goal") is SurfaceKind.GOAL
    assert SurfaceKind.from_tag("wall") is SurfaceKind.OTHER
    assert SurfaceKind.from_tag(None) is SurfaceKind.OTHER


def test_ray_hits_nearest_wall():
    world = make_world()
    hit = world.cast(np.array([0.0, 0.5, 0.0]), np.array([1.0, 0.0, 0.0]), 50.0)
    assert hit.surface is SurfaceKind.WALL
    assert hit.distance == pytest.approx(10.5)
    hit = world.cast(np.array([0.0, 0.5, 0.0]), np.array([0.0, 0.0, -2.0]), 50.0)
    assert hit.distance == pytest.approx(10.5)


def test_ray_beyond_range_is_none():
    world = make_world()
    assert world.cast(np.array([0.0, 0.5, 0.0]), np.array([1.0, 0.0, 0.0]), 5.0) is None
    assert world.cast(np.array([0.0, 0.5, 0.0]), np.zeros(3), 5.0) is None


def test_ray_hits_goal_before_wall():
    world = make_world()
    hit = world.cast(np.array([0.0, 0.5, 0.0]), np.array([0.0, 0.0, 1.0]), 30.0)
    assert hit.surface is SurfaceKind.GOAL
    assert hit.distance == pytest.approx(7.5)


def test_ray_hits_obstacle_body_radius():
    world = make_world(obstacles=[(4.0, 0.5, 0.0)], sizes=[2.0])
    hit = world.cast(np.array([0.0, 0.5, 0.0]), np.array([1.0, 0.0, 0.0]), 30.0)
    assert hit.surface is SurfaceKind.OBSTACLE
    assert hit.distance == pytest.approx(3.0)


def test_ray_from_inside_disc_ignores_it():
    world = make_world(obstacles=[(0.0, 0.5, 0.0)], sizes=[4.0])
    hit = world.cast(np.array([0.0, 0.5, 0.0]), np.array([1.0, 0.0, 0.0]), 30.0)
    assert hit.surface is SurfaceKind.WALL


def test_untagged_obstacle_reports_other():
    world = make_world(obstacles=[(4.0, 0.5, 0.0)], sizes=[2.0], tags=["Crate"])
    hit = world.cast(np.array([0.0, 0.5, 0.0]), np.array([1.0, 0.0, 0.0]), 30.0)
    assert hit.surface is SurfaceKind.OTHER


def test_contacts_are_enter_only():
    world = make_world(obstacles=[(5.0, 0.5, 0.0)], sizes=[2.0])
    assert world.contacts(np.array([0.0, 0.5, 0.0])) == []
    events = world.contacts(np.array([3.8, 0.5, 0.0]))
    assert [(e.kind, e.surface) for e in events] == [(ContactKind.SOLID, SurfaceKind.OBSTACLE)]
    # Still overlapping: no new event
    assert world.contacts(np.array([3.9, 0.5, 0.0])) == []
    # Leave and re-enter
    assert world.contacts(np.array([0.0, 0.5, 0.0])) == []
    assert len(world.contacts(np.array([3.8, 0.5, 0.0]))) == 1


def test_wall_contact_at_boundary():
    world = make_world()
    assert world.contacts(np.array([9.9, 0.5, 0.0])) == []
    events = world.contacts(np.array([10.1, 0.5, 0.0]))
    assert [(e.kind, e.surface) for e in events] == [(ContactKind.SOLID, SurfaceKind.WALL)]


def test_solids_listed_before_triggers():
    # Obstacle overlapping the goal disc
    world = make_world(obstacles=[(0.0, 0.5, 9.0)], sizes=[2.0])
    events = world.contacts(np.array([0.0, 0.5, 8.2]))
    kinds = [e.kind for e in events]
    assert kinds == [ContactKind.SOLID, ContactKind.TRIGGER]
    assert events[1].surface is SurfaceKind.GOAL


def test_place_forgets_previous_contacts():
    world = make_world()
    pos = np.array([0.0, 0.5, 8.0])
    assert len(world.contacts(pos)) == 1
    assert world.contacts(pos) == []
    world.place(np.array([0.0, 0.5, 8.0]), [])
    assert len(world.contacts(pos)) == 1
