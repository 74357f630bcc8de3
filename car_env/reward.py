"""Per-tick reward shaping.

Single source of truth for reward math plus a stable breakdown schema for
logging. The episode context (previous distance/position) is passed in and a
new one is returned; nothing is cached here.

Terms (already scaled by their config weights):
- progress: (d_prev - d_now) / half_x * progress_scale
- heading: dot(forward, to_goal) * heading_penalty_scale when dot < 0
- alignment: flat bonus when the forward ray first hits the goal
- tick: constant cost per physics tick
- direction: dot(forward, to_goal) * direction_scale        (auxiliary)
- speed: clamp(displacement . to_goal / speed, lo, hi)      (auxiliary)
- terminal: collision penalty or goal reward, once
"""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, replace
from typing import Iterable

import numpy as np

from car_env.config import Configuration
from car_env.sim.dynamics import AgentState
from car_env.sim.geometry import planar_distance, unit_toward
from car_env.sim.placement import EpisodeContext, GoalState
from car_env.sim.stage import ContactEvent, ContactKind, RayProbe, SurfaceKind

AUXILIARY_TERMS = ("direction", "speed")


class TerminalOutcome(enum.Enum):
    COLLISION = "collision"
    GOAL = "goal"


@dataclass(frozen=True)
class RewardTerms:
    progress: float
    heading: float
    alignment: float
    tick: float
    direction: float
    speed: float
    terminal: float = 0.0


@dataclass(frozen=True)
class RewardResult:
    total: float
    terms: RewardTerms
    contrib: dict[str, float]
    outcome: TerminalOutcome | None = None

    @property
    def terminated(self) -> bool:
        return self.outcome is not None


def terminal_outcome(events: Iterable[ContactEvent]) -> TerminalOutcome | None:
    """First episode-ending event, if any; events on OTHER surfaces are ignored."""
    for event in events:
        if event.kind is ContactKind.SOLID:
            if event.surface in (SurfaceKind.WALL, SurfaceKind.OBSTACLE):
                return TerminalOutcome.COLLISION
        elif event.kind is ContactKind.TRIGGER:
            if event.surface is SurfaceKind.GOAL:
                return TerminalOutcome.GOAL
    return None


def terminal_reward(outcome: TerminalOutcome | None, cfg: Configuration) -> float:
    if outcome is TerminalOutcome.COLLISION:
        return float(cfg.reward.collision_penalty)
    if outcome is TerminalOutcome.GOAL:
        return float(cfg.reward.goal_reward)
    return 0.0


def heading_penalty(dot: float, scale: float) -> float:
    return dot * scale if dot < 0.0 else 0.0


def goal_in_sight(agent: AgentState, cfg: Configuration, probe: RayProbe) -> bool:
    hit = probe.cast(agent.position, agent.forward, cfg.sensors.alignment_ray_range)
    return hit is not None and hit.surface is SurfaceKind.GOAL


def compute_terms(
    agent: AgentState,
    goal: GoalState,
    context: EpisodeContext,
    cfg: Configuration,
    probe: RayProbe,
) -> tuple[RewardTerms, EpisodeContext]:
    """Compute raw step terms for the post-move state and the updated context."""
    w = cfg.reward
    distance = planar_distance(agent.position, goal.position)
    progress = (context.previous_distance_to_goal - distance) / cfg.stage.half_x * w.progress_scale

    to_goal = unit_toward(agent.position, goal.position)
    dot = float(np.dot(agent.forward, to_goal))

    alignment = w.alignment_bonus if goal_in_sight(agent, cfg, probe) else 0.0

    toward = float(np.dot(agent.position - context.previous_position, to_goal))
    speed = float(np.clip(toward / cfg.agent.speed, w.speed_bonus_min, w.speed_bonus_max))

    terms = RewardTerms(
        progress=float(progress),
        heading=float(heading_penalty(dot, w.heading_penalty_scale)),
        alignment=float(alignment),
        tick=float(w.tick_cost),
        direction=float(dot * w.direction_scale),
        speed=speed,
    )
    new_context = EpisodeContext(
        previous_distance_to_goal=distance,
        previous_position=np.array(agent.position, dtype=float, copy=True),
    )
    return terms, new_context


def apply_policy(terms: RewardTerms, policy: str) -> tuple[float, dict[str, float]]:
    """Sum terms into a total; auxiliary terms only count under the "summed" policy."""
    contrib: dict[str, float] = {}
    for name, value in asdict(terms).items():
        if name in AUXILIARY_TERMS and policy != "summed":
            contrib[name] = 0.0
        else:
            contrib[name] = float(value)
    total = float(np.nan_to_num(sum(contrib.values())))
    return total, contrib


def compute_reward(
    agent: AgentState,
    goal: GoalState,
    context: EpisodeContext,
    cfg: Configuration,
    probe: RayProbe,
    events: Iterable[ContactEvent] = (),
) -> tuple[RewardResult, EpisodeContext]:
    """Reward for one physics tick, including any terminal event of that tick."""
    terms, new_context = compute_terms(agent, goal, context, cfg, probe)
    outcome = terminal_outcome(events)
    terms = replace(terms, terminal=terminal_reward(outcome, cfg))
    total, contrib = apply_policy(terms, cfg.reward.auxiliary_terms)
    return RewardResult(total=total, terms=terms, contrib=contrib, outcome=outcome), new_context


def to_breakdown_dict(result: RewardResult, policy: str) -> dict[str, object]:
    """Pack a standardized reward_terms dict for logging."""
    return {
        "version": "1.0",
        "policy": policy,
        "raw": asdict(result.terms),
        "contrib": dict(result.contrib),
        "total": float(result.total),
    }
