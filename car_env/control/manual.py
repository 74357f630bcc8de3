"""Manual driving fallback: keyboard state -> (forward, turn) action.

`InputAxis` reproduces a game-engine style virtual axis: while a key is held
the value ramps toward +-1 at `sensitivity` units/s, on release it falls back
to 0 at `gravity` units/s, and pressing the opposite direction snaps through
zero first.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

import numpy as np

VERTICAL_KEYS = {"positive": ("up", "w"), "negative": ("down", "s")}
HORIZONTAL_KEYS = {"positive": ("right", "d"), "negative": ("left", "a")}


@dataclass
class InputAxis:
    sensitivity: float = 3.0
    gravity: float = 3.0
    snap: bool = True
    value: float = 0.0

    def update(self, positive: bool, negative: bool, dt: float) -> float:
        target = float(positive) - float(negative)
        if target == 0.0:
            step = self.gravity * dt
            if abs(self.value) <= step:
                self.value = 0.0
            else:
                self.value -= np.sign(self.value) * step
            return self.value
        if self.snap and self.value * target < 0.0:
            self.value = 0.0
        self.value = float(np.clip(self.value + target * self.sensitivity * dt, -1.0, 1.0))
        return self.value

    def reset(self) -> None:
        self.value = 0.0


def _any_pressed(pressed: Mapping[str, bool], names) -> bool:
    return any(bool(pressed.get(n, False)) for n in names)


class KeyboardAxes:
    """Vertical (W/S, up/down) and horizontal (A/D, left/right) axes."""

    def __init__(self, sensitivity: float = 3.0, gravity: float = 3.0) -> None:
        self.vertical = InputAxis(sensitivity=sensitivity, gravity=gravity)
        self.horizontal = InputAxis(sensitivity=sensitivity, gravity=gravity)

    def update(self, pressed: Mapping[str, bool], dt: float) -> tuple[float, float]:
        v = self.vertical.update(
            _any_pressed(pressed, VERTICAL_KEYS["positive"]),
            _any_pressed(pressed, VERTICAL_KEYS["negative"]),
            dt,
        )
        h = self.horizontal.update(
            _any_pressed(pressed, HORIZONTAL_KEYS["positive"]),
            _any_pressed(pressed, HORIZONTAL_KEYS["negative"]),
            dt,
        )
        return v, h

    def reset(self) -> None:
        self.vertical.reset()
        self.horizontal.reset()


def heuristic_action(vertical: float, horizontal: float) -> np.ndarray:
    """Continuous action from input axes: forward = vertical, turn = horizontal."""
    return np.array([vertical, horizontal], dtype=np.float32)


def heuristic_discrete_action(pressed: Mapping[str, bool]) -> int:
    """Discrete action from raw keys: forward wins, then left, then right, else idle."""
    if _any_pressed(pressed, VERTICAL_KEYS["positive"]):
        return 1
    if _any_pressed(pressed, HORIZONTAL_KEYS["negative"]):
        return 2
    if _any_pressed(pressed, HORIZONTAL_KEYS["positive"]):
        return 3
    return 0


class ManualController:
    """Controller for `EpisodeDriver` polling a key-state source every decision."""

    def __init__(self, key_source, dt: float, discrete: bool = False, axes: KeyboardAxes | None = None) -> None:
        self._key_source = key_source
        self._dt = float(dt)
        self._discrete = bool(discrete)
        self.axes = axes or KeyboardAxes()

    def __call__(self, obs: np.ndarray):
        pressed = self._key_source()
        if self._discrete:
            return heuristic_discrete_action(pressed)
        v, h = self.axes.update(pressed, self._dt)
        return heuristic_action(v, h)
