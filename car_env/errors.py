"""Error types raised by the car agent core, each with a stable code."""

from __future__ import annotations


class CarEnvError(Exception):
    """Base class for environment errors with a stable error code."""

    code: str = "ENV_ERROR"
    hint: str = ""

    def __init__(self, message: str = "", *, hint: str = "") -> None:
        super().__init__(message)
        if hint:
            self.hint = hint

    def __str__(self) -> str:
        base = super().__str__()
        if self.hint:
            return f"[{self.code}] {base} | Hint: {self.hint}"
        return f"[{self.code}] {base}"


class ConfigError(CarEnvError):
    code = "CFG_BAD"


class PlacementError(CarEnvError):
    """Rejection sampling could not place the episode's entities."""

    code = "PLACE_INFEASIBLE"


class EpisodeClosedError(CarEnvError):
    code = "EPI_CLOSED"
