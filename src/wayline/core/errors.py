from __future__ import annotations


class WaylineError(Exception):
    """Base class for every error raised by wayline."""


class PreconditionError(WaylineError, ValueError):
    """A command was rejected before any state was touched."""


class TrajectoryError(PreconditionError):
    """Waypoint data is too short or malformed."""


class SequenceError(WaylineError, RuntimeError):
    """A replay transport operation is not valid from the current state."""

    def __init__(self, operation: str, state: str, message: str | None = None) -> None:
        self.operation = operation
        self.state = state
        super().__init__(message or f"Cannot {operation} a replay in state {state!r}")
