from __future__ import annotations

from .core.clock import ClockRange
from .core.entities import Waypoint
from .core.errors import PreconditionError, SequenceError, TrajectoryError, WaylineError
from .core.replay import ReplaySession, ReplayState
from .core.service import SceneService
from .runtime.server import WaylineServer, run
from .sdk.client import WaylineClient
from .sdk.handles import EntityHandle, ReplayHandle

__all__ = [
    "run",
    "WaylineServer",
    "WaylineClient",
    "EntityHandle",
    "ReplayHandle",
    "SceneService",
    "ReplaySession",
    "ReplayState",
    "ClockRange",
    "Waypoint",
    "WaylineError",
    "PreconditionError",
    "TrajectoryError",
    "SequenceError",
]
