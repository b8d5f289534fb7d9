from __future__ import annotations

from .clock import ClockRange, SceneClock, Subscription
from .curve import SampledPositionCurve
from .entities import Entity, EntityRegistry, Flying, Idle, MotionState, ReplayDriven, Waypoint, parse_waypoints
from .errors import PreconditionError, SequenceError, TrajectoryError, WaylineError
from .geodesy import distance, ecef_to_geodetic, geodetic_to_ecef
from .motion import LiveMotionController
from .replay import ReplaySession, ReplayState
from .scene import Scene
from .service import SERVICE, SceneService
from .settings import SceneSettings, SceneSettingsStore
from .trails import Trail, TrailPoint, TrailStore

__all__ = [
    "ClockRange",
    "SceneClock",
    "Subscription",
    "SampledPositionCurve",
    "Entity",
    "EntityRegistry",
    "Idle",
    "Flying",
    "ReplayDriven",
    "MotionState",
    "Waypoint",
    "parse_waypoints",
    "WaylineError",
    "PreconditionError",
    "TrajectoryError",
    "SequenceError",
    "geodetic_to_ecef",
    "ecef_to_geodetic",
    "distance",
    "LiveMotionController",
    "ReplaySession",
    "ReplayState",
    "Scene",
    "SceneService",
    "SERVICE",
    "SceneSettings",
    "SceneSettingsStore",
    "Trail",
    "TrailPoint",
    "TrailStore",
]
