from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Mapping

import numpy as np

from .clock import Subscription
from .curve import SampledPositionCurve
from .errors import TrajectoryError
from .geodesy import geodetic_to_ecef, validate_geodetic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Waypoint:
    lon: float
    lat: float
    height: float
    timestamp: float

    @property
    def position(self) -> np.ndarray:
        return geodetic_to_ecef(self.lon, self.lat, self.height)

    @classmethod
    def from_any(cls, value: Any) -> "Waypoint":
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            lon = value.get("lon", value.get("lng"))
            lat = value.get("lat")
            height = value.get("height", 0.0)
            timestamp = value.get("timestamp")
        else:
            try:
                lon, lat, height, timestamp = value
            except (TypeError, ValueError) as ex:
                raise TrajectoryError("waypoint must be a mapping or a (lon, lat, height, timestamp) tuple") from ex

        try:
            lon_v, lat_v, h_v = validate_geodetic(lon, lat, 0.0 if height is None else height)
        except ValueError as ex:
            raise TrajectoryError(f"invalid waypoint position: {ex}") from ex
        try:
            ts_v = float(timestamp)  # type: ignore[arg-type]
        except (TypeError, ValueError) as ex:
            raise TrajectoryError("waypoint timestamp must be a number of epoch seconds") from ex
        if not np.isfinite(ts_v):
            raise TrajectoryError("waypoint timestamp must be finite")
        return cls(lon=lon_v, lat=lat_v, height=h_v, timestamp=ts_v)


def parse_waypoints(values: Iterable[Any], *, min_count: int = 2) -> list[Waypoint]:
    """Validate and sort waypoints by timestamp.

    The sort is stable, so when timestamps repeat the later input wins once the
    samples are written into a curve.
    """
    if values is None:
        raise TrajectoryError("waypoints are required")
    if isinstance(values, (str, bytes)):
        raise TrajectoryError("waypoints must be a sequence")
    out = [Waypoint.from_any(v) for v in values]
    if len(out) < min_count:
        raise TrajectoryError(f"at least {min_count} waypoints are required, got {len(out)}")
    return sorted(out, key=lambda w: w.timestamp)


@dataclass
class Idle:
    curve: SampledPositionCurve
    kind: Literal["idle"] = "idle"


@dataclass
class Flying:
    curve: SampledPositionCurve
    target: np.ndarray
    speed: float
    start_time: float
    end_time: float
    trail_subscription: Subscription
    end_subscription: Subscription
    kind: Literal["flying"] = "flying"

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def cancel_listeners(self) -> None:
        self.trail_subscription.cancel()
        self.end_subscription.cancel()


@dataclass
class ReplayDriven:
    session_id: str
    curve: SampledPositionCurve
    kind: Literal["replay"] = "replay"


MotionState = Idle | Flying | ReplayDriven


def stationary_curve(timestamp: float, position: np.ndarray) -> SampledPositionCurve:
    curve = SampledPositionCurve("linear")
    curve.add_sample(timestamp, position)
    return curve


@dataclass
class Entity:
    id: str
    name: str
    motion: MotionState
    created_at: float = field(default_factory=time.time)
    revision: int = 1

    @property
    def is_flying(self) -> bool:
        return isinstance(self.motion, Flying)

    def position_at(self, timestamp: float) -> np.ndarray:
        return self.motion.curve.evaluate(timestamp)

    def set_motion(self, motion: MotionState) -> None:
        self.motion = motion
        self.revision += 1


class EntityRegistry:
    """Addressable entities keyed by id."""

    def __init__(self) -> None:
        self._entities: dict[str, Entity] = {}

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    def get(self, entity_id: str) -> Entity | None:
        return self._entities.get(entity_id)

    def require(self, entity_id: str) -> Entity:
        entity = self._entities.get(entity_id)
        if entity is None:
            raise KeyError(entity_id)
        return entity

    def list(self) -> list[Entity]:
        return sorted(self._entities.values(), key=lambda e: e.id)

    def create(self, entity_id: str, position: np.ndarray, clock_time: float, *, name: str | None = None) -> Entity:
        """Create a stationary entity, or return the existing one with that id."""
        existing = self._entities.get(entity_id)
        if existing is not None:
            logger.warning("Entity already exists, ID: %s", entity_id)
            return existing
        entity = Entity(
            id=entity_id,
            name=name or entity_id,
            motion=Idle(stationary_curve(clock_time, position)),
        )
        self._entities[entity_id] = entity
        return entity

    def remove(self, entity_id: str) -> Entity | None:
        entity = self._entities.pop(entity_id, None)
        if entity is not None and isinstance(entity.motion, Flying):
            entity.motion.cancel_listeners()
        return entity

    def clear(self) -> None:
        for entity_id in list(self._entities):
            self.remove(entity_id)
