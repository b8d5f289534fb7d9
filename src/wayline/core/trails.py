from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

import numpy as np

from .geodesy import distance

logger = logging.getLogger(__name__)


def normalize_retention(value: float | int | None) -> float | None:
    """Map the external retention value to seconds or `None` (keep everything).

    `-1` (and any negative value) is the unbounded sentinel.
    """
    if value is None:
        return None
    v = float(value)
    if not np.isfinite(v):
        raise ValueError("retention must be a finite number of seconds or -1")
    if v < 0.0:
        return None
    return v


def trail_id_for(entity_id: str) -> str:
    return f"{entity_id}_trail"


@dataclass(frozen=True)
class TrailPoint:
    position: np.ndarray  # float64 (3,), ECEF
    timestamp: float


@dataclass
class Trail:
    entity_id: str
    points: list[TrailPoint] = field(default_factory=list)
    last_update_time: float | None = None
    visible: bool = True

    @property
    def trail_id(self) -> str:
        return trail_id_for(self.entity_id)

    @property
    def positions(self) -> np.ndarray:
        if not self.points:
            return np.zeros((0, 3), dtype=np.float64)
        return np.stack([p.position for p in self.points]).astype(np.float64, copy=False)

    def __len__(self) -> int:
        return len(self.points)


class TrailStore:
    """Per-entity time-stamped polylines.

    The store never pushes geometry anywhere; readers call `geometry()` which
    is rebuilt from the current point list.
    """

    def __init__(self, *, min_distance_m: float = 1.0, retention_seconds: float | None = 10.0) -> None:
        self.min_distance_m = float(min_distance_m)
        self.retention_seconds = normalize_retention(retention_seconds)
        self._trails: dict[str, Trail] = {}

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._trails

    def get(self, entity_id: str) -> Trail | None:
        return self._trails.get(entity_id)

    def list(self) -> list[Trail]:
        return list(self._trails.values())

    def ensure(self, entity_id: str, position: np.ndarray, clock_time: float) -> Trail:
        trail = self._trails.get(entity_id)
        if trail is not None:
            return trail
        ts = float(clock_time)
        trail = Trail(
            entity_id=entity_id,
            points=[TrailPoint(np.asarray(position, dtype=np.float64).reshape(3).copy(), ts)],
            last_update_time=ts,
        )
        self._trails[entity_id] = trail
        logger.debug("Created trail %s", trail.trail_id)
        return trail

    def record_point(self, entity_id: str, position: np.ndarray, clock_time: float) -> bool:
        """Append a point unless it is within `min_distance_m` of the last one.

        Returns whether a point was stored.
        """
        pos = np.asarray(position, dtype=np.float64).reshape(3)
        if not np.all(np.isfinite(pos)):
            logger.warning("Ignoring non-finite trail point for %s", entity_id)
            return False

        ts = float(clock_time)
        trail = self._trails.get(entity_id)
        if trail is None:
            self.ensure(entity_id, pos, ts)
            return True

        if not trail.points:
            trail.points.append(TrailPoint(pos.copy(), ts))
            trail.last_update_time = ts
            return True

        last = trail.points[-1]
        if distance(last.position, pos) <= self.min_distance_m:
            return False
        if ts < last.timestamp:
            # The clock was moved backwards underneath a live trail.
            logger.debug("Dropping out-of-order trail point for %s (%.3f < %.3f)", entity_id, ts, last.timestamp)
            return False

        trail.points.append(TrailPoint(pos.copy(), ts))
        trail.last_update_time = ts
        if self.retention_seconds is not None:
            self.trim(entity_id, self.retention_seconds, now=ts)
        return True

    def truncate_after(self, entity_id: str, clock_time: float) -> int:
        """Drop points stamped later than `clock_time` (the clock went backwards)."""
        trail = self._trails.get(entity_id)
        ts = float(clock_time)
        if trail is None or not trail.points or trail.points[-1].timestamp <= ts:
            return 0
        kept = [p for p in trail.points if p.timestamp <= ts]
        removed = len(trail.points) - len(kept)
        trail.points = kept
        trail.last_update_time = kept[-1].timestamp if kept else None
        logger.debug("Dropped %d trail points after %.3f for %s", removed, ts, entity_id)
        return removed

    def trim(self, entity_id: str, retention_seconds: float | None, *, now: float) -> int:
        """Drop points older than `now - retention_seconds`; returns how many were removed."""
        retention = normalize_retention(retention_seconds)
        trail = self._trails.get(entity_id)
        if trail is None or retention is None:
            return 0
        cutoff = float(now) - retention
        kept = [p for p in trail.points if p.timestamp >= cutoff]
        removed = len(trail.points) - len(kept)
        trail.points = kept
        return removed

    def replace(self, entity_id: str, points: Iterable[tuple[float, np.ndarray]]) -> Trail:
        """Set all points at once, discarding previous content."""
        new_points = [
            TrailPoint(np.asarray(pos, dtype=np.float64).reshape(3).copy(), float(ts))
            for ts, pos in sorted(points, key=lambda item: float(item[0]))
        ]
        trail = self._trails.get(entity_id)
        if trail is None:
            trail = Trail(entity_id=entity_id)
            self._trails[entity_id] = trail
        trail.points = new_points
        trail.last_update_time = new_points[-1].timestamp if new_points else None
        return trail

    def clear(self, entity_id: str) -> bool:
        trail = self._trails.pop(entity_id, None)
        if trail is None:
            return False
        logger.info("Cleared trail %s", trail.trail_id)
        return True

    def clear_all(self) -> None:
        self._trails.clear()

    def set_visible(self, entity_id: str, visible: bool) -> Trail:
        trail = self._trails.get(entity_id)
        if trail is None:
            raise KeyError(entity_id)
        trail.visible = bool(visible)
        return trail

    def geometry(self, entity_id: str) -> np.ndarray:
        trail = self._trails.get(entity_id)
        if trail is None:
            return np.zeros((0, 3), dtype=np.float64)
        return trail.positions
