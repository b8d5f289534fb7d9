from __future__ import annotations

from typing import Any

import numpy as np

from ..core.entities import Entity, Flying, ReplayDriven
from ..core.geodesy import ecef_to_geodetic
from ..core.trails import Trail


def position_to_dict(position: np.ndarray) -> dict[str, Any]:
    lon, lat, height = ecef_to_geodetic(position)
    p = np.asarray(position, dtype=np.float64).reshape(3)
    return {
        "lon": float(lon),
        "lat": float(lat),
        "height": float(height),
        "cartesian": [float(p[0]), float(p[1]), float(p[2])],
    }


def entity_to_dict(e: Entity, *, clock_time: float) -> dict[str, Any]:
    motion = e.motion
    out: dict[str, Any] = {
        "id": e.id,
        "name": e.name,
        "revision": int(e.revision),
        "createdAt": float(e.created_at),
        "motion": motion.kind,
        "isFlying": isinstance(motion, Flying),
        "position": position_to_dict(e.position_at(clock_time)),
    }
    if isinstance(motion, Flying):
        out["flight"] = {
            "target": position_to_dict(motion.target),
            "speed": float(motion.speed),
            "startTime": float(motion.start_time),
            "endTime": float(motion.end_time),
            "duration": float(motion.duration),
        }
    elif isinstance(motion, ReplayDriven):
        out["replayId"] = motion.session_id
    return out


def trail_to_dict(t: Trail, *, include_points: bool = True) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": t.trail_id,
        "entityId": t.entity_id,
        "visible": bool(t.visible),
        "pointCount": len(t.points),
        "lastUpdateTime": None if t.last_update_time is None else float(t.last_update_time),
    }
    if include_points:
        out["points"] = [
            {"timestamp": float(p.timestamp), **position_to_dict(p.position)} for p in t.points
        ]
    return out
