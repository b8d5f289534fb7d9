from __future__ import annotations

from typing import Any

import numpy as np


def parse_bool(value: Any, *, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        raise ValueError(f"Missing {field}")
    s = str(value).strip().lower()
    if s in {"1", "true", "yes", "on"}:
        return True
    if s in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid {field}")


def parse_float(value: Any, *, field: str, default: float | None = None) -> float:
    if value is None:
        if default is None:
            raise ValueError(f"Missing {field}")
        return default
    if isinstance(value, bool):
        raise ValueError(f"Invalid {field}")
    try:
        v = float(value)
    except (TypeError, ValueError) as ex:
        raise ValueError(f"Invalid {field}") from ex
    if not np.isfinite(v):
        raise ValueError(f"Invalid {field}")
    return v


def parse_optional_float(value: Any, *, field: str) -> float | None:
    if value is None:
        return None
    return parse_float(value, field=field)


def parse_replay_body(body: dict[str, Any]) -> tuple[dict[str, list[Any]], float, bool, bool]:
    """Accept either a single track (`entityId` + `waypoints`) or `tracks` keyed by entity id."""
    raw_tracks = body.get("tracks")
    if raw_tracks is not None:
        if not isinstance(raw_tracks, dict) or not raw_tracks:
            raise ValueError("tracks must be a non-empty object keyed by entity id")
        tracks = {str(k): v for k, v in raw_tracks.items()}
    else:
        entity_id = body.get("entityId")
        if entity_id is None or not str(entity_id).strip():
            raise ValueError("Missing entityId")
        tracks = {str(entity_id): body.get("waypoints")}

    for eid, points in tracks.items():
        if not isinstance(points, list):
            raise ValueError(f"waypoints for {eid!r} must be a list")

    speed = parse_float(body.get("speed"), field="speed", default=1.0)
    loop = parse_bool(body.get("loop", False), field="loop")
    strict = parse_bool(body.get("strict", False), field="strict")
    return tracks, speed, loop, strict
