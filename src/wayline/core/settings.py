from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, replace
from typing import Any, Mapping

import numpy as np

from .trails import normalize_retention

logger = logging.getLogger(__name__)


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        return float(raw)
    except ValueError as ex:
        raise ValueError(f"{key} must be a number, got {raw!r}") from ex


def _env_list(env: Mapping[str, str], key: str) -> tuple[str, ...]:
    raw = env.get(key) or ""
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class SceneSettings:
    """Runtime tunables for motion, trails and the tick driver.

    Notes:
    - `trail_retention_s` is `None` for unbounded trails. Externally (env/HTTP)
      the unbounded value is spelled `-1`.
    - Unbounded retention grows trail buffers without limit for as long as an
      entity keeps moving.
    """

    trail_retention_s: float | None = 10.0
    trail_min_distance_m: float = 1.0
    default_speed_mps: float = 10.0
    arrival_epsilon_m: float = 0.1
    anchor_horizon_s: float = 3600.0
    tick_hz: float = 30.0
    cors_origins: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "trail_retention_s", normalize_retention(self.trail_retention_s))
        object.__setattr__(self, "cors_origins", tuple(str(o) for o in self.cors_origins))
        for name in ("trail_min_distance_m", "default_speed_mps", "arrival_epsilon_m", "anchor_horizon_s", "tick_hz"):
            v = float(getattr(self, name))
            if not np.isfinite(v) or v < 0.0:
                raise ValueError(f"{name} must be a finite non-negative number")
            object.__setattr__(self, name, v)
        if self.default_speed_mps <= 0.0:
            raise ValueError("default_speed_mps must be > 0")
        if self.tick_hz <= 0.0:
            raise ValueError("tick_hz must be > 0")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "SceneSettings":
        e = os.environ if env is None else env
        return cls(
            trail_retention_s=_env_float(e, "WAYLINE_TRAIL_RETENTION", 10.0),
            trail_min_distance_m=_env_float(e, "WAYLINE_TRAIL_MIN_DISTANCE", 1.0),
            default_speed_mps=_env_float(e, "WAYLINE_DEFAULT_SPEED", 10.0),
            tick_hz=_env_float(e, "WAYLINE_TICK_HZ", 30.0),
            cors_origins=_env_list(e, "WAYLINE_CORS_ORIGINS"),
        )

    @classmethod
    def from_env_or_default(cls, env: Mapping[str, str] | None = None) -> "SceneSettings":
        """Like `from_env`, but a malformed variable is logged and the defaults are used."""
        try:
            return cls.from_env(env)
        except ValueError as ex:
            logger.error("Ignoring WAYLINE_* environment settings: %s", ex)
            return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "trailRetentionSeconds": -1.0 if self.trail_retention_s is None else float(self.trail_retention_s),
            "trailMinDistance": float(self.trail_min_distance_m),
            "defaultSpeed": float(self.default_speed_mps),
            "arrivalEpsilon": float(self.arrival_epsilon_m),
            "anchorHorizonSeconds": float(self.anchor_horizon_s),
            "tickHz": float(self.tick_hz),
            "corsOrigins": list(self.cors_origins),
        }


class SceneSettingsStore:
    def __init__(self, settings: SceneSettings | None = None) -> None:
        self._lock = threading.RLock()
        self._settings = settings or SceneSettings()

    def get(self) -> SceneSettings:
        with self._lock:
            return self._settings

    def update(self, **changes: Any) -> SceneSettings:
        with self._lock:
            self._settings = replace(self._settings, **changes)
            return self._settings
