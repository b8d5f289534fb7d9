from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from .clock import SceneClock
from .entities import EntityRegistry
from .geodesy import distance, ecef_to_geodetic, geodetic_to_ecef
from .settings import SceneSettingsStore
from .trails import TrailStore


@dataclass
class Scene:
    """Everything the controllers share: clock, entities, trails and settings.

    Passed explicitly to every controller; nothing reads a global scene.
    """

    clock: SceneClock = field(default_factory=SceneClock)
    entities: EntityRegistry = field(default_factory=EntityRegistry)
    settings: SceneSettingsStore = field(default_factory=SceneSettingsStore)
    trails: TrailStore = None  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.trails is None:
            s = self.settings.get()
            self.trails = TrailStore(min_distance_m=s.trail_min_distance_m, retention_seconds=s.trail_retention_s)

    @staticmethod
    def to_cartesian(lon: float, lat: float, height: float = 0.0) -> np.ndarray:
        return geodetic_to_ecef(lon, lat, height)

    @staticmethod
    def to_geographic(position: np.ndarray) -> tuple[float, float, float]:
        return ecef_to_geodetic(position)

    @staticmethod
    def distance(a: np.ndarray, b: np.ndarray) -> float:
        return distance(a, b)

    def entity_position(self, entity_id: str) -> np.ndarray | None:
        entity = self.entities.get(entity_id)
        if entity is None:
            return None
        return entity.position_at(self.clock.current_time)

    def remove_entity(self, entity_id: str) -> bool:
        removed = self.entities.remove(entity_id)
        trail_cleared = self.trails.clear(entity_id)
        return removed is not None or trail_cleared
