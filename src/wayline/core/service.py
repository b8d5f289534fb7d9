from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Any, Iterable, Mapping

import numpy as np

from .clock import ClockRange, SceneClock
from .entities import Entity, parse_waypoints
from .errors import PreconditionError, SequenceError
from .motion import LiveMotionController
from .replay import ReplaySession, ReplayState
from .scene import Scene
from .settings import SceneSettings, SceneSettingsStore
from .trails import Trail

logger = logging.getLogger(__name__)

REPLAY_OPERATIONS = ("play", "pause", "continue", "stop", "seek", "destroy")

# Destroyed session ids remembered so a repeated command is a no-op rather than a 404.
DESTROYED_REPLAY_MEMORY = 1024


class SceneService:
    """Thread-safe entry point used by the HTTP API, the SDK server and the tick driver.

    Every public method holds one re-entrant lock, so clock callbacks and
    commands are processed one at a time regardless of which thread calls in.
    """

    def __init__(self, scene: Scene | None = None, *, settings: SceneSettings | None = None) -> None:
        self._lock = threading.RLock()
        if scene is None:
            scene = Scene(settings=SceneSettingsStore(settings or SceneSettings()))
        self.scene = scene
        self.motion = LiveMotionController(scene)
        self._replays: dict[str, ReplaySession] = {}
        self._destroyed: OrderedDict[str, bool] = OrderedDict()  # id -> strict
        self._global_revision = 0
        # Background tick driver, created by the runtime on first use (see runtime/ticker.py).
        self.ticker: Any = None

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def _bump(self) -> None:
        self._global_revision += 1

    def global_revision(self) -> int:
        with self._lock:
            return self._global_revision

    # -- clock ------------------------------------------------------------

    def tick(self, dt: float) -> float:
        with self._lock:
            return self.scene.clock.tick(dt)

    def clock_info(self) -> dict[str, Any]:
        with self._lock:
            return self.scene.clock.to_dict()

    def configure_clock(self, start_time: float, end_time: float, rate: float = 1.0, loop: bool = False) -> SceneClock:
        """Set the shared clock window used by replay sessions."""
        try:
            start_v = float(start_time)
            end_v = float(end_time)
            rate_v = float(rate)
        except (TypeError, ValueError) as ex:
            raise PreconditionError("clock start, end and rate must be numbers") from ex
        if not (np.isfinite(start_v) and np.isfinite(end_v) and np.isfinite(rate_v)):
            raise PreconditionError("clock start, end and rate must be finite")
        if end_v < start_v:
            raise PreconditionError("clock end must be >= start")
        if rate_v <= 0.0:
            raise PreconditionError("clock rate must be > 0")

        with self._lock:
            clock = self.scene.clock
            clock.set_bounds(start_v, end_v)
            clock.set_current_time(start_v)
            clock.multiplier = rate_v
            clock.clock_range = ClockRange.LOOP_STOP if loop else ClockRange.CLAMPED
            clock.should_animate = True
            self._bump()
            logger.info("Clock configured: %.3f -> %.3f at x%.2f (%s)", start_v, end_v, rate_v, clock.clock_range.value)
            return clock

    # -- live motion --------------------------------------------------------

    def move_to(
        self,
        entity_id: str,
        lon: float,
        lat: float,
        height: float | None = 0.0,
        speed: float | None = None,
    ) -> bool:
        with self._lock:
            ok = self.motion.move_to(entity_id, lon, lat, height, speed)
            if ok:
                self._bump()
            return ok

    def cancel_flight(self, entity_id: str) -> bool:
        with self._lock:
            ok = self.motion.cancel(entity_id)
            if ok:
                self._bump()
            return ok

    # -- replays ------------------------------------------------------------

    def start_replay(
        self,
        entity_id: str,
        waypoints: Iterable[Any],
        *,
        speed: float = 1.0,
        loop: bool = False,
        strict: bool = False,
    ) -> ReplaySession | None:
        return self.start_replay_tracks({entity_id: waypoints}, speed=speed, loop=loop, strict=strict)

    def start_replay_tracks(
        self,
        tracks: Mapping[str, Iterable[Any]],
        *,
        speed: float = 1.0,
        loop: bool = False,
        strict: bool = False,
    ) -> ReplaySession | None:
        """Create a session loaded with every track, or None if any track is invalid."""
        if not tracks:
            logger.error("Replay needs at least one track")
            return None

        # Every track is validated before anything is loaded into the scene.
        try:
            materialised = {str(eid).strip(): list(points) for eid, points in tracks.items()}
            for eid, points in materialised.items():
                if not eid:
                    raise PreconditionError("entity_id cannot be empty")
                parse_waypoints(points)
        except (TypeError, ValueError) as ex:
            logger.error("Replay rejected: %s", ex)
            return None

        with self._lock:
            try:
                session = ReplaySession(self.scene, speed=speed, loop=loop, strict=strict)
            except (TypeError, ValueError) as ex:
                logger.error("Replay rejected: %s", ex)
                return None
            for eid, points in materialised.items():
                session.load(eid, points)

            self._replays[session.id] = session
            self._bump()
            return session

    def get_replay(self, session_id: str) -> ReplaySession | None:
        with self._lock:
            self._prune_destroyed()
            return self._replays.get(session_id)

    def replay_info(self, session_id: str) -> dict[str, Any] | None:
        """Metadata for a live session, a short record for a destroyed one, else None."""
        with self._lock:
            session = self.get_replay(session_id)
            if session is not None:
                return session.to_dict()
            if session_id in self._destroyed:
                return {
                    "id": session_id,
                    "state": ReplayState.DESTROYED.value,
                    "isPlaying": False,
                    "hasStarted": False,
                    "strict": self._destroyed[session_id],
                    "entityIds": [],
                }
            return None

    def list_replays(self) -> list[ReplaySession]:
        with self._lock:
            self._prune_destroyed()
            return list(self._replays.values())

    def replay_command(self, session_id: str, operation: str, *args: Any) -> bool:
        """Run a transport operation by name; raises KeyError for unknown sessions.

        A destroyed session is dropped from the registry; later commands on its
        id are treated as misuse of a destroyed replay.
        """
        if operation not in REPLAY_OPERATIONS:
            raise PreconditionError(f"Unknown replay operation: {operation!r}")
        with self._lock:
            self._prune_destroyed()
            session = self._replays.get(session_id)
            if session is None:
                if session_id not in self._destroyed:
                    raise KeyError(session_id)
                if self._destroyed[session_id]:
                    raise SequenceError(operation, "destroyed")
                logger.warning("Replay %s: already destroyed, ignoring %s", session_id, operation)
                return False
            if operation == "continue":
                ok = session.resume()
            else:
                ok = getattr(session, operation)(*args)
            if ok:
                self._prune_destroyed()
                self._bump()
            return ok

    def _prune_destroyed(self) -> None:
        # Sessions can also be destroyed directly on the object, not only through replay_command.
        for session in [s for s in self._replays.values() if s.state == ReplayState.DESTROYED]:
            del self._replays[session.id]
            self._destroyed[session.id] = session.strict
            logger.debug("Dropped destroyed replay %s", session.id)
        while len(self._destroyed) > DESTROYED_REPLAY_MEMORY:
            self._destroyed.popitem(last=False)

    # -- entities & trails ----------------------------------------------------

    def get_entity(self, entity_id: str) -> Entity | None:
        with self._lock:
            return self.scene.entities.get(entity_id)

    def list_entities(self) -> list[Entity]:
        with self._lock:
            return self.scene.entities.list()

    def entity_position(self, entity_id: str) -> np.ndarray | None:
        with self._lock:
            return self.scene.entity_position(entity_id)

    def remove_entity(self, entity_id: str) -> bool:
        with self._lock:
            removed = self.scene.remove_entity(entity_id)
            if removed:
                self._bump()
            return removed

    def get_trail(self, entity_id: str) -> Trail | None:
        with self._lock:
            return self.scene.trails.get(entity_id)

    def set_trail_visible(self, entity_id: str, visible: bool) -> Trail:
        with self._lock:
            trail = self.scene.trails.set_visible(entity_id, visible)
            self._bump()
            return trail

    # -- settings ---------------------------------------------------------------

    def get_settings(self) -> SceneSettings:
        return self.scene.settings.get()

    def update_settings(
        self,
        *,
        trail_retention_s: float | None | object = ...,
        trail_min_distance_m: float | None = None,
        default_speed_mps: float | None = None,
    ) -> SceneSettings:
        changes: dict[str, Any] = {}
        if trail_retention_s is not ...:
            changes["trail_retention_s"] = trail_retention_s
        if trail_min_distance_m is not None:
            changes["trail_min_distance_m"] = trail_min_distance_m
        if default_speed_mps is not None:
            changes["default_speed_mps"] = default_speed_mps

        with self._lock:
            try:
                updated = self.scene.settings.update(**changes)
            except (TypeError, ValueError) as ex:
                raise PreconditionError(str(ex)) from ex
            self.scene.trails.retention_seconds = updated.trail_retention_s
            self.scene.trails.min_distance_m = updated.trail_min_distance_m
            self._bump()
            return updated

    def set_trail_retention(self, seconds: float | None) -> SceneSettings:
        return self.update_settings(trail_retention_s=seconds)

    # -- lifecycle --------------------------------------------------------------

    def reset(self) -> None:
        """Drop every replay, entity and trail, and return the clock to real time."""
        with self._lock:
            for session in list(self._replays.values()):
                session.discard()
            self._replays.clear()
            self._destroyed.clear()
            self.scene.entities.clear()
            self.scene.trails.clear_all()
            self.scene.clock.reset_to_realtime()
            self._bump()


SERVICE = SceneService(settings=SceneSettings.from_env_or_default())
