from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Any, Iterable

import numpy as np

from .clock import SceneClock, Subscription
from .curve import SampledPositionCurve
from .entities import Flying, ReplayDriven, parse_waypoints
from .errors import PreconditionError, SequenceError
from .scene import Scene

logger = logging.getLogger(__name__)


class ReplayState(str, Enum):
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"
    COMPLETED = "completed"
    DESTROYED = "destroyed"


class ReplaySession:
    """Replays pre-recorded trajectories for one or more entities on the scene clock.

    Every entity's curve is indexed by absolute timestamps, so entities may
    start and end at different times inside the same session window. The
    session never configures the clock window itself; callers do that once
    (see `SceneService.configure_clock`) so several sessions can share it.

    Transport operations return True when they changed something. Misuse
    (anything but `play` before the first `play`, anything after `destroy`) is
    logged as a warning and returns False, or raises `SequenceError` when the
    session was created with `strict=True`.
    """

    def __init__(
        self,
        scene: Scene,
        *,
        speed: float = 1.0,
        loop: bool = False,
        strict: bool = False,
        session_id: str | None = None,
    ) -> None:
        speed_v = float(speed)
        if not np.isfinite(speed_v) or speed_v <= 0.0:
            raise PreconditionError("speed must be a positive finite number")
        self.scene = scene
        self.id = session_id or uuid.uuid4().hex
        self.speed = speed_v
        self.loop = bool(loop)
        self.strict = bool(strict)
        self.state = ReplayState.READY
        self.has_started = False
        self.curves: dict[str, SampledPositionCurve] = {}
        self._created: set[str] = set()
        self._tick_subscription: Subscription | None = None

    # -- properties -------------------------------------------------------

    @property
    def entity_ids(self) -> set[str]:
        return set(self.curves)

    @property
    def is_playing(self) -> bool:
        return self.state == ReplayState.PLAYING

    @property
    def start_time(self) -> float | None:
        starts = [b[0] for b in (c.bounds() for c in self.curves.values()) if b is not None]
        return min(starts) if starts else None

    @property
    def stop_time(self) -> float | None:
        stops = [b[1] for b in (c.bounds() for c in self.curves.values()) if b is not None]
        return max(stops) if stops else None

    # -- loading ----------------------------------------------------------

    def load(self, entity_id: str, waypoints: Iterable[Any]) -> SampledPositionCurve | None:
        """Attach a trajectory for `entity_id`; raises TrajectoryError on bad input."""
        if self.state == ReplayState.DESTROYED:
            self._misuse("load")
            return None

        eid = str(entity_id).strip()
        if not eid:
            raise PreconditionError("entity_id cannot be empty")

        # Validation happens before anything in the scene is touched.
        sorted_points = parse_waypoints(waypoints)
        samples = [(w.timestamp, w.position) for w in sorted_points]
        curve = SampledPositionCurve.from_samples(samples, interpolation="hermite")

        scene = self.scene
        now = scene.clock.current_time
        entity = scene.entities.get(eid)
        if entity is None:
            entity = scene.entities.create(eid, samples[0][1], now)
            self._created.add(eid)
        elif isinstance(entity.motion, Flying):
            entity.motion.cancel_listeners()
        entity.set_motion(ReplayDriven(session_id=self.id, curve=curve))

        scene.trails.replace(eid, curve.samples())
        self.curves[eid] = curve

        logger.info("Replay %s ready for %s with %d waypoints", self.id, eid, len(curve))
        return curve

    # -- transport --------------------------------------------------------

    def _misuse(self, operation: str) -> bool:
        if self.strict:
            raise SequenceError(operation, self.state.value)
        if self.state == ReplayState.DESTROYED:
            logger.warning("Replay %s: already destroyed, ignoring %s", self.id, operation)
        else:
            logger.warning("Replay %s: call play() before %s()", self.id, operation)
        return False

    def _guard_started(self, operation: str) -> bool:
        if self.state == ReplayState.DESTROYED or not self.has_started:
            return self._misuse(operation)
        return True

    def _ensure_tick_listener(self) -> None:
        if self._tick_subscription is not None and self._tick_subscription.active:
            return
        self._tick_subscription = self.scene.clock.subscribe(self._on_tick, name=f"replay:{self.id}")

    def _drop_tick_listener(self) -> None:
        if self._tick_subscription is not None:
            self._tick_subscription.cancel()
            self._tick_subscription = None

    def _on_tick(self, clock: SceneClock) -> None:
        if self.loop or self.state != ReplayState.PLAYING:
            return
        stop = self.stop_time
        if stop is not None and clock.current_time >= stop:
            self.state = ReplayState.COMPLETED
            self._drop_tick_listener()
            logger.info("Replay %s finished", self.id)

    def _rewind(self) -> None:
        start = self.start_time
        if start is not None:
            self.scene.clock.set_current_time(start)

    def play(self) -> bool:
        if self.state == ReplayState.DESTROYED:
            return self._misuse("play")
        if self.state == ReplayState.PLAYING:
            return False
        if not self.curves:
            raise PreconditionError("Nothing loaded; call load() before play()")

        if self.state in (ReplayState.PAUSED, ReplayState.COMPLETED):
            self._rewind()

        clock = self.scene.clock
        clock.multiplier = self.speed
        clock.should_animate = True
        self.has_started = True
        self.state = ReplayState.PLAYING
        self._ensure_tick_listener()
        logger.info("Replay %s playing", self.id)
        return True

    def resume(self) -> bool:
        if not self._guard_started("continue"):
            return False
        if self.state == ReplayState.PLAYING:
            return False

        clock = self.scene.clock
        clock.multiplier = self.speed
        clock.should_animate = True
        self.state = ReplayState.PLAYING
        self._ensure_tick_listener()
        logger.info("Replay %s continued", self.id)
        return True

    def pause(self) -> bool:
        if not self._guard_started("pause"):
            return False
        if self.state != ReplayState.PLAYING:
            return False
        self.scene.clock.should_animate = False
        self.state = ReplayState.PAUSED
        logger.info("Replay %s paused", self.id)
        return True

    def stop(self) -> bool:
        if not self._guard_started("stop"):
            return False
        self.scene.clock.should_animate = False
        self._rewind()
        self.state = ReplayState.STOPPED
        logger.info("Replay %s stopped", self.id)
        return True

    def seek(self, seconds: float) -> bool:
        """Move the clock to `seconds` after the session start."""
        if not self._guard_started("seek"):
            return False
        try:
            offset = float(seconds)
        except (TypeError, ValueError) as ex:
            raise PreconditionError("seek offset must be a number of seconds") from ex
        if not np.isfinite(offset):
            raise PreconditionError("seek offset must be finite")

        start = self.start_time
        if start is None:
            return False
        clock = self.scene.clock
        clock.set_current_time(start + offset)
        if self.state == ReplayState.PLAYING:
            clock.should_animate = True
        elif self.state in (ReplayState.STOPPED, ReplayState.COMPLETED):
            self.state = ReplayState.PAUSED
        logger.info("Replay %s jumped to %.3fs", self.id, offset)
        return True

    def destroy(self) -> bool:
        if not self._guard_started("destroy"):
            return False

        self._drop_tick_listener()
        self.scene.clock.reset_to_realtime()

        for eid in sorted(self.curves):
            entity = self.scene.entities.get(eid)
            if entity is None:
                self.scene.trails.clear(eid)
                continue
            driver = entity.motion.session_id if isinstance(entity.motion, ReplayDriven) else None
            if driver is not None and driver != self.id:
                # Another session has loaded this entity since; leave it alone.
                continue
            self.scene.trails.clear(eid)
            if driver == self.id or eid in self._created:
                self.scene.entities.remove(eid)
                logger.info("Removed entity %s", eid)

        self.state = ReplayState.DESTROYED
        self.has_started = False
        logger.info("Replay %s destroyed", self.id)
        return True

    def discard(self) -> None:
        """Detach from the clock without touching the scene (used on a full reset)."""
        self._drop_tick_listener()
        self.state = ReplayState.DESTROYED
        self.has_started = False

    # -- queries ----------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "state": self.state.value,
            "isPlaying": self.is_playing,
            "hasStarted": bool(self.has_started),
            "speed": float(self.speed),
            "loop": bool(self.loop),
            "strict": bool(self.strict),
            "entityIds": sorted(self.curves),
            "startTime": self.start_time,
            "stopTime": self.stop_time,
        }
