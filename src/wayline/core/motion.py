from __future__ import annotations

import logging

import numpy as np

from .clock import ClockRange, SceneClock
from .curve import SampledPositionCurve
from .entities import Entity, Flying, Idle, MotionState, ReplayDriven, stationary_curve
from .geodesy import validate_geodetic
from .scene import Scene

logger = logging.getLogger(__name__)


class LiveMotionController:
    """Point-to-point flights for individual entities.

    A new command always starts from where the entity actually is at the
    current clock time, so a flight can be preempted mid-course without the
    entity snapping back to an old waypoint.
    """

    def __init__(self, scene: Scene | None) -> None:
        self.scene = scene

    def state(self, entity_id: str) -> MotionState | None:
        if self.scene is None:
            return None
        entity = self.scene.entities.get(entity_id)
        return entity.motion if entity is not None else None

    def move_to(
        self,
        entity_id: str,
        lon: float,
        lat: float,
        height: float | None = 0.0,
        speed: float | None = None,
    ) -> bool:
        """Fly `entity_id` to (lon, lat, height) at `speed` m/s.

        Returns False (and logs) when the command is rejected; nothing is
        mutated in that case.
        """
        scene = self.scene
        if scene is None or scene.clock is None:
            logger.error("No scene/clock attached; ignoring move for %s", entity_id)
            return False

        try:
            lon_v, lat_v, h_v = validate_geodetic(lon, lat, 0.0 if height is None else height)
        except ValueError as ex:
            logger.error("Rejected move for %s: %s", entity_id, ex)
            return False

        settings = scene.settings.get()
        speed_v = settings.default_speed_mps if speed is None else speed
        try:
            speed_v = float(speed_v)
        except (TypeError, ValueError):
            logger.error("Rejected move for %s: speed must be a number", entity_id)
            return False
        if not np.isfinite(speed_v) or speed_v <= 0.0:
            logger.error("Rejected move for %s: speed must be a positive finite number", entity_id)
            return False

        clock = scene.clock
        now = clock.current_time
        target = scene.to_cartesian(lon_v, lat_v, h_v)

        entity = scene.entities.get(entity_id)
        if entity is None:
            logger.info("Entity %s does not exist, creating it at the target", entity_id)
            scene.entities.create(entity_id, target, now)
            scene.trails.ensure(entity_id, target, now)
            return True

        current = entity.position_at(now)
        if isinstance(entity.motion, ReplayDriven):
            # A replay trail holds the whole recorded track; live history starts here.
            scene.trails.replace(entity_id, [(now, current)])
        else:
            scene.trails.truncate_after(entity_id, now)
        scene.trails.record_point(entity_id, current, now)

        # Preempt whatever was driving the entity before.
        if isinstance(entity.motion, Flying):
            entity.motion.cancel_listeners()

        dist = scene.distance(current, target)
        if dist < settings.arrival_epsilon_m:
            logger.info("Target for %s is %.3fm away, placing it directly", entity_id, dist)
            entity.set_motion(Idle(stationary_curve(now, target)))
            scene.trails.record_point(entity_id, target, now)
            return True

        duration = dist / speed_v
        end_time = now + duration

        curve = SampledPositionCurve("linear")
        curve.add_sample(now, current)
        curve.add_sample(end_time, target)

        clock.start_time = now
        clock.stop_time = end_time
        clock.clock_range = ClockRange.UNBOUNDED
        if not clock.should_animate:
            clock.should_animate = True

        start_lon, start_lat, start_h = scene.to_geographic(current)
        logger.info(
            "Flight %s: (%.6f, %.6f, %.2fm) -> (%.6f, %.6f, %.2fm), %.2fm at %.2fm/s, %.2fs",
            entity_id,
            start_lon,
            start_lat,
            start_h,
            lon_v,
            lat_v,
            h_v,
            dist,
            speed_v,
            duration,
        )

        # Trail listener must be subscribed first so it runs before completion within a tick.
        trail_sub = clock.subscribe(lambda c: self._on_flight_tick(entity, c), name=f"flight-trail:{entity_id}")
        end_sub = clock.subscribe(lambda c: self._on_flight_end_tick(entity, c), name=f"flight-end:{entity_id}")

        entity.set_motion(
            Flying(
                curve=curve,
                target=target,
                speed=speed_v,
                start_time=now,
                end_time=end_time,
                trail_subscription=trail_sub,
                end_subscription=end_sub,
            )
        )
        return True

    def _on_flight_tick(self, entity: Entity, clock: SceneClock) -> None:
        motion = entity.motion
        if not isinstance(motion, Flying) or self.scene is None:
            return
        now = clock.current_time
        self.scene.trails.truncate_after(entity.id, now)
        self.scene.trails.record_point(entity.id, motion.curve.evaluate(now), now)

    def _on_flight_end_tick(self, entity: Entity, clock: SceneClock) -> None:
        motion = entity.motion
        if not isinstance(motion, Flying) or self.scene is None:
            return
        if clock.current_time < motion.end_time:
            return

        self.scene.trails.record_point(entity.id, motion.target, clock.current_time)

        # Hold the final position well past the end of the flight window.
        horizon = self.scene.settings.get().anchor_horizon_s
        motion.curve.add_sample(motion.end_time + horizon, motion.target)

        motion.cancel_listeners()
        entity.set_motion(Idle(motion.curve))
        logger.info("Flight %s finished, anchored at target", entity.id)

    def cancel(self, entity_id: str) -> bool:
        """Stop an in-progress flight, holding the entity where it currently is."""
        if self.scene is None:
            return False
        entity = self.scene.entities.get(entity_id)
        if entity is None or not isinstance(entity.motion, Flying):
            return False
        now = self.scene.clock.current_time
        here = entity.position_at(now)
        entity.motion.cancel_listeners()
        entity.set_motion(Idle(stationary_curve(now, here)))
        self.scene.trails.record_point(entity_id, here, now)
        logger.info("Flight %s cancelled", entity_id)
        return True
