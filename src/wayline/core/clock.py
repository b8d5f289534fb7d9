from __future__ import annotations

import itertools
import time
from enum import Enum
from typing import Any, Callable

import numpy as np


TickListener = Callable[["SceneClock"], None]

_subscription_ids = itertools.count(1)


class ClockRange(str, Enum):
    """What the clock does when it reaches its bounds while animating."""

    UNBOUNDED = "unbounded"
    CLAMPED = "clamped"
    LOOP_STOP = "loop-stop"

    @classmethod
    def from_any(cls, value: Any) -> "ClockRange":
        if isinstance(value, cls):
            return value
        v = str(value).strip().lower().replace("_", "-")
        aliases: dict[str, ClockRange] = {
            "unbounded": cls.UNBOUNDED,
            "clamped": cls.CLAMPED,
            "loop-stop": cls.LOOP_STOP,
            "loop": cls.LOOP_STOP,
        }
        if v in aliases:
            return aliases[v]
        raise ValueError("Unsupported clock range. Use 'unbounded', 'clamped' or 'loop-stop'.")


class Subscription:
    """Handle returned by `SceneClock.subscribe`; cancelling it removes the listener."""

    def __init__(self, clock: "SceneClock", listener: TickListener, name: str) -> None:
        self.id = next(_subscription_ids)
        self.name = name
        self._clock = clock
        self._listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> bool:
        if not self._active:
            return False
        self._active = False
        self._clock._detach(self)
        return True

    def __call__(self, clock: "SceneClock") -> None:
        self._listener(clock)

    def __repr__(self) -> str:
        state = "active" if self._active else "cancelled"
        return f"Subscription(id={self.id}, name={self.name!r}, {state})"


class SceneClock:
    """Shared virtual time source.

    Times are epoch seconds. `tick(dt)` advances `current_time` by
    `dt * multiplier` when `should_animate` is set, applies the range policy and
    then notifies listeners in subscription order. Listeners are notified on
    every tick, also while the clock is paused.
    """

    def __init__(
        self,
        *,
        current_time: float | None = None,
        start_time: float | None = None,
        stop_time: float | None = None,
        multiplier: float = 1.0,
        should_animate: bool = True,
        clock_range: ClockRange | str = ClockRange.UNBOUNDED,
    ) -> None:
        now = float(time.time()) if current_time is None else float(current_time)
        self.current_time = now
        self.start_time = now if start_time is None else float(start_time)
        self.stop_time = self.start_time + 86400.0 if stop_time is None else float(stop_time)
        self.multiplier = float(multiplier)
        self.should_animate = bool(should_animate)
        self.clock_range = ClockRange.from_any(clock_range)
        self._subscriptions: list[Subscription] = []

    def subscribe(self, listener: TickListener, *, name: str = "listener") -> Subscription:
        sub = Subscription(self, listener, name)
        self._subscriptions.append(sub)
        return sub

    def _detach(self, sub: Subscription) -> None:
        try:
            self._subscriptions.remove(sub)
        except ValueError:
            pass

    def listener_count(self, prefix: str | None = None) -> int:
        if prefix is None:
            return len(self._subscriptions)
        return sum(1 for s in self._subscriptions if s.name.startswith(prefix))

    def set_bounds(self, start_time: float, stop_time: float) -> None:
        start_v = float(start_time)
        stop_v = float(stop_time)
        if not (np.isfinite(start_v) and np.isfinite(stop_v)):
            raise ValueError("clock bounds must be finite")
        if stop_v < start_v:
            raise ValueError("stop_time must be >= start_time")
        self.start_time = start_v
        self.stop_time = stop_v

    def set_current_time(self, value: float) -> None:
        v = float(value)
        if not np.isfinite(v):
            raise ValueError("current_time must be finite")
        self.current_time = v

    def reset_to_realtime(self, now: float | None = None) -> None:
        """Unbounded real-time mode anchored at wall-clock now."""
        t = float(time.time()) if now is None else float(now)
        self.current_time = t
        self.start_time = t
        self.stop_time = t + 86400.0
        self.multiplier = 1.0
        self.clock_range = ClockRange.UNBOUNDED
        self.should_animate = True

    def _apply_range(self, t: float) -> float:
        if self.clock_range == ClockRange.CLAMPED:
            if t < self.start_time:
                return self.start_time
            if t > self.stop_time:
                return self.stop_time
        elif self.clock_range == ClockRange.LOOP_STOP:
            if t < self.start_time:
                return self.start_time
            if t > self.stop_time:
                return self.start_time
        return t

    def tick(self, dt: float) -> float:
        dt_v = float(dt)
        if not np.isfinite(dt_v):
            raise ValueError("dt must be finite")

        if self.should_animate:
            self.current_time = self._apply_range(self.current_time + dt_v * self.multiplier)

        for sub in list(self._subscriptions):
            # A listener earlier in this tick may have cancelled a later one.
            if not sub.active:
                continue
            sub(self)
        return self.current_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentTime": float(self.current_time),
            "startTime": float(self.start_time),
            "stopTime": float(self.stop_time),
            "multiplier": float(self.multiplier),
            "shouldAnimate": bool(self.should_animate),
            "clockRange": self.clock_range.value,
            "listenerCount": len(self._subscriptions),
        }
