from __future__ import annotations

import logging
import threading
import time

from ..core.service import SceneService

logger = logging.getLogger(__name__)

_TICKERS_LOCK = threading.Lock()


class SceneTicker:
    """Background thread that advances the scene clock by wall-clock time.

    Several apps may serve the same `SceneService`; they share one ticker via
    `ticker_for()` and `acquire()`/`release()` it, so the clock has a single
    driving loop however many servers are running.
    """

    def __init__(self, service: SceneService, *, hz: float = 30.0) -> None:
        hz_v = float(hz)
        if not hz_v > 0.0:
            raise ValueError("tick rate must be > 0")
        self.service = service
        self.interval = 1.0 / hz_v
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._users = 0
        self._users_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def users(self) -> int:
        return self._users

    def acquire(self) -> None:
        with self._users_lock:
            self._users += 1
            if self._users == 1:
                self.start()

    def release(self) -> None:
        with self._users_lock:
            if self._users == 0:
                return
            self._users -= 1
            if self._users == 0:
                self.stop()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="wayline-ticker", daemon=True)
        self._thread.start()
        logger.debug("Ticker started at %.1f Hz", 1.0 / self.interval)

    def stop(self, *, timeout_s: float = 1.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout_s)
            self._thread = None

    def _run(self) -> None:
        last = time.monotonic()
        while not self._stop.wait(self.interval):
            now = time.monotonic()
            dt = now - last
            last = now
            try:
                self.service.tick(dt)
            except Exception:
                # A failing listener must not stop the clock for every other entity.
                logger.exception("Scene tick failed")


def ticker_for(service: SceneService, *, hz: float = 30.0) -> SceneTicker:
    """Return the ticker driving `service`, creating it on first use."""
    with _TICKERS_LOCK:
        ticker = service.ticker
        if ticker is None:
            ticker = SceneTicker(service, hz=hz)
            service.ticker = ticker
        elif abs(ticker.interval - 1.0 / float(hz)) > 1e-12:
            logger.warning("Scene already ticks at %.1f Hz; ignoring %.1f Hz", 1.0 / ticker.interval, float(hz))
        return ticker
