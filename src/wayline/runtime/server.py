from __future__ import annotations

import contextlib
import logging
import os
import socket
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

import httpx
import uvicorn

from ..api.serializers import entity_to_dict, trail_to_dict
from ..core.errors import PreconditionError
from ..core.service import SERVICE, SceneService
from ..sdk.client import WaylineClient
from ..sdk.handles import EntityHandle, ReplayHandle
from .app import create_app

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WaylineServer:
    """Handle to a server started in this process.

    Commands go straight to the shared `SceneService` instead of through HTTP,
    so handles returned here behave the same as the ones from `WaylineClient`.
    """

    host: str
    port: int
    url: str
    service: SceneService = field(default=SERVICE, repr=False, compare=False)

    # -- scene ------------------------------------------------------------

    def reset(self, *, timeout_s: float = 10.0) -> None:  # noqa: ARG002
        self.service.reset()

    def configure_clock(
        self,
        start_time: float,
        end_time: float,
        rate: float = 1.0,
        loop: bool = False,
        *,
        timeout_s: float = 10.0,  # noqa: ARG002
    ) -> dict[str, Any]:
        self.service.configure_clock(start_time, end_time, rate, loop)
        return self.service.clock_info()

    def get_clock(self, *, timeout_s: float = 10.0) -> dict[str, Any]:  # noqa: ARG002
        return self.service.clock_info()

    def tick(self, dt: float, *, steps: int = 1, timeout_s: float = 10.0) -> dict[str, Any]:  # noqa: ARG002
        for _ in range(int(steps)):
            self.service.tick(dt)
        return self.service.clock_info()

    # -- entities ---------------------------------------------------------

    def entity(self, entity_id: str) -> EntityHandle:
        return EntityHandle(entity_id, ops=self)

    def move_to(
        self,
        entity_id: str,
        lon: float,
        lat: float,
        height: float = 0.0,
        speed: float | None = None,
        *,
        timeout_s: float = 10.0,  # noqa: ARG002
    ) -> EntityHandle:
        """Fly (or create) an entity; raises ValueError when the command is rejected."""
        if not self.service.move_to(entity_id, lon, lat, height, speed):
            raise PreconditionError(f"Move command for {entity_id!r} was rejected")
        return EntityHandle(entity_id, ops=self)

    def cancel_flight(self, entity_id: str, *, timeout_s: float = 10.0) -> bool:  # noqa: ARG002
        return self.service.cancel_flight(entity_id)

    def delete_entity(self, entity_id: str, *, timeout_s: float = 10.0) -> None:  # noqa: ARG002
        if not self.service.remove_entity(entity_id):
            raise KeyError(entity_id)

    def get_entity_meta(self, entity_id: str, *, timeout_s: float = 10.0) -> dict[str, Any]:  # noqa: ARG002
        with self.service.lock:
            e = self.service.get_entity(entity_id)
            if e is None:
                raise KeyError(entity_id)
            return entity_to_dict(e, clock_time=self.service.scene.clock.current_time)

    def get_trail_meta(self, entity_id: str, *, timeout_s: float = 10.0) -> dict[str, Any]:  # noqa: ARG002
        with self.service.lock:
            t = self.service.get_trail(entity_id)
            if t is None:
                raise KeyError(entity_id)
            return trail_to_dict(t)

    def set_trail_visibility(self, entity_id: str, visible: bool, *, timeout_s: float = 10.0) -> None:  # noqa: ARG002
        self.service.set_trail_visible(entity_id, visible)

    # -- replays ----------------------------------------------------------

    def start_replay(
        self,
        entity_id: str,
        waypoints: Iterable[Any],
        *,
        speed: float = 1.0,
        loop: bool = False,
        strict: bool = False,
        timeout_s: float = 10.0,
    ) -> ReplayHandle:
        return self.start_replay_tracks({entity_id: waypoints}, speed=speed, loop=loop, strict=strict, timeout_s=timeout_s)

    def start_replay_tracks(
        self,
        tracks: Mapping[str, Iterable[Any]],
        *,
        speed: float = 1.0,
        loop: bool = False,
        strict: bool = False,
        timeout_s: float = 10.0,  # noqa: ARG002
    ) -> ReplayHandle:
        session = self.service.start_replay_tracks(tracks, speed=speed, loop=loop, strict=strict)
        if session is None:
            raise PreconditionError("Invalid replay data")
        return ReplayHandle(session.id, ops=self)

    def get_replay_meta(self, replay_id: str, *, timeout_s: float = 10.0) -> dict[str, Any]:  # noqa: ARG002
        info = self.service.replay_info(replay_id)
        if info is None:
            raise KeyError(replay_id)
        return info

    def replay_command(
        self,
        replay_id: str,
        operation: str,
        *,
        seconds: float | None = None,
        timeout_s: float = 10.0,  # noqa: ARG002
    ) -> bool:
        args = () if seconds is None else (seconds,)
        return self.service.replay_command(replay_id, operation, *args)


def _find_free_port(host: str) -> int:
    with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind((host, 0))
        return int(s.getsockname()[1])


def _normalize_base_url(url: str) -> str:
    url = url.strip()
    if not url:
        return ""
    # Allow passing just host:port.
    if "://" not in url:
        url = "http://" + url
    return url.rstrip("/")


def _is_server_alive(base_url: str, *, timeout_s: float = 0.2) -> bool:
    """Best-effort probe to determine if a wayline server is reachable."""
    try:
        with httpx.Client(base_url=base_url, timeout=timeout_s) as client:
            r = client.get("/healthz")
            if r.status_code != 200:
                return False
            return bool(r.json().get("ok"))
    except (httpx.HTTPError, ValueError):
        return False


def _wait_until_alive(base_url: str, *, timeout_s: float) -> bool:
    deadline = time.monotonic() + timeout_s
    while time.monotonic() < deadline:
        if _is_server_alive(base_url):
            return True
        time.sleep(0.05)
    return False


def run(
    *,
    host: str = "127.0.0.1",
    port: int = 0,
    log_level: str = "info",
    access_log: bool = False,
    new_server: bool = False,
    tick_hz: float | None = None,
    connect_timeout_s: float = 0.2,
    startup_timeout_s: float = 5.0,
) -> WaylineServer | WaylineClient:
    """Start wayline (API + clock ticker) with a single Python call.

    Behavior:
    - If WAYLINE_URL is set, we *attach* to that existing server (client mode) unless
      `new_server=True`.
    - Otherwise, if `port != 0` and a server is already reachable at http://{host}:{port},
      we attach to it (client mode) unless `new_server=True`.
    - Otherwise we start a new local server (server mode) and return a `WaylineServer`.

    Notes:
    - `port=0` means "pick a free port", so there's nothing to attach to.
    - Uvicorn's per-request access log is off by default because viewers poll
      `/api/events` frequently.
    """

    env_url = _normalize_base_url(os.getenv("WAYLINE_URL", ""))

    # 1) Try attaching to an explicitly provided server.
    if env_url and not new_server:
        if _is_server_alive(env_url, timeout_s=connect_timeout_s):
            logger.info("Attached to wayline at %s", env_url)
            return WaylineClient(env_url)
        logger.warning("WAYLINE_URL=%s is not reachable, starting a local server", env_url)

    # 2) Try attaching to host/port if they are explicitly chosen.
    if port != 0 and not new_server:
        default_url = _normalize_base_url(f"http://{host}:{port}")
        if _is_server_alive(default_url, timeout_s=connect_timeout_s):
            logger.info("Attached to wayline at %s", default_url)
            return WaylineClient(default_url)

    # 3) Start a fresh server.
    if port == 0:
        port = _find_free_port(host)

    app = create_app(SERVICE, tick_hz=tick_hz)

    config = uvicorn.Config(app, host=host, port=port, log_level=log_level, access_log=access_log)
    server = uvicorn.Server(config)

    thread = threading.Thread(target=server.run, name="wayline-http", daemon=True)
    thread.start()

    url = f"http://{host}:{port}"
    if not _wait_until_alive(url, timeout_s=startup_timeout_s):
        logger.warning("wayline at %s did not answer /healthz within %.1fs", url, startup_timeout_s)
    else:
        logger.info("wayline listening on %s", url)

    return WaylineServer(host=host, port=port, url=url + "/", service=SERVICE)
