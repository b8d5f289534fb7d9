from __future__ import annotations

from typing import Any, Iterable, Mapping

from ..core.entities import Waypoint
from .handles import EntityHandle, ReplayHandle


def _waypoints_body(waypoints: Iterable[Any]) -> list[dict[str, float]]:
    out: list[dict[str, float]] = []
    for value in waypoints:
        w = Waypoint.from_any(value)
        out.append({"lon": w.lon, "lat": w.lat, "height": w.height, "timestamp": w.timestamp})
    return out


class WaylineClient:
    """HTTP client for commanding entities on a running wayline server."""

    def __init__(self, base_url: str = "http://127.0.0.1:8000") -> None:
        self.base_url = base_url.rstrip("/")

    def _request(self, method: str, path: str, *, what: str, timeout_s: float, json: Any = None) -> Any:
        import httpx

        with httpx.Client(base_url=self.base_url, timeout=timeout_s) as client:
            res = client.request(method, path, json=json)
            if res.status_code >= 400:
                raise RuntimeError(f"Failed to {what}: {res.status_code} {res.text}")
            return res.json()

    # -- scene ------------------------------------------------------------

    def reset(self, *, timeout_s: float = 10.0) -> None:
        self._request("POST", "/api/reset", what="reset scene", timeout_s=timeout_s)

    def get_settings(self, *, timeout_s: float = 10.0) -> dict[str, Any]:
        return self._request("GET", "/api/settings", what="get settings", timeout_s=timeout_s)

    def update_settings(
        self,
        *,
        trail_retention_s: float | None | object = ...,
        trail_min_distance_m: float | None = None,
        default_speed_mps: float | None = None,
        timeout_s: float = 10.0,
    ) -> dict[str, Any]:
        """Patch scene settings. Pass `trail_retention_s=None` for unbounded trails."""
        body: dict[str, Any] = {}
        if trail_retention_s is not ...:
            body["trailRetentionSeconds"] = -1.0 if trail_retention_s is None else float(trail_retention_s)  # type: ignore[arg-type]
        if trail_min_distance_m is not None:
            body["trailMinDistance"] = float(trail_min_distance_m)
        if default_speed_mps is not None:
            body["defaultSpeed"] = float(default_speed_mps)
        return self._request("PATCH", "/api/settings", what="update settings", timeout_s=timeout_s, json=body)

    # -- clock ------------------------------------------------------------

    def get_clock(self, *, timeout_s: float = 10.0) -> dict[str, Any]:
        return self._request("GET", "/api/clock", what="get clock", timeout_s=timeout_s)

    def configure_clock(
        self,
        start_time: float,
        end_time: float,
        rate: float = 1.0,
        loop: bool = False,
        *,
        timeout_s: float = 10.0,
    ) -> dict[str, Any]:
        body = {"startTime": float(start_time), "endTime": float(end_time), "rate": float(rate), "loop": bool(loop)}
        return self._request("PUT", "/api/clock", what="configure clock", timeout_s=timeout_s, json=body)

    def tick(self, dt: float, *, steps: int = 1, timeout_s: float = 10.0) -> dict[str, Any]:
        body = {"dt": float(dt), "steps": int(steps)}
        return self._request("POST", "/api/clock/tick", what="tick clock", timeout_s=timeout_s, json=body)

    # -- entities ---------------------------------------------------------

    def list_entities(self, *, timeout_s: float = 10.0) -> list[EntityHandle]:
        data = self._request("GET", "/api/entities", what="list entities", timeout_s=timeout_s)
        return [EntityHandle(str(e["id"]), ops=self) for e in data]

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
        timeout_s: float = 10.0,
    ) -> EntityHandle:
        body: dict[str, Any] = {"lon": float(lon), "lat": float(lat), "height": float(height)}
        if speed is not None:
            body["speed"] = float(speed)
        self._request("POST", f"/api/entities/{entity_id}/move", what="move entity", timeout_s=timeout_s, json=body)
        return EntityHandle(entity_id, ops=self)

    def cancel_flight(self, entity_id: str, *, timeout_s: float = 10.0) -> bool:
        data = self._request("POST", f"/api/entities/{entity_id}/cancel", what="cancel flight", timeout_s=timeout_s)
        return bool(data.get("ok"))

    def delete_entity(self, entity_id: str, *, timeout_s: float = 10.0) -> None:
        self._request("DELETE", f"/api/entities/{entity_id}", what="delete entity", timeout_s=timeout_s)

    def get_entity_meta(self, entity_id: str, *, timeout_s: float = 10.0) -> dict[str, Any]:
        return self._request("GET", f"/api/entities/{entity_id}", what="get entity", timeout_s=timeout_s)

    def get_trail_meta(self, entity_id: str, *, timeout_s: float = 10.0) -> dict[str, Any]:
        return self._request("GET", f"/api/trails/{entity_id}", what="get trail", timeout_s=timeout_s)

    def set_trail_visibility(self, entity_id: str, visible: bool, *, timeout_s: float = 10.0) -> None:
        self._request(
            "PATCH",
            f"/api/trails/{entity_id}",
            what="update trail",
            timeout_s=timeout_s,
            json={"visible": bool(visible)},
        )

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
        timeout_s: float = 10.0,
    ) -> ReplayHandle:
        body = {
            "tracks": {str(eid): _waypoints_body(points) for eid, points in tracks.items()},
            "speed": float(speed),
            "loop": bool(loop),
            "strict": bool(strict),
        }
        data = self._request("POST", "/api/replays", what="create replay", timeout_s=timeout_s, json=body)
        return ReplayHandle(str(data["id"]), ops=self)

    def get_replay_meta(self, replay_id: str, *, timeout_s: float = 10.0) -> dict[str, Any]:
        return self._request("GET", f"/api/replays/{replay_id}", what="get replay", timeout_s=timeout_s)

    def replay_command(
        self,
        replay_id: str,
        operation: str,
        *,
        seconds: float | None = None,
        timeout_s: float = 10.0,
    ) -> bool:
        body = None if seconds is None else {"seconds": float(seconds)}
        data = self._request(
            "POST",
            f"/api/replays/{replay_id}/{operation}",
            what=f"{operation} replay",
            timeout_s=timeout_s,
            json=body,
        )
        return bool(data.get("ok"))
