from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from wayline.api import create_api_app
from wayline.core.clock import SceneClock
from wayline.core.scene import Scene
from wayline.core.service import SceneService
from wayline.core.settings import SceneSettings, SceneSettingsStore


def _client() -> TestClient:
    service = SceneService(Scene(clock=SceneClock(current_time=0.0)))
    return TestClient(create_api_app(service))


def _waypoints(t0: float = 0.0) -> list[dict[str, float]]:
    return [{"lng": 0.01 * i, "lat": 0.0, "height": 50.0, "timestamp": t0 + 5.0 * i} for i in range(3)]


def test_healthz_and_events() -> None:
    client = _client()
    assert client.get("/healthz").json() == {"ok": True}
    events = client.get("/api/events").json()
    assert events["globalRevision"] == 0
    assert events["clock"]["currentTime"] == 0.0


def test_move_creates_then_flies_entity() -> None:
    client = _client()

    res = client.post("/api/entities/drone/move", json={"lon": 10.0, "lat": 20.0})
    assert res.status_code == 200
    data = res.json()
    assert data["id"] == "drone"
    assert data["motion"] == "idle"
    assert data["position"]["height"] == pytest.approx(0.0, abs=1e-6)

    res = client.post("/api/entities/drone/move", json={"lon": 10.0, "lat": 20.0, "height": 1000.0, "speed": 100.0})
    data = res.json()
    assert data["isFlying"] is True
    assert data["flight"]["duration"] == pytest.approx(10.0, abs=1e-6)

    client.post("/api/clock/tick", json={"dt": 1.0, "steps": 5})
    data = client.get("/api/entities/drone").json()
    assert data["position"]["height"] == pytest.approx(500.0, abs=1e-3)

    assert [e["id"] for e in client.get("/api/entities").json()] == ["drone"]
    assert client.get("/api/events").json()["globalRevision"] == 2


def test_invalid_moves_are_rejected() -> None:
    client = _client()
    assert client.post("/api/entities/a/move", json={"lon": "east", "lat": 0.0}).status_code == 400
    assert client.post("/api/entities/a/move", json={"lat": 0.0}).status_code == 400
    assert client.post("/api/entities/a/move", json={"lon": 0.0, "lat": 95.0}).status_code == 400
    assert client.post("/api/entities/a/move", json={"lon": 0.0, "lat": 0.0, "speed": -5}).status_code == 400
    assert client.get("/api/entities/a").status_code == 404


def test_cancel_and_delete_entity() -> None:
    client = _client()
    client.post("/api/entities/a/move", json={"lon": 0.0, "lat": 0.0})
    client.post("/api/entities/a/move", json={"lon": 0.0, "lat": 0.0, "height": 100.0})
    assert client.post("/api/entities/a/cancel").json() == {"ok": True}
    assert client.post("/api/entities/a/cancel").json() == {"ok": False}

    assert client.delete("/api/entities/a").status_code == 200
    assert client.delete("/api/entities/a").status_code == 404
    assert client.post("/api/entities/a/cancel").status_code == 404


def test_trail_endpoints() -> None:
    client = _client()
    client.post("/api/entities/a/move", json={"lon": 0.0, "lat": 0.0})

    trail = client.get("/api/trails/a").json()
    assert trail["id"] == "a_trail"
    assert trail["visible"] is True
    assert trail["pointCount"] == 1
    assert len(trail["points"]) == 1

    assert "points" not in client.get("/api/trails/a", params={"points": "false"}).json()

    res = client.patch("/api/trails/a", json={"visible": False})
    assert res.status_code == 200
    assert res.json()["visible"] is False

    assert client.patch("/api/trails/missing", json={"visible": True}).status_code == 404
    assert client.patch("/api/trails/a", json={}).status_code == 400
    assert client.get("/api/trails/missing").status_code == 404


def test_clock_configuration() -> None:
    client = _client()
    res = client.put("/api/clock", json={"startTime": 0.0, "endTime": 20.0, "rate": 2.0, "loop": False})
    assert res.status_code == 200
    clock = res.json()
    assert clock["clockRange"] == "clamped"
    assert clock["multiplier"] == 2.0

    clock = client.post("/api/clock/tick", json={"dt": 1.0, "steps": 20}).json()
    assert clock["currentTime"] == pytest.approx(20.0)

    assert client.put("/api/clock", json={"startTime": 10.0, "endTime": 0.0}).status_code == 400
    assert client.put("/api/clock", json={"startTime": 0.0, "endTime": 10.0, "rate": 0}).status_code == 400
    assert client.post("/api/clock/tick", json={"dt": 1.0, "steps": 0}).status_code == 400
    assert client.post("/api/clock/tick", json={}).status_code == 400


def test_replay_lifecycle() -> None:
    client = _client()
    client.put("/api/clock", json={"startTime": 0.0, "endTime": 10.0})

    res = client.post("/api/replays", json={"entityId": "plane", "waypoints": _waypoints()})
    assert res.status_code == 200
    replay = res.json()
    rid = replay["id"]
    assert replay["state"] == "ready"
    assert replay["entityIds"] == ["plane"]
    assert replay["stopTime"] == 10.0

    # Out of order, non-strict: accepted but ignored.
    res = client.post(f"/api/replays/{rid}/pause")
    assert res.status_code == 200
    assert res.json()["ok"] is False

    res = client.post(f"/api/replays/{rid}/play")
    assert res.json()["ok"] is True
    assert res.json()["replay"]["state"] == "playing"

    res = client.post(f"/api/replays/{rid}/seek", json={"seconds": 3.0})
    assert res.json()["ok"] is True
    assert client.get("/api/clock").json()["currentTime"] == pytest.approx(3.0)

    assert client.post(f"/api/replays/{rid}/seek", json={}).status_code == 400
    assert client.post(f"/api/replays/{rid}/rewind").status_code == 404

    client.post("/api/clock/tick", json={"dt": 1.0, "steps": 10})
    assert client.get(f"/api/replays/{rid}").json()["state"] == "completed"

    assert client.post(f"/api/replays/{rid}/destroy").json()["ok"] is True
    assert client.post(f"/api/replays/{rid}/destroy").json()["ok"] is False
    assert client.get("/api/entities/plane").status_code == 404
    assert client.get("/api/replays").json() == []
    assert client.get(f"/api/replays/{rid}").json()["state"] == "destroyed"


def test_strict_replay_returns_conflict() -> None:
    client = _client()
    rid = client.post(
        "/api/replays",
        json={"tracks": {"a": _waypoints(), "b": _waypoints(2.0)}, "strict": True},
    ).json()["id"]
    res = client.post(f"/api/replays/{rid}/continue")
    assert res.status_code == 409


def test_invalid_replays() -> None:
    client = _client()
    assert client.post("/api/replays", json={"entityId": "a", "waypoints": _waypoints()[:1]}).status_code == 400
    assert client.post("/api/replays", json={"waypoints": _waypoints()}).status_code == 400
    assert client.post("/api/replays", json={"tracks": {}}).status_code == 400
    assert client.post("/api/replays", json={"entityId": "a", "waypoints": "nope"}).status_code == 400
    assert client.post("/api/replays", json={"entityId": "a", "waypoints": _waypoints(), "speed": 0}).status_code == 400
    assert client.get("/api/replays/unknown").status_code == 404
    assert client.post("/api/replays/unknown/play").status_code == 404


def test_settings_and_reset() -> None:
    client = _client()
    assert client.get("/api/settings").json()["trailRetentionSeconds"] == 10.0

    res = client.patch("/api/settings", json={"trailRetentionSeconds": -1, "defaultSpeed": 25})
    assert res.status_code == 200
    assert res.json()["trailRetentionSeconds"] == -1.0
    assert res.json()["defaultSpeed"] == 25.0

    assert client.patch("/api/settings", json={}).status_code == 400
    assert client.patch("/api/settings", json={"defaultSpeed": 0}).status_code == 400
    assert client.patch("/api/settings", json={"trailMinDistance": "far"}).status_code == 400

    client.post("/api/entities/a/move", json={"lon": 0.0, "lat": 0.0})
    assert client.post("/api/reset").json() == {"ok": True}
    assert client.get("/api/entities").json() == []


def test_cors_is_off_unless_origins_are_configured() -> None:
    origin = {"Origin": "http://viewer.local"}
    res = _client().get("/healthz", headers=origin)
    assert "access-control-allow-origin" not in res.headers

    service = SceneService(
        Scene(
            clock=SceneClock(current_time=0.0),
            settings=SceneSettingsStore(SceneSettings(cors_origins=("http://viewer.local",))),
        )
    )
    res = TestClient(create_api_app(service)).get("/healthz", headers=origin)
    assert res.headers["access-control-allow-origin"] == "http://viewer.local"
