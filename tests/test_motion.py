from __future__ import annotations

import pytest

from wayline.core.clock import SceneClock
from wayline.core.entities import Flying, Idle
from wayline.core.geodesy import ecef_to_geodetic
from wayline.core.motion import LiveMotionController
from wayline.core.replay import ReplaySession
from wayline.core.scene import Scene
from wayline.core.settings import SceneSettings, SceneSettingsStore

LON, LAT = 10.0, 20.0


def _controller(**settings: float) -> LiveMotionController:
    scene = Scene(
        clock=SceneClock(current_time=1000.0),
        settings=SceneSettingsStore(SceneSettings(**settings)),
    )
    return LiveMotionController(scene)


def _height(ctl: LiveMotionController, entity_id: str) -> float:
    assert ctl.scene is not None
    pos = ctl.scene.entity_position(entity_id)
    assert pos is not None
    return ecef_to_geodetic(pos)[2]


def _tick(ctl: LiveMotionController, n: int, dt: float = 1.0) -> None:
    assert ctl.scene is not None
    for _ in range(n):
        ctl.scene.clock.tick(dt)


def test_first_move_creates_entity_at_target() -> None:
    ctl = _controller()
    assert ctl.move_to("a", LON, LAT, 50.0) is True

    state = ctl.state("a")
    assert isinstance(state, Idle)
    assert _height(ctl, "a") == pytest.approx(50.0, abs=1e-6)
    assert ctl.scene is not None
    assert "a" in ctl.scene.trails


def test_flight_duration_is_distance_over_speed() -> None:
    ctl = _controller()
    ctl.move_to("a", LON, LAT, 0.0)
    assert ctl.move_to("a", LON, LAT, 1000.0, speed=100.0) is True

    state = ctl.state("a")
    assert isinstance(state, Flying)
    assert state.duration == pytest.approx(10.0, abs=1e-6)
    assert state.start_time == pytest.approx(1000.0)


def test_default_speed_comes_from_settings() -> None:
    ctl = _controller(default_speed_mps=20.0)
    ctl.move_to("a", LON, LAT, 0.0)
    ctl.move_to("a", LON, LAT, 100.0)
    state = ctl.state("a")
    assert isinstance(state, Flying)
    assert state.duration == pytest.approx(5.0, abs=1e-6)


def test_preemption_starts_from_current_position_and_replaces_listeners() -> None:
    ctl = _controller()
    assert ctl.scene is not None
    clock = ctl.scene.clock

    ctl.move_to("a", LON, LAT, 0.0)
    ctl.move_to("a", LON, LAT, 1000.0, speed=100.0)
    _tick(ctl, 5)
    assert _height(ctl, "a") == pytest.approx(500.0, abs=1e-3)

    assert ctl.move_to("a", LON, LAT, 0.0, speed=100.0) is True
    state = ctl.state("a")
    assert isinstance(state, Flying)
    assert ecef_to_geodetic(state.curve.first_position())[2] == pytest.approx(500.0, abs=1e-3)
    assert state.duration == pytest.approx(5.0, abs=1e-3)

    assert clock.listener_count("flight-end:a") == 1
    assert clock.listener_count("flight-trail:a") == 1


def test_flight_completes_and_anchors_at_target() -> None:
    ctl = _controller()
    assert ctl.scene is not None
    clock = ctl.scene.clock

    ctl.move_to("a", LON, LAT, 0.0)
    ctl.move_to("a", LON, LAT, 1000.0, speed=100.0)
    _tick(ctl, 11)

    state = ctl.state("a")
    assert isinstance(state, Idle)
    assert clock.listener_count() == 0
    assert _height(ctl, "a") == pytest.approx(1000.0, abs=1e-6)

    bounds = state.curve.bounds()
    assert bounds is not None
    assert bounds[1] == pytest.approx(1010.0 + 3600.0)

    # Position holds long after the flight ended.
    clock.set_current_time(1010.0 + 1800.0)
    assert _height(ctl, "a") == pytest.approx(1000.0, abs=1e-6)


def test_flight_records_trail_points() -> None:
    ctl = _controller(trail_retention_s=-1)
    assert ctl.scene is not None
    ctl.move_to("a", LON, LAT, 0.0)
    ctl.move_to("a", LON, LAT, 1000.0, speed=100.0)
    _tick(ctl, 11)

    geometry = ctl.scene.trails.geometry("a")
    heights = [ecef_to_geodetic(p)[2] for p in geometry]
    assert len(heights) >= 10
    assert heights[0] == pytest.approx(0.0, abs=1e-6)
    assert heights[-1] == pytest.approx(1000.0, abs=1e-6)
    assert heights == sorted(heights)


def test_rejected_move_mutates_nothing() -> None:
    ctl = _controller()
    assert ctl.scene is not None
    ctl.move_to("a", LON, LAT, 0.0)
    entity = ctl.scene.entities.require("a")
    revision = entity.revision

    assert ctl.move_to("a", float("nan"), LAT, 10.0) is False
    assert ctl.move_to("a", LON, 95.0, 10.0) is False
    assert ctl.move_to("a", LON, LAT, 10.0, speed=0.0) is False
    assert ctl.move_to("b", LON, float("inf")) is False

    assert entity.revision == revision
    assert ctl.scene.entities.get("b") is None
    assert ctl.scene.clock.listener_count() == 0


def test_move_within_epsilon_places_entity_directly() -> None:
    ctl = _controller()
    assert ctl.scene is not None
    ctl.move_to("a", LON, LAT, 0.0)
    assert ctl.move_to("a", LON, LAT, 0.05) is True

    assert isinstance(ctl.state("a"), Idle)
    assert ctl.scene.clock.listener_count() == 0
    assert _height(ctl, "a") == pytest.approx(0.05, abs=1e-6)


def test_cancel_holds_entity_where_it_is() -> None:
    ctl = _controller()
    assert ctl.scene is not None
    ctl.move_to("a", LON, LAT, 0.0)
    ctl.move_to("a", LON, LAT, 1000.0, speed=100.0)
    _tick(ctl, 3)

    assert ctl.cancel("a") is True
    assert ctl.cancel("a") is False
    _tick(ctl, 5)
    assert _height(ctl, "a") == pytest.approx(300.0, abs=1e-3)
    assert ctl.scene.clock.listener_count() == 0


def test_no_scene_rejects_commands() -> None:
    ctl = LiveMotionController(None)
    assert ctl.move_to("a", LON, LAT) is False
    assert ctl.state("a") is None


def test_live_move_on_replayed_entity_restarts_its_trail() -> None:
    ctl = _controller()
    assert ctl.scene is not None
    waypoints = [{"lon": LON + 0.01 * i, "lat": LAT, "height": 0.0, "timestamp": 1000.0 + 50.0 * i} for i in range(3)]
    session = ReplaySession(ctl.scene)
    session.load("d", waypoints)
    session.play()
    _tick(ctl, 5)

    assert ctl.move_to("d", LON, LAT, 1000.0, speed=100.0) is True
    _tick(ctl, 5)

    trail = ctl.scene.trails.get("d")
    assert trail is not None
    stamps = [p.timestamp for p in trail.points]
    assert stamps == [1005.0, 1006.0, 1007.0, 1008.0, 1009.0, 1010.0]


def test_flight_trail_follows_clock_rewind() -> None:
    ctl = _controller(trail_retention_s=-1)
    assert ctl.scene is not None
    clock = ctl.scene.clock
    ctl.move_to("a", LON, LAT, 0.0)
    ctl.move_to("a", LON, LAT, 1000.0, speed=100.0)
    _tick(ctl, 5)

    clock.set_current_time(1000.0)
    _tick(ctl, 2)

    trail = ctl.scene.trails.get("a")
    assert trail is not None
    assert [p.timestamp for p in trail.points] == [1000.0, 1001.0, 1002.0]
    assert trail.last_update_time == 1002.0
    assert _height(ctl, "a") == pytest.approx(200.0, abs=1e-3)
