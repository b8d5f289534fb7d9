from __future__ import annotations

import numpy as np
import pytest

from wayline.core.clock import ClockRange, SceneClock
from wayline.core.entities import ReplayDriven
from wayline.core.errors import PreconditionError, SequenceError, TrajectoryError
from wayline.core.geodesy import ecef_to_geodetic
from wayline.core.replay import ReplaySession, ReplayState
from wayline.core.scene import Scene
from wayline.core.service import SceneService


def _track(t0: float, lon0: float) -> list[dict[str, float]]:
    return [{"lon": lon0 + 0.01 * i, "lat": 0.0, "height": 100.0, "timestamp": t0 + 5.0 * i} for i in range(4)]


def _service() -> SceneService:
    return SceneService(Scene(clock=SceneClock(current_time=0.0)))


def _session(svc: SceneService, **kwargs: object) -> ReplaySession:
    svc.configure_clock(0.0, 20.0, 1.0, False)
    session = svc.start_replay_tracks({"a": _track(0.0, 0.0), "b": _track(5.0, 1.0)}, **kwargs)  # type: ignore[arg-type]
    assert session is not None
    return session


def _lon(svc: SceneService, entity_id: str) -> float:
    pos = svc.entity_position(entity_id)
    assert pos is not None
    return ecef_to_geodetic(pos)[0]


def _tick(svc: SceneService, n: int, dt: float = 1.0) -> None:
    for _ in range(n):
        svc.tick(dt)


def test_two_entities_reach_their_final_waypoints() -> None:
    svc = _service()
    session = _session(svc)
    assert session.start_time == 0.0
    assert session.stop_time == 20.0

    assert session.play() is True
    _tick(svc, 20)

    assert svc.scene.clock.current_time == pytest.approx(20.0)
    assert _lon(svc, "a") == pytest.approx(0.03, abs=1e-9)
    assert _lon(svc, "b") == pytest.approx(1.03, abs=1e-9)
    assert session.is_playing is False
    assert session.state == ReplayState.COMPLETED


def test_entity_holds_first_waypoint_before_its_track_starts() -> None:
    svc = _service()
    session = _session(svc)
    session.play()
    _tick(svc, 3)
    assert _lon(svc, "b") == pytest.approx(1.0, abs=1e-9)
    assert 0.0 < _lon(svc, "a") < 0.01


def test_load_creates_entities_and_full_trails() -> None:
    svc = _service()
    session = _session(svc)
    for eid in ("a", "b"):
        entity = svc.get_entity(eid)
        assert entity is not None
        assert isinstance(entity.motion, ReplayDriven)
        assert entity.motion.session_id == session.id
        trail = svc.get_trail(eid)
        assert trail is not None
        assert len(trail.points) == 4


def test_transport_before_play_is_ignored() -> None:
    svc = _service()
    session = _session(svc)
    for op in ("pause", "continue", "stop", "destroy"):
        assert svc.replay_command(session.id, op) is False
    assert session.seek(3.0) is False
    assert session.state == ReplayState.READY
    assert svc.get_entity("a") is not None


def test_strict_session_raises_sequence_error() -> None:
    svc = _service()
    session = _session(svc, strict=True)
    with pytest.raises(SequenceError) as info:
        session.pause()
    assert info.value.operation == "pause"
    assert info.value.state == "ready"

    session.play()
    session.destroy()
    with pytest.raises(SequenceError):
        session.destroy()
    with pytest.raises(SequenceError):
        session.play()


def test_seek_is_idempotent() -> None:
    svc = _service()
    session = _session(svc)
    session.play()
    _tick(svc, 2)

    assert session.seek(7.5) is True
    first = svc.entity_position("a")
    assert session.seek(7.5) is True
    second = svc.entity_position("a")

    assert svc.scene.clock.current_time == pytest.approx(7.5)
    assert first is not None and second is not None
    assert np.allclose(first, second)
    assert session.state == ReplayState.PLAYING


def test_seek_rejects_non_finite_offsets() -> None:
    svc = _service()
    session = _session(svc)
    session.play()
    with pytest.raises(PreconditionError):
        session.seek(float("nan"))


def test_stop_then_play_reproduces_initial_motion() -> None:
    svc = _service()
    session = _session(svc)
    session.play()
    initial = svc.entity_position("a")
    _tick(svc, 3)
    at_three = svc.entity_position("a")
    _tick(svc, 4)

    assert session.stop() is True
    assert session.state == ReplayState.STOPPED
    assert svc.scene.clock.current_time == pytest.approx(0.0)
    assert svc.scene.clock.should_animate is False
    assert np.allclose(svc.entity_position("a"), initial)  # type: ignore[arg-type]

    assert session.play() is True
    _tick(svc, 3)
    assert np.allclose(svc.entity_position("a"), at_three)  # type: ignore[arg-type]


def test_pause_and_continue() -> None:
    svc = _service()
    session = _session(svc)
    session.play()
    _tick(svc, 4)
    assert session.pause() is True
    assert session.pause() is False
    _tick(svc, 4)
    assert svc.scene.clock.current_time == pytest.approx(4.0)

    assert session.resume() is True
    _tick(svc, 2)
    assert svc.scene.clock.current_time == pytest.approx(6.0)


def test_destroy_removes_everything_once() -> None:
    svc = _service()
    session = _session(svc)
    session.play()
    _tick(svc, 5)

    assert svc.replay_command(session.id, "destroy") is True
    assert svc.get_entity("a") is None
    assert svc.get_entity("b") is None
    assert svc.get_trail("a") is None
    clock = svc.scene.clock
    assert clock.listener_count("replay:") == 0
    assert clock.clock_range == ClockRange.UNBOUNDED
    assert session.state == ReplayState.DESTROYED
    assert session.has_started is False

    assert svc.replay_command(session.id, "destroy") is False
    assert session.load("c", _track(0.0, 2.0)) is None


def test_destroy_keeps_entities_that_another_session_took_over() -> None:
    svc = _service()
    first = _session(svc)
    second = svc.start_replay("a", _track(0.0, 5.0))
    assert second is not None

    first.play()
    first.destroy()
    assert svc.get_entity("a") is not None
    assert svc.get_entity("b") is None


def test_duplicate_timestamps_keep_the_last_waypoint() -> None:
    svc = _service()
    waypoints = [
        (0.0, 0.0, 0.0, 0.0),
        (0.01, 0.0, 0.0, 5.0),
        (0.02, 0.0, 0.0, 5.0),
        (0.03, 0.0, 0.0, 10.0),
    ]
    session = svc.start_replay("a", waypoints)
    assert session is not None
    curve = session.curves["a"]
    assert len(curve) == 3
    assert ecef_to_geodetic(curve.evaluate(5.0))[0] == pytest.approx(0.02, abs=1e-9)


def test_invalid_tracks_are_rejected_without_side_effects() -> None:
    svc = _service()
    assert svc.start_replay("a", [(0.0, 0.0, 0.0, 0.0)]) is None
    assert svc.start_replay_tracks({"a": _track(0.0, 0.0), "b": [{"lat": 0.0, "timestamp": 1.0}]}) is None
    assert svc.get_entity("a") is None
    assert svc.list_replays() == []

    session = ReplaySession(svc.scene)
    with pytest.raises(TrajectoryError):
        session.load("a", [])
    with pytest.raises(PreconditionError):
        session.play()
    with pytest.raises(PreconditionError):
        ReplaySession(svc.scene, speed=0.0)


def test_loop_session_keeps_playing_past_stop() -> None:
    svc = _service()
    session = _session(svc, loop=True)
    assert svc.scene.clock.clock_range == ClockRange.CLAMPED
    svc.configure_clock(0.0, 20.0, 1.0, True)
    session.play()
    _tick(svc, 21)
    assert session.is_playing is True
    assert svc.scene.clock.current_time == pytest.approx(0.0)


def test_destroyed_sessions_leave_the_registry() -> None:
    svc = _service()
    for _ in range(50):
        session = _session(svc)
        assert svc.replay_command(session.id, "play") is True
        assert svc.replay_command(session.id, "destroy") is True
    assert svc.list_replays() == []
    assert svc.get_replay(session.id) is None
    assert svc.replay_info(session.id)["state"] == "destroyed"
    with pytest.raises(KeyError):
        svc.replay_command("never-existed", "destroy")


def test_direct_destroy_is_dropped_on_next_lookup() -> None:
    svc = _service()
    session = _session(svc)
    session.play()
    session.destroy()
    assert svc.list_replays() == []
    assert svc.replay_command(session.id, "play") is False


def test_strict_destroyed_session_keeps_raising() -> None:
    svc = _service()
    session = _session(svc, strict=True)
    svc.replay_command(session.id, "play")
    assert svc.replay_command(session.id, "destroy") is True
    with pytest.raises(SequenceError):
        svc.replay_command(session.id, "destroy")
