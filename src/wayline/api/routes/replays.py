from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException

from ...core.errors import SequenceError
from ...core.service import SceneService
from ..parsing import parse_float, parse_replay_body


def mount_replays_api(app: FastAPI, service: SceneService) -> None:
    @app.post("/api/replays")
    def create_replay(body: dict) -> dict[str, Any]:
        try:
            tracks, speed, loop, strict = parse_replay_body(body)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        session = service.start_replay_tracks(tracks, speed=speed, loop=loop, strict=strict)
        if session is None:
            raise HTTPException(status_code=400, detail="Invalid replay data")
        return session.to_dict()

    @app.get("/api/replays")
    def list_replays() -> list[dict[str, Any]]:
        with service.lock:
            return [s.to_dict() for s in service.list_replays()]

    @app.get("/api/replays/{session_id}")
    def get_replay(session_id: str) -> dict[str, Any]:
        info = service.replay_info(session_id)
        if info is None:
            raise HTTPException(status_code=404, detail="Unknown replay")
        return info

    def _run(session_id: str, operation: str, *args: Any) -> dict[str, Any]:
        try:
            ok = service.replay_command(session_id, operation, *args)
        except KeyError as e:
            raise HTTPException(status_code=404, detail="Unknown replay") from e
        except SequenceError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return {"ok": bool(ok), "replay": get_replay(session_id)}

    @app.post("/api/replays/{session_id}/seek")
    def seek_replay(session_id: str, body: dict) -> dict[str, Any]:
        try:
            seconds = parse_float(body.get("seconds"), field="seconds")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return _run(session_id, "seek", seconds)

    @app.post("/api/replays/{session_id}/{operation}")
    def replay_operation(session_id: str, operation: str) -> dict[str, Any]:
        if operation not in {"play", "pause", "continue", "stop", "destroy"}:
            raise HTTPException(status_code=404, detail="Unknown replay operation")
        return _run(session_id, operation)
