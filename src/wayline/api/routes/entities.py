from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException

from ...core.service import SceneService
from ..parsing import parse_bool, parse_float, parse_optional_float
from ..serializers import entity_to_dict, trail_to_dict


def mount_entities_api(app: FastAPI, service: SceneService) -> None:
    @app.get("/api/entities")
    def list_entities() -> list[dict[str, Any]]:
        with service.lock:
            now = service.scene.clock.current_time
            return [entity_to_dict(e, clock_time=now) for e in service.list_entities()]

    @app.get("/api/entities/{entity_id}")
    def get_entity(entity_id: str) -> dict[str, Any]:
        with service.lock:
            e = service.get_entity(entity_id)
            if e is None:
                raise HTTPException(status_code=404, detail="Unknown entity")
            return entity_to_dict(e, clock_time=service.scene.clock.current_time)

    @app.delete("/api/entities/{entity_id}")
    def delete_entity(entity_id: str) -> dict[str, bool]:
        if not service.remove_entity(entity_id):
            raise HTTPException(status_code=404, detail="Unknown entity")
        return {"ok": True}

    @app.post("/api/entities/{entity_id}/move")
    def move_entity(entity_id: str, body: dict) -> dict[str, Any]:
        try:
            lon = parse_float(body.get("lon", body.get("lng")), field="lon")
            lat = parse_float(body.get("lat"), field="lat")
            height = parse_float(body.get("height"), field="height", default=0.0)
            speed = parse_optional_float(body.get("speed"), field="speed")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        if not service.move_to(entity_id, lon, lat, height, speed):
            raise HTTPException(status_code=400, detail="Move command rejected")
        return get_entity(entity_id)

    @app.post("/api/entities/{entity_id}/cancel")
    def cancel_flight(entity_id: str) -> dict[str, bool]:
        if service.get_entity(entity_id) is None:
            raise HTTPException(status_code=404, detail="Unknown entity")
        return {"ok": service.cancel_flight(entity_id)}

    @app.get("/api/trails/{entity_id}")
    def get_trail(entity_id: str, points: str | None = None) -> dict[str, Any]:
        try:
            include_points = parse_bool(points, field="points") if points is not None else True
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        with service.lock:
            t = service.get_trail(entity_id)
            if t is None:
                raise HTTPException(status_code=404, detail="Unknown trail")
            return trail_to_dict(t, include_points=include_points)

    @app.patch("/api/trails/{entity_id}")
    def update_trail(entity_id: str, body: dict) -> dict[str, Any]:
        try:
            visible = parse_bool(body.get("visible"), field="visible")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        try:
            t = service.set_trail_visible(entity_id, visible)
        except KeyError as e:
            raise HTTPException(status_code=404, detail="Unknown trail") from e
        return trail_to_dict(t, include_points=False)
