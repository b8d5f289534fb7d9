from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from ..core.service import SERVICE, SceneService
from .parsing import parse_float, parse_optional_float
from .routes import mount_clock_api, mount_entities_api, mount_replays_api


def create_api_app(service: SceneService | None = None) -> FastAPI:
    svc = SERVICE if service is None else service
    app = FastAPI(title="wayline", version="0.1.0")

    # Browser viewers on other origins must be listed in WAYLINE_CORS_ORIGINS.
    origins = list(svc.get_settings().cors_origins)
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    mount_clock_api(app, svc)
    mount_entities_api(app, svc)
    mount_replays_api(app, svc)

    @app.get("/healthz")
    def healthz() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/api/events")
    def events() -> dict[str, Any]:
        # Minimal polling endpoint for viewers.
        return {
            "globalRevision": svc.global_revision(),
            "clock": svc.clock_info(),
        }

    @app.post("/api/reset")
    def reset_scene() -> dict[str, bool]:
        svc.reset()
        return {"ok": True}

    @app.get("/api/settings")
    def get_settings() -> dict[str, Any]:
        return svc.get_settings().to_dict()

    @app.patch("/api/settings")
    def update_settings(body: dict) -> dict[str, Any]:
        # Supported:
        # - trailRetentionSeconds: seconds, or -1 / null for unbounded
        # - trailMinDistance: metres
        # - defaultSpeed: metres per second
        known = {"trailRetentionSeconds", "trailMinDistance", "defaultSpeed"}
        if not known.intersection(body):
            raise HTTPException(status_code=400, detail=f"Expected one of: {', '.join(sorted(known))}")

        changes: dict[str, Any] = {}
        try:
            if "trailRetentionSeconds" in body:
                changes["trail_retention_s"] = parse_optional_float(
                    body.get("trailRetentionSeconds"), field="trailRetentionSeconds"
                )
            if "trailMinDistance" in body:
                changes["trail_min_distance_m"] = parse_float(body.get("trailMinDistance"), field="trailMinDistance")
            if "defaultSpeed" in body:
                changes["default_speed_mps"] = parse_float(body.get("defaultSpeed"), field="defaultSpeed")
            updated = svc.update_settings(**changes)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        return {"ok": True, **updated.to_dict()}

    return app


__all__ = ["create_api_app"]
