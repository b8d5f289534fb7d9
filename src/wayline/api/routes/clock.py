from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException

from ...core.service import SceneService
from ..parsing import parse_bool, parse_float


def mount_clock_api(app: FastAPI, service: SceneService) -> None:
    @app.get("/api/clock")
    def get_clock() -> dict[str, Any]:
        return service.clock_info()

    @app.put("/api/clock")
    def configure_clock(body: dict) -> dict[str, Any]:
        try:
            start = parse_float(body.get("startTime"), field="startTime")
            end = parse_float(body.get("endTime"), field="endTime")
            rate = parse_float(body.get("rate"), field="rate", default=1.0)
            loop = parse_bool(body.get("loop", False), field="loop")
            service.configure_clock(start, end, rate, loop)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return service.clock_info()

    @app.post("/api/clock/tick")
    def tick_clock(body: dict) -> dict[str, Any]:
        # Manual stepping for headless setups and tests; the runtime ticker does this continuously.
        try:
            dt = parse_float(body.get("dt"), field="dt")
            steps = int(body.get("steps", 1))
        except (TypeError, ValueError) as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        if steps < 1 or steps > 100_000:
            raise HTTPException(status_code=400, detail="steps must be between 1 and 100000")
        for _ in range(steps):
            service.tick(dt)
        return service.clock_info()
