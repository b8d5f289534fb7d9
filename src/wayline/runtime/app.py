from __future__ import annotations

import contextlib
from typing import AsyncIterator

from fastapi import FastAPI

from ..api import create_api_app
from ..core.service import SERVICE, SceneService
from .ticker import ticker_for


def create_app(service: SceneService | None = None, *, tick_hz: float | None = None) -> FastAPI:
    """Create the full app: API plus a background ticker driving the scene clock.

    `tick_hz=None` uses the rate from the scene settings; `tick_hz=0` disables
    the ticker so the clock only moves through `POST /api/clock/tick`.
    """
    svc = SERVICE if service is None else service
    app = create_api_app(svc)

    hz = svc.get_settings().tick_hz if tick_hz is None else float(tick_hz)
    if hz <= 0.0:
        return app

    ticker = ticker_for(svc, hz=hz)

    @contextlib.asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        ticker.acquire()
        try:
            yield
        finally:
            ticker.release()

    app.router.lifespan_context = lifespan
    app.state.ticker = ticker
    return app


# Convenience for uvicorn: `uvicorn wayline.runtime.app:app`
app = create_app()
