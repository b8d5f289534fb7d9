from __future__ import annotations

from .app import app, create_app
from .server import WaylineServer, run
from .ticker import SceneTicker, ticker_for

__all__ = ["app", "create_app", "WaylineServer", "SceneTicker", "ticker_for", "run"]
