from __future__ import annotations

from .client import WaylineClient
from .handles import EntityHandle, EntityOps, ReplayHandle, ReplayOps

__all__ = ["WaylineClient", "EntityHandle", "EntityOps", "ReplayHandle", "ReplayOps"]
