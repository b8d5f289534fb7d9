from __future__ import annotations

from .clock import mount_clock_api
from .entities import mount_entities_api
from .replays import mount_replays_api

__all__ = ["mount_clock_api", "mount_entities_api", "mount_replays_api"]
