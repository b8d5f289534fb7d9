from __future__ import annotations

from typing import Any, Protocol, Self


class EntityOps(Protocol):
    def move_to(
        self,
        entity_id: str,
        lon: float,
        lat: float,
        height: float = 0.0,
        speed: float | None = None,
        *,
        timeout_s: float = 10.0,
    ) -> "EntityHandle": ...
    def cancel_flight(self, entity_id: str, *, timeout_s: float = 10.0) -> bool: ...
    def delete_entity(self, entity_id: str, *, timeout_s: float = 10.0) -> None: ...
    def get_entity_meta(self, entity_id: str, *, timeout_s: float = 10.0) -> dict[str, Any]: ...
    def get_trail_meta(self, entity_id: str, *, timeout_s: float = 10.0) -> dict[str, Any]: ...
    def set_trail_visibility(self, entity_id: str, visible: bool, *, timeout_s: float = 10.0) -> None: ...


class ReplayOps(Protocol):
    def replay_command(
        self,
        replay_id: str,
        operation: str,
        *,
        seconds: float | None = None,
        timeout_s: float = 10.0,
    ) -> bool: ...
    def get_replay_meta(self, replay_id: str, *, timeout_s: float = 10.0) -> dict[str, Any]: ...


class EntityHandle(str):
    """An entity id that also knows how to command the entity it names."""

    def __new__(cls, entity_id: str, *, ops: EntityOps) -> Self:
        obj = str.__new__(cls, entity_id)
        obj._ops = ops
        return obj

    @property
    def id(self) -> str:
        return str(self)

    def get_meta(self, *, timeout_s: float = 10.0) -> dict[str, Any]:
        return self._ops.get_entity_meta(self.id, timeout_s=timeout_s)

    @property
    def meta(self) -> dict[str, Any]:
        return self.get_meta()

    @property
    def is_flying(self) -> bool:
        return bool(self.get_meta().get("isFlying"))

    @property
    def position(self) -> tuple[float, float, float]:
        """Current (lon, lat, height) at the scene clock time."""
        value = self.get_meta().get("position")
        if not isinstance(value, dict):
            raise ValueError(f"Entity '{self.id}' metadata does not contain a valid position")
        return (float(value["lon"]), float(value["lat"]), float(value["height"]))

    def move_to(
        self,
        lon: float,
        lat: float,
        height: float = 0.0,
        speed: float | None = None,
        *,
        timeout_s: float = 10.0,
    ) -> Self:
        self._ops.move_to(self.id, lon, lat, height, speed, timeout_s=timeout_s)
        return self

    def cancel(self, *, timeout_s: float = 10.0) -> bool:
        return self._ops.cancel_flight(self.id, timeout_s=timeout_s)

    def trail(self, *, timeout_s: float = 10.0) -> dict[str, Any]:
        return self._ops.get_trail_meta(self.id, timeout_s=timeout_s)

    def show_trail(self, *, timeout_s: float = 10.0) -> None:
        self._ops.set_trail_visibility(self.id, True, timeout_s=timeout_s)

    def hide_trail(self, *, timeout_s: float = 10.0) -> None:
        self._ops.set_trail_visibility(self.id, False, timeout_s=timeout_s)

    def delete(self, *, timeout_s: float = 10.0) -> None:
        self._ops.delete_entity(self.id, timeout_s=timeout_s)


class ReplayHandle(str):
    """A replay session id with the transport controls bound to it.

    Each control returns True when it changed the session. Out-of-order calls
    on a non-strict session return False.
    """

    def __new__(cls, replay_id: str, *, ops: ReplayOps) -> Self:
        obj = str.__new__(cls, replay_id)
        obj._ops = ops
        return obj

    @property
    def id(self) -> str:
        return str(self)

    def get_meta(self, *, timeout_s: float = 10.0) -> dict[str, Any]:
        return self._ops.get_replay_meta(self.id, timeout_s=timeout_s)

    @property
    def meta(self) -> dict[str, Any]:
        return self.get_meta()

    @property
    def state(self) -> str:
        return str(self.get_meta().get("state"))

    @property
    def is_playing(self) -> bool:
        return bool(self.get_meta().get("isPlaying"))

    @property
    def entity_ids(self) -> list[str]:
        return list(self.get_meta().get("entityIds") or [])

    def play(self, *, timeout_s: float = 10.0) -> bool:
        return self._ops.replay_command(self.id, "play", timeout_s=timeout_s)

    def pause(self, *, timeout_s: float = 10.0) -> bool:
        return self._ops.replay_command(self.id, "pause", timeout_s=timeout_s)

    def resume(self, *, timeout_s: float = 10.0) -> bool:
        return self._ops.replay_command(self.id, "continue", timeout_s=timeout_s)

    def stop(self, *, timeout_s: float = 10.0) -> bool:
        return self._ops.replay_command(self.id, "stop", timeout_s=timeout_s)

    def seek(self, seconds: float, *, timeout_s: float = 10.0) -> bool:
        return self._ops.replay_command(self.id, "seek", seconds=seconds, timeout_s=timeout_s)

    def destroy(self, *, timeout_s: float = 10.0) -> bool:
        return self._ops.replay_command(self.id, "destroy", timeout_s=timeout_s)

    def info(self, *, timeout_s: float = 10.0) -> dict[str, Any]:
        return self.get_meta(timeout_s=timeout_s)
