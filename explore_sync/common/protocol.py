"""Socket event names and JSON payload (de)serialization.

Inbound payloads are plain dicts delivered by the Socket.IO client. Every
``deserialize_*`` function validates the fields it needs and raises
MalformedEventError instead of letting KeyError/TypeError escape, so the
dispatcher can drop bad events without interrupting the event stream.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .constants import (
    DEFAULT_MOVE_FREQUENCY,
    DEFAULT_MOVE_SPEED,
    DEFAULT_SPAWN_X,
    DEFAULT_SPAWN_Y,
    INT32_MAX,
    INT32_MIN,
)
from .errors import MalformedEventError

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Socket.IO event names."""

    # Client -> server
    JOIN = "join"
    LEAVE = "leave"
    MOVE = "move"
    SKIN_CHANGE = "skin_change"
    EDIT_MAP = "edit_map"

    # Server -> client
    JOINED = "joined"
    ROOM_STATE = "room_state"
    USER_JOINED = "user_joined"
    USER_LEFT = "user_left"
    USER_MOVED = "user_moved"
    SKIN_CHANGED = "skin_changed"
    MAP_EDITED = "map_edited"
    ERROR = "error"


class Direction(Enum):
    """Facing/step directions, encoded as numeric keypad codes on the wire."""

    DOWN = 2
    LEFT = 4
    RIGHT = 6
    UP = 8

    @property
    def dx(self) -> int:
        """X component of a one-tile step."""
        return _DELTAS[self][0]

    @property
    def dy(self) -> int:
        """Y component of a one-tile step."""
        return _DELTAS[self][1]

    @classmethod
    def parse(cls, value: Any) -> Direction:
        """Parse a wire direction (numeric code or name)."""
        if isinstance(value, Direction):
            return value
        if isinstance(value, str) and not value.isdigit():
            try:
                return cls[value.upper()]
            except KeyError:
                raise MalformedEventError(f"unknown direction {value!r}") from None
        try:
            return cls(int(value))
        except (TypeError, ValueError, OverflowError):
            raise MalformedEventError(f"unknown direction {value!r}") from None


_DELTAS = {
    Direction.DOWN: (0, 1),
    Direction.LEFT: (-1, 0),
    Direction.RIGHT: (1, 0),
    Direction.UP: (0, -1),
}


@dataclass(frozen=True)
class TileEdit:
    """A single tile mutation on one layer."""

    x: int
    y: int
    z: int
    tile_id: int


@dataclass
class PlayerRecord:
    """A player as described by room_state / user_joined."""

    user_id: str
    x: int = DEFAULT_SPAWN_X
    y: int = DEFAULT_SPAWN_Y
    direction: Direction | None = None
    skin_id: str | None = None


@dataclass
class RoomState:
    guild_id: str
    players: list[PlayerRecord] = field(default_factory=list)


@dataclass
class MoveEvent:
    user_id: str
    direction: Direction
    x: int
    y: int
    move_speed: float = DEFAULT_MOVE_SPEED
    move_frequency: float = DEFAULT_MOVE_FREQUENCY


@dataclass
class SkinChanged:
    guild_id: str
    user_id: str
    skin_id: str | None


@dataclass
class MapEdited:
    guild_id: str | None
    edit: TileEdit


# Helpers


def _require_dict(data: Any, event: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise MalformedEventError(
            f"{event}: expected object payload, got {type(data).__name__}"
        )
    return data


def _user_id(data: dict[str, Any], event: str) -> str:
    uid = data.get("user_id", data.get("id"))
    if uid is None or uid == "":
        raise MalformedEventError(f"{event}: missing user_id")
    return str(uid)


def _int_field(
    data: dict[str, Any], key: str, event: str, default: int | None = None
) -> int:
    value = data.get(key)
    if value is None:
        if default is None:
            raise MalformedEventError(f"{event}: missing {key}")
        return default
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise MalformedEventError(
            f"{event}: {key} is not an integer: {value!r}"
        ) from None
    if not INT32_MIN <= number <= INT32_MAX:
        raise MalformedEventError(f"{event}: {key} out of range: {number}")
    return number


def _number_field(data: dict[str, Any], key: str, default: float) -> float:
    value = data.get(key)
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return number if math.isfinite(number) else default


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


# Inbound


def deserialize_joined(data: Any) -> str:
    """Parse ``joined`` and return the local user id."""
    return _user_id(_require_dict(data, "joined"), "joined")


def deserialize_player(data: Any) -> PlayerRecord:
    """Parse a player record from room_state or user_joined."""
    payload = _require_dict(data, "player")
    direction = payload.get("direction")
    return PlayerRecord(
        user_id=_user_id(payload, "player"),
        x=_int_field(payload, "x", "player", DEFAULT_SPAWN_X),
        y=_int_field(payload, "y", "player", DEFAULT_SPAWN_Y),
        direction=Direction.parse(direction) if direction is not None else None,
        skin_id=_optional_str(payload.get("skin_id")),
    )


def deserialize_room_state(data: Any) -> RoomState:
    """Parse ``room_state``.

    Non-list ``players`` is treated as empty; individual bad records are skipped.
    """
    payload = _require_dict(data, "room_state")
    guild_id = payload.get("guild_id")
    if guild_id is None:
        raise MalformedEventError("room_state: missing guild_id")
    raw_players = payload.get("players")
    players: list[PlayerRecord] = []
    for raw in raw_players if isinstance(raw_players, list) else []:
        try:
            players.append(deserialize_player(raw))
        except MalformedEventError as e:
            logger.warning(f"Skipping player record in room_state: {e}")
    return RoomState(guild_id=str(guild_id), players=players)


def deserialize_user_left(data: Any) -> str:
    return _user_id(_require_dict(data, "user_left"), "user_left")


def deserialize_user_moved(data: Any) -> MoveEvent:
    payload = _require_dict(data, "user_moved")
    if payload.get("direction") is None:
        raise MalformedEventError("user_moved: missing direction")
    return MoveEvent(
        user_id=_user_id(payload, "user_moved"),
        direction=Direction.parse(payload["direction"]),
        x=_int_field(payload, "x", "user_moved"),
        y=_int_field(payload, "y", "user_moved"),
        move_speed=_number_field(payload, "moveSpeed", DEFAULT_MOVE_SPEED),
        move_frequency=_number_field(
            payload, "moveFrequency", DEFAULT_MOVE_FREQUENCY
        ),
    )


def deserialize_skin_changed(data: Any) -> SkinChanged:
    payload = _require_dict(data, "skin_changed")
    guild_id = payload.get("guild_id")
    if guild_id is None:
        raise MalformedEventError("skin_changed: missing guild_id")
    return SkinChanged(
        guild_id=str(guild_id),
        user_id=_user_id(payload, "skin_changed"),
        skin_id=_optional_str(payload.get("skin_id")),
    )


def deserialize_tile_edit(data: Any) -> TileEdit:
    """Parse one ``{x, y, z, tile_id}`` entry."""
    payload = _require_dict(data, "tile")
    return TileEdit(
        x=_int_field(payload, "x", "tile"),
        y=_int_field(payload, "y", "tile"),
        z=_int_field(payload, "z", "tile", 0),
        tile_id=_int_field(payload, "tile_id", "tile"),
    )


def deserialize_map_edited(data: Any) -> MapEdited:
    payload = _require_dict(data, "map_edited")
    return MapEdited(
        guild_id=_optional_str(payload.get("guild_id")),
        edit=deserialize_tile_edit(payload),
    )


def deserialize_error(data: Any) -> str:
    """Return the error message; tolerates bare strings."""
    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        return str(data.get("message", ""))
    return ""


# Outbound


def serialize_join(room_id: str) -> dict[str, Any]:
    return {"guild_id": room_id}


def serialize_leave(room_id: str) -> dict[str, Any]:
    return {"guild_id": room_id}


def serialize_move(
    room_id: str,
    direction: Direction,
    x: int,
    y: int,
    move_speed: float,
    move_frequency: float,
) -> dict[str, Any]:
    return {
        "guild_id": room_id,
        "direction": direction.value,
        "x": x,
        "y": y,
        "moveSpeed": move_speed,
        "moveFrequency": move_frequency,
    }


def serialize_skin_change(room_id: str, skin_id: str) -> dict[str, Any]:
    return {"guild_id": room_id, "skin_id": skin_id}


def serialize_edit_map(room_id: str, edit: TileEdit) -> dict[str, Any]:
    return {
        "guild_id": room_id,
        "x": edit.x,
        "y": edit.y,
        "z": edit.z,
        "tile_id": edit.tile_id,
    }
