"""Session, room and remote entity state."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..common.constants import (
    DEFAULT_MOVE_FREQUENCY,
    DEFAULT_MOVE_SPEED,
    DEFAULT_ROOM_ID,
    DEFAULT_SERVER_URL,
    REQUEST_TIMEOUT,
)
from ..common.protocol import Direction, TileEdit
from .skins import DEFAULT_APPEARANCE, Appearance


@dataclass
class ClientConfig:
    """Configuration for a SpaceClient."""

    server_url: str = DEFAULT_SERVER_URL
    default_room_id: str = DEFAULT_ROOM_ID
    editor: bool = False  # Allow local tile edits outside the default room
    reconnect: bool = True
    request_timeout: float = REQUEST_TIMEOUT


@dataclass
class Session:
    """Identity and room selection of the running client.

    Exactly one per client. ``user_id`` may be unknown until the server
    sends ``joined``.
    """

    token: str | None
    user_id: str | None = None
    display_name: str | None = None
    room_id: str = DEFAULT_ROOM_ID
    default_room_id: str = DEFAULT_ROOM_ID
    can_edit: bool = False

    @property
    def is_default_room(self) -> bool:
        return self.room_id == self.default_room_id

    @property
    def is_editor(self) -> bool:
        """Editing is never allowed in the default room."""
        return self.can_edit and not self.is_default_room

    def is_self(self, user_id: str | None) -> bool:
        return (
            user_id is not None
            and self.user_id is not None
            and str(user_id) == str(self.user_id)
        )


@dataclass
class RemoteEntity:
    """Logical state of one remote participant.

    Render handles are not stored here; the registry keeps them in a
    separate lookup keyed by ``user_id``.
    """

    user_id: str
    x: int
    y: int
    facing: Direction = Direction.DOWN
    skin_id: str | None = None
    move_speed: float = DEFAULT_MOVE_SPEED
    move_frequency: float = DEFAULT_MOVE_FREQUENCY
    appearance: Appearance = DEFAULT_APPEARANCE

    @property
    def position(self) -> tuple[int, int]:
        return (self.x, self.y)


@dataclass
class Room:
    """The active room: its members and tile edits waiting for the grid.

    Replaced wholesale on every room switch so nothing leaks across rooms.
    """

    room_id: str
    members: dict[str, RemoteEntity] = field(default_factory=dict)
    pending_tile_edits: list[TileEdit] = field(default_factory=list)
