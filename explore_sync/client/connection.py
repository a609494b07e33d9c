"""Socket.IO connection lifecycle and inbound event dispatch."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable

import socketio
from socketio import exceptions as sio_exceptions

from ..common.constants import MEMBERSHIP_REQUIRED, REQUEST_TIMEOUT
from ..common.errors import (
    AuthError,
    MalformedEventError,
    MembershipRejectedError,
    TransportError,
)
from ..common.protocol import (
    Direction,
    EventType,
    TileEdit,
    deserialize_error,
    deserialize_joined,
    deserialize_map_edited,
    deserialize_player,
    deserialize_room_state,
    deserialize_skin_changed,
    deserialize_user_left,
    deserialize_user_moved,
    serialize_edit_map,
    serialize_join,
    serialize_leave,
    serialize_move,
    serialize_skin_change,
)
from .map_sync import MapEditSync
from .registry import RemotePlayerRegistry
from .session import Session

logger = logging.getLogger(__name__)

MembershipRejectedCallback = Callable[[MembershipRejectedError], None]
ReconnectedCallback = Callable[[str], None]


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"  # No room joined
    JOINING = "joining"
    IN_ROOM = "in_room"


class ConnectionManager:
    """Owns the socket and hands every inbound event to the registry/map sync.

    Handlers run synchronously and never await network I/O, so events for a
    room are applied in the order the transport delivered them.
    """

    def __init__(
        self,
        session: Session,
        registry: RemotePlayerRegistry,
        map_sync: MapEditSync,
        server_url: str,
        sio: Any = None,
        reconnect: bool = True,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self.session = session
        self.registry = registry
        self.map_sync = map_sync
        self.server_url = server_url
        self.timeout = timeout
        self.state = ConnectionState.DISCONNECTED
        # Last room we asked to join; rejoined after a transport reconnect
        self.room_id: str | None = None
        self._has_connected = False

        self.on_membership_rejected: MembershipRejectedCallback | None = None
        self.on_reconnected: ReconnectedCallback | None = None

        self._sio = sio or socketio.AsyncClient(
            reconnection=reconnect, logger=False, engineio_logger=False
        )
        self._handlers: dict[str, Callable[[Any], None]] = {
            EventType.JOINED.value: self._on_joined,
            EventType.ROOM_STATE.value: self._on_room_state,
            EventType.USER_JOINED.value: self._on_user_joined,
            EventType.USER_LEFT.value: self._on_user_left,
            EventType.USER_MOVED.value: self._on_user_moved,
            EventType.SKIN_CHANGED.value: self._on_skin_changed,
            EventType.MAP_EDITED.value: self._on_map_edited,
            EventType.ERROR.value: self._on_error,
        }

        self._sio.on("connect", self._on_connect)
        self._sio.on("disconnect", self._on_disconnect)
        for event in self._handlers:
            self._sio.on(event, self._make_handler(event))

    @property
    def connected(self) -> bool:
        return bool(self._sio.connected)

    # Lifecycle

    async def connect(self) -> ConnectionManager:
        """Open the socket, authenticated by the session token.

        Raises:
            AuthError: No token, or the server refused it. Re-acquire a
                token before retrying.
            TransportError: The server could not be reached.
        """
        if not self.session.token:
            raise AuthError("no bearer token in session")

        self.state = ConnectionState.CONNECTING
        try:
            await self._sio.connect(
                self.server_url,
                auth={"token": self.session.token},
                wait_timeout=self.timeout,
            )
        except sio_exceptions.ConnectionError as e:
            self.state = ConnectionState.DISCONNECTED
            reason = str(e).lower()
            if "auth" in reason or "token" in reason or "unauthorized" in reason:
                raise AuthError(f"server refused token: {e}") from e
            raise TransportError(f"failed to connect to {self.server_url}: {e}") from e
        return self

    async def disconnect(self) -> None:
        self.room_id = None
        if self._sio.connected:
            await self._sio.disconnect()
        self.state = ConnectionState.DISCONNECTED

    async def wait(self) -> None:
        """Block until the socket is closed for good."""
        await self._sio.wait()

    async def _on_connect(self) -> None:
        reconnect = self._has_connected
        self._has_connected = True
        self.state = ConnectionState.CONNECTED
        logger.info("Socket connected")
        if reconnect and self.room_id is not None:
            room_id = self.room_id
            logger.info(f"Reconnected, rejoining room {room_id}")
            await self.join_room(room_id)
            if self.on_reconnected is not None:
                self.on_reconnected(room_id)

    def _on_disconnect(self, reason: Any = None) -> None:
        self.state = ConnectionState.DISCONNECTED
        logger.warning(f"Socket disconnected ({reason or 'transport closed'})")

    # Outbound

    async def join_room(self, room_id: str) -> None:
        """Request membership of ``room_id``; supersedes any previous join."""
        self.room_id = room_id
        if not self._sio.connected:
            logger.debug(f"Not connected, deferring join of {room_id}")
            return
        self.state = ConnectionState.JOINING
        await self._emit(EventType.JOIN, serialize_join(room_id))

    async def leave_room(self, room_id: str) -> None:
        """Best-effort leave notification."""
        if self.room_id == room_id:
            self.room_id = None
            if self._sio.connected:
                self.state = ConnectionState.CONNECTED
        await self._emit(EventType.LEAVE, serialize_leave(room_id))

    async def send_move(
        self,
        direction: Direction,
        x: int,
        y: int,
        move_speed: float,
        move_frequency: float,
    ) -> None:
        await self._emit(
            EventType.MOVE,
            serialize_move(
                self.session.room_id, direction, x, y, move_speed, move_frequency
            ),
        )

    async def send_skin_change(self, skin_id: str) -> None:
        await self._emit(
            EventType.SKIN_CHANGE, serialize_skin_change(self.session.room_id, skin_id)
        )

    async def send_tile_edit(self, edit: TileEdit) -> None:
        await self._emit(
            EventType.EDIT_MAP, serialize_edit_map(self.session.room_id, edit)
        )

    async def _emit(self, event: EventType, payload: dict[str, Any]) -> None:
        """Fire-and-forget emit; dropped while disconnected."""
        if not self._sio.connected:
            logger.debug(f"Not connected, dropping {event.value}")
            return
        try:
            await self._sio.emit(event.value, payload)
        except sio_exceptions.SocketIOError as e:
            logger.warning(f"Failed to send {event.value}: {e}")

    # Inbound

    def _make_handler(self, event: str) -> Callable[..., None]:
        def handler(data: Any = None) -> None:
            self.dispatch(event, data)

        return handler

    def dispatch(self, event: str, data: Any) -> None:
        """Apply one inbound event. Malformed events are logged and dropped."""
        handler = self._handlers.get(event)
        if handler is None:
            logger.debug(f"Ignoring unknown event {event}")
            return
        try:
            handler(data)
        except MalformedEventError as e:
            logger.warning(f"Dropping malformed {event} event: {e}")

    def _in_other_room(self, data: Any) -> bool:
        """True if the payload names a room other than the current one."""
        if not isinstance(data, dict) or data.get("guild_id") is None:
            return False
        return str(data["guild_id"]) != str(self.session.room_id)

    def _on_joined(self, data: Any) -> None:
        self.session.user_id = deserialize_joined(data)
        if self.room_id is not None:
            self.state = ConnectionState.IN_ROOM
        logger.info(f"Joined as user {self.session.user_id}")
        self.registry.purge_self()

    def _on_room_state(self, data: Any) -> None:
        state = deserialize_room_state(data)
        if state.guild_id != str(self.session.room_id):
            logger.debug(f"Ignoring room_state for stale room {state.guild_id}")
            return
        self.registry.apply_snapshot(state.players)
        self.state = ConnectionState.IN_ROOM

    def _on_user_joined(self, data: Any) -> None:
        if self._in_other_room(data):
            return
        record = deserialize_player(data)
        self.registry.spawn(
            record.user_id, record.x, record.y, record.direction, record.skin_id
        )

    def _on_user_left(self, data: Any) -> None:
        if self._in_other_room(data):
            return
        self.registry.remove(deserialize_user_left(data))

    def _on_user_moved(self, data: Any) -> None:
        if self._in_other_room(data):
            return
        event = deserialize_user_moved(data)
        self.registry.move(
            event.user_id,
            event.direction,
            event.x,
            event.y,
            event.move_speed,
            event.move_frequency,
        )

    def _on_skin_changed(self, data: Any) -> None:
        event = deserialize_skin_changed(data)
        if event.guild_id != str(self.session.room_id):
            return
        self.registry.update_skin(event.user_id, event.skin_id)

    def _on_map_edited(self, data: Any) -> None:
        if self._in_other_room(data):
            return
        edit = deserialize_map_edited(data).edit
        self.map_sync.apply_remote_edit(edit.x, edit.y, edit.z, edit.tile_id)

    def _on_error(self, data: Any) -> None:
        message = deserialize_error(data)
        logger.error(f"Socket error: {message}")
        if MEMBERSHIP_REQUIRED.lower() not in message.lower():
            return
        error = MembershipRejectedError(self.session.room_id, message)
        logger.warning("You must join this server to enter!")
        if self.on_membership_rejected is not None:
            self.on_membership_rejected(error)
