"""Space client: wires the sync components and orchestrates room changes."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

from ..common.constants import DEFAULT_MOVE_FREQUENCY, DEFAULT_MOVE_SPEED
from ..common.errors import MembershipRejectedError
from ..common.protocol import Direction
from .api import ExploreApi, ServerSummary
from .connection import ConnectionManager
from .map_sync import MapEditSync, TileBrush, TileGrid
from .presence import ActivityPublisher, PresenceReporter
from .registry import RemotePlayerRegistry, RenderSurface
from .session import ClientConfig, Room, Session
from .skins import SkinCatalog

logger = logging.getLogger(__name__)

RoomChangedCallback = Callable[[str], None]


class SpaceClient:
    """One running client: a session, its active room and the socket.

    Example usage:
        client = SpaceClient(Session(token=token), ClientConfig(server_url=url))
        await client.start()
        await client.enter_room("1234")
        ...
        await client.stop()
    """

    def __init__(
        self,
        session: Session,
        config: ClientConfig | None = None,
        api: ExploreApi | None = None,
        sio: Any = None,
        publisher: ActivityPublisher | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.session = session
        session.default_room_id = self.config.default_room_id
        session.can_edit = self.config.editor

        self.room = Room(session.room_id)
        self.skins = SkinCatalog()
        self.registry = RemotePlayerRegistry(
            session, self.room, skin_resolver=self.skins.resolve
        )
        self.map_sync = MapEditSync(session, self.room)
        self.brush = TileBrush(self.map_sync)
        self.api = api or ExploreApi(
            self.config.server_url,
            token=session.token,
            timeout=self.config.request_timeout,
        )
        self.connection = ConnectionManager(
            session,
            self.registry,
            self.map_sync,
            self.config.server_url,
            sio=sio,
            reconnect=self.config.reconnect,
            timeout=self.config.request_timeout,
        )
        self.map_sync.publisher = self.connection.send_tile_edit
        self.presence = PresenceReporter(session, self.api, publisher)

        # Local avatar, as reported by the host's movement observer
        self.local_position: tuple[int, int] | None = None
        self.local_facing = Direction.DOWN

        self._room_changed_callbacks: list[RoomChangedCallback] = []
        self._tasks: set[asyncio.Task[None]] = set()

        self.connection.on_membership_rejected = self._on_membership_rejected
        self.connection.on_reconnected = self._on_reconnected

    def on_room_changed(self, callback: RoomChangedCallback) -> RoomChangedCallback:
        """Decorator for room switches; the host reloads its map here."""
        self._room_changed_callbacks.append(callback)
        return callback

    # Lifecycle

    async def start(self) -> None:
        """Connect, load the skin catalog and join the session's room.

        Raises:
            AuthError: The session has no usable token.
            TransportError: The server could not be reached.
        """
        await self.connection.connect()
        self.skins.load(await self.api.fetch_skins())
        self.registry.refresh_appearances()
        await self.connection.join_room(self.session.room_id)
        await self.resync()

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await self.drain()
        await self.connection.disconnect()
        await self.api.close()

    async def drain(self) -> None:
        """Wait for background transitions/resyncs to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # Room transitions

    async def enter_room(self, room_id: str) -> None:
        previous = self.begin_transition(str(room_id))
        await self._complete_transition(previous, str(room_id))

    async def leave_to_default(self) -> None:
        await self.enter_room(self.session.default_room_id)

    def begin_transition(self, room_id: str) -> str | None:
        """Switch local state to ``room_id`` without waiting on the network.

        The old room's entities and queued edits are dropped immediately.
        Returns the room that still has to be left on the server, if any.
        """
        previous = self.connection.room_id
        self.room = Room(room_id)
        self.registry.bind_room(self.room)
        self.map_sync.bind_room(self.room)
        self.session.room_id = room_id
        self.local_position = None
        logger.info(f"Entering room {room_id}")
        for callback in self._room_changed_callbacks:
            try:
                callback(room_id)
            except Exception as e:
                logger.error(f"Error in on_room_changed callback: {e}")
        return previous

    async def _complete_transition(self, previous: str | None, room_id: str) -> None:
        if previous is not None:
            await self.connection.leave_room(previous)
        if self.session.room_id != room_id:
            return
        await self.connection.join_room(room_id)
        await self.resync()

    async def resync(self) -> None:
        """Fetch the tile list and presence for the current room.

        Results for a room the session has since left are discarded.
        """
        room_id = self.session.room_id
        if not self.session.is_default_room:
            tiles = await self.api.fetch_space_tiles(room_id)
            if self.session.room_id != room_id:
                logger.debug(f"Discarding tile list for stale room {room_id}")
                return
            self.map_sync.apply_pending_edits(tiles)
        await self.presence.report()

    def _on_membership_rejected(self, error: MembershipRejectedError) -> None:
        default = self.session.default_room_id
        if error.room_id == default:
            logger.error(f"Rejected from default room {default}")
            return
        logger.warning(f"{error}; returning to {default}")
        previous = self.begin_transition(default)
        self._spawn(self._complete_transition(previous, default))

    def _on_reconnected(self, room_id: str) -> None:
        if room_id == self.session.room_id:
            self._spawn(self.resync())

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background task failed: {task.exception()}")

    # Host ports

    def attach_surface(self, surface: RenderSurface) -> None:
        """Link a (re)created render surface to every remote entity."""
        self.registry.attach_surface(surface)
        self.map_sync.surface = surface

    def detach_surface(self) -> None:
        self.registry.detach_surface()
        self.map_sync.surface = None

    def on_map_ready(self, grid: TileGrid) -> None:
        self.map_sync.on_map_ready(grid)

    async def on_local_move(
        self,
        direction: Direction,
        x: int,
        y: int,
        move_speed: float = DEFAULT_MOVE_SPEED,
        move_frequency: float = DEFAULT_MOVE_FREQUENCY,
    ) -> None:
        """Movement observer: the local avatar finished a step."""
        self.local_position = (x, y)
        self.local_facing = direction
        await self.connection.send_move(direction, x, y, move_speed, move_frequency)

    # Catalog actions

    async def list_rooms(self) -> list[ServerSummary]:
        return await self.api.fetch_servers()

    async def change_skin(self, skin_id: str) -> bool:
        """Persist the skin, then announce it to the room."""
        if not await self.api.set_skin(skin_id):
            return False
        await self.connection.send_skin_change(skin_id)
        return True
