"""Presence status derived from the current room."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable

from .session import Session

if TYPE_CHECKING:
    from .api import ExploreApi, RoomInfo

logger = logging.getLogger(__name__)

LOBBY_NAME = "Lobby"
LOBBY_ICON = "lobby"
UNKNOWN_ROOM_NAME = "Unknown server"


@dataclass(frozen=True)
class Activity:
    """Rich presence payload."""

    details: str
    room_name: str
    room_icon: str
    started_at: float
    large_text: str = "Exploring"
    large_image: str = "explore"


ActivityPublisher = Callable[[Activity], Awaitable[None]]


class PresenceReporter:
    """Builds the status string for the active room and publishes it."""

    def __init__(
        self,
        session: Session,
        api: ExploreApi | None = None,
        publisher: ActivityPublisher | None = None,
        started_at: float | None = None,
    ) -> None:
        self.session = session
        self.api = api
        self.publisher = publisher
        self.started_at = time.time() if started_at is None else started_at
        self.current: Activity | None = None

    @property
    def status(self) -> str:
        return self.current.details if self.current else ""

    def describe(self, room_info: RoomInfo | None = None) -> Activity:
        if self.session.is_default_room:
            return Activity("In the lobby", LOBBY_NAME, LOBBY_ICON, self.started_at)
        name = (room_info.name if room_info else None) or UNKNOWN_ROOM_NAME
        icon = (room_info.icon_url if room_info else None) or LOBBY_ICON
        return Activity(f"In {name}'s space", name, icon, self.started_at)

    async def report(self) -> Activity | None:
        """Fetch room metadata if needed, then publish the activity.

        Returns None if the room changed while the metadata was in flight.
        """
        room_id = self.session.room_id
        room_info = None
        if not self.session.is_default_room and self.api is not None:
            room_info = await self.api.fetch_server(room_id)
            if self.session.room_id != room_id:
                logger.debug(f"Discarding presence for stale room {room_id}")
                return None

        activity = self.describe(room_info)
        self.current = activity
        if self.publisher is not None:
            try:
                await self.publisher(activity)
            except Exception as e:
                logger.warning(f"Failed to publish activity: {e}")
        return activity
