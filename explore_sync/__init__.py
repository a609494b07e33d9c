"""Client-side synchronization for shared explore spaces.

Example usage:

    from explore_sync import ClientConfig, Session, SpaceClient

    async def main():
        client = SpaceClient(Session(token=token), ClientConfig(server_url=url))

        @client.on_room_changed
        def on_room_changed(room_id):
            client.on_map_ready(TileGrid(24, 24))

        await client.start()
        await client.enter_room("1234")
        ...
        await client.stop()

    asyncio.run(main())
"""

from .client.api import ExploreApi, Profile, RoomInfo, ServerSummary
from .client.map_sync import MapEditSync, TileBrush, TileGrid
from .client.registry import RemotePlayerRegistry, RenderSurface
from .client.session import ClientConfig, RemoteEntity, Room, Session
from .client.space_client import SpaceClient
from .common.errors import (
    AuthError,
    ExploreSyncError,
    FetchError,
    MalformedEventError,
    MembershipRejectedError,
    TransportError,
)
from .common.protocol import Direction, TileEdit

__all__ = [
    "SpaceClient",
    "ClientConfig",
    "Session",
    "Room",
    "RemoteEntity",
    "RemotePlayerRegistry",
    "RenderSurface",
    "MapEditSync",
    "TileBrush",
    "TileGrid",
    "ExploreApi",
    "Profile",
    "RoomInfo",
    "ServerSummary",
    "Direction",
    "TileEdit",
    "ExploreSyncError",
    "AuthError",
    "TransportError",
    "MembershipRejectedError",
    "MalformedEventError",
    "FetchError",
]
