"""End-to-end room flow: explorer input, socket events and room switches.

Drives a SpaceClient through the terminal explorer with an in-memory
socket and REST fake:
- Joining a space applies its snapshot and stored tiles
- Keyboard movement is published as move events
- Editing works in a space and is refused in the lobby
- Membership rejection and the leave key both return to the lobby
"""

from __future__ import annotations

import pytest
from blessed import Terminal
from blessed.keyboard import Keystroke

from explore_sync.client.api import RoomInfo
from explore_sync.client.explorer import Explorer
from explore_sync.client.session import ClientConfig, Session
from explore_sync.client.space_client import SpaceClient
from explore_sync.common.constants import DEFAULT_SPAWN_X, DEFAULT_SPAWN_Y
from explore_sync.common.protocol import TileEdit


@pytest.fixture
def explorer(fake_sio, fake_api) -> Explorer:
    fake_api.tiles["42"] = [TileEdit(2, 2, 0, 7)]
    fake_api.rooms["42"] = RoomInfo("42", "Cafe")
    client = SpaceClient(
        Session(token="tok", room_id="42"),
        ClientConfig(server_url="http://server", editor=True),
        api=fake_api,
        sio=fake_sio,
    )
    return Explorer(client, terminal=Terminal(force_styling=None))


class TestRoomTransition:
    """A full visit to a space and back to the lobby."""

    @pytest.mark.asyncio
    async def test_space_visit(self, explorer: Explorer, fake_sio) -> None:
        client = explorer.client
        await client.start()

        fake_sio.deliver("joined", {"user_id": "9"})
        fake_sio.deliver(
            "room_state",
            {
                "guild_id": "42",
                "players": [
                    {"id": "9", "x": 11, "y": 11},
                    {"id": "1", "x": 5, "y": 5},
                    {"id": "2", "x": 7, "y": 7},
                ],
            },
        )
        assert sorted(e.user_id for e in client.registry.entities()) == ["1", "2"]
        assert len(explorer.ui.sprites) == 2
        assert client.map_sync.grid.tile_id(2, 2, 0) == 7
        assert client.presence.status == "In Cafe's space"

        # Remote traffic
        fake_sio.deliver("user_moved", {"id": "1", "direction": 8, "x": 5, "y": 4})
        fake_sio.deliver("user_left", {"user_id": "2"})
        fake_sio.deliver(
            "map_edited", {"guild_id": "42", "x": 3, "y": 2, "tile_id": 17}
        )
        assert client.registry.get("1").position == (5, 4)
        assert len(explorer.ui.sprites) == 1
        assert client.map_sync.grid.tile_id(3, 2, 0) == 17

        # Local movement
        assert client.local_position == (DEFAULT_SPAWN_X, DEFAULT_SPAWN_Y)
        await explorer.handle_input(Keystroke("d"))
        assert client.local_position == (DEFAULT_SPAWN_X + 1, DEFAULT_SPAWN_Y)
        [move] = fake_sio.events("move")
        assert move["guild_id"] == "42"
        assert move["direction"] == 6

        # Editing in a space
        await explorer.handle_input(Keystroke("2"))
        client.brush.tile_id = 5
        await explorer.handle_input(Keystroke("e"))
        x, y = client.local_position
        assert client.map_sync.grid.tile_id(x, y, 1) == 5
        assert fake_sio.events("edit_map")[-1]["tile_id"] == 5

        # Back to the lobby
        await explorer.handle_input(Keystroke("l"))
        assert client.session.room_id == "world"
        assert fake_sio.events("leave") == [{"guild_id": "42"}]
        assert fake_sio.events("join")[-1] == {"guild_id": "world"}
        assert len(client.registry) == 0
        assert explorer.ui.sprites == []
        assert client.map_sync.grid.tile_id(x, y, 1) == 0
        assert client.presence.status == "In the lobby"

        # No editing in the lobby
        edits = len(fake_sio.events("edit_map"))
        await explorer.handle_input(Keystroke("e"))
        assert len(fake_sio.events("edit_map")) == edits

    @pytest.mark.asyncio
    async def test_membership_rejection(self, explorer: Explorer, fake_sio) -> None:
        client = explorer.client
        await client.start()
        fake_sio.deliver("user_joined", {"user_id": "1"})

        fake_sio.deliver("error", {"message": "Membership required"})
        assert client.session.room_id == "world"
        assert explorer.ui.sprites == []
        assert client.local_position == (DEFAULT_SPAWN_X, DEFAULT_SPAWN_Y)

        await client.drain()
        assert fake_sio.events("join")[-1] == {"guild_id": "world"}

        # Late traffic from the space we were thrown out of
        fake_sio.deliver("user_joined", {"guild_id": "42", "user_id": "3"})
        fake_sio.deliver("map_edited", {"guild_id": "42", "x": 0, "y": 0, "tile_id": 9})
        assert len(client.registry) == 0
        assert client.map_sync.grid.tile_id(0, 0, 0) == 0

    @pytest.mark.asyncio
    async def test_edge_of_grid_blocks_movement(
        self, explorer: Explorer, fake_sio
    ) -> None:
        client = explorer.client
        await client.start()
        grid = client.map_sync.grid
        client.local_position = (grid.width - 1, 0)
        await explorer.handle_input(Keystroke("d"))
        await explorer.handle_input(Keystroke("w"))
        assert client.local_position == (grid.width - 1, 0)
        assert fake_sio.events("move") == []

    @pytest.mark.asyncio
    async def test_quit(self, explorer: Explorer) -> None:
        explorer.running = True
        await explorer.handle_input(Keystroke("q"))
        assert not explorer.running
