"""Tests for room transitions and the host-facing client API."""

from __future__ import annotations

import asyncio

import pytest

from explore_sync.client.api import ServerSummary
from explore_sync.client.map_sync import TileGrid
from explore_sync.client.session import ClientConfig, Session
from explore_sync.client.skins import Skin
from explore_sync.client.space_client import SpaceClient
from explore_sync.common.protocol import Direction, TileEdit


def make_client(fake_sio, fake_api, room_id: str = "42", editor: bool = False):
    session = Session(token="tok", user_id="9", room_id=room_id)
    client = SpaceClient(
        session,
        ClientConfig(server_url="http://server", editor=editor),
        api=fake_api,
        sio=fake_sio,
    )

    @client.on_room_changed
    def load_map(room_id: str) -> None:
        client.on_map_ready(TileGrid(8, 8))

    client.on_map_ready(TileGrid(8, 8))
    return client


async def wait_for_call(fake_api, call: tuple, ticks: int = 50) -> None:
    for _ in range(ticks):
        if call in fake_api.calls:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"{call} never happened")


class TestStart:
    @pytest.mark.asyncio
    async def test_joins_and_resyncs(self, fake_sio, fake_api) -> None:
        fake_api.tiles["42"] = [TileEdit(1, 1, 0, 5)]
        client = make_client(fake_sio, fake_api)
        await client.start()
        assert fake_sio.events("join") == [{"guild_id": "42"}]
        assert client.map_sync.grid.tile_id(1, 1, 0) == 5
        assert client.presence.status == "In Unknown server's space"

    @pytest.mark.asyncio
    async def test_skins_resolve_after_load(self, fake_sio, fake_api) -> None:
        fake_api.skins = [Skin("s1", "knight")]
        client = make_client(fake_sio, fake_api)
        client.registry.spawn("1", 0, 0, skin_id="s1")
        await client.start()
        assert client.registry.get("1").appearance.glyph == "K"

    @pytest.mark.asyncio
    async def test_default_room_skips_tile_fetch(self, fake_sio, fake_api) -> None:
        client = make_client(fake_sio, fake_api, room_id="world")
        await client.start()
        assert ("tiles", "world") not in fake_api.calls
        assert client.presence.status == "In the lobby"

    @pytest.mark.asyncio
    async def test_stop(self, fake_sio, fake_api) -> None:
        client = make_client(fake_sio, fake_api)
        await client.start()
        await client.stop()
        assert not fake_sio.connected
        assert ("close", None) in fake_api.calls


class TestEnterRoom:
    @pytest.mark.asyncio
    async def test_leave_then_join(self, fake_sio, fake_api) -> None:
        client = make_client(fake_sio, fake_api)
        await client.start()
        fake_sio.deliver("user_joined", {"user_id": "1"})

        await client.enter_room("43")
        assert fake_sio.events("leave") == [{"guild_id": "42"}]
        assert fake_sio.events("join")[-1] == {"guild_id": "43"}
        assert client.session.room_id == "43"
        assert len(client.registry) == 0
        assert client.room.room_id == "43"

    @pytest.mark.asyncio
    async def test_old_room_events_are_ignored(self, fake_sio, fake_api) -> None:
        client = make_client(fake_sio, fake_api)
        await client.start()
        await client.enter_room("43")
        fake_sio.deliver("room_state", {"guild_id": "42", "players": [{"id": "1"}]})
        assert len(client.registry) == 0

    @pytest.mark.asyncio
    async def test_stale_tile_list_is_discarded(self, fake_sio, fake_api) -> None:
        fake_api.tiles["42"] = [TileEdit(0, 0, 0, 42)]
        fake_api.tiles["43"] = [TileEdit(1, 1, 0, 43)]
        client = make_client(fake_sio, fake_api, room_id="world")
        await client.start()

        gate = asyncio.Event()
        fake_api.gates["42"] = gate
        slow = asyncio.create_task(client.enter_room("42"))
        await wait_for_call(fake_api, ("tiles", "42"))

        await client.enter_room("43")
        gate.set()
        await slow

        grid = client.map_sync.grid
        assert grid.tile_id(0, 0, 0) == 0
        assert grid.tile_id(1, 1, 0) == 43
        assert client.map_sync.pending == []

    @pytest.mark.asyncio
    async def test_leave_to_default(self, fake_sio, fake_api) -> None:
        client = make_client(fake_sio, fake_api)
        await client.start()
        await client.leave_to_default()
        assert client.session.is_default_room
        assert fake_sio.events("join")[-1] == {"guild_id": "world"}

    @pytest.mark.asyncio
    async def test_room_changed_callback_errors_are_contained(
        self, fake_sio, fake_api
    ) -> None:
        client = make_client(fake_sio, fake_api)

        @client.on_room_changed
        def broken(room_id: str) -> None:
            raise RuntimeError("boom")

        await client.start()
        await client.enter_room("43")
        assert client.session.room_id == "43"


class TestMembershipRecovery:
    @pytest.mark.asyncio
    async def test_returns_to_default_room(self, fake_sio, fake_api) -> None:
        client = make_client(fake_sio, fake_api)
        await client.start()
        fake_sio.deliver("user_joined", {"user_id": "1"})

        fake_sio.deliver("error", {"message": "Membership required"})
        # Local state switches before any network round trip
        assert client.session.room_id == "world"
        assert len(client.registry) == 0

        await client.drain()
        assert fake_sio.events("leave") == [{"guild_id": "42"}]
        assert fake_sio.events("join")[-1] == {"guild_id": "world"}

    @pytest.mark.asyncio
    async def test_rejection_in_default_room_does_not_loop(
        self, fake_sio, fake_api
    ) -> None:
        client = make_client(fake_sio, fake_api, room_id="world")
        await client.start()
        fake_sio.deliver("error", {"message": "Membership required"})
        await client.drain()
        assert fake_sio.events("join") == [{"guild_id": "world"}]
        assert fake_sio.events("leave") == []


class TestReconnect:
    @pytest.mark.asyncio
    async def test_resyncs_current_room(self, fake_sio, fake_api) -> None:
        client = make_client(fake_sio, fake_api)
        await client.start()
        fake_sio.drop()
        await fake_sio.reconnect()
        await client.drain()
        assert fake_api.calls.count(("tiles", "42")) == 2
        assert fake_sio.events("join") == [{"guild_id": "42"}, {"guild_id": "42"}]


class TestHostPorts:
    @pytest.mark.asyncio
    async def test_local_move(self, fake_sio, fake_api) -> None:
        client = make_client(fake_sio, fake_api)
        await client.start()
        await client.on_local_move(Direction.RIGHT, 4, 5)
        assert client.local_position == (4, 5)
        assert client.local_facing == Direction.RIGHT
        [payload] = fake_sio.events("move")
        assert payload["direction"] == 6
        assert (payload["x"], payload["y"]) == (4, 5)

    @pytest.mark.asyncio
    async def test_editor_publishes_edits(self, fake_sio, fake_api) -> None:
        client = make_client(fake_sio, fake_api, editor=True)
        await client.start()
        client.brush.tile_id = 3
        assert await client.brush.place(2, 2)
        assert fake_sio.events("edit_map") == [
            {"guild_id": "42", "x": 2, "y": 2, "z": 0, "tile_id": 3}
        ]

    @pytest.mark.asyncio
    async def test_surface_reattach(self, fake_sio, fake_api, surface) -> None:
        client = make_client(fake_sio, fake_api)
        await client.start()
        fake_sio.deliver("user_joined", {"user_id": "1"})
        client.attach_surface(surface)
        assert surface.names("attach") == ["1"]
        fake_sio.deliver("map_edited", {"guild_id": "42", "x": 0, "y": 0, "tile_id": 1})
        assert surface.names("redraw")
        client.detach_surface()
        assert surface.live == {}

    @pytest.mark.asyncio
    async def test_change_skin(self, fake_sio, fake_api) -> None:
        client = make_client(fake_sio, fake_api)
        await client.start()
        assert await client.change_skin("s2")
        assert fake_sio.events("skin_change") == [{"guild_id": "42", "skin_id": "s2"}]

    @pytest.mark.asyncio
    async def test_change_skin_failure(self, fake_sio, fake_api) -> None:
        fake_api.skin_ok = False
        client = make_client(fake_sio, fake_api)
        await client.start()
        assert not await client.change_skin("s2")
        assert fake_sio.events("skin_change") == []

    @pytest.mark.asyncio
    async def test_list_rooms(self, fake_sio, fake_api) -> None:
        fake_api.servers = [ServerSummary("1", "Cafe")]
        client = make_client(fake_sio, fake_api)
        assert [s.name for s in await client.list_rooms()] == ["Cafe"]
