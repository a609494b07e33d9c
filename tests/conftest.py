"""Shared fakes for the socket, the REST client and the render surface."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from explore_sync.client.api import RoomInfo, ServerSummary
from explore_sync.client.movement import Step
from explore_sync.client.session import RemoteEntity
from explore_sync.client.skins import Skin
from explore_sync.common.protocol import TileEdit


class FakeSio:
    """In-memory stand-in for socketio.AsyncClient.

    Records emits and lets tests deliver server events through the same
    handlers the real client would call.
    """

    def __init__(self) -> None:
        self.handlers: dict[str, Callable[..., Any]] = {}
        self.emitted: list[tuple[str, Any]] = []
        self.connected = False
        self.connect_calls: list[dict[str, Any]] = []
        self.connect_error: Exception | None = None

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self.handlers[event] = handler

    async def connect(self, url: str, **kwargs: Any) -> None:
        self.connect_calls.append({"url": url, **kwargs})
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True
        await self.handlers["connect"]()

    async def disconnect(self) -> None:
        self.connected = False
        self.handlers["disconnect"]("client disconnect")

    async def emit(self, event: str, data: Any = None) -> None:
        self.emitted.append((event, data))

    async def wait(self) -> None:
        pass

    def deliver(self, event: str, data: Any = None) -> None:
        """Server -> client event."""
        self.handlers[event](data)

    def drop(self) -> None:
        """Simulate transport loss."""
        self.connected = False
        self.handlers["disconnect"]("transport close")

    async def reconnect(self) -> None:
        self.connected = True
        await self.handlers["connect"]()

    def events(self, name: str) -> list[Any]:
        return [data for event, data in self.emitted if event == name]


class RecordingSurface:
    """Render surface that records every call it receives."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.live: dict[int, str] = {}
        self._next = 0

    def attach(self, entity: RemoteEntity) -> int:
        self._next += 1
        self.live[self._next] = entity.user_id
        self.calls.append(("attach", entity.user_id))
        return self._next

    def update(self, handle: int, entity: RemoteEntity) -> None:
        self.calls.append(("update", entity.user_id))

    def step(self, handle: int, entity: RemoteEntity, step: Step) -> None:
        self.calls.append(("step", (entity.user_id, step)))

    def release(self, handle: int) -> None:
        self.calls.append(("release", self.live.pop(handle)))

    def redraw_tiles(self) -> None:
        self.calls.append(("redraw", None))

    def names(self, kind: str) -> list[Any]:
        return [arg for name, arg in self.calls if name == kind]


@pytest.fixture
def fake_sio() -> FakeSio:
    return FakeSio()


@pytest.fixture
def surface() -> RecordingSurface:
    return RecordingSurface()


class FakeApi:
    """ExploreApi stand-in with canned responses and controllable latency."""

    def __init__(self) -> None:
        self.tiles: dict[str, list[TileEdit]] = {}
        self.rooms: dict[str, RoomInfo] = {}
        self.skins: list[Skin] = []
        self.servers: list[ServerSummary] = []
        self.skin_ok = True
        self.calls: list[tuple[str, Any]] = []
        # room_id -> event the tile fetch waits on before returning
        self.gates: dict[str, asyncio.Event] = {}

    async def fetch_space_tiles(self, room_id: str) -> list[TileEdit]:
        self.calls.append(("tiles", room_id))
        gate = self.gates.get(room_id)
        if gate is not None:
            await gate.wait()
        return list(self.tiles.get(room_id, []))

    async def fetch_server(self, room_id: str) -> RoomInfo | None:
        self.calls.append(("server", room_id))
        return self.rooms.get(room_id)

    async def fetch_servers(self) -> list[ServerSummary]:
        return list(self.servers)

    async def fetch_skins(self) -> list[Skin]:
        return list(self.skins)

    async def set_skin(self, skin_id: str) -> bool:
        self.calls.append(("set_skin", skin_id))
        return self.skin_ok

    async def close(self) -> None:
        self.calls.append(("close", None))


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()
