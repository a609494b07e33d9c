"""Interactive terminal explorer driving a SpaceClient."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from blessed import Terminal
from blessed.keyboard import Keystroke

from ..common.constants import (
    DEFAULT_GRID_HEIGHT,
    DEFAULT_GRID_WIDTH,
    DEFAULT_SPAWN_X,
    DEFAULT_SPAWN_Y,
)
from ..common.protocol import Direction
from .input_handler import (
    get_layer,
    get_movement,
    is_leave_key,
    is_pick_key,
    is_place_key,
    is_quit_key,
)
from .map_sync import TileGrid
from .notice_buffer import NoticeBuffer
from .space_client import SpaceClient
from .terminal_ui import TerminalUI

logger = logging.getLogger(__name__)


def _asyncio_exception_handler(
    loop: asyncio.AbstractEventLoop, context: dict[str, Any]
) -> None:
    """Log unhandled task exceptions instead of printing over the TUI."""
    exception = context.get("exception")
    message = context.get("message", "Unhandled exception in asyncio task")
    if exception:
        logger.error(f"{message}: {exception}", exc_info=exception)
    else:
        logger.error(message)


class Explorer:
    """Full-screen view of the active room with a locally driven avatar."""

    def __init__(
        self,
        client: SpaceClient,
        terminal: Terminal | None = None,
        notices: NoticeBuffer | None = None,
    ) -> None:
        self.client = client
        self.term = terminal or Terminal()
        self.notices = notices
        self.ui = TerminalUI(self.term)
        self.running = False
        self._last_render_time = 0.0

        client.attach_surface(self.ui)
        client.on_room_changed(self._load_map)
        self._load_map(client.session.room_id)

    def _load_map(self, room_id: str) -> None:
        """Fresh grid for a new room; queued edits flush onto it."""
        grid = TileGrid(DEFAULT_GRID_WIDTH, DEFAULT_GRID_HEIGHT)
        self.client.on_map_ready(grid)
        self.client.local_position = (
            min(DEFAULT_SPAWN_X, grid.width - 1),
            min(DEFAULT_SPAWN_Y, grid.height - 1),
        )
        self.ui.needs_render = True

    async def run(self) -> None:
        """Main input/render loop."""
        self.running = True
        asyncio.get_running_loop().set_exception_handler(_asyncio_exception_handler)

        with self.term.fullscreen(), self.term.cbreak(), self.term.hidden_cursor():
            try:
                self._render()
                while self.running:
                    while True:
                        key = self.term.inkey(timeout=0)
                        if not key:
                            break
                        await self.handle_input(key)

                    now = time.monotonic()
                    if self.ui.needs_render or now - self._last_render_time > 0.25:
                        self._render()
                        self._last_render_time = now

                    await asyncio.sleep(0.05)
            finally:
                self.running = False
                self.ui.cleanup()

    async def handle_input(self, key: Keystroke) -> None:
        if is_quit_key(key):
            self.running = False
            return

        direction = get_movement(key)
        if direction is not None:
            await self.move(direction)
            return

        layer = get_layer(key)
        if layer is not None:
            self.client.brush.select_layer(layer)
            self.ui.needs_render = True
            return

        position = self.client.local_position
        if is_pick_key(key) and position is not None:
            self.client.brush.pick(*position)
            self.ui.needs_render = True
        elif is_place_key(key) and position is not None:
            if not await self.client.brush.place(*position):
                logger.debug("Tile placement refused")
        elif is_leave_key(key):
            if not self.client.session.is_default_room:
                await self.client.leave_to_default()

    async def move(self, direction: Direction) -> None:
        """Step the local avatar and report the finished move."""
        grid = self.client.map_sync.grid
        position = self.client.local_position
        if grid is None or position is None:
            return
        x, y = position[0] + direction.dx, position[1] + direction.dy
        if not grid.is_valid(x, y):
            self.client.local_facing = direction
            return
        await self.client.on_local_move(direction, x, y)
        self.ui.needs_render = True

    def _render(self) -> None:
        self.ui.render(
            self.client.map_sync.grid,
            self.client.local_position,
            self.client.presence.status or self.client.session.room_id,
            self.notices.latest() if self.notices else [],
            layer=self.client.brush.layer,
            tile_id=self.client.brush.tile_id,
        )
