"""Tile grid state and tile edit synchronization."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Iterable

import numpy as np
import numpy.typing as npt

from ..common.constants import INT32_MAX, INT32_MIN, TILE_LAYERS
from ..common.protocol import TileEdit
from .session import Room, Session

if TYPE_CHECKING:
    from .registry import RenderSurface

logger = logging.getLogger(__name__)

# Publishes a local edit to the room (ConnectionManager.send_tile_edit)
EditPublisher = Callable[[TileEdit], Awaitable[None]]


class TileGrid:
    """Layered grid of tile ids, indexed as ``tiles[z, y, x]``."""

    def __init__(self, width: int, height: int, layers: int = TILE_LAYERS) -> None:
        self.width = width
        self.height = height
        self.layers = layers
        self.tiles: npt.NDArray[np.int32] = np.zeros(
            (layers, height, width), dtype=np.int32
        )

    @classmethod
    def from_array(cls, tiles: npt.ArrayLike) -> TileGrid:
        """Build a grid from an existing (layers, height, width) array."""
        data = np.asarray(tiles, dtype=np.int32)
        if data.ndim != 3:
            raise ValueError(f"expected a 3D (z, y, x) array, got {data.ndim}D")
        grid = cls(width=data.shape[2], height=data.shape[1], layers=data.shape[0])
        grid.tiles[...] = data
        return grid

    def is_valid(self, x: int, y: int, z: int = 0) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height and 0 <= z < self.layers

    def tile_id(self, x: int, y: int, z: int = 0) -> int:
        return int(self.tiles[z, y, x])

    def set_tile(self, x: int, y: int, z: int, tile_id: int) -> bool:
        """Set one tile. Returns False (and changes nothing) if out of bounds."""
        if not self.is_valid(x, y, z) or not INT32_MIN <= tile_id <= INT32_MAX:
            return False
        self.tiles[z, y, x] = tile_id
        return True

    def top_tile(self, x: int, y: int) -> int:
        """Highest non-zero tile id at a cell, or 0 if every layer is empty."""
        column = self.tiles[:, y, x]
        nonzero = np.flatnonzero(column)
        if nonzero.size == 0:
            return 0
        return int(column[nonzero[-1]])


class MapEditSync:
    """Applies remote tile edits and publishes local ones.

    Edits that arrive before the grid exists are queued on the active room
    and flushed in arrival order by ``on_map_ready``.
    """

    def __init__(
        self,
        session: Session,
        room: Room | None = None,
        publisher: EditPublisher | None = None,
    ) -> None:
        self.session = session
        self.room = room or Room(session.room_id)
        self.publisher = publisher
        self.grid: TileGrid | None = None
        self.surface: RenderSurface | None = None

    def bind_room(self, room: Room) -> None:
        """Switch rooms. The old room's queued edits and grid are dropped."""
        self.room = room
        self.grid = None

    @property
    def pending(self) -> list[TileEdit]:
        return list(self.room.pending_tile_edits)

    def apply_remote_edit(self, x: int, y: int, z: int, tile_id: int) -> None:
        edit = TileEdit(x, y, z, int(tile_id))
        if self.grid is None:
            self.room.pending_tile_edits.append(edit)
            return
        self._apply(edit)
        self._redraw()

    def apply_pending_edits(self, edits: Iterable[TileEdit]) -> None:
        """Apply a room's full tile list in order, or queue it until map load."""
        self.room.pending_tile_edits.extend(edits)
        if self.grid is not None:
            self._flush()

    def on_map_ready(self, grid: TileGrid) -> None:
        """Called once the room's grid exists; flushes queued edits."""
        self.grid = grid
        self._flush()

    async def local_edit(self, x: int, y: int, z: int, tile_id: int) -> bool:
        """Apply an edit locally and publish it. Requires editor capability."""
        if not self.session.is_editor:
            logger.debug(f"Ignoring local edit in room {self.session.room_id}")
            return False
        edit = TileEdit(x, y, z, int(tile_id))
        if self.grid is None or not self.grid.set_tile(x, y, z, edit.tile_id):
            return False
        self._redraw()
        if self.publisher is not None:
            await self.publisher(edit)
        return True

    def _flush(self) -> None:
        queue = self.room.pending_tile_edits
        if not queue:
            return
        edits = list(queue)
        queue.clear()
        for edit in edits:
            self._apply(edit)
        logger.debug(f"Applied {len(edits)} queued tile edits")
        self._redraw()

    def _apply(self, edit: TileEdit) -> None:
        if self.grid is None:
            return
        if not self.grid.set_tile(edit.x, edit.y, edit.z, edit.tile_id):
            logger.warning(
                f"Dropping tile edit {edit.tile_id} at "
                f"({edit.x}, {edit.y}, {edit.z}): outside grid or tile range"
            )

    def _redraw(self) -> None:
        if self.surface is not None:
            self.surface.redraw_tiles()


class TileBrush:
    """Editor state: the selected layer and tile id."""

    def __init__(self, map_sync: MapEditSync) -> None:
        self.map_sync = map_sync
        self.layer = 0
        self.tile_id = 0

    def select_layer(self, layer: int) -> None:
        if 0 <= layer < TILE_LAYERS:
            self.layer = layer
            logger.debug(f"Layer {layer + 1}")

    def pick(self, x: int, y: int) -> bool:
        """Copy the tile id under (x, y) on the current layer."""
        grid = self.map_sync.grid
        if grid is None or not grid.is_valid(x, y, self.layer):
            return False
        self.tile_id = grid.tile_id(x, y, self.layer)
        logger.debug(f"Picked tile: {self.tile_id}")
        return True

    async def place(self, x: int, y: int) -> bool:
        return await self.map_sync.local_edit(x, y, self.layer, self.tile_id)
