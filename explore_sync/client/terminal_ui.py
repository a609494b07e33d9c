"""Terminal rendering of the active room with blessed."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from blessed import Terminal

from .movement import Step
from .session import RemoteEntity
from .viewport import Viewport

if TYPE_CHECKING:
    from .map_sync import TileGrid
    from .notice_buffer import Notice

# Glyphs for non-empty tiles, picked by tile id
_TILE_GLYPHS = ",:;=+#%&~^"

STATUS_LINES = 8


@dataclass
class Sprite:
    """Screen-side copy of a remote entity."""

    user_id: str
    x: int
    y: int
    glyph: str
    color: str
    corrected: bool = False  # Last move was snapped to the server position


def tile_glyph(tile_id: int) -> str:
    if tile_id == 0:
        return "."
    return _TILE_GLYPHS[tile_id % len(_TILE_GLYPHS)]


class TerminalUI:
    """Renders tiles and avatars; acts as the registry's render surface."""

    def __init__(self, terminal: Terminal):
        self.term = terminal
        self.viewport = Viewport(
            width=max(1, terminal.width or 80),
            height=max(1, (terminal.height or 24) - STATUS_LINES),
        )
        self._sprites: dict[int, Sprite] = {}
        self._next_handle = 1
        self.needs_render = True

    # Render surface

    def attach(self, entity: RemoteEntity) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self._sprites[handle] = Sprite(
            user_id=entity.user_id,
            x=entity.x,
            y=entity.y,
            glyph=entity.appearance.glyph,
            color=entity.appearance.color,
        )
        self.needs_render = True
        return handle

    def update(self, handle: int, entity: RemoteEntity) -> None:
        sprite = self._sprites.get(handle)
        if sprite is None:
            return
        sprite.x, sprite.y = entity.x, entity.y
        sprite.glyph = entity.appearance.glyph
        sprite.color = entity.appearance.color
        self.needs_render = True

    def step(self, handle: int, entity: RemoteEntity, step: Step) -> None:
        self.update(handle, entity)
        sprite = self._sprites.get(handle)
        if sprite is not None:
            sprite.corrected = step.corrected

    def release(self, handle: int) -> None:
        if self._sprites.pop(handle, None) is not None:
            self.needs_render = True

    def redraw_tiles(self) -> None:
        self.needs_render = True

    @property
    def sprites(self) -> list[Sprite]:
        return list(self._sprites.values())

    # Drawing

    def render(
        self,
        grid: TileGrid | None,
        local: tuple[int, int] | None,
        status: str,
        notices: list[Notice],
        layer: int = 0,
        tile_id: int = 0,
    ) -> None:
        """Render the room to the terminal."""
        output = [self.term.home + self.term.clear]

        if grid is None:
            output.append("Loading map...")
        else:
            focus = local or (grid.width // 2, grid.height // 2)
            self.viewport.follow(focus[0], focus[1], grid.width, grid.height)
            occupied = {(s.x, s.y): s for s in self._sprites.values()}
            for row in range(self.viewport.height):
                line = ""
                for col in range(self.viewport.width):
                    x, y = self.viewport.to_grid(col, row)
                    line += self._cell(grid, x, y, occupied, local)
                output.append(line)

        output.append("")
        position = f" | Position: {local}" if local else ""
        output.append(f"{status} | Players: {len(self._sprites)}{position}")
        output.append(f"Layer {layer + 1} | Tile {tile_id}")
        for notice in notices:
            output.append(self.term.red(f"[{notice.level}] {notice.message}"))
        output.append(
            "Controls: WASD/Arrows=Move, 1-4=Layer, P=Pick, E=Place, L=Leave, Q=Quit"
        )

        print("\n".join(output), end="", flush=True)
        self.needs_render = False

    def _cell(
        self,
        grid: TileGrid,
        x: int,
        y: int,
        occupied: dict[tuple[int, int], Sprite],
        local: tuple[int, int] | None,
    ) -> str:
        if not grid.is_valid(x, y):
            return " "
        if local == (x, y):
            return str(self.term.bold_green("@"))
        sprite = occupied.get((x, y))
        if sprite is not None:
            color_fn = getattr(self.term, sprite.color, None)
            return str(color_fn(sprite.glyph)) if color_fn else sprite.glyph
        return tile_glyph(grid.top_tile(x, y))

    def cleanup(self) -> None:
        """Restore terminal state."""
        print(self.term.normal + self.term.clear, end="")
