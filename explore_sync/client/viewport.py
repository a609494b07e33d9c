"""Viewport management for rooms larger than the terminal."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Viewport:
    """Camera over a tile grid, in grid coordinates."""

    width: int
    height: int
    cam_x: int = 0
    cam_y: int = 0

    def follow(
        self, focus_x: int, focus_y: int, grid_width: int, grid_height: int
    ) -> tuple[int, int]:
        """
        Center the camera on a tile, clamped to the grid.

        Returns (cam_x, cam_y), the top-left grid tile shown on screen.
        Grids smaller than the viewport are centered, so cam may be negative.
        """
        if grid_width <= self.width:
            self.cam_x = -(self.width - grid_width) // 2
        else:
            self.cam_x = max(0, min(focus_x - self.width // 2, grid_width - self.width))

        if grid_height <= self.height:
            self.cam_y = -(self.height - grid_height) // 2
        else:
            self.cam_y = max(
                0, min(focus_y - self.height // 2, grid_height - self.height)
            )

        return self.cam_x, self.cam_y

    def to_grid(self, col: int, row: int) -> tuple[int, int]:
        """Screen cell -> grid tile."""
        return col + self.cam_x, row + self.cam_y

    def contains(self, x: int, y: int) -> bool:
        """Is grid tile (x, y) on screen?"""
        return (
            self.cam_x <= x < self.cam_x + self.width
            and self.cam_y <= y < self.cam_y + self.height
        )
