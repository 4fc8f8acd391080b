"""
Isometric projection between grid tiles and screen pixels.

The renderer draws with: scale(dpr * zoom), translate(offset / zoom), then a Y-axis compression
around the view centre. Screen coordinates here are canvas (device) pixels; offsets are CSS pixels.
"""

import math
from dataclasses import dataclass, replace

from backend.engine import TILE_HEIGHT, TILE_WIDTH, Y_COMPRESSION
from backend.engine.grid import GridPosition, in_bounds

MIN_ZOOM = 0.5
MAX_ZOOM = 2.0
# Per wheel notch
WHEEL_ZOOM_OUT = 0.95
WHEEL_ZOOM_IN = 1.05


@dataclass(frozen=True)
class IsoViewport:
    """Pan/zoom/DPR state of the view plus the forward and inverse tile projection."""
    offset_x: float = 0.0
    offset_y: float = 0.0
    zoom: float = 1.0
    dpr: float = 1.0
    view_center_x: float = 0.0
    view_center_y: float = 0.0
    tile_width: float = TILE_WIDTH
    tile_height: float = TILE_HEIGHT
    y_compression: float = Y_COMPRESSION
    min_zoom: float = MIN_ZOOM
    max_zoom: float = MAX_ZOOM

    def __post_init__(self):
        if self.zoom <= 0 or self.dpr <= 0 or self.y_compression <= 0:
            raise ValueError("zoom, dpr and y_compression must be positive")

    @property
    def half_width(self) -> float:
        return self.tile_width / 2

    @property
    def half_height(self) -> float:
        return self.tile_height / 2

    # ----- forward -----

    def grid_to_world(self, x: float, y: float) -> tuple[float, float]:
        """Tile centre in world pixels (before compression, pan and zoom)."""
        return (x - y) * self.half_width, (x + y) * self.half_height

    def world_to_screen(self, wx: float, wy: float) -> tuple[float, float]:
        wy = (wy - self.view_center_y) * self.y_compression + self.view_center_y
        scale = self.dpr * self.zoom
        return (wx + self.offset_x / self.zoom) * scale, (wy + self.offset_y / self.zoom) * scale

    def grid_to_screen(self, x: float, y: float) -> tuple[float, float]:
        """Screen pixel of the centre of tile (x, y)."""
        return self.world_to_screen(*self.grid_to_world(x, y))

    # ----- inverse -----

    def screen_to_canvas(self, sx: float, sy: float) -> tuple[float, float]:
        """Undo dpr/zoom/offset only (the space the renderer translates in)."""
        scale = self.dpr * self.zoom
        return sx / scale - self.offset_x / self.zoom, sy / scale - self.offset_y / self.zoom

    def screen_to_world(self, sx: float, sy: float) -> tuple[float, float]:
        wx, wy = self.screen_to_canvas(sx, sy)
        wy = (wy - self.view_center_y) / self.y_compression + self.view_center_y
        return wx, wy

    def screen_to_grid(self, sx: float, sy: float, grid_size: int | None = None) -> GridPosition | None:
        """
        Tile under a screen pixel.
        A tile centred at doubled coordinate g=2x spans [2x-1, 2x+1], hence floor((g+1)/2).
        Returns None when grid_size is given and the pixel is outside the grid.
        """
        wx, wy = self.screen_to_world(sx, sy)
        gx = wx / self.half_width + wy / self.half_height
        gy = wy / self.half_height - wx / self.half_width
        x = math.floor((gx + 1) / 2)
        y = math.floor((gy + 1) / 2)
        if grid_size is not None and not in_bounds(x, y, grid_size):
            return None
        return x, y

    # ----- view changes -----

    def panned(self, dx: float, dy: float) -> "IsoViewport":
        return replace(self, offset_x=self.offset_x + dx, offset_y=self.offset_y + dy)

    def zoomed_at(self, new_zoom: float, cursor_x: float, cursor_y: float) -> "IsoViewport":
        """
        Change zoom keeping the world point under the cursor fixed.
        Solves s/(dpr*z') - o'/z' = w for the new offset o'.
        """
        new_zoom = max(self.min_zoom, min(new_zoom, self.max_zoom))
        wx, wy = self.screen_to_canvas(cursor_x, cursor_y)
        return replace(
            self,
            zoom=new_zoom,
            offset_x=cursor_x / self.dpr - wx * new_zoom,
            offset_y=cursor_y / self.dpr - wy * new_zoom,
        )

    def wheel(self, delta_y: float, cursor_x: float, cursor_y: float) -> "IsoViewport":
        factor = WHEEL_ZOOM_OUT if delta_y > 0 else WHEEL_ZOOM_IN
        return self.zoomed_at(self.zoom * factor, cursor_x, cursor_y)
