"""
Click-and-drag line placement for terrain and wall tools.

The builder only tracks the gesture. Releasing the primary button hands the finished path back
to the caller, who applies it with a single place_tiles action.
"""

from backend.engine.definitions import is_drag_build_tool
from backend.engine.grid import GridPosition, are_adjacent, grid_line_between, in_bounds
from backend.engine.projection import IsoViewport

PRIMARY_BUTTON = 0
SECONDARY_BUTTON = 2
CANCEL_KEY = "Escape"


class LineBuilder:
    """Drag gesture state: the ordered, duplicate-free path under construction."""

    def __init__(self, grid_size: int):
        self.grid_size = grid_size
        self.path: list[GridPosition] = []
        self.current: GridPosition | None = None
        self.tool: str | None = None

    @property
    def active(self) -> bool:
        return bool(self.path)

    @property
    def preview(self) -> list[GridPosition]:
        """Tiles the renderer highlights while dragging."""
        return list(self.path)

    def _reset(self) -> None:
        self.path = []
        self.current = None
        self.tool = None

    # ----- grid-level gesture -----

    def begin(self, tool: str, pos: GridPosition | None) -> bool:
        """Seed the path. Returns False (nothing started) for non-line tools or off-grid starts."""
        if not is_drag_build_tool(tool) or pos is None or not in_bounds(pos[0], pos[1], self.grid_size):
            return False
        self.path = [pos]
        self.current = pos
        self.tool = tool
        return True

    def extend(self, pos: GridPosition | None) -> None:
        if not self.active or pos is None or pos == self.current:
            return
        if not in_bounds(pos[0], pos[1], self.grid_size):
            return
        self.current = pos

        if pos in self.path:
            # Dragging back over the path retracts it
            del self.path[self.path.index(pos) + 1:]
            return

        tail = self.path[-1]
        if are_adjacent(tail, pos):
            self.path.append(pos)
            return

        for step in grid_line_between(tail[0], tail[1], pos[0], pos[1]):
            if in_bounds(step[0], step[1], self.grid_size) and step not in self.path:
                self.path.append(step)

    def finish(self) -> list[GridPosition]:
        """End the gesture and return the path to commit (a lone click yields one tile)."""
        path = self.path
        self._reset()
        return path

    def cancel(self) -> bool:
        """Drop the gesture without committing. Returns True if a drag was in progress."""
        was_active = self.active
        self._reset()
        return was_active

    # ----- pointer events -----

    def pointer_down(self, viewport: IsoViewport, sx: float, sy: float, tool: str, button: int = PRIMARY_BUTTON) -> bool:
        """Returns True when the event was consumed by the drag builder."""
        if button == SECONDARY_BUTTON:
            return self.cancel()
        if button != PRIMARY_BUTTON:
            return False
        return self.begin(tool, viewport.screen_to_grid(sx, sy, self.grid_size))

    def pointer_move(self, viewport: IsoViewport, sx: float, sy: float) -> bool:
        if not self.active:
            return False
        self.extend(viewport.screen_to_grid(sx, sy, self.grid_size))
        return True

    def pointer_up(self, button: int = PRIMARY_BUTTON) -> list[GridPosition] | None:
        """The path to commit, or None if no primary-button drag was in progress."""
        if button != PRIMARY_BUTTON or not self.active:
            return None
        return self.finish()

    def pointer_leave(self) -> None:
        self.cancel()

    def key_down(self, key: str) -> bool:
        if key == CANCEL_KEY:
            return self.cancel()
        return False
