"""
Fort boundary analysis for underground building placement.
Underground buildings can only be placed:
- inside the walls (tiles reachable from the start block without crossing a wall) if any wall exists, or
- within 2 tiles (Manhattan) of the start block otherwise.
"""

from collections import deque

from backend.engine.grid import get_neighbors, grid_distance, grid_to_key, iter_positions, key_to_grid
from backend.engine.state import Grid

# Zones the interior flood fill may cross (walls block it)
TRAVERSABLE_ZONES = frozenset({"start", "land", "moat", "none"})
START_RADIUS = 2


def get_fort_buildable_keys(grid: Grid) -> set[str]:
    """Set of tile keys where underground building is allowed."""
    if any(tile.zone == "wall" for tile in grid.values()):
        return get_fort_interior_keys(grid)
    return get_tiles_near_start(grid)


def _start_positions(grid: Grid) -> list[tuple[int, int]]:
    return [key_to_grid(key) for key, tile in grid.items() if tile.zone == "start"]


def get_fort_interior_keys(grid: Grid) -> set[str]:
    """Tiles reachable from any start tile by 4-neighbour steps through non-wall zones."""
    visited: set[str] = set()
    queue: deque[tuple[int, int]] = deque()
    for x, y in _start_positions(grid):
        visited.add(grid_to_key(x, y))
        queue.append((x, y))

    while queue:
        x, y = queue.popleft()
        for nx, ny in get_neighbors(x, y):
            tile = grid.get(nx, ny)
            if tile is None or tile.zone not in TRAVERSABLE_ZONES:
                continue
            key = grid_to_key(nx, ny)
            if key in visited:
                continue
            visited.add(key)
            queue.append((nx, ny))
    return visited


def get_tiles_near_start(grid: Grid, radius: int = START_RADIUS) -> set[str]:
    starts = _start_positions(grid)
    if not starts:
        return set()
    return {
        grid_to_key(x, y)
        for x, y in iter_positions(grid.size)
        if min(grid_distance(x, y, sx, sy) for sx, sy in starts) <= radius
    }
