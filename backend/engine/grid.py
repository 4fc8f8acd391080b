"""
Square grid helpers: coordinate keys, neighbours, distances and integer lines.
Tiles are stored under "x,y" string keys (the same keys used in damaged_tiles and saves).
"""

from typing import Iterator

GridPosition = tuple[int, int]


def grid_to_key(x: int, y: int) -> str:
    return f"{x},{y}"


def key_to_grid(key: str) -> GridPosition:
    """Parse an "x,y" key. Raises ValueError for malformed keys."""
    parts = key.split(",")
    if len(parts) != 2:
        raise ValueError(f"Malformed grid key: {key!r}")
    return int(parts[0]), int(parts[1])


def in_bounds(x: int, y: int, grid_size: int) -> bool:
    return 0 <= x < grid_size and 0 <= y < grid_size


def iter_positions(grid_size: int) -> Iterator[GridPosition]:
    """All (x, y) in [0, grid_size)^2, row by row."""
    for y in range(grid_size):
        for x in range(grid_size):
            yield x, y


def get_neighbors(x: int, y: int) -> list[GridPosition]:
    """The 4 cardinal neighbours (may be out of bounds)."""
    return [(x + 1, y), (x - 1, y), (x, y + 1), (x, y - 1)]


def grid_distance(x1: int, y1: int, x2: int, y2: int) -> int:
    """Manhattan distance."""
    return abs(x1 - x2) + abs(y1 - y2)


def are_adjacent(a: GridPosition, b: GridPosition) -> bool:
    return grid_distance(a[0], a[1], b[0], b[1]) == 1


def grid_line_between(x0: int, y0: int, x1: int, y1: int) -> list[GridPosition]:
    """
    All cells on the straight line from (x0, y0) to (x1, y1), both ends included (Bresenham).
    """
    results: list[GridPosition] = []
    dx = abs(x1 - x0)
    dy = abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx - dy
    cx, cy = x0, y0

    while True:
        results.append((cx, cy))
        if cx == x1 and cy == y1:
            break
        e2 = 2 * err
        if e2 > -dy:
            err -= dy
            cx += sx
        if e2 < dx:
            err += dx
            cy += sy
    return results
