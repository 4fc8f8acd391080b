"""
Fort boundary: distance rule without walls, flood fill inside walls.
"""

from backend.engine.boundary import get_fort_buildable_keys
from backend.engine.grid import grid_to_key
from backend.engine.state import Grid, Tile

START = Tile(zone="start")
WALL = Tile(zone="wall", wall_type="palisade")


def test_without_walls_tiles_within_two_of_start():
    grid = Grid.filled(10).with_tiles({"5,5": START})
    keys = get_fort_buildable_keys(grid)
    assert "5,7" in keys
    assert "5,8" not in keys
    assert "4,6" in keys
    assert "3,6" not in keys
    assert len(keys) == 13


def test_with_walls_interior_is_flood_filled():
    ring = {}
    for i in range(2, 8):
        for key in (grid_to_key(i, 2), grid_to_key(i, 7), grid_to_key(2, i), grid_to_key(7, i)):
            ring[key] = WALL
    grid = Grid.filled(10).with_tiles({**ring, "5,5": START, "3,3": Tile(zone="moat")})

    keys = get_fort_buildable_keys(grid)

    interior = {grid_to_key(x, y) for x in range(3, 7) for y in range(3, 7)}
    assert keys == interior


def test_gap_in_wall_lets_fill_escape():
    grid = Grid.filled(6).with_tiles({"0,2": WALL, "1,2": WALL, "2,2": START})
    keys = get_fort_buildable_keys(grid)
    assert "0,0" in keys
    assert "0,2" not in keys


def test_no_start_tiles_means_nothing_is_buildable():
    assert get_fort_buildable_keys(Grid.filled(4)) == set()
