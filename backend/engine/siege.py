"""
Siege damage and repair.
The siege rolls once per eligible tile; rolls are supplied by the caller so results are reproducible.
"""

import random
from dataclasses import replace

from backend.engine.definitions import DAMAGEABLE_STRUCTURE_TYPES
from backend.engine.state import Grid, Tile


def is_siege_target(tile: Tile) -> bool:
    """Walls and defensive structures outside the start block that are not already damaged."""
    if tile.zone == "start" or tile.building.damaged:
        return False
    return tile.zone == "wall" or tile.building.type in DAMAGEABLE_STRUCTURE_TYPES


def get_siege_targets(grid: Grid) -> list[str]:
    return [key for key, tile in grid.items() if is_siege_target(tile)]


def generate_siege_rolls(grid: Grid, rng: random.Random | None = None) -> dict[str, float]:
    """One uniform [0, 1) roll per siege target."""
    rng = rng or random.Random()
    return {key: rng.random() for key in get_siege_targets(grid)}


def run_siege_damage(
    grid: Grid,
    rolls: dict[str, float],
    chance: float,
) -> tuple[Grid, list[str]]:
    """
    Damage every target whose roll is below chance.

    Args:
        grid: Current grid
        rolls: key -> roll in [0, 1); targets without a roll are not damaged
        chance: Damage probability per target

    Returns:
        (new_grid, newly_damaged_keys) in grid order
    """
    updates: dict[str, Tile] = {}
    for key in get_siege_targets(grid):
        roll = rolls.get(key)
        if roll is None or roll >= chance:
            continue
        tile = grid.get_key(key)
        updates[key] = replace(tile, building=replace(tile.building, damaged=True))
    return grid.with_tiles(updates), list(updates)


def repair_tile(grid: Grid, key: str) -> tuple[Grid, bool]:
    """Clear the damage flag on one tile. Returns (grid, False) unchanged if the tile is not damaged."""
    tile = grid.get_key(key)
    if tile is None or not tile.building.damaged:
        return grid, False
    repaired = replace(tile, building=replace(tile.building, damaged=False))
    return grid.with_tiles({key: repaired}), True
