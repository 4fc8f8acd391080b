"""
Utility functions for the game engine.
"""

import random
import uuid

from backend.config import DEFAULT_CONFIG, DEFAULT_FORT_NAME, GameConfig
from backend.engine.grid import GridPosition, grid_to_key
from backend.engine.ledger import ResourceLedger
from backend.engine.phases import NAME_ENTRY
from backend.engine.siege import generate_siege_rolls as _roll_targets
from backend.engine.state import GameState, Grid, Tile, calculate_fort_stats

START_TILE = Tile(zone="start")

# Map glyphs for print_game_state, by building type then zone
BUILDING_GLYPHS = {
    "moat": "~",
    "bridge": "=",
    "tower": "T",
    "gate": "G",
    "gatehouse": "H",
    "barbican": "B",
    "stone_mason": "S",
    "carpenter": "C",
    "mess_hall": "M",
}
ZONE_GLYPHS = {"start": "@", "wall": "#", "land": ",", "moat": "~", "none": "."}


def get_start_block_positions(grid_size: int, block_size: int) -> list[GridPosition]:
    """The block_size x block_size square centred in the grid."""
    block_size = max(1, min(block_size, grid_size))
    origin = (grid_size - block_size) // 2
    return [
        (origin + dx, origin + dy)
        for dy in range(block_size)
        for dx in range(block_size)
    ]


def initialize_game_state(
    config: GameConfig = DEFAULT_CONFIG,
    fort_name: str | None = None,
    grid_size: int | None = None,
    fort_id: str | None = None,
) -> GameState:
    """
    Create a new fort in the name_entry phase.

    Args:
        config: Balance configuration (starting resources, caps, wall pool, start block)
        fort_name: Initial name; the player confirms it with submit_name
        grid_size: Overrides config.grid_size
        fort_id: Overrides the generated id
    """
    size = grid_size or config.grid_size
    grid = Grid.filled(size)
    grid = grid.with_tiles({
        grid_to_key(x, y): START_TILE
        for x, y in get_start_block_positions(size, config.start_block_size)
    })

    resources = ResourceLedger(
        wood=config.starting_wood,
        stone=config.starting_stone,
        food=config.starting_food,
        cap_wood=config.resource_cap,
        cap_stone=config.resource_cap,
        cap_food=config.resource_cap,
    )

    return GameState(
        id=fort_id or f"fort-{uuid.uuid4().hex[:12]}",
        fort_name=fort_name or DEFAULT_FORT_NAME,
        grid=grid,
        phase=NAME_ENTRY,
        round=1,
        resources=resources,
        wall_blocks_available=config.wall_blocks,
        round_bonus_wood=config.round_bonus_wood,
        round_bonus_stone=config.round_bonus_stone,
        round_bonus_food=config.round_bonus_food,
        current_wall_type=config.wall_type,
        stats=calculate_fort_stats(grid),
    )


def generate_siege_rolls(state: GameState, seed: int | None = None) -> dict[str, float]:
    """
    Roll the siege for every eligible tile of the fort.
    Pass seed for reproducible sieges (tests, replays).
    """
    rng = random.Random(seed) if seed is not None else random.Random()
    return _roll_targets(state.grid, rng)


def render_grid(state: GameState) -> list[str]:
    """One text row per grid row; damaged tiles are shown as '!'."""
    rows = []
    for y in range(state.grid_size):
        row = []
        for x in range(state.grid_size):
            tile = state.grid.get(x, y)
            if tile.building.damaged:
                row.append("!")
            else:
                row.append(BUILDING_GLYPHS.get(tile.building.type) or ZONE_GLYPHS.get(tile.zone, "?"))
        rows.append("".join(row))
    return rows


def print_game_state(state: GameState, show_map: bool = False):
    """
    Pretty-print the current game state.

    Args:
        state: Current game state
        show_map: If True, also print the grid as text
    """
    print(f"\n{'='*60}")
    print(f"{state.fort_name} | Round {state.round} | Phase: {state.phase}")
    print(f"{'='*60}")

    resources = state.resources
    print(f"\n{'Resources':.<40}")
    for resource_id, balance in resources.balances().items():
        print(f"  {resource_id}: {balance}/{resources.cap(resource_id)}")
    print(f"  wall blocks: {state.wall_blocks_available}")
    if state.active_card_id:
        print(f"  card: {state.active_card_id} ({state.remaining_build_blocks_from_card} blocks left)")

    print(f"\nDefense: {state.stats.get('defense', 0)}")
    if state.damaged_tiles:
        print(f"Damaged: {', '.join(state.damaged_tiles)}")

    if show_map:
        print()
        for row in render_grid(state):
            print(f"  {row}")
    print()
