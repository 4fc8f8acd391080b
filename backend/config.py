"""
Single place for default game/setup configuration.
Change the DEFAULT_* values to rebalance new forts. A GameConfig built from these defaults
is passed explicitly to the reducer; nothing in the engine reads this module implicitly.
"""

from dataclasses import dataclass, replace

# Grid
DEFAULT_GRID_SIZE = 70
# Side length of the square start block seeded at the centre of a new grid
DEFAULT_START_BLOCK_SIZE = 2

# Phase durations (ms)
BUILD_PHASE_DURATION_MS = 3 * 60 * 1000
ROUND_END_DURATION_MS = 5 * 1000

# Resources
DEFAULT_RESOURCE_CAP = 500
DEFAULT_STARTING_RESOURCES = {"wood": 20, "stone": 20, "food": 20}
DEFAULT_ROUND_BONUS = {"wood": 5, "stone": 5, "food": 5}

# Walls: fixed starter pool, no refill
DEFAULT_WALL_BLOCKS = 40
DEFAULT_WALL_TYPE = "palisade"

# Siege / repair
SIEGE_DAMAGE_CHANCE = 0.15
REPAIR_COST_WOOD = 2
REPAIR_COST_STONE = 2

# Persistence: DATABASE_URL wins; otherwise a SQLite file next to backend/api/database.py
DATABASE_URL_ENV = "DATABASE_URL"
DATABASE_FILENAME = "forts.db"

DEFAULT_FORT_NAME = "New Fort"
UNNAMED_FORT_NAME = "Unnamed Fort"


@dataclass(frozen=True)
class GameConfig:
    """Balance and timing knobs for one game."""
    grid_size: int = DEFAULT_GRID_SIZE
    start_block_size: int = DEFAULT_START_BLOCK_SIZE
    build_phase_duration_ms: int = BUILD_PHASE_DURATION_MS
    round_end_duration_ms: int = ROUND_END_DURATION_MS
    resource_cap: int = DEFAULT_RESOURCE_CAP
    starting_wood: int = DEFAULT_STARTING_RESOURCES["wood"]
    starting_stone: int = DEFAULT_STARTING_RESOURCES["stone"]
    starting_food: int = DEFAULT_STARTING_RESOURCES["food"]
    round_bonus_wood: int = DEFAULT_ROUND_BONUS["wood"]
    round_bonus_stone: int = DEFAULT_ROUND_BONUS["stone"]
    round_bonus_food: int = DEFAULT_ROUND_BONUS["food"]
    wall_blocks: int = DEFAULT_WALL_BLOCKS
    wall_type: str = DEFAULT_WALL_TYPE
    siege_damage_chance: float = SIEGE_DAMAGE_CHANCE
    repair_cost_wood: int = REPAIR_COST_WOOD
    repair_cost_stone: int = REPAIR_COST_STONE

    def with_overrides(self, **overrides) -> "GameConfig":
        return replace(self, **overrides)


DEFAULT_CONFIG = GameConfig()
