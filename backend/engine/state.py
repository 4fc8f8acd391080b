"""
Game state representation.
Snapshots are never mutated in place: tiles and buildings are frozen, grids are copy-on-write
(a changed grid shares every untouched Tile with its predecessor).
Includes JSON serialization for save/load functionality.
"""

import json
from dataclasses import dataclass, field, replace
from typing import Any, Iterator

from backend.config import BUILD_PHASE_DURATION_MS, DEFAULT_RESOURCE_CAP, DEFAULT_WALL_TYPE, DEFAULT_ROUND_BONUS
from backend.engine.grid import grid_to_key, in_bounds, iter_positions, key_to_grid
from backend.engine.ledger import ResourceLedger
from backend.engine.phases import BUILD, NAME_ENTRY, PHASE_ORDER, current_time_ms


def _int(v: Any, default: int) -> int:
    try:
        return int(v) if v is not None else default
    except (TypeError, ValueError):
        return default


def _optional_int(v: Any) -> int | None:
    if v is None:
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def _ensure_str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(x) for x in value]


def _pick(data: dict[str, Any], *names: str) -> Any:
    """First present key among names (snake_case first, legacy camelCase after)."""
    for name in names:
        if name in data:
            return data[name]
    return None


@dataclass(frozen=True)
class Building:
    type: str  # See backend/data/buildings.json
    construction_progress: int = 100  # 0-100
    # True if damaged during siege; can be repaired with resources
    damaged: bool = False

    def to_dict(self) -> dict[str, Any]:
        out = {"type": self.type, "construction_progress": self.construction_progress}
        if self.damaged:
            out["damaged"] = True
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Building":
        if not isinstance(data, dict):
            data = {}
        progress = _int(_pick(data, "construction_progress", "constructionProgress"), 100)
        return cls(
            type=str(data.get("type") or "grass"),
            construction_progress=max(0, min(progress, 100)),
            damaged=bool(data.get("damaged", False)),
        )


GRASS = Building("grass")
MOAT = Building("moat")


@dataclass(frozen=True)
class Tile:
    """One grid cell: surface building, zone tag, optional wall type and underground slot."""
    building: Building = GRASS
    zone: str = "none"  # "none", "moat", "land", "wall", "start"
    wall_type: str | None = None
    underground: Building | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"building": self.building.to_dict(), "zone": self.zone}
        if self.wall_type:
            out["wall_type"] = self.wall_type
        if self.underground is not None:
            out["underground"] = self.underground.to_dict()
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Tile":
        if not isinstance(data, dict):
            data = {}
        underground = _pick(data, "underground", "undergroundBuilding")
        wall_type = _pick(data, "wall_type", "wallType")
        return cls(
            building=Building.from_dict(data.get("building") or {}),
            zone=str(data.get("zone") or "none"),
            wall_type=str(wall_type) if wall_type else None,
            underground=Building.from_dict(underground) if isinstance(underground, dict) else None,
        )


class Grid:
    """
    Keyed tile storage covering exactly [0, size)^2.
    Coverage and key validity are checked on construction; a Grid is never modified afterwards.
    """

    __slots__ = ("size", "_tiles")

    def __init__(self, size: int, tiles: dict[str, Tile]):
        if size <= 0:
            raise ValueError(f"Grid size must be positive, got {size}")
        if len(tiles) != size * size:
            raise ValueError(f"Grid of size {size} needs {size * size} tiles, got {len(tiles)}")
        for key in tiles:
            x, y = key_to_grid(key)
            if not in_bounds(x, y, size) or grid_to_key(x, y) != key:
                raise ValueError(f"Tile key {key!r} is outside a {size}x{size} grid")
        self.size = size
        self._tiles = tiles

    @classmethod
    def filled(cls, size: int, tile: Tile = Tile()) -> "Grid":
        return cls(size, {grid_to_key(x, y): tile for x, y in iter_positions(size)})

    def get(self, x: int, y: int) -> Tile | None:
        """Tile at (x, y), or None when out of bounds."""
        if not in_bounds(x, y, self.size):
            return None
        return self._tiles[grid_to_key(x, y)]

    def get_key(self, key: str) -> Tile | None:
        return self._tiles.get(key)

    def in_bounds(self, x: int, y: int) -> bool:
        return in_bounds(x, y, self.size)

    def with_tiles(self, updates: dict[str, Tile]) -> "Grid":
        """New grid with the given tiles replaced; untouched tiles are shared."""
        if not updates:
            return self
        for key in updates:
            if key not in self._tiles:
                raise KeyError(f"Tile {key!r} is not part of this grid")
        tiles = dict(self._tiles)
        tiles.update(updates)
        return Grid(self.size, tiles)

    def keys(self):
        return self._tiles.keys()

    def items(self):
        return self._tiles.items()

    def values(self):
        return self._tiles.values()

    def __len__(self) -> int:
        return len(self._tiles)

    def __contains__(self, key: object) -> bool:
        return key in self._tiles

    def __iter__(self) -> Iterator[str]:
        return iter(self._tiles)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return self.size == other.size and self._tiles == other._tiles

    def to_pairs(self) -> list[list[Any]]:
        """[[key, tile_dict], ...] for JSON."""
        return [[key, tile.to_dict()] for key, tile in self._tiles.items()]

    @classmethod
    def from_pairs(cls, size: int, pairs: Any) -> "Grid":
        """
        Rebuild from [[key, tile], ...] pairs (or a {key: tile} dict).
        Raises ValueError if the result does not cover the grid exactly once.
        """
        if isinstance(pairs, dict):
            pairs = list(pairs.items())
        if not isinstance(pairs, list):
            raise ValueError("Grid data must be a list of [key, tile] pairs")
        tiles: dict[str, Tile] = {}
        for pair in pairs:
            if not isinstance(pair, (list, tuple)) or len(pair) != 2:
                raise ValueError(f"Malformed grid entry: {pair!r}")
            key, tile_data = pair
            key = str(key)
            if key in tiles:
                raise ValueError(f"Duplicate tile key {key!r}")
            tiles[key] = Tile.from_dict(tile_data)
        return cls(size, tiles)


def calculate_fort_stats(grid: Grid) -> dict[str, int]:
    """Aggregate stats derived from the grid (defense = number of wall-zoned tiles)."""
    return {"defense": sum(1 for tile in grid.values() if tile.zone == "wall")}


@dataclass
class GameState:
    """Complete game state."""
    id: str
    fort_name: str
    grid: Grid
    selected_tool: str = "select"
    phase: str = NAME_ENTRY
    round: int = 1
    # ms timestamp when the current timed phase (build, round_end) ends
    phase_ends_at: int | None = None
    resources: ResourceLedger = field(default_factory=ResourceLedger)
    # Consumable starter pool for zone_wall (no refill)
    wall_blocks_available: int = 0
    # Card-granted placement budget (moat segments); both None when no card is active
    active_card_id: str | None = None
    remaining_build_blocks_from_card: int | None = None
    # Keys ("x,y") of tiles damaged in the last siege; cleared when repaired or at round end
    damaged_tiles: list[str] = field(default_factory=list)
    round_bonus_wood: int = DEFAULT_ROUND_BONUS["wood"]
    round_bonus_stone: int = DEFAULT_ROUND_BONUS["stone"]
    round_bonus_food: int = DEFAULT_ROUND_BONUS["food"]
    current_wall_type: str = DEFAULT_WALL_TYPE
    show_underground: bool = False
    # Damaged tile picked during repair phase
    selected_damaged_key: str | None = None
    # Debug: no costs, unlimited walls; balances are reported as unbounded
    free_builder: bool = False
    stats: dict[str, int] = field(default_factory=lambda: {"defense": 0})

    @property
    def grid_size(self) -> int:
        return self.grid.size

    @property
    def round_bonus(self) -> dict[str, int]:
        return {
            "wood": self.round_bonus_wood,
            "stone": self.round_bonus_stone,
            "food": self.round_bonus_food,
        }

    def copy(self) -> "GameState":
        """Return a copy sharing the (immutable) grid and ledger."""
        return replace(
            self,
            damaged_tiles=list(self.damaged_tiles),
            stats=dict(self.stats),
        )

    # ===== Serialization Methods =====

    def to_dict(self) -> dict[str, Any]:
        """Convert GameState to a dictionary for JSON serialization."""
        return {
            "id": self.id,
            "fort_name": self.fort_name,
            "grid": self.grid.to_pairs(),
            "grid_size": self.grid.size,
            "selected_tool": self.selected_tool,
            "phase": self.phase,
            "round": self.round,
            "phase_ends_at": self.phase_ends_at,
            "resources": self.resources.to_dict(),
            "wall_blocks_available": self.wall_blocks_available,
            "active_card_id": self.active_card_id,
            "remaining_build_blocks_from_card": self.remaining_build_blocks_from_card,
            "damaged_tiles": list(self.damaged_tiles),
            "round_bonus_wood": self.round_bonus_wood,
            "round_bonus_stone": self.round_bonus_stone,
            "round_bonus_food": self.round_bonus_food,
            "current_wall_type": self.current_wall_type,
            "show_underground": self.show_underground,
            "selected_damaged_key": self.selected_damaged_key,
            "free_builder": self.free_builder,
            "stats": dict(self.stats),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], now: int | None = None) -> "GameState":
        """
        Create GameState from a dictionary (handles missing/None and camelCase keys for backwards compat).
        Legacy snapshots without a phase resume in the build phase with a fresh build deadline.
        Raises ValueError if the grid is missing or does not cover grid_size^2 exactly.
        """
        if not isinstance(data, dict):
            raise ValueError("Snapshot must be a JSON object")
        grid_size = _int(_pick(data, "grid_size", "gridSize"), 0)
        grid_data = data.get("grid")
        if grid_data is None or grid_size <= 0:
            raise ValueError("Snapshot has no grid")
        grid = Grid.from_pairs(grid_size, grid_data)

        phase = data.get("phase")
        phase_ends_at = _optional_int(_pick(data, "phase_ends_at", "phaseEndsAt"))
        if not phase or phase not in PHASE_ORDER:
            # Legacy: saves from before the round system start in build
            phase = BUILD
            phase_ends_at = (now if now is not None else current_time_ms()) + BUILD_PHASE_DURATION_MS

        resources_raw = data.get("resources")
        if not isinstance(resources_raw, dict):
            # Legacy: balances lived in stats
            resources_raw = data.get("stats") if isinstance(data.get("stats"), dict) else {}
        resources = ResourceLedger.from_dict(resources_raw, default_cap=DEFAULT_RESOURCE_CAP)

        remaining = _optional_int(_pick(data, "remaining_build_blocks_from_card", "remainingBuildBlocksFromCard"))
        active_card = _pick(data, "active_card_id", "activeCardId")

        return cls(
            id=str(data.get("id") or ""),
            fort_name=str(_pick(data, "fort_name", "fortName") or "Unnamed Fort"),
            grid=grid,
            selected_tool=str(_pick(data, "selected_tool", "selectedTool") or "select"),
            phase=phase,
            round=max(1, _int(data.get("round"), 1)),
            phase_ends_at=phase_ends_at,
            resources=resources,
            wall_blocks_available=max(0, _int(_pick(data, "wall_blocks_available", "wallBlocksAvailable"), 0)),
            active_card_id=str(active_card) if active_card else None,
            remaining_build_blocks_from_card=max(0, remaining) if remaining is not None else None,
            damaged_tiles=[k for k in _ensure_str_list(_pick(data, "damaged_tiles", "damagedTiles")) if k in grid],
            round_bonus_wood=_int(_pick(data, "round_bonus_wood", "roundBonusWood"), DEFAULT_ROUND_BONUS["wood"]),
            round_bonus_stone=_int(_pick(data, "round_bonus_stone", "roundBonusStone"), DEFAULT_ROUND_BONUS["stone"]),
            round_bonus_food=_int(_pick(data, "round_bonus_food", "roundBonusFood"), DEFAULT_ROUND_BONUS["food"]),
            current_wall_type=str(_pick(data, "current_wall_type", "currentWallType") or DEFAULT_WALL_TYPE),
            show_underground=bool(_pick(data, "show_underground", "showUnderground") or False),
            selected_damaged_key=data.get("selected_damaged_key"),
            free_builder=bool(data.get("free_builder", False)),
            stats=calculate_fort_stats(grid),
        )

    def to_json(self, indent: int | None = None) -> str:
        """Serialize GameState to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str, now: int | None = None) -> "GameState":
        """Deserialize GameState from a JSON string."""
        return cls.from_dict(json.loads(json_str), now=now)

    def save(self, filepath: str) -> None:
        """Save GameState to a JSON file."""
        with open(filepath, "w") as f:
            f.write(self.to_json())

    @classmethod
    def load(cls, filepath: str) -> "GameState":
        """Load GameState from a JSON file."""
        with open(filepath, "r") as f:
            return cls.from_json(f.read())
