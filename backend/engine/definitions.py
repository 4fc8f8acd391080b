"""
Static definitions for buildings, tools, and cards.
Catalogue data lives under backend/data/: buildings.json, tools.json, cards.json.
Placement rules that depend on building families (embrasures, damageable structures, ...)
are code, not data, and are listed here as constants.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DATA_DIR = Path(__file__).parent.parent / "data"

# Building types a structure can be placed onto
BUILDABLE_BASE_TYPES = frozenset({"grass", "empty"})
# Base types bulldoze refuses to clear
UNBULLDOZABLE_TYPES = frozenset({"empty", "moat"})
EMBRASURE_TYPES = frozenset({"machicolations", "balistraria", "crossbow_slit", "longbow_slit"})
RESOURCE_BUILDING_TYPES = frozenset({"stone_mason", "carpenter", "mess_hall"})
# Structures the siege can damage (wall-zoned tiles are always damageable too)
DAMAGEABLE_STRUCTURE_TYPES = frozenset({"tower", "barbican", "gate", "gatehouse"}) | EMBRASURE_TYPES

ZONES = ("none", "moat", "land", "wall", "start")

# Tools that support click-and-drag line placement
DRAG_BUILD_TOOLS = frozenset({"zone_moat", "zone_land", "zone_wall"})


def is_drag_build_tool(tool: str) -> bool:
    return tool in DRAG_BUILD_TOOLS


@dataclass
class BuildingDefinition:
    """Defines immutable properties of a building type."""
    id: str
    display_name: str
    description: str
    tier: str  # "basic" or "unlock"
    cost: int = 0  # Display cost (not charged)
    defense: int = 0
    # Resources charged on placement, e.g. {"wood": 5, "food": 5}
    placement_cost: dict[str, int] = field(default_factory=dict)
    # Resource buildings may also be placed in the underground layer
    underground_allowed: bool = False


@dataclass
class ToolDefinition:
    """Defines a player tool."""
    id: str
    name: str
    description: str
    category: str  # "tools", "terrain", "wall", "walls_defense", "buildings", "utils"
    tier: str
    cost: int = 0
    builds: Optional[str] = None  # Building type placed by build_* tools
    drag_build: bool = False
    debug_only: bool = False


@dataclass
class CardDefinition:
    """A consumable grant drawn during card_draw."""
    id: str
    name: str
    rarity: str  # "common", "uncommon", "unique", "rare", "legendary"
    category: str  # "buildings", "terrain", "utilities", "intel", "resources", "tactical"
    description: str
    playable_phase: str  # "build" or "defense"
    food_cost: int = 0
    wood_cost: int = 0
    stone_cost: int = 0
    effect_key: Optional[str] = None
    # For terrain cards (e.g. moat): number of blocks the card lets you build
    build_blocks: Optional[int] = None

    @property
    def cost(self) -> dict[str, int]:
        return {"wood": self.wood_cost, "stone": self.stone_cost, "food": self.food_cost}


def _building_from_dict(data: dict) -> BuildingDefinition:
    return BuildingDefinition(
        id=data["id"],
        display_name=data["display_name"],
        description=data.get("description", ""),
        tier=data.get("tier", "basic"),
        cost=data.get("cost", 0),
        defense=data.get("defense", 0),
        placement_cost=dict(data.get("placement_cost") or {}),
        underground_allowed=data.get("underground_allowed", False),
    )


def _tool_from_dict(data: dict) -> ToolDefinition:
    return ToolDefinition(
        id=data["id"],
        name=data["name"],
        description=data.get("description", ""),
        category=data["category"],
        tier=data.get("tier", "basic"),
        cost=data.get("cost", 0),
        builds=data.get("builds"),
        drag_build=data.get("drag_build", False),
        debug_only=data.get("debug_only", False),
    )


def _card_from_dict(data: dict) -> CardDefinition:
    return CardDefinition(
        id=data["id"],
        name=data["name"],
        rarity=data["rarity"],
        category=data["category"],
        description=data.get("description", ""),
        playable_phase=data.get("playable_phase", "build"),
        food_cost=data.get("food_cost", 0),
        wood_cost=data.get("wood_cost", 0),
        stone_cost=data.get("stone_cost", 0),
        effect_key=data.get("effect_key"),
        build_blocks=data.get("build_blocks"),
    )


def load_static_definitions(
    data_dir: Path | str | None = None,
) -> tuple[
    dict[str, BuildingDefinition],
    dict[str, ToolDefinition],
    dict[str, CardDefinition],
]:
    """
    Load static definitions (buildings, tools, cards).

    Args:
        data_dir: Directory containing buildings.json, tools.json and cards.json.
            Defaults to backend/data/.

    Returns: (building_definitions, tool_definitions, card_definitions)
    """
    data_dir = Path(data_dir) if data_dir is not None else DATA_DIR

    with open(data_dir / "buildings.json", "r") as f:
        buildings_data = json.load(f)
    buildings = {bid: _building_from_dict(data) for bid, data in buildings_data.items()}

    with open(data_dir / "tools.json", "r") as f:
        tools_data = json.load(f)
    tools = {tid: _tool_from_dict(data) for tid, data in tools_data.items()}

    cards = {}
    cards_path = data_dir / "cards.json"
    if cards_path.exists():
        with open(cards_path, "r") as f:
            cards_data = json.load(f)
        cards = {cid: _card_from_dict(data) for cid, data in cards_data.items()}

    return buildings, tools, cards


def definitions_from_snapshot(snapshot: dict) -> tuple[
    dict[str, BuildingDefinition],
    dict[str, ToolDefinition],
    dict[str, CardDefinition],
]:
    """
    Build definition dicts from a snapshot (e.g. stored with a saved fort).
    Snapshot keys: buildings, tools, cards (each id -> dict of fields).
    """
    return (
        {bid: _building_from_dict(d) for bid, d in (snapshot.get("buildings") or {}).items()},
        {tid: _tool_from_dict(d) for tid, d in (snapshot.get("tools") or {}).items()},
        {cid: _card_from_dict(d) for cid, d in (snapshot.get("cards") or {}).items()},
    )
