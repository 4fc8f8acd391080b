"""
Per-tool placement rules.

Every rule validates first and only then builds a new snapshot, so a rejected placement returns
the very same state object together with a short reason code. Successful placements touch only
the target tile (the grid is copy-on-write) and recompute stats once per action.
"""

import logging
from dataclasses import replace

from backend.engine.boundary import get_fort_buildable_keys
from backend.engine.definitions import (
    BUILDABLE_BASE_TYPES,
    EMBRASURE_TYPES,
    RESOURCE_BUILDING_TYPES,
    UNBULLDOZABLE_TYPES,
    BuildingDefinition,
)
from backend.engine.events import GameEvent, placement_rejected, resources_changed, tiles_changed, wall_blocks_changed
from backend.engine.grid import GridPosition, get_neighbors, grid_to_key
from backend.engine.ledger import RESOURCE_IDS
from backend.engine.state import GRASS, MOAT, Building, GameState, Tile, calculate_fort_stats

logger = logging.getLogger(__name__)

BUILD_TOOL_PREFIX = "build_"

# Rejections that mean no later tile of a drag path can succeed either
EXHAUSTED_REASONS = frozenset({"no_wall_blocks", "card_exhausted", "insufficient_resources"})


def building_type_for_tool(tool: str) -> str | None:
    """build_tower -> tower; None for tools that do not construct a building."""
    if tool.startswith(BUILD_TOOL_PREFIX):
        return tool[len(BUILD_TOOL_PREFIX):]
    return None


def _set_tile(state: GameState, key: str, tile: Tile) -> GameState:
    return replace(state, grid=state.grid.with_tiles({key: tile}))


def _is_buildable(tile: Tile) -> bool:
    return tile.building.type in BUILDABLE_BASE_TYPES


# ===== Terrain / zoning =====

def _bulldoze(state: GameState, key: str, tile: Tile) -> tuple[GameState, str | None]:
    if tile.zone == "start":
        return state, "start_zone"
    if tile.building.type in UNBULLDOZABLE_TYPES:
        return state, "unbulldozable"
    cleared = replace(tile, building=GRASS, zone="none", wall_type=None)
    if cleared == tile:
        return state, "nothing_to_clear"
    return _set_tile(state, key, cleared), None


def _bulldoze_all(state: GameState) -> tuple[GameState, str | None]:
    if not state.free_builder:
        return state, "free_builder_only"
    updates = {key: Tile() for key, tile in state.grid.items() if tile.zone != "start" and tile != Tile()}
    if not updates:
        return state, "nothing_to_clear"
    return replace(state, grid=state.grid.with_tiles(updates)), None


def _zone_moat(state: GameState, key: str, tile: Tile) -> tuple[GameState, str | None]:
    if tile.zone == "start":
        return state, "start_zone"
    if not _is_buildable(tile):
        return state, "not_buildable"
    remaining = state.remaining_build_blocks_from_card
    if remaining is not None and remaining <= 0:
        return state, "card_exhausted"

    new_state = _set_tile(state, key, replace(tile, building=MOAT, zone="moat", wall_type=None))
    if remaining is not None:
        remaining -= 1
        if remaining <= 0:
            return replace(new_state, active_card_id=None, remaining_build_blocks_from_card=None), None
        new_state = replace(new_state, remaining_build_blocks_from_card=remaining)
    return new_state, None


def _zone_land(state: GameState, key: str, tile: Tile) -> tuple[GameState, str | None]:
    if tile.zone == "start":
        return state, "start_zone"
    return _set_tile(state, key, replace(tile, building=GRASS, zone="land", wall_type=None)), None


def _zone_wall(state: GameState, key: str, tile: Tile) -> tuple[GameState, str | None]:
    if tile.zone == "start":
        return state, "start_zone"
    if tile.zone == "wall":
        # Re-drawing an existing wall is free
        return _set_tile(state, key, replace(tile, wall_type=tile.wall_type or state.current_wall_type)), None
    if not state.free_builder and state.wall_blocks_available <= 0:
        return state, "no_wall_blocks"

    new_state = _set_tile(state, key, replace(tile, zone="wall", wall_type=state.current_wall_type))
    if not state.free_builder:
        new_state = replace(new_state, wall_blocks_available=state.wall_blocks_available - 1)
    return new_state, None


# ===== Structures =====

def _place_structure(state: GameState, key: str, tile: Tile, building_type: str) -> tuple[GameState, str | None]:
    """Generic placement: grass/empty target outside the start block; construction begins at 0."""
    if tile.zone == "start":
        return state, "start_zone"
    if not _is_buildable(tile):
        return state, "occupied"
    return _set_tile(state, key, replace(tile, building=Building(building_type, construction_progress=0))), None


def _build_tower(state: GameState, x: int, y: int, tile: Tile) -> tuple[GameState, str | None]:
    if tile.zone != "wall":
        return state, "requires_wall"
    for nx, ny in get_neighbors(x, y):
        neighbor = state.grid.get(nx, ny)
        if neighbor is not None and neighbor.building.type == "tower":
            return state, "adjacent_tower"
    return _place_structure(state, grid_to_key(x, y), tile, "tower")


def _build_gate(state: GameState, key: str, tile: Tile) -> tuple[GameState, str | None]:
    if tile.zone != "wall":
        return state, "requires_wall"
    if tile.building.type == "tower":
        gatehouse = replace(tile.building, type="gatehouse")
        return _set_tile(state, key, replace(tile, building=gatehouse)), None
    return _place_structure(state, key, tile, "gate")


def _build_bridge(state: GameState, key: str, tile: Tile) -> tuple[GameState, str | None]:
    if tile.building.type != "moat":
        return state, "requires_moat"
    return _set_tile(state, key, replace(tile, building=Building("bridge", construction_progress=0))), None


def _build_resource(
    state: GameState,
    key: str,
    tile: Tile,
    building_def: BuildingDefinition,
) -> tuple[GameState, str | None]:
    underground = state.show_underground and building_def.underground_allowed
    if underground:
        if key not in get_fort_buildable_keys(state.grid):
            return state, "outside_fort"
        if tile.underground is not None and tile.underground.type not in BUILDABLE_BASE_TYPES:
            return state, "occupied"
    else:
        if tile.zone == "start":
            return state, "start_zone"
        if not _is_buildable(tile):
            return state, "occupied"

    resources = state.resources
    if not state.free_builder:
        resources = resources.spend(building_def.placement_cost)
        if resources is None:
            return state, "insufficient_resources"

    building = Building(building_def.id, construction_progress=0)
    placed = replace(tile, underground=building) if underground else replace(tile, building=building)
    return replace(_set_tile(state, key, placed), resources=resources), None


def apply_tool(
    state: GameState,
    tool: str,
    x: int,
    y: int,
    building_defs: dict[str, BuildingDefinition],
) -> tuple[GameState, str | None]:
    """
    Apply one tool to one tile without recomputing stats.

    Returns:
        (new_state, None) on success, or (state, reason) with the untouched input state on rejection
    """
    if tool == "select":
        return state, "select_tool"
    if tool == "bulldoze_all":
        return _bulldoze_all(state)

    tile = state.grid.get(x, y)
    if tile is None:
        return state, "out_of_bounds"
    key = grid_to_key(x, y)

    if tool == "bulldoze":
        return _bulldoze(state, key, tile)
    if tool == "zone_moat":
        return _zone_moat(state, key, tile)
    if tool == "zone_land":
        return _zone_land(state, key, tile)
    if tool == "zone_wall":
        return _zone_wall(state, key, tile)

    building_type = building_type_for_tool(tool)
    building_def = building_defs.get(building_type) if building_type else None
    if building_def is None:
        return state, "unknown_tool"

    if building_type == "tower":
        return _build_tower(state, x, y, tile)
    if building_type == "gate":
        return _build_gate(state, key, tile)
    if building_type == "bridge":
        return _build_bridge(state, key, tile)
    if building_type in EMBRASURE_TYPES and tile.zone != "wall":
        return state, "requires_wall"
    if building_type in RESOURCE_BUILDING_TYPES:
        return _build_resource(state, key, tile, building_def)
    return _place_structure(state, key, tile, building_type)


def _changed_keys(before: GameState, after: GameState) -> list[str]:
    """Keys whose Tile object differs. Untouched tiles are shared, so identity is enough."""
    if before.grid is after.grid:
        return []
    old = before.grid
    return [key for key, tile in after.grid.items() if old.get_key(key) is not tile and old.get_key(key) != tile]


def _ledger_events(before: GameState, after: GameState, reason: str) -> list[GameEvent]:
    events: list[GameEvent] = []
    for resource_id in RESOURCE_IDS:
        old_value = before.resources.balance(resource_id)
        new_value = after.resources.balance(resource_id)
        if old_value != new_value:
            events.append(resources_changed(resource_id, old_value, new_value, reason))
    if before.wall_blocks_available != after.wall_blocks_available:
        events.append(wall_blocks_changed(before.wall_blocks_available, after.wall_blocks_available))
    return events


def _finish(before: GameState, after: GameState, tool: str, changed: list[str]) -> tuple[GameState, list[GameEvent]]:
    if after is before:
        return before, []
    after = replace(after, stats=calculate_fort_stats(after.grid))
    events: list[GameEvent] = []
    if changed:
        events.append(tiles_changed(tool, changed))
    events.extend(_ledger_events(before, after, tool))
    return after, events


def place_at_tile(
    state: GameState,
    x: int,
    y: int,
    building_defs: dict[str, BuildingDefinition],
) -> tuple[GameState, list[GameEvent]]:
    """
    Apply the selected tool to (x, y).
    A rejection returns the same state object and a single placement_rejected event.
    """
    tool = state.selected_tool
    new_state, reason = apply_tool(state, tool, x, y, building_defs)
    if reason is not None:
        logger.debug("Rejected %s at %s,%s: %s", tool, x, y, reason)
        return state, [placement_rejected(tool, grid_to_key(x, y), reason)]
    return _finish(state, new_state, tool, _changed_keys(state, new_state))


def place_path(
    state: GameState,
    tiles: list[GridPosition],
    building_defs: dict[str, BuildingDefinition],
) -> tuple[GameState, list[GameEvent]]:
    """
    Apply the selected tool to every tile of a path, in order.
    Individual rejections are skipped; running out of a consumable (wall blocks, a card's
    moat budget, resources) stops the path but keeps everything placed before it.
    """
    tool = state.selected_tool
    current = state
    events: list[GameEvent] = []
    had_card = state.active_card_id is not None

    for x, y in tiles:
        current, reason = apply_tool(current, tool, x, y, building_defs)
        if reason is not None:
            logger.debug("Rejected %s at %s,%s in path: %s", tool, x, y, reason)
            events.append(placement_rejected(tool, grid_to_key(x, y), reason))
            if reason in EXHAUSTED_REASONS:
                break
            continue
        if had_card and current.active_card_id is None:
            # The card's budget ran out on this tile
            break

    new_state, finish_events = _finish(state, current, tool, _changed_keys(state, current))
    return new_state, events + finish_events
