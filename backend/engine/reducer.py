"""
Main game reducer.
Applies actions to state, enforcing rules and producing new state.
Returns (new_state, events) where events describe what happened.

Phase-transition actions issued in the wrong phase raise ValueError. Placement, repair and
spending rejections never raise: the input state is returned unchanged with a rejection event.
"""

import logging
from dataclasses import replace

from backend.config import DEFAULT_CONFIG, UNNAMED_FORT_NAME, GameConfig
from backend.engine.actions import Action
from backend.engine.definitions import (
    RESOURCE_BUILDING_TYPES,
    BuildingDefinition,
    CardDefinition,
)
from backend.engine.events import (
    GameEvent,
    card_played,
    card_rejected,
    damaged_tile_selected,
    fort_named,
    free_builder_toggled,
    phase_changed,
    placement_rejected,
    repair_rejected,
    resources_changed,
    round_started,
    siege_resolved,
    tile_repaired,
    tool_selected,
)
from backend.engine.grid import grid_to_key
from backend.engine.ledger import RESOURCE_IDS, ResourceLedger
from backend.engine.phases import (
    BUILD,
    CARD_DRAW,
    DEFENSE,
    PLACEMENT_BLOCKED_PHASES,
    REPAIR,
    ROUND_END,
    TRANSITION_SOURCE_PHASE,
)
from backend.engine.placement import building_type_for_tool, place_at_tile, place_path
from backend.engine.siege import repair_tile, run_siege_damage
from backend.engine.state import GameState, Grid, calculate_fort_stats

logger = logging.getLogger(__name__)

# Tools that are not build_* tools
BASIC_TOOLS = frozenset({"select", "bulldoze", "bulldoze_all", "zone_moat", "zone_land", "zone_wall"})
MOAT_EFFECT = "moat"


def _validate_transition(action: Action, state: GameState) -> None:
    """Phase-transition actions are only valid in their source phase."""
    expected = TRANSITION_SOURCE_PHASE.get(action.type)
    if expected is not None and state.phase != expected:
        raise ValueError(
            f"Action '{action.type}' is only allowed in phase '{expected}', "
            f"current phase is '{state.phase}'"
        )


def apply_action(
    state: GameState,
    action: Action,
    building_defs: dict[str, BuildingDefinition],
    card_defs: dict[str, CardDefinition],
    config: GameConfig = DEFAULT_CONFIG,
) -> tuple[GameState, list[GameEvent]]:
    """
    Apply a single action to the current state, returning new state and events.

    Args:
        state: Current game state (never mutated)
        action: Action to apply
        building_defs: Building definitions
        card_defs: Card definitions
        config: Balance and timing configuration

    Returns:
        Tuple of (new_state, events) where events describe what happened
    """
    _validate_transition(action, state)
    payload = action.payload

    if action.type == "submit_name":
        return _handle_submit_name(state, payload.get("fort_name", ""))

    elif action.type == "continue_to_build":
        return _handle_continue_to_build(state, int(payload["now"]), config)

    elif action.type == "ready":
        return _end_build_phase(state)

    elif action.type == "complete_siege":
        return _handle_complete_siege(state, payload.get("rolls") or {}, config)

    elif action.type == "advance_from_repair":
        return _handle_advance_from_repair(state, int(payload["now"]), config)

    elif action.type == "tick":
        return _handle_tick(state, int(payload["now"]))

    elif action.type == "select_tool":
        return _handle_select_tool(state, payload["tool"], building_defs)

    elif action.type == "place_tile":
        return _handle_place_tile(state, int(payload["x"]), int(payload["y"]), building_defs)

    elif action.type == "place_tiles":
        tiles = [(int(x), int(y)) for x, y in payload.get("tiles", [])]
        return _handle_place_tiles(state, tiles, building_defs)

    elif action.type == "select_damaged_tile":
        return _handle_select_damaged_tile(state, payload.get("key"))

    elif action.type == "repair_tile":
        return _handle_repair_tile(state, payload["key"], config)

    elif action.type == "play_card":
        return _handle_play_card(state, payload["card_id"], card_defs)

    elif action.type == "add_resources":
        return _handle_add_resources(state, payload.get("amounts") or {})

    elif action.type == "set_underground_view":
        return replace(state, show_underground=bool(payload["show"])), []

    elif action.type == "toggle_free_builder":
        enabled = not state.free_builder
        logger.info("Free builder mode %s", "on" if enabled else "off")
        return replace(state, free_builder=enabled), [free_builder_toggled(enabled)]

    else:
        raise ValueError(f"Unknown action type: {action.type}")


# ===== Phase transitions =====

def _transition(state: GameState, new_phase: str, phase_ends_at: int | None) -> tuple[GameState, GameEvent]:
    logger.info("Fort %s round %s: %s -> %s", state.id, state.round, state.phase, new_phase)
    event = phase_changed(state.phase, new_phase, state.round)
    return replace(state, phase=new_phase, phase_ends_at=phase_ends_at), event


def _handle_submit_name(state: GameState, fort_name: str) -> tuple[GameState, list[GameEvent]]:
    name = str(fort_name or "").strip() or UNNAMED_FORT_NAME
    state = replace(state, fort_name=name)
    state, changed = _transition(state, CARD_DRAW, None)
    return state, [fort_named(name), changed, round_started(state.round)]


def _handle_continue_to_build(state: GameState, now: int, config: GameConfig) -> tuple[GameState, list[GameEvent]]:
    state, changed = _transition(state, BUILD, now + config.build_phase_duration_ms)
    return state, [changed]


def _complete_construction(grid: Grid) -> Grid:
    """Finish every building (surface and underground) still under construction."""
    updates = {}
    for key, tile in grid.items():
        building = tile.building
        underground = tile.underground
        if building.construction_progress < 100:
            building = replace(building, construction_progress=100)
        if underground is not None and underground.construction_progress < 100:
            underground = replace(underground, construction_progress=100)
        if building is not tile.building or underground is not tile.underground:
            updates[key] = replace(tile, building=building, underground=underground)
    return grid.with_tiles(updates)


def _end_build_phase(state: GameState) -> tuple[GameState, list[GameEvent]]:
    """build -> defense, by ready or by the build deadline."""
    state = replace(state, grid=_complete_construction(state.grid))
    state, changed = _transition(state, DEFENSE, None)
    return state, [changed]


def _handle_complete_siege(
    state: GameState,
    rolls: dict[str, float],
    config: GameConfig,
) -> tuple[GameState, list[GameEvent]]:
    grid, damaged_keys = run_siege_damage(
        state.grid,
        {str(k): float(v) for k, v in rolls.items()},
        config.siege_damage_chance,
    )
    logger.info("Siege on fort %s damaged %d tiles", state.id, len(damaged_keys))
    state = replace(
        state,
        grid=grid,
        damaged_tiles=list(damaged_keys),
        selected_damaged_key=None,
        stats=calculate_fort_stats(grid),
    )
    state, changed = _transition(state, REPAIR, None)
    return state, [siege_resolved(state.round, damaged_keys), changed]


def _handle_advance_from_repair(state: GameState, now: int, config: GameConfig) -> tuple[GameState, list[GameEvent]]:
    state = replace(state, selected_damaged_key=None)
    state, changed = _transition(state, ROUND_END, now + config.round_end_duration_ms)
    return state, [changed]


def _start_next_round(state: GameState) -> tuple[GameState, list[GameEvent]]:
    """round_end -> card_draw: next round, damage list cleared, round bonuses paid into the pools."""
    events: list[GameEvent] = []
    resources = state.resources.apply_round_bonus(state.round_bonus)
    events.extend(_resource_events(state.resources, resources, "round_bonus"))
    state = replace(state, resources=resources, damaged_tiles=[], selected_damaged_key=None)
    state, changed = _transition(state, CARD_DRAW, None)
    state = replace(state, round=state.round + 1)
    events.insert(0, changed)
    events.append(round_started(state.round))
    return state, events


def _handle_tick(state: GameState, now: int) -> tuple[GameState, list[GameEvent]]:
    """Deadline polling. Never raises; a tick before the deadline changes nothing."""
    if state.phase_ends_at is None or now < state.phase_ends_at:
        return state, []
    if state.phase == BUILD:
        return _end_build_phase(state)
    if state.phase == ROUND_END:
        return _start_next_round(state)
    return state, []


# ===== Tools and placement =====

def _handle_select_tool(
    state: GameState,
    tool: str,
    building_defs: dict[str, BuildingDefinition],
) -> tuple[GameState, list[GameEvent]]:
    building_type = building_type_for_tool(tool)
    if tool not in BASIC_TOOLS and building_type not in building_defs:
        raise ValueError(f"Unknown tool: {tool}")

    changes: dict = {"selected_tool": tool}
    if tool != "zone_moat":
        # Switching away from the moat tool forfeits the active card
        changes.update(active_card_id=None, remaining_build_blocks_from_card=None)
    building_def = building_defs.get(building_type) if building_type else None
    if building_def is not None and building_def.id in RESOURCE_BUILDING_TYPES and building_def.underground_allowed:
        changes["show_underground"] = True
    return replace(state, **changes), [tool_selected(tool)]


def _handle_place_tile(
    state: GameState,
    x: int,
    y: int,
    building_defs: dict[str, BuildingDefinition],
) -> tuple[GameState, list[GameEvent]]:
    key = grid_to_key(x, y)
    if state.phase in PLACEMENT_BLOCKED_PHASES:
        return state, [placement_rejected(state.selected_tool, key, f"phase_{state.phase}")]

    if state.phase == REPAIR:
        # Clicking a damaged tile toggles it as the repair target; nothing else is editable
        tile = state.grid.get(x, y)
        if tile is None or not tile.building.damaged:
            return state, [placement_rejected(state.selected_tool, key, "phase_repair")]
        selected = None if state.selected_damaged_key == key else key
        return replace(state, selected_damaged_key=selected), [damaged_tile_selected(selected)]

    return place_at_tile(state, x, y, building_defs)


def _handle_place_tiles(
    state: GameState,
    tiles: list[tuple[int, int]],
    building_defs: dict[str, BuildingDefinition],
) -> tuple[GameState, list[GameEvent]]:
    if not tiles:
        return state, []
    if state.phase != BUILD:
        return state, [placement_rejected(state.selected_tool, None, f"phase_{state.phase}")]
    if len(tiles) == 1:
        return place_at_tile(state, tiles[0][0], tiles[0][1], building_defs)
    return place_path(state, tiles, building_defs)


# ===== Repair =====

def _handle_select_damaged_tile(state: GameState, key: str | None) -> tuple[GameState, list[GameEvent]]:
    if key is not None:
        tile = state.grid.get_key(key)
        if state.phase != REPAIR or tile is None or not tile.building.damaged:
            return state, []
    return replace(state, selected_damaged_key=key), [damaged_tile_selected(key)]


def _handle_repair_tile(state: GameState, key: str, config: GameConfig) -> tuple[GameState, list[GameEvent]]:
    if state.phase != REPAIR:
        return state, [repair_rejected(key, f"phase_{state.phase}")]

    cost = {} if state.free_builder else {"wood": config.repair_cost_wood, "stone": config.repair_cost_stone}
    resources = state.resources.spend(cost)
    if resources is None:
        logger.debug("Repair of %s rejected: insufficient resources", key)
        return state, [repair_rejected(key, "insufficient_resources")]

    grid, success = repair_tile(state.grid, key)
    if not success:
        return state, [repair_rejected(key, "not_damaged")]

    events: list[GameEvent] = [tile_repaired(key, cost)]
    events.extend(_resource_events(state.resources, resources, "repair"))
    new_state = replace(
        state,
        grid=grid,
        resources=resources,
        damaged_tiles=[k for k in state.damaged_tiles if k != key],
        selected_damaged_key=None if state.selected_damaged_key == key else state.selected_damaged_key,
        stats=calculate_fort_stats(grid),
    )
    return new_state, events


# ===== Cards and resources =====

def _resource_events(old: ResourceLedger, new: ResourceLedger, reason: str) -> list[GameEvent]:
    return [
        resources_changed(r, old.balance(r), new.balance(r), reason)
        for r in RESOURCE_IDS
        if old.balance(r) != new.balance(r)
    ]


def _handle_play_card(
    state: GameState,
    card_id: str,
    card_defs: dict[str, CardDefinition],
) -> tuple[GameState, list[GameEvent]]:
    card = card_defs.get(card_id)
    if card is None:
        raise ValueError(f"Unknown card: {card_id}")
    if state.phase != card.playable_phase:
        return state, [card_rejected(card_id, f"phase_{state.phase}")]
    if card.effect_key != MOAT_EFFECT:
        return state, [card_rejected(card_id, "unsupported_effect")]

    same_card_active = (
        state.active_card_id == card.id
        and state.remaining_build_blocks_from_card is not None
        and state.remaining_build_blocks_from_card > 0
    )
    if same_card_active:
        return replace(state, selected_tool="zone_moat"), [tool_selected("zone_moat")]

    resources = state.resources
    if not state.free_builder:
        resources = resources.spend(card.cost)
        if resources is None:
            return state, [card_rejected(card_id, "insufficient_resources")]

    new_state = replace(
        state,
        selected_tool="zone_moat",
        resources=resources,
        active_card_id=card.id,
        remaining_build_blocks_from_card=card.build_blocks,
    )
    events = [card_played(card.id, card.build_blocks)]
    events.extend(_resource_events(state.resources, resources, "card"))
    return new_state, events


def _handle_add_resources(state: GameState, amounts: dict[str, int]) -> tuple[GameState, list[GameEvent]]:
    grant = {r: max(0, int(amounts.get(r, 0))) for r in RESOURCE_IDS}
    resources = state.resources.add(grant)
    return replace(state, resources=resources), _resource_events(state.resources, resources, "grant")


def replay_from_actions(
    initial_state: GameState,
    actions: list[Action],
    building_defs: dict[str, BuildingDefinition],
    card_defs: dict[str, CardDefinition],
    config: GameConfig = DEFAULT_CONFIG,
) -> tuple[GameState, list[GameEvent]]:
    """
    Replay a series of actions from an initial state.
    Event sourcing: state is derived from action log.

    Returns:
        Tuple of (final_state, all_events) after all actions applied
    """
    current_state = initial_state
    all_events: list[GameEvent] = []

    for action in actions:
        current_state, events = apply_action(current_state, action, building_defs, card_defs, config)
        all_events.extend(events)

    return current_state, all_events
