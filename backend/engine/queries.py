"""
Query functions for UI integration.
These functions help the UI understand what actions are available
without mutating game state.
"""

from dataclasses import dataclass
from typing import Any

from backend.config import DEFAULT_CONFIG, GameConfig
from backend.engine.actions import Action
from backend.engine.boundary import get_fort_buildable_keys
from backend.engine.definitions import BuildingDefinition, CardDefinition, ToolDefinition
from backend.engine.grid import GridPosition
from backend.engine.ledger import RESOURCE_IDS
from backend.engine.phases import (
    BUILD,
    CARD_DRAW,
    DEFENSE,
    NAME_ENTRY,
    PLACEMENT_BLOCKED_PHASES,
    REPAIR,
    ROUND_END,
    TIMED_PHASES,
)
from backend.engine.placement import apply_tool
from backend.engine.state import GameState

# Actions the player can issue per phase (tick and view toggles are always accepted)
PHASE_ALLOWED_ACTIONS = {
    NAME_ENTRY: ["submit_name"],
    CARD_DRAW: ["continue_to_build"],
    BUILD: ["select_tool", "place_tile", "place_tiles", "play_card", "ready"],
    DEFENSE: ["complete_siege"],
    REPAIR: ["select_damaged_tile", "repair_tile", "advance_from_repair"],
    ROUND_END: [],
}


@dataclass
class ValidationResult:
    """Result of action validation."""
    valid: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "error": self.error}


def get_available_action_types(state: GameState) -> list[str]:
    """Get action types available in the current phase."""
    return list(PHASE_ALLOWED_ACTIONS.get(state.phase, []))


def get_phase_time_remaining(state: GameState, now: int) -> int | None:
    """ms left in a timed phase (never negative), None for untimed phases."""
    if state.phase not in TIMED_PHASES or state.phase_ends_at is None:
        return None
    return max(0, state.phase_ends_at - now)


# ===== Placement =====

def validate_placement(
    state: GameState,
    x: int,
    y: int,
    building_defs: dict[str, BuildingDefinition],
    tool: str | None = None,
) -> ValidationResult:
    """Would the selected tool (or tool) succeed at (x, y)? Nothing is applied."""
    if state.phase in PLACEMENT_BLOCKED_PHASES or state.phase == REPAIR:
        return ValidationResult(False, f"phase_{state.phase}")
    _, reason = apply_tool(state, tool or state.selected_tool, x, y, building_defs)
    return ValidationResult(reason is None, reason)


def get_drag_preview(
    state: GameState,
    path: list[GridPosition],
    building_defs: dict[str, BuildingDefinition],
) -> list[dict[str, Any]]:
    """
    Per-tile verdicts for a drag path, simulated in order so consumables are accounted for
    (the 41st wall of a 40-block pool shows as invalid).
    """
    preview = []
    current = state
    for x, y in path:
        current, reason = apply_tool(current, current.selected_tool, x, y, building_defs)
        preview.append({"x": x, "y": y, "valid": reason is None, "reason": reason})
    return preview


def get_underground_buildable_keys(state: GameState) -> list[str]:
    return sorted(get_fort_buildable_keys(state.grid))


# ===== Resources =====

def get_resource_summary(state: GameState) -> dict[str, Any]:
    """
    Balances as the player sees them.
    In free builder mode every balance is reported as unlimited (None); stored values are kept
    under "stored" and come back unchanged when the mode is switched off.
    """
    stored = state.resources.balances()
    return {
        "balances": {r: None if state.free_builder else stored[r] for r in RESOURCE_IDS},
        "stored": stored,
        "caps": {r: state.resources.cap(r) for r in RESOURCE_IDS},
        "unlimited": state.free_builder,
        "wall_blocks_available": None if state.free_builder else state.wall_blocks_available,
    }


def get_effective_balance(state: GameState, resource_id: str) -> float:
    if state.free_builder:
        return float("inf")
    return state.resources.balance(resource_id)


# ===== Repair =====

def get_repair_cost(state: GameState, config: GameConfig = DEFAULT_CONFIG) -> dict[str, int]:
    if state.free_builder:
        return {"wood": 0, "stone": 0}
    return {"wood": config.repair_cost_wood, "stone": config.repair_cost_stone}


def get_repair_options(state: GameState, config: GameConfig = DEFAULT_CONFIG) -> list[dict[str, Any]]:
    """Damaged tiles with their repair cost and whether the fort can currently pay it."""
    cost = get_repair_cost(state, config)
    affordable = state.resources.can_afford(cost)
    return [
        {
            "key": key,
            "building": state.grid.get_key(key).building.type,
            "cost": cost,
            "affordable": affordable,
            "selected": key == state.selected_damaged_key,
        }
        for key in state.damaged_tiles
        if key in state.grid
    ]


# ===== Tools and cards =====

def get_tool_palette(state: GameState, tool_defs: dict[str, ToolDefinition]) -> list[dict[str, Any]]:
    """Tools grouped for the sidebar; debug tools only appear in free builder mode."""
    return [
        {
            "id": tool.id,
            "name": tool.name,
            "category": tool.category,
            "cost": tool.cost,
            "drag_build": tool.drag_build,
            "selected": tool.id == state.selected_tool,
        }
        for tool in tool_defs.values()
        if state.free_builder or not tool.debug_only
    ]


def get_playable_cards(state: GameState, card_defs: dict[str, CardDefinition]) -> list[dict[str, Any]]:
    """Cards playable in the current phase, with affordability."""
    cards = []
    for card in card_defs.values():
        if card.playable_phase != state.phase:
            continue
        cards.append({
            "id": card.id,
            "name": card.name,
            "rarity": card.rarity,
            "cost": card.cost,
            "build_blocks": card.build_blocks,
            "affordable": state.free_builder or state.resources.can_afford(card.cost),
            "active": card.id == state.active_card_id,
        })
    return cards


def validate_action(state: GameState, action: Action) -> ValidationResult:
    """Phase-level validation only; tile-level rules are checked by validate_placement."""
    if action.type in ("tick", "set_underground_view", "toggle_free_builder", "add_resources"):
        return ValidationResult(True)
    allowed = get_available_action_types(state)
    if action.type not in allowed:
        return ValidationResult(False, f"Cannot {action.type} during {state.phase} phase. Allowed: {allowed}")
    return ValidationResult(True)


def get_fort_summary(state: GameState, now: int | None = None) -> dict[str, Any]:
    """
    Get a summary of the current fort for UI display.
    """
    return {
        "id": state.id,
        "fort_name": state.fort_name,
        "round": state.round,
        "phase": state.phase,
        "phase_ends_at": state.phase_ends_at,
        "time_remaining_ms": get_phase_time_remaining(state, now) if now is not None else None,
        "selected_tool": state.selected_tool,
        "resources": get_resource_summary(state),
        "active_card_id": state.active_card_id,
        "remaining_build_blocks_from_card": state.remaining_build_blocks_from_card,
        "damaged_tiles": list(state.damaged_tiles),
        "show_underground": state.show_underground,
        "free_builder": state.free_builder,
        "stats": dict(state.stats),
        "available_actions": get_available_action_types(state),
    }
