"""
Game events for UI hooks and logging.
Events describe what happened during action processing.
Rejections are events too: a rejected placement leaves state untouched and reports why.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class GameEvent:
    """Base event class. All events have a type and payload."""
    type: str
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameEvent":
        return cls(type=data["type"], payload=data["payload"])


# ===== Event Type Constants =====

# Phase/round events
PHASE_CHANGED = "phase_changed"
ROUND_STARTED = "round_started"
FORT_NAMED = "fort_named"

# Placement events
TILES_CHANGED = "tiles_changed"
PLACEMENT_REJECTED = "placement_rejected"
TOOL_SELECTED = "tool_selected"
DAMAGED_TILE_SELECTED = "damaged_tile_selected"

# Resource events
RESOURCES_CHANGED = "resources_changed"
WALL_BLOCKS_CHANGED = "wall_blocks_changed"
CARD_PLAYED = "card_played"
CARD_REJECTED = "card_rejected"

# Siege / repair events
SIEGE_RESOLVED = "siege_resolved"
TILE_REPAIRED = "tile_repaired"
REPAIR_REJECTED = "repair_rejected"

# Debug
FREE_BUILDER_TOGGLED = "free_builder_toggled"


# ===== Event Factory Functions =====

def phase_changed(old_phase: str, new_phase: str, round_number: int) -> GameEvent:
    return GameEvent(PHASE_CHANGED, {
        "old_phase": old_phase,
        "new_phase": new_phase,
        "round": round_number,
    })


def round_started(round_number: int) -> GameEvent:
    return GameEvent(ROUND_STARTED, {"round": round_number})


def fort_named(fort_name: str) -> GameEvent:
    return GameEvent(FORT_NAMED, {"fort_name": fort_name})


def tiles_changed(tool: str, keys: list[str]) -> GameEvent:
    """Emitted once per successful placement action with every tile that changed (grid order)."""
    return GameEvent(TILES_CHANGED, {"tool": tool, "keys": keys, "count": len(keys)})


def placement_rejected(tool: str, key: str | None, reason: str) -> GameEvent:
    return GameEvent(PLACEMENT_REJECTED, {"tool": tool, "key": key, "reason": reason})


def tool_selected(tool: str) -> GameEvent:
    return GameEvent(TOOL_SELECTED, {"tool": tool})


def damaged_tile_selected(key: str | None) -> GameEvent:
    return GameEvent(DAMAGED_TILE_SELECTED, {"key": key})


def resources_changed(
    resource: str,
    old_value: int,
    new_value: int,
    reason: str,
) -> GameEvent:
    return GameEvent(RESOURCES_CHANGED, {
        "resource": resource,
        "old_value": old_value,
        "new_value": new_value,
        "change": new_value - old_value,
        "reason": reason,
    })


def wall_blocks_changed(old_value: int, new_value: int) -> GameEvent:
    return GameEvent(WALL_BLOCKS_CHANGED, {
        "old_value": old_value,
        "new_value": new_value,
        "change": new_value - old_value,
    })


def card_played(card_id: str, remaining_blocks: int | None) -> GameEvent:
    return GameEvent(CARD_PLAYED, {"card_id": card_id, "remaining_blocks": remaining_blocks})


def card_rejected(card_id: str, reason: str) -> GameEvent:
    return GameEvent(CARD_REJECTED, {"card_id": card_id, "reason": reason})


def siege_resolved(round_number: int, damaged_keys: list[str]) -> GameEvent:
    return GameEvent(SIEGE_RESOLVED, {
        "round": round_number,
        "damaged_keys": damaged_keys,
        "damaged_count": len(damaged_keys),
    })


def tile_repaired(key: str, cost: dict[str, int]) -> GameEvent:
    return GameEvent(TILE_REPAIRED, {"key": key, "cost": cost})


def repair_rejected(key: str, reason: str) -> GameEvent:
    return GameEvent(REPAIR_REJECTED, {"key": key, "reason": reason})


def free_builder_toggled(enabled: bool) -> GameEvent:
    return GameEvent(FREE_BUILDER_TOGGLED, {"enabled": enabled})
