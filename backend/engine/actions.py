"""
Action definitions for the game.
Actions are immutable, deterministic instructions: anything random or time-dependent
(siege rolls, the current time) travels in the payload so the reducer stays pure.
"""

from dataclasses import dataclass, field

from backend.engine.grid import GridPosition
from backend.engine.phases import current_time_ms


@dataclass
class Action:
    """Base action class. All actions have a type and payload."""
    type: str  # e.g. "place_tile", "continue_to_build", "complete_siege", "tick"
    payload: dict = field(default_factory=dict)  # Action-specific data


# ===== Phase transitions =====

def submit_name(fort_name: str) -> Action:
    """Name the fort and leave name_entry. Blank names become the default name."""
    return Action(type="submit_name", payload={"fort_name": fort_name})


def continue_to_build(now: int | None = None) -> Action:
    """Leave card_draw and start the build timer."""
    return Action(
        type="continue_to_build",
        payload={"now": now if now is not None else current_time_ms()},
    )


def ready() -> Action:
    """End the build phase early."""
    return Action(type="ready", payload={})


def complete_siege(rolls: dict[str, float]) -> Action:
    """
    Resolve the siege and enter repair.
    rolls: tile key -> uniform sample in [0, 1). A tile is damaged when its roll is below the
    configured damage chance; eligible tiles without a roll are left intact.

    Example: complete_siege({"3,4": 0.02, "3,5": 0.71})
    """
    return Action(type="complete_siege", payload={"rolls": rolls})


def advance_from_repair(now: int | None = None) -> Action:
    """Leave repair; the round-end timer starts."""
    return Action(
        type="advance_from_repair",
        payload={"now": now if now is not None else current_time_ms()},
    )


def tick(now: int | None = None) -> Action:
    """Poll phase deadlines. A no-op unless the current timed phase has elapsed."""
    return Action(type="tick", payload={"now": now if now is not None else current_time_ms()})


# ===== Tile input =====

def select_tool(tool: str) -> Action:
    return Action(type="select_tool", payload={"tool": tool})


def place_tile(x: int, y: int) -> Action:
    """Apply the selected tool to one tile (a click)."""
    return Action(type="place_tile", payload={"x": x, "y": y})


def place_tiles(tiles: list[GridPosition]) -> Action:
    """Apply the selected tool to every tile of a drag path, in order."""
    return Action(type="place_tiles", payload={"tiles": [[x, y] for x, y in tiles]})


def select_damaged_tile(key: str | None) -> Action:
    return Action(type="select_damaged_tile", payload={"key": key})


def repair_tile(key: str) -> Action:
    return Action(type="repair_tile", payload={"key": key})


# ===== Cards / economy =====

def play_card(card_id: str) -> Action:
    return Action(type="play_card", payload={"card_id": card_id})


def add_resources(amounts: dict[str, int]) -> Action:
    """Debug grant, clamped at caps. Example: add_resources({"wood": 10})"""
    return Action(type="add_resources", payload={"amounts": amounts})


# ===== View / debug toggles =====

def set_underground_view(show: bool) -> Action:
    return Action(type="set_underground_view", payload={"show": show})


def toggle_free_builder() -> Action:
    return Action(type="toggle_free_builder", payload={})
