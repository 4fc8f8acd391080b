"""
Round-based phase system.
name_entry (new game only) -> card_draw -> build -> defense -> repair -> round_end -> card_draw ...
"""

import time

NAME_ENTRY = "name_entry"  # New game only: player names their fort before the first card draw
CARD_DRAW = "card_draw"    # Draw cards at start of round
BUILD = "build"            # Timed build/fortify window
DEFENSE = "defense"        # Siege
REPAIR = "repair"          # Option to repair damaged structures
ROUND_END = "round_end"    # Brief transition before next round

PHASE_ORDER = [NAME_ENTRY, CARD_DRAW, BUILD, DEFENSE, REPAIR, ROUND_END]

# Phases in which tile-placement input is ignored
PLACEMENT_BLOCKED_PHASES = frozenset({NAME_ENTRY, CARD_DRAW, DEFENSE, ROUND_END})

# Explicit transition actions and the only phase each one is valid in
TRANSITION_SOURCE_PHASE = {
    "submit_name": NAME_ENTRY,
    "continue_to_build": CARD_DRAW,
    "ready": BUILD,
    "complete_siege": DEFENSE,
    "advance_from_repair": REPAIR,
}

# Phases with a wall-clock deadline polled by tick
TIMED_PHASES = frozenset({BUILD, ROUND_END})


def current_time_ms() -> int:
    """Wall-clock time in ms (the unit of phase_ends_at)."""
    return int(time.time() * 1000)
