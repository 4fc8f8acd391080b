"""
Main entry point for the IsoForts engine.
Plays one full round headlessly: name the fort, build a small wall ring with a moat card,
survive a seeded siege, repair what broke and roll into round 2.
"""

import logging

from backend.config import DEFAULT_CONFIG
from backend.engine.actions import (
    advance_from_repair,
    complete_siege,
    continue_to_build,
    place_tile,
    place_tiles,
    play_card,
    ready,
    repair_tile,
    select_tool,
    submit_name,
    tick,
)
from backend.engine.definitions import load_static_definitions
from backend.engine.events import GameEvent
from backend.engine.grid import grid_line_between
from backend.engine.reducer import apply_action
from backend.engine.utils import generate_siege_rolls, initialize_game_state, print_game_state

DEMO_GRID_SIZE = 20
DEMO_SEED = 7


def print_events(events: list[GameEvent]) -> None:
    for event in events:
        print(f"  - {event.type}: {event.payload}")


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    print("IsoForts - one round, headless")
    print("=" * 60)

    building_defs, _, card_defs = load_static_definitions()
    config = DEFAULT_CONFIG.with_overrides(grid_size=DEMO_GRID_SIZE, siege_damage_chance=0.5)
    state = initialize_game_state(config)
    now = 0

    def step(action):
        nonlocal state
        state, events = apply_action(state, action, building_defs, card_defs, config)
        print_events(events)

    print("\n[NAME ENTRY]")
    step(submit_name("  Riverhold  "))

    print("\n[CARD DRAW]")
    step(continue_to_build(now))

    print("\n[BUILD]")
    # Wall ring two tiles out from the 2x2 start block at (9..10, 9..10)
    ring = (
        grid_line_between(7, 7, 12, 7)
        + grid_line_between(12, 8, 12, 12)
        + grid_line_between(11, 12, 7, 12)
        + grid_line_between(7, 11, 7, 8)
    )
    step(select_tool("zone_wall"))
    step(place_tiles(ring))
    step(select_tool("build_tower"))
    for x, y in [(7, 7), (12, 12)]:
        step(place_tile(x, y))
    step(play_card("terrain_moat_common"))
    step(place_tiles(grid_line_between(6, 5, 13, 5)))
    print_game_state(state, show_map=True)

    step(ready())

    print("\n[DEFENSE]")
    step(complete_siege(generate_siege_rolls(state, seed=DEMO_SEED)))

    print("\n[REPAIR]")
    for key in list(state.damaged_tiles):
        step(repair_tile(key))
    step(advance_from_repair(now))

    print("\n[ROUND END]")
    now += config.round_end_duration_ms
    step(tick(now))

    print_game_state(state, show_map=True)


if __name__ == "__main__":
    main()
