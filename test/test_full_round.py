"""
One complete round, name entry to the next card draw, driven only through actions.
"""

from backend.engine.actions import (
    advance_from_repair,
    complete_siege,
    continue_to_build,
    place_tile,
    place_tiles,
    ready,
    repair_tile,
    select_tool,
    submit_name,
    tick,
)
from backend.engine.grid import grid_line_between
from backend.engine.phases import BUILD, CARD_DRAW, DEFENSE, REPAIR, ROUND_END
from backend.engine.queries import get_fort_summary
from backend.engine.reducer import replay_from_actions


def test_full_round(new_state, building_defs, card_defs, config):
    actions = [
        submit_name("Riverhold"),
        continue_to_build(0),
        select_tool("zone_wall"),
        place_tiles(grid_line_between(2, 2, 7, 2)),
        select_tool("build_tower"),
        place_tile(2, 2),
    ]
    state, _ = replay_from_actions(new_state, actions, building_defs, card_defs, config)

    assert state.fort_name == "Riverhold"
    assert state.phase == BUILD
    assert state.wall_blocks_available == config.wall_blocks - 6
    assert state.grid.get(2, 2).building.type == "tower"
    assert state.grid.get(2, 2).building.construction_progress == 0

    state, _ = replay_from_actions(state, [ready()], building_defs, card_defs, config)
    assert state.phase == DEFENSE
    assert state.grid.get(2, 2).building.construction_progress == 100

    state, events = replay_from_actions(
        state, [complete_siege({"2,2": 0.0, "3,2": 0.99})], building_defs, card_defs, config)
    assert state.phase == REPAIR
    assert state.damaged_tiles == ["2,2"]
    assert events[0].payload["damaged_count"] == 1

    state, _ = replay_from_actions(state, [repair_tile("2,2")], building_defs, card_defs, config)
    assert state.damaged_tiles == []
    assert not state.grid.get(2, 2).building.damaged
    assert state.resources.wood == 18
    assert state.resources.stone == 18

    state, _ = replay_from_actions(state, [advance_from_repair(1_000)], building_defs, card_defs, config)
    assert state.phase == ROUND_END
    assert state.phase_ends_at == 6_000

    state, _ = replay_from_actions(state, [tick(5_999)], building_defs, card_defs, config)
    assert state.phase == ROUND_END

    state, _ = replay_from_actions(state, [tick(6_000)], building_defs, card_defs, config)
    assert state.phase == CARD_DRAW
    assert state.round == 2
    assert state.resources.balances() == {"wood": 23, "stone": 23, "food": 25}
    assert state.stats["defense"] == 6

    summary = get_fort_summary(state, now=6_000)
    assert summary["round"] == 2
    assert summary["phase"] == CARD_DRAW
