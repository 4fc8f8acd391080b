"""
Round phase machine: transitions, deadlines, misuse, tools, cards and free builder mode.
"""

from dataclasses import replace

import pytest

from backend.engine.actions import (
    Action,
    add_resources,
    advance_from_repair,
    complete_siege,
    continue_to_build,
    place_tile,
    place_tiles,
    play_card,
    ready,
    select_damaged_tile,
    select_tool,
    submit_name,
    tick,
    toggle_free_builder,
)
from backend.engine.events import CARD_REJECTED, PLACEMENT_REJECTED
from backend.engine.ledger import ResourceLedger
from backend.engine.phases import BUILD, CARD_DRAW, DEFENSE, NAME_ENTRY, REPAIR, ROUND_END
from backend.engine.queries import get_available_action_types, get_resource_summary
from backend.engine.reducer import apply_action, replay_from_actions
from backend.engine.scheduler import PhaseClock, due_action
from backend.engine.session import FortSession
from backend.engine.state import Building, Tile


@pytest.fixture
def act(building_defs, card_defs, config):
    def _act(state, action):
        return apply_action(state, action, building_defs, card_defs, config)
    return _act


def test_blank_name_becomes_unnamed(new_state, act):
    assert new_state.phase == NAME_ENTRY
    state, _ = act(new_state, submit_name("   "))
    assert state.fort_name == "Unnamed Fort"
    assert state.phase == CARD_DRAW


def test_name_is_trimmed(new_state, act):
    state, events = act(new_state, submit_name("  Riverhold "))
    assert state.fort_name == "Riverhold"
    assert events[0].payload == {"fort_name": "Riverhold"}


@pytest.mark.parametrize("action", [
    submit_name("x"),
    continue_to_build(0),
    complete_siege({}),
    advance_from_repair(0),
])
def test_transition_in_wrong_phase_raises(build_state, act, action):
    with pytest.raises(ValueError):
        act(build_state, action)


def test_ready_outside_build_raises(new_state, act):
    with pytest.raises(ValueError):
        act(new_state, ready())


def test_unknown_action_raises(build_state, act):
    with pytest.raises(ValueError):
        act(build_state, Action(type="launch_trebuchet"))


def test_continue_to_build_sets_deadline(new_state, act, config):
    state, _ = act(replace(new_state, phase=CARD_DRAW), continue_to_build(1_000))
    assert state.phase == BUILD
    assert state.phase_ends_at == 1_000 + config.build_phase_duration_ms


def test_tick_before_deadline_changes_nothing(build_state, act):
    state, events = act(build_state, tick(build_state.phase_ends_at - 1))
    assert state is build_state
    assert events == []


def test_build_deadline_moves_to_defense_and_completes_construction(build_state, act):
    grid = build_state.grid.with_tiles({
        "0,0": Tile(building=Building("barbican", construction_progress=0)),
        "1,1": Tile(underground=Building("carpenter", construction_progress=0)),
    })
    state, _ = act(replace(build_state, grid=grid), tick(build_state.phase_ends_at))
    assert state.phase == DEFENSE
    assert state.phase_ends_at is None
    assert state.grid.get(0, 0).building.construction_progress == 100
    assert state.grid.get(1, 1).underground.construction_progress == 100


def test_ready_ends_build_early(build_state, act):
    state, _ = act(build_state, ready())
    assert state.phase == DEFENSE


def test_round_end_loops_to_next_round_with_bonus(build_state, act, config):
    state = replace(
        build_state,
        phase=REPAIR,
        damaged_tiles=["0,0"],
        resources=ResourceLedger(wood=20, stone=498, food=0),
    )
    state, _ = act(state, advance_from_repair(10_000))
    assert state.phase == ROUND_END
    assert state.phase_ends_at == 10_000 + config.round_end_duration_ms

    state, events = act(state, tick(10_000 + config.round_end_duration_ms))

    assert state.phase == CARD_DRAW
    assert state.round == 2
    assert state.damaged_tiles == []
    assert state.resources.balances() == {"wood": 25, "stone": 500, "food": 5}
    assert events[-1].type == "round_started"


@pytest.mark.parametrize("phase", [NAME_ENTRY, CARD_DRAW, DEFENSE, ROUND_END])
def test_placement_blocked_outside_build(build_state, act, phase):
    state = replace(build_state, phase=phase, selected_tool="zone_moat")
    new_state, events = act(state, place_tile(0, 0))
    assert new_state is state
    assert events[0].type == PLACEMENT_REJECTED


def test_repair_click_toggles_damaged_selection(build_state, act):
    grid = build_state.grid.with_tiles({"0,0": Tile(building=Building("tower", damaged=True), zone="wall")})
    state = replace(build_state, phase=REPAIR, grid=grid, damaged_tiles=["0,0"], selected_tool="zone_moat")

    state, _ = act(state, place_tile(0, 0))
    assert state.selected_damaged_key == "0,0"
    assert state.grid.get(0, 0).building.type == "tower"

    state, _ = act(state, place_tile(0, 0))
    assert state.selected_damaged_key is None

    unchanged, events = act(state, place_tile(1, 1))
    assert unchanged is state
    assert events[0].type == PLACEMENT_REJECTED

    state, _ = act(state, select_damaged_tile("0,0"))
    assert state.selected_damaged_key == "0,0"


def test_drag_path_only_in_build(build_state, act):
    state = replace(build_state, phase=REPAIR, selected_tool="zone_wall")
    new_state, _ = act(state, place_tiles([(0, 0), (1, 0)]))
    assert new_state is state

    new_state, _ = act(replace(build_state, selected_tool="zone_wall"), place_tiles([(0, 0), (1, 0)]))
    assert new_state.wall_blocks_available == build_state.wall_blocks_available - 2


# ----- tools and cards -----

def test_select_tool_clears_card_and_opens_underground(build_state, act):
    state = replace(build_state, active_card_id="terrain_moat_common", remaining_build_blocks_from_card=3)
    state, _ = act(state, select_tool("zone_moat"))
    assert state.active_card_id == "terrain_moat_common"

    state, _ = act(state, select_tool("build_stone_mason"))
    assert state.active_card_id is None
    assert state.remaining_build_blocks_from_card is None
    assert state.show_underground


def test_unknown_tool_raises(build_state, act):
    with pytest.raises(ValueError):
        act(build_state, select_tool("build_catapult"))


def test_play_moat_card(build_state, act):
    state, _ = act(build_state, play_card("terrain_moat_unique"))
    assert state.selected_tool == "zone_moat"
    assert state.active_card_id == "terrain_moat_unique"
    assert state.remaining_build_blocks_from_card == 7
    assert state.resources.food == 2

    # Replaying the active card only re-selects the tool
    state = replace(state, selected_tool="select")
    state, _ = act(state, play_card("terrain_moat_unique"))
    assert state.selected_tool == "zone_moat"
    assert state.resources.food == 2


def test_unaffordable_or_unsupported_cards_are_rejected(build_state, act):
    new_state, events = act(build_state, play_card("terrain_moat_rare"))
    assert new_state is build_state
    assert events[0].type == CARD_REJECTED

    new_state, events = act(build_state, play_card("terrain_land_bridge"))
    assert new_state is build_state
    assert events[0].payload["reason"] == "unsupported_effect"


def test_free_builder_reports_unbounded_but_keeps_stored(build_state, act):
    state, _ = act(build_state, toggle_free_builder())
    summary = get_resource_summary(state)
    assert summary["unlimited"]
    assert summary["balances"] == {"wood": None, "stone": None, "food": None}
    assert summary["stored"] == {"wood": 20, "stone": 20, "food": 20}

    state, _ = act(state, play_card("terrain_moat_rare"))
    assert state.remaining_build_blocks_from_card == 10

    state, _ = act(state, toggle_free_builder())
    assert state.resources.balances() == {"wood": 20, "stone": 20, "food": 20}


def test_add_resources_clamps(build_state, act):
    state, events = act(build_state, add_resources({"wood": 1_000}))
    assert state.resources.wood == state.resources.cap_wood
    assert [e.payload["resource"] for e in events] == ["wood"]


def test_available_actions_follow_phase(build_state):
    assert "ready" in get_available_action_types(build_state)
    assert get_available_action_types(replace(build_state, phase=DEFENSE)) == ["complete_siege"]


# ----- clock / session -----

def test_due_action_only_after_deadline(build_state):
    assert due_action(build_state, build_state.phase_ends_at - 1) is None
    action = due_action(build_state, build_state.phase_ends_at)
    assert action.type == "tick"
    assert due_action(replace(build_state, phase=DEFENSE), 10**12) is None


def test_session_clock_drives_build_timer(new_state, building_defs, card_defs, config):
    session = FortSession(new_state, building_defs, card_defs, config, clock=PhaseClock(start=0))
    session.dispatch(submit_name("Clockwork"))
    session.dispatch(continue_to_build(session.now()))

    session.clock.advance(config.build_phase_duration_ms - 1)
    assert session.tick() == []
    assert session.state.phase == BUILD

    session.clock.advance(1)
    session.tick()
    assert session.state.phase == DEFENSE


def test_session_drag_commits_path(build_state, building_defs, card_defs, config):
    session = FortSession(replace(build_state, selected_tool="zone_wall"), building_defs, card_defs, config)
    viewport = session.viewport
    session.pointer_down(*viewport.grid_to_screen(0, 0))
    session.pointer_move(*viewport.grid_to_screen(3, 0))
    assert session.drag_build_preview == [(0, 0), (1, 0), (2, 0), (3, 0)]

    session.pointer_up()

    assert [session.state.grid.get(x, 0).zone for x in range(4)] == ["wall"] * 4
    assert session.drag_build_preview == []


def test_replay_reproduces_session(new_state, building_defs, card_defs, config):
    session = FortSession(new_state, building_defs, card_defs, config, clock=PhaseClock(start=0))
    session.dispatch(submit_name("Replay"))
    session.dispatch(continue_to_build(0))
    session.dispatch(select_tool("zone_land"))
    session.dispatch(place_tile(1, 1))

    replayed, _ = replay_from_actions(new_state, session.action_log, building_defs, card_defs, config)

    assert replayed.to_dict() == session.state.to_dict()
