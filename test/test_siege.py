"""
Siege damage and repair, at the service level and through the reducer.
"""

import random
from dataclasses import replace

from backend.engine.actions import complete_siege, repair_tile as repair_action
from backend.engine.events import REPAIR_REJECTED, TILE_REPAIRED
from backend.engine.ledger import ResourceLedger
from backend.engine.phases import DEFENSE, REPAIR
from backend.engine.reducer import apply_action
from backend.engine.siege import generate_siege_rolls, get_siege_targets, repair_tile, run_siege_damage
from backend.engine.state import Building, Grid, Tile

WALL = Tile(zone="wall", wall_type="palisade")


def _grid():
    return Grid.filled(5).with_tiles({
        "0,0": WALL,
        "1,0": replace(WALL, building=Building("tower")),
        "2,0": Tile(building=Building("barbican")),
        "3,0": Tile(building=Building("stone_mason")),
        "2,2": Tile(building=Building("tower"), zone="start"),
    })


def test_targets_are_walls_and_defenses_outside_start():
    assert sorted(get_siege_targets(_grid())) == ["0,0", "1,0", "2,0"]


def test_rolls_below_chance_damage():
    grid, damaged = run_siege_damage(_grid(), {"0,0": 0.05, "1,0": 0.5, "2,2": 0.0, "3,0": 0.0}, 0.15)
    assert damaged == ["0,0"]
    assert grid.get(0, 0).building.damaged
    assert not grid.get(1, 0).building.damaged
    assert not grid.get(2, 2).building.damaged
    assert not grid.get(3, 0).building.damaged


def test_already_damaged_tiles_are_not_rolled_again():
    grid, first = run_siege_damage(_grid(), {"0,0": 0.0}, 0.15)
    grid_again, second = run_siege_damage(grid, {"0,0": 0.0}, 0.15)
    assert first == ["0,0"]
    assert second == []
    assert grid_again == grid


def test_seeded_rolls_are_reproducible():
    grid = _grid()
    assert generate_siege_rolls(grid, random.Random(3)) == generate_siege_rolls(grid, random.Random(3))
    assert set(generate_siege_rolls(grid)) == {"0,0", "1,0", "2,0"}


def test_repair_clears_damage_only_on_damaged_tiles():
    grid, _ = run_siege_damage(_grid(), {"1,0": 0.0}, 0.15)
    unchanged, ok = repair_tile(grid, "0,0")
    assert not ok
    assert unchanged is grid

    repaired, ok = repair_tile(grid, "1,0")
    assert ok
    assert repaired.get(1, 0).building == Building("tower")


def _defense_state(build_state):
    return replace(build_state, phase=DEFENSE, grid=build_state.grid.with_tiles({"0,0": WALL, "1,0": WALL}))


def test_complete_siege_enters_repair_with_damage_list(build_state, building_defs, card_defs, config):
    state, events = apply_action(
        _defense_state(build_state), complete_siege({"0,0": 0.01, "1,0": 0.9}), building_defs, card_defs, config)
    assert state.phase == REPAIR
    assert state.damaged_tiles == ["0,0"]
    assert events[0].payload["damaged_keys"] == ["0,0"]


def test_damage_list_holds_only_this_siege(build_state, building_defs, card_defs, config):
    state = _defense_state(build_state)
    state = replace(state, grid=state.grid.with_tiles({
        "0,0": replace(WALL, building=Building("grass", damaged=True)),
        "2,0": WALL,
    }))

    state, events = apply_action(state, complete_siege({"2,0": 0.0}), building_defs, card_defs, config)

    assert events[0].payload["damaged_keys"] == ["2,0"]
    assert state.damaged_tiles == ["2,0"]
    assert state.grid.get(0, 0).building.damaged


def test_repair_through_reducer(build_state, building_defs, card_defs, config):
    state, _ = apply_action(_defense_state(build_state), complete_siege({"0,0": 0.0}), building_defs, card_defs, config)

    state, events = apply_action(state, repair_action("0,0"), building_defs, card_defs, config)

    assert events[0].type == TILE_REPAIRED
    assert not state.grid.get(0, 0).building.damaged
    assert state.damaged_tiles == []
    assert state.resources.wood == 20 - config.repair_cost_wood
    assert state.resources.stone == 20 - config.repair_cost_stone


def test_unaffordable_repair_is_noop(build_state, building_defs, card_defs, config):
    state, _ = apply_action(_defense_state(build_state), complete_siege({"0,0": 0.0}), building_defs, card_defs, config)
    poor = replace(state, resources=ResourceLedger(wood=1, stone=50, food=50))

    new_state, events = apply_action(poor, repair_action("0,0"), building_defs, card_defs, config)

    assert new_state is poor
    assert events[0].type == REPAIR_REJECTED
    assert events[0].payload["reason"] == "insufficient_resources"


def test_free_builder_repairs_for_free(build_state, building_defs, card_defs, config):
    state, _ = apply_action(_defense_state(build_state), complete_siege({"0,0": 0.0}), building_defs, card_defs, config)
    state = replace(state, free_builder=True, resources=ResourceLedger())

    state, _ = apply_action(state, repair_action("0,0"), building_defs, card_defs, config)

    assert not state.grid.get(0, 0).building.damaged
    assert state.resources.balances() == {"wood": 0, "stone": 0, "food": 0}


def test_repairing_undamaged_tile_is_rejected(build_state, building_defs, card_defs, config):
    state, _ = apply_action(_defense_state(build_state), complete_siege({}), building_defs, card_defs, config)
    new_state, events = apply_action(state, repair_action("1,0"), building_defs, card_defs, config)
    assert new_state is state
    assert events[0].payload["reason"] == "not_damaged"
