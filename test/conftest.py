"""
Shared fixtures: static definitions and a small 10x10 fort already in the build phase.
The start block of a 10x10 grid (block size 2) covers (4,4), (5,4), (4,5) and (5,5).
"""

from dataclasses import replace

import pytest

from backend.config import DEFAULT_CONFIG
from backend.engine.definitions import load_static_definitions
from backend.engine.phases import BUILD
from backend.engine.utils import initialize_game_state


@pytest.fixture(scope="session")
def definitions():
    return load_static_definitions()


@pytest.fixture
def building_defs(definitions):
    return definitions[0]


@pytest.fixture
def tool_defs(definitions):
    return definitions[1]


@pytest.fixture
def card_defs(definitions):
    return definitions[2]


@pytest.fixture
def config():
    return DEFAULT_CONFIG.with_overrides(grid_size=10, start_block_size=2)


@pytest.fixture
def new_state(config):
    return initialize_game_state(config, fort_name="Test Fort", fort_id="fort-test")


@pytest.fixture
def build_state(new_state, config):
    return replace(new_state, phase=BUILD, phase_ends_at=config.build_phase_duration_ms)
