"""
Single-player session: the current snapshot plus view, drag gesture and clock.
Everything that changes the game goes through dispatch(), which keeps an action log for replay.
"""

import logging

from backend.config import DEFAULT_CONFIG, GameConfig
from backend.engine.actions import Action, place_tile, place_tiles
from backend.engine.definitions import BuildingDefinition, CardDefinition
from backend.engine.drag_build import PRIMARY_BUTTON, LineBuilder
from backend.engine.events import GameEvent
from backend.engine.grid import GridPosition
from backend.engine.projection import IsoViewport
from backend.engine.reducer import apply_action
from backend.engine.scheduler import PhaseClock
from backend.engine.state import GameState

logger = logging.getLogger(__name__)


class FortSession:
    def __init__(
        self,
        state: GameState,
        building_defs: dict[str, BuildingDefinition],
        card_defs: dict[str, CardDefinition],
        config: GameConfig = DEFAULT_CONFIG,
        clock: PhaseClock | None = None,
        viewport: IsoViewport | None = None,
    ):
        self.state = state
        self.building_defs = building_defs
        self.card_defs = card_defs
        self.config = config
        self.clock = clock or PhaseClock()
        self.viewport = viewport or IsoViewport()
        self.line_builder = LineBuilder(state.grid_size)
        self.action_log: list[Action] = []

    def dispatch(self, action: Action) -> list[GameEvent]:
        """Apply an action. Phase misuse raises ValueError and leaves the session untouched."""
        self.state, events = apply_action(
            self.state, action, self.building_defs, self.card_defs, self.config)
        self.action_log.append(action)
        return events

    def tick(self) -> list[GameEvent]:
        """Advance a timed phase whose deadline has passed; a no-op otherwise."""
        action = self.clock.poll(self.state)
        if action is None:
            return []
        return self.dispatch(action)

    def now(self) -> int:
        return self.clock.now()

    @property
    def drag_build_preview(self) -> list[GridPosition]:
        return self.line_builder.preview

    # ----- pointer input -----

    def pointer_down(self, sx: float, sy: float, button: int = PRIMARY_BUTTON) -> list[GameEvent]:
        """
        Start a drag for line tools; any other primary click is applied immediately.
        """
        if self.line_builder.pointer_down(self.viewport, sx, sy, self.state.selected_tool, button):
            return []
        if button != PRIMARY_BUTTON:
            return []
        pos = self.viewport.screen_to_grid(sx, sy, self.state.grid_size)
        if pos is None:
            return []
        return self.dispatch(place_tile(*pos))

    def pointer_move(self, sx: float, sy: float) -> None:
        self.line_builder.pointer_move(self.viewport, sx, sy)

    def pointer_up(self, button: int = PRIMARY_BUTTON) -> list[GameEvent]:
        path = self.line_builder.pointer_up(button)
        if not path:
            return []
        if len(path) == 1:
            return self.dispatch(place_tile(*path[0]))
        logger.debug("Committing drag path of %d tiles", len(path))
        return self.dispatch(place_tiles(path))

    def pointer_leave(self) -> None:
        self.line_builder.pointer_leave()

    def key_down(self, key: str) -> bool:
        return self.line_builder.key_down(key)

    # ----- view -----

    def pan(self, dx: float, dy: float) -> None:
        self.viewport = self.viewport.panned(dx, dy)

    def wheel(self, delta_y: float, cursor_x: float, cursor_y: float) -> None:
        self.viewport = self.viewport.wheel(delta_y, cursor_x, cursor_y)

