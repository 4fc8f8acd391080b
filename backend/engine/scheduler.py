"""
Headless phase clock.
Compares the current time with phase_ends_at and yields the transition action when a timed
phase has run out. Each transition replaces the previous deadline, so there is never more than
one pending timer.
"""

from backend.engine.actions import Action, tick
from backend.engine.phases import TIMED_PHASES, current_time_ms
from backend.engine.state import GameState


def due_action(state: GameState, now: int | None = None) -> Action | None:
    """A tick action if the current timed phase has elapsed at now, else None."""
    now = now if now is not None else current_time_ms()
    if state.phase not in TIMED_PHASES or state.phase_ends_at is None:
        return None
    if now < state.phase_ends_at:
        return None
    return tick(now)


class PhaseClock:
    """
    Time source for phase deadlines. Tests pass a fixed or manually advanced clock.

    Example:
        clock = PhaseClock(start=0)
        clock.advance(180_000)
        action = clock.poll(state)
    """

    def __init__(self, start: int | None = None):
        self._manual = start is not None
        self._now = start if start is not None else 0

    def now(self) -> int:
        return self._now if self._manual else current_time_ms()

    def advance(self, ms: int) -> int:
        if not self._manual:
            raise ValueError("Cannot advance a wall-clock PhaseClock")
        self._now += ms
        return self._now

    def poll(self, state: GameState) -> Action | None:
        return due_action(state, self.now())
