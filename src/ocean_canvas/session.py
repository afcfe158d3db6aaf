"""Game session state machine — round lifecycle, countdown and win check.

States:
    IDLE → PLAYING → {WON, LOST}
    WON / LOST → PLAYING via start()

The session is the only writer of round state. The countdown and the
recognition poller run as asyncio tasks that exist only while the round is
PLAYING; every exit from PLAYING (win, timeout, restart, abort, close) tears
them down. A monotonically increasing generation counter tags each round so
late responses from an earlier round are ignored.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Sequence

from ocean_canvas.canvas import StrokeRenderer
from ocean_canvas.metrics import MetricsCollector
from ocean_canvas.poller import RecognitionPoller
from ocean_canvas.vision import ERROR_GUESS, matches_target, parse_guesses

logger = logging.getLogger("ocean_canvas.session")

DEFAULT_WORDS = ("Apple", "House", "Car", "Tree", "Smile", "Sun", "Mug", "Fish", "Boat")
DEFAULT_ROUND_SECONDS = 20


class RoundStatus(Enum):
    IDLE = "idle"
    PLAYING = "playing"
    WON = "won"
    LOST = "lost"


@dataclass
class RoundState:
    """Read-only view of the current round."""
    status: RoundStatus
    target_word: str
    seconds_remaining: int
    guesses: list[str] = field(default_factory=list)
    generation: int = 0

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "target_word": self.target_word,
            "seconds_remaining": self.seconds_remaining,
            "guesses": list(self.guesses),
            "generation": self.generation,
        }


class GameSession:
    """Owns round state and the timers that drive it.

    Usage:
        session = GameSession(renderer, poller=RecognitionPoller(renderer, client))
        session.on_change(lambda state: print(state.status))
        session.start()          # inside a running event loop
        ...
        session.close()
    """

    def __init__(
        self,
        renderer: StrokeRenderer,
        poller: Optional[RecognitionPoller] = None,
        words: Sequence[str] = DEFAULT_WORDS,
        round_seconds: int = DEFAULT_ROUND_SECONDS,
        tick_interval: float = 1.0,
        rng: Optional[random.Random] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        if not words:
            raise ValueError("words must not be empty")
        if round_seconds < 1:
            raise ValueError("round_seconds must be >= 1")
        self.renderer = renderer
        self.poller = poller
        self.words = list(words)
        self.round_seconds = round_seconds
        self.tick_interval = tick_interval
        self.metrics = metrics
        self._rng = rng or random.Random()

        self._status = RoundStatus.IDLE
        self._target = ""
        self._seconds_remaining = round_seconds
        self._guesses: list[str] = []
        self._generation = 0

        self._timer_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._listeners: list[Callable[[RoundState], None]] = []

    # --- Lifecycle ---

    def start(self, word: Optional[str] = None) -> RoundState:
        """Begin a new round, discarding anything left from the previous one."""
        if word is not None and not isinstance(word, str):
            raise TypeError(f"word must be a string, got {type(word).__name__}")
        self._cancel_tasks()
        self._generation += 1
        self._guesses = []
        self.renderer.clear()
        self._target = word or self._rng.choice(self.words)
        self._seconds_remaining = self.round_seconds
        self._status = RoundStatus.PLAYING

        logger.info("Round %d started: draw '%s'", self._generation, self._target)
        if self.metrics:
            self.metrics.record_round("started")

        self._schedule_tasks()
        self._notify()
        return self.state

    def tick(self) -> RoundStatus:
        """Advance the countdown by one second."""
        if self._status is not RoundStatus.PLAYING:
            return self._status

        self._seconds_remaining = max(0, self._seconds_remaining - 1)
        if self._seconds_remaining == 0:
            self._finish(RoundStatus.LOST)
        else:
            self._notify()
        return self._status

    def abort(self):
        """Leave PLAYING without a result and invalidate in-flight polls."""
        self._cancel_tasks()
        if self._status is RoundStatus.PLAYING:
            self._generation += 1
            self._status = RoundStatus.IDLE
            logger.info("Round aborted")
            self._notify()

    def close(self):
        """Tear down all timers. Safe to call more than once."""
        self.abort()
        self._listeners.clear()

    # --- Poll results ---

    def is_current(self, generation: int) -> bool:
        return generation == self._generation and self._status is RoundStatus.PLAYING

    def publish_response(self, generation: int, text: str) -> bool:
        """Apply a classifier response for round `generation`.

        Returns:
            False if the response is stale and was discarded.
        """
        if not self.is_current(generation):
            logger.debug(
                "Discarding stale response for round %d (current %d)",
                generation, self._generation,
            )
            return False

        self._guesses = parse_guesses(text)
        logger.debug("Guesses: %s", self._guesses)

        if matches_target(text, self._target):
            self._finish(RoundStatus.WON)
        else:
            self._notify()
        return True

    def publish_error(self, generation: int) -> bool:
        """Show the error placeholder for round `generation`; polling continues."""
        if not self.is_current(generation):
            return False
        self._guesses = [ERROR_GUESS]
        self._notify()
        return True

    # --- Observers ---

    def on_change(self, callback: Callable[[RoundState], None]):
        """Register a callback invoked with the new RoundState after each change."""
        self._listeners.append(callback)

    @property
    def state(self) -> RoundState:
        return RoundState(
            status=self._status,
            target_word=self._target,
            seconds_remaining=self._seconds_remaining,
            guesses=list(self._guesses),
            generation=self._generation,
        )

    @property
    def status(self) -> RoundStatus:
        return self._status

    @property
    def is_playing(self) -> bool:
        return self._status is RoundStatus.PLAYING

    @property
    def target_word(self) -> str:
        return self._target

    @property
    def seconds_remaining(self) -> int:
        return self._seconds_remaining

    @property
    def guesses(self) -> list[str]:
        return list(self._guesses)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def timers_active(self) -> bool:
        return any(
            t is not None and not t.done()
            for t in (self._timer_task, self._poll_task)
        )

    # --- Internals ---

    def _finish(self, status: RoundStatus):
        self._status = status
        self._cancel_tasks()
        logger.info(
            "Round %d %s: '%s' with %ds left",
            self._generation, status.value, self._target, self._seconds_remaining,
        )
        if self.metrics:
            self.metrics.record_round(status.value)
        self._notify()

    def _schedule_tasks(self):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: caller drives tick() and poll_once() directly
            return

        self._timer_task = loop.create_task(self._run_countdown(self._generation))
        if self.poller is not None:
            self._poll_task = loop.create_task(self.poller.run(self))

    async def _run_countdown(self, generation: int):
        while self.is_current(generation):
            await asyncio.sleep(self.tick_interval)
            if not self.is_current(generation):
                break
            self.tick()

    def _cancel_tasks(self):
        current = _current_task()
        for task in (self._timer_task, self._poll_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._timer_task = None
        self._poll_task = None
        if self.poller is not None:
            self.poller.cancel_pending()

    def _notify(self):
        state = self.state
        for cb in self._listeners:
            cb(state)


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
