"""Recognition polling — periodically ask the vision model what is on the canvas.

The poller runs on the event loop alongside the frame handler and countdown.
Each tick snapshots the surface synchronously (so it only ever sees fully
committed strokes), then sends it to the vision client without blocking the
loop. Ticks never overlap: while a request is in flight, new ticks are skipped.

Every request is tagged with the round generation it was sent for; the
session discards responses for any other generation.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ocean_canvas.canvas import StrokeRenderer
from ocean_canvas.metrics import MetricsCollector
from ocean_canvas.vision import GUESS_PROMPT, VisionClient

if TYPE_CHECKING:
    from ocean_canvas.session import GameSession

logger = logging.getLogger("ocean_canvas.poller")

DEFAULT_INTERVAL = 1.5


class PollOutcome(Enum):
    PUBLISHED = "published"          # guesses replaced
    FAILED = "failed"                # error sentinel published
    STALE = "stale"                  # round moved on, response dropped
    SKIPPED_BUSY = "skipped_busy"    # previous request still in flight
    SKIPPED_EMPTY = "skipped_empty"  # nothing drawn yet


class RecognitionPoller:
    """Fixed-interval, non-overlapping recognition loop."""

    def __init__(
        self,
        renderer: StrokeRenderer,
        client: VisionClient,
        interval: float = DEFAULT_INTERVAL,
        prompt: str = GUESS_PROMPT,
        metrics: Optional[MetricsCollector] = None,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.renderer = renderer
        self.client = client
        self.interval = interval
        self.prompt = prompt
        self.metrics = metrics

        self._in_flight = False
        self._tasks: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def poll_once(self, session: GameSession) -> PollOutcome:
        """Run one recognition tick against `session`."""
        if self._in_flight:
            logger.debug("Poll skipped: request still in flight")
            return self._record(PollOutcome.SKIPPED_BUSY)

        image = self.renderer.snapshot(skip_blank=True)
        if image is None:
            return self._record(PollOutcome.SKIPPED_EMPTY)

        generation = session.generation
        self._in_flight = True
        started = time.monotonic()
        try:
            text = await self.client.describe(image, self.prompt)
        except Exception as e:
            logger.warning("Recognition request failed (%s): %s", self.client.name, e)
            accepted = session.publish_error(generation)
            return self._record(
                PollOutcome.FAILED if accepted else PollOutcome.STALE,
                time.monotonic() - started,
            )
        finally:
            self._in_flight = False

        accepted = session.publish_response(generation, text)
        return self._record(
            PollOutcome.PUBLISHED if accepted else PollOutcome.STALE,
            time.monotonic() - started,
        )

    async def run(self, session: GameSession):
        """Poll every `interval` seconds until the current round ends."""
        generation = session.generation
        logger.debug("Poller started for round %d", generation)
        try:
            while session.is_current(generation):
                await asyncio.sleep(self.interval)
                if not session.is_current(generation):
                    break
                if self._in_flight or self._tasks:
                    logger.debug("Poll tick skipped: request still in flight")
                    self._record(PollOutcome.SKIPPED_BUSY)
                    continue
                task = asyncio.create_task(self.poll_once(session))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        finally:
            logger.debug("Poller stopped for round %d", generation)

    def cancel_pending(self):
        """Cancel in-flight requests (their responses would be stale anyway)."""
        current = _current_task()
        for task in list(self._tasks):
            if task is not current and not task.done():
                task.cancel()

    def _record(self, outcome: PollOutcome, latency: Optional[float] = None) -> PollOutcome:
        if self.metrics:
            self.metrics.record_poll(outcome.value, latency)
        return outcome


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
