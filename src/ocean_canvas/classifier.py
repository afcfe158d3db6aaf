"""Maps a gesture sample to IDLE, HOVER or DRAW."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from ocean_canvas.landmarks import GestureSample

DEFAULT_PINCH_THRESHOLD = 0.05


class InputState(Enum):
    """Per-frame input state driving the stroke renderer."""
    IDLE = "idle"    # no hand
    HOVER = "hover"  # hand present, pen up
    DRAW = "draw"    # hand present, pen down


class DrawPolicy(Enum):
    """Which hand pose puts the pen down."""
    INDEX_EXTENSION = "index_extension"
    PINCH = "pinch"


class GestureClassifier:
    """Stateless classifier from GestureSample to InputState.

    Supports two policies:
    1. Index extension: draw while the index finger is extended, hover
       with a fist.
    2. Pinch: draw while index tip and thumb tip are closer than
       `pinch_threshold` (normalized units), hover otherwise.

    Both return IDLE when there is no hand.
    """

    def __init__(
        self,
        policy: DrawPolicy | str = DrawPolicy.INDEX_EXTENSION,
        pinch_threshold: float = DEFAULT_PINCH_THRESHOLD,
    ):
        self.policy = DrawPolicy(policy)
        if pinch_threshold <= 0:
            raise ValueError("pinch_threshold must be positive")
        self.pinch_threshold = pinch_threshold

    def classify(self, sample: Optional[GestureSample]) -> InputState:
        if sample is None:
            return InputState.IDLE

        if self.policy is DrawPolicy.PINCH:
            pen_down = sample.pinch_distance < self.pinch_threshold
        else:
            pen_down = sample.index_open

        return InputState.DRAW if pen_down else InputState.HOVER
