"""Stroke rendering onto the drawing surface.

Maintains a pixel buffer the size of the canvas and extends the current
stroke on successive DRAW frames. Any other input state lifts the pen.

Usage:
    renderer = StrokeRenderer(width=800, height=600)
    # In frame loop:
    segment = renderer.update(state, smoothed_position)
    # Poller:
    jpeg = renderer.snapshot(skip_blank=True)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from ocean_canvas.classifier import InputState
from ocean_canvas.landmarks import Point2D

logger = logging.getLogger("ocean_canvas.canvas")

# BGR
BACKGROUND_COLOR = (255, 255, 255)
INK_COLOR = (0, 0, 0)


@dataclass(frozen=True)
class StrokeSegment:
    """One committed line between two consecutive smoothed points."""
    start: Point2D
    end: Point2D
    width: int = 6
    color: tuple[int, int, int] = INK_COLOR

    def to_dict(self) -> dict:
        b, g, r = self.color
        return {
            "type": "line",
            "x1": round(self.start.x, 1),
            "y1": round(self.start.y, 1),
            "x2": round(self.end.x, 1),
            "y2": round(self.end.y, 1),
            "color": f"#{r:02x}{g:02x}{b:02x}",
            "width": self.width,
        }


class StrokeRenderer:
    """Owns the drawing surface and the open stroke path.

    Committed pixels are append-only until `clear()`. The renderer also keeps
    the list of segments committed since the last clear so clients can replay
    the drawing.
    """

    def __init__(
        self,
        width: int = 800,
        height: int = 600,
        line_width: int = 6,
        ink_color: tuple[int, int, int] = INK_COLOR,
        background_color: tuple[int, int, int] = BACKGROUND_COLOR,
        image_format: str = ".jpg",
        jpeg_quality: int = 90,
        max_history: int = 10000,
    ):
        self.width = width
        self.height = height
        self.line_width = line_width
        self.ink_color = tuple(ink_color)
        self.background_color = tuple(background_color)
        self.image_format = image_format
        self.jpeg_quality = jpeg_quality
        self._max_history = max_history

        self._pixels = np.empty((height, width, 3), dtype=np.uint8)
        self._previous: Optional[Point2D] = None
        self._segments: list[StrokeSegment] = []
        self._truncated = False
        self._blank = True
        self.clear()

    def update(
        self,
        state: InputState,
        position: Optional[Point2D],
    ) -> Optional[StrokeSegment]:
        """Apply one frame's input state.

        On DRAW, strokes from the previous anchor to `position` (if there is an
        anchor) and makes `position` the new anchor. Any other state resets
        the anchor so no segment spans a pen-up gap.

        Returns:
            The committed segment, or None if nothing was drawn.
        """
        if state is not InputState.DRAW or position is None:
            self._previous = None
            return None

        segment = None
        if self._previous is not None:
            segment = StrokeSegment(
                start=self._previous,
                end=position,
                width=self.line_width,
                color=self.ink_color,
            )
            self._draw(segment)
            self._segments.append(segment)
            self._blank = False

            if len(self._segments) > self._max_history:
                self._segments = self._segments[-self._max_history // 2:]
                self._truncated = True

        self._previous = position
        return segment

    def _draw(self, segment: StrokeSegment):
        p1 = (int(round(segment.start.x)), int(round(segment.start.y)))
        p2 = (int(round(segment.end.x)), int(round(segment.end.y)))
        # Thick OpenCV lines have round caps, which also rounds the joins
        cv2.line(
            self._pixels, p1, p2, segment.color,
            thickness=segment.width, lineType=cv2.LINE_AA,
        )

    def lift(self):
        """Lift the pen without drawing."""
        self._previous = None

    def clear(self):
        """Repaint the whole surface with the background and reset the path."""
        self._pixels[:] = self.background_color
        self._previous = None
        self._segments = []
        self._truncated = False
        self._blank = True

    def snapshot(self, skip_blank: bool = False) -> Optional[bytes]:
        """Encode the current surface contents.

        Args:
            skip_blank: Return None if nothing has been drawn since the last clear.

        Returns:
            Encoded image bytes, or None.
        """
        if skip_blank and self._blank:
            return None

        params: list[int] = []
        if self.image_format.lower() in (".jpg", ".jpeg"):
            params = [cv2.IMWRITE_JPEG_QUALITY, self.jpeg_quality]

        ok, buf = cv2.imencode(self.image_format, self._pixels, params)
        if not ok:
            logger.warning("Failed to encode canvas as %s", self.image_format)
            return None
        return buf.tobytes()

    def get_full_state(self) -> list[dict]:
        """Commands for new client sync.

        Once the segment history has been trimmed the list starts with a
        clear, so a client never mixes the recent tail with stale pixels.
        Snapshots always carry the full drawing.
        """
        commands = [seg.to_dict() for seg in self._segments]
        if self._truncated:
            commands.insert(0, {"type": "clear"})
        return commands

    @property
    def mime_type(self) -> str:
        fmt = self.image_format.lower().lstrip(".")
        return "image/jpeg" if fmt in ("jpg", "jpeg") else f"image/{fmt}"

    @property
    def pixels(self) -> np.ndarray:
        """Read-only view of the surface (H, W, 3) BGR."""
        view = self._pixels.view()
        view.flags.writeable = False
        return view

    @property
    def segments(self) -> list[StrokeSegment]:
        return list(self._segments)

    @property
    def segment_count(self) -> int:
        return len(self._segments)

    @property
    def previous_point(self) -> Optional[Point2D]:
        return self._previous

    @property
    def is_blank(self) -> bool:
        return self._blank

    @property
    def is_drawing(self) -> bool:
        return self._previous is not None
