"""Exponential smoothing of the fingertip cursor."""

from __future__ import annotations

from typing import Optional

from ocean_canvas.landmarks import GestureSample, Point2D


def lerp(start: float, end: float, amount: float) -> float:
    """Linear interpolation from `start` toward `end`."""
    return (1.0 - amount) * start + amount * end


class PositionSmoother:
    """Smooths the raw fingertip into surface pixel coordinates.

    Each frame with a hand moves the smoothed position `blend` of the way
    toward the new target. The first sample after the hand appears is used
    as-is. After `release_after` consecutive frames without a hand the
    smoothed value is discarded, so the next reappearance starts unsmoothed.

    The sample tip is expected to be mirrored already (see normalize_hand).
    """

    def __init__(
        self,
        width: int,
        height: int,
        blend: float = 0.5,
        release_after: int = 1,
    ):
        if not 0.0 < blend <= 1.0:
            raise ValueError("blend must be in (0, 1]")
        if release_after < 1:
            raise ValueError("release_after must be >= 1")
        self.width = width
        self.height = height
        self.blend = blend
        self.release_after = release_after

        self._position: Optional[Point2D] = None
        self._missed = 0

    def update(self, sample: Optional[GestureSample]) -> Optional[Point2D]:
        """Feed one frame and return the smoothed cursor, or None without a hand."""
        if sample is None:
            self._missed += 1
            if self._missed >= self.release_after:
                self._position = None
            return None

        self._missed = 0
        target_x = sample.tip.x * self.width
        target_y = sample.tip.y * self.height

        if self._position is None:
            self._position = Point2D(target_x, target_y)
        else:
            self._position = Point2D(
                lerp(self._position.x, target_x, self.blend),
                lerp(self._position.y, target_y, self.blend),
            )
        return self._position

    def reset(self):
        self._position = None
        self._missed = 0

    @property
    def position(self) -> Optional[Point2D]:
        return self._position
