"""Landmark normalization — raw hand landmarks to a canonical gesture sample.

Converts one frame of detector output (zero or one hand, 21 points normalized
to [0, 1]) into a GestureSample: mirrored index fingertip position, pinch
distance and per-finger openness.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

# MediaPipe hand landmark indices
WRIST = 0
THUMB_CMC, THUMB_MCP, THUMB_IP, THUMB_TIP = 1, 2, 3, 4
INDEX_MCP, INDEX_PIP, INDEX_DIP, INDEX_TIP = 5, 6, 7, 8
MIDDLE_MCP, MIDDLE_PIP, MIDDLE_DIP, MIDDLE_TIP = 9, 10, 11, 12
RING_MCP, RING_PIP, RING_DIP, RING_TIP = 13, 14, 15, 16
PINKY_MCP, PINKY_PIP, PINKY_DIP, PINKY_TIP = 17, 18, 19, 20

NUM_LANDMARKS = 21

FINGER_NAMES = ("thumb", "index", "middle", "ring", "pinky")
FINGER_TIPS = [THUMB_TIP, INDEX_TIP, MIDDLE_TIP, RING_TIP, PINKY_TIP]
FINGER_PIPS = [THUMB_IP, INDEX_PIP, MIDDLE_PIP, RING_PIP, PINKY_PIP]  # thumb uses IP


@dataclass(frozen=True)
class Point2D:
    """A 2D point, either normalized [0, 1] or in surface pixels."""
    x: float
    y: float

    def distance_to(self, other: Point2D) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def to_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class GestureSample:
    """Canonical per-frame hand reading.

    Attributes:
        tip: Index fingertip, normalized and already mirrored.
        pinch_distance: Index tip to thumb tip distance (normalized units).
        fingers_open: Extension flags for thumb, index, middle, ring, pinky.
    """
    tip: Point2D
    pinch_distance: float
    fingers_open: tuple[bool, bool, bool, bool, bool]

    @property
    def index_open(self) -> bool:
        return self.fingers_open[1]

    def finger_states(self) -> dict[str, bool]:
        return dict(zip(FINGER_NAMES, self.fingers_open))


def normalize_hand(
    landmarks: Optional[np.ndarray | Sequence],
    mirror: bool = True,
) -> Optional[GestureSample]:
    """Build a GestureSample from one hand's landmarks.

    Args:
        landmarks: Array-like of shape (21, 2) or (21, 3) with normalized
                   coordinates, or None / empty when no hand was detected.
        mirror: Flip the x axis (x' = 1 - x) to match the mirrored preview.

    Returns:
        GestureSample, or None if there is no hand.

    Raises:
        ValueError: If the landmark array has the wrong shape.
    """
    if landmarks is None:
        return None

    lm = np.asarray(landmarks, dtype=np.float64)
    if lm.size == 0:
        return None
    if lm.ndim != 2 or lm.shape[0] != NUM_LANDMARKS or lm.shape[1] < 2:
        raise ValueError(
            f"Expected landmarks of shape ({NUM_LANDMARKS}, 2|3), got {lm.shape}"
        )

    xy = lm[:, :2].copy()
    if mirror:
        xy[:, 0] = 1.0 - xy[:, 0]

    wrist = xy[WRIST]
    tip_dist = np.linalg.norm(xy[FINGER_TIPS] - wrist, axis=1)
    pip_dist = np.linalg.norm(xy[FINGER_PIPS] - wrist, axis=1)
    fingers_open = tuple(bool(t > p) for t, p in zip(tip_dist, pip_dist))

    pinch = float(np.linalg.norm(xy[INDEX_TIP] - xy[THUMB_TIP]))

    return GestureSample(
        tip=Point2D(float(xy[INDEX_TIP, 0]), float(xy[INDEX_TIP, 1])),
        pinch_distance=pinch,
        fingers_open=fingers_open,  # type: ignore[arg-type]
    )
