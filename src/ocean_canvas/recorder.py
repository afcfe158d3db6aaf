"""Landmark recordings — capture a drawing session and redraw it offline.

A recording is a JSON document holding one optional hand per frame plus a
small header describing how it was captured:

    {
      "version": 1,
      "source": {"camera": 0, "mirror": true},
      "frames": [{"t": 0.0, "hand": [[x, y, z], ...]}, {"t": 0.033, "hand": null}]
    }

Replaying the frames through a DrawingPipeline reproduces the strokes, which
makes smoothing and draw-policy changes testable without a camera.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Optional

import numpy as np

if TYPE_CHECKING:
    from ocean_canvas.pipeline import DrawingPipeline, FrameResult

logger = logging.getLogger("ocean_canvas.recorder")

FORMAT_VERSION = 1


def _as_hand(hand) -> np.ndarray:
    """Landmarks as a float32 (21, 2|3) array, or ValueError."""
    arr = np.asarray(hand, dtype=np.float32)
    if arr.ndim != 2 or arr.shape[0] != 21 or arr.shape[1] not in (2, 3):
        raise ValueError(f"Expected (21, 2|3) landmarks, got shape {arr.shape}")
    return arr


@dataclass
class RecordedFrame:
    """One captured frame; `hand` is None when no hand was detected."""
    timestamp: float
    hand: Optional[np.ndarray]

    def to_dict(self) -> dict:
        hand = None if self.hand is None else np.round(self.hand, 5).tolist()
        return {"t": round(self.timestamp, 4), "hand": hand}

    @classmethod
    def from_dict(cls, data: dict) -> RecordedFrame:
        hand = data.get("hand")
        return cls(
            timestamp=float(data["t"]),
            hand=None if hand is None else _as_hand(hand),
        )


@dataclass
class Recording:
    """An in-memory recording with its capture metadata."""
    frames: list[RecordedFrame] = field(default_factory=list)
    source: dict = field(default_factory=dict)

    @property
    def duration(self) -> float:
        return self.frames[-1].timestamp if self.frames else 0.0

    @property
    def hand_frames(self) -> int:
        return sum(1 for f in self.frames if f.hand is not None)

    def save(self, path: str | Path):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump({
                "version": FORMAT_VERSION,
                "source": self.source,
                "frames": [frame.to_dict() for frame in self.frames],
            }, f)
        logger.info("Saved %d frames (%.1fs) to %s", len(self.frames), self.duration, path)

    @classmethod
    def load(cls, path: str | Path) -> Recording:
        with open(path) as f:
            data = json.load(f)
        if not isinstance(data, dict) or data.get("version") != FORMAT_VERSION:
            version = data.get("version") if isinstance(data, dict) else None
            raise ValueError(f"Unsupported recording version: {version}")
        try:
            frames = [RecordedFrame.from_dict(fr) for fr in data["frames"]]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed recording {path}: {e}") from e
        return cls(frames=frames, source=data.get("source", {}))


class LandmarkRecorder:
    """Collects frames from a live capture loop.

    Usage:
        recorder = LandmarkRecorder(source={"camera": 0})
        recorder.start()
        recorder.add_frame(detector.detect(frame_rgb))
        recorder.stop().save("session.json")
    """

    def __init__(self, source: Optional[dict] = None):
        self.source = dict(source or {})
        self._frames: list[RecordedFrame] = []
        self._t0: Optional[float] = None

    def start(self):
        self._frames = []
        self._t0 = time.monotonic()

    def stop(self) -> Recording:
        self._t0 = None
        return self.recording

    @property
    def is_recording(self) -> bool:
        return self._t0 is not None

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def recording(self) -> Recording:
        return Recording(frames=list(self._frames), source=dict(self.source))

    def add_frame(self, hand: Optional[np.ndarray], timestamp: Optional[float] = None):
        """Append a frame. Ignored unless recording."""
        if self._t0 is None:
            return
        if timestamp is None:
            timestamp = time.monotonic() - self._t0
        if hand is not None:
            hand = _as_hand(hand)
        self._frames.append(RecordedFrame(float(timestamp), hand))


class LandmarkPlayer:
    """Feeds a recording back through the drawing pipeline."""

    def __init__(self, recording: Recording):
        self.recording = recording

    @classmethod
    def load(cls, path: str | Path) -> LandmarkPlayer:
        return cls(Recording.load(path))

    @property
    def frame_count(self) -> int:
        return len(self.recording.frames)

    @property
    def duration(self) -> float:
        return self.recording.duration

    def play(self) -> Iterator[RecordedFrame]:
        yield from self.recording.frames

    def replay_into(self, pipeline: DrawingPipeline) -> list[FrameResult]:
        """Run every frame through `pipeline` with its recorded timestamp."""
        results = [
            pipeline.process_landmarks(frame.hand, frame.timestamp)
            for frame in self.play()
        ]
        logger.debug(
            "Replayed %d frames, %d segments drawn",
            len(results), sum(1 for r in results if r.segment is not None),
        )
        return results
