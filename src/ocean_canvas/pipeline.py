"""Per-frame drawing pipeline: landmarks → gesture → smoothing → strokes."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from ocean_canvas.canvas import StrokeRenderer, StrokeSegment
from ocean_canvas.classifier import GestureClassifier, InputState
from ocean_canvas.detector import HandDetector
from ocean_canvas.landmarks import GestureSample, Point2D, normalize_hand
from ocean_canvas.metrics import MetricsCollector
from ocean_canvas.smoothing import PositionSmoother


@dataclass
class FrameResult:
    """Outcome of one frame through the pipeline."""
    state: InputState
    sample: Optional[GestureSample]
    cursor: Optional[Point2D]
    segment: Optional[StrokeSegment]
    timestamp: float


@dataclass
class PipelineStats:
    """Runtime performance statistics."""
    fps: float
    avg_latency_ms: float
    total_frames: int
    hand_frames: int
    segments_drawn: int


class DrawingPipeline:
    """End-to-end frame handler driving the stroke renderer.

    Each call runs to completion synchronously, so a snapshot taken between
    calls never sees a half-applied frame.

    Features:
    - Interchangeable draw policies via the GestureClassifier
    - Exponential cursor smoothing
    - Drawing gate (e.g. only while a round is playing)
    - Callback system for frame results
    """

    def __init__(
        self,
        renderer: StrokeRenderer,
        classifier: Optional[GestureClassifier] = None,
        smoother: Optional[PositionSmoother] = None,
        detector: Optional[HandDetector] = None,
        mirror: bool = True,
        drawing_enabled: Optional[Callable[[], bool]] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.renderer = renderer
        self.classifier = classifier or GestureClassifier()
        self.smoother = smoother or PositionSmoother(renderer.width, renderer.height)
        self.detector = detector
        self.mirror = mirror
        self.metrics = metrics
        self._drawing_enabled = drawing_enabled or (lambda: True)

        self._callbacks: list[Callable[[FrameResult], None]] = []
        self._frame_times: deque = deque(maxlen=60)
        self._total_frames = 0
        self._hand_frames = 0
        self._segments_drawn = 0
        self._last: Optional[FrameResult] = None

    def on_frame(self, callback: Callable[[FrameResult], None]):
        """Register a callback for every processed frame."""
        self._callbacks.append(callback)

    def process_frame(self, frame_rgb: np.ndarray) -> FrameResult:
        """Detect the hand in an RGB frame and process it."""
        if self.detector is None:
            raise RuntimeError("No HandDetector configured for process_frame()")
        return self.process_landmarks(self.detector.detect(frame_rgb))

    def process_landmarks(
        self,
        landmarks: Optional[np.ndarray],
        timestamp: Optional[float] = None,
    ) -> FrameResult:
        """Process one frame of landmarks (None when no hand was detected)."""
        t_start = time.monotonic()
        now = timestamp if timestamp is not None else t_start
        self._total_frames += 1

        sample = normalize_hand(landmarks, mirror=self.mirror)
        state = self.classifier.classify(sample)
        cursor = self.smoother.update(sample)

        # Pen stays up outside a playing round
        render_state = state
        if state is InputState.DRAW and not self._drawing_enabled():
            render_state = InputState.HOVER
        segment = self.renderer.update(render_state, cursor)

        if sample is not None:
            self._hand_frames += 1
        if segment is not None:
            self._segments_drawn += 1

        result = FrameResult(
            state=state,
            sample=sample,
            cursor=cursor,
            segment=segment,
            timestamp=now,
        )
        self._last = result

        latency = time.monotonic() - t_start
        self._frame_times.append(latency)
        if self.metrics:
            self.metrics.record_frame(latency, state.value, segment is not None)

        for cb in self._callbacks:
            cb(result)

        return result

    @property
    def last_result(self) -> Optional[FrameResult]:
        return self._last

    @property
    def stats(self) -> PipelineStats:
        """Get current performance statistics."""
        if self._frame_times:
            avg_latency = sum(self._frame_times) / len(self._frame_times)
            fps = 1.0 / avg_latency if avg_latency > 0 else 0.0
        else:
            avg_latency = 0.0
            fps = 0.0

        return PipelineStats(
            fps=fps,
            avg_latency_ms=avg_latency * 1000,
            total_frames=self._total_frames,
            hand_frames=self._hand_frames,
            segments_drawn=self._segments_drawn,
        )

    def reset(self):
        """Clear cursor and path state (not the surface)."""
        self.smoother.reset()
        self.renderer.lift()
        self._frame_times.clear()
        self._last = None

    def close(self):
        """Release resources."""
        if self.detector is not None:
            self.detector.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
