"""Tests for the per-frame drawing pipeline."""

import numpy as np
import pytest

from ocean_canvas.canvas import StrokeRenderer
from ocean_canvas.classifier import DrawPolicy, GestureClassifier, InputState
from ocean_canvas.metrics import MetricsCollector
from ocean_canvas.pipeline import DrawingPipeline


def make_hand(tip=(0.5, 0.4), index_open=True, pinch=False):
    """Synthetic hand: middle/ring/pinky curled, index optionally extended."""
    lm = np.zeros((21, 3), dtype=np.float32)
    wrist = np.array([0.5, 0.9])
    lm[0, :2] = wrist
    for pip, tip_idx in [(10, 12), (14, 16), (18, 20)]:
        lm[pip, :2] = wrist + (0.0, -0.15)
        lm[tip_idx, :2] = wrist + (0.0, -0.08)

    tip = np.array(tip, dtype=float)
    direction = tip - wrist
    lm[8, :2] = tip
    lm[6, :2] = wrist + direction * (0.5 if index_open else 1.3)

    thumb_tip = tip + ((0.01, 0.0) if pinch else (0.15, 0.1))
    lm[4, :2] = thumb_tip
    lm[3, :2] = (wrist + thumb_tip) / 2
    return lm


class FakeDetector:
    def __init__(self, frames):
        self.frames = list(frames)
        self.closed = False

    def detect(self, frame_rgb):
        return self.frames.pop(0)

    def close(self):
        self.closed = True


@pytest.fixture
def pipeline():
    return DrawingPipeline(StrokeRenderer(800, 600))


class TestProcessLandmarks:
    def test_no_hand_is_idle(self, pipeline):
        result = pipeline.process_landmarks(None)
        assert result.state == InputState.IDLE
        assert result.cursor is None
        assert result.segment is None

    def test_pointing_draws(self, pipeline):
        pipeline.process_landmarks(make_hand(tip=(0.5, 0.4)))
        result = pipeline.process_landmarks(make_hand(tip=(0.4, 0.4)))
        assert result.state == InputState.DRAW
        assert result.segment is not None
        assert pipeline.renderer.segment_count == 1

    def test_cursor_is_mirrored(self, pipeline):
        result = pipeline.process_landmarks(make_hand(tip=(0.25, 0.5)))
        assert result.cursor.x == pytest.approx(600.0)
        assert result.cursor.y == pytest.approx(300.0)

    def test_curled_index_hovers(self, pipeline):
        result = pipeline.process_landmarks(make_hand(index_open=False))
        assert result.state == InputState.HOVER
        assert result.cursor is not None

    def test_idle_frame_breaks_stroke(self, pipeline):
        pipeline.process_landmarks(make_hand(tip=(0.5, 0.4)))
        pipeline.process_landmarks(None)
        result = pipeline.process_landmarks(make_hand(tip=(0.3, 0.3)))
        assert result.segment is None
        # Reappearance is unsmoothed
        assert result.cursor.x == pytest.approx(0.7 * 800)

    def test_pinch_policy(self):
        p = DrawingPipeline(
            StrokeRenderer(800, 600),
            classifier=GestureClassifier(DrawPolicy.PINCH),
        )
        assert p.process_landmarks(make_hand(pinch=False)).state == InputState.HOVER
        assert p.process_landmarks(make_hand(pinch=True)).state == InputState.DRAW

    def test_drawing_gate(self):
        enabled = {"value": False}
        p = DrawingPipeline(
            StrokeRenderer(800, 600),
            drawing_enabled=lambda: enabled["value"],
        )
        p.process_landmarks(make_hand(tip=(0.5, 0.4)))
        result = p.process_landmarks(make_hand(tip=(0.4, 0.4)))
        assert result.state == InputState.DRAW
        assert result.segment is None
        assert p.renderer.is_blank

        enabled["value"] = True
        p.process_landmarks(make_hand(tip=(0.4, 0.4)))
        result = p.process_landmarks(make_hand(tip=(0.3, 0.4)))
        assert result.segment is not None

    def test_callbacks(self, pipeline):
        seen = []
        pipeline.on_frame(seen.append)
        pipeline.process_landmarks(None)
        pipeline.process_landmarks(make_hand())
        assert [r.state for r in seen] == [InputState.IDLE, InputState.DRAW]
        assert pipeline.last_result is seen[-1]

    def test_explicit_timestamp(self, pipeline):
        assert pipeline.process_landmarks(None, timestamp=12.5).timestamp == 12.5


class TestStats:
    def test_counts(self, pipeline):
        pipeline.process_landmarks(None)
        pipeline.process_landmarks(make_hand(tip=(0.5, 0.4)))
        pipeline.process_landmarks(make_hand(tip=(0.4, 0.4)))
        stats = pipeline.stats
        assert stats.total_frames == 3
        assert stats.hand_frames == 2
        assert stats.segments_drawn == 1

    def test_empty_stats(self, pipeline):
        assert pipeline.stats.fps == 0.0

    def test_metrics_recorded(self):
        metrics = MetricsCollector()
        p = DrawingPipeline(StrokeRenderer(800, 600), metrics=metrics)
        p.process_landmarks(None)
        p.process_landmarks(make_hand())
        assert metrics.frames_total == 2
        assert metrics.state_counts == {"idle": 1, "draw": 1}

    def test_reset_keeps_surface(self, pipeline):
        pipeline.process_landmarks(make_hand(tip=(0.5, 0.4)))
        pipeline.process_landmarks(make_hand(tip=(0.4, 0.4)))
        pipeline.reset()
        assert pipeline.renderer.segment_count == 1
        assert pipeline.smoother.position is None
        assert not pipeline.renderer.is_drawing


class TestDetectorIntegration:
    def test_process_frame_requires_detector(self, pipeline):
        with pytest.raises(RuntimeError):
            pipeline.process_frame(np.zeros((10, 10, 3), dtype=np.uint8))

    def test_process_frame_uses_detector(self):
        detector = FakeDetector([make_hand(), None])
        frame = np.zeros((10, 10, 3), dtype=np.uint8)
        with DrawingPipeline(StrokeRenderer(800, 600), detector=detector) as p:
            assert p.process_frame(frame).state == InputState.DRAW
            assert p.process_frame(frame).state == InputState.IDLE
        assert detector.closed
