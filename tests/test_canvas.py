"""Tests for the stroke renderer."""

import cv2
import numpy as np
import pytest

from ocean_canvas.canvas import BACKGROUND_COLOR, StrokeRenderer, StrokeSegment
from ocean_canvas.classifier import InputState
from ocean_canvas.landmarks import Point2D


def decode(data):
    return cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_COLOR)


def draw_path(renderer, points, state=InputState.DRAW):
    return [renderer.update(state, Point2D(x, y)) for x, y in points]


class TestStrokeSegments:
    def test_first_draw_frame_only_sets_anchor(self):
        r = StrokeRenderer(200, 100)
        assert r.update(InputState.DRAW, Point2D(10, 10)) is None
        assert r.previous_point == Point2D(10, 10)
        assert r.is_blank

    def test_consecutive_draw_frames_commit_segments(self):
        r = StrokeRenderer(200, 100)
        segments = draw_path(r, [(10, 10), (50, 10), (90, 10)])
        assert segments[0] is None
        assert segments[1] == StrokeSegment(Point2D(10, 10), Point2D(50, 10))
        assert segments[2].start == Point2D(50, 10)
        assert r.segment_count == 2
        assert not r.is_blank

    def test_segment_changes_pixels(self):
        r = StrokeRenderer(200, 100)
        draw_path(r, [(10, 50), (190, 50)])
        assert tuple(r.pixels[50, 100]) == (0, 0, 0)
        assert tuple(r.pixels[5, 100]) == BACKGROUND_COLOR

    @pytest.mark.parametrize("state", [InputState.HOVER, InputState.IDLE])
    def test_non_draw_lifts_pen(self, state):
        r = StrokeRenderer(200, 100)
        draw_path(r, [(10, 10), (50, 10)])
        assert r.update(state, Point2D(100, 50)) is None
        assert r.previous_point is None
        # Next DRAW does not connect across the gap
        assert r.update(InputState.DRAW, Point2D(150, 90)) is None
        assert r.segment_count == 1
        assert tuple(r.pixels[70, 100]) == BACKGROUND_COLOR

    def test_draw_without_position_lifts_pen(self):
        r = StrokeRenderer(200, 100)
        r.update(InputState.DRAW, Point2D(10, 10))
        assert r.update(InputState.DRAW, None) is None
        assert not r.is_drawing

    def test_hover_never_changes_pixels(self):
        r = StrokeRenderer(200, 100)
        before = r.pixels.copy()
        draw_path(r, [(10, 10), (190, 90), (10, 90)], state=InputState.HOVER)
        assert np.array_equal(before, r.pixels)

    def test_segment_to_dict(self):
        seg = StrokeSegment(Point2D(1.04, 2.0), Point2D(3.0, 4.0), width=6)
        assert seg.to_dict() == {
            "type": "line", "x1": 1.0, "y1": 2.0, "x2": 3.0, "y2": 4.0,
            "color": "#000000", "width": 6,
        }

    def test_full_state(self):
        r = StrokeRenderer(200, 100)
        draw_path(r, [(10, 10), (20, 20), (30, 30)])
        state = r.get_full_state()
        assert len(state) == 2
        assert state[0]["type"] == "line"

    def test_history_is_bounded(self):
        r = StrokeRenderer(200, 100, max_history=10)
        draw_path(r, [(i % 200, 50) for i in range(30)])
        assert r.segment_count <= 10

    def test_trimmed_history_starts_with_clear(self):
        r = StrokeRenderer(200, 100, max_history=10)
        draw_path(r, [(i * 5, 50) for i in range(12)])
        state = r.get_full_state()
        assert state[0] == {"type": "clear"}
        assert all(cmd["type"] == "line" for cmd in state[1:])
        # Pixels keep the whole drawing
        assert tuple(r.pixels[50, 2]) == (0, 0, 0)

    def test_untrimmed_history_has_no_clear(self):
        r = StrokeRenderer(200, 100, max_history=10)
        draw_path(r, [(i * 5, 50) for i in range(5)])
        assert all(cmd["type"] == "line" for cmd in r.get_full_state())

    def test_clear_resets_trim_marker(self):
        r = StrokeRenderer(200, 100, max_history=10)
        draw_path(r, [(i * 5, 50) for i in range(12)])
        r.clear()
        draw_path(r, [(10, 10), (20, 20)])
        assert r.get_full_state()[0]["type"] == "line"


class TestClear:
    def test_clear_resets_everything(self):
        r = StrokeRenderer(200, 100)
        draw_path(r, [(10, 10), (190, 90)])
        r.clear()
        assert r.is_blank
        assert r.segment_count == 0
        assert r.previous_point is None
        assert np.all(r.pixels == 255)

    def test_clear_while_drawing_does_not_connect(self):
        r = StrokeRenderer(200, 100)
        draw_path(r, [(10, 10), (20, 10)])
        r.clear()
        assert r.update(InputState.DRAW, Point2D(190, 90)) is None
        assert r.is_blank

    def test_pixels_are_read_only(self):
        r = StrokeRenderer(200, 100)
        with pytest.raises(ValueError):
            r.pixels[0, 0] = (1, 2, 3)


class TestSnapshot:
    def test_blank_snapshot_is_background(self):
        r = StrokeRenderer(120, 80, image_format=".png")
        img = decode(r.snapshot())
        assert img.shape == (80, 120, 3)
        assert np.all(img == 255)

    def test_skip_blank(self):
        r = StrokeRenderer(120, 80)
        assert r.snapshot(skip_blank=True) is None
        draw_path(r, [(10, 10), (100, 70)])
        assert r.snapshot(skip_blank=True) is not None

    def test_snapshot_after_clear_is_background(self):
        r = StrokeRenderer(120, 80, image_format=".png")
        draw_path(r, [(10, 10), (100, 70)])
        r.clear()
        assert np.all(decode(r.snapshot()) == 255)

    def test_snapshot_contains_stroke(self):
        r = StrokeRenderer(120, 80, image_format=".png")
        draw_path(r, [(10, 40), (110, 40)])
        img = decode(r.snapshot())
        assert tuple(img[40, 60]) == (0, 0, 0)

    def test_jpeg_default(self):
        r = StrokeRenderer(120, 80)
        data = r.snapshot()
        assert data[:2] == b"\xff\xd8"
        assert r.mime_type == "image/jpeg"

    def test_png_mime(self):
        assert StrokeRenderer(10, 10, image_format=".png").mime_type == "image/png"
