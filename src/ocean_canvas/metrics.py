"""Prometheus-compatible metrics for Ocean Canvas.

Exposes /metrics in Prometheus text exposition format.
Generates the text format directly, no client library needed.

Tracked metrics:
- ocean_canvas_frames_total (counter)
- ocean_canvas_input_state_frames_total (counter, by input state)
- ocean_canvas_segments_total (counter)
- ocean_canvas_frame_latency_seconds (histogram)
- ocean_canvas_polls_total (counter, by outcome)
- ocean_canvas_poll_latency_seconds (histogram)
- ocean_canvas_rounds_total (counter, by result)
- ocean_canvas_active_connections (gauge)
"""

from __future__ import annotations

import threading
import time
from collections import Counter


class _Histogram:
    """Simple histogram with configurable buckets."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1
                    break

    def render(self, name: str, help_text: str) -> str:
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} histogram",
        ]
        with self._lock:
            cumulative = 0
            for i, b in enumerate(self.buckets):
                cumulative += self.bucket_counts[i]
                lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum {self.sum:.6f}")
            lines.append(f"{name}_count {self.count}")
        return "\n".join(lines)


def _counter_block(name: str, help_text: str, label: str, counts: dict[str, int]) -> list[str]:
    lines = [f"# HELP {name} {help_text}", f"# TYPE {name} counter"]
    for key, count in sorted(counts.items()):
        lines.append(f'{name}{{{label}="{key}"}} {count}')
    return lines


class MetricsCollector:
    """Collects and exposes Prometheus metrics for the game."""

    def __init__(self):
        self._state_counts: Counter = Counter()
        self._poll_counts: Counter = Counter()
        self._round_counts: Counter = Counter()
        self._frames_total = 0
        self._segments_total = 0
        self._active_connections = 0
        self._lock = threading.Lock()

        # Frame latency: 1ms to 100ms
        self._frame_latency = _Histogram(
            [0.001, 0.002, 0.005, 0.010, 0.020, 0.033, 0.050, 0.100]
        )
        # Classifier round-trip: 100ms to 10s
        self._poll_latency = _Histogram(
            [0.1, 0.25, 0.5, 1.0, 1.5, 2.5, 5.0, 10.0]
        )

        self._start_time = time.time()

    def record_frame(self, latency_seconds: float, state: str, segment_drawn: bool = False):
        with self._lock:
            self._frames_total += 1
            self._state_counts[state] += 1
            if segment_drawn:
                self._segments_total += 1
        self._frame_latency.observe(latency_seconds)

    def record_poll(self, outcome: str, latency_seconds: float | None = None):
        with self._lock:
            self._poll_counts[outcome] += 1
        if latency_seconds is not None:
            self._poll_latency.observe(latency_seconds)

    def record_round(self, result: str):
        with self._lock:
            self._round_counts[result] += 1

    def set_connections(self, count: int):
        self._active_connections = count

    def render(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = []

        uptime = time.time() - self._start_time
        lines.append("# HELP ocean_canvas_uptime_seconds Time since server start")
        lines.append("# TYPE ocean_canvas_uptime_seconds gauge")
        lines.append(f"ocean_canvas_uptime_seconds {uptime:.1f}")
        lines.append("")

        with self._lock:
            lines.append("# HELP ocean_canvas_frames_total Total frames processed")
            lines.append("# TYPE ocean_canvas_frames_total counter")
            lines.append(f"ocean_canvas_frames_total {self._frames_total}")
            lines.append("")

            lines.extend(_counter_block(
                "ocean_canvas_input_state_frames_total",
                "Frames by classified input state",
                "state", self._state_counts,
            ))
            lines.append("")

            lines.append("# HELP ocean_canvas_segments_total Stroke segments committed to the canvas")
            lines.append("# TYPE ocean_canvas_segments_total counter")
            lines.append(f"ocean_canvas_segments_total {self._segments_total}")
            lines.append("")

            lines.extend(_counter_block(
                "ocean_canvas_polls_total",
                "Recognition polls by outcome",
                "outcome", self._poll_counts,
            ))
            lines.append("")

            lines.extend(_counter_block(
                "ocean_canvas_rounds_total",
                "Rounds by result",
                "result", self._round_counts,
            ))
            lines.append("")

        lines.append(self._frame_latency.render(
            "ocean_canvas_frame_latency_seconds",
            "Frame processing latency in seconds",
        ))
        lines.append("")

        lines.append(self._poll_latency.render(
            "ocean_canvas_poll_latency_seconds",
            "Classifier request latency in seconds",
        ))
        lines.append("")

        lines.append("# HELP ocean_canvas_active_connections Current WebSocket connections")
        lines.append("# TYPE ocean_canvas_active_connections gauge")
        lines.append(f"ocean_canvas_active_connections {self._active_connections}")
        lines.append("")

        return "\n".join(lines) + "\n"

    @property
    def frames_total(self) -> int:
        return self._frames_total

    @property
    def poll_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._poll_counts)

    @property
    def round_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._round_counts)

    @property
    def state_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._state_counts)
