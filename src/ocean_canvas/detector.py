"""Hand landmark detection using the MediaPipe Hand Landmarker task."""

from __future__ import annotations

import logging
import time
import urllib.request
from pathlib import Path
from typing import Optional

import numpy as np

try:
    import mediapipe as mp
    from mediapipe.tasks.python import BaseOptions
    from mediapipe.tasks.python import vision
except ImportError:
    mp = None

logger = logging.getLogger("ocean_canvas.detector")

MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/hand_landmarker/"
    "hand_landmarker/float16/1/hand_landmarker.task"
)
DEFAULT_MODEL_PATH = Path.home() / ".cache" / "ocean_canvas" / "hand_landmarker.task"


def download_model(model_path: Path) -> Path:
    """Download the hand landmarker model if it is not already cached."""
    if model_path.exists():
        return model_path
    logger.info("Downloading hand landmarker model to %s", model_path)
    model_path.parent.mkdir(parents=True, exist_ok=True)
    urllib.request.urlretrieve(MODEL_URL, model_path)
    return model_path


class HandDetector:
    """Extracts 21 hand landmarks for a single hand per frame.

    Each landmark is (x, y, z) with x, y normalized to [0, 1] relative to the
    image. Runs in VIDEO mode so MediaPipe tracks between frames.
    """

    NUM_LANDMARKS = 21

    def __init__(
        self,
        model_path: Optional[str | Path] = None,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ):
        if mp is None:
            raise ImportError(
                "mediapipe is required. Install with: pip install mediapipe"
            )

        path = download_model(Path(model_path) if model_path else DEFAULT_MODEL_PATH)
        options = vision.HandLandmarkerOptions(
            base_options=BaseOptions(model_asset_path=str(path)),
            running_mode=vision.RunningMode.VIDEO,
            num_hands=1,
            min_hand_detection_confidence=min_detection_confidence,
            min_hand_presence_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
        self._landmarker = vision.HandLandmarker.create_from_options(options)
        self._start = time.monotonic()
        self._last_ts = -1

    def detect(self, frame_rgb: np.ndarray) -> Optional[np.ndarray]:
        """Detect a hand and return its landmarks.

        Args:
            frame_rgb: RGB image as numpy array (H, W, 3), uint8.

        Returns:
            Landmark array of shape (21, 3), or None if no hand was found.
        """
        image = mp.Image(image_format=mp.ImageFormat.SRGB, data=frame_rgb)

        # VIDEO mode requires strictly increasing timestamps
        ts = int((time.monotonic() - self._start) * 1000)
        if ts <= self._last_ts:
            ts = self._last_ts + 1
        self._last_ts = ts

        result = self._landmarker.detect_for_video(image, ts)
        if not result.hand_landmarks:
            return None

        return np.array(
            [[lm.x, lm.y, lm.z] for lm in result.hand_landmarks[0]],
            dtype=np.float32,
        )

    def close(self):
        """Release MediaPipe resources."""
        self._landmarker.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
