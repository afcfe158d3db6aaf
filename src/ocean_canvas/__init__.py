"""Ocean Canvas - Draw in the air with hand gestures while an AI guesses the sketch."""

__version__ = "0.1.0"

from ocean_canvas.landmarks import GestureSample, Point2D, normalize_hand
from ocean_canvas.classifier import DrawPolicy, GestureClassifier, InputState
from ocean_canvas.smoothing import PositionSmoother
from ocean_canvas.canvas import StrokeRenderer, StrokeSegment
from ocean_canvas.pipeline import DrawingPipeline, FrameResult
from ocean_canvas.vision import (
    GeminiVisionClient,
    MockVisionClient,
    RecognitionError,
    VisionClient,
)
from ocean_canvas.poller import PollOutcome, RecognitionPoller
from ocean_canvas.session import GameSession, RoundState, RoundStatus
from ocean_canvas.config import ConfigError, GameConfig, load_config
from ocean_canvas.game import Game, build_game
from ocean_canvas.metrics import MetricsCollector
from ocean_canvas.recorder import LandmarkPlayer, LandmarkRecorder, Recording
