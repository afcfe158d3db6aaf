"""Build a playable game from a GameConfig."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ocean_canvas.canvas import StrokeRenderer
from ocean_canvas.classifier import GestureClassifier
from ocean_canvas.config import GameConfig
from ocean_canvas.detector import HandDetector
from ocean_canvas.metrics import MetricsCollector
from ocean_canvas.pipeline import DrawingPipeline
from ocean_canvas.poller import RecognitionPoller
from ocean_canvas.session import GameSession
from ocean_canvas.smoothing import PositionSmoother
from ocean_canvas.vision import VisionClient, create_client


@dataclass
class Game:
    """All runtime components of one game instance."""
    config: GameConfig
    renderer: StrokeRenderer
    pipeline: DrawingPipeline
    poller: RecognitionPoller
    session: GameSession
    client: VisionClient
    metrics: MetricsCollector

    async def aclose(self):
        self.session.close()
        self.pipeline.close()
        await self.client.close()


def build_game(
    config: Optional[GameConfig] = None,
    client: Optional[VisionClient] = None,
    detector: Optional[HandDetector] = None,
    metrics: Optional[MetricsCollector] = None,
    rng=None,
) -> Game:
    """Assemble a game. Strokes are only drawn while a round is playing."""
    config = config or GameConfig()
    metrics = metrics or MetricsCollector()

    renderer = StrokeRenderer(
        width=config.canvas.width,
        height=config.canvas.height,
        line_width=config.canvas.line_width,
        image_format=config.canvas.image_format,
        jpeg_quality=config.canvas.jpeg_quality,
    )

    if client is None:
        client = create_client(
            api_key=config.recognition.api_key or None,
            model=config.recognition.model,
            timeout=config.recognition.timeout,
            use_mock=config.recognition.mock,
            api_key_env=config.recognition.api_key_env,
            mime_type=renderer.mime_type,
        )

    poller = RecognitionPoller(
        renderer, client,
        interval=config.recognition.interval,
        metrics=metrics,
    )
    session = GameSession(
        renderer,
        poller=poller,
        words=config.round.words,
        round_seconds=config.round.seconds,
        tick_interval=config.round.tick_interval,
        rng=rng,
        metrics=metrics,
    )
    pipeline = DrawingPipeline(
        renderer,
        classifier=GestureClassifier(
            policy=config.gesture.policy,
            pinch_threshold=config.gesture.pinch_threshold,
        ),
        smoother=PositionSmoother(
            renderer.width, renderer.height,
            blend=config.gesture.smoothing,
            release_after=config.gesture.release_after,
        ),
        detector=detector,
        mirror=config.gesture.mirror,
        drawing_enabled=lambda: session.is_playing,
        metrics=metrics,
    )

    return Game(
        config=config,
        renderer=renderer,
        pipeline=pipeline,
        poller=poller,
        session=session,
        client=client,
        metrics=metrics,
    )
