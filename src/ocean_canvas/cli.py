"""Ocean Canvas CLI — the main entry point.

Usage:
    ocean-canvas serve       — Start the game server
    ocean-canvas guess       — Ask the vision model about an image file
    ocean-canvas record      — Record hand landmarks from the camera
    ocean-canvas replay      — Draw a recorded session onto a canvas
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv

from ocean_canvas.config import ConfigError, GameConfig, load_config

app = typer.Typer(
    name="ocean-canvas",
    help="🎨 Draw in the air, let the AI guess.",
    add_completion=False,
)


def _load(config_path: Optional[str]) -> GameConfig:
    try:
        return load_config(config_path)
    except (ConfigError, OSError) as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)


@app.callback()
def setup(
    log_level: str = typer.Option("info", help="Log level"),
    env_file: Optional[str] = typer.Option(None, "--env-file", help="Path to .env file"),
):
    """Load environment variables and configure logging."""
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8765, help="Port"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    mock: bool = typer.Option(False, help="Use the offline mock classifier"),
    camera: Optional[int] = typer.Option(None, help="Camera device index"),
    no_camera: bool = typer.Option(False, "--no-camera", help="Run without camera capture"),
    log_level: str = typer.Option("info", help="Uvicorn log level"),
):
    """Start the game server."""
    import uvicorn
    from ocean_canvas.server import app as fastapi_app, state

    cfg = _load(config)
    if mock:
        cfg.recognition.mock = True
    if camera is not None:
        cfg.camera.index = camera
    if no_camera:
        cfg.camera.enabled = False
    state.configure(cfg)

    typer.echo(f"🚀 Starting Ocean Canvas on {host}:{port}")
    uvicorn.run(fastapi_app, host=host, port=port, log_level=log_level)


@app.command()
def guess(
    image: str = typer.Argument(..., help="Image file to classify"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    mock: bool = typer.Option(False, help="Use the offline mock classifier"),
):
    """Send one image to the vision model and print its guesses."""
    from ocean_canvas.vision import RecognitionError, create_client, parse_guesses

    path = Path(image)
    if not path.exists():
        typer.echo(f"❌ Image not found: {image}", err=True)
        raise typer.Exit(1)

    cfg = _load(config)
    suffix = path.suffix.lower().lstrip(".")
    mime_type = "image/jpeg" if suffix in ("jpg", "jpeg") else f"image/{suffix}"
    client = create_client(
        api_key=cfg.recognition.api_key or None,
        model=cfg.recognition.model,
        timeout=cfg.recognition.timeout,
        use_mock=mock or cfg.recognition.mock,
        api_key_env=cfg.recognition.api_key_env,
        mime_type=mime_type,
    )

    async def run() -> str:
        try:
            return await client.describe(path.read_bytes())
        finally:
            await client.close()

    try:
        text = asyncio.run(run())
    except RecognitionError as e:
        typer.echo(f"❌ Recognition failed: {e}", err=True)
        raise typer.Exit(1)

    for rank, g in enumerate(parse_guesses(text), 1):
        typer.echo(f"   {rank}. {g}")


@app.command()
def record(
    output: str = typer.Option("recording.json", "-o", help="Output file path"),
    duration: float = typer.Option(0, help="Recording duration in seconds (0 = until Ctrl+C)"),
    camera: int = typer.Option(0, help="Camera device index"),
):
    """Record hand landmarks from the camera."""
    import cv2
    from ocean_canvas.detector import HandDetector
    from ocean_canvas.recorder import LandmarkRecorder

    cap = cv2.VideoCapture(camera)
    if not cap.isOpened():
        typer.echo(f"❌ Could not open camera {camera}", err=True)
        raise typer.Exit(1)

    detector = HandDetector()
    recorder = LandmarkRecorder(source={"camera": camera, "mirror": True})

    typer.echo(f"🎥 Recording from camera {camera}...")
    typer.echo("   Press Ctrl+C to stop")
    recorder.start()
    start = time.monotonic()

    try:
        while True:
            ret, frame = cap.read()
            if not ret:
                continue

            hand = detector.detect(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
            recorder.add_frame(hand)

            if recorder.frame_count % 30 == 0:
                elapsed = time.monotonic() - start
                typer.echo(
                    f"\r   Frames: {recorder.frame_count} | Duration: {elapsed:.1f}s | "
                    f"Hand: {'yes' if hand is not None else 'no'}",
                    nl=False,
                )

            if duration > 0 and (time.monotonic() - start) >= duration:
                break
    except KeyboardInterrupt:
        pass
    finally:
        recording = recorder.stop()
        cap.release()
        detector.close()

    recording.save(output)
    typer.echo(
        f"\n\n📼 Recorded {len(recording.frames)} frames ({recording.duration:.1f}s), "
        f"hand visible in {recording.hand_frames}"
    )
    typer.echo(f"💾 Saved to: {output}")


@app.command()
def replay(
    recording: str = typer.Argument(..., help="Path to recording file"),
    output: str = typer.Option("drawing.png", "-o", help="Output image path"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    policy: Optional[str] = typer.Option(None, help="Draw policy: index_extension or pinch"),
):
    """Replay a recording through the drawing pipeline and save the canvas."""
    from ocean_canvas.canvas import StrokeRenderer
    from ocean_canvas.classifier import GestureClassifier
    from ocean_canvas.pipeline import DrawingPipeline
    from ocean_canvas.recorder import LandmarkPlayer
    from ocean_canvas.smoothing import PositionSmoother

    path = Path(recording)
    if not path.exists():
        typer.echo(f"❌ Recording not found: {recording}", err=True)
        raise typer.Exit(1)

    cfg = _load(config)
    out = Path(output)
    renderer = StrokeRenderer(
        width=cfg.canvas.width,
        height=cfg.canvas.height,
        line_width=cfg.canvas.line_width,
        image_format=out.suffix or ".png",
    )
    try:
        classifier = GestureClassifier(
            policy=policy or cfg.gesture.policy,
            pinch_threshold=cfg.gesture.pinch_threshold,
        )
    except ValueError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    pipeline = DrawingPipeline(
        renderer,
        classifier=classifier,
        smoother=PositionSmoother(
            renderer.width, renderer.height,
            blend=cfg.gesture.smoothing,
            release_after=cfg.gesture.release_after,
        ),
        mirror=cfg.gesture.mirror,
    )

    try:
        player = LandmarkPlayer.load(path)
    except ValueError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"▶️  Replaying {path.name} ({player.frame_count} frames, {player.duration:.1f}s)")
    player.replay_into(pipeline)

    image = renderer.snapshot()
    if image is None:
        typer.echo(f"❌ Could not encode canvas as {renderer.image_format}", err=True)
        raise typer.Exit(1)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(image)

    typer.echo(f"✅ {renderer.segment_count} segments drawn → {out}")


def main():
    app()


if __name__ == "__main__":
    main()
