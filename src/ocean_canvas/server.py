"""HTTP + WebSocket host for the drawing game.

Captures from the server's webcam, runs the drawing pipeline on each frame
and pushes round updates and stroke commands to connected WebSocket clients.

Features:
- Camera capture loop feeding the gesture-to-stroke pipeline
- Round control (start / abort) over REST and WebSocket
- Canvas snapshot endpoint
- Prometheus metrics endpoint

Usage:
    ocean-canvas serve
    # or
    uvicorn ocean_canvas.server:app --host 0.0.0.0 --port 8765
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import cv2
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel

from ocean_canvas import __version__
from ocean_canvas.config import GameConfig
from ocean_canvas.game import Game, build_game
from ocean_canvas.pipeline import FrameResult
from ocean_canvas.session import RoundState
from ocean_canvas.vision import VisionClient

logger = logging.getLogger("ocean_canvas.server")


# --- State ---

class ServerState:
    def __init__(self):
        self.config = GameConfig()
        self.client: Optional[VisionClient] = None
        self.game: Optional[Game] = None
        self.clients: set[WebSocket] = set()
        self.capture: Optional[cv2.VideoCapture] = None
        self.capture_task: Optional[asyncio.Task] = None
        self.running = False
        self._background: set[asyncio.Task] = set()

    def configure(self, config: GameConfig, client: Optional[VisionClient] = None):
        """Set config (and optionally the vision client) before startup."""
        self.config = config
        self.client = client
        self.game = None

    def ensure_game(self) -> Game:
        if self.game is None:
            self.game = build_game(self.config, client=self.client)
            self.game.session.on_change(self._on_round_change)
            self.game.pipeline.on_frame(self._on_frame)
        return self.game

    def schedule(self, message: dict):
        """Broadcast from synchronous callbacks running on the event loop."""
        if not self.clients:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(broadcast(message))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _on_round_change(self, round_state: RoundState):
        self.schedule({"type": "round", "round": round_state.to_dict()})

    def _on_frame(self, result: FrameResult):
        if result.segment is not None:
            self.schedule({
                "type": "canvas_commands",
                "commands": [result.segment.to_dict()],
            })


state = ServerState()


# --- Lifespan ---

@asynccontextmanager
async def lifespan(app: FastAPI):
    state.ensure_game()
    if state.config.camera.enabled:
        state.capture_task = asyncio.create_task(capture_loop())
    try:
        yield
    finally:
        state.running = False
        if state.capture_task is not None:
            state.capture_task.cancel()
            try:
                await state.capture_task
            except asyncio.CancelledError:
                pass
            state.capture_task = None
        if state.game is not None:
            await state.game.aclose()
            state.game = None
        logger.info("Server shut down")


app = FastAPI(title="Ocean Canvas", version=__version__, lifespan=lifespan)


# --- API endpoints ---

@app.get("/api/status")
async def api_status():
    game = state.ensure_game()
    stats = game.pipeline.stats
    last = game.pipeline.last_result
    return {
        "running": state.running,
        "clients": len(state.clients),
        "round": game.session.state.to_dict(),
        "input_state": last.state.value if last else None,
        "cursor": last.cursor.to_tuple() if last and last.cursor else None,
        "fps": round(stats.fps, 1),
        "latency_ms": round(stats.avg_latency_ms, 2),
        "segments": game.renderer.segment_count,
        "classifier": game.client.name,
    }


@app.get("/api/round")
async def get_round():
    return state.ensure_game().session.state.to_dict()


class StartRequest(BaseModel):
    word: Optional[str] = None


def clean_word(value) -> Optional[str]:
    """A usable target word, or None to pick one at random."""
    if not isinstance(value, str):
        return None
    return value.strip() or None


@app.post("/api/round/start")
async def start_round(payload: Optional[StartRequest] = None):
    game = state.ensure_game()
    round_state = game.session.start(word=clean_word(payload.word if payload else None))
    state.schedule({"type": "canvas_commands", "commands": [{"type": "clear"}]})
    return round_state.to_dict()


@app.post("/api/round/abort")
async def abort_round():
    game = state.ensure_game()
    game.session.abort()
    return game.session.state.to_dict()


@app.get("/api/snapshot")
async def snapshot():
    game = state.ensure_game()
    image = game.renderer.snapshot()
    if image is None:
        return Response(status_code=204)
    return Response(content=image, media_type=game.renderer.mime_type)


@app.get("/api/canvas")
async def canvas_state():
    return {"commands": state.ensure_game().renderer.get_full_state()}


# --- Prometheus metrics ---

@app.get("/metrics")
async def metrics():
    game = state.ensure_game()
    game.metrics.set_connections(len(state.clients))
    return PlainTextResponse(
        game.metrics.render(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


# --- WebSocket ---

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    state.clients.add(ws)
    game = state.ensure_game()
    logger.info("Client connected (%d total)", len(state.clients))

    try:
        await ws.send_json({
            "type": "connected",
            "round": game.session.state.to_dict(),
            "canvas": {"width": game.renderer.width, "height": game.renderer.height},
            "commands": game.renderer.get_full_state(),
        })

        while True:
            try:
                msg = await asyncio.wait_for(ws.receive_text(), timeout=30)
            except asyncio.TimeoutError:
                await ws.send_json({"type": "ping"})
                continue

            try:
                data = json.loads(msg)
            except ValueError:
                logger.debug("Ignoring non-JSON message")
                continue
            if not isinstance(data, dict):
                logger.debug("Ignoring non-object message: %r", data)
                continue

            kind = data.get("type")
            if kind == "ping":
                await ws.send_json({"type": "pong", "server_time": time.time()})
            elif kind == "start":
                game.session.start(word=clean_word(data.get("word")))
                await broadcast({"type": "canvas_commands", "commands": [{"type": "clear"}]})
            elif kind == "abort":
                game.session.abort()
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.debug("WebSocket error: %s", e)
    finally:
        state.clients.discard(ws)
        logger.info("Client disconnected (%d total)", len(state.clients))


async def broadcast(message: dict):
    """Send message to all clients."""
    if not state.clients:
        return
    dead = set()
    payload = json.dumps(message)
    for ws in list(state.clients):
        try:
            await ws.send_text(payload)
        except Exception:
            dead.add(ws)
    state.clients -= dead


# --- Camera capture loop ---

async def capture_loop():
    """Main loop: capture frames, run the drawing pipeline, push cursor updates."""
    from ocean_canvas.detector import HandDetector

    game = state.ensure_game()
    camera = state.config.camera

    logger.info("Starting camera capture (device %d)...", camera.index)
    state.capture = cv2.VideoCapture(camera.index)
    if not state.capture.isOpened():
        logger.error("Could not open camera %d", camera.index)
        return

    state.capture.set(cv2.CAP_PROP_FRAME_WIDTH, camera.width)
    state.capture.set(cv2.CAP_PROP_FRAME_HEIGHT, camera.height)

    try:
        game.pipeline.detector = HandDetector()
    except ImportError as e:
        logger.error("Hand detector unavailable: %s", e)
        state.capture.release()
        return

    state.running = True
    frames = 0

    try:
        while state.running:
            ret, frame = state.capture.read()
            if not ret:
                await asyncio.sleep(0.01)
                continue

            frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            result = game.pipeline.process_frame(frame_rgb)
            frames += 1

            if frames % 2 == 0:
                await broadcast({
                    "type": "cursor",
                    "state": result.state.value,
                    "position": result.cursor.to_tuple() if result.cursor else None,
                })

            await asyncio.sleep(0.001)
    finally:
        state.running = False
        if state.capture:
            state.capture.release()
            state.capture = None
        logger.info("Capture loop stopped")

