"""Tests for the HTTP/WebSocket server."""

import cv2
import numpy as np
import pytest
from fastapi.testclient import TestClient

from ocean_canvas.config import GameConfig
import ocean_canvas.server
from ocean_canvas.server import app, clean_word, state
from ocean_canvas.vision import MockVisionClient


@pytest.fixture
def client():
    cfg = GameConfig.from_dict({
        "camera": {"enabled": False},
        "round": {"seconds": 20, "tick_interval": 60.0, "words": ["Boat"]},
        "recognition": {"interval": 60.0},
    })
    state.configure(cfg, client=MockVisionClient())
    with TestClient(app) as c:
        yield c
    state.configure(GameConfig())


class TestRestApi:
    def test_status(self, client):
        r = client.get("/api/status")
        assert r.status_code == 200
        data = r.json()
        assert data["running"] is False
        assert data["round"]["status"] == "idle"
        assert data["input_state"] is None
        assert data["classifier"] == "MockVisionClient"

    def test_start_round(self, client):
        r = client.post("/api/round/start")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "playing"
        assert data["target_word"] == "Boat"
        assert data["seconds_remaining"] == 20
        assert client.get("/api/round").json()["generation"] == 1

    def test_start_with_word(self, client):
        r = client.post("/api/round/start", json={"word": "Mug"})
        assert r.json()["target_word"] == "Mug"

    def test_start_rejects_non_string_word(self, client):
        r = client.post("/api/round/start", json={"word": 5})
        assert r.status_code == 422
        assert client.get("/api/round").json()["status"] == "idle"

    def test_start_blank_word_picks_from_list(self, client):
        r = client.post("/api/round/start", json={"word": "   "})
        assert r.json()["target_word"] == "Boat"

    def test_start_strips_word(self, client):
        r = client.post("/api/round/start", json={"word": "  Mug "})
        assert r.json()["target_word"] == "Mug"

    def test_abort(self, client):
        client.post("/api/round/start")
        assert client.post("/api/round/abort").json()["status"] == "idle"

    def test_snapshot_is_blank_canvas(self, client):
        r = client.get("/api/snapshot")
        assert r.status_code == 200
        assert r.headers["content-type"] == "image/jpeg"
        img = cv2.imdecode(np.frombuffer(r.content, np.uint8), cv2.IMREAD_COLOR)
        assert img.shape == (600, 800, 3)

    def test_canvas_commands_empty(self, client):
        assert client.get("/api/canvas").json() == {"commands": []}

    def test_metrics(self, client):
        client.post("/api/round/start")
        r = client.get("/metrics")
        assert r.status_code == 200
        assert "ocean_canvas_frames_total" in r.text
        assert 'ocean_canvas_rounds_total{result="started"} 1' in r.text


class TestWebSocket:
    def test_connected_message(self, client):
        with client.websocket_connect("/ws") as ws:
            msg = ws.receive_json()
            assert msg["type"] == "connected"
            assert msg["round"]["status"] == "idle"
            assert msg["canvas"] == {"width": 800, "height": 600}
            assert msg["commands"] == []

    def test_ping(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

    def test_non_string_word_picks_from_list(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "start", "word": 5})
            messages = [ws.receive_json(), ws.receive_json()]
            by_type = {m["type"]: m for m in messages}
            assert by_type["round"]["round"]["target_word"] == "Boat"

    @pytest.mark.parametrize("frame", ["5", "[1, 2]", "null", "not json"])
    def test_bad_frames_keep_connection_open(self, client, frame):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text(frame)
            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

    def test_start_broadcasts_round_and_clear(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "start", "word": "Sun"})
            messages = [ws.receive_json(), ws.receive_json()]
            by_type = {m["type"]: m for m in messages}
            assert by_type["round"]["round"]["target_word"] == "Sun"
            assert by_type["canvas_commands"]["commands"] == [{"type": "clear"}]

    def test_abort(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "start"})
            ws.receive_json()
            ws.receive_json()
            ws.send_json({"type": "abort"})
            msg = ws.receive_json()
            assert msg["type"] == "round"
            assert msg["round"]["status"] == "idle"


class TestHelpers:
    @pytest.mark.parametrize("value,expected", [
        (" Sun ", "Sun"),
        ("", None),
        ("   ", None),
        (None, None),
        (5, None),
        (["Sun"], None),
    ])
    def test_clean_word(self, value, expected):
        assert clean_word(value) == expected

    def test_single_entry_point(self):
        # Serving goes through the typer CLI
        assert not hasattr(ocean_canvas.server, "main")
