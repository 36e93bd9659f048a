"""
HTTP and WebSocket API Tests
============================

The app is built with a timer-less engine over a scripted source; ticks are
driven on the app's event loop through the TestClient portal.
"""

import pytest
from fastapi.testclient import TestClient

from slide_capture.capture import CaptureEngine, MemorySink
from slide_capture.config import Settings
from slide_capture.main import ServiceComponents, build_components, create_app
from slide_capture.models.geometry import CropRegion
from slide_capture.observability import CropHighlighter
from slide_capture.stream.source import StaticLocator


@pytest.fixture
def service(make_source, slide):
    """Running app plus the engine and sink behind it."""
    source = make_source(slide(1, 320, 240))
    sink = MemorySink()
    highlighter = CropHighlighter()
    built = {}

    def factory(settings):
        engine = CaptureEngine(
            locator=StaticLocator(source),
            sink=sink,
            crop=CropRegion("bottom-right", 0.5, 0.5),
            image_format="png",
            observers=[highlighter],
            timers=False,
        )
        built["engine"] = engine
        return ServiceComponents(engine=engine, highlighter=highlighter)

    app = create_app(Settings(), engine_factory=factory)
    with TestClient(app) as client:
        yield client, built["engine"], sink


def capture_one_frame(client, engine):
    client.post("/capture/start")
    client.portal.call(engine.search_tick)
    client.portal.call(engine.tick)


class TestInfoEndpoints:
    """Tests for root, health and metrics."""

    def test_root(self, service):
        client, _, _ = service
        body = client.get("/").json()
        assert body["service"] == "SlideCaptureAgent"
        assert body["status"] == "running"

    def test_health(self, service):
        client, _, _ = service
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["uptime_seconds"] >= 0

    def test_metrics(self, service):
        client, engine, _ = service
        capture_one_frame(client, engine)

        body = client.get("/metrics").json()
        assert body["status"] == "CAPTURING"
        assert body["ticks_total"] == 1
        assert body["distinct_frames"] == 1
        assert "stream_connected" not in body

    def test_not_started(self):
        client = TestClient(create_app(Settings()))
        assert client.get("/status").status_code == 503


class TestCaptureEndpoints:
    """Tests for control commands and retained frames."""

    def test_initial_status(self, service):
        client, _, _ = service
        body = client.get("/status").json()
        assert body["status"] == "IDLE"
        assert body["retained_count"] == 0

    def test_start_then_capture(self, service):
        client, engine, _ = service

        response = client.post("/capture/start")
        assert response.status_code == 200
        assert response.json()["status"] == "SEARCHING"

        client.portal.call(engine.search_tick)
        client.portal.call(engine.tick)

        body = client.get("/status").json()
        assert body["status"] == "CAPTURING"
        assert body["retained_count"] == 1
        assert body["crop"] == {"x": 160, "y": 120, "width": 160, "height": 120}
        assert body["source_size"] == [320, 240]

    def test_frames(self, service):
        client, engine, _ = service
        capture_one_frame(client, engine)

        listing = client.get("/frames").json()
        assert listing["status"] == "CAPTURING"
        assert len(listing["frames"]) == 1
        info = listing["frames"][0]
        assert info["index"] == 1
        assert (info["width"], info["height"]) == (160, 120)
        assert info["media_type"] == "image/png"

        image = client.get("/frames/1")
        assert image.status_code == 200
        assert image.headers["content-type"] == "image/png"
        assert image.content[:8] == b"\x89PNG\r\n\x1a\n"
        assert len(image.content) == info["size_bytes"]

    @pytest.mark.parametrize("index", [0, 2])
    def test_missing_frame(self, service, index):
        client, engine, _ = service
        capture_one_frame(client, engine)
        assert client.get(f"/frames/{index}").status_code == 404

    def test_stop_packages_frames(self, service):
        client, engine, sink = service
        capture_one_frame(client, engine)

        body = client.post("/capture/STOP").json()

        assert body["status"] == "STOPPED"
        assert body["reason_code"] == "OPERATOR_STOP"
        assert body["finalized"] is True
        assert len(sink.last_batch) == 1

    def test_unknown_command(self, service):
        client, _, _ = service
        response = client.post("/capture/pause")
        assert response.status_code == 400
        assert "pause" in response.json()["detail"]

    def test_highlight_on_display(self, service):
        client, engine, _ = service
        capture_one_frame(client, engine)

        body = client.get(
            "/highlight", params={"left": 0, "top": 0, "width": 640, "height": 480}
        ).json()

        assert body["crop"] == {"x": 160, "y": 120, "width": 160, "height": 120}
        assert body["overlay"] == {"left": 320.0, "top": 240.0, "width": 320.0, "height": 240.0}
        assert body["preview"]

    def test_highlight_before_source(self, service):
        client, _, _ = service
        body = client.get("/highlight").json()
        assert body == {"crop": None, "overlay": None, "preview": None}


class TestControlChannel:
    """Tests for the websocket control channel."""

    def test_commands(self, service):
        client, _, _ = service
        with client.websocket_connect("/ws/control") as ws:
            ws.send_json({"command": "start"})
            assert ws.receive_json()["status"] == "SEARCHING"

            ws.send_json({"command": "stop"})
            assert ws.receive_json()["status"] == "STOPPED"

    def test_invalid_message(self, service):
        client, _, _ = service
        with client.websocket_connect("/ws/control") as ws:
            ws.send_text("pause")
            assert ws.receive_json()["error"] == "invalid_command"

            ws.send_json({"command": "resume"})
            assert ws.receive_json()["error"] == "invalid_command"

            ws.send_json({"command": "reset"})
            assert ws.receive_json()["reason_code"] == "OPERATOR_RESET"


class TestBuildComponents:
    """Tests for the default live stream wiring."""

    def test_wiring(self):
        components = build_components(Settings())

        assert components.consumer.buffer is components.buffer
        assert components.highlighter.is_enabled
        assert len(components.engine.observers) == 2
        assert components.engine.image_format == "webp"
