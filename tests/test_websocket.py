"""End-to-end WebSocket tests against the FastAPI app with a fake decoder.

Each test uses a fresh ``TestClient`` without the lifespan, so the Vosk
model is never loaded; the registry fixture injects the fake adapter.

Run:
    pytest tests/test_websocket.py -v
"""

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from conftest import CHUNK_FAULT, CHUNK_LIGHTS, CHUNK_SILENCE, CHUNK_WAKE, FakeDecoderAdapter
from wake_engine.main import create_app
from wake_engine.pipeline.registry import SessionRegistry


class TestWakeStream:
    def test_connect_ack(self, client):
        with client.websocket_connect("/") as ws:
            assert ws.receive_json() == {"status": "connected"}

    def test_wake_phrase_detected(self, client):
        with client.websocket_connect("/") as ws:
            assert ws.receive_json() == {"status": "connected"}
            ws.send_bytes(CHUNK_WAKE)
            assert ws.receive_json() == {"transcript": "hey roomie can you"}
            assert ws.receive_json() == {"wakeWordDetected": True}

    def test_plain_command_has_no_wake_event(self, client):
        with client.websocket_connect("/") as ws:
            ws.receive_json()
            ws.send_bytes(CHUNK_LIGHTS)
            assert ws.receive_json() == {"transcript": "turn off the lights"}
            # Silence produces nothing, so the next message must be the
            # transcript of the following chunk, not a wake event.
            ws.send_bytes(CHUNK_SILENCE)
            ws.send_bytes(CHUNK_WAKE)
            assert ws.receive_json() == {"transcript": "hey roomie can you"}
            assert ws.receive_json() == {"wakeWordDetected": True}

    def test_malformed_control_keeps_session_alive(self, client):
        with client.websocket_connect("/") as ws:
            ws.receive_json()
            ws.send_text("this is not json")
            ws.send_text("[1, 2]")
            ws.send_json({"type": "hello", "client": "test"})
            ws.send_bytes(CHUNK_LIGHTS)
            assert ws.receive_json() == {"transcript": "turn off the lights"}

    def test_close_request_closes_socket(self, client, fake_adapter, registry):
        with client.websocket_connect("/") as ws:
            ws.receive_json()
            ws.send_json({"type": "close"})
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()
        assert exc_info.value.code == 1000
        assert fake_adapter.handles[0].close_calls == 1
        assert registry.active_count() == 0

    def test_client_disconnect_releases_decoder(self, client, fake_adapter, registry, debug_log):
        with client.websocket_connect("/") as ws:
            ws.receive_json()
            ws.send_bytes(CHUNK_LIGHTS)
            ws.receive_json()
        assert fake_adapter.handles[0].close_calls == 1
        assert registry.active_count() == 0
        assert [e["type"] for e in debug_log.get_recent_events()] == ["connect", "disconnect"]

    def test_repeated_connections_release_every_decoder(self, client, fake_adapter, registry):
        for _ in range(5):
            with client.websocket_connect("/") as ws:
                ws.receive_json()
                ws.send_bytes(CHUNK_WAKE)
                ws.receive_json()
                ws.receive_json()
        assert len(fake_adapter.handles) == 5
        assert [h.close_calls for h in fake_adapter.handles] == [1] * 5
        assert registry.active_count() == 0


class TestConnectionFaults:
    def test_decode_fault_closes_only_that_connection(self, client, fake_adapter, registry, debug_log):
        with client.websocket_connect("/") as ws:
            ws.receive_json()
            ws.send_bytes(CHUNK_FAULT)
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()
        assert exc_info.value.code == 1011
        assert fake_adapter.handles[0].close_calls == 1
        assert "decode_error" in [e["type"] for e in debug_log.get_recent_events()]

        with client.websocket_connect("/") as ws:
            assert ws.receive_json() == {"status": "connected"}
            ws.send_bytes(CHUNK_LIGHTS)
            assert ws.receive_json() == {"transcript": "turn off the lights"}
        assert registry.active_count() == 0

    def test_engine_unavailable_is_signalled(self, wake_config):
        adapter = FakeDecoderAdapter(unavailable=True)
        registry = SessionRegistry(adapter, wake_config)
        client = TestClient(create_app(registry=registry))

        with client.websocket_connect("/") as ws:
            error = ws.receive_json()
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()

        assert error["type"] == "error"
        assert error["code"] == "E_ENGINE_UNAVAILABLE"
        assert error["recoverable"] is True
        assert error["session_id"].startswith("session-")
        assert exc_info.value.code == 1011
        assert registry.active_count() == 0


class TestHttpRoutes:
    def test_liveness(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.text == "Wake Word Detection Server is running"

    def test_health_reports_sessions(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "sessions": 0}

    def test_debug_events_endpoint(self, client):
        resp = client.get("/debug/events", params={"limit": 5})
        assert resp.status_code == 200
        assert isinstance(resp.json()["events"], list)
