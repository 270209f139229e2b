"""Shared fixtures: a deterministic fake decoder and a test app.

The fake decodes by lookup: each chunk's bytes map to an
``(utterance_complete, text)`` pair; unknown chunks decode to silence.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from wake_engine.audio.decoder import TranscriptEvent, TranscriptKind
from wake_engine.config import WakeWordConfig
from wake_engine.debug import WakeDebugLogger
from wake_engine.errors import EngineUnavailable
from wake_engine.main import create_app
from wake_engine.pipeline.registry import SessionRegistry


class FakeDecoderHandle:
    def __init__(self, script: dict, failing: set) -> None:
        self._script = script
        self._failing = failing
        self._current = (False, "")
        self.submitted: list[bytes] = []
        self.close_calls = 0

    def submit(self, chunk: bytes) -> bool:
        if chunk in self._failing:
            raise RuntimeError("native decoder fault")
        self.submitted.append(chunk)
        self._current = self._script.get(chunk, (False, ""))
        return self._current[0]

    def current_transcript(self, utterance_complete: bool) -> TranscriptEvent:
        kind = TranscriptKind.FINAL if utterance_complete else TranscriptKind.PARTIAL
        return TranscriptEvent(text=self._current[1].lower(), kind=kind)

    def close(self) -> None:
        self.close_calls += 1


class FakeDecoderAdapter:
    def __init__(self, script: dict | None = None, *, failing=(), unavailable: bool = False) -> None:
        self.script = dict(script or {})
        self.failing = set(failing)
        self.unavailable = unavailable
        self.sample_rates: list[int] = []
        self.handles: list[FakeDecoderHandle] = []

    def open(self, sample_rate: int = 16_000) -> FakeDecoderHandle:
        self.sample_rates.append(sample_rate)
        if self.unavailable:
            raise EngineUnavailable("no recognizer slots left")
        handle = FakeDecoderHandle(self.script, self.failing)
        self.handles.append(handle)
        return handle


CHUNK_WAKE = b"\x01\x00" * 8
CHUNK_LIGHTS = b"\x02\x00" * 8
CHUNK_SILENCE = b"\x00\x00" * 8
CHUNK_FAULT = b"\xff\x7f" * 8

DEFAULT_SCRIPT = {
    CHUNK_WAKE: (False, "hey roomie can you"),
    CHUNK_LIGHTS: (True, "turn off the lights"),
}


@pytest.fixture
def wake_config() -> WakeWordConfig:
    return WakeWordConfig()


@pytest.fixture
def fake_adapter() -> FakeDecoderAdapter:
    return FakeDecoderAdapter(DEFAULT_SCRIPT, failing={CHUNK_FAULT})


@pytest.fixture
def debug_log() -> WakeDebugLogger:
    return WakeDebugLogger()


@pytest.fixture
def registry(fake_adapter, wake_config, debug_log) -> SessionRegistry:
    return SessionRegistry(fake_adapter, wake_config, debug_log=debug_log)


@pytest.fixture
def client(registry) -> TestClient:
    """Test client without the lifespan, so no Vosk model is loaded."""
    return TestClient(create_app(registry=registry))
