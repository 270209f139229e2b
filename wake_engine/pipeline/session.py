"""Session — per-connection recognizer state and event sequencing.

A ``Session`` is created when a WebSocket is accepted and is single-use:

    ACTIVE ──(disconnect / close request / decode fault)──▶ CLOSING ──▶ CLOSED

It owns exactly one decoder handle, released by ``close()`` or on leaving
``async with session:``.  Recognizer calls are blocking native
code, so they run in the default executor; the connection's receive loop
awaits each chunk before reading the next, which keeps them sequential.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
from dataclasses import dataclass
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from wake_engine.audio.decoder import (
    DecoderAdapter,
    DecoderHandle,
    TranscriptEvent,
    TranscriptKind,
)
from wake_engine.config import WakeWordConfig
from wake_engine.constants import LOG_PREVIEW_CHARS, SAMPLE_RATE
from wake_engine.errors import DecodeError, EngineUnavailable
from wake_engine.telemetry import get_tracer
from wake_engine.utils import generate_session_id
from wake_engine.wake.matcher import MatchResult, matches

logger = logging.getLogger(__name__)
tracer = get_tracer()


class SessionState(str, enum.Enum):
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


# ---------------------------------------------------------------------------
# Outbound events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TranscriptMessage:
    text: str
    kind: TranscriptKind

    def to_dict(self) -> dict:
        # Partial and final transcripts share one wire shape.
        return {"transcript": self.text}


@dataclass(frozen=True)
class WakeWordMessage:
    match: MatchResult

    def to_dict(self) -> dict:
        return {"wakeWordDetected": True}


OutboundEvent = Union[TranscriptMessage, WakeWordMessage]


# ---------------------------------------------------------------------------
# Inbound control messages
# ---------------------------------------------------------------------------


class ControlMessage(BaseModel):
    """Free-form JSON control frame; only ``type == "close"`` has meaning."""

    model_config = ConfigDict(extra="allow")

    type: str = ""

    @property
    def is_close_request(self) -> bool:
        return self.type.lower() == "close"


class Session:
    """All per-connection state for a single WebSocket.

    Parameters
    ----------
    adapter : DecoderAdapter
        Opens the recognizer this session owns.
    wake_config : WakeWordConfig
        Process-wide, read-only wake phrase configuration.
    session_id : str | None
        Identifier used in logs; generated when omitted.
    sample_rate : int
        Rate the recognizer is bound to (16 kHz).
    """

    def __init__(
        self,
        adapter: DecoderAdapter,
        wake_config: WakeWordConfig,
        *,
        session_id: Optional[str] = None,
        sample_rate: int = SAMPLE_RATE,
    ) -> None:
        self.session_id = session_id or generate_session_id()
        self._adapter = adapter
        self._wake_config = wake_config
        self._sample_rate = sample_rate

        self._state = SessionState.ACTIVE
        self._decoder: Optional[DecoderHandle] = None
        self._opened = False

        self.chunk_count: int = 0
        self.transcript_count: int = 0
        self.wake_count: int = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SessionState.ACTIVE

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Allocate this session's recognizer.

        Raises ``EngineUnavailable`` (after moving straight to CLOSED) when
        the engine cannot allocate one.
        """
        if self._opened or not self.is_active:
            raise RuntimeError(f"Session {self.session_id} is single-use")
        self._opened = True

        loop = asyncio.get_running_loop()
        try:
            self._decoder = await loop.run_in_executor(
                None, self._adapter.open, self._sample_rate
            )
        except Exception as exc:
            self._state = SessionState.CLOSED
            logger.warning("[Session %s] Engine unavailable: %s", self.session_id, exc)
            if isinstance(exc, EngineUnavailable):
                raise
            raise EngineUnavailable(str(exc)) from exc
        logger.info("[Session %s] Recognizer ready at %d Hz.", self.session_id, self._sample_rate)

    def close(self) -> None:
        """Release the recognizer. Idempotent; never raises."""
        if self._state is SessionState.CLOSED:
            return
        self._state = SessionState.CLOSING

        decoder, self._decoder = self._decoder, None
        if decoder is not None:
            try:
                decoder.close()
            except Exception as exc:
                logger.error(
                    "[Session %s] Error releasing recognizer: %s",
                    self.session_id,
                    exc,
                    exc_info=True,
                )

        self._state = SessionState.CLOSED
        logger.info(
            "[Session %s] Closed (chunks=%d transcripts=%d wake=%d).",
            self.session_id,
            self.chunk_count,
            self.transcript_count,
            self.wake_count,
        )

    async def __aenter__(self) -> "Session":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Inbound units
    # ------------------------------------------------------------------

    async def process_audio(self, chunk: bytes) -> list[OutboundEvent]:
        """Decode one PCM-16 chunk and return the events to send, in order.

        A chunk yields nothing (silence), a transcript, or a transcript
        followed by a wake-word detection.  Any recognizer fault closes the
        session and is re-raised as ``DecodeError``.
        """
        if not self.is_active:
            logger.debug("[Session %s] Dropping audio in state %s.", self.session_id, self._state.value)
            return []
        decoder = self._decoder
        if decoder is None:
            raise RuntimeError(f"Session {self.session_id} was never opened")

        self.chunk_count += 1
        loop = asyncio.get_running_loop()
        with tracer.start_as_current_span(
            "wake.decode",
            attributes={"audio.bytes": len(chunk), "session.id": self.session_id},
        ):
            try:
                transcript = await loop.run_in_executor(None, self._decode, decoder, chunk)
            except Exception as exc:
                logger.error(
                    "[Session %s] Decode failed on chunk %d: %s",
                    self.session_id,
                    self.chunk_count,
                    exc,
                    exc_info=not isinstance(exc, DecodeError),
                )
                self.close()
                if isinstance(exc, DecodeError):
                    raise
                raise DecodeError(str(exc)) from exc

        if not transcript.text:
            return []

        self.transcript_count += 1
        if transcript.is_final:
            logger.info("[Session %s] Final speech detected: %s", self.session_id, transcript.text)
        else:
            logger.debug("[Session %s] Partial speech detected: %s", self.session_id, transcript.text)

        events: list[OutboundEvent] = [TranscriptMessage(text=transcript.text, kind=transcript.kind)]

        with tracer.start_as_current_span("wake.match", attributes={"text.len": len(transcript.text)}):
            result = matches(transcript.text, self._wake_config)
        if result.matched:
            self.wake_count += 1
            logger.info("[Session %s] Wake word detected (%s).", self.session_id, result.reason)
            events.append(WakeWordMessage(match=result))
        return events

    def process_control(self, raw: str) -> Optional[ControlMessage]:
        """Parse a text frame. Malformed frames are logged and ignored."""
        if not self.is_active:
            logger.debug("[Session %s] Dropping control frame in state %s.", self.session_id, self._state.value)
            return None

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.info(
                "[Session %s] Received non-binary, non-JSON message: %s",
                self.session_id,
                raw[:LOG_PREVIEW_CHARS],
            )
            return None

        if not isinstance(payload, dict):
            logger.info("[Session %s] Ignoring non-object control message: %.100r", self.session_id, payload)
            return None

        try:
            message = ControlMessage.model_validate(payload)
        except ValidationError as exc:
            logger.warning("[Session %s] Invalid control message ignored: %s", self.session_id, exc)
            return None

        logger.info("[Session %s] Received control message: %s", self.session_id, payload)
        if message.is_close_request:
            logger.info("[Session %s] Close requested by client.", self.session_id)
            self.close()
        return message

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _decode(decoder: DecoderHandle, chunk: bytes) -> TranscriptEvent:
        utterance_complete = decoder.submit(chunk)
        return decoder.current_transcript(utterance_complete)
