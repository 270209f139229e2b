"""SessionRegistry — accepts WebSocket connections and drives their sessions.

One registry serves the whole process.  Each accepted socket gets its own
``Session``; the registry runs that socket's receive loop, hands binary
frames to ``Session.process_audio`` and text frames to
``Session.process_control``, and sends the resulting events back verbatim.

Faults stay inside the connection that raised them: they are logged, the
session is closed (releasing its recognizer) and the other connections keep
running.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import WebSocket, WebSocketDisconnect

from wake_engine.audio.decoder import DecoderAdapter
from wake_engine.config import WakeWordConfig
from wake_engine.constants import SAMPLE_RATE, WS_CLOSE_INTERNAL_ERROR, WS_CLOSE_NORMAL
from wake_engine.debug import WakeDebugLogger, debug_logger
from wake_engine.errors import DecodeError, EngineUnavailable, WakeError, send_error
from wake_engine.pipeline.session import Session, WakeWordMessage

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Tracks live sessions and owns the per-connection receive loop."""

    def __init__(
        self,
        adapter: DecoderAdapter,
        wake_config: WakeWordConfig,
        *,
        sample_rate: int = SAMPLE_RATE,
        debug_log: Optional[WakeDebugLogger] = None,
    ) -> None:
        self._adapter = adapter
        self._wake_config = wake_config
        self._sample_rate = sample_rate
        self._debug = debug_log or debug_logger
        self._sessions: dict[str, Session] = {}

    @property
    def wake_config(self) -> WakeWordConfig:
        return self._wake_config

    @property
    def debug_log(self) -> WakeDebugLogger:
        return self._debug

    def active_count(self) -> int:
        """Return the number of sessions currently holding a recognizer."""
        return len(self._sessions)

    def session_ids(self) -> list[str]:
        return list(self._sessions)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def handle_connection(self, websocket: WebSocket) -> None:
        """Serve one client from accept to close."""
        await websocket.accept()
        session = Session(self._adapter, self._wake_config, sample_rate=self._sample_rate)
        sid = session.session_id
        logger.info("[WS] New connection established (%s).", sid)

        close_code: Optional[int] = None
        try:
            # Leaving the block releases the recognizer on every exit path.
            async with session:
                self._sessions[sid] = session
                self._debug.log_ws_event("connect", sid, {"client": str(websocket.client)})
                try:
                    close_code = await self._serve(websocket, session)
                finally:
                    self._sessions.pop(sid, None)
        except EngineUnavailable as exc:
            self._debug.log_ws_event("engine_unavailable", sid, {"error": str(exc)})
            await send_error(websocket, WakeError.from_exception(exc, session_id=sid))
            await self._close_socket(websocket, WS_CLOSE_INTERNAL_ERROR)
            return

        self._debug.log_ws_event(
            "disconnect",
            sid,
            {"chunks": session.chunk_count, "wake_count": session.wake_count},
        )
        logger.info("[WS] Connection closed (%s). Active sessions: %d", sid, len(self._sessions))

        if close_code is not None:
            await self._close_socket(websocket, close_code)

    async def _serve(self, websocket: WebSocket, session: Session) -> Optional[int]:
        """Run one opened session; return the close code to send, if any."""
        sid = session.session_id
        try:
            await websocket.send_json({"status": "connected"})
            if await self._receive_loop(websocket, session):
                return WS_CLOSE_NORMAL
        except WebSocketDisconnect:
            logger.info("[WS] Client disconnected (%s).", sid)
        except DecodeError as exc:
            logger.error("[WS] Decode failure, tearing down %s: %s", sid, exc)
            self._debug.log_ws_event("decode_error", sid, {"error": str(exc)})
            return WS_CLOSE_INTERNAL_ERROR
        except Exception as exc:
            logger.error("[WS] Connection error (%s): %s", sid, exc, exc_info=True)
            return WS_CLOSE_INTERNAL_ERROR
        return None

    async def _receive_loop(self, websocket: WebSocket, session: Session) -> bool:
        """Process frames in arrival order until the session stops being active.

        Returns True when the session ended itself (close request) and the
        socket is still open, False when the client went away.
        """
        while session.is_active:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info("[WS] Client disconnected (%s).", session.session_id)
                return False

            chunk = message.get("bytes")
            if chunk is not None:
                for event in await session.process_audio(chunk):
                    await websocket.send_json(event.to_dict())
                    if isinstance(event, WakeWordMessage):
                        self._debug.log_ws_event(
                            "wake_detected", session.session_id, {"reason": event.match.reason}
                        )
                continue

            text = message.get("text")
            if text is not None:
                session.process_control(text)
        return True

    @staticmethod
    async def _close_socket(websocket: WebSocket, code: int) -> None:
        try:
            await websocket.close(code=code)
        except Exception as exc:
            logger.debug("[WS] Socket already closed: %s", exc)
