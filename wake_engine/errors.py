"""WakeError envelope and exception hierarchy for the wake engine.

Most per-session failures are log-only: the client simply stops receiving
events.  The one failure surfaced on the wire is a decoder that cannot be
allocated when a connection is accepted, which is reported with the JSON
envelope below right before the socket is closed.

Error codes
-----------
E_ENGINE_UNAVAILABLE  Recognizer could not be allocated for a new session.
E_DECODE_FAILED       Recognizer rejected an audio chunk mid-session.
E_MODEL_LOAD_FAILED   Speech model could not be loaded at startup.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ErrorCode(str, enum.Enum):
    E_ENGINE_UNAVAILABLE = "E_ENGINE_UNAVAILABLE"
    E_DECODE_FAILED = "E_DECODE_FAILED"
    E_MODEL_LOAD_FAILED = "E_MODEL_LOAD_FAILED"


class WakeEngineError(Exception):
    """Base class for wake engine failures."""

    code: ErrorCode = ErrorCode.E_DECODE_FAILED


class ModelLoadError(WakeEngineError):
    """The speech model could not be loaded; the process must not serve."""

    code = ErrorCode.E_MODEL_LOAD_FAILED


class EngineUnavailable(WakeEngineError):
    """A recognizer could not be allocated for one session."""

    code = ErrorCode.E_ENGINE_UNAVAILABLE


class DecodeError(WakeEngineError):
    """The recognizer failed while processing audio for one session."""

    code = ErrorCode.E_DECODE_FAILED


@dataclass
class WakeError:
    code: str
    message: str
    recoverable: bool = True
    session_id: str = ""
    details: dict[str, Any] | None = field(default=None)

    @classmethod
    def from_exception(cls, exc: WakeEngineError, session_id: str = "") -> "WakeError":
        return cls(
            code=exc.code.value,
            message=str(exc),
            recoverable=not isinstance(exc, ModelLoadError),
            session_id=session_id,
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "type": "error",
            "code": self.code,
            "message": self.message,
            "recoverable": self.recoverable,
            "session_id": self.session_id,
        }
        if self.details:
            d["details"] = self.details
        return d


async def send_error(websocket: WebSocket, error: WakeError) -> None:
    """Serialize *error* and send it as a JSON message on *websocket*.

    Silently catches send failures (the socket may already be closed).
    """
    try:
        await websocket.send_json(error.to_dict())
        logger.warning(
            "[WakeError] Sent %s to client: %s (session=%s)",
            error.code,
            error.message,
            error.session_id,
        )
    except Exception as exc:
        logger.debug("[WakeError] Failed to send error to client: %s", exc)
