"""Vosk speech decoder adapter for streaming PCM-16 transcription.

The Vosk model is heavy to load (hundreds of MB for the larger English
models).  Call ``load_model()`` once at application startup and hand the
result to ``VoskDecoderAdapter``; every connection then opens its own
lightweight ``KaldiRecognizer`` through ``VoskDecoderAdapter.open()``.

Everything outside this module talks to the ``DecoderAdapter`` /
``DecoderHandle`` protocols, so tests can substitute a deterministic fake.
"""

from __future__ import annotations

import enum
import json
import logging
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import vosk

from wake_engine.constants import MAX_ALTERNATIVES, SAMPLE_RATE
from wake_engine.errors import DecodeError, EngineUnavailable, ModelLoadError

logger = logging.getLogger(__name__)


class TranscriptKind(str, enum.Enum):
    PARTIAL = "partial"
    FINAL = "final"


@dataclass(frozen=True)
class TranscriptEvent:
    """One recognizer hypothesis; ``text`` is lowercase and may be empty."""

    text: str
    kind: TranscriptKind

    @property
    def is_final(self) -> bool:
        return self.kind is TranscriptKind.FINAL


class DecoderHandle(Protocol):
    """One recognizer, exclusively owned by one session."""

    def submit(self, chunk: bytes) -> bool:
        """Feed a PCM-16 chunk; return True when the utterance is complete."""
        ...

    def current_transcript(self, utterance_complete: bool) -> TranscriptEvent:
        ...

    def close(self) -> None:
        ...


class DecoderAdapter(Protocol):
    def open(self, sample_rate: int = SAMPLE_RATE) -> DecoderHandle:
        ...


def load_model(model_path: str | Path) -> vosk.Model:
    """Load the Vosk model at *model_path*.

    Raises ``ModelLoadError`` when the directory is missing or Vosk refuses
    it.  No session can succeed without a model, so callers treat this as
    fatal.
    """
    path = Path(model_path)
    if not path.is_dir():
        raise ModelLoadError(f"Vosk model not found at {path}")
    try:
        model = vosk.Model(str(path))
    except Exception as exc:
        raise ModelLoadError(f"Failed to load Vosk model from {path}: {exc}") from exc
    logger.info("[Decoder] Vosk model loaded from %s", path)
    return model


def _parse_hypothesis(raw: str, key: str) -> str:
    """Extract the best hypothesis text from a Vosk result JSON string.

    With ``SetMaxAlternatives`` > 0 final results arrive as
    ``{"alternatives": [{"text": ..., "confidence": ...}, ...]}``; otherwise
    as ``{"text": ...}``.  Partial results are always ``{"partial": ...}``.
    """
    try:
        payload: Any = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("[Decoder] Unparseable recognizer result: %.100r", raw)
        return ""
    if not isinstance(payload, dict):
        return ""

    alternatives = payload.get("alternatives")
    if isinstance(alternatives, list) and alternatives:
        best = alternatives[0]
        text = best.get("text", "") if isinstance(best, dict) else ""
    else:
        text = payload.get(key, "")
    return text if isinstance(text, str) else ""


def _release_frames(exc: BaseException) -> None:
    """Clear the locals of finished frames in *exc*'s traceback.

    The recognizer's own method frames hold ``self``; left alone, the chained
    exception would keep the recognizer alive after ``close()``.
    """
    traceback.clear_frames(exc.__traceback__)


class VoskDecoderHandle:
    """Wraps one ``vosk.KaldiRecognizer``.

    Not thread-safe: the owning session must serialise calls.
    """

    def __init__(self, recognizer: Any) -> None:
        self._recognizer: Any = recognizer

    @property
    def closed(self) -> bool:
        return self._recognizer is None

    def submit(self, chunk: bytes) -> bool:
        try:
            return bool(self._require_open().AcceptWaveform(bytes(chunk)))
        except DecodeError:
            raise
        except Exception as exc:
            _release_frames(exc)
            raise DecodeError(f"Recognizer rejected audio chunk: {exc}") from exc

    def current_transcript(self, utterance_complete: bool) -> TranscriptEvent:
        try:
            if utterance_complete:
                # Result() also resets the recognizer's utterance state.
                text = _parse_hypothesis(self._require_open().Result(), "text")
                kind = TranscriptKind.FINAL
            else:
                text = _parse_hypothesis(self._require_open().PartialResult(), "partial")
                kind = TranscriptKind.PARTIAL
        except DecodeError:
            raise
        except Exception as exc:
            _release_frames(exc)
            raise DecodeError(f"Recognizer result unavailable: {exc}") from exc
        return TranscriptEvent(text=text.lower().strip(), kind=kind)

    def close(self) -> None:
        if self._recognizer is None:
            return
        # KaldiRecognizer frees its native handle in __del__.  No frame or
        # traceback keeps a reference (see _release_frames), so dropping this
        # one releases the recognizer immediately.
        self._recognizer = None
        logger.debug("[Decoder] Recognizer released.")

    def _require_open(self) -> Any:
        if self._recognizer is None:
            raise DecodeError("Decoder handle is closed")
        return self._recognizer


class VoskDecoderAdapter:
    """Opens one ``VoskDecoderHandle`` per session against a shared model.

    Parameters
    ----------
    model : vosk.Model
        Model returned by ``load_model()``; read-only and shared.
    max_alternatives : int
        n-best list size requested from every recognizer.
    words : bool
        Whether recognizers report word-level timings.
    """

    def __init__(
        self,
        model: Any,
        *,
        max_alternatives: int = MAX_ALTERNATIVES,
        words: bool = True,
    ) -> None:
        self._model = model
        self._max_alternatives = max_alternatives
        self._words = words

    def open(self, sample_rate: int = SAMPLE_RATE) -> VoskDecoderHandle:
        try:
            recognizer = vosk.KaldiRecognizer(self._model, sample_rate)
            recognizer.SetMaxAlternatives(self._max_alternatives)
            recognizer.SetWords(self._words)
        except Exception as exc:
            raise EngineUnavailable(f"Could not allocate recognizer: {exc}") from exc
        logger.debug("[Decoder] Recognizer allocated at %d Hz.", sample_rate)
        return VoskDecoderHandle(recognizer)

