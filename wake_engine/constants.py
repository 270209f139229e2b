"""Centralized constants for the wake engine.

All magic numbers and protocol values should be defined here for easy maintenance.
"""

# Audio processing
SAMPLE_RATE: int = 16_000  # Vosk recognizers are bound to 16 kHz mono PCM-16
MAX_ALTERNATIVES: int = 10  # n-best list requested from the recognizer

# Logging
LOG_PREVIEW_CHARS: int = 100  # truncation for non-JSON text frames
DEBUG_EVENT_HISTORY: int = 500  # lifecycle events kept for /debug/events

# WebSocket close codes
WS_CLOSE_NORMAL: int = 1000
WS_CLOSE_INTERNAL_ERROR: int = 1011

# Liveness
LIVENESS_TEXT: str = "Wake Word Detection Server is running"

# Environment defaults
DEFAULT_MODEL_PATH: str = "vosk-model-small-en-us-0.15"
DEFAULT_PORT: int = 3000
