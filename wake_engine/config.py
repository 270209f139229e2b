"""Process-start configuration: wake phrases and server settings.

Both values are built once (in the FastAPI lifespan) from the environment,
which ``main.py`` pre-populates from a ``.env`` file.  They are frozen
dataclasses and are passed explicitly to whatever needs them.

Environment variables:
  WAKE_PHRASE            — primary wake phrase (default "hey roomi")
  WAKE_ALTERNATIVES      — comma-separated alternative spellings
  WAKE_MODEL_PATH        — Vosk model directory
  WAKE_MAX_ALTERNATIVES  — recognizer n-best size
  WAKE_LOG_LEVEL         — root log level for the entry point
  PORT                   — listen port for ``python -m wake_engine.main``
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Mapping

from wake_engine.constants import DEFAULT_MODEL_PATH, DEFAULT_PORT, MAX_ALTERNATIVES

logger = logging.getLogger(__name__)

DEFAULT_PRIMARY_PHRASE = "hey roomi"

# Spellings the small English model actually produces for "hey roomi".
DEFAULT_ALTERNATIVES: tuple[str, ...] = (
    "hey roomi",
    "hi roomi",
    "hey roomie",
    "hey rumi",
    "hey roomy",
    "hey roaming",
    "hey romy",
    "hey roma",
    "hey romey",
    "hiromi",
    "hello roomi",
    "hello roomie",
    "hello rumi",
)

# Greeting, whitespace, then a token that starts with "r" and contains an "m".
FUZZY_PATTERN = r"\b(hey|hi|hello)\s+r\w*m\w*"
# ASCII keeps \w and \b to [a-zA-Z0-9_]; transcripts are English.
FUZZY_FLAGS = re.IGNORECASE | re.ASCII


def _compile_fuzzy() -> re.Pattern[str]:
    return re.compile(FUZZY_PATTERN, FUZZY_FLAGS)


@dataclass(frozen=True)
class WakeWordConfig:
    """Wake phrase, alternatives and fuzzy rule; read-only after startup."""

    primary_phrase: str = DEFAULT_PRIMARY_PHRASE
    alternatives: tuple[str, ...] = DEFAULT_ALTERNATIVES
    fuzzy_pattern: re.Pattern[str] = field(default_factory=_compile_fuzzy)

    def __post_init__(self) -> None:
        primary = self.primary_phrase.lower().strip()
        if not primary:
            raise ValueError("primary_phrase must not be empty")
        # Order is kept so the first declared alternative wins on a tie.
        alternatives = tuple(
            dict.fromkeys(a.lower().strip() for a in self.alternatives if a and a.strip())
        )
        pattern = self.fuzzy_pattern
        if isinstance(pattern, str):
            pattern = re.compile(pattern, FUZZY_FLAGS)
        object.__setattr__(self, "primary_phrase", primary)
        object.__setattr__(self, "alternatives", alternatives)
        object.__setattr__(self, "fuzzy_pattern", pattern)


@dataclass(frozen=True)
class ServerSettings:
    model_path: str = DEFAULT_MODEL_PATH
    port: int = DEFAULT_PORT
    max_alternatives: int = MAX_ALTERNATIVES
    log_level: str = "INFO"


def _int_env(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("[Config] %s=%r is not an integer — using %d.", key, raw, default)
        return default


def load_wake_config(env: Mapping[str, str] | None = None) -> WakeWordConfig:
    """Build the wake phrase configuration from *env* (defaults to ``os.environ``)."""
    env = os.environ if env is None else env

    primary = env.get("WAKE_PHRASE", "").strip() or DEFAULT_PRIMARY_PHRASE
    raw_alternatives = env.get("WAKE_ALTERNATIVES", "")
    if raw_alternatives.strip():
        alternatives = tuple(a for a in raw_alternatives.split(",") if a.strip())
    else:
        alternatives = DEFAULT_ALTERNATIVES

    config = WakeWordConfig(primary_phrase=primary, alternatives=alternatives)
    logger.info(
        "[Config] Wake word set to %r with %d alternatives",
        config.primary_phrase,
        len(config.alternatives),
    )
    return config


def load_settings(env: Mapping[str, str] | None = None) -> ServerSettings:
    """Read server settings from *env* (defaults to ``os.environ``)."""
    env = os.environ if env is None else env
    return ServerSettings(
        model_path=env.get("WAKE_MODEL_PATH", "") or DEFAULT_MODEL_PATH,
        port=_int_env(env, "PORT", DEFAULT_PORT),
        max_alternatives=_int_env(env, "WAKE_MAX_ALTERNATIVES", MAX_ALTERNATIVES),
        log_level=(env.get("WAKE_LOG_LEVEL", "") or "INFO").upper(),
    )
