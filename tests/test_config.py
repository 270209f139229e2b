"""Tests for environment-driven configuration.

Run:
    pytest tests/test_config.py -v
"""

import dataclasses

import pytest

from wake_engine.config import (
    DEFAULT_ALTERNATIVES,
    DEFAULT_PRIMARY_PHRASE,
    WakeWordConfig,
    load_settings,
    load_wake_config,
)


class TestLoadWakeConfig:
    def test_defaults(self):
        config = load_wake_config({})
        assert config.primary_phrase == DEFAULT_PRIMARY_PHRASE
        assert config.alternatives == DEFAULT_ALTERNATIVES

    def test_overrides_from_env(self):
        config = load_wake_config({
            "WAKE_PHRASE": "  Hey Jarvis ",
            "WAKE_ALTERNATIVES": "hey jarvis, hey service,,Hey Jarvis",
        })
        assert config.primary_phrase == "hey jarvis"
        assert config.alternatives == ("hey jarvis", "hey service")

    def test_config_is_immutable(self):
        config = WakeWordConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.primary_phrase = "something else"  # type: ignore[misc]


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings({})
        assert settings.model_path == "vosk-model-small-en-us-0.15"
        assert settings.port == 3000
        assert settings.max_alternatives == 10
        assert settings.log_level == "INFO"

    def test_overrides(self):
        settings = load_settings({
            "WAKE_MODEL_PATH": "/models/vosk-en",
            "PORT": "8080",
            "WAKE_MAX_ALTERNATIVES": "3",
            "WAKE_LOG_LEVEL": "debug",
        })
        assert settings.model_path == "/models/vosk-en"
        assert settings.port == 8080
        assert settings.max_alternatives == 3
        assert settings.log_level == "DEBUG"

    def test_bad_integer_falls_back_to_default(self):
        assert load_settings({"PORT": "eighty"}).port == 3000
