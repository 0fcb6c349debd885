"""Shared test fixtures for the voice_agent test suite.

WHY: Most server, client, and CLI tests read configuration from the
environment; they need it either fully set or fully absent, never
inherited from the developer's shell or .env file.

HOW: clean_env removes every variable the service reads; configured_env
layers a complete, valid configuration on top. transcript_event is the
sample assistant event the reassembly tests split into chunks.

RULES:
- Both env fixtures go through monkeypatch, so nothing leaks between tests
"""

from __future__ import annotations

from typing import Any, Dict

import pytest

from helpers import APP_CERTIFICATE, APP_ID

ENV_VARS = [
    "APP_ID",
    "APP_CERTIFICATE",
    "AGENT_AUTH_HEADER",
    "LLM_API_KEY",
    "LLM_MODEL",
    "LLM_URL",
    "TTS_VENDOR",
    "TTS_KEY",
    "TTS_VOICE_ID",
    "CONVOAI_BASE_URL",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable the service reads."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch

@pytest.fixture
def configured_env(clean_env):
    """A fully configured environment with a valid certificate."""
    clean_env.setenv("APP_ID", APP_ID)
    clean_env.setenv("APP_CERTIFICATE", APP_CERTIFICATE)
    clean_env.setenv("AGENT_AUTH_HEADER", "Basic dGVzdDp0ZXN0")
    clean_env.setenv("LLM_API_KEY", "sk-test")
    clean_env.setenv("TTS_VENDOR", "rime")
    clean_env.setenv("TTS_KEY", "rime-key")
    clean_env.setenv("TTS_VOICE_ID", "astra")
    clean_env.setenv("CONVOAI_BASE_URL", "https://convoai.test/v2")
    return clean_env

@pytest.fixture
def transcript_event() -> Dict[str, Any]:
    return {
        "object": "assistant.transcription",
        "text": "Sure, the weather in Stockholm tomorrow looks clear and cold.",
        "turn_id": 3,
        "turn_status": 1,
        "stream_id": 100,
    }
