"""Configuration constants, environment checks, and .env loading.

WHY: The HTTP service needs the app id, app certificate, agent platform
auth header, and LLM/TTS vendor settings. Keeping them in one place makes
the deployment surface obvious and lets /check-env report exactly which
variables are missing.

HOW: python-dotenv loads the .env file on import. Defaults are module-level
constants overridable by environment variables. load_settings() takes a
fresh snapshot of the environment each time it is called, so a running
service picks up values set after import (and tests can monkeypatch them).

RULES:
- Secrets (APP_CERTIFICATE, LLM_API_KEY, TTS_KEY, AGENT_AUTH_HEADER) are
  only ever read from the environment, never hardcoded
- Empty strings count as "not configured"
- REQUIRED_ENV_VARS is the single list /check-env reports against
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, List

from dotenv import load_dotenv

# Load .env from the project root (where the service is started from)
load_dotenv()

# ---------------------------------------------------------------------------
# Agent platform defaults
# ---------------------------------------------------------------------------

CONVOAI_BASE_URL = os.getenv(
    "CONVOAI_BASE_URL",
    "https://api.agora.io/api/conversational-ai-agent/v2",
)

AGENT_UID = "100"
USER_UID = "101"

TOKEN_EXPIRE_SECONDS = 86400
"""Validity window of every signed credential (one day)."""

DEFAULT_LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")
DEFAULT_LLM_URL = os.getenv("LLM_URL", "https://api.openai.com/v1/chat/completions")
DEFAULT_TTS_VENDOR = "rime"
DEFAULT_TTS_VOICE_ID = "astra"

DEFAULT_PROMPT = (
    "You are a friendly voice assistant. Keep responses concise, around "
    "10 to 20 words. Be helpful and conversational."
)
DEFAULT_GREETING = "Hi there! How can I help you today?"

# ---------------------------------------------------------------------------
# Environment checks
# ---------------------------------------------------------------------------

REQUIRED_ENV_VARS: List[str] = [
    "APP_ID",
    "APP_CERTIFICATE",
    "AGENT_AUTH_HEADER",
    "LLM_API_KEY",
    "TTS_VENDOR",
    "TTS_KEY",
    "TTS_VOICE_ID",
]


@dataclass
class EnvStatus:
    """Which required variables are set, and whether the service can start agents.

    RULES:
    - configured maps every required variable to True/False
    - missing preserves REQUIRED_ENV_VARS order
    - ready is True only when nothing is missing
    """

    configured: Dict[str, bool] = field(default_factory=dict)
    missing: List[str] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return not self.missing


def check_env() -> EnvStatus:
    """Report which REQUIRED_ENV_VARS are set to a non-empty value."""
    status = EnvStatus()
    for name in REQUIRED_ENV_VARS:
        is_set = bool(os.getenv(name, "").strip())
        status.configured[name] = is_set
        if not is_set:
            status.missing.append(name)
    return status


@dataclass
class Settings:
    """Snapshot of the service configuration taken from the environment.

    WHY: Handlers need a consistent view of the config for the duration of
    one request, and tests need to control it without reloading modules.

    HOW: Built by load_settings(). Missing secrets are empty strings; the
    code that uses them decides whether that is fatal.
    """

    app_id: str
    app_certificate: str = ""
    agent_auth_header: str = ""
    llm_api_key: str = ""
    llm_model: str = DEFAULT_LLM_MODEL
    llm_url: str = DEFAULT_LLM_URL
    tts_vendor: str = DEFAULT_TTS_VENDOR
    tts_key: str = ""
    tts_voice_id: str = DEFAULT_TTS_VOICE_ID
    base_url: str = CONVOAI_BASE_URL


def load_settings() -> Settings:
    """Read the current environment into a Settings object."""
    return Settings(
        app_id=os.getenv("APP_ID", "").strip(),
        app_certificate=os.getenv("APP_CERTIFICATE", "").strip(),
        agent_auth_header=os.getenv("AGENT_AUTH_HEADER", "").strip(),
        llm_api_key=os.getenv("LLM_API_KEY", ""),
        llm_model=os.getenv("LLM_MODEL") or DEFAULT_LLM_MODEL,
        llm_url=os.getenv("LLM_URL") or DEFAULT_LLM_URL,
        tts_vendor=os.getenv("TTS_VENDOR") or DEFAULT_TTS_VENDOR,
        tts_key=os.getenv("TTS_KEY", ""),
        tts_voice_id=os.getenv("TTS_VOICE_ID") or DEFAULT_TTS_VOICE_ID,
        base_url=os.getenv("CONVOAI_BASE_URL") or CONVOAI_BASE_URL,
    )


def load_app_id() -> str:
    """Load the app id from the environment.

    WHY: Every credential and every agent platform URL is scoped to the
    app id, so nothing works without it.

    RULES:
    - Raises ValueError if APP_ID is missing or empty
    - Never returns a default/placeholder value
    """
    app_id = os.getenv("APP_ID", "").strip()
    if not app_id:
        raise ValueError(
            "App id not configured. Add APP_ID to the .env file in the app folder."
        )
    return app_id
