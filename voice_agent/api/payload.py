"""Agent join payload construction.

WHY: Starting an agent means POSTing a large configuration body: channel
and credentials, LLM endpoint and prompt, ASR/TTS vendors, VAD and
transcript settings. Each TTS vendor expects a differently shaped params
object. Keeping this as plain data builders makes the shapes easy to
audit against the platform docs.

HOW: generate_channel() makes a random channel name. build_tts_config()
switches on the vendor name. build_join_payload() assembles the full body.

RULES:
- Channel names are 10 characters from A-Z0-9
- Agent RTM uid is "<agent_uid>-<channel>"
- Unknown TTS vendors get a generic {api_key, voice} params object
- Transcripts are enabled with protocol v2 (the chunked overlay protocol)
"""

from __future__ import annotations

import random
import string
from typing import Any, Dict, Optional

from voice_agent.config import AGENT_UID, DEFAULT_GREETING, DEFAULT_PROMPT

CHANNEL_ALPHABET = string.ascii_uppercase + string.digits
CHANNEL_LENGTH = 10

IDLE_TIMEOUT_S = 120
MAX_HISTORY = 32
VAD_SILENCE_MS = 300
FAILURE_MESSAGE = "Sorry, something went wrong"


def generate_channel(rng: Optional[random.Random] = None) -> str:
    """Random 10-character channel name."""
    rng = rng or random.SystemRandom()
    return "".join(rng.choice(CHANNEL_ALPHABET) for _ in range(CHANNEL_LENGTH))


def agent_rtm_uid(channel: str, agent_uid: str = AGENT_UID) -> str:
    return "{}-{}".format(agent_uid, channel)


def build_tts_config(vendor: str, key: str, voice_id: str) -> Dict[str, Any]:
    """Return the TTS block for the given vendor."""
    if vendor == "openai":
        params = {
            "api_key": key,
            "model": "tts-1",
            "voice": voice_id,
            "response_format": "pcm",
            "speed": 1.0,
        }
    elif vendor == "elevenlabs":
        params = {
            "key": key,
            "model_id": "eleven_flash_v2_5",
            "voice_id": voice_id,
            "stability": 0.5,
            "sample_rate": 24000,
        }
    elif vendor == "rime":
        params = {
            "api_key": key,
            "speaker": voice_id,
            "modelId": "mistv2",
            "lang": "eng",
            "samplingRate": 16000,
            "speedAlpha": 1.0,
        }
    elif vendor == "cartesia":
        params = {
            "api_key": key,
            "model_id": "sonic-3",
            "sample_rate": 24000,
            "voice": {"mode": "id", "id": voice_id},
        }
    else:
        params = {"api_key": key, "voice": voice_id}
    return {"vendor": vendor, "params": params}


def build_join_payload(
    channel: str,
    agent_token: str,
    llm_url: str,
    llm_api_key: str,
    llm_model: str,
    tts_config: Dict[str, Any],
    prompt: Optional[str] = None,
    greeting: Optional[str] = None,
    agent_uid: str = AGENT_UID,
) -> Dict[str, Any]:
    """Assemble the body for POST /projects/{app_id}/join.

    Args:
        channel: Channel the agent joins (also used as the agent name).
        agent_token: Credential for the agent's uid (or the app id).
        llm_url: Chat-completions endpoint the agent calls.
        llm_api_key: Key for llm_url.
        llm_model: Model name passed in llm.params.
        tts_config: Output of build_tts_config().
        prompt: System prompt; defaults to DEFAULT_PROMPT.
        greeting: First thing the agent says; defaults to DEFAULT_GREETING.
        agent_uid: RTC uid the agent joins as.
    """
    return {
        "name": channel,
        "properties": {
            "channel": channel,
            "token": agent_token,
            "agent_rtc_uid": agent_uid,
            "agent_rtm_uid": agent_rtm_uid(channel, agent_uid),
            "remote_rtc_uids": ["*"],
            "enable_string_uid": False,
            "idle_timeout": IDLE_TIMEOUT_S,
            "advanced_features": {
                "enable_bhvs": True,
                "enable_rtm": True,
                "enable_aivad": True,
                "enable_sal": False,
            },
            "llm": {
                "url": llm_url,
                "api_key": llm_api_key,
                "system_messages": [
                    {"role": "system", "content": prompt or DEFAULT_PROMPT},
                ],
                "greeting_message": greeting or DEFAULT_GREETING,
                "failure_message": FAILURE_MESSAGE,
                "max_history": MAX_HISTORY,
                "params": {"model": llm_model},
                "style": "openai",
            },
            "vad": {"silence_duration_ms": VAD_SILENCE_MS},
            "asr": {"vendor": "ares", "language": "en-US"},
            "tts": tts_config,
            "parameters": {
                "transcript": {
                    "enable": True,
                    "protocol_version": "v2",
                    "enable_words": False,
                },
            },
        },
    }
