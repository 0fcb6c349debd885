"""Pydantic request/response models for the HTTP service.

WHY: The browser client consumes these responses directly, so their JSON
shape is a contract. Pydantic enforces field types at runtime and
generates the JSON Schema shown in /docs.

HOW: Session responses serialize with camelCase aliases (appId,
agentRtmUid, ...) because that is what the browser code reads; Python
code uses snake_case attribute names.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Start/hangup request bodies are parsed leniently in the handlers; the
  request models here document the shape
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class StartAgentRequest(BaseModel):
    """Optional overrides sent with POST /start-agent.

    RULES:
    - Both fields are optional; missing or blank values use the defaults
    """

    prompt: Optional[str] = Field(
        default=None,
        description="System prompt for the agent's LLM.",
    )
    greeting: Optional[str] = Field(
        default=None,
        description="First sentence the agent speaks after joining.",
    )


class HangupAgentRequest(BaseModel):
    """Body of POST /hangup-agent."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    agent_id: Optional[str] = Field(
        default=None,
        description="Agent id returned by POST /start-agent.",
    )


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class StartAgentResponseBody(BaseModel):
    """Everything the browser needs to join the channel the agent is in.

    RULES:
    - token is a signed "007" credential, or the app id when no valid
      certificate is configured
    - success is always True (failures use other status codes)
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "appId": "0123456789abcdef0123456789abcdef",
                    "channel": "K3J9QX0ABC",
                    "token": "007eJxTYBBb...",
                    "uid": "101",
                    "agentUid": "100",
                    "agentRtmUid": "100-K3J9QX0ABC",
                    "agentId": "A42AC47BB81EE68EE4D8DB3A2D2A7F23",
                    "success": True,
                }
            ]
        },
    )

    app_id: str = Field(description="App id to join the channel with.")
    channel: str = Field(description="Generated channel name.")
    token: str = Field(description="Credential for the browser user.")
    uid: str = Field(description="RTC uid the browser joins as.")
    agent_uid: str = Field(description="RTC uid of the agent.")
    agent_rtm_uid: str = Field(description="Messaging uid the agent publishes transcripts from.")
    agent_id: Optional[str] = Field(default=None, description="Agent id for hangup.")
    success: bool = Field(default=True, description="Always true on 200.")


class EnvStatusResponse(BaseModel):
    """Which required environment variables are set."""

    configured: Dict[str, bool] = Field(description="Variable name -> is set.")
    ready: bool = Field(description="True when nothing is missing.")
    missing: List[str] = Field(description="Names of unset required variables.")


class ErrorResponse(BaseModel):
    """Standard error body.

    RULES:
    - error is always a human-readable message
    - success is false when present
    """

    error: str = Field(description="Human-readable error description.")
    success: Optional[bool] = Field(default=None, description="Always false when present.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
    active_sessions: int = Field(description="Agents started and not yet hung up.")
