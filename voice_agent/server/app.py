"""FastAPI application the browser client calls to start and stop agents.

WHY: The browser cannot hold the app certificate or the LLM/TTS keys, so
a small server mints the channel credentials, builds the agent payload,
and talks to the agent platform on its behalf.

HOW: Four endpoints. /check-env reports missing configuration.
/start-agent generates a channel, builds credentials for the user and the
agent (signed tokens, or the app id when no valid certificate is set),
starts the agent, and returns what the browser needs to join.
/hangup-agent asks the platform to remove the agent. /health is for load
balancers. A lifespan task expires abandoned sessions.

RULES:
- CORS is open (the browser app is served from another origin)
- Upstream join failures return 502 with the upstream body
- Unexpected failures return 500 {"error": ..., "success": false}
- Hangup without agentId returns 400 {"error": "agentId is required"}
- Request bodies are parsed leniently: a missing or invalid start-agent
  body falls back to the default prompt and greeting
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from voice_agent import __version__
from voice_agent.api.client import AgentAPIError, ConvoAIClient
from voice_agent.api.payload import (
    agent_rtm_uid,
    build_join_payload,
    build_tts_config,
    generate_channel,
)
from voice_agent.auth.token import credential_for
from voice_agent.config import AGENT_UID, USER_UID, check_env, load_settings
from voice_agent.server.models import (
    EnvStatusResponse,
    ErrorResponse,
    HangupAgentRequest,
    HealthResponse,
    StartAgentRequest,
    StartAgentResponseBody,
)
from voice_agent.server.sessions import SessionStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

session_store = SessionStore()

_CLEANUP_INTERVAL_S = 300


async def _periodic_cleanup() -> None:
    """Expire abandoned sessions every 5 minutes."""
    while True:
        await asyncio.sleep(_CLEANUP_INTERVAL_S)
        session_store.cleanup_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start periodic cleanup on startup, cancel on shutdown."""
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    lifespan=lifespan,
    title="Voice Agent Session API",
    description=(
        "Starts and stops hosted conversational-AI voice agents and hands the "
        "browser the channel name and credentials it needs to join them."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str, success: Optional[bool] = None) -> JSONResponse:
    body = ErrorResponse(error=message, success=success)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
    )


async def _read_json(request: Request) -> Optional[Dict[str, Any]]:
    """Return the request body as a dict, or None when absent or not a JSON object."""
    raw = await request.body()
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


# ---------------------------------------------------------------------------
# Endpoints: Sessions
# ---------------------------------------------------------------------------


@app.get(
    "/check-env",
    response_model=EnvStatusResponse,
    tags=["config"],
    summary="Report missing configuration",
    description=(
        "Lists the required environment variables and whether each is set. "
        "The browser shows a configuration screen while ready is false."
    ),
)
async def check_environment() -> EnvStatusResponse:
    status = check_env()
    return EnvStatusResponse(
        configured=status.configured,
        ready=status.ready,
        missing=status.missing,
    )


@app.post(
    "/start-agent",
    response_model=StartAgentResponseBody,
    tags=["sessions"],
    summary="Start an agent in a new channel",
    description=(
        "Generates a channel, mints credentials for the browser user and the "
        "agent, and asks the agent platform to join. Optional JSON body: "
        "{\"prompt\": ..., \"greeting\": ...}."
    ),
    responses={
        500: {"model": ErrorResponse, "description": "Unexpected server error"},
        502: {"description": "Agent platform rejected the join (upstream body)"},
    },
)
async def start_agent(request: Request) -> Any:
    body = await _read_json(request) or {}
    try:
        overrides = StartAgentRequest.model_validate(body)
    except ValueError:
        overrides = StartAgentRequest()

    try:
        settings = load_settings()
        channel = generate_channel()

        user_token = credential_for(channel, USER_UID, settings.app_id, settings.app_certificate)
        agent_token = credential_for(channel, AGENT_UID, settings.app_id, settings.app_certificate)

        payload = build_join_payload(
            channel=channel,
            agent_token=agent_token,
            llm_url=settings.llm_url,
            llm_api_key=settings.llm_api_key,
            llm_model=settings.llm_model,
            tts_config=build_tts_config(
                settings.tts_vendor, settings.tts_key, settings.tts_voice_id
            ),
            prompt=(overrides.prompt or "").strip() or None,
            greeting=(overrides.greeting or "").strip() or None,
        )

        async with ConvoAIClient(settings) as client:
            result = await client.start_agent(payload)

    except AgentAPIError as exc:
        return Response(
            content=exc.message,
            status_code=502,
            media_type="application/json",
        )
    except Exception as exc:
        logger.exception("Failed to start agent")
        return _error(500, str(exc), success=False)

    rtm_uid = agent_rtm_uid(channel)
    if result.agent_id:
        session_store.add(
            agent_id=result.agent_id,
            channel=channel,
            user_uid=USER_UID,
            agent_uid=AGENT_UID,
            agent_rtm_uid=rtm_uid,
        )

    return StartAgentResponseBody(
        app_id=settings.app_id,
        channel=channel,
        token=user_token,
        uid=USER_UID,
        agent_uid=AGENT_UID,
        agent_rtm_uid=rtm_uid,
        agent_id=result.agent_id,
        success=True,
    )


@app.post(
    "/hangup-agent",
    tags=["sessions"],
    summary="Remove an agent from its channel",
    description=(
        "Asks the agent platform to stop the agent. The upstream status code "
        "and body are passed through."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "agentId missing"},
        500: {"model": ErrorResponse, "description": "Unexpected server error"},
    },
)
async def hangup_agent(request: Request) -> Response:
    body = await _read_json(request) or {}
    try:
        hangup = HangupAgentRequest.model_validate(body)
    except ValueError:
        hangup = HangupAgentRequest()

    if not hangup.agent_id:
        return _error(400, "agentId is required")

    try:
        async with ConvoAIClient(load_settings()) as client:
            result = await client.leave_agent(hangup.agent_id)
    except Exception as exc:
        logger.exception("Failed to hang up agent %s", hangup.agent_id)
        return _error(500, str(exc))

    session_store.remove(hangup.agent_id)
    return Response(
        content=result.body,
        status_code=result.status_code,
        media_type="application/json",
    )


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness and readiness check for load balancers and orchestrators.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        active_sessions=len(session_store),
    )


def run_api(host: str = "0.0.0.0", port: int = 8000) -> None:
    """Entry point for the voice-agent-api console script."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)
