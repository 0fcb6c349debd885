"""Async HTTP client for the conversational-AI agent platform.

WHY: Starting and stopping an agent are REST calls scoped to the app id
and authorized either with a pre-issued header or with a "007" token.
This module hides the URLs, auth, and response parsing behind one class
so the HTTP service and CLI don't need to know HTTP details.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. ConvoAIClient is an
async context manager: enter it to get an authenticated client, exit to
close the connection pool.

RULES:
- Always use the async context manager (async with ConvoAIClient(...) as client:)
- Authorization: settings.agent_auth_header if set, else a token built
  from the app id and certificate
- start_agent raises AgentAPIError on non-2xx; leave_agent does not
- A transport argument may be passed through to httpx (used by tests)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from voice_agent.api.models import LeaveAgentResponse, StartAgentResponse
from voice_agent.auth.token import build_auth_header, is_valid_certificate
from voice_agent.config import Settings, load_settings

logger = logging.getLogger(__name__)

_TIMEOUT_S = 30.0
_CONNECT_TIMEOUT_S = 10.0


class AgentAPIError(Exception):
    """Raised when the agent platform returns an error response.

    WHY: The HTTP service passes upstream rejections through as 502 with
    the upstream body, so it needs both pieces.

    RULES:
    - Always include status_code and message
    - message is the response body text
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Agent platform error {status_code}: {message}")


class ConvoAIClient:
    """Async client for the agent platform's join/leave endpoints.

    WHY: Provides a typed interface for the two calls a voice session needs
    and keeps auth header construction in one place.

    HOW: Wraps httpx.AsyncClient with base_url = {base}/projects/{app_id}.

    RULES:
    - Use as: async with ConvoAIClient() as client: ...
    - settings defaults to load_settings() from the environment
    - Raises ValueError at construction if no app id is configured, or if
      neither AGENT_AUTH_HEADER nor a valid APP_CERTIFICATE is available
      to authorize platform calls
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings or load_settings()
        if not self._settings.app_id:
            raise ValueError(
                "App id not configured. Add APP_ID to the .env file in the app folder."
            )
        if not (
            self._settings.agent_auth_header
            or is_valid_certificate(self._settings.app_certificate)
        ):
            raise ValueError(
                "Agent platform auth not configured. Set AGENT_AUTH_HEADER, or a "
                "32-character hex APP_CERTIFICATE to sign a REST token."
            )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    def _auth_header(self) -> str:
        return build_auth_header(
            self._settings.app_id,
            self._settings.app_certificate,
            self._settings.agent_auth_header,
        )

    async def __aenter__(self) -> ConvoAIClient:
        base_url = "{}/projects/{}".format(
            self._settings.base_url.rstrip("/"), self._settings.app_id
        )
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": self._auth_header(),
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(_TIMEOUT_S, connect=_CONNECT_TIMEOUT_S),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "ConvoAIClient must be used as an async context manager: "
                "async with ConvoAIClient() as client: ..."
            )
        return self._client

    async def start_agent(self, payload: Dict[str, Any]) -> StartAgentResponse:
        """Ask the platform to start an agent in a channel.

        HOW: POST /join with the payload from build_join_payload().

        RULES:
        - Raises AgentAPIError on non-2xx responses (body preserved)
        - Returns the parsed StartAgentResponse
        """
        client = self._ensure_client()
        resp = await client.post("/join", json=payload)
        if not resp.is_success:
            logger.warning("Agent join rejected (%d): %s", resp.status_code, resp.text)
            raise AgentAPIError(resp.status_code, resp.text)

        result = StartAgentResponse.from_dict(resp.json())
        logger.info("Started agent %s", result.agent_id)
        return result

    async def leave_agent(self, agent_id: str) -> LeaveAgentResponse:
        """Ask the platform to stop an agent. Upstream status is returned, not raised."""
        client = self._ensure_client()
        resp = await client.post("/agents/{}/leave".format(agent_id))
        logger.info("Agent %s leave returned %d", agent_id, resp.status_code)
        return LeaveAgentResponse(status_code=resp.status_code, body=resp.text)
