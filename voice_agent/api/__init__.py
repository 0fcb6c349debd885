"""Agent platform client package: async HTTP interface to the hosted agent.

WHY: A voice session starts by asking the platform to put an agent into a
fresh channel and ends by asking it to leave. This package wraps those
calls and the join payload they need.

HOW: client.py holds ConvoAIClient (httpx.AsyncClient); payload.py builds
the join body; models.py holds the typed responses.

RULES:
- All platform HTTP calls go through ConvoAIClient (no direct httpx elsewhere)
"""

from voice_agent.api.client import AgentAPIError, ConvoAIClient
from voice_agent.api.models import LeaveAgentResponse, StartAgentResponse

__all__ = ["AgentAPIError", "ConvoAIClient", "LeaveAgentResponse", "StartAgentResponse"]
