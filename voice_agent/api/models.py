"""Agent platform response dataclasses.

WHY: The join and leave endpoints return small JSON bodies whose field
names have changed between API versions (agent_id vs id). Typed
dataclasses pin down what the rest of the code relies on.

HOW: from_dict / constructor parse raw responses; the raw body text is
kept so the HTTP service can pass upstream responses through unchanged.

RULES:
- StartAgentResponse.agent_id prefers "agent_id", falls back to "id"
- LeaveAgentResponse never raises on non-2xx; callers check .ok
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class StartAgentResponse:
    """Parsed response from POST /projects/{app_id}/join."""

    agent_id: Optional[str]
    status: Optional[str] = None
    create_ts: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> StartAgentResponse:
        return cls(
            agent_id=data.get("agent_id") or data.get("id"),
            status=data.get("status"),
            create_ts=data.get("create_ts"),
            raw=data,
        )


@dataclass
class LeaveAgentResponse:
    """Upstream status and body from POST /agents/{agent_id}/leave."""

    status_code: int
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300
