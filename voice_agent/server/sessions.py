"""In-memory registry of started agent sessions with TTL cleanup.

WHY: The service should know which agents it started so it can report
them, forget them on hangup, and forget abandoned ones (the browser tab
closed without hanging up) once their credentials have expired.

HOW: AgentSession holds what /start-agent returned; SessionStore is a
lock-protected dict keyed by agent id with add/get/remove/list and a
cleanup_expired() pass that the app lifespan runs periodically.

RULES:
- All store mutations are protected by threading.Lock
- get() returns None for unknown ids (no exceptions)
- TTL is measured from created_at; default matches the token validity
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from voice_agent.config import TOKEN_EXPIRE_SECONDS

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = TOKEN_EXPIRE_SECONDS


@dataclass
class AgentSession:
    """One agent started by this service."""

    agent_id: str
    channel: str
    user_uid: str
    agent_uid: str
    agent_rtm_uid: str
    created_at: float


class SessionStore:
    """Thread-safe in-memory store for agent sessions.

    WHY: Request handlers run concurrently with the periodic cleanup task;
    a single lock keeps the dict consistent.

    RULES:
    - add() replaces any session with the same agent id
    - remove() returns the removed session, or None
    - cleanup_expired() returns the count of removed sessions
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._sessions: Dict[str, AgentSession] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def add(
        self,
        agent_id: str,
        channel: str,
        user_uid: str,
        agent_uid: str,
        agent_rtm_uid: str,
    ) -> AgentSession:
        session = AgentSession(
            agent_id=agent_id,
            channel=channel,
            user_uid=user_uid,
            agent_uid=agent_uid,
            agent_rtm_uid=agent_rtm_uid,
            created_at=self._clock(),
        )
        with self._lock:
            self._sessions[agent_id] = session
        logger.info("Registered agent %s in channel %s", agent_id, channel)
        return session

    def get(self, agent_id: str) -> Optional[AgentSession]:
        with self._lock:
            return self._sessions.get(agent_id)

    def list_sessions(self) -> List[AgentSession]:
        """Snapshot of all sessions, oldest first."""
        with self._lock:
            return sorted(self._sessions.values(), key=lambda s: s.created_at)

    def remove(self, agent_id: str) -> Optional[AgentSession]:
        with self._lock:
            session = self._sessions.pop(agent_id, None)
        if session is not None:
            logger.info("Forgot agent %s", agent_id)
        return session

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def cleanup_expired(self) -> int:
        """Remove sessions older than the TTL."""
        now = self._clock()
        with self._lock:
            expired = [
                agent_id
                for agent_id, session in self._sessions.items()
                if now - session.created_at > self._ttl_seconds
            ]
            for agent_id in expired:
                del self._sessions[agent_id]

        for agent_id in expired:
            logger.info("Expired agent session %s", agent_id)
        return len(expired)
