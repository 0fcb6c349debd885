"""Conversation log built from reassembled transcript events.

WHY: The chat pane shows one bubble per user or assistant turn, updated
live while the turn is still being spoken and frozen once it is final.
Transcript events arrive repeatedly for the same turn with growing text,
so they must be merged by turn rather than appended.

HOW: Conversation.apply() maps the event's "object" discriminator to a
role, then looks up the message for (role, turn_id). An existing,
non-final message is updated in place; otherwise a new one is appended.
TranscriptSession pairs one ChunkReassembler with one Conversation for a
single channel subscription.

RULES:
- "user.transcription" -> role "user", final when event["final"] is true
- "assistant.transcription" -> role "assistant", final when turn_status
  is 1 (ended) or 2 (interrupted)
- Other objects are ignored (apply returns None)
- Events without turn_id always start a new message
- A final message is never modified again
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from voice_agent.config import DEFAULT_GREETING
from voice_agent.transcripts.reassembler import ChunkReassembler, TranscriptEvent

USER_TRANSCRIPTION = "user.transcription"
ASSISTANT_TRANSCRIPTION = "assistant.transcription"

ROLE_BY_OBJECT = {
    USER_TRANSCRIPTION: "user",
    ASSISTANT_TRANSCRIPTION: "assistant",
}

TURN_IN_PROGRESS = 0
TURN_END = 1
TURN_INTERRUPTED = 2


@dataclass
class ChatMessage:
    """One bubble in the conversation pane.

    RULES:
    - timestamp is Unix milliseconds of the first event for this message
    - interrupted is only ever True for assistant turns
    """

    id: str
    role: str
    text: str
    timestamp: int
    is_final: bool
    turn_id: Any = None
    interrupted: bool = False


def _is_final(event: TranscriptEvent) -> Tuple[bool, bool]:
    """Return (is_final, interrupted) for a transcription event."""
    if event["object"] == USER_TRANSCRIPTION:
        return bool(event.get("final", False)), False
    status = event.get("turn_status", TURN_IN_PROGRESS)
    return status in (TURN_END, TURN_INTERRUPTED), status == TURN_INTERRUPTED


class Conversation:
    """Ordered chat messages merged from transcript events."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self.messages: List[ChatMessage] = []
        self._by_turn: Dict[Tuple[str, Any], ChatMessage] = {}
        self._counter = 0

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return "{}-{}".format(prefix, self._counter)

    def apply(self, event: TranscriptEvent) -> Optional[ChatMessage]:
        """Merge one transcript event; return the message it created or updated.

        Returns None for events this log does not display, and for events
        that target a turn that is already final.
        """
        role = ROLE_BY_OBJECT.get(event.get("object"))
        if role is None:
            return None

        text = str(event.get("text", ""))
        is_final, interrupted = _is_final(event)
        turn_id = event.get("turn_id")

        if turn_id is not None:
            existing = self._by_turn.get((role, turn_id))
            if existing is not None:
                if existing.is_final:
                    return None
                existing.text = text
                existing.is_final = is_final
                existing.interrupted = interrupted
                return existing

        message = ChatMessage(
            id=self._next_id(role),
            role=role,
            text=text,
            timestamp=self._now_ms(),
            is_final=is_final,
            turn_id=turn_id,
            interrupted=interrupted,
        )
        self.messages.append(message)
        if turn_id is not None:
            self._by_turn[(role, turn_id)] = message
        return message

    def add_greeting(self, text: Optional[str] = None) -> ChatMessage:
        """Show the agent's greeting before any transcript arrives."""
        message = ChatMessage(
            id="greeting",
            role="assistant",
            text=text or DEFAULT_GREETING,
            timestamp=self._now_ms(),
            is_final=True,
        )
        self.messages.append(message)
        return message

    def add_user_text(self, text: str) -> Optional[ChatMessage]:
        """Append a typed user message. Blank input is ignored."""
        text = text.strip()
        if not text:
            return None
        message = ChatMessage(
            id=self._next_id("typed"),
            role="user",
            text=text,
            timestamp=self._now_ms(),
            is_final=True,
        )
        self.messages.append(message)
        return message

    def clear(self) -> None:
        self.messages = []
        self._by_turn.clear()


class TranscriptSession:
    """One channel subscription: packets in, conversation messages out.

    WHY: Each subscription owns its own reassembler cache; pairing it with
    the conversation it feeds keeps that ownership explicit.
    """

    def __init__(
        self,
        reassembler: Optional[ChunkReassembler] = None,
        conversation: Optional[Conversation] = None,
    ) -> None:
        self.reassembler = reassembler or ChunkReassembler()
        self.conversation = conversation or Conversation()

    def feed(self, raw: Union[bytes, str]) -> Optional[ChatMessage]:
        event = self.reassembler.handle_packet(raw)
        if event is None:
            return None
        return self.conversation.apply(event)

    def close(self) -> None:
        """Drop cached chunks and messages when the channel is left."""
        self.reassembler.reset()
        self.conversation.clear()
