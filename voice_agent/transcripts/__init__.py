"""Transcript overlay protocol: chunk reassembly and the conversation log.

WHY: Transcript events ride on the real-time channel's byte-message
service, which limits message size. The agent splits large events into
chunks; this package puts them back together and turns them into chat
messages.

HOW: reassembler.py rebuilds JSON events from packets; conversation.py
merges events into per-turn ChatMessages.

RULES:
- One ChunkReassembler per channel subscription (never module-level)
- Role/turn interpretation lives in conversation.py, not the reassembler
"""

from voice_agent.transcripts.conversation import ChatMessage, Conversation, TranscriptSession
from voice_agent.transcripts.reassembler import ChunkReassembler, UNRESOLVED_TOTAL

__all__ = [
    "ChatMessage",
    "ChunkReassembler",
    "Conversation",
    "TranscriptSession",
    "UNRESOLVED_TOTAL",
]
