"""Tests for the conversation log and the per-channel transcript session."""

from __future__ import annotations

from helpers import make_chunks
from voice_agent.transcripts.conversation import Conversation, TranscriptSession


def _clock():
    return 1_700_000_000.5


class TestConversation:

    def test_user_turn_updates_in_place_until_final(self):
        log = Conversation(clock=_clock)
        log.apply({"object": "user.transcription", "text": "what is", "turn_id": 1, "final": False})
        log.apply({"object": "user.transcription", "text": "what is the time", "turn_id": 1, "final": True})

        assert len(log.messages) == 1
        message = log.messages[0]
        assert message.role == "user"
        assert message.text == "what is the time"
        assert message.is_final is True
        assert message.timestamp == 1_700_000_000_500

    def test_final_message_is_frozen(self):
        log = Conversation(clock=_clock)
        log.apply({"object": "user.transcription", "text": "done", "turn_id": 1, "final": True})
        assert log.apply({"object": "user.transcription", "text": "late", "turn_id": 1}) is None
        assert log.messages[0].text == "done"

    def test_assistant_turn_status(self):
        log = Conversation(clock=_clock)
        log.apply({"object": "assistant.transcription", "text": "It is", "turn_id": 2, "turn_status": 0})
        assert log.messages[0].is_final is False
        log.apply({"object": "assistant.transcription", "text": "It is noon.", "turn_id": 2, "turn_status": 1})
        assert log.messages[0].is_final is True
        assert log.messages[0].interrupted is False

    def test_interrupted_assistant_turn(self):
        log = Conversation(clock=_clock)
        message = log.apply({"object": "assistant.transcription", "text": "Well", "turn_id": 4, "turn_status": 2})
        assert message.is_final is True
        assert message.interrupted is True

    def test_same_turn_id_different_roles_are_separate(self):
        log = Conversation(clock=_clock)
        log.apply({"object": "user.transcription", "text": "hi", "turn_id": 1, "final": True})
        log.apply({"object": "assistant.transcription", "text": "hello", "turn_id": 1, "turn_status": 1})
        assert [m.role for m in log.messages] == ["user", "assistant"]

    def test_unknown_object_ignored(self):
        log = Conversation(clock=_clock)
        assert log.apply({"object": "message.metrics", "text": ""}) is None
        assert log.messages == []

    def test_events_without_turn_id_append(self):
        log = Conversation(clock=_clock)
        log.apply({"object": "user.transcription", "text": "a"})
        log.apply({"object": "user.transcription", "text": "b"})
        assert [m.text for m in log.messages] == ["a", "b"]
        assert len({m.id for m in log.messages}) == 2

    def test_greeting_and_typed_text(self):
        log = Conversation(clock=_clock)
        greeting = log.add_greeting()
        assert greeting.id == "greeting"
        assert greeting.role == "assistant"
        assert greeting.text == "Hi there! How can I help you today?"
        assert log.add_user_text("   ") is None
        typed = log.add_user_text("  hello  ")
        assert typed.text == "hello"
        assert typed.is_final is True

    def test_clear(self):
        log = Conversation(clock=_clock)
        log.apply({"object": "user.transcription", "text": "x", "turn_id": 1})
        log.clear()
        assert log.messages == []
        # The turn index is cleared too, so the same turn id starts fresh
        log.apply({"object": "user.transcription", "text": "y", "turn_id": 1})
        assert [m.text for m in log.messages] == ["y"]


class TestTranscriptSession:

    def test_chunks_become_messages(self, transcript_event):
        session = TranscriptSession(conversation=Conversation(clock=_clock))
        results = [session.feed(packet.encode()) for packet in make_chunks("m1", transcript_event)]

        assert all(result is None for result in results[:-1])
        message = results[-1]
        assert message.role == "assistant"
        assert message.text == transcript_event["text"]
        assert session.conversation.messages == [message]

    def test_close_drops_state(self):
        session = TranscriptSession()
        session.feed("m1|0|???|AAAA")
        session.conversation.add_greeting()
        session.close()
        assert len(session.reassembler) == 0
        assert session.conversation.messages == []
