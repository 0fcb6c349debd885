"""Chunked transcript-message reassembly for the real-time data channel.

WHY: The agent publishes transcript events as JSON over the channel's
byte-message service, which caps the size of a single message. Larger
events arrive split into base64 chunks, possibly out of order, possibly
interleaved with chunks of other events, and the chunk count may only be
announced on a later chunk. The conversation log needs whole events.

HOW: A packet is either a complete JSON object (fast path) or a chunk:

    message_id|part_index|part_total|base64_payload

where part_total is a decimal count or "???" while the sender does not
know it yet. Chunks are cached per message id, keyed by part index. Once
the total is known and that many distinct indices are present, the
payloads are joined in index order, base64-decoded, and parsed as JSON.

RULES:
- A packet is never raised on; malformed input is counted in `rejected`
  (by reason) and dropped
- Duplicate (message_id, part_index): last write wins, counted once
- Indices at or above the known total are dropped as bad_index
- The first resolved total seen for a message is kept
- Completion frees the cache entry; so does a failed final decode
- An event must be a JSON object with "object" and "text" fields
- One reassembler per channel subscription, fed in delivery order; it
  takes no locks
- max_pending (opt-in) bounds the number of in-flight messages by
  evicting the oldest entry
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

UNRESOLVED_TOTAL = "???"
"""Wire sentinel for "total chunk count not known yet"."""

FIELD_SEPARATOR = "|"

REQUIRED_EVENT_FIELDS = ("object", "text")

_UNSIGNED_RE = re.compile(r"[0-9]+")

TranscriptEvent = Dict[str, Any]


class MalformedPacket(ValueError):
    """Internal signal that a packet must be dropped; carries the reason."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


@dataclass(frozen=True)
class ChunkPacket:
    """One parsed chunk. part_total is None while the total is unresolved."""

    message_id: str
    part_index: int
    part_total: Optional[int]
    payload: str


@dataclass
class ChunkEntry:
    """Cached chunks for one in-flight message.

    RULES:
    - chunks maps part index -> base64 payload (distinct indices only)
    - expected_count is None until a chunk announces the total
    - Once the total is known, every cached index is below it
    """

    message_id: str
    expected_count: Optional[int] = None
    chunks: Dict[int, str] = field(default_factory=dict)

    @property
    def is_resolved(self) -> bool:
        return self.expected_count is not None

    @property
    def is_complete(self) -> bool:
        return self.is_resolved and len(self.chunks) == self.expected_count

    def add(self, packet: ChunkPacket) -> int:
        """Cache one chunk; return how many stray indices were pruned.

        Raises MalformedPacket("bad_index") when the index is outside a
        total already known for this message. When this chunk resolves the
        total, indices cached earlier that fall outside it are pruned.
        """
        if self.expected_count is not None and packet.part_index >= self.expected_count:
            raise MalformedPacket("bad_index")

        self.chunks[packet.part_index] = packet.payload
        if packet.part_total is None or self.expected_count is not None:
            return 0

        self.expected_count = packet.part_total
        stray = [index for index in self.chunks if index >= self.expected_count]
        for index in stray:
            del self.chunks[index]
        return len(stray)

    def ordered_payloads(self) -> List[str]:
        return [self.chunks[index] for index in sorted(self.chunks)]


def is_transcript_event(value: Any) -> bool:
    """True for a JSON object carrying the discriminator and text fields."""
    return isinstance(value, dict) and all(key in value for key in REQUIRED_EVENT_FIELDS)


def _parse_unsigned(text: str) -> Optional[int]:
    if _UNSIGNED_RE.fullmatch(text):
        return int(text)
    return None


def parse_chunk(text: str) -> ChunkPacket:
    """Parse "message_id|part_index|part_total|payload" into a ChunkPacket.

    Raises MalformedPacket with the drop reason on bad input.
    """
    fields = text.split(FIELD_SEPARATOR)
    if len(fields) != 4:
        raise MalformedPacket("field_count")

    message_id, index_text, total_text, payload = fields

    part_index = _parse_unsigned(index_text)
    if part_index is None:
        raise MalformedPacket("bad_index")

    if total_text == UNRESOLVED_TOTAL:
        part_total = None
    else:
        part_total = _parse_unsigned(total_text)
        if not part_total:
            # Non-numeric, or zero (a message has at least one chunk)
            raise MalformedPacket("bad_total")
        if part_index >= part_total:
            raise MalformedPacket("bad_index")

    return ChunkPacket(
        message_id=message_id,
        part_index=part_index,
        part_total=part_total,
        payload=payload,
    )


def decode_payload(payloads: List[str]) -> TranscriptEvent:
    """Join base64 payloads, decode, and parse the JSON transcript event."""
    joined = "".join(payloads)
    try:
        raw = base64.b64decode(joined, validate=True)
    except (binascii.Error, ValueError):
        raise MalformedPacket("bad_base64")

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise MalformedPacket("undecodable_utf8")

    try:
        event = json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        # RecursionError: nesting deeper than the interpreter stack allows
        raise MalformedPacket("invalid_json")

    if not is_transcript_event(event):
        raise MalformedPacket("missing_fields")
    return event


class ChunkReassembler:
    """Rebuilds transcript events from data-channel packets.

    WHY: See the module docstring. The cache is instance state so that each
    channel subscription gets its own; two sessions never share chunks.

    HOW: handle_packet() is the single entry point. It returns the event
    when a packet completes one (or is one), otherwise None.

    RULES:
    - rejected counts dropped packets by reason; rejected_total sums them
    - evicted counts messages dropped by the max_pending bound
    - pending_ids() lists messages still accumulating, oldest first
    - discard() and reset() drop cached state explicitly
    """

    def __init__(self, max_pending: Optional[int] = None) -> None:
        if max_pending is not None and max_pending < 1:
            raise ValueError("max_pending must be at least 1")
        self._entries: Dict[str, ChunkEntry] = {}
        self._max_pending = max_pending
        self.rejected: Counter = Counter()
        self.evicted = 0

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def rejected_total(self) -> int:
        return sum(self.rejected.values())

    def pending_ids(self) -> List[str]:
        return list(self._entries)

    def get_entry(self, message_id: str) -> Optional[ChunkEntry]:
        return self._entries.get(message_id)

    def discard(self, message_id: str) -> bool:
        """Drop the cached chunks for one message. Returns True if it existed."""
        return self._entries.pop(message_id, None) is not None

    def reset(self) -> None:
        self._entries.clear()

    def handle_packet(self, raw: Union[bytes, bytearray, memoryview, str]) -> Optional[TranscriptEvent]:
        """Feed one packet; return a completed transcript event or None.

        Args:
            raw: Packet bytes as delivered by the channel (str is accepted
                for already-decoded text).

        Returns:
            The parsed event dict when this packet is a whole event or
            completes one, otherwise None.
        """
        try:
            return self._handle(raw)
        except MalformedPacket as exc:
            self._reject(exc.reason)
            return None

    def _handle(self, raw: Union[bytes, bytearray, memoryview, str]) -> Optional[TranscriptEvent]:
        if isinstance(raw, str):
            text = raw
        else:
            try:
                text = bytes(raw).decode("utf-8")
            except UnicodeDecodeError:
                raise MalformedPacket("undecodable_utf8")

        # Fast path: a whole event in one packet
        if text.startswith("{"):
            try:
                event = json.loads(text)
            except (json.JSONDecodeError, RecursionError):
                event = None
            if is_transcript_event(event):
                return event

        packet = parse_chunk(text)
        entry = self._entries.get(packet.message_id)
        if entry is None:
            self._make_room()
            entry = ChunkEntry(message_id=packet.message_id)
            self._entries[packet.message_id] = entry
        for _ in range(entry.add(packet)):
            self._reject("bad_index")

        if not entry.is_complete:
            return None

        # Complete (or undecodable): either way the entry is finished
        del self._entries[packet.message_id]
        return decode_payload(entry.ordered_payloads())

    def _make_room(self) -> None:
        if self._max_pending is None:
            return
        while len(self._entries) >= self._max_pending:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.info("Evicted stalled transcript message %s", oldest)
            self.evicted += 1

    def _reject(self, reason: str) -> None:
        self.rejected[reason] += 1
        logger.debug("Dropped transcript packet (%s)", reason)
