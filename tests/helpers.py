"""Wire-format helpers and constants shared by the voice_agent tests.

WHY: Token tests need to look inside the opaque "007" string, and
reassembler tests need to split events into wire chunks the way the agent
does. Keeping both in one module means every test reads the same format.

HOW: unpack_token() reverses the encoding (base64 -> zlib -> fields) with
struct, independently of the packing helpers under test. make_chunks()
base64-encodes an event and slices it into "id|index|total|payload"
packets.

RULES:
- Test certificates are 32 lowercase hex chars
- Fixed ISSUE_TS/SALT values are used wherever output must be stable
"""

from __future__ import annotations

import base64
import json
import struct
import zlib
from typing import Any, Dict, List, Optional

APP_ID = "970ca35de60c44645bbae8a215061b33"
APP_CERTIFICATE = "5cfd2fd1755d40ecb72977518be15d3b"
ISSUE_TS = 1_700_000_000
SALT = 12_345_678


class _Reader:
    """Little-endian cursor over a byte string."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def uint16(self) -> int:
        (value,) = struct.unpack_from("<H", self.data, self.pos)
        self.pos += 2
        return value

    def uint32(self) -> int:
        (value,) = struct.unpack_from("<I", self.data, self.pos)
        self.pos += 4
        return value

    def raw(self) -> bytes:
        length = self.uint16()
        value = self.data[self.pos:self.pos + length]
        self.pos += length
        return value

    def string(self) -> str:
        return self.raw().decode("utf-8")

    def privilege_map(self) -> List[tuple]:
        count = self.uint16()
        return [(self.uint16(), self.uint32()) for _ in range(count)]


def unpack_token(token: str) -> Dict[str, Any]:
    """Decode a "007" token into its fields."""
    assert token.startswith("007")
    content = zlib.decompress(base64.b64decode(token[3:]))
    reader = _Reader(content)
    signature = reader.raw()
    signing_info = content[reader.pos:]

    fields: Dict[str, Any] = {
        "signature": signature,
        "signing_info": signing_info,
        "app_id": reader.string(),
        "issue_ts": reader.uint32(),
        "expire": reader.uint32(),
        "salt": reader.uint32(),
        "services": {},
    }
    service_count = reader.uint16()
    for _ in range(service_count):
        service_type = reader.uint16()
        privileges = reader.privilege_map()
        if service_type == 1:
            fields["services"][1] = {
                "privileges": privileges,
                "channel": reader.string(),
                "uid": reader.string(),
            }
        else:
            fields["services"][service_type] = {
                "privileges": privileges,
                "uid": reader.string(),
            }
    assert reader.pos == len(content), "trailing bytes in token"
    return fields


def make_chunks(
    message_id: str,
    event: Dict[str, Any],
    size: int = 8,
    total: Optional[str] = None,
) -> List[str]:
    """Split an event into wire chunks of `size` base64 characters.

    total: None writes the real count on every chunk; "???" writes the
    unresolved sentinel on every chunk.
    """
    encoded = base64.b64encode(json.dumps(event).encode("utf-8")).decode("ascii")
    pieces = [encoded[i:i + size] for i in range(0, len(encoded), size)]
    count = str(len(pieces)) if total is None else total
    return [
        "{}|{}|{}|{}".format(message_id, index, count, piece)
        for index, piece in enumerate(pieces)
    ]

