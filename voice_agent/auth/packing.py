"""Little-endian binary packing primitives for the "007" token format.

WHY: The verifying service reads the token body field by field, so every
integer width, byte order, and length prefix has to match exactly. These
helpers are the only place that knows the wire encoding.

HOW: struct handles the fixed-width integers ("<H" / "<I"). Strings are
UTF-8 with a uint16 byte-length prefix. Privilege maps are a uint16 count
followed by (uint16 key, uint32 value) pairs sorted by key.

RULES:
- All integers are little-endian
- pack_string prefixes the UTF-8 *byte* length, not the character count
- pack_map_uint32 always emits keys in ascending numeric order, whatever
  order the mapping was built in (the server rebuilds the map by reading
  keys in wire order)
- Out-of-range values raise ValueError rather than wrapping
"""

from __future__ import annotations

import struct
from typing import Mapping

_UINT16_MAX = 0xFFFF
_UINT32_MAX = 0xFFFFFFFF


def pack_uint16(value: int) -> bytes:
    """Pack an unsigned 16-bit integer, little-endian."""
    if not 0 <= value <= _UINT16_MAX:
        raise ValueError("uint16 out of range: {}".format(value))
    return struct.pack("<H", value)


def pack_uint32(value: int) -> bytes:
    """Pack an unsigned 32-bit integer, little-endian."""
    if not 0 <= value <= _UINT32_MAX:
        raise ValueError("uint32 out of range: {}".format(value))
    return struct.pack("<I", value)


def pack_bytes(data: bytes) -> bytes:
    """Prefix raw bytes with their uint16 length."""
    if len(data) > _UINT16_MAX:
        raise ValueError(
            "Field too long for a uint16 length prefix ({} bytes)".format(len(data))
        )
    return pack_uint16(len(data)) + data


def pack_string(value: str) -> bytes:
    """Encode a string as UTF-8 and prefix it with its byte length.

    >>> pack_string("ABCDEFGHIJ")
    b'\\n\\x00ABCDEFGHIJ'
    """
    return pack_bytes(value.encode("utf-8"))


def pack_map_uint32(mapping: Mapping[int, int]) -> bytes:
    """Pack a privilege map: uint16 count, then uint16 key / uint32 value pairs.

    Keys are sorted ascending before packing.
    """
    parts = [pack_uint16(len(mapping))]
    for key in sorted(mapping):
        parts.append(pack_uint16(key))
        parts.append(pack_uint32(mapping[key]))
    return b"".join(parts)
