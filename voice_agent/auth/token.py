"""Version "007" channel credential builder.

WHY: Joining the real-time channel (and logging in to its messaging
service) requires a signed credential that the external authorization
service verifies. Building it here, from the documented wire format,
avoids depending on the vendor's token library.

HOW: The token body ("signing info") is packed with the helpers in
packing.py: app id, issue time, validity window, salt, then one service
block for RTC and one for RTM. A signing key is derived from the app
certificate with a two-round HMAC-SHA-256 chain over the issue time and
the salt; the body is signed with that key. Signature and body are
concatenated with a length prefix, zlib-deflated, base64-encoded, and
prefixed with the version tag.

RULES:
- Version tag is always "007"
- Validity window defaults to TOKEN_EXPIRE_SECONDS (86400)
- Salt is uniform in [1, 99_999_999]
- Privilege map values are the validity window in seconds
- build_token raises on a bad certificate; it never falls back to the app
  id by itself (credential_for is the explicit fallback branch)
- Clock and RNG are injectable; issue_ts/salt may be pinned for tests
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import random
import re
import time
import zlib
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from voice_agent.auth.packing import (
    pack_bytes,
    pack_map_uint32,
    pack_string,
    pack_uint16,
    pack_uint32,
)
from voice_agent.config import TOKEN_EXPIRE_SECONDS

logger = logging.getLogger(__name__)

VERSION = "007"

SALT_MIN = 1
SALT_MAX = 99_999_999

MAX_CHANNEL_NAME_BYTES = 64

# Service types
SERVICE_RTC = 1
SERVICE_RTM = 2

# RTC privileges
JOIN_CHANNEL = 1
PUBLISH_AUDIO_STREAM = 2
PUBLISH_VIDEO_STREAM = 3
PUBLISH_DATA_STREAM = 4

# RTM privileges
LOGIN = 1

DEFAULT_RTC_PRIVILEGES = (JOIN_CHANNEL, PUBLISH_AUDIO_STREAM)
ALL_RTC_PRIVILEGES = (
    JOIN_CHANNEL,
    PUBLISH_AUDIO_STREAM,
    PUBLISH_VIDEO_STREAM,
    PUBLISH_DATA_STREAM,
)

_CERTIFICATE_RE = re.compile(r"^[0-9a-fA-F]{32}$")


class InvalidCertificateError(ValueError):
    """Raised when the app certificate is not 32 hex characters.

    WHY: A token signed with garbage would be rejected by the server much
    later and with a far less useful error. Callers are expected to check
    is_valid_certificate() first and fall back to the app id.
    """


def is_valid_certificate(value: Optional[str]) -> bool:
    """True when value looks like an app certificate (32 hex chars)."""
    return bool(value) and _CERTIFICATE_RE.match(value) is not None


@dataclass(frozen=True)
class SigningContext:
    """Issue time, validity window, and salt for one token.

    RULES:
    - Generated once per token, never reused
    - All three fields must fit in a uint32
    """

    issue_ts: int
    expire: int
    salt: int

    @classmethod
    def generate(
        cls,
        expire: int = TOKEN_EXPIRE_SECONDS,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ) -> SigningContext:
        rng = rng or random.SystemRandom()
        return cls(
            issue_ts=int(clock()),
            expire=expire,
            salt=rng.randint(SALT_MIN, SALT_MAX),
        )


def _hmac_sha256(key: bytes, message: bytes) -> bytes:
    return hmac.new(key, message, hashlib.sha256).digest()


def derive_signing_key(app_certificate: str, context: SigningContext) -> bytes:
    """Bind the certificate to the issue time and salt with a two-round HMAC chain.

    HOW:
      round1      = HMAC-SHA256(key=certificate, msg=uint32_le(issue_ts))
      signing_key = HMAC-SHA256(key=round1,      msg=uint32_le(salt))
    """
    round1 = _hmac_sha256(app_certificate.encode("utf-8"), pack_uint32(context.issue_ts))
    return _hmac_sha256(round1, pack_uint32(context.salt))


def pack_rtc_service(
    channel_name: str,
    user_id: str,
    expire: int,
    privileges: Iterable[int] = DEFAULT_RTC_PRIVILEGES,
) -> bytes:
    """RTC service block: type, privilege map, channel name, user id."""
    return (
        pack_uint16(SERVICE_RTC)
        + pack_map_uint32({privilege: expire for privilege in privileges})
        + pack_string(channel_name)
        + pack_string(user_id)
    )


def pack_rtm_service(user_id: str, expire: int) -> bytes:
    """RTM (messaging) service block: type, login privilege, user id."""
    return (
        pack_uint16(SERVICE_RTM)
        + pack_map_uint32({LOGIN: expire})
        + pack_string(user_id)
    )


def build_signing_info(
    app_id: str,
    context: SigningContext,
    services: list[bytes],
) -> bytes:
    """Assemble the token body that gets signed."""
    return (
        pack_string(app_id)
        + pack_uint32(context.issue_ts)
        + pack_uint32(context.expire)
        + pack_uint32(context.salt)
        + pack_uint16(len(services))
        + b"".join(services)
    )


def build_token(
    channel_name: str,
    user_id: str,
    app_id: str,
    app_certificate: str,
    *,
    rtc_privileges: Iterable[int] = DEFAULT_RTC_PRIVILEGES,
    expire: int = TOKEN_EXPIRE_SECONDS,
    issue_ts: Optional[int] = None,
    salt: Optional[int] = None,
    clock: Callable[[], float] = time.time,
    rng: Optional[random.Random] = None,
) -> str:
    """Build a signed "007" credential for one user on one channel.

    WHY: The browser (and the agent) must present this credential to join
    the RTC channel and log in to RTM. It carries the privileges and is
    signed so the server can verify it came from the certificate holder.

    HOW: Generates (or takes pinned) issue time and salt, derives the
    signing key, packs the RTC and RTM service blocks into the signing
    info, signs it, then length-prefixes the signature, deflates, and
    base64-encodes.

    RULES:
    - Raises InvalidCertificateError if app_certificate is not 32 hex chars
    - Raises ValueError if channel_name is longer than 64 UTF-8 bytes or any
      string overflows its uint16 length prefix
    - Output is identical for identical inputs with pinned issue_ts and salt

    Args:
        channel_name: Channel the credential is valid for ("" for REST auth).
        user_id: String user id ("" for REST auth).
        app_id: The project's app id.
        app_certificate: The project's 32-hex-char app certificate.
        rtc_privileges: RTC privilege codes to grant.
        expire: Validity window in seconds.
        issue_ts: Pin the issue time (Unix seconds) instead of reading clock.
        salt: Pin the salt instead of drawing it from rng.
        clock: Source of the current Unix time.
        rng: Source of the salt; defaults to random.SystemRandom().

    Returns:
        The token string, "007" followed by base64.
    """
    if not is_valid_certificate(app_certificate):
        raise InvalidCertificateError(
            "App certificate must be a 32-character hex string."
        )

    channel_bytes = len(channel_name.encode("utf-8"))
    if channel_bytes > MAX_CHANNEL_NAME_BYTES:
        raise ValueError(
            "Channel name is {} bytes; the limit is {}.".format(
                channel_bytes, MAX_CHANNEL_NAME_BYTES
            )
        )

    generated = SigningContext.generate(expire=expire, clock=clock, rng=rng)
    context = SigningContext(
        issue_ts=generated.issue_ts if issue_ts is None else issue_ts,
        expire=expire,
        salt=generated.salt if salt is None else salt,
    )

    signing_key = derive_signing_key(app_certificate, context)

    services = [
        pack_rtc_service(channel_name, user_id, context.expire, rtc_privileges),
        pack_rtm_service(user_id, context.expire),
    ]
    signing_info = build_signing_info(app_id, context, services)
    signature = _hmac_sha256(signing_key, signing_info)

    content = pack_bytes(signature) + signing_info
    compressed = zlib.compress(content)

    logger.debug(
        "Built token for channel=%r uid=%r (issue_ts=%d, expire=%d)",
        channel_name, user_id, context.issue_ts, context.expire,
    )
    return VERSION + base64.b64encode(compressed).decode("ascii")


def build_auth_header(
    app_id: str,
    app_certificate: str,
    agent_auth_header: str = "",
    **token_kwargs,
) -> str:
    """Return the Authorization value for agent platform REST calls.

    RULES:
    - A pre-configured agent_auth_header is returned verbatim
    - Otherwise: "agora token=<token>" with empty channel and user and all
      four RTC privileges
    """
    if agent_auth_header:
        return agent_auth_header
    token = build_token(
        "",
        "",
        app_id,
        app_certificate,
        rtc_privileges=ALL_RTC_PRIVILEGES,
        **token_kwargs,
    )
    return "agora token={}".format(token)


def credential_for(
    channel_name: str,
    user_id: str,
    app_id: str,
    app_certificate: Optional[str],
    **token_kwargs,
) -> str:
    """Signed token when a valid certificate is configured, else the bare app id.

    WHY: Projects without certificate auth accept the app id in place of a
    token. The decision is made here, explicitly, so build_token never has
    to guess.
    """
    if is_valid_certificate(app_certificate):
        return build_token(channel_name, user_id, app_id, app_certificate, **token_kwargs)
    logger.info("No valid app certificate configured; using app id as credential")
    return app_id
