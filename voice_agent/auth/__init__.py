"""Channel credential package: the "007" token codec.

WHY: The browser client and the agent both need a signed credential to
join the real-time channel; the agent platform REST API needs one too.
This package builds them from the app id and certificate.

HOW: packing.py holds the little-endian wire primitives; token.py
derives the signing key, packs the service blocks, signs, deflates, and
encodes.

RULES:
- No network access and no shared state; safe to call concurrently
- credential_for() is the only place the app-id fallback happens
"""

from voice_agent.auth.token import (
    InvalidCertificateError,
    build_auth_header,
    build_token,
    credential_for,
    is_valid_certificate,
)

__all__ = [
    "InvalidCertificateError",
    "build_auth_header",
    "build_token",
    "credential_for",
    "is_valid_certificate",
]
