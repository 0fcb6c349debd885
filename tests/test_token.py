"""Unit tests for the "007" token builder.

WHY: The authorization service only accepts tokens whose every byte
follows the format; a single misplaced field fails every join. The
fallback policy (app id when no certificate) also has to stay explicit.

HOW: Tokens are decoded with helpers.unpack_token (struct-based, not the
packing helpers) and the signature is recomputed with hmac directly.

RULES:
- issue_ts and salt are pinned wherever the output must be stable
"""

from __future__ import annotations

import hashlib
import hmac
import random
import struct

import pytest

from helpers import APP_CERTIFICATE, APP_ID, ISSUE_TS, SALT, unpack_token
from voice_agent.auth.token import (
    ALL_RTC_PRIVILEGES,
    InvalidCertificateError,
    SALT_MAX,
    SALT_MIN,
    SigningContext,
    build_auth_header,
    build_token,
    credential_for,
    derive_signing_key,
    is_valid_certificate,
)


def _pinned(channel="ABCDEFGHIJ", uid="101", **kwargs):
    kwargs.setdefault("issue_ts", ISSUE_TS)
    kwargs.setdefault("salt", SALT)
    return build_token(channel, uid, APP_ID, APP_CERTIFICATE, **kwargs)


class TestTokenLayout:

    def test_version_prefix(self):
        assert _pinned().startswith("007")

    def test_header_fields(self):
        fields = unpack_token(_pinned())
        assert fields["app_id"] == APP_ID
        assert fields["issue_ts"] == ISSUE_TS
        assert fields["expire"] == 86400
        assert fields["salt"] == SALT

    def test_rtc_service_block(self):
        fields = unpack_token(_pinned(channel="ABCDEFGHIJ", uid="101"))
        rtc = fields["services"][1]
        assert rtc["privileges"] == [(1, 86400), (2, 86400)]
        assert rtc["channel"] == "ABCDEFGHIJ"
        assert rtc["uid"] == "101"

    def test_rtm_service_block(self):
        fields = unpack_token(_pinned(uid="101"))
        rtm = fields["services"][2]
        assert rtm["privileges"] == [(1, 86400)]
        assert rtm["uid"] == "101"

    def test_service_order_rtc_then_rtm(self):
        fields = unpack_token(_pinned())
        assert list(fields["services"]) == [1, 2]

    def test_channel_field_bytes(self):
        """The channel is packed as 0x0A 0x00 followed by the ten ASCII bytes."""
        fields = unpack_token(_pinned(channel="ABCDEFGHIJ"))
        assert b"\x0a\x00ABCDEFGHIJ" in fields["signing_info"]

    def test_signature_is_32_bytes(self):
        fields = unpack_token(_pinned())
        assert len(fields["signature"]) == 32

    def test_privileges_sorted_even_when_given_out_of_order(self):
        fields = unpack_token(_pinned(rtc_privileges=(2, 1)))
        assert [key for key, _ in fields["services"][1]["privileges"]] == [1, 2]

    def test_custom_expire(self):
        fields = unpack_token(_pinned(expire=3600))
        assert fields["expire"] == 3600
        assert fields["services"][1]["privileges"] == [(1, 3600), (2, 3600)]


class TestSigning:

    def test_signing_key_chain(self):
        ctx = SigningContext(issue_ts=ISSUE_TS, expire=86400, salt=SALT)
        round1 = hmac.new(
            APP_CERTIFICATE.encode("utf-8"), struct.pack("<I", ISSUE_TS), hashlib.sha256
        ).digest()
        expected = hmac.new(round1, struct.pack("<I", SALT), hashlib.sha256).digest()
        assert derive_signing_key(APP_CERTIFICATE, ctx) == expected

    def test_signature_covers_signing_info(self):
        fields = unpack_token(_pinned())
        ctx = SigningContext(issue_ts=ISSUE_TS, expire=86400, salt=SALT)
        key = derive_signing_key(APP_CERTIFICATE, ctx)
        expected = hmac.new(key, fields["signing_info"], hashlib.sha256).digest()
        assert fields["signature"] == expected

    def test_deterministic_with_pinned_time_and_salt(self):
        assert _pinned() == _pinned()

    def test_salt_changes_signature(self):
        first = unpack_token(_pinned(salt=1))
        second = unpack_token(_pinned(salt=2))
        assert first["signature"] != second["signature"]

    def test_certificate_changes_signature(self):
        other = "0" * 32
        first = unpack_token(_pinned())
        second = unpack_token(build_token(
            "ABCDEFGHIJ", "101", APP_ID, other, issue_ts=ISSUE_TS, salt=SALT,
        ))
        assert first["signature"] != second["signature"]


class TestInjectedClockAndRng:

    def test_clock_supplies_issue_ts(self):
        token = build_token(
            "chan", "1", APP_ID, APP_CERTIFICATE,
            clock=lambda: 1_650_000_000.9, rng=random.Random(7),
        )
        assert unpack_token(token)["issue_ts"] == 1_650_000_000

    def test_seeded_rng_is_reproducible(self):
        kwargs = dict(clock=lambda: ISSUE_TS)
        first = build_token("chan", "1", APP_ID, APP_CERTIFICATE, rng=random.Random(42), **kwargs)
        second = build_token("chan", "1", APP_ID, APP_CERTIFICATE, rng=random.Random(42), **kwargs)
        assert first == second

    def test_generated_salt_in_range(self):
        rng = random.Random(0)
        for _ in range(200):
            ctx = SigningContext.generate(clock=lambda: ISSUE_TS, rng=rng)
            assert SALT_MIN <= ctx.salt <= SALT_MAX


class TestValidation:

    @pytest.mark.parametrize("certificate", [
        "",
        "not-hex-at-all-not-hex-at-all-xx",
        "5cfd2fd1755d40ecb72977518be15d3",
        "5cfd2fd1755d40ecb72977518be15d3bb",
    ])
    def test_invalid_certificate_raises(self, certificate):
        with pytest.raises(InvalidCertificateError):
            build_token("chan", "1", APP_ID, certificate)

    def test_invalid_certificate_is_value_error(self):
        with pytest.raises(ValueError):
            build_token("chan", "1", APP_ID, "xyz")

    def test_uppercase_hex_accepted(self):
        assert is_valid_certificate(APP_CERTIFICATE.upper())

    def test_none_is_not_a_certificate(self):
        assert not is_valid_certificate(None)

    def test_channel_name_limit(self):
        build_token("c" * 64, "1", APP_ID, APP_CERTIFICATE)
        with pytest.raises(ValueError):
            build_token("c" * 65, "1", APP_ID, APP_CERTIFICATE)

    def test_empty_channel_and_uid_allowed(self):
        fields = unpack_token(build_token("", "", APP_ID, APP_CERTIFICATE))
        assert fields["services"][1]["channel"] == ""
        assert fields["services"][1]["uid"] == ""


class TestAuthHeader:

    def test_configured_header_wins(self):
        assert build_auth_header(APP_ID, APP_CERTIFICATE, "Basic abc") == "Basic abc"

    def test_token_header_uses_all_rtc_privileges(self):
        header = build_auth_header(APP_ID, APP_CERTIFICATE, issue_ts=ISSUE_TS, salt=SALT)
        assert header.startswith("agora token=007")
        fields = unpack_token(header[len("agora token="):])
        rtc = fields["services"][1]
        assert [key for key, _ in rtc["privileges"]] == list(ALL_RTC_PRIVILEGES)
        assert rtc["channel"] == ""
        assert rtc["uid"] == ""

    def test_token_header_needs_certificate(self):
        with pytest.raises(InvalidCertificateError):
            build_auth_header(APP_ID, "")


class TestCredentialFallback:

    def test_valid_certificate_gives_token(self):
        credential = credential_for("chan", "101", APP_ID, APP_CERTIFICATE)
        assert credential.startswith("007")

    @pytest.mark.parametrize("certificate", [None, "", "short"])
    def test_missing_or_malformed_certificate_gives_app_id(self, certificate):
        assert credential_for("chan", "101", APP_ID, certificate) == APP_ID
