"""Tests for TokenCodec, TokenSecrets and fingerprint.

Security: two distinct secrets so an access token never passes as a
long-lived token (and vice versa); expiry measured against the injected
clock; tampering and wrong-type tokens rejected.
"""

import uuid
from datetime import timedelta

import jwt
import pytest

from authcore.core.errors import (
    ConfigurationError,
    TokenExpiredError,
    TokenInvalidError,
)
from authcore.core.tokens import TokenCodec, TokenKind, TokenSecrets, fingerprint
from tests.conftest import TEST_ACCESS_SECRET, TEST_LONG_LIVED_SECRET, FrozenClock

_ACCOUNT_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
_EMAIL = "alice@example.com"


class TestTokenSecretsValidation:
    """TokenSecrets.validate() fails fast on unsafe configuration."""

    def test_accepts_distinct_long_secrets(self, token_secrets: TokenSecrets):
        """Two distinct 32+ character secrets pass."""
        token_secrets.validate()

    def test_rejects_short_access_secret(self):
        """An access secret below the minimum length is refused."""
        with pytest.raises(ConfigurationError, match="Access"):
            TokenSecrets(
                access_secret="short", long_lived_secret=TEST_LONG_LIVED_SECRET
            ).validate()

    def test_rejects_missing_long_lived_secret(self):
        """An empty long-lived secret is refused."""
        with pytest.raises(ConfigurationError, match="Long-lived"):
            TokenSecrets(
                access_secret=TEST_ACCESS_SECRET, long_lived_secret=""
            ).validate()

    def test_rejects_identical_secrets(self):
        """Reusing one secret for both kinds is refused."""
        with pytest.raises(ConfigurationError, match="different"):
            TokenSecrets(
                access_secret=TEST_ACCESS_SECRET, long_lived_secret=TEST_ACCESS_SECRET
            ).validate()

    def test_rejects_non_positive_ttl(self):
        """A zero lifetime is refused."""
        with pytest.raises(ConfigurationError, match="positive"):
            TokenSecrets(
                access_secret=TEST_ACCESS_SECRET,
                long_lived_secret=TEST_LONG_LIVED_SECRET,
                access_ttl=timedelta(0),
            ).validate()

    def test_codec_construction_validates(self):
        """Building a codec with unsafe secrets raises immediately."""
        with pytest.raises(ConfigurationError):
            TokenCodec(TokenSecrets(access_secret="", long_lived_secret=""))


class TestIssuePair:
    """TokenCodec.issue_pair() signs both tokens with the right claims."""

    def test_both_tokens_round_trip_claims(
        self, codec: TokenCodec, clock: FrozenClock
    ):
        """Each token verifies under its own kind and carries identity claims."""
        pair = codec.issue_pair(_ACCOUNT_ID, _EMAIL, "member")

        access = codec.verify(pair.access, TokenKind.ACCESS)
        long_lived = codec.verify(pair.long_lived, TokenKind.LONG_LIVED)

        now = int(clock().timestamp())
        assert access.account_id == _ACCOUNT_ID
        assert access.email == _EMAIL
        assert access.role == "member"
        assert access.issued_at == now
        assert access.expires_at == now + 15 * 60
        assert long_lived.kind is TokenKind.LONG_LIVED
        assert long_lived.expires_at == now + 14 * 24 * 60 * 60

    def test_reports_access_ttl_seconds(self, codec: TokenCodec):
        """The pair advertises the access lifetime in seconds."""
        pair = codec.issue_pair(_ACCOUNT_ID, _EMAIL, "member")
        assert pair.access_ttl_seconds == 900

    def test_pairs_issued_in_same_second_differ(self, codec: TokenCodec):
        """Two pairs for the same account at the same instant are distinct."""
        first = codec.issue_pair(_ACCOUNT_ID, _EMAIL, "member")
        second = codec.issue_pair(_ACCOUNT_ID, _EMAIL, "member")
        assert first.access != second.access
        assert first.long_lived != second.long_lived


class TestVerify:
    """TokenCodec.verify() rejection paths."""

    def test_access_token_rejected_as_long_lived(self, codec: TokenCodec):
        """Different secrets: an access token never verifies as long-lived."""
        pair = codec.issue_pair(_ACCOUNT_ID, _EMAIL, "member")
        with pytest.raises(TokenInvalidError):
            codec.verify(pair.access, TokenKind.LONG_LIVED)

    def test_long_lived_token_rejected_as_access(self, codec: TokenCodec):
        """A long-lived token never verifies as an access token."""
        pair = codec.issue_pair(_ACCOUNT_ID, _EMAIL, "member")
        with pytest.raises(TokenInvalidError):
            codec.verify(pair.long_lived, TokenKind.ACCESS)

    def test_expired_access_token(self, codec: TokenCodec, clock: FrozenClock):
        """Past its expiry the access token raises TokenExpiredError."""
        pair = codec.issue_pair(_ACCOUNT_ID, _EMAIL, "member")
        clock.advance(minutes=15)
        with pytest.raises(TokenExpiredError):
            codec.verify(pair.access, TokenKind.ACCESS)

    def test_access_token_valid_just_before_expiry(
        self, codec: TokenCodec, clock: FrozenClock
    ):
        """One second before expiry the token still verifies."""
        pair = codec.issue_pair(_ACCOUNT_ID, _EMAIL, "member")
        clock.advance(minutes=15, seconds=-1)
        assert codec.verify(pair.access, TokenKind.ACCESS).account_id == _ACCOUNT_ID

    def test_tampered_signature(self, codec: TokenCodec):
        """Flipping a signature character invalidates the token."""
        pair = codec.issue_pair(_ACCOUNT_ID, _EMAIL, "member")
        head, payload, signature = pair.access.split(".")
        flipped = ("A" if signature[0] != "A" else "B") + signature[1:]
        with pytest.raises(TokenInvalidError):
            codec.verify(f"{head}.{payload}.{flipped}", TokenKind.ACCESS)

    def test_garbage_token(self, codec: TokenCodec):
        """A non-JWT string is invalid, not a crash."""
        with pytest.raises(TokenInvalidError):
            codec.verify("not-a-token", TokenKind.ACCESS)

    def test_foreign_secret(self, codec: TokenCodec, clock: FrozenClock):
        """A well-formed token signed with another secret is invalid."""
        now = int(clock().timestamp())
        forged = jwt.encode(
            {
                "sub": str(_ACCOUNT_ID),
                "email": _EMAIL,
                "role": "admin",
                "typ": "access",
                "iss": "authcore",
                "iat": now,
                "exp": now + 900,
            },
            "some-other-secret-that-is-long-enough-to-sign",
            algorithm="HS256",
        )
        with pytest.raises(TokenInvalidError):
            codec.verify(forged, TokenKind.ACCESS)

    def test_missing_type_claim(self, codec: TokenCodec, clock: FrozenClock):
        """A correctly signed token without a type claim is invalid."""
        now = int(clock().timestamp())
        token = jwt.encode(
            {
                "sub": str(_ACCOUNT_ID),
                "email": _EMAIL,
                "role": "member",
                "iss": "authcore",
                "iat": now,
                "exp": now + 900,
            },
            TEST_ACCESS_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(TokenInvalidError):
            codec.verify(token, TokenKind.ACCESS)

    def test_non_uuid_subject(self, codec: TokenCodec, clock: FrozenClock):
        """A subject that is not a UUID is invalid."""
        now = int(clock().timestamp())
        token = jwt.encode(
            {
                "sub": "alice",
                "email": _EMAIL,
                "role": "member",
                "typ": "access",
                "iss": "authcore",
                "iat": now,
                "exp": now + 900,
            },
            TEST_ACCESS_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(TokenInvalidError):
            codec.verify(token, TokenKind.ACCESS)


class TestFingerprint:
    """fingerprint() is a stable one-way digest."""

    def test_is_sha256_hex(self):
        """64 lowercase hex characters."""
        digest = fingerprint("raw-token")
        assert len(digest) == 64
        assert digest == digest.lower()
        int(digest, 16)

    def test_deterministic_and_distinct(self):
        """Same input, same digest; different input, different digest."""
        assert fingerprint("a") == fingerprint("a")
        assert fingerprint("a") != fingerprint("b")

    def test_does_not_contain_raw_value(self):
        """The raw token does not appear in its fingerprint."""
        assert "raw-token" not in fingerprint("raw-token")
