"""Stateless signer/verifier for access and long-lived bearer tokens.

Two token kinds, two secrets:
- access: short TTL, verified purely by signature + expiry
- long_lived: longer TTL, additionally tracked server-side by fingerprint
  (see SessionTokenRepository) so it stays revocable

TokenCodec performs no I/O. Storage lookups are the caller's job.
"""

import hashlib
import secrets
import uuid
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

import jwt
import structlog

from authcore.core.clock import Clock, utc_now
from authcore.core.config import MIN_SECRET_LENGTH, Settings
from authcore.core.errors import (
    ConfigurationError,
    TokenExpiredError,
    TokenInvalidError,
)

logger = structlog.get_logger()

_ALGORITHM = "HS256"


class TokenKind(str, Enum):
    """Which of the two bearer tokens is being issued or verified."""

    ACCESS = "access"
    LONG_LIVED = "long_lived"


@dataclass(frozen=True)
class TokenSecrets:
    """Immutable signing configuration.

    Attributes:
        access_secret: HMAC secret for access tokens.
        long_lived_secret: HMAC secret for long-lived tokens.
        access_ttl: Access token lifetime.
        long_lived_ttl: Long-lived token lifetime.
        issuer: ``iss`` claim written and required on every token.
    """

    access_secret: str
    long_lived_secret: str
    access_ttl: timedelta = timedelta(minutes=15)
    long_lived_ttl: timedelta = timedelta(days=14)
    issuer: str = "authcore"

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenSecrets":
        return cls(
            access_secret=settings.jwt_access_secret.get_secret_value(),
            long_lived_secret=settings.jwt_long_lived_secret.get_secret_value(),
            access_ttl=timedelta(seconds=settings.jwt_access_ttl_seconds),
            long_lived_ttl=timedelta(seconds=settings.jwt_long_lived_ttl_seconds),
            issuer=settings.jwt_issuer,
        )

    def validate(self) -> None:
        """Fail fast on absent, short, or shared secrets.

        Raises:
            ConfigurationError: If either secret is missing or shorter than
                MIN_SECRET_LENGTH, or both secrets are identical.
        """
        if len(self.access_secret) < MIN_SECRET_LENGTH:
            msg = "Access token secret is missing or too short."
            raise ConfigurationError(msg)
        if len(self.long_lived_secret) < MIN_SECRET_LENGTH:
            msg = "Long-lived token secret is missing or too short."
            raise ConfigurationError(msg)
        if secrets.compare_digest(self.access_secret, self.long_lived_secret):
            msg = "Access and long-lived token secrets must be different."
            raise ConfigurationError(msg)
        if self.access_ttl <= timedelta(0) or self.long_lived_ttl <= timedelta(0):
            msg = "Token lifetimes must be positive."
            raise ConfigurationError(msg)

    def secret_for(self, kind: TokenKind) -> str:
        if kind is TokenKind.ACCESS:
            return self.access_secret
        return self.long_lived_secret

    def ttl_for(self, kind: TokenKind) -> timedelta:
        if kind is TokenKind.ACCESS:
            return self.access_ttl
        return self.long_lived_ttl


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims recovered from a bearer token."""

    account_id: uuid.UUID
    email: str
    role: str
    kind: TokenKind
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class TokenPair:
    """Freshly issued access + long-lived tokens."""

    access: str
    long_lived: str
    access_ttl_seconds: int


def fingerprint(raw_token: str) -> str:
    """One-way SHA-256 hex digest used as the storage key for a raw token."""
    return hashlib.sha256(raw_token.encode()).hexdigest()


class TokenCodec:
    """Issue and verify bearer tokens with process-wide secrets.

    Construction validates the secrets, so a misconfigured process fails at
    startup instead of on the first login.

    Args:
        token_secrets: Immutable signing configuration.
        clock: Source of "now"; injectable for tests.
    """

    def __init__(self, token_secrets: TokenSecrets, clock: Clock = utc_now) -> None:
        token_secrets.validate()
        self._secrets = token_secrets
        self._clock = clock

    @property
    def long_lived_ttl(self) -> timedelta:
        return self._secrets.long_lived_ttl

    def issue_pair(self, account_id: uuid.UUID, email: str, role: str) -> TokenPair:
        """Sign a new access token and a new long-lived token.

        Both embed account id, email, role, issued-at, and their own expiry.
        """
        return TokenPair(
            access=self._encode(TokenKind.ACCESS, account_id, email, role),
            long_lived=self._encode(TokenKind.LONG_LIVED, account_id, email, role),
            access_ttl_seconds=int(self._secrets.access_ttl.total_seconds()),
        )

    def verify(self, token: str, kind: TokenKind) -> TokenClaims:
        """Check signature, expiry, issuer and token type.

        Does not consult storage.

        Raises:
            TokenExpiredError: Signature is valid but the token has expired.
            TokenInvalidError: Bad signature, wrong secret, wrong type, or
                malformed token.
        """
        now = int(self._clock().timestamp())
        try:
            # Expiry is checked against the injected clock below, not
            # PyJWT's wall clock.
            payload = jwt.decode(
                token,
                self._secrets.secret_for(kind),
                algorithms=[_ALGORITHM],
                issuer=self._secrets.issuer,
                options={
                    "require": ["sub", "exp", "iat", "typ"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidTokenError as exc:
            logger.info("token_rejected", kind=kind.value, reason=type(exc).__name__)
            raise TokenInvalidError() from exc

        if payload.get("typ") != kind.value:
            logger.info("token_rejected", kind=kind.value, reason="wrong_type")
            raise TokenInvalidError()

        try:
            claims = TokenClaims(
                account_id=uuid.UUID(payload["sub"]),
                email=str(payload["email"]),
                role=str(payload["role"]),
                kind=kind,
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise TokenInvalidError() from exc

        if claims.expires_at <= now:
            raise TokenExpiredError()
        return claims

    def _encode(
        self,
        kind: TokenKind,
        account_id: uuid.UUID,
        email: str,
        role: str,
    ) -> str:
        now = self._clock()
        payload = {
            "sub": str(account_id),
            "email": email,
            "role": role,
            "typ": kind.value,
            "iss": self._secrets.issuer,
            "iat": int(now.timestamp()),
            "exp": int((now + self._secrets.ttl_for(kind)).timestamp()),
            # Two pairs minted in the same second must still differ
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(payload, self._secrets.secret_for(kind), algorithm=_ALGORITHM)
