"""Pydantic result schemas returned by the authentication engine."""

from authcore.schemas.auth import (
    AccountProfile,
    AuthResult,
    CleanupResult,
    CodeCheckResult,
    MessageResult,
    RegistrationResult,
    TokenPairResponse,
    TokenRefreshResult,
    VerifiedAccountResult,
)

__all__ = [
    # Account
    "AccountProfile",
    "RegistrationResult",
    "VerifiedAccountResult",
    # Tokens
    "AuthResult",
    "TokenPairResponse",
    "TokenRefreshResult",
    # Misc
    "CleanupResult",
    "CodeCheckResult",
    "MessageResult",
]
