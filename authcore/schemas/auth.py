"""Result payloads returned by the authentication engine.

Pydantic models so a transport layer can serialize them directly. None of
them ever carries a password hash.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from authcore.core.tokens import TokenPair


class AccountProfile(BaseModel):
    """Public view of an Account."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    display_name: str
    role: str
    email_verified: bool
    last_login: datetime | None = None
    created_at: datetime | None = None


class TokenPairResponse(BaseModel):
    """Bearer token pair handed to the client."""

    access_token: str
    long_lived_token: str
    access_ttl_seconds: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenPairResponse":
        return cls(
            access_token=pair.access,
            long_lived_token=pair.long_lived,
            access_ttl_seconds=pair.access_ttl_seconds,
        )


class MessageResult(BaseModel):
    message: str


class RegistrationResult(BaseModel):
    account_id: uuid.UUID
    message: str


class VerifiedAccountResult(BaseModel):
    message: str
    account: AccountProfile


class AuthResult(BaseModel):
    """Successful login: profile plus fresh tokens."""

    account: AccountProfile
    tokens: TokenPairResponse


class TokenRefreshResult(BaseModel):
    tokens: TokenPairResponse


class CodeCheckResult(BaseModel):
    valid: bool
    message: str


class CleanupResult(BaseModel):
    """Rows removed by one housekeeping pass."""

    deleted_tokens: int = Field(ge=0)
    deleted_codes: int = Field(ge=0)
