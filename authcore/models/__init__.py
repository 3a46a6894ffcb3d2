"""SQLAlchemy ORM models for authcore.

All models are exported from this module for convenient imports:
    from authcore.models import Account, SessionToken, ...

Models are organized by table:
- account.py: Account (identity + password hash)
- session_token.py: SessionToken (long-lived token fingerprints)
- verification_code.py: VerificationCode (registration / password reset codes)
- api_key.py: ApiKey (machine credentials)
"""

from authcore.models.account import Account
from authcore.models.api_key import ApiKey
from authcore.models.base import Base, TimestampMixin
from authcore.models.session_token import SessionToken
from authcore.models.verification_code import VerificationCode

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Tables
    "Account",
    "ApiKey",
    "SessionToken",
    "VerificationCode",
]
