"""Password hashing collaborator and credential input rules.

Pipeline:
- BcryptPasswordHasher: hash / verify with a tunable work factor
- verify_dummy: timing-safe comparison for unknown accounts
- validate_password_strength / validate_display_name: format rules
- normalize_email: canonical form used for every lookup and insert
"""

import re
from typing import Protocol

import bcrypt

from authcore.core.errors import ValidationError

# bcrypt only looks at the first 72 bytes; longer input is rejected upfront
_MAX_PASSWORD_BYTES = 72

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordHasher(Protocol):
    def hash(self, plaintext: str) -> str: ...

    def verify(self, plaintext: str, hashed: str) -> bool: ...

    def verify_dummy(self, plaintext: str) -> None: ...


class BcryptPasswordHasher:
    """bcrypt-backed PasswordHasher.

    Args:
        rounds: bcrypt cost factor. 12 in production; tests use 4.
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        # Same cost as real hashes, so account-not-found takes as long as a
        # wrong password.
        self.dummy_hash = bcrypt.hashpw(b"dummy", bcrypt.gensalt(rounds=rounds))

    def hash(self, plaintext: str) -> str:
        return bcrypt.hashpw(
            plaintext.encode(), bcrypt.gensalt(rounds=self.rounds)
        ).decode()

    def verify(self, plaintext: str, hashed: str) -> bool:
        try:
            return bcrypt.checkpw(plaintext.encode(), hashed.encode())
        except ValueError:
            # Malformed stored hash: treat as mismatch, never as a crash
            return False

    def verify_dummy(self, plaintext: str) -> None:
        """Burn one bcrypt comparison so unknown accounts cost the same time."""
        bcrypt.checkpw(plaintext.encode(), self.dummy_hash)


def normalize_email(email: str) -> str:
    """Lowercase and strip an email address."""
    return email.strip().lower()


def validate_email(email: str) -> str:
    """Normalize an email address and check its basic shape.

    Raises:
        ValidationError: If the address is not of the form local@domain.tld.
    """
    normalized = normalize_email(email)
    if len(normalized) > 255 or not _EMAIL_PATTERN.match(normalized):
        raise ValidationError("Invalid email address")
    return normalized


def validate_password_strength(password: str) -> None:
    """Validate password meets strength requirements.

    8-72 bytes, at least one uppercase letter and one number.

    Args:
        password: Plain-text password to validate.

    Raises:
        ValidationError: If password doesn't meet requirements.
    """
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters")
    if len(password.encode()) > _MAX_PASSWORD_BYTES:
        raise ValidationError("Password must be at most 72 bytes")
    if not re.search(r"[A-Z]", password):
        raise ValidationError("Password must contain at least one uppercase letter")
    if not re.search(r"\d", password):
        raise ValidationError("Password must contain at least one number")


def validate_display_name(name: str) -> str:
    """Strip a display name and require 2-255 characters."""
    stripped = name.strip()
    if len(stripped) < 2:
        raise ValidationError("Name must be at least 2 characters")
    if len(stripped) > 255:
        raise ValidationError("Name must be at most 255 characters")
    return stripped
