"""Verification code model - one-time numeric codes.

Single-use, time-limited, scoped to (email, purpose). Keyed by email rather
than account id because the account may not exist yet when a registration
code is issued.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    String,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from authcore.models.base import Base

PURPOSE_REGISTRATION = "registration"
PURPOSE_PASSWORD_RESET = "password_reset"
PURPOSES = (PURPOSE_REGISTRATION, PURPOSE_PASSWORD_RESET)


class VerificationCode(Base):
    """Outstanding or consumed verification code.

    Attributes:
        id: UUID primary key.
        email: Normalized subject email address.
        code: Six ASCII digits, leading zeros preserved.
        purpose: ``"registration"`` or ``"password_reset"``.
        expires_at: Codes are inert after this instant.
        consumed: Flips to True exactly once.
        created_at: Issue timestamp.
    """

    __tablename__ = "verification_codes"
    __table_args__ = (
        CheckConstraint(
            "purpose IN ('registration', 'password_reset')",
            name="ck_verification_codes_purpose_valid",
        ),
        Index("ix_verification_codes_email_purpose", "email", "purpose"),
        Index("ix_verification_codes_expires_at", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    code: Mapped[str] = mapped_column(
        String(6),
        nullable=False,
    )
    purpose: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    consumed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
