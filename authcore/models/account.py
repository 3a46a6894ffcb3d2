"""Account model - identity and credential hash.

Created on registration. Never physically deleted by this package.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from authcore.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from authcore.models.session_token import SessionToken

ROLE_MEMBER = "member"
ROLE_ADMIN = "admin"
ROLES = (ROLE_MEMBER, ROLE_ADMIN)


class Account(Base, TimestampMixin):
    """User account for authentication.

    Attributes:
        id: UUID primary key.
        email: Unique, normalized (stripped, lowercase) email address.
        display_name: Name used in emails and profile responses.
        password_hash: bcrypt hash. Never returned to callers.
        role: "member" or "admin".
        email_verified: Flips to True exactly once, on code verification.
        last_login: Timestamp of the last successful login.
        created_at: Account creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint(
            "role IN ('member', 'admin')",
            name="ck_accounts_role_valid",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    display_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default=text("'member'"),
        default=ROLE_MEMBER,
    )
    email_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    last_login: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    # Relationships
    session_tokens: Mapped[list["SessionToken"]] = relationship(
        "SessionToken",
        back_populates="account",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
