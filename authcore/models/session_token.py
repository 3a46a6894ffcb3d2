"""Session token model - server-side record of issued long-lived tokens.

Only the SHA-256 fingerprint of a long-lived token is stored, so a dump of
this table yields no usable bearer credentials.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from authcore.models.base import Base

if TYPE_CHECKING:
    from authcore.models.account import Account


class SessionToken(Base):
    """Outstanding long-lived token.

    Attributes:
        id: UUID primary key.
        account_id: Owning account (cascade delete).
        token_hash: Unique fingerprint of the raw long-lived token.
        expires_at: Rows past this instant are treated as absent.
        created_at: Issue timestamp.
    """

    __tablename__ = "session_tokens"
    __table_args__ = (
        Index("ix_session_tokens_account_id", "account_id"),
        Index("ix_session_tokens_expires_at", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )
    token_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    account: Mapped["Account"] = relationship(
        "Account",
        back_populates="session_tokens",
    )
