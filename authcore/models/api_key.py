"""API key model - machine credentials with a permission list.

The raw key is shown once at creation; only its fingerprint is stored.
"""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Integer, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from authcore.models.base import Base, TimestampMixin

PERMISSION_GENERAL = "general"
PERMISSION_DATA_READ = "data:read"
PERMISSION_DATA_WRITE = "data:write"
PERMISSIONS = (PERMISSION_GENERAL, PERMISSION_DATA_READ, PERMISSION_DATA_WRITE)


class ApiKey(Base, TimestampMixin):
    """Machine credential.

    Attributes:
        id: UUID primary key.
        key_hash: Unique SHA-256 fingerprint of the raw key.
        version: Key format version.
        permissions: Granted permission names.
        is_active: Disabled keys are rejected like unknown keys.
        last_used_at: Stamped on every successful authentication.
    """

    __tablename__ = "api_keys"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    key_hash: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default=text("1"),
        default=1,
    )
    permissions: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("true"),
        default=True,
    )
    last_used_at: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )
