"""Repository for ApiKey lookups and provisioning."""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.core.errors import ValidationError
from authcore.core.tokens import fingerprint
from authcore.models.api_key import PERMISSIONS, ApiKey


class ApiKeyRepository:
    """Stateless repository for ApiKey table operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        raw_key: str,
        permissions: list[str],
        version: int = 1,
    ) -> ApiKey:
        """Store a new key by fingerprint.

        Raises:
            ValidationError: If any permission name is unknown.
        """
        unknown = set(permissions) - set(PERMISSIONS)
        if unknown:
            msg = f"Unknown permissions: {', '.join(sorted(unknown))}"
            raise ValidationError(msg)
        api_key = ApiKey(
            key_hash=fingerprint(raw_key),
            permissions=sorted(set(permissions)),
            version=version,
        )
        db.add(api_key)
        await db.flush()
        await db.refresh(api_key)
        return api_key

    @staticmethod
    async def get_active_by_key(db: AsyncSession, raw_key: str) -> ApiKey | None:
        """Fetch an active key by its raw value."""
        stmt = select(ApiKey).where(
            ApiKey.key_hash == fingerprint(raw_key),
            ApiKey.is_active.is_(True),
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def touch_last_used(db: AsyncSession, api_key: ApiKey, at: datetime) -> None:
        api_key.last_used_at = at
        await db.flush()
