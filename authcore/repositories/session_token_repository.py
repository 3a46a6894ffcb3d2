"""Repository for SessionToken operations (the long-lived token ledger).

Rows are keyed by token fingerprint; the raw long-lived token never
reaches the database.
"""

import uuid
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.core.errors import NotFoundError
from authcore.core.tokens import fingerprint
from authcore.models.session_token import SessionToken


class SessionTokenRepository:
    """Stateless repository for SessionToken table operations.

    All methods are static; there is no instance state.
    """

    @staticmethod
    async def record(
        db: AsyncSession,
        *,
        account_id: uuid.UUID,
        raw_token: str,
        expires_at: datetime,
    ) -> SessionToken:
        """Store the fingerprint of a newly issued long-lived token.

        Args:
            db: Async database session.
            account_id: Owning account.
            raw_token: Raw long-lived token (hashed here, never stored).
            expires_at: Server-side expiry.

        Returns:
            Created SessionToken.
        """
        session_token = SessionToken(
            account_id=account_id,
            token_hash=fingerprint(raw_token),
            expires_at=expires_at,
        )
        db.add(session_token)
        await db.flush()
        return session_token

    @staticmethod
    async def find_by_fingerprint(
        db: AsyncSession, token_hash: str, *, now: datetime
    ) -> SessionToken | None:
        """Look up an unexpired token record by fingerprint.

        Returns:
            SessionToken if present and unexpired, None otherwise.
        """
        stmt = select(SessionToken).where(
            SessionToken.token_hash == token_hash,
            SessionToken.expires_at > now,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def rotate(
        db: AsyncSession,
        *,
        old_token_hash: str,
        account_id: uuid.UUID,
        new_raw_token: str,
        expires_at: datetime,
    ) -> SessionToken:
        """Replace one token record with another.

        The delete and the insert run in the caller's transaction and commit
        together. The delete takes the row lock, so of two concurrent
        rotations of the same token only one deletes a row.

        Raises:
            NotFoundError: The old record is already gone. The caller must
                roll back; nothing is inserted.
        """
        stmt = delete(SessionToken).where(
            SessionToken.token_hash == old_token_hash,
            SessionToken.account_id == account_id,
        )
        result = await db.execute(stmt)
        if result.rowcount != 1:  # type: ignore[attr-defined]
            raise NotFoundError("Session token")
        return await SessionTokenRepository.record(
            db,
            account_id=account_id,
            raw_token=new_raw_token,
            expires_at=expires_at,
        )

    @staticmethod
    async def revoke(db: AsyncSession, token_hash: str) -> int:
        """Delete one token record. Absent records are not an error.

        Returns:
            Number of deleted rows (0 or 1).
        """
        stmt = delete(SessionToken).where(SessionToken.token_hash == token_hash)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count

    @staticmethod
    async def revoke_all(db: AsyncSession, account_id: uuid.UUID) -> int:
        """Delete every token record of an account.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(SessionToken).where(SessionToken.account_id == account_id)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count

    @staticmethod
    async def sweep_expired(db: AsyncSession, *, now: datetime) -> int:
        """Delete all expired token records (periodic cleanup).

        Returns:
            Number of deleted rows.
        """
        stmt = (
            delete(SessionToken)
            .where(SessionToken.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
