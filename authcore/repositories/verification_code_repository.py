"""Repository for VerificationCode operations (the verification-code ledger).

Six-digit, single-use, purpose-scoped codes with a fixed TTL. Issuing a
code replaces any earlier code for the same (email, purpose).

Matching rule shared by consume() and peek(): same email, same code, same
purpose, not yet consumed, not yet expired. Every way of failing that rule
raises the same CodeInvalidOrExpiredError.
"""

import secrets
from datetime import datetime, timedelta

from sqlalchemy import ColumnElement, and_, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.core.errors import CodeInvalidOrExpiredError
from authcore.core.passwords import normalize_email
from authcore.models.verification_code import VerificationCode

CODE_TTL = timedelta(minutes=15)
_CODE_DIGITS = 6


def generate_code() -> str:
    """Uniform random six-digit code, leading zeros preserved."""
    return f"{secrets.randbelow(10**_CODE_DIGITS):0{_CODE_DIGITS}d}"


def _matching(
    email: str, code: str, purpose: str, now: datetime
) -> ColumnElement[bool]:
    return and_(
        VerificationCode.email == normalize_email(email),
        VerificationCode.code == code,
        VerificationCode.purpose == purpose,
        VerificationCode.consumed.is_(False),
        VerificationCode.expires_at > now,
    )


class VerificationCodeRepository:
    """Stateless repository for VerificationCode table operations.

    All methods are static; there is no instance state.
    """

    @staticmethod
    async def issue(
        db: AsyncSession,
        *,
        email: str,
        purpose: str,
        now: datetime,
        ttl: timedelta = CODE_TTL,
    ) -> str:
        """Replace any earlier code for (email, purpose) with a fresh one.

        Delete and insert run in the caller's transaction.

        Args:
            db: Async database session.
            email: Subject email address.
            purpose: ``"registration"`` or ``"password_reset"``.
            now: Current time.
            ttl: Code lifetime.

        Returns:
            The plain code, for delivery.
        """
        email = normalize_email(email)
        await db.execute(
            delete(VerificationCode).where(
                VerificationCode.email == email,
                VerificationCode.purpose == purpose,
            )
        )
        code = generate_code()
        db.add(
            VerificationCode(
                email=email,
                code=code,
                purpose=purpose,
                expires_at=now + ttl,
            )
        )
        await db.flush()
        return code

    @staticmethod
    async def peek(
        db: AsyncSession,
        *,
        email: str,
        code: str,
        purpose: str,
        now: datetime,
    ) -> VerificationCode:
        """Check that a code would be accepted, without consuming it.

        Raises:
            CodeInvalidOrExpiredError: Wrong, expired, consumed, or
                wrong-purpose code.
        """
        stmt = (
            select(VerificationCode)
            .where(_matching(email, code, purpose, now))
            .order_by(VerificationCode.created_at.desc())
            .limit(1)
        )
        result = await db.execute(stmt)
        verification = result.scalars().first()
        if verification is None:
            raise CodeInvalidOrExpiredError()
        return verification

    @staticmethod
    async def consume(
        db: AsyncSession,
        *,
        email: str,
        code: str,
        purpose: str,
        now: datetime,
    ) -> VerificationCode:
        """Flip a matching code to consumed, exactly once.

        The flip is a conditional UPDATE on ``consumed = false``, so two
        concurrent consumers of the same code cannot both succeed.

        Raises:
            CodeInvalidOrExpiredError: Wrong, expired, consumed, or
                wrong-purpose code, or lost a concurrent consume.
        """
        verification = await VerificationCodeRepository.peek(
            db, email=email, code=code, purpose=purpose, now=now
        )
        stmt = (
            update(VerificationCode)
            .where(
                VerificationCode.id == verification.id,
                VerificationCode.consumed.is_(False),
            )
            .values(consumed=True)
        )
        result = await db.execute(stmt)
        if result.rowcount != 1:  # type: ignore[attr-defined]
            raise CodeInvalidOrExpiredError()
        await db.refresh(verification)
        return verification

    @staticmethod
    async def sweep_expired(db: AsyncSession, *, now: datetime) -> int:
        """Delete all expired codes (periodic cleanup).

        Returns:
            Number of deleted rows.
        """
        stmt = (
            delete(VerificationCode)
            .where(VerificationCode.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
