"""Repository for Account CRUD operations (the credential store).

Pure data access: no hashing, no policy. Callers pass an AsyncSession and
own the transaction boundary.
"""

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.core.errors import DuplicateEmailError, ValidationError
from authcore.core.passwords import normalize_email
from authcore.models.account import ROLES, Account


class AccountRepository:
    """Stateless repository for Account table operations.

    All methods are static; there is no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, account_id: uuid.UUID) -> Account | None:
        """Fetch an account by primary key.

        Args:
            db: Async database session.
            account_id: UUID primary key.

        Returns:
            Account if found, None otherwise.
        """
        return await db.get(Account, account_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Account | None:
        """Fetch an account by email address (case-insensitive).

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            Account if found, None otherwise.
        """
        stmt = select(Account).where(Account.email == normalize_email(email))
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        display_name: str,
        password_hash: str,
    ) -> Account:
        """Create a new, unverified member account.

        Email is normalized before storage. Uniqueness is enforced by the
        database constraint, so two concurrent registrations for the same
        address cannot both succeed even if both passed a pre-check.

        Args:
            db: Async database session.
            email: Account email address.
            display_name: Display name.
            password_hash: bcrypt hash.

        Returns:
            Created Account with database-generated fields populated.

        Raises:
            DuplicateEmailError: If the email already exists. The session
                must be rolled back by the caller.
        """
        account = Account(
            email=normalize_email(email),
            display_name=display_name,
            password_hash=password_hash,
        )
        db.add(account)
        try:
            await db.flush()
        except IntegrityError as exc:
            raise DuplicateEmailError() from exc
        await db.refresh(account)
        return account

    @staticmethod
    async def mark_email_verified(
        db: AsyncSession, account_id: uuid.UUID
    ) -> Account | None:
        """Set email_verified = True.

        Returns:
            Updated Account if found, None if the account does not exist.
        """
        return await AccountRepository._set(db, account_id, email_verified=True)

    @staticmethod
    async def update_password_hash(
        db: AsyncSession, account_id: uuid.UUID, password_hash: str
    ) -> Account | None:
        """Replace the stored password hash.

        Returns:
            Updated Account if found, None if the account does not exist.
        """
        return await AccountRepository._set(db, account_id, password_hash=password_hash)

    @staticmethod
    async def touch_last_login(
        db: AsyncSession, account_id: uuid.UUID, at: datetime
    ) -> None:
        """Record a successful login time without loading the row."""
        stmt = update(Account).where(Account.id == account_id).values(last_login=at)
        await db.execute(stmt)

    @staticmethod
    async def set_role(
        db: AsyncSession, account_id: uuid.UUID, role: str
    ) -> Account | None:
        """Set the account role.

        Separated from the other setters so role changes only happen from
        explicit promotion paths.

        Raises:
            ValidationError: If role is not a known role.
        """
        if role not in ROLES:
            raise ValidationError(f"Unknown role: {role}")
        return await AccountRepository._set(db, account_id, role=role)

    @staticmethod
    async def _set(
        db: AsyncSession, account_id: uuid.UUID, **values: str | bool
    ) -> Account | None:
        account = await db.get(Account, account_id)
        if account is None:
            return None
        for field, value in values.items():
            setattr(account, field, value)
        await db.flush()
        await db.refresh(account)
        return account
