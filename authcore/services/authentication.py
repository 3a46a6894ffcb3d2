"""Authentication engine: registration, verification, login, token rotation.

Orchestrates the credential store, the verification-code ledger, the
session-token ledger and the token codec into the public operations, and
owns every security rule between them.

Security considerations:
- login: one error for unknown email and wrong password, plus a dummy
  bcrypt comparison so response time does not reveal which
- refresh: long-lived tokens are single-use; presenting one that is no
  longer in the ledger revokes every session of the account
- forgot_password / resend_verification: identical response whether or
  not the account exists
- reset_password / change_password: revoke every long-lived token

Each operation runs in one store transaction. Expected failures are
raised as AuthError subclasses; store faults are logged and surfaced as
InternalError.
"""

import uuid
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import timedelta

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from authcore.core.clock import Clock, utc_now
from authcore.core.config import Settings
from authcore.core.database import (
    create_engine,
    create_session_factory,
    transaction_scope,
)
from authcore.core.email import (
    EmailDispatcher,
    EmailPurpose,
    EmailSender,
    ResendEmailSender,
)
from authcore.core.errors import (
    CodeInvalidOrExpiredError,
    DuplicateEmailError,
    EmailNotVerifiedError,
    InsufficientPermissionsError,
    InternalError,
    InvalidCredentialsError,
    NotFoundError,
    TokenExpiredError,
    TokenInvalidError,
)
from authcore.core.passwords import (
    BcryptPasswordHasher,
    PasswordHasher,
    normalize_email,
    validate_display_name,
    validate_email,
    validate_password_strength,
)
from authcore.core.tokens import (
    TokenClaims,
    TokenCodec,
    TokenKind,
    TokenSecrets,
    fingerprint,
)
from authcore.models.account import ROLE_ADMIN
from authcore.models.api_key import ApiKey
from authcore.models.verification_code import (
    PURPOSE_PASSWORD_RESET,
    PURPOSE_REGISTRATION,
)
from authcore.repositories.account_repository import AccountRepository
from authcore.repositories.api_key_repository import ApiKeyRepository
from authcore.repositories.session_token_repository import SessionTokenRepository
from authcore.repositories.verification_code_repository import (
    CODE_TTL,
    VerificationCodeRepository,
)
from authcore.schemas.auth import (
    AccountProfile,
    AuthResult,
    CleanupResult,
    CodeCheckResult,
    MessageResult,
    RegistrationResult,
    TokenPairResponse,
    TokenRefreshResult,
    VerifiedAccountResult,
)

logger = structlog.get_logger()

_REGISTERED_MSG = "Registration successful. Please check your email."
_VERIFIED_MSG = "Email verified successfully."
_RESEND_MSG = (
    "If the account exists and is not yet verified, "
    "a new verification code has been sent."
)
_FORGOT_PASSWORD_MSG = "If an account exists, a password reset code has been sent."
_CODE_VALID_MSG = "Code is valid."
_PASSWORD_RESET_MSG = "Password has been reset successfully."
_PASSWORD_CHANGED_MSG = (
    "Password changed successfully. You may need to log in again on other devices."
)
_LOGGED_OUT_MSG = "Logged out successfully."
_LOGGED_OUT_ALL_MSG = "Logged out from all devices."
_LOG_IN_AGAIN_MSG = "Invalid token. Please log in again."


class AuthenticationEngine:
    """Public authentication operations.

    Args:
        session_factory: Produces sessions against the relational store.
        codec: Token signer/verifier.
        hasher: Password hashing collaborator.
        emails: Fire-and-forget email dispatcher.
        code_ttl: Verification code lifetime.
        clock: Source of "now" for every expiry comparison.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        codec: TokenCodec,
        hasher: PasswordHasher,
        emails: EmailDispatcher,
        code_ttl: timedelta = CODE_TTL,
        clock: Clock = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._codec = codec
        self._hasher = hasher
        self._emails = emails
        self._code_ttl = code_ttl
        self._clock = clock

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        """One store transaction; store faults become InternalError."""
        try:
            async with transaction_scope(self._session_factory) as db:
                yield db
        except SQLAlchemyError as exc:
            logger.exception("store_failure", operation=operation)
            raise InternalError() from exc

    # ===================================================================
    # Registration and email verification
    # ===================================================================

    async def register(
        self, email: str, password: str, display_name: str
    ) -> RegistrationResult:
        """Create an unverified account and send a registration code.

        Email delivery runs after commit and never rolls the account back:
        the user can ask for a resend.

        Raises:
            ValidationError: Malformed email, weak password, or short name.
            DuplicateEmailError: The email is already registered.
        """
        email = validate_email(email)
        validate_password_strength(password)
        display_name = validate_display_name(display_name)

        async with self._transaction("register") as db:
            if await AccountRepository.get_by_email(db, email) is not None:
                raise DuplicateEmailError()
            account = await AccountRepository.create(
                db,
                email=email,
                display_name=display_name,
                password_hash=self._hasher.hash(password),
            )
            code = await VerificationCodeRepository.issue(
                db,
                email=email,
                purpose=PURPOSE_REGISTRATION,
                now=self._clock(),
                ttl=self._code_ttl,
            )

        self._emails.dispatch(email, EmailPurpose.REGISTRATION, code, display_name)
        logger.info("account_registered", account_id=str(account.id))
        return RegistrationResult(account_id=account.id, message=_REGISTERED_MSG)

    async def verify_email(self, email: str, code: str) -> VerifiedAccountResult:
        """Consume a registration code and mark the account verified.

        Both writes share one transaction: either the code is consumed and
        the account verified, or neither happened.

        Raises:
            CodeInvalidOrExpiredError: Any mismatch, or no such account.
        """
        email = normalize_email(email)
        async with self._transaction("verify_email") as db:
            await VerificationCodeRepository.consume(
                db,
                email=email,
                code=code,
                purpose=PURPOSE_REGISTRATION,
                now=self._clock(),
            )
            account = await AccountRepository.get_by_email(db, email)
            if account is None:
                raise CodeInvalidOrExpiredError()
            account = await AccountRepository.mark_email_verified(db, account.id)
            profile = AccountProfile.model_validate(account)

        self._emails.dispatch(email, EmailPurpose.WELCOME, None, profile.display_name)
        logger.info("email_verified", account_id=str(profile.id))
        return VerifiedAccountResult(message=_VERIFIED_MSG, account=profile)

    async def resend_verification(self, email: str) -> MessageResult:
        """Re-issue a registration code for an unverified account.

        The response is identical for unknown, verified and unverified
        accounts; only the last one triggers a send.
        """
        email = normalize_email(email)
        code: str | None = None
        async with self._transaction("resend_verification") as db:
            account = await AccountRepository.get_by_email(db, email)
            if account is not None and not account.email_verified:
                code = await VerificationCodeRepository.issue(
                    db,
                    email=email,
                    purpose=PURPOSE_REGISTRATION,
                    now=self._clock(),
                    ttl=self._code_ttl,
                )
                display_name = account.display_name

        if code is not None:
            self._emails.dispatch(
                email, EmailPurpose.REGISTRATION, code, display_name
            )
        return MessageResult(message=_RESEND_MSG)

    # ===================================================================
    # Login and token lifecycle
    # ===================================================================

    async def login(self, email: str, password: str) -> AuthResult:
        """Check credentials and issue a token pair.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password.
            EmailNotVerifiedError: Correct credentials, unverified email.
        """
        email = normalize_email(email)
        async with self._transaction("login") as db:
            account = await AccountRepository.get_by_email(db, email)
            if account is None:
                # Security: always perform a bcrypt comparison so response
                # time does not reveal whether the account exists.
                self._hasher.verify_dummy(password)
                logger.info("login_failed", reason="unknown_account")
                raise InvalidCredentialsError()
            if not self._hasher.verify(password, account.password_hash):
                logger.info(
                    "login_failed", reason="wrong_password", account_id=str(account.id)
                )
                raise InvalidCredentialsError()
            if not account.email_verified:
                raise EmailNotVerifiedError()

            now = self._clock()
            pair = self._codec.issue_pair(account.id, account.email, account.role)
            await SessionTokenRepository.record(
                db,
                account_id=account.id,
                raw_token=pair.long_lived,
                expires_at=now + self._codec.long_lived_ttl,
            )
            await AccountRepository.touch_last_login(db, account.id, now)
            profile = AccountProfile.model_validate(account)

        logger.info("login_succeeded", account_id=str(profile.id))
        return AuthResult(account=profile, tokens=TokenPairResponse.from_pair(pair))

    async def refresh(self, raw_long_lived_token: str) -> TokenRefreshResult:
        """Exchange a long-lived token for a new pair (single use).

        A token that verifies cryptographically but is absent from the
        ledger was either rotated away already or forged from a leaked
        value: every session of the account is revoked.

        A token that was present at lookup but lost the rotation to a
        concurrent refresh of the same token only fails this call.

        Raises:
            TokenExpiredError: Long-lived token past its expiry.
            TokenInvalidError: Bad token, unknown account, reuse detected,
                or lost rotation race.
        """
        claims = self._codec.verify(raw_long_lived_token, TokenKind.LONG_LIVED)
        token_hash = fingerprint(raw_long_lived_token)
        pair = None

        try:
            async with self._transaction("refresh") as db:
                account = await AccountRepository.get_by_id(db, claims.account_id)
                if account is None:
                    raise TokenInvalidError(_LOG_IN_AGAIN_MSG)

                now = self._clock()
                existing = await SessionTokenRepository.find_by_fingerprint(
                    db, token_hash, now=now
                )
                if existing is None:
                    revoked = await SessionTokenRepository.revoke_all(db, account.id)
                    logger.warning(
                        "refresh_token_reuse_detected",
                        account_id=str(account.id),
                        revoked_sessions=revoked,
                    )
                else:
                    pair = self._codec.issue_pair(
                        account.id, account.email, account.role
                    )
                    await SessionTokenRepository.rotate(
                        db,
                        old_token_hash=token_hash,
                        account_id=account.id,
                        new_raw_token=pair.long_lived,
                        expires_at=now + self._codec.long_lived_ttl,
                    )
        except NotFoundError as exc:
            logger.info(
                "refresh_rotation_race_lost", account_id=str(claims.account_id)
            )
            raise TokenInvalidError(_LOG_IN_AGAIN_MSG) from exc

        if pair is None:
            raise TokenInvalidError(_LOG_IN_AGAIN_MSG)
        return TokenRefreshResult(tokens=TokenPairResponse.from_pair(pair))

    async def logout(self, raw_long_lived_token: str) -> MessageResult:
        """Revoke one long-lived token. Idempotent.

        An expired but well-formed token is still revoked.

        Raises:
            TokenInvalidError: The token is not a long-lived token we signed.
        """
        try:
            self._codec.verify(raw_long_lived_token, TokenKind.LONG_LIVED)
        except TokenExpiredError:
            pass
        async with self._transaction("logout") as db:
            await SessionTokenRepository.revoke(db, fingerprint(raw_long_lived_token))
        return MessageResult(message=_LOGGED_OUT_MSG)

    async def logout_all(self, account_id: uuid.UUID) -> MessageResult:
        """Revoke every long-lived token of an account."""
        async with self._transaction("logout_all") as db:
            revoked = await SessionTokenRepository.revoke_all(db, account_id)
        logger.info("logout_all", account_id=str(account_id), revoked_sessions=revoked)
        return MessageResult(message=_LOGGED_OUT_ALL_MSG)

    # ===================================================================
    # Password reset and change
    # ===================================================================

    async def forgot_password(self, email: str) -> MessageResult:
        """Send a reset code if the account exists; same answer either way."""
        email = normalize_email(email)
        code: str | None = None
        async with self._transaction("forgot_password") as db:
            account = await AccountRepository.get_by_email(db, email)
            if account is not None:
                code = await VerificationCodeRepository.issue(
                    db,
                    email=email,
                    purpose=PURPOSE_PASSWORD_RESET,
                    now=self._clock(),
                    ttl=self._code_ttl,
                )
                display_name = account.display_name

        if code is not None:
            self._emails.dispatch(
                email, EmailPurpose.PASSWORD_RESET, code, display_name
            )
        return MessageResult(message=_FORGOT_PASSWORD_MSG)

    async def verify_reset_code(self, email: str, code: str) -> CodeCheckResult:
        """Check a reset code WITHOUT consuming it.

        The same code must still work for the following reset_password call.

        Raises:
            CodeInvalidOrExpiredError: Any mismatch.
        """
        email = normalize_email(email)
        async with self._transaction("verify_reset_code") as db:
            await VerificationCodeRepository.peek(
                db,
                email=email,
                code=code,
                purpose=PURPOSE_PASSWORD_RESET,
                now=self._clock(),
            )
        return CodeCheckResult(valid=True, message=_CODE_VALID_MSG)

    async def reset_password(
        self, email: str, code: str, new_password: str
    ) -> MessageResult:
        """Consume a reset code, store the new password, revoke all sessions.

        Raises:
            ValidationError: Weak new password.
            CodeInvalidOrExpiredError: Any mismatch, or no such account.
        """
        validate_password_strength(new_password)
        email = normalize_email(email)
        async with self._transaction("reset_password") as db:
            await VerificationCodeRepository.consume(
                db,
                email=email,
                code=code,
                purpose=PURPOSE_PASSWORD_RESET,
                now=self._clock(),
            )
            account = await AccountRepository.get_by_email(db, email)
            if account is None:
                raise CodeInvalidOrExpiredError()
            await AccountRepository.update_password_hash(
                db, account.id, self._hasher.hash(new_password)
            )
            revoked = await SessionTokenRepository.revoke_all(db, account.id)

        logger.info(
            "password_reset", account_id=str(account.id), revoked_sessions=revoked
        )
        return MessageResult(message=_PASSWORD_RESET_MSG)

    async def change_password(
        self,
        account_id: uuid.UUID,
        current_password: str,
        new_password: str,
    ) -> MessageResult:
        """Change password for an authenticated account, revoke all sessions.

        Raises:
            ValidationError: Weak new password.
            InvalidCredentialsError: Current password does not match.
        """
        validate_password_strength(new_password)
        async with self._transaction("change_password") as db:
            account = await AccountRepository.get_by_id(db, account_id)
            if account is None or not self._hasher.verify(
                current_password, account.password_hash
            ):
                raise InvalidCredentialsError("Incorrect current password.")
            await AccountRepository.update_password_hash(
                db, account.id, self._hasher.hash(new_password)
            )
            revoked = await SessionTokenRepository.revoke_all(db, account.id)

        logger.info(
            "password_changed", account_id=str(account_id), revoked_sessions=revoked
        )
        return MessageResult(message=_PASSWORD_CHANGED_MSG)

    # ===================================================================
    # Authorization helpers
    # ===================================================================

    def authenticate(self, access_token: str) -> TokenClaims:
        """Verify an access token (signature + expiry only).

        Raises:
            TokenExpiredError: Access token past its expiry.
            TokenInvalidError: Anything else wrong with the token.
        """
        return self._codec.verify(access_token, TokenKind.ACCESS)

    @staticmethod
    def require_role(claims: TokenClaims, role: str) -> None:
        """Require a role; admins satisfy every role check.

        Raises:
            InsufficientPermissionsError: The caller lacks the role.
        """
        if claims.role != role and claims.role != ROLE_ADMIN:
            raise InsufficientPermissionsError()

    async def get_profile(self, account_id: uuid.UUID) -> AccountProfile:
        """Public profile of an account.

        Raises:
            NotFoundError: No such account.
        """
        async with self._transaction("get_profile") as db:
            account = await AccountRepository.get_by_id(db, account_id)
            if account is None:
                raise NotFoundError("Account")
            return AccountProfile.model_validate(account)

    async def authenticate_api_key(
        self, raw_key: str | None, required_permissions: Iterable[str] = ()
    ) -> ApiKey:
        """Resolve an API key and check it grants every required permission.

        Raises:
            TokenInvalidError: Missing, unknown, or disabled key.
            InsufficientPermissionsError: A required permission is missing.
        """
        if not raw_key:
            raise TokenInvalidError("API key is missing.")
        async with self._transaction("authenticate_api_key") as db:
            api_key = await ApiKeyRepository.get_active_by_key(db, raw_key)
            if api_key is None:
                raise TokenInvalidError("Invalid API key.")
            if not set(required_permissions) <= set(api_key.permissions):
                raise InsufficientPermissionsError(
                    "This API key does not have the required permissions."
                )
            await ApiKeyRepository.touch_last_used(db, api_key, self._clock())
        return api_key

    # ===================================================================
    # Housekeeping
    # ===================================================================

    async def cleanup(self) -> CleanupResult:
        """Delete expired token records and verification codes.

        Never required for correctness: every read also checks expiry.
        """
        async with self._transaction("cleanup") as db:
            now = self._clock()
            deleted_tokens = await SessionTokenRepository.sweep_expired(db, now=now)
            deleted_codes = await VerificationCodeRepository.sweep_expired(
                db, now=now
            )
        return CleanupResult(deleted_tokens=deleted_tokens, deleted_codes=deleted_codes)

    async def aclose(self) -> None:
        """Wait for outstanding email sends."""
        await self._emails.drain()


def create_authentication_engine(
    settings: Settings,
    *,
    email_sender: EmailSender | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    clock: Clock = utc_now,
) -> AuthenticationEngine:
    """Wire an AuthenticationEngine from settings.

    Fails fast with ConfigurationError when the signing secrets are unsafe.
    """
    if session_factory is None:
        session_factory = create_session_factory(create_engine(settings))
    codec = TokenCodec(TokenSecrets.from_settings(settings), clock=clock)
    return AuthenticationEngine(
        session_factory,
        codec=codec,
        hasher=BcryptPasswordHasher(rounds=settings.bcrypt_rounds),
        emails=EmailDispatcher(email_sender or ResendEmailSender(settings)),
        code_ttl=timedelta(minutes=settings.verification_code_ttl_minutes),
        clock=clock,
    )
