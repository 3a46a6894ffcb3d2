import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from authcore.core.email import EmailDispatcher, EmailPurpose
from authcore.core.errors import DeliveryError
from authcore.core.passwords import BcryptPasswordHasher
from authcore.core.tokens import TokenCodec, TokenSecrets
from authcore.models.base import Base
from authcore.services.authentication import AuthenticationEngine

# In-memory SQLite shared across connections of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Security: test-only secrets. Production reads them from the environment.
TEST_ACCESS_SECRET = "test-access-secret-that-is-at-least-32-chars"  # nosec B105
TEST_LONG_LIVED_SECRET = "test-long-lived-secret-at-least-32-characters"  # nosec B105

TEST_EMAIL = "alice@example.com"
TEST_PASSWORD = "Str0ngPassword"  # nosec B105
TEST_DISPLAY_NAME = "Alice"


class FrozenClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(UTC).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingEmailSender:
    """EmailSender that records sends instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, EmailPurpose, str | None, str]] = []
        self.fail = False

    async def send(
        self,
        to_address: str,
        purpose: EmailPurpose,
        code: str | None,
        display_name: str,
    ) -> None:
        if self.fail:
            raise DeliveryError()
        self.sent.append((to_address, purpose, code, display_name))

    def last_code(self, to_address: str, purpose: EmailPurpose) -> str:
        for address, sent_purpose, code, _ in reversed(self.sent):
            if address == to_address and sent_purpose is purpose and code:
                return code
        raise AssertionError(f"No {purpose.value} email sent to {to_address}")


# =============================================================================
# Database
# =============================================================================


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test, schema created from the models."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Session for repository tests; rolled back afterwards."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# =============================================================================
# Engine collaborators
# =============================================================================


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def token_secrets() -> TokenSecrets:
    return TokenSecrets(
        access_secret=TEST_ACCESS_SECRET,
        long_lived_secret=TEST_LONG_LIVED_SECRET,
    )


@pytest.fixture
def codec(token_secrets: TokenSecrets, clock: FrozenClock) -> TokenCodec:
    return TokenCodec(token_secrets, clock=clock)


@pytest.fixture
def hasher() -> BcryptPasswordHasher:
    # Minimum cost factor keeps the suite fast
    return BcryptPasswordHasher(rounds=4)


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def auth_engine(
    session_factory: async_sessionmaker[AsyncSession],
    codec: TokenCodec,
    hasher: BcryptPasswordHasher,
    email_sender: RecordingEmailSender,
    clock: FrozenClock,
) -> AuthenticationEngine:
    return AuthenticationEngine(
        session_factory,
        codec=codec,
        hasher=hasher,
        emails=EmailDispatcher(email_sender),
        clock=clock,
    )


@pytest_asyncio.fixture
async def verified_account(
    auth_engine: AuthenticationEngine, email_sender: RecordingEmailSender
) -> uuid.UUID:
    """Register and verify TEST_EMAIL; returns the account id."""
    registration = await auth_engine.register(
        TEST_EMAIL, TEST_PASSWORD, TEST_DISPLAY_NAME
    )
    await auth_engine.aclose()
    code = email_sender.last_code(TEST_EMAIL, EmailPurpose.REGISTRATION)
    await auth_engine.verify_email(TEST_EMAIL, code)
    await auth_engine.aclose()
    return registration.account_id
