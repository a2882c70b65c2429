"""
Pytest configuration and fixtures for account service testing.
Provides settings, an in-memory database, a recording email service and
the ASGI client, with proper cleanup.
"""
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from account_service.core.config import Settings
from account_service.core.database import create_engine, create_session_factory, init_models
from account_service.core.security import PasswordHasher, VerificationTokenGenerator
from account_service.main import create_app
from account_service.repositories.user_repository import UserRepository
from account_service.services.account_service import AccountService
from account_service.services.avatar_service import LocalAvatarStorage
from account_service.services.notification_service import NotificationDispatcher
from account_service.services.token_service import TokenService

TEST_SIGNING_KEY = "t3st-signing-key-for-the-account-service-suite"
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class RecordingEmailService:
    """Email service double that records every verification email."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    async def send_verification(self, verify_token: str, email: str, name: Optional[str] = None) -> None:
        self.sent.append({"token": verify_token, "email": email, "name": name})
        if self.fail:
            raise ConnectionError("SMTP server unavailable")

    def tokens_for(self, email: str) -> list:
        return [message["token"] for message in self.sent if message["email"] == email]


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Test settings; ignores any .env file and never talks to SMTP."""
    return Settings(
        _env_file=None,
        SECRET_KEY=TEST_SIGNING_KEY,
        ENVIRONMENT="test",
        DATABASE_URL=TEST_DATABASE_URL,
        BCRYPT_ROUNDS=4,
        SMTP_HOST=None,
        AVATAR_DIR=str(tmp_path / "avatars"),
    )


@pytest_asyncio.fixture
async def test_engine(settings):
    """Fresh in-memory database per test."""
    engine = create_engine(settings)
    await init_models(engine)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def file_session_factory(settings, tmp_path):
    """Session factory over a file-backed database; each session gets its own connection."""
    file_settings = settings.model_copy(
        update={"DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'accounts.db'}"}
    )
    engine = create_engine(file_settings)
    await init_models(engine)

    yield create_session_factory(engine)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = create_session_factory(test_engine)
    async with session_factory() as session:
        yield session


@pytest.fixture
def email_service() -> RecordingEmailService:
    return RecordingEmailService()


@pytest.fixture
def dispatcher(email_service) -> NotificationDispatcher:
    return NotificationDispatcher(email_service)


@pytest.fixture
def user_repository() -> UserRepository:
    return UserRepository()


@pytest.fixture
def account_service(settings, user_repository, dispatcher) -> AccountService:
    """AccountService wired to real collaborators and the recording email service."""
    return AccountService(
        user_repository=user_repository,
        password_hasher=PasswordHasher(rounds=settings.BCRYPT_ROUNDS),
        token_generator=VerificationTokenGenerator(),
        token_service=TokenService(settings),
        notification_dispatcher=dispatcher,
        avatar_storage=LocalAvatarStorage(settings),
    )


@pytest.fixture
def app(settings, test_engine, dispatcher):
    application = create_app(settings, engine=test_engine)
    application.state.notification_dispatcher = dispatcher
    return application


@pytest_asyncio.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
