"""
Dependency injection for FastAPI endpoints.
Builds the account service from the collaborators held on app.state and
resolves the current account from the bearer token.
"""
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.config import Settings
from ..core.database import get_db
from ..core.exceptions import UnauthorizedError
from ..core.security import PasswordHasher, VerificationTokenGenerator
from ..models.user import User
from ..repositories.user_repository import UserRepository
from ..services.account_service import AccountService
from ..services.avatar_service import IAvatarStorage
from ..services.notification_service import NotificationDispatcher
from ..services.token_service import TokenService

logger = structlog.get_logger()
security = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_notification_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.notification_dispatcher


def get_avatar_storage(request: Request) -> IAvatarStorage:
    return request.app.state.avatar_storage


def get_account_service(
    settings: Settings = Depends(get_app_settings),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    avatar_storage: IAvatarStorage = Depends(get_avatar_storage),
) -> AccountService:
    return AccountService(
        user_repository=UserRepository(),
        password_hasher=PasswordHasher(rounds=settings.BCRYPT_ROUNDS),
        token_generator=VerificationTokenGenerator(nbytes=settings.VERIFY_TOKEN_BYTES),
        token_service=TokenService(settings),
        notification_dispatcher=dispatcher,
        avatar_storage=avatar_storage,
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
    account_service: AccountService = Depends(get_account_service),
) -> User:
    """
    Get current authenticated user from the bearer token.

    Raises:
        UnauthorizedError: If the header is missing or the token is not the
            account's live session token
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Not authorized")
    return await account_service.authenticate(db, credentials.credentials)
