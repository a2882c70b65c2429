"""
Repository interfaces for dependency abstraction.
Defines the credential store contract the account lifecycle relies on.
"""

from typing import Optional, Protocol, runtime_checkable
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.user import User, Subscription


@runtime_checkable
class IUserRepository(Protocol):
    """Protocol for credential store operations.

    Implementations must enforce email uniqueness at the storage layer and
    raise ConflictError when a create collides with an existing email.
    """

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        ...

    async def get_by_verify_token(self, db: AsyncSession, token: str) -> Optional[User]:
        ...

    async def get_by_id(self, db: AsyncSession, user_id: int) -> Optional[User]:
        ...

    async def create(
        self,
        db: AsyncSession,
        email: str,
        hashed_password: str,
        verify_token: str,
        subscription: Subscription,
        name: Optional[str] = None,
    ) -> User:
        """
        Persist a new unverified account.

        Raises:
            ConflictError: If the email is already taken
        """
        ...

    async def set_session_token(self, db: AsyncSession, user_id: int, token: Optional[str]) -> None:
        ...

    async def set_subscription(self, db: AsyncSession, user_id: int, subscription: Subscription) -> Optional[User]:
        ...

    async def set_avatar(self, db: AsyncSession, user_id: int, avatar_url: str) -> None:
        ...

    async def set_verified(
        self,
        db: AsyncSession,
        user_id: int,
        verified: bool,
        verify_token: Optional[str],
        expected_token: Optional[str] = None,
    ) -> bool:
        """
        Update verification state; with expected_token the write only applies
        while the account still holds that token.

        Returns:
            True if a row changed
        """
        ...
