"""
User repository implementation following the Repository pattern.
Every write is a single statement followed by a commit, so concurrent
requests are ordered by the database rather than by the application.
"""

from typing import Any, Dict, Optional
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
import structlog

from ..core.exceptions import ConflictError
from ..interfaces.repository_interface import IUserRepository
from ..models.user import User, Subscription

logger = structlog.get_logger()


class UserRepository(IUserRepository):
    """Repository for user data access operations."""

    async def _get_one(self, db: AsyncSession, *criteria) -> Optional[User]:
        query = select(User).where(*criteria).execution_options(populate_existing=True)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        """
        Get user by (already normalized) email.

        Args:
            db: Database session
            email: Normalized email address

        Returns:
            User instance or None if not found
        """
        return await self._get_one(db, User.email == email)

    async def get_by_verify_token(self, db: AsyncSession, token: str) -> Optional[User]:
        """Get the user holding an outstanding verification token."""
        if not token:
            return None
        return await self._get_one(db, User.verify_token == token)

    async def get_by_id(self, db: AsyncSession, user_id: int) -> Optional[User]:
        return await self._get_one(db, User.id == user_id)

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
        Create a new unverified user.

        The unique constraint on email is the authoritative duplicate guard;
        a violation is reported as ConflictError.

        Returns:
            Created user instance
        """
        user = User(
            email=email,
            name=name,
            hashed_password=hashed_password,
            subscription=subscription,
            verified=False,
            verify_token=verify_token,
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.warning("User creation rejected by unique constraint", error=str(e.orig))
            raise ConflictError()

        await db.refresh(user)
        logger.info("User created", user_id=user.id)
        return user

    async def _update(self, db: AsyncSession, user_id: int, values: Dict[str, Any], *criteria) -> int:
        result = await db.execute(
            update(User).where(User.id == user_id, *criteria).values(**values)
        )
        await db.commit()
        return result.rowcount

    async def set_session_token(self, db: AsyncSession, user_id: int, token: Optional[str]) -> None:
        """Store the sole session token; None clears it."""
        await self._update(db, user_id, {"session_token": token})
        logger.debug("Session token updated", user_id=user_id, cleared=token is None)

    async def set_subscription(
        self,
        db: AsyncSession,
        user_id: int,
        subscription: Subscription,
    ) -> Optional[User]:
        """
        Update the subscription tier.

        Returns:
            Updated user instance or None if the user does not exist
        """
        if not await self._update(db, user_id, {"subscription": subscription}):
            return None
        return await self.get_by_id(db, user_id)

    async def set_avatar(self, db: AsyncSession, user_id: int, avatar_url: str) -> None:
        await self._update(db, user_id, {"avatar_url": avatar_url})

    async def set_verified(
        self,
        db: AsyncSession,
        user_id: int,
        verified: bool,
        verify_token: Optional[str],
        expected_token: Optional[str] = None,
    ) -> bool:
        """
        Set the verification flag together with the token in one statement.

        Args:
            expected_token: When given, the row only changes if it still holds
                this verification token

        Returns:
            True if the account was updated
        """
        if verified and verify_token is not None:
            raise ValueError("A verified account cannot keep a verification token")

        criteria = [] if expected_token is None else [User.verify_token == expected_token]
        changed = await self._update(
            db, user_id, {"verified": verified, "verify_token": verify_token}, *criteria
        )
        return changed > 0
