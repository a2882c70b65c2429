"""
Account lifecycle service: signup, login, logout, email verification,
subscription and avatar updates, and session token authentication.

Every state change goes through the repository as a single atomic write;
no locks are held across awaits.
"""

import asyncio
import secrets
from typing import Any, Dict, Optional, Union
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.exceptions import (
    AccountServiceError,
    BadRequestError,
    ConflictError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
)
from ..core.security import PasswordHasher, VerificationTokenGenerator
from ..interfaces.repository_interface import IUserRepository
from ..models.user import DEFAULT_SUBSCRIPTION, Subscription, User, normalize_email
from .avatar_service import IAvatarStorage
from .notification_service import NotificationDispatcher, mask_email
from .token_service import TokenService

logger = structlog.get_logger()


class AccountService:
    """Service responsible for the account state machine and session lifecycle."""

    def __init__(
        self,
        user_repository: IUserRepository,
        password_hasher: PasswordHasher,
        token_generator: VerificationTokenGenerator,
        token_service: TokenService,
        notification_dispatcher: NotificationDispatcher,
        avatar_storage: IAvatarStorage,
    ):
        self.user_repository = user_repository
        self.password_hasher = password_hasher
        self.token_generator = token_generator
        self.token_service = token_service
        self.notification_dispatcher = notification_dispatcher
        self.avatar_storage = avatar_storage

    @staticmethod
    def _parse_subscription(value: Union[str, Subscription]) -> Subscription:
        try:
            return Subscription(value)
        except ValueError:
            allowed = ", ".join(tier.value for tier in Subscription)
            raise BadRequestError(f"Subscription must be one of: {allowed}")

    def _notify_verification(self, user: User) -> None:
        """Hand the verification email to the dispatcher; never raises."""
        try:
            self.notification_dispatcher.dispatch_verification(
                user.verify_token, user.email, user.name
            )
        except Exception as e:
            logger.error(
                "Failed to dispatch verification email",
                user_id=user.id,
                error=str(e),
            )

    async def signup(
        self,
        db: AsyncSession,
        email: str,
        password: str,
        subscription: Optional[Union[str, Subscription]] = None,
        name: Optional[str] = None,
    ) -> Dict[str, str]:
        """
        Create an unverified account and send its verification email.

        Args:
            db: Database session
            email: Email address (normalized before use)
            password: Plaintext password, hashed before storage
            subscription: Optional tier, defaults to free
            name: Optional display name for the email greeting

        Returns:
            Public profile {email, subscription}

        Raises:
            ConflictError: If an account already uses the email
        """
        email = normalize_email(email)
        try:
            tier = DEFAULT_SUBSCRIPTION if subscription is None else self._parse_subscription(subscription)

            # Advisory pre-check; the unique constraint is the real guard
            if await self.user_repository.get_by_email(db, email):
                logger.info("Signup rejected, email in use", email=mask_email(email))
                raise ConflictError()

            hashed_password = await asyncio.to_thread(self.password_hasher.hash, password)
            user = await self.user_repository.create(
                db,
                email=email,
                hashed_password=hashed_password,
                verify_token=self.token_generator.generate(),
                subscription=tier,
                name=name,
            )

        except AccountServiceError:
            raise
        except Exception as e:
            logger.error("Signup failed", email=mask_email(email), error=str(e))
            raise InternalError("Signup failed")

        self._notify_verification(user)
        logger.info("User signed up", user_id=user.id)
        return user.public_profile()

    async def login(self, db: AsyncSession, email: str, password: str) -> Dict[str, Any]:
        """
        Authenticate with email and password and start the only live session.

        Unknown email, wrong password and unverified account all fail the
        same way.

        Returns:
            {"token": session token, "user": {email, subscription}}

        Raises:
            UnauthorizedError: On any credential or verification failure
        """
        try:
            user = await self.user_repository.get_by_email(db, normalize_email(email))
            password_ok = user is not None and await asyncio.to_thread(
                self.password_hasher.verify, password, user.hashed_password
            )

            if not user or not password_ok or not user.verified:
                reason = (
                    "user_not_found" if not user
                    else "invalid_password" if not password_ok
                    else "not_verified"
                )
                logger.info("Login failed", email=mask_email(email), reason=reason)
                raise UnauthorizedError()

            token = self.token_service.issue(user.id)
            # Overwrites any previous session token
            await self.user_repository.set_session_token(db, user.id, token)

        except AccountServiceError:
            raise
        except Exception as e:
            logger.error("Login failed unexpectedly", email=mask_email(email), error=str(e))
            raise InternalError("Login failed")

        logger.info("User logged in", user_id=user.id)
        return {"token": token, "user": user.public_profile()}

    async def logout(self, db: AsyncSession, user_id: int) -> None:
        """Clear the session token. Safe to repeat."""
        await self.user_repository.set_session_token(db, user_id, None)
        logger.info("User logged out", user_id=user_id)

    async def authenticate(self, db: AsyncSession, token: str) -> User:
        """
        Resolve a bearer token to its account.

        The token must decode, be unexpired, and still be the account's
        stored session token.

        Raises:
            UnauthorizedError: If any of the above does not hold
        """
        user_id = self.token_service.user_id_from(token)
        user = await self.user_repository.get_by_id(db, user_id)

        if (
            user is None
            or user.session_token is None
            or not secrets.compare_digest(user.session_token, token)
        ):
            raise UnauthorizedError("Not authorized")
        return user

    def get_current(self, user: User) -> Dict[str, str]:
        return user.public_profile()

    async def update_subscription(
        self,
        db: AsyncSession,
        user_id: int,
        subscription: Union[str, Subscription],
    ) -> Dict[str, str]:
        """
        Change the subscription tier.

        Raises:
            BadRequestError: If the tier is not one of the known plans
            NotFoundError: If the account no longer exists
        """
        tier = self._parse_subscription(subscription)
        user = await self.user_repository.set_subscription(db, user_id, tier)
        if user is None:
            raise NotFoundError()

        logger.info("Subscription updated", user_id=user_id, subscription=tier.value)
        return user.public_profile()

    async def update_avatar(
        self,
        db: AsyncSession,
        user: User,
        filename: Optional[str],
        content: bytes,
        content_type: Optional[str],
    ) -> Dict[str, str]:
        """
        Store the uploaded image and remember its URL on the account.
        The stored file is removed again if the account cannot be updated.
        """
        avatar_url = await self.avatar_storage.save(user.id, filename, content, content_type)
        try:
            await self.user_repository.set_avatar(db, user.id, avatar_url)
        except Exception as e:
            logger.error("Failed to record avatar", user_id=user.id, error=str(e))
            await self.avatar_storage.delete(avatar_url)
            raise

        return {**user.public_profile(), "avatarURL": avatar_url}

    async def verify_email(self, db: AsyncSession, token: str) -> None:
        """
        Mark the account holding the token as verified and consume the token.

        Raises:
            NotFoundError: If no account holds the token, including reuse and
                a concurrent verification that consumed it first
        """
        user = await self.user_repository.get_by_verify_token(db, token)
        if user is None:
            logger.info("Verification token not recognized")
            raise NotFoundError()

        # Only the writer that still finds the token succeeds
        if not await self.user_repository.set_verified(db, user.id, True, None, expected_token=token):
            logger.info("Verification token already consumed", user_id=user.id)
            raise NotFoundError()

        logger.info("Email verified", user_id=user.id)

    async def resend_verification_by_token(self, db: AsyncSession, token: str) -> None:
        """
        Re-send the verification email for an outstanding token.

        Raises:
            NotFoundError: If no account holds the token
            BadRequestError: If the account is already verified
        """
        user = await self.user_repository.get_by_verify_token(db, token)
        if user is None:
            raise NotFoundError()
        # Verification clears the token, so this only guards decoupled updates
        if user.verified:
            raise BadRequestError("Verification has already been passed")

        self._notify_verification(user)
        logger.info("Verification email re-sent", user_id=user.id)

    async def resend_verification(self, db: AsyncSession, email: str) -> None:
        """
        Re-send the verification email, looking the account up by email.

        Raises:
            NotFoundError: If no account uses the email
            BadRequestError: If the account is already verified
        """
        user = await self.user_repository.get_by_email(db, normalize_email(email))
        if user is None:
            raise NotFoundError()
        if user.verified:
            raise BadRequestError("Verification has already been passed")

        self._notify_verification(user)
        logger.info("Verification email re-sent", user_id=user.id)
