"""
Integration tests for UserRepository and AccountService against an
in-memory SQLite database.
"""
import pytest

from account_service.core.exceptions import ConflictError, NotFoundError, UnauthorizedError
from account_service.models.user import Subscription
from tests.factories import TEST_PASSWORD


async def _create(user_repository, db_session, email="a@x.com", verify_token="tok-1"):
    return await user_repository.create(
        db_session,
        email=email,
        hashed_password="hashed",
        verify_token=verify_token,
        subscription=Subscription.FREE,
    )


class TestUserRepository:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_create_and_lookup(self, user_repository, db_session):
        user = await _create(user_repository, db_session)

        assert user.id is not None
        assert user.verified is False
        assert user.session_token is None

        assert (await user_repository.get_by_email(db_session, "a@x.com")).id == user.id
        assert (await user_repository.get_by_verify_token(db_session, "tok-1")).id == user.id
        assert (await user_repository.get_by_id(db_session, user.id)).email == "a@x.com"
        assert await user_repository.get_by_email(db_session, "b@x.com") is None
        assert await user_repository.get_by_verify_token(db_session, "") is None

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, user_repository, db_session):
        await _create(user_repository, db_session)

        with pytest.raises(ConflictError):
            await _create(user_repository, db_session, verify_token="tok-2")

        # The session stays usable after the rejected insert
        assert await user_repository.get_by_email(db_session, "a@x.com") is not None

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_session_token_set_and_clear(self, user_repository, db_session):
        user = await _create(user_repository, db_session)

        await user_repository.set_session_token(db_session, user.id, "session-1")
        assert (await user_repository.get_by_id(db_session, user.id)).session_token == "session-1"

        await user_repository.set_session_token(db_session, user.id, "session-2")
        assert (await user_repository.get_by_id(db_session, user.id)).session_token == "session-2"

        await user_repository.set_session_token(db_session, user.id, None)
        assert (await user_repository.get_by_id(db_session, user.id)).session_token is None

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_set_verified_clears_token(self, user_repository, db_session):
        user = await _create(user_repository, db_session)

        await user_repository.set_verified(db_session, user.id, True, None)

        stored = await user_repository.get_by_id(db_session, user.id)
        assert stored.verified is True
        assert stored.verify_token is None
        assert await user_repository.get_by_verify_token(db_session, "tok-1") is None

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_set_verified_refuses_to_keep_token(self, user_repository, db_session):
        user = await _create(user_repository, db_session)

        with pytest.raises(ValueError):
            await user_repository.set_verified(db_session, user.id, True, "tok-1")

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_set_verified_with_expected_token_applies_once(self, user_repository, db_session):
        user = await _create(user_repository, db_session)

        assert await user_repository.set_verified(db_session, user.id, True, None, expected_token="other") is False
        assert (await user_repository.get_by_id(db_session, user.id)).verified is False

        assert await user_repository.set_verified(db_session, user.id, True, None, expected_token="tok-1") is True
        assert await user_repository.set_verified(db_session, user.id, True, None, expected_token="tok-1") is False
        assert (await user_repository.get_by_id(db_session, user.id)).verified is True

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_set_subscription(self, user_repository, db_session):
        user = await _create(user_repository, db_session)

        updated = await user_repository.set_subscription(db_session, user.id, Subscription.PRO)

        assert updated.subscription == Subscription.PRO
        assert await user_repository.set_subscription(db_session, 9999, Subscription.PRO) is None

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_set_avatar(self, user_repository, db_session):
        user = await _create(user_repository, db_session)

        await user_repository.set_avatar(db_session, user.id, "/avatars/x.png")

        assert (await user_repository.get_by_id(db_session, user.id)).avatar_url == "/avatars/x.png"


class TestAccountLifecycle:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_signup_verify_login_logout(self, account_service, dispatcher, email_service, db_session):
        profile = await account_service.signup(db_session, email="Ann@X.com", password=TEST_PASSWORD, name="Ann")
        assert profile == {"email": "ann@x.com", "subscription": "free"}

        await dispatcher.drain()
        [token] = email_service.tokens_for("ann@x.com")

        with pytest.raises(UnauthorizedError):
            await account_service.login(db_session, email="ann@x.com", password=TEST_PASSWORD)

        await account_service.verify_email(db_session, token)

        # Tokens are single use
        with pytest.raises(NotFoundError):
            await account_service.verify_email(db_session, token)

        result = await account_service.login(db_session, email="ANN@x.com", password=TEST_PASSWORD)
        user = await account_service.authenticate(db_session, result["token"])
        assert user.email == "ann@x.com"

        await account_service.logout(db_session, user.id)
        await account_service.logout(db_session, user.id)

        with pytest.raises(UnauthorizedError):
            await account_service.authenticate(db_session, result["token"])

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_new_login_replaces_previous_session(self, account_service, user_repository, db_session):
        await account_service.signup(db_session, email="a@x.com", password=TEST_PASSWORD)
        user = await user_repository.get_by_email(db_session, "a@x.com")
        await account_service.verify_email(db_session, user.verify_token)

        first = (await account_service.login(db_session, email="a@x.com", password=TEST_PASSWORD))["token"]
        second = (await account_service.login(db_session, email="a@x.com", password=TEST_PASSWORD))["token"]

        assert first != second
        with pytest.raises(UnauthorizedError):
            await account_service.authenticate(db_session, first)
        assert (await account_service.authenticate(db_session, second)).id == user.id

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_duplicate_signup_keeps_single_account(self, account_service, user_repository, db_session):
        await account_service.signup(db_session, email="a@x.com", password=TEST_PASSWORD)

        with pytest.raises(ConflictError):
            await account_service.signup(db_session, email=" A@x.COM", password="other-password")

        user = await user_repository.get_by_email(db_session, "a@x.com")
        assert account_service.password_hasher.verify(TEST_PASSWORD, user.hashed_password)
