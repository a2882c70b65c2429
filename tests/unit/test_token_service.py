"""
Unit tests for TokenService (session JWTs).
"""
from datetime import timedelta

import pytest
from jose import jwt

from account_service.core.exceptions import UnauthorizedError
from account_service.services.token_service import TokenService


class TestTokenService:

    @pytest.fixture
    def token_service(self, settings):
        return TokenService(settings)

    @pytest.mark.unit
    def test_issue_binds_account_and_two_hour_expiry(self, token_service, settings):
        token = token_service.issue(42)
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])

        assert payload["sub"] == "42"
        assert payload["type"] == "session"
        assert payload["exp"] - payload["iat"] == 2 * 60 * 60

    @pytest.mark.unit
    def test_tokens_issued_back_to_back_differ(self, token_service):
        assert token_service.issue(1) != token_service.issue(1)

    @pytest.mark.unit
    def test_user_id_from_valid_token(self, token_service):
        assert token_service.user_id_from(token_service.issue(7)) == 7

    @pytest.mark.unit
    def test_expired_token_rejected(self, token_service):
        token = token_service.issue(7, ttl=timedelta(seconds=-10))

        with pytest.raises(UnauthorizedError) as exc_info:
            token_service.decode(token)

        assert exc_info.value.status_code == 401

    @pytest.mark.unit
    def test_token_signed_with_other_key_rejected(self, token_service, settings):
        forged = jwt.encode(
            {"sub": "7", "type": "session"},
            "another-signing-key-that-is-long-enough-000",
            algorithm=settings.ALGORITHM,
        )

        with pytest.raises(UnauthorizedError):
            token_service.decode(forged)

    @pytest.mark.unit
    def test_non_session_token_rejected(self, token_service, settings):
        other = jwt.encode(
            {"sub": "7", "type": "email_verification"},
            settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
        )

        with pytest.raises(UnauthorizedError):
            token_service.decode(other)

    @pytest.mark.unit
    def test_garbage_token_rejected(self, token_service):
        with pytest.raises(UnauthorizedError):
            token_service.user_id_from("not.a.jwt")
