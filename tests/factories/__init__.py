"""Test data factories for account service testing."""

from .user_factory import UserFactory, TEST_PASSWORD

__all__ = [
    "UserFactory",
    "TEST_PASSWORD",
]
