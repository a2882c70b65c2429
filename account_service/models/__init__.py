"""
Database models for the account service.
"""
from .base import Base, BaseModel, TimestampMixin
from .user import User, Subscription, DEFAULT_SUBSCRIPTION, normalize_email

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "User",
    "Subscription",
    "DEFAULT_SUBSCRIPTION",
    "normalize_email",
]
