"""
Repository implementations for data access abstraction.
"""

from .user_repository import UserRepository

__all__ = ["UserRepository"]
