"""
Interfaces for dependency abstraction.
"""
from .repository_interface import IUserRepository

__all__ = ["IUserRepository"]
