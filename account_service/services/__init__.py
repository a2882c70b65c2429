"""
Service layer for the account service.
"""
from .account_service import AccountService
from .avatar_service import LocalAvatarStorage
from .notification_service import EmailService, NotificationDispatcher
from .token_service import TokenService

__all__ = [
    "AccountService",
    "EmailService",
    "LocalAvatarStorage",
    "NotificationDispatcher",
    "TokenService",
]
