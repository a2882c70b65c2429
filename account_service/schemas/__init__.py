"""
Pydantic schemas for request/response validation.
"""

from .user_schemas import (
    ApiResponse,
    AvatarData,
    LoginData,
    LoginRequest,
    ResendVerificationRequest,
    SignupRequest,
    SubscriptionUpdateRequest,
    UserPublic,
)

__all__ = [
    "ApiResponse",
    "AvatarData",
    "LoginData",
    "LoginRequest",
    "ResendVerificationRequest",
    "SignupRequest",
    "SubscriptionUpdateRequest",
    "UserPublic",
]
