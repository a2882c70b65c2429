"""
Account-related Pydantic schemas for request/response validation.
"""
from typing import Generic, Optional, TypeVar
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ..models.user import Subscription

T = TypeVar("T")


class SignupRequest(BaseModel):
    """Signup request schema."""

    email: EmailStr = Field(..., description="Account email address (must be unique)")
    password: str = Field(..., min_length=6, max_length=72, description="Account password")
    subscription: Optional[Subscription] = Field(None, description="Initial subscription tier")
    name: Optional[str] = Field(None, max_length=255, description="Display name")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "user@example.com",
                "password": "securepassword123",
                "subscription": "free",
                "name": "Jane",
            }
        }
    )


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr = Field(..., description="Account email address")
    password: str = Field(..., min_length=1, description="Account password")


class SubscriptionUpdateRequest(BaseModel):
    subscription: Subscription


class ResendVerificationRequest(BaseModel):
    email: EmailStr


class UserPublic(BaseModel):
    """The only account fields exposed to clients."""

    email: EmailStr
    subscription: Subscription


class LoginData(BaseModel):
    token: str = Field(..., description="Session token (JWT)")
    user: UserPublic


class AvatarData(UserPublic):
    avatarURL: str


class ApiResponse(BaseModel, Generic[T]):
    """Response envelope: a status classification, its HTTP code and a payload."""

    status: str
    code: int
    data: Optional[T] = None
    message: Optional[str] = None
