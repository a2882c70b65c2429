"""
User account model: credentials, verification state, subscription tier,
the single live session token and the avatar reference.
"""
import enum
from sqlalchemy import Column, String, Boolean, Enum, Text, Index

from .base import BaseModel


class Subscription(str, enum.Enum):
    """Subscription plan levels."""

    FREE = "free"
    PRO = "pro"
    BUSINESS = "business"


DEFAULT_SUBSCRIPTION = Subscription.FREE


def normalize_email(email: str) -> str:
    """Emails are compared case-insensitively; store and look up the lowered form."""
    return email.strip().lower()


class User(BaseModel):
    """User account."""

    __tablename__ = "users"

    email = Column(String(320), nullable=False, unique=True)
    name = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    subscription = Column(
        Enum(
            Subscription,
            name="subscription_tier",
            values_callable=lambda tiers: [tier.value for tier in tiers],
        ),
        nullable=False,
        default=DEFAULT_SUBSCRIPTION,
    )

    # Verification; verify_token is cleared once verified is set
    verified = Column(Boolean, nullable=False, default=False)
    verify_token = Column(String(128), nullable=True, unique=True)

    # At most one live session token per account
    session_token = Column(Text, nullable=True)

    avatar_url = Column(String(512), nullable=True)

    __table_args__ = (
        Index("idx_users_verified", "verified"),
    )

    def public_profile(self) -> dict:
        """The only account fields ever returned to clients."""
        return {"email": self.email, "subscription": Subscription(self.subscription).value}

    def __repr__(self) -> str:
        return f"<User(id={self.id}, verified={self.verified})>"
