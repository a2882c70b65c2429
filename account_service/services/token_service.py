"""
Token service focused solely on session JWT operations.
Mints and decodes the signed, time-bounded session credential.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from jose import ExpiredSignatureError, JWTError, jwt
import structlog

from ..core.config import Settings
from ..core.exceptions import UnauthorizedError

logger = structlog.get_logger()

SESSION_TOKEN_TYPE = "session"


class TokenService:
    """Service responsible for session token operations."""

    def __init__(self, settings: Settings):
        self.secret_key = settings.SECRET_KEY
        self.algorithm = settings.ALGORITHM
        self.default_ttl = timedelta(minutes=settings.SESSION_TOKEN_EXPIRE_MINUTES)

    def issue(self, user_id: int, ttl: Optional[timedelta] = None) -> str:
        """
        Create a signed session token bound to an account.

        Args:
            user_id: Account identifier
            ttl: Lifetime; defaults to SESSION_TOKEN_EXPIRE_MINUTES

        Returns:
            Encoded JWT
        """
        issued_at = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "iat": issued_at,
            "exp": issued_at + (ttl or self.default_ttl),
            "type": SESSION_TOKEN_TYPE,
            # Distinguishes tokens minted within the same second
            "jti": secrets.token_urlsafe(16),
        }
        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.debug("Session token issued", user_id=user_id)
        return token

    def decode(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate a session token.

        Raises:
            UnauthorizedError: If the signature is invalid, the token expired
                or it is not a session token
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            logger.debug("Session token expired")
            raise UnauthorizedError("Not authorized")
        except JWTError as e:
            logger.debug("Session token rejected", error=str(e))
            raise UnauthorizedError("Not authorized")

        if payload.get("type") != SESSION_TOKEN_TYPE or not payload.get("sub"):
            raise UnauthorizedError("Not authorized")
        return payload

    def user_id_from(self, token: str) -> int:
        payload = self.decode(token)
        try:
            return int(payload["sub"])
        except (TypeError, ValueError):
            raise UnauthorizedError("Not authorized")
