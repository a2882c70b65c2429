import secrets
from passlib.context import CryptContext
import structlog

logger = structlog.get_logger()


class PasswordHasher:
    """One-way salted hashing of account passwords (bcrypt)."""

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        """Generate password hash"""
        return self._context.hash(password)

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash; malformed hashes never match"""
        try:
            return self._context.verify(plain_password, hashed_password)
        except (ValueError, TypeError) as e:
            logger.warning("Password hash could not be verified", error=str(e))
            return False


class VerificationTokenGenerator:
    """Produces unguessable, URL-safe email verification tokens."""

    def __init__(self, nbytes: int = 32):
        self.nbytes = nbytes

    def generate(self) -> str:
        return secrets.token_urlsafe(self.nbytes)
