"""
Password hashing and secure random string generation.

Both services are created once per process and handed to the credential
service instead of being reached through module globals.
"""

import secrets

import bcrypt
import structlog

logger = structlog.get_logger(__name__)

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_PASSWORD_BYTES = 72
MIN_TOKEN_BYTES = 32


class PasswordHasher:
    """Salted bcrypt password hashing."""

    def __init__(self, rounds: int = 12):
        """
        Initialize the hasher.

        Args:
            rounds: bcrypt cost factor (4-31)
        """
        if rounds < 4 or rounds > 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self.rounds = rounds

    @staticmethod
    def _encode(password: str) -> bytes:
        return password.encode("utf-8")[:BCRYPT_MAX_PASSWORD_BYTES]

    def hash(self, password: str) -> str:
        """
        Hash a password with a fresh salt.

        Args:
            password: Plain text password

        Returns:
            bcrypt hash as a string
        """
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(self._encode(password), salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """
        Check a password against a stored hash.

        Args:
            password: Plain text password
            password_hash: Stored bcrypt hash

        Returns:
            True if the password matches, False otherwise
        """
        if not password or not password_hash:
            return False
        try:
            return bcrypt.checkpw(self._encode(password), password_hash.encode("utf-8"))
        except ValueError:
            logger.warning("Stored password hash is malformed")
            return False


class SecureRandomStringGenerator:
    """Generates opaque URL-safe strings for access tokens and auth keys."""

    def __init__(self, num_bytes: int = MIN_TOKEN_BYTES):
        if num_bytes < MIN_TOKEN_BYTES:
            raise ValueError(f"token size must be at least {MIN_TOKEN_BYTES} bytes")
        self.num_bytes = num_bytes

    def generate(self) -> str:
        """Generate a new random string."""
        return secrets.token_urlsafe(self.num_bytes)
