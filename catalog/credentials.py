"""
User credentials: storage, bearer-token authentication, login and registration.

Access tokens live on the user document. Each login overwrites the token
and its expiry, so a user holds at most one live token. Expired tokens are
not removed; they simply stop being honored.
"""

import asyncio
import time
from typing import Any, Callable, Optional

import structlog
from pymongo.errors import DuplicateKeyError

from catalog.errors import BadRequest, Conflict, Unauthenticated
from catalog.models import UserRecord
from catalog.security import PasswordHasher, SecureRandomStringGenerator

logger = structlog.get_logger(__name__)

ACCESS_TOKEN_TTL_SECONDS = 1800


def _token_prefix(token: str) -> str:
    return token[:6] + "..." if token else ""


class CredentialStore:
    """Persistence for user records."""

    def __init__(self, collection):
        self.collection = collection

    async def find_by_username(self, username: str) -> Optional[UserRecord]:
        document = await self.collection.find_one({"username": username})
        return UserRecord(**document) if document else None

    async def find_by_access_token(self, token: str) -> Optional[UserRecord]:
        document = await self.collection.find_one({"access_token": token})
        return UserRecord(**document) if document else None

    async def insert(self, user: UserRecord) -> UserRecord:
        """
        Store a new user.

        Raises:
            Conflict: If the unique username index rejects the insert
        """
        try:
            stored = await self.collection.insert(user.to_document())
        except DuplicateKeyError:
            logger.warning("Duplicate username rejected by index", username=user.username)
            raise Conflict("Username is already taken")
        return UserRecord(**stored)

    async def save_token(self, user: UserRecord) -> bool:
        """Persist a user's current access token and expiry."""
        return await self.collection.set_fields(user.id, {
            "access_token": user.access_token,
            "token_expiration": user.token_expiration,
        })


class TokenAuthenticator:
    """Resolves bearer tokens to users."""

    def __init__(self, store: CredentialStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    async def authenticate(self, token: Optional[str]) -> UserRecord:
        """
        Authenticate a bearer token.

        Args:
            token: Token presented by the client

        Returns:
            The user owning the token

        Raises:
            Unauthenticated: If the token is missing, unknown or expired
        """
        if not token:
            raise Unauthenticated("Authentication required")

        user = await self.store.find_by_access_token(token)
        if user is None:
            logger.warning("Unknown access token", token=_token_prefix(token))
            raise Unauthenticated("Invalid or expired access token")

        if not user.is_token_valid(self.clock()):
            logger.info("Expired access token", username=user.username)
            raise Unauthenticated("Invalid or expired access token")

        return user


class CredentialService:
    """Registration and login."""

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        random_generator: SecureRandomStringGenerator,
        token_ttl: int = ACCESS_TOKEN_TTL_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the service.

        Args:
            store: User persistence
            hasher: Password hasher
            random_generator: Source of access tokens and auth keys
            token_ttl: Access token lifetime in seconds
            clock: Returns the current unix time
        """
        self.store = store
        self.hasher = hasher
        self.random_generator = random_generator
        self.token_ttl = token_ttl
        self.clock = clock
        self._dummy_hash: Optional[str] = None

    async def _burn_verification(self, password: str) -> None:
        """Run one bcrypt check against a throwaway hash."""
        if self._dummy_hash is None:
            self._dummy_hash = await asyncio.to_thread(
                self.hasher.hash, self.random_generator.generate()
            )
        await asyncio.to_thread(self.hasher.verify, password, self._dummy_hash)

    def _issue_token(self, user: UserRecord) -> None:
        user.access_token = self.random_generator.generate()
        user.token_expiration = int(self.clock()) + self.token_ttl

    async def register(self, username: Any, password: Any) -> UserRecord:
        """
        Register a new user and issue its first access token.

        Raises:
            BadRequest: If username or password is missing
            Conflict: If the username is already taken
        """
        if not username or not password or not isinstance(username, str) or not isinstance(password, str):
            raise BadRequest("Username and password are required")

        if await self.store.find_by_username(username) is not None:
            logger.info("Registration rejected, username taken", username=username)
            raise Conflict("Username is already taken")

        password_hash = await asyncio.to_thread(self.hasher.hash, password)
        user = UserRecord(
            username=username,
            password_hash=password_hash,
            auth_key=self.random_generator.generate(),
            access_token="",
            token_expiration=0,
        )
        self._issue_token(user)

        stored = await self.store.insert(user)
        logger.info("User registered", username=username, user_id=stored.id)
        return stored

    async def login(self, username: Any, password: Any) -> UserRecord:
        """
        Check credentials and issue a fresh access token.

        The new token replaces the previous one.

        Raises:
            Unauthenticated: If the username is unknown or the password is wrong
        """
        user = None
        if isinstance(username, str) and username:
            user = await self.store.find_by_username(username)

        if user is None or not isinstance(password, str):
            if isinstance(password, str):
                await self._burn_verification(password)
            logger.info("Login failed", username=username if isinstance(username, str) else None)
            raise Unauthenticated("Invalid username or password")

        if not await asyncio.to_thread(self.hasher.verify, password, user.password_hash):
            logger.info("Login failed", username=username)
            raise Unauthenticated("Invalid username or password")

        self._issue_token(user)
        if not await self.store.save_token(user):
            # User removed between lookup and write
            raise Unauthenticated("Invalid username or password")

        logger.info("User logged in", username=username, token_expiration=user.token_expiration)
        return user
