"""
Service container shared by the route handlers.
"""

from typing import Optional

from catalog.credentials import CredentialService, CredentialStore, TokenAuthenticator
from catalog.errors import InternalError
from catalog.repositories import AuthorRepository, BookRepository
from catalog.security import PasswordHasher, SecureRandomStringGenerator


class CatalogServices:
    """Repositories and credential services wired over three collections."""

    def __init__(
        self,
        authors,
        books,
        users,
        hasher: PasswordHasher,
        random_generator: SecureRandomStringGenerator,
        token_ttl: int,
        database=None
    ):
        """
        Wire the services.

        Args:
            authors: Authors collection adapter
            books: Books collection adapter
            users: Users collection adapter
            hasher: Password hasher shared by the process
            random_generator: Token and auth key generator shared by the process
            token_ttl: Access token lifetime in seconds
            database: Optional MongoDBManager, used for health checks
        """
        self.database = database
        self.authors = AuthorRepository(authors, books)
        self.books = BookRepository(books, authors)
        store = CredentialStore(users)
        self.authenticator = TokenAuthenticator(store)
        self.credentials = CredentialService(store, hasher, random_generator, token_ttl)


# Set during application startup
services: Optional[CatalogServices] = None


def get_services() -> CatalogServices:
    """Return the wired services, failing if startup did not complete."""
    if services is None:
        raise InternalError("Database service not available")
    return services
