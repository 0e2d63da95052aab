"""
Pydantic models for catalog documents.

Input models describe the fields accepted on create and update, view
models describe the enriched documents returned to clients, and
``UserRecord`` mirrors a stored user.
"""

import hmac
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

BIRTHDATE_FORMAT = "%Y-%m-%d"


class FieldError(BaseModel):
    """A single validation message attached to an input field."""
    field: str = Field(..., description="Name of the offending field")
    message: str = Field(..., description="Human-readable error message")


class AuthorData(BaseModel):
    """Author fields accepted on create and update."""
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., description="Author name")
    birthdate: date = Field(..., description="Birth date (YYYY-MM-DD)")
    books: List[str] = Field(default_factory=list, description="Ids of the author's books")

    @field_validator("birthdate", mode="before")
    @classmethod
    def validate_birthdate_format(cls, v):
        """Only accept calendar dates written as YYYY-MM-DD."""
        if isinstance(v, date):
            return v
        if not isinstance(v, str):
            raise ValueError("birthdate must be a date in YYYY-MM-DD format")
        try:
            return datetime.strptime(v, BIRTHDATE_FORMAT).date()
        except ValueError:
            raise ValueError("birthdate must be a date in YYYY-MM-DD format")

    @field_validator("books", mode="before")
    @classmethod
    def default_missing_books(cls, v):
        """An explicit null means no books."""
        return [] if v is None else v

    def to_document(self) -> dict:
        return {
            "name": self.name,
            "birthdate": self.birthdate.strftime(BIRTHDATE_FORMAT),
            "books": list(self.books),
        }


class BookData(BaseModel):
    """Book fields accepted on create and update."""
    model_config = ConfigDict(extra="ignore")

    title: str = Field(..., description="Book title")
    authors: List[str] = Field(..., description="Ids of the book's authors")
    publication_year: int = Field(..., description="Year of publication")
    description: str = Field(..., description="Book description")

    @field_validator("publication_year", mode="before")
    @classmethod
    def reject_boolean_year(cls, v):
        """Booleans are not years even though they coerce to integers."""
        if isinstance(v, bool):
            raise ValueError("publication_year must be an integer")
        return v

    def to_document(self) -> dict:
        return {
            "title": self.title,
            "authors": list(self.authors),
            "publication_year": self.publication_year,
            "description": self.description,
        }


class BookSummary(BaseModel):
    """Book as embedded in an author response."""
    id: str
    title: str
    publication_year: Optional[int] = None
    description: Optional[str] = None


class AuthorSummary(BaseModel):
    """Author as embedded in a book response."""
    id: str
    name: str
    birthdate: Optional[str] = None


class AuthorView(BaseModel):
    """Author with its book ids expanded into summaries."""
    id: str = Field(..., description="Unique author identifier")
    name: str = Field(..., description="Author name")
    birthdate: str = Field(..., description="Birth date (YYYY-MM-DD)")
    books: List[BookSummary] = Field(default_factory=list, description="Resolvable books")


class BookView(BaseModel):
    """Book with its author ids expanded into summaries."""
    id: str = Field(..., description="Unique book identifier")
    title: str = Field(..., description="Book title")
    authors: List[AuthorSummary] = Field(default_factory=list, description="Resolvable authors")
    publication_year: int = Field(..., description="Year of publication")
    description: str = Field(..., description="Book description")


class UserRecord(BaseModel):
    """Stored user credentials."""
    id: Optional[str] = Field(None, description="Unique user identifier")
    username: str = Field(..., description="Unique login name")
    password_hash: str = Field(..., description="bcrypt hash of the password")
    auth_key: str = Field(..., description="Random key identifying the account")
    access_token: str = Field(..., description="Current bearer token")
    token_expiration: int = Field(..., description="Token expiry as unix seconds")

    def is_token_valid(self, now: float) -> bool:
        """Return True while the access token has not expired."""
        return self.token_expiration > now

    def validate_auth_key(self, auth_key: str) -> bool:
        """Compare a presented auth key with the stored one."""
        if not auth_key:
            return False
        return hmac.compare_digest(self.auth_key.encode("utf-8"), auth_key.encode("utf-8"))

    def to_document(self) -> dict:
        return self.model_dump(exclude={"id"})
