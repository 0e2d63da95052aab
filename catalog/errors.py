"""
Domain errors raised by repositories and the credential service.

Every error carries the HTTP status code the API layer answers with, so
route handlers can re-raise them untouched.
"""

from typing import Dict, List, Optional


class CatalogError(Exception):
    """Base class for expected catalog failures."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(CatalogError):
    """Entity id did not resolve."""

    status_code = 404


class ValidationFailed(CatalogError):
    """Field-level validation errors, including dangling references."""

    status_code = 422

    def __init__(self, message: str, errors: Dict[str, List[str]]):
        super().__init__(message)
        self.errors = errors


class Unauthenticated(CatalogError):
    """Missing, unknown or expired credentials."""

    status_code = 401


class Conflict(CatalogError):
    """Unique constraint violated (duplicate username)."""

    status_code = 409


class BadRequest(CatalogError):
    """Malformed login/register input."""

    status_code = 400


class InternalError(CatalogError):
    """Unexpected store or runtime failure wrapped at the handler boundary."""

    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.error = error
