"""
Bearer-token authentication for the FastAPI API.
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api import services as service_registry
from catalog.errors import Unauthenticated
from catalog.models import UserRecord

# Errors are raised by verify_access_token so every failure gets the same envelope
security = HTTPBearer(auto_error=False)


async def verify_access_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> UserRecord:
    """
    Verify the bearer token of a request.

    Args:
        credentials: HTTP authorization credentials

    Returns:
        The authenticated user

    Raises:
        Unauthenticated: If the header is missing or the token is invalid or expired
    """
    if credentials is None:
        raise Unauthenticated("Authentication required")

    services = service_registry.get_services()
    return await services.authenticator.authenticate(credentials.credentials)
