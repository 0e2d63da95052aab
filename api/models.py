"""
API models and schemas for the FastAPI application.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Credentials(BaseModel):
    """Login and registration input."""
    username: Optional[str] = Field(None, description="Login name")
    password: Optional[str] = Field(None, description="Plain text password")


class TokenResponse(BaseModel):
    """Successful login or registration."""
    message: str = Field(..., description="Outcome message")
    access_token: str = Field(..., description="Bearer token for subsequent requests")


class SuccessResponse(BaseModel):
    """Envelope for single-entity and delete responses."""
    status: str = Field("success", description="Always 'success'")
    message: Optional[str] = Field(None, description="Outcome message")
    data: Optional[Any] = Field(None, description="Entity payload")


class ErrorResponse(BaseModel):
    """Error response model."""
    status: str = Field("error", description="Always 'error'")
    message: str = Field(..., description="Error message")
    error: Optional[str] = Field(None, description="Underlying error details")
    errors: Optional[Dict[str, List[str]]] = Field(None, description="Field-level validation errors")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
