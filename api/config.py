"""
API configuration settings.
"""

from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "Library Catalog API"
    api_version: str = "1.0.0"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Security Settings
    access_token_ttl_seconds: int = 1800
    token_bytes: int = 32
    bcrypt_rounds: int = 12

    # Include raw exception messages in 500 responses
    expose_error_details: bool = True

    # CORS Settings
    cors_origins: List[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    model_config = {
        "env_file": ".env",
        "extra": "ignore"  # Ignore extra fields from .env
    }

    @field_validator("token_bytes")
    @classmethod
    def validate_token_bytes(cls, v):
        """Keep tokens at 32 bytes of entropy or more."""
        if v < 32:
            raise ValueError("token_bytes must be at least 32")
        return v

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, v):
        """Ensure the bcrypt cost factor is accepted by bcrypt."""
        if v < 4 or v > 31:
            raise ValueError("bcrypt_rounds must be between 4 and 31")
        return v

    @field_validator("access_token_ttl_seconds")
    @classmethod
    def validate_token_ttl(cls, v):
        """Ensure tokens live for a positive duration."""
        if v <= 0:
            raise ValueError("access_token_ttl_seconds must be positive")
        return v


# Global config instance
config = APIConfig()
