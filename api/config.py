"""
API configuration settings.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings, read from the environment and ``.env``."""

    # API Settings
    api_title: str = "ShelfTrack Library API"
    api_version: str = "1.0.0"
    api_description: str = "Personal library management: books, reading status and statistics"
    api_prefix: str = ""

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Storage Settings
    storage_backend: str = "mongodb"
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "shelftrack"
    isbn_scope: str = "global"

    # Security Settings
    secret_key: str = "change-me-in-production-please-use-32-chars"
    access_token_expire_minutes: int = 7 * 24 * 60

    # CORS Settings
    cors_origins: list = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list = ["*"]
    cors_allow_headers: list = ["*"]

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "extra": "ignore"
    }

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {valid_formats}")
        return v.lower()

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v):
        valid_backends = ["mongodb", "memory"]
        if v.lower() not in valid_backends:
            raise ValueError(f"storage_backend must be one of: {valid_backends}")
        return v.lower()

    @field_validator("isbn_scope")
    @classmethod
    def validate_isbn_scope(cls, v):
        """ISBNs are unique across all users (global) or per user (owner)."""
        valid_scopes = ["global", "owner"]
        if v.lower() not in valid_scopes:
            raise ValueError(f"isbn_scope must be one of: {valid_scopes}")
        return v.lower()

    @field_validator("api_prefix")
    @classmethod
    def validate_api_prefix(cls, v):
        """Normalise to '' or '/prefix' without a trailing slash."""
        v = v.strip().rstrip("/")
        if v and not v.startswith("/"):
            v = "/" + v
        return v

    def has_weak_secret(self) -> bool:
        """Secrets shorter than 32 characters are too weak for production."""
        return len(self.secret_key) < 32


# Global config instance
config = APIConfig()
