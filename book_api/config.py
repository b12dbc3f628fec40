"""
API configuration settings.
"""

from typing import List, Optional

from pydantic import validator
from pydantic_settings import BaseSettings
from sqlalchemy.engine import URL


class BookAPIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "Book API"
    api_version: str = "1.0.0"
    api_description: str = "REST API for creating, browsing and searching book records"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False
    environment: str = "production"

    # Database Settings (host, user, password and name have no defaults)
    db_host: str
    db_port: int = 3306
    db_user: str
    db_password: str
    db_name: str
    db_driver: str = "mysql+pymysql"

    # Connection Pool
    db_pool_size: int = 10
    db_max_overflow: int = 0
    db_pool_timeout: int = 30  # seconds a checkout waits when the pool is exhausted
    db_pool_recycle: int = 1800

    create_schema: bool = True
    seed_sample_data: bool = False

    # CORS Settings
    cors_origins: List[str] = ["*"]

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "extra": "ignore"  # Ignore extra fields from .env
    }

    @validator('db_pool_size')
    def validate_pool_size(cls, v):
        """Ensure the pool can hand out at least one connection."""
        if v < 1:
            raise ValueError('db_pool_size must be at least 1')
        return v

    @validator('environment')
    def validate_environment(cls, v):
        """Ensure environment is known."""
        valid_environments = ['production', 'development']
        if v.lower() not in valid_environments:
            raise ValueError(f'environment must be one of: {valid_environments}')
        return v.lower()

    @validator('log_level')
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @validator('log_format')
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    def database_url(self) -> URL:
        """Build the SQLAlchemy URL for the configured store."""
        return URL.create(
            self.db_driver,
            username=self.db_user,
            password=self.db_password,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        )

    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"


def load_config(**overrides) -> BookAPIConfig:
    """
    Load configuration from the environment.

    Raises pydantic.ValidationError when a required store credential
    (DB_HOST, DB_USER, DB_PASSWORD, DB_NAME) is missing.
    """
    return BookAPIConfig(**overrides)


def missing_fields(error) -> List[str]:
    """Names of the required settings reported missing by a ValidationError."""
    return [
        str(item["loc"][0]).upper()
        for item in error.errors()
        if item.get("type") == "missing" and item.get("loc")
    ]
