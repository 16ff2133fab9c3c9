"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "1.0.0"
    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///./storefront.db"
    create_tables_on_startup: bool = True

    # Authentication
    secret_key: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 60
    renew_tokens: bool = True

    # Catalog
    default_page_size: int = 10
    max_page_size: int = 100
    tag_match_mode: str = "any"
    uniqueness_max_attempts: int = 100
    sku_prefix: str = "PRD"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
