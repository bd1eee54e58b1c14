"""
Application Configuration
This module centralizes all configuration for the favely backend.
It uses Pydantic's BaseSettings to load settings from environment variables
and a .env file, providing validation and type hints.
"""

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


PROJECT_DIRECTORY = Path(__file__).parent.parent


class Settings(BaseSettings):
    """
    Application settings loaded from the environment and a .env file.

    Attributes:
        app_env (str): Runtime environment (e.g. 'dev', 'prod').
        api_host (str): Host the API server binds to.
        api_port (int): Port the API server binds to.
        log_level (str): Logging level.
        log_json (bool): Whether logs are emitted as JSON.
        mongodb_uri (str): MongoDB connection string.
        mongodb_db_name (str): Database holding all collections.
        clerk_secret_key (str): Identity provider backend API key.
        clerk_authorized_parties (list): Origins accepted in the session `azp` claim; empty accepts any.
        user_cache_ttl_seconds (int): How long owner profiles are trusted.
    """

    app_env: str = "prod"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"
    log_json: bool = False
    cors_origins: List[str] = ["*"]

    # MongoDB Configuration
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "favely"
    mongodb_max_pool_size: int = 10
    mongodb_min_pool_size: int = 5
    mongodb_server_selection_timeout_ms: int = 5000
    mongodb_connect_timeout_ms: int = 10000
    mongodb_socket_timeout_ms: int = 45000

    # Identity provider (Clerk)
    clerk_api_url: str = "https://api.clerk.com/v1"
    clerk_secret_key: str = ""
    clerk_webhook_secret: str = ""
    clerk_timeout_seconds: float = 10.0
    # Session tokens are RS256 JWTs checked against this key set
    clerk_jwks_url: str = "https://api.clerk.com/v1/jwks"
    clerk_authorized_parties: List[str] = []
    clerk_jwt_leeway_seconds: int = 5
    user_cache_ttl_seconds: int = 60 * 60

    # Pagination
    default_page_size: int = 20
    max_page_size: int = 100

    # Retries around database calls
    db_max_retries: int = 3
    db_initial_retry_delay_ms: int = 100

    # Rate limiting; X-Forwarded-For is honoured only behind a trusted proxy
    search_rate_limit: int = 60
    feedback_rate_limit: int = 5
    rate_limit_window_seconds: int = 60
    trust_proxy_headers: bool = False

    # Feedback e-mail
    smtp_host: str = "localhost"
    smtp_port: int = 465
    smtp_secure: bool = True
    smtp_user: str = ""
    smtp_password: str = ""
    feedback_recipient: str = "feedback@favely.app"

    model_config = SettingsConfigDict(
        env_prefix="BACKEND__",
        env_nested_delimiter="__",
        env_file=PROJECT_DIRECTORY / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
