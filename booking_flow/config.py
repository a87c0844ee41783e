"""
Configuration Management

Uses Pydantic BaseSettings to load configuration from environment variables.
All settings can be overridden via .env file or environment variables.

Environment Variables:
    BACKEND_API_URL: Base URL of the lead-management backend
    BACKEND_API_KEY: API key sent to the backend (optional)
    BACKEND_TIMEOUT: Backend request timeout in seconds (default: 10)
    SETTINGS_CACHE_TTL: Scheduling settings cache window in seconds (default: 60)
    APP_ENV: Environment name (development/staging/production)
    DEBUG: Enable debug mode (default: False)
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Backend Collaborator
    backend_api_url: str = "http://localhost:3001"
    """Base URL of the lead-management backend.

    Serves scheduling settings, appointment availability and the
    book-slot endpoint.
    """

    backend_api_key: Optional[str] = None
    """API key for the backend, sent as a Bearer token when set."""

    backend_timeout: float = 10.0
    """Backend request timeout in seconds.

    Slot fetches are never retried; a timeout falls back to
    locally synthesized slots.
    """

    # Booking Flow
    settings_cache_ttl: int = 60
    """Scheduling settings cache window in seconds.

    Normalized settings are reused for this long before the backend is
    asked again, so settings changes apply without a restart.
    """

    slot_offer_limit: int = 5
    """Maximum number of slots offered in one chat turn."""

    slot_search_iteration_limit: int = 500
    """Upper bound on slot-duration increments walked by the synthesizer.

    Guarantees termination when every working day is disabled.
    """

    # Application Environment
    app_env: Literal["development", "staging", "production"] = "development"
    """Current application environment.

    Options:
    - development: Local development, verbose logging, debug enabled
    - staging: Pre-production testing environment
    - production: Live production environment, minimal logging
    """

    debug: bool = False
    """Enable debug mode.

    When True:
    - Detailed error messages in responses
    - DEBUG level logging (rule matches, dropped slots)
    """

    # Application Configuration
    app_name: str = "booking-flow"
    """Application name."""

    host: str = "0.0.0.0"
    """Host to bind the application server."""

    port: int = 8000
    """Port to bind the application server."""

    # CORS Configuration
    cors_origins: str = "http://localhost:3000"
    """Comma-separated list of allowed CORS origins."""

    # Pydantic configuration
    model_config = SettingsConfigDict(
        env_file=".env",  # Load from .env file if it exists
        env_file_encoding="utf-8",
        case_sensitive=False,  # Allow BACKEND_API_URL or backend_api_url
        extra="ignore",  # Ignore extra environment variables
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"

    @property
    def cors_origins_list(self) -> list[str]:
        """Split cors_origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once and reused
    across the application.

    Returns:
        Settings: Cached settings instance

    Example:
        >>> from booking_flow.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.settings_cache_ttl)
        60
    """
    return Settings()


# Module-level settings instance for easy imports
settings = get_settings()
