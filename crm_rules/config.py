"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

# ===========================================
# Product Metadata
# ===========================================
PRODUCT_NAME = "CRM Rules"
PRODUCT_TAGLINE = "Declarative business rules for deals, leads, people and organizations."
PRODUCT_VERSION = "1.0.0"
PRODUCT_DESCRIPTION = "Evaluate business rules against entity changes and dispatch the resulting actions."


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = "sqlite:///./crm_rules.db"

    # Logging
    log_level: str = "INFO"

    # API Security
    api_key: str = ""  # Set in .env for production

    # Notification defaults
    default_notification_title: str = "Business Rule Notification"
    default_notification_type: str = "business_rule"

    # Dispatch channels
    console_dispatch_enabled: bool = True
    webhook_url: str = ""
    webhook_timeout_seconds: int = 15


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
