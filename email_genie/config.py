"""
Application configuration.

All settings are loaded from environment variables. No defaults for secrets:
if a required secret is missing, the app fails to start with a clear error.

Usage:
    from email_genie.config import settings
    print(settings.anthropic_model)
"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Anthropic LLM ---
    anthropic_api_key: str = Field(description="Anthropic API key")
    anthropic_model: str = Field(
        default="claude-haiku-4-5",
        description="Anthropic model used for categorization",
    )
    anthropic_max_tokens_categorize: int = Field(default=600)
    categorize_temperature: float = Field(default=0.3, ge=0.0, le=1.0)

    # --- Categorization ---
    fallback_confidence: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Confidence reported for rule-based decisions made without the model",
    )
    body_max_chars: int = Field(default=2000, description="Email body characters sent to the model")

    # --- Google OAuth / Gmail API ---
    google_client_id: str = Field(description="Google OAuth client ID")
    google_client_secret: str = Field(description="Google OAuth client secret")
    google_token_url: str = Field(default="https://oauth2.googleapis.com/token")
    gmail_base_url: str = Field(default="https://gmail.googleapis.com/gmail/v1/users/me")
    max_messages_per_poll: int = Field(default=2000)

    # --- Tenant / storage ---
    user_id: str = Field(default="default-user", description="Tenant whose accounts are processed")
    data_path: str = Field(default="data/email_genie.json")
    log_retention_days: int = Field(default=90)

    # --- Security ---
    cron_secret: Optional[str] = Field(
        default=None,
        description="Shared secret for the scheduler endpoint. Unset means open.",
    )
    api_secret_key: Optional[str] = Field(
        default=None,
        description="Value expected in the x-api-key header for management routes",
    )

    # --- App ---
    app_name: str = Field(default="Email Genie")
    app_env: Literal["development", "staging", "production"] = Field(default="development")
    log_level: str = Field(default="info")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
