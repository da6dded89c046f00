"""Settings and configuration management."""

import logging
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables or a .env file."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # AI Processing
    openrouter_api_key: Optional[str] = Field(None, description="OpenRouter")
    openrouter_base_url: str = Field(
        "https://openrouter.ai/api/v1", description="OpenRouter API base URL"
    )
    openrouter_model: Optional[str] = Field(
        None, description="Override the model used for the selected provider"
    )
    openrouter_fallback_models: str = Field(
        "openai/gpt-4o-mini",
        description="Comma-separated models tried when the primary model fails",
    )
    openrouter_timeout: float = Field(
        60.0, ge=5.0, le=300.0, description="OpenRouter API request timeout in seconds"
    )

    # Agent
    planner_max_steps: int = Field(
        10, ge=1, le=50, description="Maximum planner iterations per request"
    )
    allow_empty_fallback: bool = Field(
        True,
        description="Accept a fallback newsletter rendered from zero fetched items",
    )

    # Request log cache
    log_cache_max_entries: int = Field(
        200, ge=1, le=10000, description="Maximum request logs kept in memory"
    )
    log_ttl_seconds: float = Field(
        600.0, ge=1.0, description="Seconds a request log is kept after creation"
    )
    log_sweep_interval: float = Field(
        60.0, ge=1.0, description="Seconds between expired log sweeps"
    )
    log_truncate_chars: int = Field(
        1500, ge=100, description="Payload characters shown before truncation"
    )

    # Content service
    content_service_url: Optional[str] = Field(
        None, description="Remote content tools service (mock corpus when unset)"
    )
    content_service_timeout: float = Field(
        15.0, ge=1.0, le=120.0, description="Content service request timeout"
    )

    # Delivery
    mail_transport: Literal["mock", "smtp"] = Field(
        "mock", description="Mail transport used for delivery"
    )
    smtp_host: Optional[str] = Field(None, description="SMTP host")
    smtp_port: int = Field(25, ge=1, le=65535, description="SMTP port")
    smtp_user: Optional[str] = Field(None, description="SMTP username")
    smtp_password: Optional[str] = Field(None, description="SMTP password")
    smtp_from: str = Field("no-reply", description="From address for delivery")
    smtp_use_tls: bool = Field(False, description="Upgrade SMTP with STARTTLS")
    smtp_timeout: float = Field(30.0, ge=1.0, le=120.0, description="SMTP timeout")

    # Application Settings
    debug: bool = Field(False, description="Debug mode")
    log_level: str = Field("INFO", description="Log level")

    @property
    def fallback_models(self) -> List[str]:
        """Fallback model ids, in order of preference."""
        return [
            m.strip() for m in self.openrouter_fallback_models.split(",") if m.strip()
        ]
