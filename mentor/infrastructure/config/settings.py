"""Configuration for the mentor session server."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_PROMPT = "You are a coding mentor. Provide a 1-sentence tip based on this code."


class Settings(BaseSettings):
    """Main application settings, read from MENTOR_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MENTOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Gating
    change_threshold: int = Field(default=50, ge=0)
    coalesce_snapshots: bool = True

    # Inference gateway
    gateway_provider: str = "workers_ai"  # workers_ai | chat_model
    gateway_timeout_seconds: float = Field(default=30.0, gt=0)
    inference_model: str = "@cf/meta/llama-3.3-70b-instruct-fp8-fast"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    workers_ai_base_url: str = "https://api.cloudflare.com/client/v4"
    cloudflare_account_id: Optional[str] = None
    cloudflare_api_token: Optional[str] = None

    # Baseline store
    store_backend: Literal["memory", "sqlite"] = "memory"
    sqlite_path: str = "mentor_sessions.db"

    # Transport
    wire_format: Literal["json", "text"] = "json"
    host: str = "0.0.0.0"
    port: int = 8000

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"
    service_name: str = "mentor-server"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
