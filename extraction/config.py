# SPDX-License-Identifier: AGPL-3.0-only

"""
Configuration service for the invoice extraction API.

This module centralizes all configuration settings for the service,
read from environment variables (and a local .env file loaded at startup).
"""

import os
from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Configuration settings for the invoice extraction API."""

    # OpenAI settings
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    openai_model: str = Field(default="gpt-4o-mini", description="OpenAI model name")
    ai_timeout: int = Field(default=60, description="OpenAI request timeout in seconds")
    ai_max_retries: int = Field(default=2, description="OpenAI client retries on transient errors")

    # Text extraction settings
    max_text_length: int = Field(default=12000, description="Maximum characters of document text sent to the LLM")
    max_workers: int = Field(default=4, description="Maximum worker threads for per-page text extraction")

    # Supabase settings
    supabase_url: Optional[str] = Field(default=None, description="Supabase project URL")
    supabase_service_role_key: Optional[str] = Field(default=None, description="Supabase service role key")
    storage_timeout: int = Field(default=15, description="Supabase request timeout in seconds")
    history_limit: int = Field(default=20, description="Number of scans returned by the history listing")

    # Upload settings
    max_file_size: int = Field(default=25 * 1024 * 1024, description="Max request size in bytes (25MB)")

    # Sheet settings
    sheet_ttl_seconds: int = Field(default=6 * 3600, description="Idle lifetime of a server-side sheet")

    # HTTP settings
    cors_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173",
        description="Comma separated list of allowed CORS origins"
    )
    log_level: str = Field(default="INFO", description="Root log level")

    class Config:
        env_prefix = ""
        case_sensitive = False
        extra = "ignore"

    def get_ai_config(self) -> dict:
        """Get AI service configuration."""
        return {
            "api_key": self.openai_api_key,
            "model": self.openai_model,
            "timeout": self.ai_timeout,
            "max_retries": self.ai_max_retries,
        }

    def get_storage_config(self) -> dict:
        """Get Supabase storage configuration."""
        return {
            "url": (self.supabase_url or "").rstrip("/"),
            "service_key": self.supabase_service_role_key,
            "timeout": self.storage_timeout,
        }

    def get_cors_origins(self) -> List[str]:
        """Split the configured CORS origins."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def validate_ai_config(self) -> bool:
        """Validate AI configuration."""
        return bool(self.openai_api_key)

    def storage_configured(self) -> bool:
        """True when both the Supabase URL and the service role key are set."""
        return bool(self.supabase_url and self.supabase_service_role_key)

    def is_production(self) -> bool:
        return os.getenv("FLASK_ENV", "").lower() == "production"


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide configuration, building it on first use."""
    global _config
    if _config is None:
        _config = AppConfig()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() re-reads the environment."""
    global _config
    _config = None
