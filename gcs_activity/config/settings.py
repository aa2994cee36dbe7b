"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Credentials are deliberately absent: they arrive with every invocation.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_METADATA_PATH = Path(__file__).resolve().parent.parent / "activity.json"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like api_keys), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "GCS Storage Activity"
    api_version: str = "v1"
    api_keys: str = Field(
        default="",
        description="Comma-separated API keys for the HTTP binding. Empty disables key checks."
    )

    # Google Cloud Storage
    gcp_project: Optional[str] = Field(
        default=None,
        description="Project for storage clients. Defaults to the project_id in each service account key."
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real GCS. Enables local dev without a bucket."
    )

    # Activity metadata
    metadata_path: Path = Field(
        default=DEFAULT_METADATA_PATH,
        description="Path to activity.json declaring the activity's inputs and outputs."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_keys_list(self) -> list[str]:
        """Parse comma-separated API keys into a list."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def validate_required_fields(self) -> list[str]:
        """
        Validate settings that can't be checked field by field.

        Returns a list of problems; empty means the configuration is usable.
        """
        problems = []

        if not self.metadata_path.is_file():
            problems.append(f"METADATA_PATH ({self.metadata_path} does not exist)")

        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            problems.append(f"LOG_LEVEL ({self.log_level!r} is not a logging level)")

        return problems


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
