"""Configuration settings using Pydantic."""

from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_and_load_env_file() -> str | None:
    """Load a .env file from the current directory if one exists."""
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        # Variables already set in the environment take precedence
        load_dotenv(env_path, override=False)
        return str(env_path)
    return None


_env_file_path = _find_and_load_env_file()


class Settings(BaseSettings):
    """Main configuration for a Compasse server."""

    model_config = SettingsConfigDict(
        env_file=None,  # Loaded via dotenv above
        env_file_encoding="utf-8",
        env_prefix="COMPASSE_",
        case_sensitive=False,
        extra="ignore",
    )

    # General settings
    env: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_logs: bool | None = None

    # Server identity reported by `initialize`
    server_name: str = "Compasse"
    server_version: str = "0.1.0"
    protocol_version: str = "2024-11-05"

    # HTTP settings
    http_host: str = "0.0.0.0"
    http_port: int = 8000
    mount_path: str = "/sse"
    heartbeat_interval: float = Field(15.0, gt=0, description="Seconds between heartbeat comments")
    max_queued_frames: int = Field(
        1024, gt=0, description="Frames a session may queue before it is closed as unresponsive"
    )

    # CORS
    cors_enabled: bool = True
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    @field_validator("mount_path")
    @classmethod
    def normalize_mount_path(cls, v: str) -> str:
        """Require a leading slash and drop any trailing one."""
        if not v.startswith("/"):
            raise ValueError("mount_path must start with '/'")
        return v.rstrip("/") or "/"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    def is_production(self) -> bool:
        """Check if running in production."""
        return self.env == "production"

    def is_development(self) -> bool:
        """Check if running in development."""
        return self.env == "development"

    def use_json_logs(self) -> bool:
        """Whether logs should be rendered as JSON."""
        if self.json_logs is None:
            return self.is_production()
        return self.json_logs


_settings_instance: Settings | None = None


def get_settings(reload: bool = False) -> Settings:
    """Get settings instance with optional hot reload.

    Args:
        reload: If True, reload settings from environment/file

    Returns:
        Settings instance (singleton by default)
    """
    global _settings_instance

    if reload or _settings_instance is None:
        _settings_instance = Settings()

    return _settings_instance


def reload_settings() -> Settings:
    """Force reload settings from environment/file.

    Returns:
        Newly loaded Settings instance
    """
    return get_settings(reload=True)
