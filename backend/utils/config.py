"""
TagWeave Configuration Module.

Centralizes all configuration settings using Pydantic Settings.
Requires Python 3.11+.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Load .env file into os.environ at module import time
# This ensures nested BaseSettings classes can read the values
_env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    # Try current working directory
    load_dotenv()


class EngineSettings(BaseSettings):
    """Watch-and-rebuild engine settings."""

    model_config = SettingsConfigDict(env_prefix="ENGINE_")

    monitor_path: Path = Field(default=Path("."), description="Root folder to watch")
    profile: str = Field(default="html", description="Engine profile: html, csharp or debug")
    extensions: Annotated[list[str] | None, NoDecode] = Field(
        default=None,
        description="Input extensions to watch; defaults to the profile's extensions",
    )
    settle_delay_ms: int = Field(default=300, ge=1, le=10000)
    output_dir: Path | None = Field(
        default=None,
        description="Folder for generated files; defaults to the source file's folder",
    )
    generate_on_start: bool = Field(default=False)
    regenerate_on_folder_rename: bool = Field(
        default=True,
        description="Regenerate every file when a folder inside the monitored tree is renamed",
    )
    ignore_patterns: Annotated[list[str], NoDecode] = Field(
        default=[
            ".git",
            ".venv",
            "node_modules",
            "__pycache__",
        ],
        description="Path fragments or glob patterns to ignore while watching",
    )

    @field_validator("extensions", "ignore_patterns", mode="before")
    @classmethod
    def parse_list(cls, v: str | list[str] | None) -> list[str] | None:
        """Parse lists from comma-separated strings."""
        if isinstance(v, str):
            return [p.strip() for p in v.split(",") if p.strip()]
        return v

    @field_validator("profile")
    @classmethod
    def normalize_profile(cls, v: str) -> str:
        """Profile names are case-insensitive."""
        return v.strip().lower()


class WatcherSettings(BaseSettings):
    """File watcher configuration settings."""

    model_config = SettingsConfigDict(env_prefix="WATCHER_")

    recursive: bool = Field(default=True)
    join_timeout: float = Field(default=5.0, ge=0.1)


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO")
    format: str = Field(default="console")  # "json" or "console"


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="TagWeave")
    app_version: str = Field(default="0.1.0")
    environment: str = Field(default="development")

    # Sub-settings
    engine: EngineSettings = Field(default_factory=EngineSettings)
    watcher: WatcherSettings = Field(default_factory=WatcherSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() in ("development", "dev", "local")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings.

    Hosts load settings once and pass the engine section into the
    orchestrator explicitly; engine components never call this.
    """
    return Settings()
