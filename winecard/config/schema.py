"""Pydantic models for WineCard configuration.

These models define the structure of the config.toml file.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000
    workers: int = 1
    debug: bool = False
    enforce_https: bool = False
    rate_limit_per_minute: int = 60
    # slowapi limit string applied to the export endpoint
    export_rate_limit: str = "20/minute"
    # CORS configuration - empty list means same-origin only
    cors_origins: list[str] = []
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


class StorageConfig(BaseModel):
    """Upload limits and mock persistence configuration."""

    max_upload_mb: int = 10
    # Artificial latency of the in-memory card store
    mock_save_delay_ms: int = 800

    @property
    def max_upload_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_mb * 1024 * 1024


class CaptureConfig(BaseModel):
    """Card capture configuration."""

    # TrueType/OpenType font used for card text; system fonts are tried if unset
    font_path: Path | None = None


class SessionConfig(BaseModel):
    """Form session configuration."""

    max_sessions: int = 500


class WinecardConfig(BaseModel):
    """Main WineCard configuration loaded from config.toml."""

    app_name: str = "WineCard"
    server: ServerConfig = Field(default_factory=ServerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    sessions: SessionConfig = Field(default_factory=SessionConfig)
