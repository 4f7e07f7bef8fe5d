"""WineCard configuration module.

This module provides TOML-based configuration with environment variable overrides.

Configuration is loaded from the following locations (in order of priority):
1. Environment variables (highest priority)
2. ./config.toml (project root - for development)
3. ~/.config/winecard/config.toml (user config)
4. /etc/winecard/config.toml (system config)
"""

from winecard.config.schema import (
    CaptureConfig,
    ServerConfig,
    SessionConfig,
    StorageConfig,
    WinecardConfig,
)
from winecard.config.settings import get_settings, reset_settings, settings

__all__ = [
    "CaptureConfig",
    "ServerConfig",
    "SessionConfig",
    "StorageConfig",
    "WinecardConfig",
    "get_settings",
    "reset_settings",
    "settings",
]
