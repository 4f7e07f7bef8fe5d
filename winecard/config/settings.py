"""Global settings instance for WineCard.

The settings object provides a flat interface over the structured
configuration loaded from config.toml and environment overrides.
"""

import logging
from pathlib import Path

from winecard.config.loader import load_config
from winecard.config.schema import WinecardConfig

logger = logging.getLogger(__name__)


class Settings:
    """Flat accessor over a WinecardConfig."""

    def __init__(self, config: WinecardConfig | None = None):
        """Initialize settings.

        Args:
            config: Optional WinecardConfig instance. If not provided, loads from file.
        """
        self._config = config or load_config()

    @property
    def config(self) -> WinecardConfig:
        """Get the full configuration object."""
        return self._config

    # Application
    @property
    def app_name(self) -> str:
        return self._config.app_name

    @property
    def debug(self) -> bool:
        return self._config.server.debug

    # Server
    @property
    def host(self) -> str:
        return self._config.server.host

    @property
    def port(self) -> int:
        return self._config.server.port

    @property
    def workers(self) -> int:
        return self._config.server.workers

    @property
    def enforce_https(self) -> bool:
        return self._config.server.enforce_https

    @property
    def rate_limit_per_minute(self) -> int:
        return self._config.server.rate_limit_per_minute

    @property
    def export_rate_limit(self) -> str:
        return self._config.server.export_rate_limit

    @property
    def cors_origins(self) -> list[str]:
        return self._config.server.cors_origins

    @property
    def log_level(self) -> str:
        return self._config.server.log_level

    # Storage
    @property
    def max_upload_size_mb(self) -> int:
        return self._config.storage.max_upload_mb

    @property
    def max_upload_size_bytes(self) -> int:
        return self._config.storage.max_upload_bytes

    @property
    def mock_save_delay_seconds(self) -> float:
        return self._config.storage.mock_save_delay_ms / 1000

    # Capture
    @property
    def font_path(self) -> Path | None:
        return self._config.capture.font_path

    # Sessions
    @property
    def max_sessions(self) -> int:
        return self._config.sessions.max_sessions


# Global settings instance - lazily initialized
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance.

    The settings are loaded once and cached for subsequent calls.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance.

    This is primarily useful for testing to reload configuration.
    """
    global _settings
    _settings = None


class _SettingsProxy:
    """Proxy object that lazily loads settings on first access."""

    def __getattr__(self, name: str):
        return getattr(get_settings(), name)

    def __repr__(self) -> str:
        return repr(get_settings())


settings = _SettingsProxy()
