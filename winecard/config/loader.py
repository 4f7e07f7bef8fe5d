"""Configuration loader for WineCard.

Loads configuration from TOML files.
Environment variables can override any configuration value.
"""

import logging
import os
from pathlib import Path
from typing import Any

from winecard.config.schema import WinecardConfig

logger = logging.getLogger(__name__)

# Try to import tomllib (Python 3.11+) or fall back to tomli
try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore[import-not-found,no-redef]


# Keys converted from environment strings
_INT_KEYS = ("port", "workers", "rate_limit_per_minute", "max_upload_mb", "mock_save_delay_ms", "max_sessions")
_BOOL_KEYS = ("debug", "enforce_https")
_LIST_KEYS = ("cors_origins",)


def get_config_search_paths() -> list[Path]:
    """Get the list of paths to search for configuration files.

    Returns paths in priority order (first found wins):
    1. ./config.toml (project root - for development)
    2. ~/.config/winecard/config.toml (user config)
    3. /etc/winecard/config.toml (system config)
    """
    return [
        Path.cwd() / "config.toml",
        Path.home() / ".config" / "winecard" / "config.toml",
        Path("/etc/winecard/config.toml"),
    ]


def find_config_file() -> Path | None:
    """Find the first existing config file from search paths."""
    for path in get_config_search_paths():
        if path.exists() and path.is_file():
            logger.debug("Found config file: %s", path)
            return path
    return None


def load_toml_file(path: Path) -> dict[str, Any]:
    """Load a TOML file and return its contents as a dictionary."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def apply_env_overrides(config_dict: dict[str, Any], prefix: str = "WINECARD") -> None:
    """Apply environment variable overrides to configuration dictionary.

    Environment variables are mapped as follows:
    - WINECARD_SERVER_HOST -> config_dict["server"]["host"]
    - WINECARD_STORAGE_MAX_UPLOAD_MB -> config_dict["storage"]["max_upload_mb"]
    - etc.

    Note: This modifies config_dict in place.
    """
    env_mappings = {
        # Server
        f"{prefix}_SERVER_HOST": ("server", "host"),
        f"{prefix}_SERVER_PORT": ("server", "port"),
        f"{prefix}_SERVER_WORKERS": ("server", "workers"),
        f"{prefix}_SERVER_DEBUG": ("server", "debug"),
        f"{prefix}_SERVER_ENFORCE_HTTPS": ("server", "enforce_https"),
        f"{prefix}_SERVER_RATE_LIMIT_PER_MINUTE": ("server", "rate_limit_per_minute"),
        f"{prefix}_SERVER_EXPORT_RATE_LIMIT": ("server", "export_rate_limit"),
        f"{prefix}_SERVER_CORS_ORIGINS": ("server", "cors_origins"),
        f"{prefix}_SERVER_LOG_LEVEL": ("server", "log_level"),
        f"{prefix}_DEBUG": ("server", "debug"),  # Shorthand
        f"{prefix}_HOST": ("server", "host"),  # Shorthand
        f"{prefix}_PORT": ("server", "port"),  # Shorthand
        f"{prefix}_LOG_LEVEL": ("server", "log_level"),  # Shorthand
        # Storage
        f"{prefix}_STORAGE_MAX_UPLOAD_MB": ("storage", "max_upload_mb"),
        f"{prefix}_STORAGE_MOCK_SAVE_DELAY_MS": ("storage", "mock_save_delay_ms"),
        # Capture
        f"{prefix}_CAPTURE_FONT_PATH": ("capture", "font_path"),
        f"{prefix}_FONT_PATH": ("capture", "font_path"),  # Shorthand
        # Sessions
        f"{prefix}_SESSIONS_MAX_SESSIONS": ("sessions", "max_sessions"),
    }

    for env_var, path in env_mappings.items():
        value = os.environ.get(env_var)
        if value is None:
            continue

        section, key = path
        if section not in config_dict:
            config_dict[section] = {}

        # Convert value to appropriate type
        if key in _INT_KEYS:
            config_dict[section][key] = int(value)
        elif key in _BOOL_KEYS:
            config_dict[section][key] = value.lower() in ("true", "1", "yes")
        elif key in _LIST_KEYS:
            config_dict[section][key] = [item.strip() for item in value.split(",") if item.strip()]
        elif key == "log_level":
            config_dict[section][key] = value.upper()
        else:
            config_dict[section][key] = value


def load_config(config_file: Path | None = None) -> WinecardConfig:
    """Load configuration from TOML file with environment variable overrides.

    Args:
        config_file: Optional path to config file. If not provided,
                     searches default locations.

    Returns:
        WinecardConfig instance with all settings loaded.
    """
    config_dict: dict[str, Any] = {}

    if config_file is None:
        config_file = find_config_file()

    if config_file and config_file.exists():
        logger.info("Loading config from: %s", config_file)
        config_dict = load_toml_file(config_file)
    else:
        logger.info("No config file found, using defaults with env overrides")

    apply_env_overrides(config_dict)

    return WinecardConfig(**config_dict)
