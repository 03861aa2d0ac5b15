"""Configuration — devsetup.yml loading and CLI overrides."""

from devsetup.core.config.loader import (
    CONFIG_FILE,
    ConfigError,
    apply_overrides,
    find_config_file,
    load_settings,
)

__all__ = [
    "CONFIG_FILE",
    "ConfigError",
    "apply_overrides",
    "find_config_file",
    "load_settings",
]
