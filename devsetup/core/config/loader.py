"""
Configuration loader — reads devsetup.yml into InstallSettings.

Reads YAML, validates against the Pydantic schema, and returns typed
settings.  A missing config file is not an error: every setting has a
default.  A present-but-broken one is.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from devsetup.core.models.settings import InstallSettings

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "devsetup.yml"


class ConfigError(Exception):
    """Raised when configuration is invalid or unreadable."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for devsetup.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to devsetup.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_settings(path: Path | None = None, *, search: bool = True) -> InstallSettings:
    """Load and validate installer settings.

    Args:
        path: Explicit path to a config file.  If None and ``search`` is
            set, searches upward from the cwd.
        search: Whether to look for devsetup.yml when no path is given.

    Returns:
        Validated settings (defaults when no file exists).

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is None and search:
        path = find_config_file()

    if path is None:
        logger.debug("No %s found, using defaults", CONFIG_FILE)
        return InstallSettings()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return InstallSettings()

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "devsetup" key or be flat
    settings_data = data.get("devsetup", data) if "devsetup" in data else data
    if not isinstance(settings_data, dict):
        raise ConfigError(f"Expected a mapping under 'devsetup' in {path}")

    try:
        settings = InstallSettings.model_validate(settings_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info(
        "Loaded settings from %s (retry_count=%d, timeout=%ss, %d extra tools)",
        path, settings.retry_count, settings.timeout, len(settings.tools),
    )
    return settings


def apply_overrides(settings: InstallSettings, **overrides: Any) -> InstallSettings:
    """Return a copy of ``settings`` with non-None overrides applied.

    Overrides go through validation, so ``retry_count=-1`` from the CLI
    fails the same way it would from the file.

    Raises:
        ConfigError: If an override is invalid.
    """
    updates = {k: v for k, v in overrides.items() if v is not None}
    if not updates:
        return settings
    try:
        return InstallSettings.model_validate({**settings.model_dump(), **updates})
    except ValidationError as e:
        raise ConfigError(f"Invalid setting: {e}") from e
