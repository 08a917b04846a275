"""
Configuration Loading and Management Functions.

Handles loading citeweave configuration from YAML and applying
environment variable overrides.

Configuration precedence: 1. Env vars, 2. YAML file, 3. Defaults

Environment overrides
---------------------
    CITEWEAVE_STYLE        session.style
    CITEWEAVE_LOCALE       session.locale
    CITEWEAVE_TIMEOUT      definitions.timeout_seconds (1-300)
    CITEWEAVE_STYLES_DIR   definitions.styles_dir
    CITEWEAVE_LOCALES_DIR  definitions.locales_dir
    CITEWEAVE_LOG_LEVEL    logging.level
"""

import os
import re
from pathlib import Path
from typing import Any, Optional, TYPE_CHECKING

import yaml

from citeweave.core.logging import get_logger

if TYPE_CHECKING:
    from citeweave.core.config import Config

logger = get_logger(__name__)

CONFIG_FILENAMES = ("citeweave.yaml", "citeweave.yml")

# Style and locale keys as used by the CSL repositories
_RESOURCE_NAME = re.compile(r"^[a-zA-Z0-9._\-]+$")


def expand_env_vars(value: Any) -> Any:
    """Recursively expand environment variables in config values.

    Handles nested structures including:
    - Strings with ${VAR_NAME} or ${VAR_NAME:default} syntax
    - Nested dictionaries
    - Nested lists

    Args:
        value: Configuration value (string, dict, list, or primitive)

    Returns:
        Value with all environment variables expanded
    """
    if isinstance(value, str):
        pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"

        def replace_env_var(match: re.Match) -> str:
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def _apply_env_overrides(config: "Config") -> "Config":
    """
    Apply environment variable overrides to configuration.

    Environment variables take precedence over config file values.
    """
    _apply_session_overrides(config)
    _apply_definition_overrides(config)
    _apply_logging_overrides(config)
    return config


def _apply_session_overrides(config: "Config") -> None:
    """Apply style and locale overrides, ignoring malformed names."""
    style = os.environ.get("CITEWEAVE_STYLE")
    if style:
        if _RESOURCE_NAME.match(style):
            config.session.style = style
        else:
            logger.warning(f"Invalid CITEWEAVE_STYLE '{style}', ignoring")

    locale = os.environ.get("CITEWEAVE_LOCALE")
    if locale:
        if _RESOURCE_NAME.match(locale):
            config.session.locale = locale
        else:
            logger.warning(f"Invalid CITEWEAVE_LOCALE '{locale}', ignoring")


def _apply_definition_overrides(config: "Config") -> None:
    """Apply timeout and local directory overrides."""
    timeout = os.environ.get("CITEWEAVE_TIMEOUT")
    if timeout:
        try:
            value = float(timeout)
        except ValueError:
            logger.warning(f"Invalid CITEWEAVE_TIMEOUT '{timeout}', ignoring")
        else:
            if 1.0 <= value <= 300.0:
                config.definitions.timeout_seconds = value
            else:
                logger.warning(f"CITEWEAVE_TIMEOUT out of range: {value}")

    styles_dir = os.environ.get("CITEWEAVE_STYLES_DIR")
    if styles_dir:
        config.definitions.styles_dir = styles_dir

    locales_dir = os.environ.get("CITEWEAVE_LOCALES_DIR")
    if locales_dir:
        config.definitions.locales_dir = locales_dir


def _apply_logging_overrides(config: "Config") -> None:
    """Apply log level override."""
    level = os.environ.get("CITEWEAVE_LOG_LEVEL")
    if level and level.upper() in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        config.logging.level = level.upper()


def load_config(
    config_path: Optional[Path] = None, base_path: Optional[Path] = None
) -> "Config":
    """
    Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to config file. Defaults to citeweave.yaml in base_path.
        base_path: Directory searched when config_path is None. Defaults to cwd.

    Returns:
        Config object with all settings.
    """
    # Lazy import to avoid circular dependency
    from citeweave.core.config import Config

    base_path = base_path or Path.cwd()

    if config_path is None:
        for filename in CONFIG_FILENAMES:
            candidate = base_path / filename
            if candidate.exists():
                config_path = candidate
                break
        else:
            return _apply_env_overrides(Config())

    if not config_path.exists():
        logger.warning(f"Config file not found: {config_path}, using defaults")
        return _apply_env_overrides(Config())

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    config = Config.from_dict(data)
    logger.debug("Loaded configuration", path=str(config_path))
    return _apply_env_overrides(config)


def save_config(config: "Config", config_path: Path) -> None:
    """Write configuration to a YAML file."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config.to_dict(), f, sort_keys=False)
