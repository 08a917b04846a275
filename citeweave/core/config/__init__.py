"""
Configuration Management for citeweave.

Configuration is a hierarchy of dataclasses that map to a YAML file, with
environment variable expansion for deployment-specific values.

Public API
----------
    from citeweave.core.config import Config, load_config
    from citeweave.core.config import SessionConfig, RenderConfig

Architecture
------------
    config/
    ├── session.py       # SessionConfig, RenderConfig, LoggingConfig
    ├── definitions.py   # DefinitionsConfig
    └── config.py        # Main Config class
"""

from citeweave.core.config.config import Config
from citeweave.core.config.definitions import (
    DEFAULT_LOCALE_URL,
    DEFAULT_STYLE_URL,
    DefinitionsConfig,
)
from citeweave.core.config.session import LoggingConfig, RenderConfig, SessionConfig
from citeweave.core.config_loaders import load_config, save_config

__all__ = [
    "Config",
    "SessionConfig",
    "RenderConfig",
    "LoggingConfig",
    "DefinitionsConfig",
    "DEFAULT_STYLE_URL",
    "DEFAULT_LOCALE_URL",
    "load_config",
    "save_config",
]
