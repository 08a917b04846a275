"""
Main configuration class for citeweave.

This module provides the Config dataclass that aggregates all sub-configs
and handles validation and dict/YAML round-tripping.

Architecture Context
--------------------
Configuration sits at the Core layer. A Config object is typically created
once and handed to CitationSession.create():

    citeweave.yaml
           ↓
    load_config() → Config object
           ↓
    Passed to: CitationSession, DefinitionSource, BibliographyContainer

Configuration Hierarchy
-----------------------
    Config
    ├── SessionConfig       # Style, locale, linking flags
    ├── DefinitionsConfig   # Style/locale URLs or local directories
    ├── RenderConfig        # Frame interval, bibliography layout
    └── LoggingConfig       # Level, file, console

Environment Variables
---------------------
String values may use ${VAR_NAME} or ${VAR_NAME:default}:

    definitions:
      styles_dir: ${CSL_STYLES_DIR:}

Usage Example
-------------
    config = load_config(Path("citeweave.yaml"))
    session = await CitationSession.create(bibtex, config=config)
"""

from dataclasses import dataclass, field, fields, asdict
from typing import Any, Dict, Optional

from citeweave.core.config.definitions import DefinitionsConfig
from citeweave.core.config.session import LoggingConfig, RenderConfig, SessionConfig
from citeweave.core.exceptions import ConfigurationError

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class Config:
    """Main citeweave configuration."""

    session: SessionConfig = field(default_factory=SessionConfig)
    definitions: DefinitionsConfig = field(default_factory=DefinitionsConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self) -> None:
        """Validate configuration after initialization.

        Validates:
        - Style and locale names are non-empty
        - Positive frame interval and timeout
        - URL templates carry a {name} placeholder
        - Log level is known
        """
        if not self.session.style.strip():
            raise ConfigurationError("session.style must not be empty")
        if not self.session.locale.strip():
            raise ConfigurationError("session.locale must not be empty")
        if self.render.frame_interval_sec < 0:
            raise ConfigurationError("render.frame_interval_sec must be >= 0")
        if self.definitions.timeout_seconds <= 0:
            raise ConfigurationError("definitions.timeout_seconds must be > 0")
        for key in ("style_url", "locale_url"):
            if "{name}" not in getattr(self.definitions, key):
                raise ConfigurationError(
                    f"definitions.{key} must contain a {{name}} placeholder"
                )
        if self.logging.level.upper() not in VALID_LOG_LEVELS:
            raise ConfigurationError(
                f"logging.level must be one of {sorted(VALID_LOG_LEVELS)}, "
                f"got: {self.logging.level}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @staticmethod
    def _filter_fields(cls_type: Any, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Filter dict to only keys that match dataclass fields, handling None."""
        if not data:
            return {}
        valid_keys = {f.name for f in fields(cls_type)}
        return {k: v for k, v in data.items() if k in valid_keys}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Config":
        """Create Config from dictionary."""
        # Import here to avoid circular dependency
        from citeweave.core.config_loaders import expand_env_vars

        data = expand_env_vars(data or {})

        definitions_data = cls._filter_fields(DefinitionsConfig, data.get("definitions"))
        for key in ("styles_dir", "locales_dir"):
            # "${VAR:}" expands to "", which means unset
            if definitions_data.get(key) == "":
                definitions_data[key] = None

        return cls(
            session=SessionConfig(
                **cls._filter_fields(SessionConfig, data.get("session"))
            ),
            definitions=DefinitionsConfig(**definitions_data),
            render=RenderConfig(**cls._filter_fields(RenderConfig, data.get("render"))),
            logging=LoggingConfig(
                **cls._filter_fields(LoggingConfig, data.get("logging"))
            ),
        )
