"""
Core Infrastructure for citeweave.

The innermost layer: configuration, logging and the exception hierarchy.
Core has no dependencies on other citeweave packages.

Components
----------
**Configuration (config/, config_loaders.py)**
    Nested dataclasses with YAML persistence, ${VAR_NAME} expansion and
    CITEWEAVE_* environment overrides.

**Logging (logging.py)**
    Structured logging with context binding, RichHandler console output and
    a RenderLogger for bibliography render passes.

**Exceptions (exceptions.py)**
    CiteweaveError hierarchy with error codes and fix suggestions.

Usage Example
-------------
    from citeweave.core import load_config, get_logger

    config = load_config()
    logger = get_logger(__name__)
"""

from citeweave.core.config import Config, load_config
from citeweave.core.exceptions import CiteweaveError
from citeweave.core.logging import configure_logging, get_logger

__all__ = ["Config", "load_config", "CiteweaveError", "configure_logging", "get_logger"]
