"""
Structured Logging for citeweave.

This module provides a logging infrastructure that supports context binding,
a render-pass logger for bibliography regeneration, and consistent formatting
across the package.

Architecture Context
--------------------
Logging is a Core layer service used by every module. All modules should
import get_logger() from here rather than using Python's logging directly:

    # Good - uses citeweave's structured logging
    from citeweave.core.logging import get_logger
    logger = get_logger(__name__)

    # Avoid - bypasses our structure
    import logging
    logger = logging.getLogger(__name__)

Logger Types
------------
**StructuredLogger**
    Base logger with context binding support. Allows attaching key-value pairs
    that appear in all subsequent log messages:

        logger = get_logger(__name__)
        logger.bind(session="a1b2c3d4")
        logger.info("Cluster registered")  # includes session

**RenderLogger**
    Specialized for bibliography render passes. Tracks the pass mode with
    timing and progress:

        rlog = RenderLogger(session_id)
        rlog.start_pass("cited")
        rlog.log_progress("Reprocessed clusters", clusters=4)
        rlog.finish(success=True, entries=12)

Module-Level Factory
--------------------
The get_logger() function provides cached logger instances:

    logger = get_logger("citeweave.citation.renderer")

Loggers are cached by name, so multiple calls return the same instance.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from rich.logging import RichHandler


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    file_path: Optional[Path] = None
    console: bool = True


class StructuredLogger:
    """
    Structured logger with context support.

    Provides consistent logging across the package with
    support for structured fields and context tracking.
    """

    def __init__(self, name: str, config: Optional[LogConfig] = None) -> None:
        self.logger = logging.getLogger(name)
        self.config = config or _ConfigHolder.get_config()
        self._context: dict[str, Any] = {}
        self._setup_logger()

    def _setup_logger(self) -> None:
        """Configure the logger."""
        level = getattr(logging, self.config.level.upper(), logging.INFO)
        self.logger.setLevel(level)

        self.logger.handlers.clear()

        formatter = logging.Formatter(
            self.config.format,
            datefmt=self.config.date_format,
        )

        if self.config.console:
            console_handler = RichHandler(
                show_time=True,
                show_path=False,
                markup=False,
                rich_tracebacks=True,
                console=None,
            )
            console_handler.setLevel(level)
            self.logger.addHandler(console_handler)

        if self.config.file_path:
            self.config.file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.config.file_path)
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    def bind(self, **kwargs: Any) -> "StructuredLogger":
        """Attach context fields to every following message."""
        self._context.update(kwargs)
        return self

    def unbind(self, *keys: str) -> None:
        """Remove context fields."""
        for key in keys:
            self._context.pop(key, None)

    def _format_message(self, message: str, **kwargs: Any) -> str:
        """Format message with context and extra fields."""
        fields = {**self._context, **kwargs}
        if fields:
            field_str = " | ".join(f"{k}={v}" for k, v in fields.items())
            return f"{message} | {field_str}"
        return message

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        self.logger.debug(self._format_message(message, **kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self.logger.info(self._format_message(message, **kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self.logger.warning(self._format_message(message, **kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error message."""
        self.logger.error(self._format_message(message, **kwargs))

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self.logger.exception(self._format_message(message, **kwargs))


_loggers: dict[str, StructuredLogger] = {}


def get_logger(name: str, config: Optional[LogConfig] = None) -> StructuredLogger:
    """
    Get or create a structured logger.

    Args:
        name: Logger name (typically __name__).
        config: Optional logging configuration.

    Returns:
        Configured StructuredLogger instance.
    """
    if name not in _loggers:
        _loggers[name] = StructuredLogger(name, config)
    return _loggers[name]


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console: bool = True,
) -> None:
    """
    Configure global logging settings.

    Loggers created before this call are reconfigured in place.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional file path for log output.
        console: Whether to log to console.
    """
    config = LogConfig(
        level=level,
        file_path=log_file,
        console=console,
    )

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    _ConfigHolder.set_config(config)

    for structured in _loggers.values():
        structured.config = config
        structured._setup_logger()


class _ConfigHolder:
    """Holds default logging configuration."""

    _config: LogConfig = LogConfig()

    @classmethod
    def get_config(cls) -> LogConfig:
        """Get the default config."""
        return cls._config

    @classmethod
    def set_config(cls, config: LogConfig) -> None:
        """Set the default config."""
        cls._config = config


class RenderLogger:
    """
    Specialized logger for bibliography render passes.

    Tracks the current pass and provides timing information.
    """

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self.logger = get_logger("citeweave.render")
        self._pass_start: Optional[datetime] = None
        self._current_mode: Optional[str] = None

    def start_pass(self, mode: str) -> None:
        """Mark the start of a render pass."""
        self._current_mode = mode
        self._pass_start = datetime.now()
        self.logger.debug(
            "Starting render pass",
            session=self.session_id,
            mode=mode,
        )

    def _elapsed(self) -> str:
        if self._pass_start is None:
            return "0.000"
        duration = (datetime.now() - self._pass_start).total_seconds()
        return f"{duration:.3f}"

    def finish(
        self, success: bool, entries: int = 0, error: Optional[str] = None
    ) -> None:
        """Mark render pass completion."""
        if success:
            self.logger.debug(
                "Render pass completed",
                session=self.session_id,
                mode=self._current_mode,
                entries=entries,
                duration_sec=self._elapsed(),
            )
        else:
            self.logger.error(
                "Render pass failed",
                session=self.session_id,
                mode=self._current_mode,
                error=error,
            )
        self._current_mode = None
        self._pass_start = None

    def log_progress(self, message: str, **kwargs: Any) -> None:
        """Log progress within a pass."""
        self.logger.debug(
            message,
            session=self.session_id,
            mode=self._current_mode,
            **kwargs,
        )


__all__ = [
    "LogConfig",
    "StructuredLogger",
    "RenderLogger",
    "get_logger",
    "configure_logging",
]
