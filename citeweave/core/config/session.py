"""
Session and rendering configuration.

Provides the defaults a citation session is created with: which CSL style
and locale to load, whether citations and bibliography entries are linked,
and how bibliography markup is laid out.
"""

from dataclasses import dataclass


@dataclass
class SessionConfig:
    """Citation session configuration."""

    locale: str = "en-GB"
    style: str = "apa"
    link_citations: bool = True
    link_bibliography: bool = True


@dataclass
class RenderConfig:
    """Bibliography rendering configuration."""

    frame_interval_sec: float = 1 / 60  # Delay before a coalesced re-render
    line_height_factor: float = 0.8  # Applied to the style's line-spacing
    hanging_indent: str = "1rem"
    emphasize_authors: bool = True  # Wrap leading author text in span.csl-author


@dataclass
class LoggingConfig:
    """Logging configuration as read from YAML."""

    level: str = "INFO"
    file: str = ""  # Empty = no log file
    console: bool = True
