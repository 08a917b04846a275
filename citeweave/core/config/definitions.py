"""
Style and locale definition source configuration.

CSL styles and locales are fetched from the citation-style-language GitHub
repositories by default. Setting local directories switches the session to
reading definitions from disk.
"""

from dataclasses import dataclass
from typing import Optional

DEFAULT_STYLE_URL = (
    "https://raw.githubusercontent.com/citation-style-language/styles/master/"
    "{name}.csl"
)
DEFAULT_LOCALE_URL = (
    "https://raw.githubusercontent.com/citation-style-language/locales/master/"
    "locales-{name}.xml"
)


@dataclass
class DefinitionsConfig:
    """Where CSL style and locale definitions come from."""

    style_url: str = DEFAULT_STYLE_URL
    locale_url: str = DEFAULT_LOCALE_URL
    timeout_seconds: float = 30.0
    styles_dir: Optional[str] = None  # Read {name}.csl from here instead
    locales_dir: Optional[str] = None  # Read locales-{name}.xml from here instead

    @property
    def is_local(self) -> bool:
        """True when both definitions are read from disk."""
        return bool(self.styles_dir and self.locales_dir)
