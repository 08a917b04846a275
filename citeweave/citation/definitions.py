"""
CSL Style and Locale Definition Sources.

Loads the two string resources a citation session needs before it can
render anything: the CSL style definition (``apa.csl``) and the CSL locale
definition (``locales-en-GB.xml``).

Architecture Context
--------------------
Definitions are fetched once, during CitationSession.create(). A failure
here is a setup failure and rejects session creation:

    CitationSession.create()
           ↓
    DefinitionCache.style("apa") ──miss──→ DefinitionSource.fetch_style("apa")
           ↓                                   ├── HttpDefinitionSource (httpx)
    style XML text                             └── LocalDefinitionSource (files)

Caching
-------
DefinitionCache is an explicit object keyed by ``(kind, name)``. Sessions
created with the same cache share downloads; tests create a fresh one.

Usage Example
-------------
    source = HttpDefinitionSource.from_config(config.definitions)
    cache = DefinitionCache(source)
    style_xml = await cache.style("apa")
    locale_xml = await cache.locale("en-GB")
    await source.close()
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

import httpx

from citeweave.core.config import DEFAULT_LOCALE_URL, DEFAULT_STYLE_URL, DefinitionsConfig
from citeweave.core.exceptions import DefinitionFetchError
from citeweave.core.logging import get_logger

logger = get_logger(__name__)

STYLE = "style"
LOCALE = "locale"


class DefinitionSource(ABC):
    """Abstract source of CSL style and locale definitions."""

    @abstractmethod
    async def fetch_style(self, name: str) -> str:
        """
        Load a CSL style definition.

        Raises:
            DefinitionFetchError: If the style cannot be loaded
        """
        pass

    @abstractmethod
    async def fetch_locale(self, name: str) -> str:
        """
        Load a CSL locale definition.

        Raises:
            DefinitionFetchError: If the locale cannot be loaded
        """
        pass

    async def fetch(self, kind: str, name: str) -> str:
        if kind == STYLE:
            return await self.fetch_style(name)
        if kind == LOCALE:
            return await self.fetch_locale(name)
        raise ValueError(f"Unknown definition kind: {kind}")

    async def close(self) -> None:
        """Release resources held by the source."""
        return None


class HttpDefinitionSource(DefinitionSource):
    """
    Fetch definitions from the CSL styles and locales repositories.

    The HTTP client is created lazily on first fetch and closed by close().
    """

    def __init__(
        self,
        style_url: str = DEFAULT_STYLE_URL,
        locale_url: str = DEFAULT_LOCALE_URL,
        timeout_seconds: float = 30.0,
    ) -> None:
        """
        Initialize the source.

        Args:
            style_url: URL template with a {name} placeholder for styles
            locale_url: URL template with a {name} placeholder for locales
            timeout_seconds: Request timeout in seconds
        """
        self.style_url = style_url
        self.locale_url = locale_url
        self.timeout_seconds = timeout_seconds
        self._http_client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config: DefinitionsConfig) -> "HttpDefinitionSource":
        return cls(
            style_url=config.style_url,
            locale_url=config.locale_url,
            timeout_seconds=config.timeout_seconds,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client (lazy initialization)."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                follow_redirects=True,
            )
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def fetch_style(self, name: str) -> str:
        return await self._get(STYLE, name, self.style_url.format(name=name))

    async def fetch_locale(self, name: str) -> str:
        return await self._get(LOCALE, name, self.locale_url.format(name=name))

    async def _get(self, kind: str, name: str, url: str) -> str:
        client = await self._get_client()
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            raise DefinitionFetchError(kind, name, str(e) or type(e).__name__) from e

        if response.status_code != 200:
            reason = response.reason_phrase or f"HTTP {response.status_code}"
            raise DefinitionFetchError(kind, name, reason)

        logger.debug(f"Fetched CSL {kind}", name=name, size=len(response.text))
        return response.text


class LocalDefinitionSource(DefinitionSource):
    """Read definitions from local directories laid out like the CSL repositories."""

    def __init__(
        self,
        styles_dir: Union[str, Path, None] = None,
        locales_dir: Union[str, Path, None] = None,
    ) -> None:
        self.styles_dir = Path(styles_dir) if styles_dir else None
        self.locales_dir = Path(locales_dir) if locales_dir else None

    @classmethod
    def from_config(cls, config: DefinitionsConfig) -> "LocalDefinitionSource":
        return cls(styles_dir=config.styles_dir, locales_dir=config.locales_dir)

    async def fetch_style(self, name: str) -> str:
        return self._read(STYLE, name, self.styles_dir, f"{name}.csl")

    async def fetch_locale(self, name: str) -> str:
        return self._read(LOCALE, name, self.locales_dir, f"locales-{name}.xml")

    def _read(self, kind: str, name: str, directory: Optional[Path], filename: str) -> str:
        if directory is None:
            raise DefinitionFetchError(kind, name, f"no local {kind} directory configured")
        path = directory / filename
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise DefinitionFetchError(kind, name, f"cannot read {path.name}") from e


def source_from_config(config: DefinitionsConfig) -> DefinitionSource:
    """Pick the local source when directories are configured, HTTP otherwise."""
    if config.is_local:
        return LocalDefinitionSource.from_config(config)
    return HttpDefinitionSource.from_config(config)


class DefinitionCache:
    """Cache of fetched definition text keyed by (kind, name)."""

    def __init__(self, source: DefinitionSource) -> None:
        self.source = source
        self._entries: dict[tuple[str, str], str] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, kind: str, name: str) -> str:
        key = (kind, name)
        if key not in self._entries:
            self._entries[key] = await self.source.fetch(kind, name)
        return self._entries[key]

    async def style(self, name: str) -> str:
        return await self.get(STYLE, name)

    async def locale(self, name: str) -> str:
        return await self.get(LOCALE, name)

    def clear(self) -> None:
        self._entries.clear()
