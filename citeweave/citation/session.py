"""
Citation Session - the public API.

A CitationSession ties one reference set, one CSL style and one locale to a
live document. It hands out citation anchors and bibliography containers
and keeps them consistent as the document changes.

Architecture Context
--------------------
    CitationSession
    ├── ReferenceStore        parsed references
    ├── CitationTracker       cited ids (only grows)
    ├── ClusterRegistry       anchors -> clusters, inline previews
    ├── EngineCache           cited / show-all engines
    ├── BibliographyRenderer  markup for one render pass
    └── BibliographyContainer (one per bibliography() call)

Setup is asynchronous (style and locale fetch, reference parsing). Every
other call is synchronous.

Usage Example
-------------
    session = await CitationSession.create(bibtex, style="apa", locale="en-GB")
    document.append(session.citep("smith2020"))
    document.append(session.citeeg("doe2019", "roe2021"))
    container = session.bibliography()
    document.append(container.element)
    ...
    session.dispose()
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from typing import Any, Optional

from rich.table import Table

from citeweave.citation.bibliography import BibliographyContainer
from citeweave.citation.clusters import ENGINE_ATTR, ClusterRegistry
from citeweave.citation.definitions import DefinitionCache, source_from_config
from citeweave.citation.engine import CiteprocEngineFactory, EngineFactory
from citeweave.citation.engine_cache import EngineCache
from citeweave.citation.models import CitationItem, RawCitationItem
from citeweave.citation.references import (
    RawReferences,
    ReferenceStore,
    parse_references,
    summary_table,
)
from citeweave.citation.renderer import BibliographyRenderer
from citeweave.citation.scheduler import AsyncioFrameScheduler, FrameScheduler
from citeweave.citation.tracker import CitationTracker
from citeweave.core.config import Config, RenderConfig
from citeweave.core.exceptions import SessionDisposedError
from citeweave.core.logging import get_logger
from citeweave.document.base import Document, Element, Event
from citeweave.document.memory import InMemoryDocument

logger = get_logger(__name__)

EXAMPLE_PREFIX = "e.g. "


def new_session_id() -> str:
    return uuid.uuid4().hex[:8]


class CitationSession:
    """Citations and bibliographies for one reference set in one document."""

    def __init__(
        self,
        store: ReferenceStore,
        factory: EngineFactory,
        *,
        document: Optional[Document] = None,
        frames: Optional[FrameScheduler] = None,
        link_citations: bool = True,
        render_config: Optional[RenderConfig] = None,
        session_id: Optional[str] = None,
    ) -> None:
        """
        Wire a session from already loaded parts.

        Most callers should use CitationSession.create().

        Args:
            store: Parsed references
            factory: Creates style engines for this session's style and locale
            document: Document citations are rendered into
            frames: Frame primitive for bibliography updates; the default
                needs a running asyncio loop
            link_citations: Wrap cited items in links to bibliography entries
            render_config: Bibliography layout settings
            session_id: Fixed id, generated when omitted
        """
        self.session_id = session_id or new_session_id()
        self.store = store
        self.document = document or InMemoryDocument()
        self.render_config = render_config or RenderConfig()
        self.frames = frames or AsyncioFrameScheduler(self.render_config.frame_interval_sec)
        self.link_citations = link_citations

        self.tracker = CitationTracker()
        self.registry = ClusterRegistry(
            self.session_id,
            self.document,
            factory.inline_engine(store.ids),
            self.tracker,
            link_citations=link_citations,
            resolve_id=store.resolve,
        )
        self.engine_cache = EngineCache(factory, store.ids)
        self.renderer = BibliographyRenderer(
            self.session_id,
            store,
            self.tracker,
            self.registry,
            self.engine_cache,
            self.render_config,
        )
        self._containers: list[BibliographyContainer] = []
        self.disposed = False

        self._click_listener_registered = False
        if link_citations:
            self.document.add_event_listener("click", self._on_click)
            self._click_listener_registered = True

        logger.info(
            "Citation session ready",
            session=self.session_id,
            references=len(store),
        )

    @classmethod
    async def create(
        cls,
        raw: RawReferences,
        *,
        locale: Optional[str] = None,
        style: Optional[str] = None,
        link_citations: Optional[bool] = None,
        link_bibliography: Optional[bool] = None,
        config: Optional[Config] = None,
        document: Optional[Document] = None,
        frames: Optional[FrameScheduler] = None,
        definitions: Optional[DefinitionCache] = None,
    ) -> "CitationSession":
        """
        Fetch definitions, parse references and build a session.

        Keyword arguments override the matching values of ``config``.

        Args:
            raw: BibTeX text, CSL-JSON text or a list of CSL-JSON dicts
            locale: CSL locale name (e.g. "en-GB")
            style: CSL style name (e.g. "apa")
            link_citations: Link citations to bibliography entries
            link_bibliography: Link URLs and DOIs inside entries
            config: Base configuration
            document: Target document, in-memory when omitted
            frames: Frame primitive for bibliography updates
            definitions: Shared definition cache; a private one is used
                (and its source closed) when omitted

        Returns:
            A ready CitationSession

        Raises:
            DefinitionFetchError: If the style or locale cannot be loaded
            ReferenceParseError: If the reference data cannot be parsed
            SetupError: If the style definition is unusable
        """
        config = config or Config()
        locale = locale or config.session.locale
        style = style or config.session.style
        if link_citations is None:
            link_citations = config.session.link_citations
        if link_bibliography is None:
            link_bibliography = config.session.link_bibliography

        private = definitions is None
        if private:
            cache = DefinitionCache(source_from_config(config.definitions))
        else:
            cache = definitions
        try:
            style_xml = await cache.style(style)
            locale_xml = await cache.locale(locale)
        finally:
            if private:
                await cache.source.close()

        store = parse_references(raw)
        factory = CiteprocEngineFactory(
            style_xml,
            store,
            locale=locale,
            locale_xml=locale_xml,
            link_bibliography=link_bibliography,
        )
        logger.debug("Loaded CSL definitions", style=style, locale=locale)
        return cls(
            store,
            factory,
            document=document,
            frames=frames,
            link_citations=link_citations,
            render_config=config.render,
        )

    # ------------------------------------------------------------------
    # Citations
    # ------------------------------------------------------------------

    def citep(self, *items: RawCitationItem, **properties: Any) -> Element:
        """Parenthetical citation, e.g. "(Smith & Jones, 2020)"."""
        return self.registry.cite(items, properties)

    def cite(self, *items: RawCitationItem, **properties: Any) -> Element:
        """Composite (narrative) citation."""
        return self.registry.cite(items, {**properties, "mode": "composite"})

    def citeeg(self, *items: RawCitationItem, **properties: Any) -> Element:
        """Citation introduced by "e.g. "."""
        return self.cite_with_prefix(EXAMPLE_PREFIX, *items, **properties)

    def cite_with_prefix(
        self, prefix: str, *items: RawCitationItem, **properties: Any
    ) -> Element:
        """Citation whose first item is prefixed with ``prefix``."""
        if items:
            items = (_prefixed(items[0], prefix), *items[1:])
        return self.registry.cite(items, properties)

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    def reference_list(self) -> list[dict[str, str]]:
        """All references as {name, title, type} rows, sorted by id."""
        return [row.to_dict() for row in self.store.summaries()]

    def reference_table(self) -> Table:
        """Reference list as a rich Table."""
        return summary_table(self.store.summaries())

    # ------------------------------------------------------------------
    # Bibliography
    # ------------------------------------------------------------------

    def bibliography_markup(self, show_all: bool = False, show_none: bool = False) -> str:
        """Render bibliography markup once, without a live container."""
        return self.renderer.render(show_all=show_all, show_none=show_none)

    def bibliography(
        self, show_all: bool = False, show_none: bool = False
    ) -> BibliographyContainer:
        """
        Create a live bibliography container.

        The container renders immediately and then follows citation changes
        until it or the session is disposed.

        Raises:
            SessionDisposedError: If the session was disposed
        """
        if self.disposed:
            raise SessionDisposedError("Cannot create a bibliography on a disposed session")
        container = BibliographyContainer(
            self.session_id,
            self.document,
            self.registry,
            lambda: self.renderer.render(show_all=show_all, show_none=show_none),
            self.frames,
            on_dispose=self._forget_container,
        )
        self._containers.append(container)
        return container

    def _forget_container(self, container: BibliographyContainer) -> None:
        if container in self._containers:
            self._containers.remove(container)

    @property
    def containers(self) -> list[BibliographyContainer]:
        return list(self._containers)

    # ------------------------------------------------------------------
    # Linking
    # ------------------------------------------------------------------

    def _on_click(self, event: Event) -> None:
        target = event.target
        if target is None or not target.matches(tag="a", class_name="csl-link"):
            return
        href = target.get("href") or ""
        if not href.startswith("#") or target.get(ENGINE_ATTR) != self.session_id:
            return
        if self.document.scroll_into_view(href[1:], self.session_id):
            event.prevent_default()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def dispose(self) -> None:
        """Dispose every container, remove listeners and drop cached engines."""
        if self.disposed:
            return
        self.disposed = True
        for container in list(self._containers):
            container.dispose()
        self._containers.clear()
        if self._click_listener_registered:
            self.document.remove_event_listener("click", self._on_click)
            self._click_listener_registered = False
        self.engine_cache.invalidate()
        logger.info("Citation session disposed", session=self.session_id)


def _prefixed(raw: RawCitationItem, prefix: str) -> RawCitationItem:
    if isinstance(raw, str):
        return {"id": raw, "prefix": prefix}
    if isinstance(raw, dict):
        return {**raw, "prefix": prefix + str(raw.get("prefix") or "")}
    if isinstance(raw, CitationItem):
        return replace(raw, prefix=prefix + raw.prefix, extra=dict(raw.extra))
    return raw
