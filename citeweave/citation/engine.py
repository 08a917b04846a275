"""
Style-Engine Adapter.

Thin facade around the CSL style processor. The citation core talks to a
StyleEngine only; CiteprocEngine implements it on citeproc-py.

Architecture Context
--------------------
Engines are created by an EngineFactory bound to one style, one locale and
one reference store. The session creates three kinds:

    inline engine     - previews single clusters as they are cited
    cited engine      - scoped to cited ids (update_items), rebuilt by EngineCache
    show-all engine   - scoped to every known id (update_uncited_items)

Engine Protocol
---------------
    update_items(ids)                 - ids that are cited
    update_uncited_items(ids)         - ids listed without being cited
    preview_cluster(cluster)          - html for one cluster in isolation
    process_cluster(cluster, pre)     - (meta, [(index, html, cluster_id), ...])
    make_bibliography()               - (BibliographyMeta, [entry_html, ...])

``pre`` is the list of (cluster_id, note_index) pairs already processed in
the current pass. An empty list starts a new pass. process_cluster returns
every cluster of the pass whose markup differs from what the pass has
returned so far, so numbering changes caused by a later cluster reach
earlier ones.

Unknown ids raise ReferenceLookupError.
"""

from __future__ import annotations

import os
import re
import tempfile
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from citeproc import (
    Citation,
    CitationItem as CiteprocItem,
    CitationStylesBibliography,
    CitationStylesStyle,
    Locator,
    formatter,
)
from lxml import etree

from citeweave.citation.models import BibliographyMeta, Cluster
from citeweave.citation.references import ReferenceStore
from citeweave.core.exceptions import ReferenceLookupError, SetupError
from citeweave.core.logging import get_logger

logger = get_logger(__name__)

CSL_NS = "http://purl.org/net/xbiblio/csl"
XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"

ProcessedCluster = tuple[int, str, str]

_ESCAPED_BRACKETS = (("&#60;", "<"), ("&#62;", ">"), ("&lt;", "<"), ("&gt;", ">"))
_URL = re.compile(r'(?<!href=")(?<!">)(https?://[^\s<>"]*[^\s<>".,;)])')
_DOI = re.compile(r"\bdoi:\s*(10\.\d{4,9}/[^\s<>\"]*[^\s<>\".,;)])", re.IGNORECASE)


def unescape_markup(text: str) -> str:
    """Restore angle brackets the style processor escaped."""
    for escaped, plain in _ESCAPED_BRACKETS:
        text = text.replace(escaped, plain)
    return text


def link_urls(entry: str) -> str:
    """Wrap bare URLs and ``doi:`` identifiers in anchors."""
    entry = _URL.sub(r'<a href="\1">\1</a>', entry)
    return _DOI.sub(r'doi:<a href="https://doi.org/\1">\1</a>', entry)


class StyleEngine(ABC):
    """Abstract CSL style processor bound to one style, locale and scope."""

    @abstractmethod
    def update_items(self, ids: list[str]) -> None:
        pass

    @abstractmethod
    def update_uncited_items(self, ids: list[str]) -> None:
        pass

    @abstractmethod
    def preview_cluster(self, cluster: Cluster) -> str:
        pass

    @abstractmethod
    def process_cluster(
        self, cluster: Cluster, citations_pre: list[tuple[str, int]]
    ) -> tuple[dict[str, Any], list[ProcessedCluster]]:
        pass

    @abstractmethod
    def make_bibliography(self) -> tuple[BibliographyMeta, list[str]]:
        pass


class EngineFactory(ABC):
    """Creates engines for one style, locale and reference store."""

    @abstractmethod
    def create_engine(self) -> StyleEngine:
        """Create an unscoped engine."""
        pass

    def inline_engine(self, ids: list[str]) -> StyleEngine:
        engine = self.create_engine()
        engine.update_items(ids)
        return engine

    def cited_engine(self, ids: list[str]) -> StyleEngine:
        engine = self.create_engine()
        engine.update_items(ids)
        return engine

    def show_all_engine(self, ids: list[str]) -> StyleEngine:
        engine = self.create_engine()
        engine.update_uncited_items(ids)
        return engine


# ----------------------------------------------------------------------
# Style XML helpers (lxml)
# ----------------------------------------------------------------------


def inject_locale(style_xml: str, locale_xml: Optional[str]) -> str:
    """
    Merge a standalone CSL locale file into a style as an in-style locale.

    Locales already defined by the style stay first so their overrides win.

    Raises:
        SetupError: If either document is not valid XML
    """
    style_root = _parse_xml("style", style_xml)
    if not locale_xml:
        return etree.tostring(style_root, encoding="unicode")

    locale_root = _parse_xml("locale", locale_xml)
    for info in locale_root.findall(f"{{{CSL_NS}}}info"):
        locale_root.remove(info)

    anchor = None
    for child in style_root:
        if child.tag in (f"{{{CSL_NS}}}info", f"{{{CSL_NS}}}locale"):
            anchor = child
    position = style_root.index(anchor) + 1 if anchor is not None else 0
    style_root.insert(position, locale_root)
    return etree.tostring(style_root, encoding="unicode")


def read_layout(style_xml: str) -> tuple[float, bool]:
    """Read (line-spacing, hanging-indent) from the style's bibliography element."""
    root = _parse_xml("style", style_xml)
    bibliography = root.find(f"{{{CSL_NS}}}bibliography")
    if bibliography is None:
        return 1.0, False
    try:
        linespacing = float(bibliography.get("line-spacing", "1"))
    except ValueError:
        linespacing = 1.0
    return linespacing, bibliography.get("hanging-indent") == "true"


def _parse_xml(kind: str, text: str) -> Any:
    try:
        return etree.fromstring(text.encode("utf-8"))
    except etree.XMLSyntaxError as e:
        raise SetupError(f"Invalid CSL {kind} definition: {e}") from e


def load_style(style_xml: str, locale: str) -> CitationStylesStyle:
    """Parse style XML into a citeproc-py style."""
    fd, path = tempfile.mkstemp(suffix=".csl")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(style_xml)
        try:
            return CitationStylesStyle(path, locale=locale, validate=False)
        except Exception as e:
            raise SetupError(f"Cannot load CSL style: {e}") from e
    finally:
        os.unlink(path)


# ----------------------------------------------------------------------
# citeproc-py implementation
# ----------------------------------------------------------------------


class CiteprocEngine(StyleEngine):
    """StyleEngine backed by citeproc-py with the HTML formatter."""

    def __init__(
        self,
        style: CitationStylesStyle,
        store: ReferenceStore,
        *,
        layout: tuple[float, bool] = (1.0, False),
        link_bibliography: bool = True,
    ) -> None:
        self._style = style
        self._store = store
        self._source = store.source
        self._layout = layout
        self._link_bibliography = link_bibliography
        self._cited: list[str] = []
        self._uncited: list[str] = []
        self._pass: list[Cluster] = []
        self._returned: dict[str, str] = {}

    def update_items(self, ids: list[str]) -> None:
        self._cited = [i.lower() for i in ids]

    def update_uncited_items(self, ids: list[str]) -> None:
        self._uncited = [i.lower() for i in ids]

    def _check(self, reference_id: str) -> str:
        key = reference_id.lower()
        if key not in self._source:
            raise ReferenceLookupError(reference_id)
        return key

    def _to_citation(self, cluster: Cluster) -> Citation:
        items = []
        for item in cluster.citation_items:
            options: dict[str, Any] = {}
            if item.prefix:
                options["prefix"] = item.prefix
            if item.suffix:
                options["suffix"] = item.suffix
            if item.locator:
                options["locator"] = Locator(item.label or "page", item.locator)
            items.append(CiteprocItem(self._check(item.id), **options))
        return Citation(items)

    def _new_bibliography(self) -> CitationStylesBibliography:
        return CitationStylesBibliography(self._style, self._source, formatter.html)

    def _warn(self, citation_item: Any) -> None:
        logger.warning("Reference missing from source", key=citation_item.key)

    def _render(self, clusters: list[Cluster]) -> list[str]:
        citations = [self._to_citation(cluster) for cluster in clusters]
        bibliography = self._new_bibliography()
        for citation in citations:
            bibliography.register(citation)
        bibliography.sort()
        rendered = []
        for cluster, citation in zip(clusters, citations):
            text = unescape_markup(str(bibliography.cite(citation, self._warn)))
            prefix = cluster.properties.get("prefix", "")
            suffix = cluster.properties.get("suffix", "")
            rendered.append(f"{prefix}{text}{suffix}")
        return rendered

    def preview_cluster(self, cluster: Cluster) -> str:
        return self._render([cluster])[0]

    def process_cluster(
        self, cluster: Cluster, citations_pre: list[tuple[str, int]]
    ) -> tuple[dict[str, Any], list[ProcessedCluster]]:
        if not citations_pre:
            self._pass = []
            self._returned = {}
        self._pass = [c for c in self._pass if c.cluster_id != cluster.cluster_id]
        self._pass.append(cluster)

        changed: list[ProcessedCluster] = []
        for index, (processed, html) in enumerate(zip(self._pass, self._render(self._pass))):
            if self._returned.get(processed.cluster_id) != html:
                self._returned[processed.cluster_id] = html
                changed.append((index, html, processed.cluster_id))
        return {"bibchange": bool(changed)}, changed

    def make_bibliography(self) -> tuple[BibliographyMeta, list[str]]:
        # the pass belongs to this render only
        clusters, self._pass, self._returned = self._pass, [], {}
        bibliography = self._new_bibliography()
        for cluster in clusters:
            bibliography.register(self._to_citation(cluster))
        for key in self._cited + self._uncited:
            bibliography.register(Citation([CiteprocItem(self._check(key))]))
        bibliography.sort()

        entries = []
        for item in bibliography.bibliography():
            entry = unescape_markup(str(item))
            if self._link_bibliography:
                entry = link_urls(entry)
            entries.append(f'<div class="csl-entry">{entry}</div>')

        linespacing, hangingindent = self._layout
        meta = BibliographyMeta(
            entry_ids=tuple(self._store.resolve(key) or key for key in bibliography.keys),
            linespacing=linespacing,
            hangingindent=hangingindent,
        )
        return meta, entries


class CiteprocEngineFactory(EngineFactory):
    """
    Creates CiteprocEngine instances sharing one parsed style.

    The locale definition is merged into the style before parsing, so the
    fetched locale terms take effect.
    """

    def __init__(
        self,
        style_xml: str,
        store: ReferenceStore,
        *,
        locale: str = "en-GB",
        locale_xml: Optional[str] = None,
        link_bibliography: bool = True,
        style_loader: Callable[[str, str], Any] = load_style,
    ) -> None:
        merged = inject_locale(style_xml, locale_xml)
        self.layout = read_layout(merged)
        self.style = style_loader(merged, locale)
        self.store = store
        self.link_bibliography = link_bibliography

    def create_engine(self) -> StyleEngine:
        return CiteprocEngine(
            self.style,
            self.store,
            layout=self.layout,
            link_bibliography=self.link_bibliography,
        )
