"""
Cluster Registry.

Creates citation clusters, renders their anchors, and remembers which
anchor shows which cluster.

Cite Protocol
-------------
    registry.cite(["smith2020", {"id": "doe2019", "locator": "12"}], {})
        1. normalize items, wrap prefix/suffix with link markup
        2. force properties["noteIndex"] = 0, assign a cluster id
        3. record the cited ids
        4. preview the cluster through the inline engine
        5. create <span class="csl-citation-cluster" ...> with the preview
        6. register anchor -> cluster
        7. dispatch the citation-updated event once

A failure in steps 1 or 2 (malformed items) returns an inline error marker
and records nothing. A failure in step 4 also returns the marker, but the
ids are already recorded, so an unknown id reaches the bibliography engine
and shows up there as an error banner.

Item ids are rewritten to the spelling the reference store uses, so links
and bibliography entry ids agree whatever case the caller cited with.

Anchor Association
------------------
The registry owns a WeakKeyDictionary from anchor element to Cluster. An
anchor dropped by the host is forgotten without explicit cleanup.
"""

from __future__ import annotations

import html
import itertools
from typing import Any, Callable, Iterable, Optional
from weakref import WeakKeyDictionary

from citeweave.citation.engine import StyleEngine
from citeweave.citation.models import CitationItem, Cluster, RawCitationItem
from citeweave.citation.tracker import CitationTracker
from citeweave.core.exceptions import CitationRenderError, CiteweaveError, sanitize_message
from citeweave.core.logging import get_logger
from citeweave.document.base import Document, Element

logger = get_logger(__name__)

CLUSTER_CLASS = "csl-citation-cluster"
ENGINE_ATTR = "data-citation-engine-id"
CLUSTER_ATTR = "data-cluster-id"
EVENT_PREFIX = "citeweave:citation-updated"

ERROR_MARKER_STYLE = "padding: 0 5px; background-color: red; color: white;"


def citation_event_name(session_id: str) -> str:
    """Name of the per-session citation-updated event."""
    return f"{EVENT_PREFIX}:{session_id}"


class ClusterRegistry:
    """Creates clusters and tracks the anchors rendering them."""

    def __init__(
        self,
        session_id: str,
        document: Document,
        inline_engine: StyleEngine,
        tracker: CitationTracker,
        *,
        link_citations: bool = True,
        resolve_id: Optional[Callable[[str], Optional[str]]] = None,
    ) -> None:
        self.session_id = session_id
        self.document = document
        self.inline_engine = inline_engine
        self.tracker = tracker
        self.link_citations = link_citations
        self.resolve_id = resolve_id
        self.event_name = citation_event_name(session_id)
        self._anchors: WeakKeyDictionary[Element, Cluster] = WeakKeyDictionary()
        self._ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_cluster(
        self,
        items: Iterable[RawCitationItem],
        properties: Optional[dict[str, Any]] = None,
    ) -> Cluster:
        """
        Build a cluster from raw citation items.

        Raises:
            CitationRenderError: If an item is malformed or there are no items
        """
        citation_items = [
            self._wrap(self._canonical(CitationItem.from_raw(raw))) for raw in items
        ]
        if not citation_items:
            raise CitationRenderError("A citation needs at least one item")

        cluster_properties = dict(properties or {})
        cluster_properties["noteIndex"] = 0
        return Cluster(
            cluster_id=f"{self.session_id}-{next(self._ids)}",
            citation_items=citation_items,
            properties=cluster_properties,
        )

    def _canonical(self, item: CitationItem) -> CitationItem:
        if self.resolve_id is not None:
            item.id = self.resolve_id(item.id) or item.id
        return item

    def _wrap(self, item: CitationItem) -> CitationItem:
        if not self.link_citations:
            return item
        item_id = html.escape(item.id, quote=True)
        item.prefix = (
            f'<span class="csl-citation-item" {ENGINE_ATTR}="{self.session_id}" '
            f'data-citation-item-id="{item_id}">{item.prefix}'
            f'<a class="csl-link" href="#{item_id}" {ENGINE_ATTR}="{self.session_id}">'
        )
        item.suffix = f"</a>{item.suffix}</span>"
        return item

    def cite(
        self,
        items: Iterable[RawCitationItem],
        properties: Optional[dict[str, Any]] = None,
    ) -> Element:
        """
        Create, preview and register a cluster.

        Never raises; failures come back as an error marker element.
        """
        try:
            cluster = self.create_cluster(items, properties)
            self.tracker.record_cited(cluster.item_ids)
            preview = self.inline_engine.preview_cluster(cluster)
        except Exception as e:
            logger.warning("Citation failed", session=self.session_id, error=str(e))
            return self._error_marker(e)

        anchor = self.document.create_element(
            "span",
            {
                "class": CLUSTER_CLASS,
                ENGINE_ATTR: self.session_id,
                CLUSTER_ATTR: cluster.cluster_id,
            },
            html=preview,
        )
        self._anchors[anchor] = cluster
        logger.debug(
            "Cluster registered",
            session=self.session_id,
            cluster=cluster.cluster_id,
            items=len(cluster.citation_items),
        )
        self.document.dispatch_event(
            self.event_name,
            {"engine": self.session_id, "cluster": cluster.cluster_id},
        )
        return anchor

    def _error_marker(self, error: Exception) -> Element:
        message = str(error) if isinstance(error, CiteweaveError) else sanitize_message(
            f"{type(error).__name__}: {error}"
        )
        return self.document.create_element(
            "span",
            {"style": ERROR_MARKER_STYLE},
            html=(
                '<span style="font-weight: bold;">Citation error: </span>'
                f"{html.escape(message)}"
            ),
        )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._anchors)

    def cluster_for(self, anchor: Element) -> Optional[Cluster]:
        return self._anchors.get(anchor)

    def is_cluster_anchor(self, element: Element) -> bool:
        """True for a span.csl-citation-cluster of this session."""
        return element.matches(
            tag="span", class_name=CLUSTER_CLASS, data_citation_engine_id=self.session_id
        )

    def live_clusters(self) -> list[tuple[Element, Cluster]]:
        """Registered anchors still in the document, in document order."""
        live = []
        for anchor in self.document.query_all(self.is_cluster_anchor):
            cluster = self._anchors.get(anchor)
            if cluster is not None:
                live.append((anchor, cluster))
        return live

    def update_anchor(self, anchor: Element, markup: str) -> bool:
        """Write markup into an anchor if it differs. Returns True on write."""
        if anchor.html == markup:
            return False
        anchor.html = markup
        return True
