"""
Live bibliography container.

A BibliographyContainer owns one element and keeps its content in sync with
the session's citations. It reacts to three triggers:

    citation-updated event   - filtered to this session's id
    cluster anchor mutation  - each anchor observed at most once
    cluster anchor insertion - anchors are observed when first seen

Triggers go through a RenderScheduler, so a burst of them costs one render.
The element is written only when the rendered markup differs from the last
markup applied; writing cluster anchors during a render therefore settles
after one extra pass instead of looping.
"""

from __future__ import annotations

from typing import Callable, Optional
from weakref import WeakKeyDictionary

from citeweave.citation.clusters import ENGINE_ATTR, ClusterRegistry
from citeweave.citation.scheduler import FrameScheduler, RenderScheduler
from citeweave.core.logging import get_logger
from citeweave.document.base import Document, Element, Event, Subscription

logger = get_logger(__name__)

CONTAINER_CLASS = "csl-bibliography"


class BibliographyContainer:
    """Element holding a bibliography that re-renders on citation changes."""

    def __init__(
        self,
        session_id: str,
        document: Document,
        registry: ClusterRegistry,
        render: Callable[[], str],
        frames: FrameScheduler,
        on_dispose: Optional[Callable[["BibliographyContainer"], None]] = None,
    ) -> None:
        self.session_id = session_id
        self.document = document
        self.registry = registry
        self._render = render
        self._on_dispose = on_dispose
        self._last_markup: Optional[str] = None
        self._observed: WeakKeyDictionary[Element, Subscription] = WeakKeyDictionary()
        self.disposed = False
        self.render_count = 0
        self.write_count = 0

        self.element = document.create_element(
            "div", {"class": CONTAINER_CLASS, ENGINE_ATTR: session_id}
        )
        self.scheduler = RenderScheduler(frames, self.update)

        document.add_event_listener(registry.event_name, self._on_citation_updated)
        for anchor in document.query_all(registry.is_cluster_anchor):
            self._observe_cluster(anchor)
        self._insertions = document.observe_insertions(self._on_insertion)

        self.update()

    @property
    def html(self) -> str:
        return self.element.html

    def _on_citation_updated(self, event: Event) -> None:
        if event.detail.get("engine") != self.session_id:
            return
        self.scheduler.request()

    def _on_cluster_mutation(self, _anchor: Element) -> None:
        self.scheduler.request()

    def _on_insertion(self, element: Element) -> None:
        if not self.registry.is_cluster_anchor(element):
            return
        self._observe_cluster(element)
        self.scheduler.request()

    def _observe_cluster(self, anchor: Element) -> None:
        if anchor in self._observed:
            return
        self._observed[anchor] = self.document.observe_subtree(
            anchor, self._on_cluster_mutation
        )

    @property
    def observed_count(self) -> int:
        return len(self._observed)

    def update(self) -> None:
        """Render now and write the element if the markup changed."""
        if self.disposed:
            return
        markup = self._render()
        self.render_count += 1
        if markup == self._last_markup:
            return
        self._last_markup = markup
        self.element.html = markup
        self.write_count += 1

    def dispose(self) -> None:
        """Stop all updates. Safe to call more than once."""
        if self.disposed:
            return
        self.disposed = True
        self.scheduler.cancel()
        self.document.remove_event_listener(
            self.registry.event_name, self._on_citation_updated
        )
        self._insertions.disconnect()
        for subscription in list(self._observed.values()):
            subscription.disconnect()
        self._observed.clear()
        logger.debug("Bibliography container disposed", session=self.session_id)
        if self._on_dispose is not None:
            self._on_dispose(self)
