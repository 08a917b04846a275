"""In-memory Document implementation.

The body is a flat ordered list of elements. Content changes are reported
through the element ``html`` setter, insertions through append()/insert().
"""

from __future__ import annotations

import re
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from citeweave.core.logging import get_logger
from citeweave.document.base import (
    Document,
    Element,
    ElementCallback,
    Event,
    EventListener,
    Subscription,
)

logger = get_logger(__name__)


class InMemoryDocument(Document):
    """Document backed by a Python list."""

    def __init__(self) -> None:
        self.body: List[Element] = []
        self._listeners: Dict[str, List[EventListener]] = defaultdict(list)
        self._insertion_observers: List[ElementCallback] = []
        self.scrolled_to: List[str] = []

    # ------------------------------------------------------------------
    # Tree
    # ------------------------------------------------------------------

    def create_element(self, tag: str, attrs: Optional[Dict[str, str]] = None,
                       html: str = "") -> Element:
        return Element(tag, attrs, html)

    def append(self, element: Element) -> Element:
        """Attach an element at the end of the body."""
        return self.insert(len(self.body), element)

    def insert(self, index: int, element: Element) -> Element:
        """Attach an element at a position in the body."""
        if element in self:
            self.body.remove(element)
        self.body.insert(index, element)
        for callback in list(self._insertion_observers):
            callback(element)
        return element

    def remove(self, element: Element) -> None:
        """Detach an element. Detaching an unattached element is a no-op."""
        if element in self:
            self.body.remove(element)

    def __contains__(self, element: object) -> bool:
        return any(item is element for item in self.body)

    def query_all(self, predicate: Callable[[Element], bool]) -> List[Element]:
        return [element for element in self.body if predicate(element)]

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def add_event_listener(self, name: str, listener: EventListener) -> None:
        self._listeners[name].append(listener)

    def remove_event_listener(self, name: str, listener: EventListener) -> None:
        listeners = self._listeners.get(name, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, name: str) -> int:
        return len(self._listeners.get(name, []))

    def dispatch_event(self, name: str, detail: Optional[Dict[str, Any]] = None,
                       target: Optional[Element] = None) -> Event:
        event = Event(name=name, detail=dict(detail or {}), target=target)
        for listener in list(self._listeners.get(name, [])):
            listener(event)
        return event

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def observe_subtree(self, element: Element, callback: ElementCallback) -> Subscription:
        element._observers.append(callback)

        def _disconnect() -> None:
            if callback in element._observers:
                element._observers.remove(callback)

        return Subscription(_disconnect)

    def observe_insertions(self, callback: ElementCallback) -> Subscription:
        self._insertion_observers.append(callback)

        def _disconnect() -> None:
            if callback in self._insertion_observers:
                self._insertion_observers.remove(callback)

        return Subscription(_disconnect)

    def scroll_into_view(self, entry_id: str, session_id: str) -> bool:
        pattern = re.compile(
            r'<div[^>]*\bid="{}"[^>]*data-citation-engine-id="{}"'.format(
                re.escape(entry_id), re.escape(session_id)
            )
        )
        for element in self.body:
            if pattern.search(element.html):
                self.scrolled_to.append(entry_id)
                logger.debug("Scrolled to entry", entry=entry_id, session=session_id)
                return True
        return False
