"""
Document Capability Interface.

This module defines the Document interface - the contract the citation core
uses to talk to the live document it renders into. The core never touches a
concrete DOM; it creates elements, queries them, listens for events and
subscribes to changes through this interface only.

Architecture Context
--------------------
The document sits at the edge of the system. Everything that reacts to
document changes (cluster registry, bibliography containers, click-to-scroll)
depends on it through the abstract base:

    ┌──────────────────┐       ┌──────────────┐       ┌───────────────────┐
    │ ClusterRegistry  │ ────→ │   Document   │ ←──── │ BibliographyCont. │
    │ CitationSession  │       │ (interface)  │       │ RenderScheduler   │
    └──────────────────┘       └──────────────┘       └───────────────────┘
                                      ↑
                               InMemoryDocument

Change Notifications
--------------------
Two kinds of change are observable:

    observe_subtree(element, cb)  - content of one element changed
    observe_insertions(cb)        - an element was inserted into the body

Both return a Subscription. Calling disconnect() stops delivery; calling it
twice is harmless.

Events
------
Events are named strings with an optional ``detail`` payload and an optional
target element. Listeners receive an Event and may call prevent_default().
"""

from __future__ import annotations

import html as html_lib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

ElementCallback = Callable[["Element"], None]
EventListener = Callable[["Event"], None]


class Element:
    """
    A node of the document with a tag, attributes and inner markup.

    Elements compare by identity, so they can be used as keys of a
    WeakKeyDictionary. Setting ``html`` to a different value notifies
    subtree observers; writing the same value is a no-op.
    """

    def __init__(
        self, tag: str, attrs: Optional[Dict[str, str]] = None, html: str = ""
    ) -> None:
        self.tag = tag
        self.attrs: Dict[str, str] = dict(attrs or {})
        self._html = html
        self._observers: List[ElementCallback] = []

    @property
    def html(self) -> str:
        return self._html

    @html.setter
    def html(self, value: str) -> None:
        if value == self._html:
            return
        self._html = value
        for callback in list(self._observers):
            callback(self)

    @property
    def classes(self) -> set[str]:
        return set(self.attrs.get("class", "").split())

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get an attribute value."""
        return self.attrs.get(name, default)

    def set(self, name: str, value: str) -> None:
        """Set an attribute value."""
        self.attrs[name] = value

    def matches(self, tag: Optional[str] = None, class_name: Optional[str] = None,
                **attrs: str) -> bool:
        """
        Check the element against a simple selector.

        Keyword attribute names use underscores for dashes, so
        ``data_citation_engine_id="x"`` matches ``data-citation-engine-id="x"``.
        """
        if tag is not None and self.tag != tag:
            return False
        if class_name is not None and class_name not in self.classes:
            return False
        for key, value in attrs.items():
            if self.attrs.get(key.replace("_", "-")) != value:
                return False
        return True

    @property
    def outer_html(self) -> str:
        attrs = "".join(
            f' {key}="{html_lib.escape(value, quote=True)}"'
            for key, value in self.attrs.items()
        )
        return f"<{self.tag}{attrs}>{self._html}</{self.tag}>"

    def __repr__(self) -> str:
        return f"Element({self.tag!r}, {self.attrs!r})"


@dataclass
class Event:
    """A dispatched document event."""

    name: str
    detail: Dict[str, Any] = field(default_factory=dict)
    target: Optional[Element] = None
    default_prevented: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True


class Subscription:
    """Handle returned by observe_* calls."""

    def __init__(self, on_disconnect: Callable[[], None]) -> None:
        self._on_disconnect: Optional[Callable[[], None]] = on_disconnect

    @property
    def connected(self) -> bool:
        return self._on_disconnect is not None

    def disconnect(self) -> None:
        """Stop delivering notifications. Idempotent."""
        if self._on_disconnect is None:
            return
        on_disconnect, self._on_disconnect = self._on_disconnect, None
        on_disconnect()


class Document(ABC):
    """
    Abstract interface for a live, mutable document.

    Implementors must provide element creation, querying, events, change
    subscriptions and scrolling. See InMemoryDocument for a reference
    implementation used by tests and synchronous hosts.
    """

    @abstractmethod
    def create_element(self, tag: str, attrs: Optional[Dict[str, str]] = None,
                       html: str = "") -> Element:
        """Create a detached element."""
        pass

    @abstractmethod
    def query_all(self, predicate: Callable[[Element], bool]) -> List[Element]:
        """Return attached elements matching predicate, in document order."""
        pass

    @abstractmethod
    def add_event_listener(self, name: str, listener: EventListener) -> None:
        pass

    @abstractmethod
    def remove_event_listener(self, name: str, listener: EventListener) -> None:
        pass

    @abstractmethod
    def dispatch_event(self, name: str, detail: Optional[Dict[str, Any]] = None,
                       target: Optional[Element] = None) -> Event:
        """Deliver an event to every listener registered for ``name``."""
        pass

    @abstractmethod
    def observe_subtree(self, element: Element, callback: ElementCallback) -> Subscription:
        """Call ``callback(element)`` whenever the element's content changes."""
        pass

    @abstractmethod
    def observe_insertions(self, callback: ElementCallback) -> Subscription:
        """Call ``callback(element)`` for every element inserted into the body."""
        pass

    @abstractmethod
    def scroll_into_view(self, entry_id: str, session_id: str) -> bool:
        """
        Scroll the bibliography entry of a session into view.

        Returns:
            True if a matching entry was found
        """
        pass
