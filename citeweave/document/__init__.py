"""Document capability: the live document citations are rendered into."""

from citeweave.document.base import Document, Element, Event, Subscription
from citeweave.document.memory import InMemoryDocument

__all__ = ["Document", "Element", "Event", "Subscription", "InMemoryDocument"]
