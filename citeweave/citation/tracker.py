"""Citation tracker: the set of reference ids cited in a session.

The set only grows. An id stays cited after its anchor leaves the document,
so a reference shown in the bibliography does not disappear while the
author is rearranging text.
"""

from __future__ import annotations

from typing import Iterable

KEY_SEPARATOR = "|"


class CitationTracker:
    """Records cited ids and derives the cache key of the cited engine."""

    def __init__(self) -> None:
        self._cited: set[str] = set()

    def record_cited(self, ids: Iterable[str]) -> None:
        """Add ids to the cited set. Recording an id twice is a no-op."""
        self._cited.update(ids)

    def current_key(self) -> str:
        """Sorted ids joined with ``|``; independent of citation order."""
        return KEY_SEPARATOR.join(self.sorted_ids())

    def sorted_ids(self) -> list[str]:
        return sorted(self._cited)

    def is_empty(self) -> bool:
        return not self._cited

    @property
    def cited_ids(self) -> frozenset[str]:
        return frozenset(self._cited)

    def __len__(self) -> int:
        return len(self._cited)

    def __contains__(self, reference_id: object) -> bool:
        return reference_id in self._cited
