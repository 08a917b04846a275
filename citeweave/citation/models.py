"""Data model shared by the citation core.

CitationItem and Cluster describe what was cited, BibliographyMeta carries
the layout data returned with a bibliography, ReferenceSummary is one row
of the reference list.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from citeweave.core.exceptions import CitationRenderError

RawCitationItem = Union[str, dict[str, Any], "CitationItem"]

_ITEM_FIELDS = ("id", "prefix", "suffix", "locator", "label")


class ScopeMode(Enum):
    """Which references a bibliography engine is scoped to."""

    CITED = "cited"
    SHOW_ALL = "show_all"


@dataclass
class CitationItem:
    """One reference occurrence inside a cluster."""

    id: str
    prefix: str = ""
    suffix: str = ""
    locator: Optional[str] = None
    label: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: RawCitationItem) -> "CitationItem":
        """
        Normalize a citation argument.

        A bare string is shorthand for ``{"id": string}``. Dicts must carry
        a non-empty string ``id``; unknown keys are kept in ``extra``.

        Raises:
            CitationRenderError: If the item is malformed
        """
        if isinstance(raw, CitationItem):
            return cls(raw.id, raw.prefix, raw.suffix, raw.locator, raw.label,
                       dict(raw.extra))
        if isinstance(raw, str):
            if not raw.strip():
                raise CitationRenderError("Citation item id must not be empty")
            return cls(id=raw)
        if isinstance(raw, dict):
            item_id = raw.get("id")
            if not isinstance(item_id, str) or not item_id.strip():
                raise CitationRenderError(
                    f"Citation item needs a string 'id', got: {raw!r}"
                )
            return cls(
                id=item_id,
                prefix=str(raw.get("prefix") or ""),
                suffix=str(raw.get("suffix") or ""),
                locator=_optional_str(raw.get("locator")),
                label=_optional_str(raw.get("label")),
                extra={k: v for k, v in raw.items() if k not in _ITEM_FIELDS},
            )
        raise CitationRenderError(
            f"Citation item must be a string or a dict, got {type(raw).__name__}"
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id}
        if self.prefix:
            data["prefix"] = self.prefix
        if self.suffix:
            data["suffix"] = self.suffix
        if self.locator is not None:
            data["locator"] = self.locator
        if self.label is not None:
            data["label"] = self.label
        data.update(self.extra)
        return data


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


@dataclass
class Cluster:
    """One in-text citation occurrence, possibly citing several references."""

    cluster_id: str
    citation_items: list[CitationItem]
    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def item_ids(self) -> list[str]:
        return [item.id for item in self.citation_items]

    @property
    def note_index(self) -> int:
        return int(self.properties.get("noteIndex", 0))


@dataclass(frozen=True)
class BibliographyMeta:
    """Wrapper markup and layout data returned with bibliography entries."""

    bibstart: str = '<div class="csl-bib-body">'
    bibend: str = "</div>"
    entry_ids: tuple[str, ...] = ()
    linespacing: float = 1.0
    hangingindent: bool = False


@dataclass(frozen=True)
class ReferenceSummary:
    """One row of the reference list."""

    name: str
    title: str
    type: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "title": self.title, "type": self.type}
