"""Reference store and importer.

Turns BibTeX or CSL-JSON text into a ReferenceStore: an ordered id -> entry
mapping plus the citeproc-py bibliography source the style engine reads.

Reference ids keep the case they were written with. citeproc-py stores and
looks keys up in lowercase, so lookups here are case-insensitive and
resolve() maps any spelling back to the stored id.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from citeproc.source.bibtex import BibTeX
from citeproc.source.json import CiteProcJSON
from rich.table import Table

from citeweave.citation.models import ReferenceSummary
from citeweave.core.exceptions import ReferenceParseError
from citeweave.core.logging import get_logger

logger = get_logger(__name__)

RawReferences = Union[str, list[dict[str, Any]]]

# @type{key, ... title = {...}
_BIBTEX_ENTRY = re.compile(
    r"@(\w+)\s*{\s*([^,]+),[^@]*?title\s*=\s*[{\"]([^\"}]+)[}\"]"
)
_BIBTEX_KEY = re.compile(r"@\w+\s*[{(]\s*([^,\s={}()]+)\s*,")


@dataclass
class ReferenceStore:
    """Parsed references, in input order."""

    entries: dict[str, dict[str, Any]] = field(default_factory=dict)
    source: Any = None
    raw: str = ""

    def __post_init__(self) -> None:
        self._by_key = {ref_id.lower(): ref_id for ref_id in self.entries}

    @property
    def ids(self) -> list[str]:
        return list(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, reference_id: object) -> bool:
        return isinstance(reference_id, str) and self.resolve(reference_id) is not None

    def resolve(self, reference_id: str) -> Optional[str]:
        """Stored id for a key in any case, None when unknown."""
        return self._by_key.get(reference_id.lower())

    def get(self, reference_id: str) -> Optional[dict[str, Any]]:
        stored = self.resolve(reference_id)
        return self.entries[stored] if stored is not None else None

    def is_empty(self) -> bool:
        return not self.entries

    def summaries(self) -> list[ReferenceSummary]:
        """
        Build the reference list, sorted by id.

        Falls back to a regex scan of the raw BibTeX when nothing was parsed.
        """
        if self.is_empty():
            return scan_bibtex(self.raw)
        rows = [
            ReferenceSummary(
                name=ref_id,
                title=_strip_braces(_title_text(entry.get("title"))),
                type=str(entry.get("type", "")),
            )
            for ref_id, entry in self.entries.items()
        ]
        return sorted(rows, key=lambda row: row.name)


def _strip_braces(text: str) -> str:
    return text.replace("{", "").replace("}", "")


def _title_text(title: Any) -> str:
    if title is None:
        return ""
    if isinstance(title, str):
        return title
    if isinstance(title, list):
        return "; ".join(
            t if isinstance(t, str) else str(t.get("title", "")) for t in title
        )
    if isinstance(title, dict):
        return str(title.get("title", ""))
    return str(title)


def scan_bibtex(text: str) -> list[ReferenceSummary]:
    """Extract {name, title, type} rows from BibTeX text without a parser."""
    rows = []
    for match in _BIBTEX_ENTRY.finditer(text or ""):
        entry_type, name, title = (part.strip() for part in match.groups())
        rows.append(ReferenceSummary(name=name, title=_strip_braces(title),
                                     type=entry_type))
    return sorted(rows, key=lambda row: row.name)


def parse_references(raw: RawReferences) -> ReferenceStore:
    """
    Parse reference data into a ReferenceStore.

    Args:
        raw: BibTeX text, CSL-JSON text, or a list of CSL-JSON dicts

    Returns:
        ReferenceStore with entries in input order

    Raises:
        ReferenceParseError: If the data cannot be parsed
    """
    if isinstance(raw, list):
        return _parse_csl_json(raw, raw_text="")
    if not isinstance(raw, str):
        raise ReferenceParseError(
            f"Reference data must be text or a list, got {type(raw).__name__}"
        )

    text = raw.strip()
    if not text:
        return ReferenceStore(entries={}, source=CiteProcJSON([]), raw=raw)
    if text[0] in "[{":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ReferenceParseError(f"Invalid CSL-JSON: {e}") from e
        if isinstance(data, dict):
            data = [data]
        return _parse_csl_json(data, raw_text=raw)
    return _parse_bibtex(raw)


def _parse_csl_json(items: list[Any], raw_text: str) -> ReferenceStore:
    entries: dict[str, dict[str, Any]] = {}
    for position, item in enumerate(items):
        if not isinstance(item, dict) or not isinstance(item.get("id"), str):
            raise ReferenceParseError(
                f"CSL-JSON entry {position} has no string 'id'"
            )
        entries[item["id"]] = dict(item)

    try:
        source = CiteProcJSON(
            [dict(entry, id=ref_id.lower()) for ref_id, entry in entries.items()]
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ReferenceParseError(f"Invalid CSL-JSON: {e}") from e

    logger.debug("Parsed CSL-JSON references", count=len(entries))
    return ReferenceStore(entries=entries, source=source, raw=raw_text)


def _parse_bibtex(text: str) -> ReferenceStore:
    # citeproc-py's BibTeX parser reads from a file
    fd, path = tempfile.mkstemp(suffix=".bib", text=True)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        try:
            source = BibTeX(path, encoding="utf-8")
        except Exception as e:
            raise ReferenceParseError(f"Invalid BibTeX: {e}") from e
    finally:
        os.unlink(path)

    # citeproc-py drops the case of the keys; recover it from the text
    written = {key.lower(): key for key in _BIBTEX_KEY.findall(text)}
    entries: dict[str, dict[str, Any]] = {}
    for key, reference in source.items():
        ref_id = written.get(key.lower(), key)
        entries[ref_id] = {
            "id": ref_id,
            "type": getattr(reference, "type", ""),
            "title": str(reference.get("title", "")),
        }

    if not entries:
        logger.warning("No BibTeX entries parsed, reference list uses a text scan")
    else:
        logger.debug("Parsed BibTeX references", count=len(entries))
    return ReferenceStore(entries=entries, source=source, raw=text)


def summary_table(rows: list[ReferenceSummary], title: str = "References") -> Table:
    """Reference list as a rich Table."""
    table = Table(title=title)
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Type", style="dim")
    for row in rows:
        table.add_row(row.name, row.title, row.type)
    return table
