"""Citation tracking and bibliography rendering.

This package provides the reactive citation core:
- session: CitationSession, the public API
- clusters / tracker: citation clusters and the cited-id set
- engine / engine_cache: CSL style engines (citeproc-py) and their cache
- renderer / bibliography / scheduler: bibliography markup and live updates
- references / definitions: reference parsing and CSL style/locale loading
"""

from citeweave.citation.bibliography import BibliographyContainer
from citeweave.citation.definitions import (
    DefinitionCache,
    DefinitionSource,
    HttpDefinitionSource,
    LocalDefinitionSource,
)
from citeweave.citation.engine import CiteprocEngineFactory, EngineFactory, StyleEngine
from citeweave.citation.models import BibliographyMeta, CitationItem, Cluster, ScopeMode
from citeweave.citation.references import ReferenceStore, parse_references
from citeweave.citation.renderer import NO_CITATIONS_MARKUP, NO_REFERENCES_MARKUP
from citeweave.citation.scheduler import (
    AsyncioFrameScheduler,
    FrameScheduler,
    ManualFrameScheduler,
)
from citeweave.citation.session import CitationSession

__all__ = [
    "BibliographyContainer",
    "BibliographyMeta",
    "CitationItem",
    "CitationSession",
    "CiteprocEngineFactory",
    "Cluster",
    "DefinitionCache",
    "DefinitionSource",
    "EngineFactory",
    "HttpDefinitionSource",
    "LocalDefinitionSource",
    "ManualFrameScheduler",
    "AsyncioFrameScheduler",
    "FrameScheduler",
    "NO_CITATIONS_MARKUP",
    "NO_REFERENCES_MARKUP",
    "ReferenceStore",
    "ScopeMode",
    "StyleEngine",
    "parse_references",
]
