"""
Shared pytest fixtures and configuration for citeweave tests.

This file is automatically discovered by pytest and provides fixtures
that can be used across all test files.

Fixture Organization
--------------------
- **temp_dir**: Temporary directory for file operations
- **sample_bibtex / sample_csl_json**: Reference data in both input formats
- **store**: ReferenceStore built without citeproc-py
- **fake_factory**: EngineFactory producing FakeEngine instances
- **document / frames**: InMemoryDocument and ManualFrameScheduler
- **session**: CitationSession wired from the fakes above

The fake engine renders predictable markup so tests can assert exact
strings without depending on a CSL style.
"""

import tempfile
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Tuple

import pytest

from citeweave.citation.engine import EngineFactory, StyleEngine
from citeweave.citation.models import BibliographyMeta, Cluster
from citeweave.citation.references import ReferenceStore
from citeweave.citation.scheduler import ManualFrameScheduler
from citeweave.citation.session import CitationSession
from citeweave.core.exceptions import ReferenceLookupError
from citeweave.document.memory import InMemoryDocument

SESSION_ID = "sess0001"

SAMPLE_BIBTEX = """
@article{smith2020,
  author = {Smith, Alice and Jones, Bob},
  title = {A {Simple} Test},
  journal = {Journal of Testing},
  year = {2020},
  doi = {10.1234/test}
}

@book{doe2019,
  author = {Doe, Jane},
  title = {Reactive Documents},
  publisher = {Example Press},
  year = {2019}
}
"""

SAMPLE_ENTRIES: Dict[str, Dict[str, Any]] = {
    "smith2020": {
        "id": "smith2020",
        "type": "article-journal",
        "title": "A {Simple} Test",
        "author": "Smith, A.",
        "year": 2020,
    },
    "doe2019": {
        "id": "doe2019",
        "type": "book",
        "title": "Reactive Documents",
        "author": "Doe, J.",
        "year": 2019,
    },
    "roe2021": {
        "id": "roe2021",
        "type": "report",
        "title": "Frames and Observers",
        "author": "Roe, R.",
        "year": 2021,
    },
}


# ============================================================================
# Fake style engine
# ============================================================================


class FakeEngine(StyleEngine):
    """
    Predictable StyleEngine.

    Preview:     "(smith2020; doe2019)"
    Processed:   "[2] (smith2020; doe2019)" where 2 is the position in the pass
    Entries:     '<div class="csl-entry">Smith, A. (2020). A Simple Test.</div>'
    """

    def __init__(self, entries: Dict[str, Dict[str, Any]]) -> None:
        self.entries = entries
        self.cited: List[str] = []
        self.uncited: List[str] = []
        self.pass_clusters: List[Cluster] = []
        self.process_calls = 0
        self.fail_bibliography: Optional[Exception] = None

    def update_items(self, ids: List[str]) -> None:
        self.cited = list(ids)

    def update_uncited_items(self, ids: List[str]) -> None:
        self.uncited = list(ids)

    def _check(self, reference_id: str) -> None:
        if reference_id not in self.entries:
            raise ReferenceLookupError(reference_id)

    def preview_cluster(self, cluster: Cluster) -> str:
        parts = []
        for item in cluster.citation_items:
            self._check(item.id)
            parts.append(f"{item.prefix}{item.id}{item.suffix}")
        return "(" + "; ".join(parts) + ")"

    def process_cluster(
        self, cluster: Cluster, citations_pre: List[Tuple[str, int]]
    ) -> Tuple[Dict[str, Any], List[Tuple[int, str, str]]]:
        self.process_calls += 1
        if not citations_pre:
            self.pass_clusters = []
        self.pass_clusters.append(cluster)
        changed = [
            (index, f"[{index + 1}] {self.preview_cluster(c)}", c.cluster_id)
            for index, c in enumerate(self.pass_clusters)
        ]
        return {"bibchange": True}, changed

    def make_bibliography(self) -> Tuple[BibliographyMeta, List[str]]:
        if self.fail_bibliography is not None:
            raise self.fail_bibliography
        ids: List[str] = []
        for reference_id in self.cited + self.uncited:
            self._check(reference_id)
            if reference_id not in ids:
                ids.append(reference_id)
        ids.sort()
        entries = []
        for reference_id in ids:
            entry = self.entries[reference_id]
            title = entry["title"].replace("{", "").replace("}", "")
            entries.append(
                f'<div class="csl-entry">{entry["author"]} ({entry["year"]}). {title}.</div>'
            )
        meta = BibliographyMeta(entry_ids=tuple(ids), linespacing=2.0, hangingindent=True)
        return meta, entries


class FakeEngineFactory(EngineFactory):
    """EngineFactory recording every engine it creates."""

    def __init__(self, entries: Dict[str, Dict[str, Any]]) -> None:
        self.entries = entries
        self.created: List[FakeEngine] = []

    def create_engine(self) -> FakeEngine:
        engine = FakeEngine(self.entries)
        self.created.append(engine)
        return engine


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory (cleaned up after test)
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_bibtex() -> str:
    return SAMPLE_BIBTEX


@pytest.fixture
def sample_csl_json() -> List[Dict[str, Any]]:
    return [
        {
            "id": "smith2020",
            "type": "article-journal",
            "title": "A {Simple} Test",
            "author": [{"family": "Smith", "given": "Alice"}],
            "issued": {"date-parts": [[2020]]},
        },
        {
            "id": "doe2019",
            "type": "book",
            "title": "Reactive Documents",
            "author": [{"family": "Doe", "given": "Jane"}],
            "issued": {"date-parts": [[2019]]},
        },
    ]


@pytest.fixture
def store() -> ReferenceStore:
    """ReferenceStore over SAMPLE_ENTRIES (no citeproc-py source)."""
    return ReferenceStore(entries={k: dict(v) for k, v in SAMPLE_ENTRIES.items()})


@pytest.fixture
def empty_store() -> ReferenceStore:
    return ReferenceStore(entries={})


@pytest.fixture
def fake_factory(store: ReferenceStore) -> FakeEngineFactory:
    return FakeEngineFactory(store.entries)


@pytest.fixture
def document() -> InMemoryDocument:
    return InMemoryDocument()


@pytest.fixture
def frames() -> ManualFrameScheduler:
    return ManualFrameScheduler()


@pytest.fixture
def session(
    store: ReferenceStore,
    fake_factory: FakeEngineFactory,
    document: InMemoryDocument,
    frames: ManualFrameScheduler,
) -> Generator[CitationSession, None, None]:
    """CitationSession over the fake engine, linking disabled."""
    citation_session = CitationSession(
        store,
        fake_factory,
        document=document,
        frames=frames,
        link_citations=False,
        session_id=SESSION_ID,
    )
    yield citation_session
    citation_session.dispose()


@pytest.fixture
def linked_session(
    store: ReferenceStore,
    fake_factory: FakeEngineFactory,
    document: InMemoryDocument,
    frames: ManualFrameScheduler,
) -> Generator[CitationSession, None, None]:
    """CitationSession over the fake engine, linking enabled."""
    citation_session = CitationSession(
        store,
        fake_factory,
        document=document,
        frames=frames,
        link_citations=True,
        session_id=SESSION_ID,
    )
    yield citation_session
    citation_session.dispose()
