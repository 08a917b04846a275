"""Engine cache: one bibliography engine per scoping mode.

The show-all engine covers every known reference and is built once. The
cited engine covers the cited ids and is rebuilt whenever the tracker's
sorted key changes. Rebuilding always goes through the factory; item sets
of an existing engine are never patched.
"""

from __future__ import annotations

from typing import Optional

from citeweave.citation.engine import EngineFactory, StyleEngine
from citeweave.citation.models import ScopeMode
from citeweave.citation.tracker import KEY_SEPARATOR
from citeweave.core.logging import get_logger

logger = get_logger(__name__)


class EngineCache:
    """Memoizes the cited and show-all bibliography engines."""

    def __init__(self, factory: EngineFactory, reference_ids: list[str]) -> None:
        self.factory = factory
        self.reference_ids = list(reference_ids)
        self._cited_engine: Optional[StyleEngine] = None
        self._cited_key: Optional[str] = None
        self._show_all_engine: Optional[StyleEngine] = None
        self.build_count = {ScopeMode.CITED: 0, ScopeMode.SHOW_ALL: 0}

    def get_bibliography_engine(self, mode: ScopeMode, cited_key: str = "") -> StyleEngine:
        """
        Return the engine for a scoping mode, building it when needed.

        Args:
            mode: CITED or SHOW_ALL
            cited_key: Tracker key; only used in CITED mode

        Returns:
            The cached or freshly built engine
        """
        if mode is ScopeMode.SHOW_ALL:
            if self._show_all_engine is None:
                self._show_all_engine = self.factory.show_all_engine(self.reference_ids)
                self.build_count[ScopeMode.SHOW_ALL] += 1
                logger.debug("Built show-all engine", references=len(self.reference_ids))
            return self._show_all_engine

        if self._cited_engine is None or cited_key != self._cited_key:
            ids = cited_key.split(KEY_SEPARATOR) if cited_key else []
            self._cited_engine = self.factory.cited_engine(ids)
            self._cited_key = cited_key
            self.build_count[ScopeMode.CITED] += 1
            logger.debug("Built cited engine", cited=len(ids))
        return self._cited_engine

    @property
    def cited_key(self) -> Optional[str]:
        return self._cited_key

    def invalidate(self) -> None:
        """Drop both engines."""
        self._cited_engine = None
        self._cited_key = None
        self._show_all_engine = None
