"""
Bibliography Renderer.

Produces the bibliography markup of one session and keeps the inline
citation anchors consistent with it.

Render Contract
---------------
    render(show_all=False, show_none=False)
        1. no references at all       -> NO_REFERENCES_MARKUP
        2. show_none                  -> ""
        3. cited mode, nothing cited  -> NO_CITATIONS_MARKUP
        4. engine from the EngineCache
        5. cited mode: reprocess every live cluster in document order,
           then rewrite anchors whose markup changed
        6. make_bibliography(), stamp entry ids
        7. scoped <style> block + bibliography, wrapped in a container
           tagged with the session id
        8. emphasize the leading author text of each entry

Failures in steps 4 to 8 become an error banner. render() never raises.

Cross-cluster Reprocessing
--------------------------
A cluster previewed on its own may render differently once its siblings
are known (year suffixes, citation numbers). The sweep passes the list of
clusters processed so far to the engine, keeps the latest markup per
cluster id, and writes anchors only after the sweep completes.
"""

from __future__ import annotations

import html
import re
from typing import Optional

from citeweave.citation.clusters import ENGINE_ATTR, ClusterRegistry
from citeweave.citation.engine import StyleEngine
from citeweave.citation.engine_cache import EngineCache
from citeweave.citation.models import BibliographyMeta, ScopeMode
from citeweave.citation.references import ReferenceStore
from citeweave.citation.tracker import CitationTracker
from citeweave.core.config import RenderConfig
from citeweave.core.exceptions import (
    BibliographyRenderError,
    CiteweaveError,
    sanitize_message,
)
from citeweave.core.logging import RenderLogger, get_logger

logger = get_logger(__name__)

NO_REFERENCES_MARKUP = "<b>No references?</b>"
NO_CITATIONS_MARKUP = "<b>No citations!</b>"

# Leading text up to a parenthesised year: "Smith, A., & Jones, B. (2020)"
_AUTHOR = re.compile(r"^([^<]+?)(\s*\(\d{4}\))")
_ENTRY = re.compile(r"^(<div[^>]*>)(.*)(</div>)$", re.DOTALL)


def error_banner(error: BaseException) -> str:
    """Visible replacement for a bibliography that failed to render."""
    if isinstance(error, CiteweaveError):
        message = str(error)
    else:
        message = sanitize_message(str(error) or type(error).__name__)
    return (
        '<div style="color:red;"><strong>Bibliography error:</strong> '
        f"{html.escape(message)}</div>"
    )


def emphasize_author(entry: str) -> str:
    """Wrap the author part of an entry in span.csl-author."""
    match = _ENTRY.match(entry)
    if match is None:
        return entry
    opening, inner, closing = match.groups()
    inner = _AUTHOR.sub(r'<span class="csl-author">\1</span>\2', inner, count=1)
    return f"{opening}{inner}{closing}"


class BibliographyRenderer:
    """Renders one session's bibliography."""

    def __init__(
        self,
        session_id: str,
        store: ReferenceStore,
        tracker: CitationTracker,
        registry: ClusterRegistry,
        cache: EngineCache,
        config: Optional[RenderConfig] = None,
    ) -> None:
        self.session_id = session_id
        self.store = store
        self.tracker = tracker
        self.registry = registry
        self.cache = cache
        self.config = config or RenderConfig()
        self.render_logger = RenderLogger(session_id)

    def render(self, show_all: bool = False, show_none: bool = False) -> str:
        if self.store.is_empty():
            return NO_REFERENCES_MARKUP
        if show_none:
            return ""
        if not show_all and self.tracker.is_empty():
            return NO_CITATIONS_MARKUP

        mode = ScopeMode.SHOW_ALL if show_all else ScopeMode.CITED
        self.render_logger.start_pass(mode.value)
        try:
            engine = self.cache.get_bibliography_engine(mode, self.tracker.current_key())
            if mode is ScopeMode.CITED:
                self._reprocess_clusters(engine)
            meta, entries = engine.make_bibliography()
            markup = self._assemble(meta, entries)
        except Exception as e:
            error = e if isinstance(e, CiteweaveError) else BibliographyRenderError(
                str(e) or type(e).__name__
            )
            self.render_logger.finish(success=False, error=str(error))
            return error_banner(error)

        self.render_logger.finish(success=True, entries=len(entries))
        return markup

    def _reprocess_clusters(self, engine: StyleEngine) -> None:
        live = self.registry.live_clusters()
        if not live:
            return

        processed: list[tuple[str, int]] = []
        latest: dict[str, str] = {}
        for _, cluster in live:
            _, changed = engine.process_cluster(cluster, list(processed))
            for _, markup, cluster_id in changed:
                latest[cluster_id] = markup
            processed.append((cluster.cluster_id, cluster.note_index))

        rewritten = 0
        for anchor, cluster in live:
            markup = latest.get(cluster.cluster_id)
            if markup is not None and self.registry.update_anchor(anchor, markup):
                rewritten += 1
        self.render_logger.log_progress(
            "Reprocessed clusters", clusters=len(live), rewritten=rewritten
        )

    def _assemble(self, meta: BibliographyMeta, entries: list[str]) -> str:
        stamped = []
        for entry_id, entry in zip(meta.entry_ids, entries):
            entry = entry.replace(
                "<div",
                f'<div id="{html.escape(entry_id, quote=True)}" '
                f'{ENGINE_ATTR}="{self.session_id}"',
                1,
            )
            if self.config.emphasize_authors:
                entry = emphasize_author(entry)
            stamped.append(entry)

        body = meta.bibstart + "".join(stamped) + meta.bibend
        return (
            f'<div {ENGINE_ATTR}="{self.session_id}">'
            f"{self._style_block(meta)}{body}</div>"
        )

    def _style_block(self, meta: BibliographyMeta) -> str:
        rules = [f"line-height: {meta.linespacing * self.config.line_height_factor:g};"]
        if meta.hangingindent:
            indent = self.config.hanging_indent
            rules.append(f"padding-left: {indent};")
            rules.append(f"text-indent: -{indent};")
        selector = f'.csl-entry[{ENGINE_ATTR}="{self.session_id}"]'
        return f"<style>{selector} {{ {' '.join(rules)} }}</style>"
