"""citeweave - live CSL citations and bibliographies for mutable documents.

This package renders in-text citations and a synchronized bibliography from
BibTeX or CSL-JSON references and a CSL style.
"""

__version__ = "0.3.0"

from citeweave.citation.session import CitationSession

__all__ = ["__version__", "CitationSession"]
