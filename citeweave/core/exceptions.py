"""
Centralized Exception Hierarchy for citeweave.

This module defines all custom exceptions used throughout citeweave.
All exceptions inherit from CiteweaveError for easy catching.

Helpful Error Messages
----------------------
Each exception includes:
- user_message: Human-readable description of what went wrong
- why_it_happened: Explanation of the root cause
- how_to_fix: Actionable steps to resolve the issue
- error_code: Unique identifier for documentation lookup (e.g., "CW-SETUP-001")

Usage
-----
    from citeweave.core.exceptions import (
        CiteweaveError,
        SetupError,
        DefinitionFetchError,
    )

    try:
        session = await CitationSession.create(bibtex, style="apa")
    except DefinitionFetchError as e:
        logger.error(f"Style download failed: {e}")
    except CiteweaveError as e:
        logger.error(f"citeweave error: {e}")

Exception Hierarchy
-------------------
    CiteweaveError (base)
    ├── SetupError
    │   ├── DefinitionFetchError
    │   └── ReferenceParseError
    ├── RenderError
    │   ├── CitationRenderError
    │   └── BibliographyRenderError
    ├── ReferenceLookupError
    ├── SessionDisposedError
    └── ConfigurationError

Recovery Rules
--------------
1. SetupError is fatal: session creation is rejected, no partial session.
2. RenderError is recovered where it happens and shown as visible markup.
3. ReferenceLookupError is raised by the style engine and surfaces through
   one of the two RenderError recoveries.
"""

from typing import Any, List, Optional
import builtins
import re


def sanitize_path(path: str) -> str:
    """Sanitize a file path to avoid leaking sensitive info.

    Replaces user directories with placeholders.

    Args:
        path: Original file path

    Returns:
        Sanitized path with sensitive components replaced
    """
    if not path:
        return path

    patterns = [
        # Windows user paths: C:\Users\username -> <user-home>
        (r"[A-Za-z]:\\Users\\[^\\]+", r"<user-home>"),
        # Unix/Mac home paths: /home/username or /Users/username -> <user-home>
        (r"/(?:home|Users)/[^/]+", r"<user-home>"),
    ]

    result = path
    for pattern, replacement in patterns:
        result = re.sub(pattern, replacement, result)

    return result


def sanitize_message(message: str) -> str:
    """Sanitize an error message to avoid leaking sensitive info.

    Masks tokens, basic-auth credentials and home directory paths. Error
    messages end up inside rendered document markup, so anything a reader
    should not see is removed here.

    Args:
        message: Original error message

    Returns:
        Sanitized message with sensitive info replaced
    """
    if not message:
        return message

    result = message

    patterns = [
        # Bearer tokens
        (r"Bearer\s+[a-zA-Z0-9_.-]+", r"Bearer <token>"),
        # Basic auth in URLs
        (r"://[^:/\s]+:[^@/\s]+@", r"://<user>:<pass>@"),
        # GitHub style access tokens in query strings
        (r"(token=)[a-zA-Z0-9_-]{16,}", r"\1<token>"),
        # File paths
        (r"[A-Za-z]:\\[^\s\"']+", lambda m: sanitize_path(m.group(0))),
        (r"/(?:home|Users)/[^\s\"']+", lambda m: sanitize_path(m.group(0))),
    ]

    for pattern, replacement in patterns:
        if callable(replacement):
            result = re.sub(pattern, replacement, result)
        else:
            result = re.sub(pattern, str(replacement), result)

    return result


def get_root_cause(exc: BaseException) -> BaseException:
    """Extract the root cause from a chain of exceptions.

    Follows nested __cause__ and __context__ attributes to find
    the original error that started the chain.

    Args:
        exc: Exception to analyze

    Returns:
        Root cause exception (may be the same as input)
    """
    seen = set()
    current = exc

    while current is not None:
        if id(current) in seen:
            break
        seen.add(id(current))

        # Prefer explicit cause over implicit context
        if current.__cause__ is not None:
            current = current.__cause__
        elif current.__context__ is not None:
            current = current.__context__
        else:
            break

    return current


class CiteweaveError(Exception):
    """
    Base exception for all citeweave errors.

    All custom exceptions in citeweave inherit from this class,
    making it easy to catch any citeweave-specific error.

    Includes helpful error information:
    - error_code: Unique code for documentation lookup (e.g., "CW-ERR-001")
    - why_it_happened: Explanation of the root cause
    - how_to_fix: List of actionable suggestions

    Example
    -------
        try:
            session = await CitationSession.create(raw_bibtex)
        except CiteweaveError as e:
            logger.error(f"Session setup failed: {e}")
            print(f"Fix: {e.how_to_fix}")
    """

    error_code: str = "CW-ERR-000"
    why_it_happened: str = "An unexpected error occurred"
    how_to_fix: List[str] = ["Check the error message for details"]

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        why_it_happened: Optional[str] = None,
        how_to_fix: Optional[List[str]] = None,
    ) -> None:
        """Initialize CiteweaveError with helpful information.

        Args:
            message: Human-readable error message
            error_code: Unique identifier (e.g., "CW-SETUP-001")
            why_it_happened: Explanation of root cause
            how_to_fix: List of actionable fix suggestions
        """
        sanitized_message = sanitize_message(message)
        super().__init__(sanitized_message)

        if error_code is not None:
            self.error_code = error_code
        if why_it_happened is not None:
            self.why_it_happened = why_it_happened
        if how_to_fix is not None:
            self.how_to_fix = how_to_fix

    @property
    def user_message(self) -> str:
        """Get the user-friendly error message."""
        return str(self)

    def get_root_cause(self) -> BaseException:
        """Get the root cause of this exception chain."""
        return get_root_cause(self)


# ============================================================================
# Setup Exceptions
# ============================================================================


class SetupError(CiteweaveError):
    """
    Base exception for session setup failures.

    Raised while a citation session is being created. Setup errors are
    fatal: the session is not returned.
    """

    error_code = "CW-SETUP-000"
    why_it_happened = "The citation session could not be created"
    how_to_fix = [
        "Check the style and locale names",
        "Check that the reference data is valid BibTeX or CSL-JSON",
    ]


class DefinitionFetchError(SetupError):
    """
    Raised when a CSL style or locale definition cannot be loaded.

    Attributes
    ----------
    kind : str
        "style" or "locale"
    name : str
        The resource key that failed (e.g. "apa", "en-GB")
    """

    error_code = "CW-SETUP-001"
    why_it_happened = (
        "The CSL style or locale definition could not be downloaded or read"
    )
    how_to_fix = [
        "Check the style name against the CSL styles repository",
        "Check your internet connection",
        "Use a local styles directory with --styles-dir",
    ]

    def __init__(self, kind: str, name: str, reason: str = "") -> None:
        self.kind = kind
        self.name = name
        message = f"Failed to fetch CSL {kind} {name}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ReferenceParseError(SetupError):
    """
    Raised when reference data cannot be parsed.

    This can occur when:
    - BibTeX syntax is broken
    - CSL-JSON is not a list of objects with an "id"
    """

    error_code = "CW-SETUP-002"
    why_it_happened = "The reference data is not valid BibTeX or CSL-JSON"
    how_to_fix = [
        "Validate the BibTeX file with a BibTeX linter",
        "Make sure every CSL-JSON entry has an 'id' field",
    ]


# ============================================================================
# Render Exceptions
# ============================================================================


class RenderError(CiteweaveError):
    """
    Base exception for rendering failures.

    Render errors never escape to callers of the session API; they are
    converted into visible markup where they happen.
    """

    error_code = "CW-RENDER-000"
    why_it_happened = "A citation or bibliography could not be rendered"
    how_to_fix = ["Check the cited reference ids and the style definition"]


class CitationRenderError(RenderError):
    """Raised when a single in-text citation cannot be rendered."""

    error_code = "CW-RENDER-001"
    why_it_happened = (
        "The citation item was malformed or the style engine failed while "
        "previewing the citation"
    )
    how_to_fix = [
        "Pass reference ids as strings or dicts with an 'id' key",
        "Check that the cited id exists in the reference data",
    ]


class BibliographyRenderError(RenderError):
    """Raised when the bibliography cannot be assembled."""

    error_code = "CW-RENDER-002"
    why_it_happened = "The style engine failed while building the bibliography"
    how_to_fix = [
        "Check the cited reference ids",
        "Try a different CSL style to rule out style bugs",
    ]


class ReferenceLookupError(CiteweaveError):
    """
    Raised by the style engine when a cited id is not in the reference store.

    Attributes
    ----------
    reference_id : str
        The id that could not be found
    """

    error_code = "CW-REF-001"
    why_it_happened = "A citation refers to a reference id that does not exist"
    how_to_fix = [
        "Check the spelling of the citation key",
        "List known keys with: citeweave references <file>",
    ]

    def __init__(self, reference_id: str) -> None:
        self.reference_id = reference_id
        super().__init__(f"Reference with key '{reference_id}' not found")


class SessionDisposedError(CiteweaveError):
    """Raised when a disposed session is asked to build a new bibliography."""

    error_code = "CW-SESSION-001"
    why_it_happened = "The citation session was disposed"
    how_to_fix = ["Create a new session with CitationSession.create()"]


class ConfigurationError(CiteweaveError):
    """Raised when configuration values are invalid."""

    error_code = "CW-CONFIG-001"
    why_it_happened = "A configuration value is missing or invalid"
    how_to_fix = [
        "Check the YAML configuration file",
        "Check CITEWEAVE_* environment variables",
    ]


# ============================================================================
# Error info lookup
# ============================================================================


STANDARD_ERROR_INFO: dict[type, dict[str, Any]] = {
    builtins.FileNotFoundError: {
        "error_code": "CW-FILE-001",
        "why_it_happened": "The specified file or directory could not be found",
        "how_to_fix": [
            "Check that the file path is correct",
            "Ensure you have read permissions for the file",
        ],
    },
    builtins.PermissionError: {
        "error_code": "CW-FILE-002",
        "why_it_happened": "You don't have permission to access this file",
        "how_to_fix": [
            "Check file permissions: ls -la <file>",
            "Ensure you own the file or have read access",
        ],
    },
    builtins.ConnectionError: {
        "error_code": "CW-CONN-001",
        "why_it_happened": "Could not establish a network connection",
        "how_to_fix": [
            "Check your internet connection",
            "Use local style and locale directories instead",
        ],
    },
    ImportError: {
        "error_code": "CW-DEP-001",
        "why_it_happened": "A required module could not be imported correctly",
        "how_to_fix": [
            "Reinstall the package: pip install --force-reinstall citeweave",
            "Check for version conflicts: pip check",
        ],
    },
}


def get_error_info(exc: BaseException) -> dict[str, Any]:
    """Get helpful error information for any exception.

    Looks up the exception type in STANDARD_ERROR_INFO or extracts
    info from CiteweaveError subclasses.

    Args:
        exc: Exception to get info for

    Returns:
        Dict with error_code, why_it_happened, how_to_fix
    """
    if isinstance(exc, CiteweaveError):
        return {
            "error_code": exc.error_code,
            "why_it_happened": exc.why_it_happened,
            "how_to_fix": exc.how_to_fix,
        }

    exc_type = type(exc)
    if exc_type in STANDARD_ERROR_INFO:
        return STANDARD_ERROR_INFO[exc_type]

    for parent_type, info in STANDARD_ERROR_INFO.items():
        if isinstance(exc, parent_type):
            return info

    return {
        "error_code": "CW-ERR-999",
        "why_it_happened": "An unexpected error occurred",
        "how_to_fix": [
            "Check the error message for details",
            "Report the issue if it persists",
        ],
    }
