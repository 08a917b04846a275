"""Console output helpers.

Shared rich Console plus the ErrorRenderer used to show setup failures as
panels with "Why it happened" and "How to fix" sections.
"""

from __future__ import annotations

import traceback
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from citeweave.core.exceptions import get_error_info, get_root_cause

# Shared console instance
_console: Console | None = None

# Set by the --verbose flag
_verbose_mode: bool = False


def get_console() -> Console:
    """Get shared console instance (lazy-loaded)."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_verbose_mode(enabled: bool) -> None:
    """Show full tracebacks under error panels when enabled."""
    global _verbose_mode
    _verbose_mode = enabled


def is_verbose_mode() -> bool:
    return _verbose_mode


def tip(message: str) -> None:
    """Print a dim one-line tip."""
    get_console().print(f"  [dim]Tip: {message}[/dim]")


class ErrorRenderer:
    """Renders exceptions as error panels.

    Example
    -------
        try:
            session = asyncio.run(CitationSession.create(raw, style="apa"))
        except CiteweaveError as e:
            ErrorRenderer.render(e, context="While loading refs.bib")
            raise typer.Exit(code=1)
    """

    @staticmethod
    def render(
        exc: BaseException,
        context: str = "",
        show_traceback: Optional[bool] = None,
    ) -> None:
        """Render an exception as an error panel.

        Args:
            exc: Exception to render
            context: Optional context line (e.g., "While loading refs.bib")
            show_traceback: Override for verbose mode (None = use global setting)
        """
        info = get_error_info(exc)
        root_cause = get_root_cause(exc)
        root_message = str(root_cause) if root_cause is not exc else None

        content = ErrorRenderer._build_error_content(
            message=str(exc),
            context=context,
            why=info.get("why_it_happened", "An unexpected error occurred"),
            how_to_fix=info.get("how_to_fix", ["Check the error message"]),
            root_message=root_message,
        )
        get_console().print(
            Panel(
                content,
                title=f"[bold red]Error: {info.get('error_code', 'CW-ERR-999')}[/bold red]",
                border_style="red",
                padding=(1, 2),
            )
        )

        verbose = show_traceback if show_traceback is not None else is_verbose_mode()
        if verbose:
            ErrorRenderer._render_traceback(exc)

    @staticmethod
    def _build_error_content(
        message: str,
        context: str,
        why: str,
        how_to_fix: List[str],
        root_message: Optional[str],
    ) -> Text:
        text = Text()
        if context:
            text.append(f"{context}\n\n", style="dim")

        text.append(message, style="bold red")
        text.append("\n\n")

        if root_message and root_message != message:
            text.append("Root cause: ", style="bold yellow")
            text.append(root_message, style="yellow")
            text.append("\n\n")

        text.append("Why it happened:\n", style="bold cyan")
        text.append(f"  {why}\n\n", style="cyan")

        text.append("How to fix:\n", style="bold green")
        for fix in how_to_fix:
            text.append(f"  - {fix}\n", style="green")
        return text

    @staticmethod
    def _render_traceback(exc: BaseException) -> None:
        console = get_console()
        console.print()
        console.print("[dim]--- Traceback (--verbose mode) ---[/dim]")
        tb_text = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        console.print(tb_text, style="dim", markup=False)
