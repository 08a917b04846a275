"""citeweave CLI - developer tooling around a citation session.

Commands:
    references FILE   - list the references in a BibTeX / CSL-JSON file
    check FILE        - load style and locale, parse references, optionally
                        cite keys and print the bibliography markup
"""

from __future__ import annotations

import asyncio
from functools import wraps
from pathlib import Path
from typing import Any, Callable, List, Optional

import typer

from citeweave.citation.references import parse_references, summary_table
from citeweave.citation.scheduler import ManualFrameScheduler
from citeweave.citation.session import CitationSession
from citeweave.cli.console import ErrorRenderer, get_console, set_verbose_mode, tip
from citeweave.core.config import load_config
from citeweave.core.logging import configure_logging, get_logger

logger = get_logger(__name__)


def safe_cli_command(
    operation_name: str,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator rendering command failures as error panels.

    Args:
        operation_name: Human-readable operation name for error context

    Returns:
        Decorator function that wraps the command with error handling
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except typer.Exit:
                raise
            except Exception as e:
                logger.error(f"[{operation_name}] {type(e).__name__}: {e}")
                ErrorRenderer.render(e, context=f"While running {operation_name}")
                raise typer.Exit(code=1)

        return wrapper

    return decorator


app = typer.Typer(
    name="citeweave",
    help="Live CSL citations and bibliographies",
    add_completion=False,
    pretty_exceptions_enable=False,
)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-V", help="Show version and exit"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show tracebacks on errors"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level"),
) -> None:
    """citeweave - live CSL citations and bibliographies."""
    configure_logging(level=log_level)
    set_verbose_mode(verbose)

    if version:
        from citeweave import __version__

        typer.echo(f"citeweave {__version__}")
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command("references")
@safe_cli_command("reference listing")
def references_command(
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="BibTeX or CSL-JSON file"
    ),
) -> None:
    """List references sorted by id."""
    store = parse_references(file.read_text(encoding="utf-8"))
    rows = store.summaries()
    get_console().print(summary_table(rows, title=f"References in {file.name}"))
    if not rows:
        tip("No entries found. Check that the file is BibTeX or CSL-JSON")


@app.command("check")
@safe_cli_command("session check")
def check_command(
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="BibTeX or CSL-JSON file"
    ),
    style: Optional[str] = typer.Option(None, "--style", "-s", help="CSL style name"),
    locale: Optional[str] = typer.Option(None, "--locale", "-l", help="CSL locale name"),
    styles_dir: Optional[Path] = typer.Option(
        None, "--styles-dir", help="Read {style}.csl from this directory"
    ),
    locales_dir: Optional[Path] = typer.Option(
        None, "--locales-dir", help="Read locales-{locale}.xml from this directory"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="citeweave.yaml to load"
    ),
    cite: Optional[List[str]] = typer.Option(
        None, "--cite", help="Cite a key and print the bibliography (repeatable)"
    ),
) -> None:
    """Create a session from FILE and report what was loaded."""
    config = load_config(config_path)
    if styles_dir:
        config.definitions.styles_dir = str(styles_dir)
    if locales_dir:
        config.definitions.locales_dir = str(locales_dir)

    session = asyncio.run(
        CitationSession.create(
            file.read_text(encoding="utf-8"),
            style=style,
            locale=locale,
            config=config,
            frames=ManualFrameScheduler(),
        )
    )
    console = get_console()
    try:
        console.print(
            f"[green]✓[/green] Session [bold]{session.session_id}[/bold]: "
            f"{len(session.store)} references, "
            f"style {style or config.session.style}, "
            f"locale {locale or config.session.locale}"
        )
        for key in cite or []:
            anchor = session.citep(key)
            session.document.append(anchor)
            console.print(f"  {key}: {anchor.html}", markup=False)
        if cite:
            console.print(session.bibliography_markup(), markup=False)
    finally:
        session.dispose()


def cli_main() -> None:
    """Entry point for console_scripts."""
    app()


if __name__ == "__main__":
    cli_main()
