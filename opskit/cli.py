"""``component-finder``: list the release components a change must be deployed to.

A component is any module whose file defines a program entry point
(``-main`` in Clojure).  The command diffs two revisions, walks the module
dependency graph backwards from every changed module and prints the
components found along the way.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape

from . import __version__
from .config import (
    TIMEOUT_MAX,
    TIMEOUT_MIN,
    ConfigError,
    FinderConfig,
    load_finder_config,
    with_cli_overrides,
)
from .deadline import run_with_deadline
from .finder import ComponentFinder
from .report import format_report

console = Console(stderr=True)

app = typer.Typer(
    help="List all the release components that you should deploy your code to.",
    add_completion=False,
    rich_markup_mode="rich",
)

USAGE = "\n".join(
    [
        "Usage: component-finder [options] [REV1] [REV2]",
        "",
        "REV1 and REV2 are Git SHAs / refs / tags representing the changed code.",
        "REV1 defaults to HEAD and REV2 to master.",
        "Examples:",
        "   component-finder                      changes between HEAD and master",
        "   component-finder release-branch master",
        "   component-finder -t 60 -e dev/ -s src -s modules/billing/src",
        "",
        "Run with --help for the full option list.",
    ]
)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def validate_args(revisions: List[str], timeout: int) -> Optional[str]:
    """Return an error message for bad arguments, or None when they are fine."""
    errors = []
    if len(revisions) > 2:
        errors.append(f"At most two revisions may be given, got {len(revisions)}: {' '.join(revisions)}")
    if not TIMEOUT_MIN <= timeout <= TIMEOUT_MAX:
        errors.append(f"Timeout must be between {TIMEOUT_MIN} and {TIMEOUT_MAX} seconds, got {timeout}")
    if not errors:
        return None
    return "The following errors occurred while parsing your command:\n\n" + "\n".join(errors)


def _fail(message: str) -> None:
    typer.echo(message, err=True)
    typer.echo("", err=True)
    typer.echo(USAGE, err=True)
    raise typer.Exit(code=1)


def version_callback(value: bool):
    if value:
        typer.echo(f"component-finder v{__version__}")
        raise typer.Exit()


@app.command()
def components(
    revisions: Optional[List[str]] = typer.Argument(
        None,
        metavar="[REV1] [REV2]",
        help="Latest and earliest revision to compare (default: HEAD master).",
        show_default=False,
    ),
    exclude: Optional[List[str]] = typer.Option(
        None,
        "--exclude",
        "-e",
        help="Path prefix to exclude, on top of the configured ones (test/ and qa/ by default). Repeatable.",
    ),
    source_path: Optional[List[str]] = typer.Option(
        None,
        "--source-path",
        "-s",
        help="Source root to scan (default: src). Repeatable.",
    ),
    timeout: Optional[int] = typer.Option(
        None,
        "--timeout",
        "-t",
        help=f"Give up after this many seconds ({TIMEOUT_MIN}-{TIMEOUT_MAX}, default 300).",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show changed modules and why each component is listed.",
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="TOML config file (default: ./.components.toml or $OPSKIT_CONFIG).",
    ),
    version: Optional[bool] = typer.Option(
        None, "--version", help="Show version and exit.", callback=version_callback, is_eager=True,
    ),
):
    """List all the release components that you should deploy your code to."""
    configure_logging(verbose)
    revisions = list(revisions or [])

    try:
        base = load_finder_config(config_file)
    except ConfigError as exc:
        _fail(str(exc))

    error = validate_args(revisions, timeout if timeout is not None else base.timeout)
    if error:
        _fail(error)

    cfg: FinderConfig = with_cli_overrides(
        base,
        latest=revisions[0] if revisions else None,
        earliest=revisions[1] if len(revisions) > 1 else None,
        extra_excludes=exclude,
        source_paths=source_path,
        timeout=timeout,
    )
    if verbose:
        console.print(
            f"[dim]Scanning {escape(', '.join(cfg.source_paths))}; "
            f"excluding {escape(', '.join(cfg.exclude_paths))}[/dim]"
        )

    finder = ComponentFinder(cfg)
    outcome = run_with_deadline(finder.find, cfg.timeout)
    if outcome.timed_out:
        typer.echo(f"[components] Timeout! {cfg.timeout} sec")
        raise typer.Exit(code=1)

    text = format_report(outcome.result(), verbose=verbose)
    if text:
        typer.echo(text)


if __name__ == "__main__":
    app()
