"""
Resolve CLI Command
===================

Command-line presentation for the bundle resolver: live progress, log
lines and a results table (or JSON).
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import replace
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from bundle_finder.core.enums import LogLevel, ResolveMode
from bundle_finder.core.errors import BundleFinderError
from bundle_finder.core.schema import BundleRecord, ProgressSnapshot
from bundle_finder.resolution.fetcher import ResilientFetcher
from bundle_finder.resolution.resolver import BundleResolver
from bundle_finder.resolution.settings import Settings, get_default_settings, normalize_proxy

console = Console()
err_console = Console(stderr=True)

_LEVEL_STYLES = {
    LogLevel.INFO: "dim",
    LogLevel.SUCCESS: "green",
    LogLevel.WARNING: "yellow",
    LogLevel.ERROR: "red",
}


class ConsoleReporter:
    """Reporter that renders log lines and a progress bar with rich."""

    def __init__(self, progress: Progress) -> None:
        self._progress = progress
        self._task_id = progress.add_task("Resolving", total=1)
        self.partial_count = 0

    def log(self, message: str, level: LogLevel) -> None:
        style = _LEVEL_STYLES[level]
        self._progress.console.print(f"[{style}]{escape(message)}[/{style}]")

    def progress(self, snapshot: ProgressSnapshot) -> None:
        self._progress.update(
            self._task_id,
            completed=snapshot.current,
            total=snapshot.total,
            description=escape(snapshot.message or "Resolving"),
        )

    def bundles(self, records: list[BundleRecord], *, is_final: bool) -> None:
        if not is_final and len(records) != self.partial_count:
            self.partial_count = len(records)
            self._progress.console.print(f"[cyan]{len(records)} bundle(s) so far[/cyan]")


class VerboseConsoleReporter(ConsoleReporter):
    """Console reporter that also dumps raw response bodies."""

    PREVIEW_CHARS = 2000

    def detail(self, title: str, body: str) -> None:
        preview = body if len(body) <= self.PREVIEW_CHARS else body[: self.PREVIEW_CHARS] + "\n..."
        self._progress.console.rule(escape(title))
        self._progress.console.print(escape(preview), highlight=False)


def _configure_logging(verbose: bool) -> None:
    """Route library logging through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _build_settings(
    concurrency: Optional[int],
    proxy: Optional[str],
    cors_restricted: Optional[bool],
) -> Settings:
    """Apply command-line overrides on top of the process settings."""
    base = get_default_settings()
    fetch = replace(base.fetch)
    resolver = replace(base.resolver)

    if proxy:
        fetch.proxy_override = normalize_proxy(proxy)
    if cors_restricted is not None:
        fetch.cors_restricted = cors_restricted
    if concurrency is not None:
        resolver.concurrency = concurrency

    return Settings(fetch=fetch, resolver=resolver, config_path=base.config_path)


def _display_bundles(bundles: list[BundleRecord]) -> None:
    """Display resolved bundles in formatted tables."""
    if not bundles:
        rprint("[yellow]No bundles found[/yellow]")
        return

    summary = Table(title="Bundles")
    summary.add_column("ID", style="bold")
    summary.add_column("Name")
    summary.add_column("Items", justify="right")
    for bundle in bundles:
        summary.add_row(bundle.id, bundle.name, str(len(bundle.items)))
    console.print(summary)

    for bundle in bundles:
        if not bundle.items:
            continue
        table = Table(title=f"{bundle.name} ({bundle.id})")
        table.add_column("Item ID", style="bold")
        table.add_column("Name")
        table.add_column("Price", justify="right")
        table.add_column("Reviews", justify="right")
        table.add_column("Positive", justify="right")
        for item in bundle.items:
            table.add_row(
                item.item_id,
                item.name or "[dim]?[/dim]",
                f"{item.price:.2f}" if item.price is not None else "-",
                str(item.review_count) if item.review_count is not None else "-",
                f"{item.positive_review_percent}%" if item.positive_review_percent is not None else "-",
            )
        console.print(table)


def resolve_command(
    subject_id: str = typer.Argument(..., help="App id to find bundles for"),
    mode: ResolveMode = typer.Option(ResolveMode.LIST, "--mode", "-m", help="Discovery mode"),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", "-c", help="Maximum concurrent detail fetches"
    ),
    proxy: Optional[str] = typer.Option(None, "--proxy", help="Primary proxy prefix"),
    cors_restricted: Optional[bool] = typer.Option(
        None,
        "--cors-restricted/--direct",
        help="Fall back to proxy relays when the origin fails",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show raw responses and debug logs"),
) -> None:
    """
    Resolve the bundles that include an app.

    Examples:
        bundle-finder resolve 1190970
        bundle-finder resolve 1190970 --mode search --json
        bundle-finder resolve 1190970 --cors-restricted --proxy https://my.relay/
    """
    _configure_logging(verbose)
    settings = _build_settings(concurrency, proxy, cors_restricted)
    fetcher = ResilientFetcher(settings.fetch)

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=err_console,
        transient=True,
    )
    reporter = VerboseConsoleReporter(progress) if verbose else ConsoleReporter(progress)
    resolver = BundleResolver(fetcher, reporter=reporter, settings=settings.resolver)

    try:
        with progress:
            bundles = asyncio.run(resolver.run(subject_id, mode))
    except BundleFinderError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps([bundle.model_dump() for bundle in bundles], indent=2))
    else:
        _display_bundles(bundles)
