"""cpm -- CPM script sync CLI.

Pulls macros and scripts from the CPM databases into the workspace, pushes
saved files back, and writes lookup reports into the output folder.

Usage:
    cpm [--workspace DIR] [--verbose] COMMAND [OPTIONS]
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from scriptsync import __version__
from scriptsync.errors import SyncError
from scriptsync.lib.artifacts import ArtifactKind, PullReport, Workspace, get_type
from scriptsync.lib.artifacts import pull as pull_artifacts
from scriptsync.lib.artifacts import push as push_file
from scriptsync.lib.artifacts.push import IGNORED, NOT_FOUND
from scriptsync.lib.reports import companies_report, document_types_report
from scriptsync.watcher import watch as watch_workspace

logger = logging.getLogger("cli.cpm")

LOG_FORMAT = "%(asctime)s %(name)-24s %(levelname)-5s %(message)s"


def setup_logging(level: str, log_file: str | None = None) -> None:
    """Configure Python logging."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


@contextmanager
def errors_as_messages() -> Iterator[None]:
    """Report sync and filesystem errors as plain messages instead of tracebacks."""
    try:
        yield
    except SyncError as e:
        raise click.ClickException(str(e)) from e
    except OSError as e:
        raise click.ClickException(f"File system error: {e}") from e


class CliContext:
    """Holds the --workspace option and opens the workspace on first use."""

    def __init__(self, workspace_path: Path | None = None) -> None:
        self.workspace_path = workspace_path
        self._workspace: Workspace | None = None

    def workspace(self, start: Path | None = None) -> Workspace:
        if self._workspace is None:
            with errors_as_messages():
                self._workspace = Workspace.open(self.workspace_path or start)
            logger.debug("Workspace root: %s", self._workspace.root)
        return self._workspace


pass_ctx = click.make_pass_decorator(CliContext, ensure=True)


@click.group()
@click.version_option(__version__, prog_name="cpm")
@click.option(
    "--workspace",
    "-w",
    "workspace_path",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="CPM_WORKSPACE",
    default=None,
    help="Workspace directory (default: nearest parent holding config.json).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option("--log-file", default=None, envvar="CPM_LOG_FILE", help="Also log to this file.")
@click.pass_context
def cli(ctx: click.Context, workspace_path: Path | None, verbose: bool, log_file: str | None) -> None:
    """cpm -- keep CPM macros and scripts in sync with local files."""
    level = "DEBUG" if verbose else os.environ.get("CPM_LOG_LEVEL", "WARNING")
    setup_logging(level, log_file)
    ctx.obj = CliContext(workspace_path)


# ── pull ──────────────────────────────────────────────────────────────────


def _print_report(report: PullReport) -> None:
    atype = get_type(report.kind)
    if not report.groups:
        click.echo(f"No {atype.label} found.")
        return

    for group in report.not_found:
        click.echo(f"✕ No {atype.label} found for {atype.group_column}: {group.label}")

    table = Table(title=f"{atype.noun} pull")
    table.add_column(atype.group_column)
    table.add_column("Files", justify="right")
    table.add_column("Skipped", justify="right")
    for group in report.written_groups:
        table.add_row(group.label, str(len(group.written)), str(len(group.skipped)))
    if report.written_groups:
        Console().print(table)

    click.echo(
        f"✓ {report.files_written} files saved in {len(report.written_groups)} groups"
        f" ({len(report.not_found)} not found)."
    )


def _run_pull(
    ctx: CliContext, kind: ArtifactKind, names: list[str] | None, everything: bool
) -> None:
    workspace = ctx.workspace()
    with errors_as_messages():
        report = pull_artifacts(workspace, kind, names, discover=everything)
    _print_report(report)


def _app_names(apps: tuple[str, ...], ask: bool, allow_global: bool) -> list[str] | None:
    if ask:
        if allow_global:
            name = click.prompt("Enter APPNAME (empty for Global)", default="", show_default=False)
        else:
            name = click.prompt("Enter APPNAME")
        return [name.strip()]
    return list(apps) if apps else None


@cli.group()
def pull() -> None:
    """Pull artifacts from the database into the workspace."""


@pull.command("macros")
@click.option("--app", "apps", multiple=True, help="App name (repeatable). Empty string means Global.")
@click.option("--all", "everything", is_flag=True, help="Pull every app found in the database.")
@click.option("--prompt", "ask", is_flag=True, help="Ask for a single app name.")
@pass_ctx
def pull_macros(ctx: CliContext, apps: tuple[str, ...], everything: bool, ask: bool) -> None:
    """Pull macros. Without options, pulls the app names in config.json."""
    _run_pull(ctx, ArtifactKind.MACRO, _app_names(apps, ask, allow_global=True), everything)


@pull.command("scripts")
@click.option("--app", "apps", multiple=True, help="App name (repeatable).")
@click.option("--all", "everything", is_flag=True, help="Pull every app found in the database.")
@click.option("--prompt", "ask", is_flag=True, help="Ask for a single app name.")
@pass_ctx
def pull_scripts(ctx: CliContext, apps: tuple[str, ...], everything: bool, ask: bool) -> None:
    """Pull table event scripts. Without options, pulls the app names in config.json."""
    names = _app_names(apps, ask, allow_global=False)
    if names is not None and not all(names):
        raise click.UsageError("APPNAME must not be empty for scripts.")
    _run_pull(ctx, ArtifactKind.TABLE_EVENT_SCRIPT, names, everything)


@pull.command("library")
@click.option("--user", "users", multiple=True, help="User name (repeatable). Default: every user.")
@pass_ctx
def pull_library(ctx: CliContext, users: tuple[str, ...]) -> None:
    """Pull library units, one folder per user."""
    _run_pull(ctx, ArtifactKind.LIBRARY_UNIT, list(users) or None, everything=True)


@pull.command("search-scripts")
@click.argument("table", required=False)
@click.option("--all", "everything", is_flag=True, help="Pull every table with a search script.")
@pass_ctx
def pull_search_scripts(ctx: CliContext, table: str | None, everything: bool) -> None:
    """Pull the search scripts of TABLE (prompted when omitted)."""
    if everything:
        _run_pull(ctx, ArtifactKind.SEARCH_SCRIPT, None, everything=True)
        return
    if table is None:
        table = click.prompt("Tablo Ad")
    table = table.strip().upper()
    if not table:
        raise click.UsageError("A table name is required.")
    _run_pull(ctx, ArtifactKind.SEARCH_SCRIPT, [table], everything=False)


# ── push / watch ──────────────────────────────────────────────────────────


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@pass_ctx
def push(ctx: CliContext, file: Path) -> None:
    """Write a saved FILE back to its database row."""
    file = file.resolve()
    workspace = ctx.workspace(file.parent)
    with errors_as_messages():
        outcome = push_file(workspace, file)

    if outcome.action == IGNORED:
        click.echo(f"Ignored {file}: not inside a script folder.")
    elif outcome.action == NOT_FOUND:
        raise click.ClickException(outcome.message)
    else:
        click.echo(f"✓ {outcome.message}")


@cli.command()
@pass_ctx
def watch(ctx: CliContext) -> None:
    """Push script files to the database whenever they are saved."""
    workspace = ctx.workspace()
    click.echo(f"Watching {workspace.root} for saved {workspace.extension} files (Ctrl+C to stop)")
    watch_workspace(
        workspace,
        on_outcome=lambda outcome: click.echo(
            f"{'✕' if outcome.action == NOT_FOUND else '✓'} {outcome.message}"
        ),
        on_error=lambda path, exc: click.echo(f"✕ {path.name}: {exc}", err=True),
    )


# ── reports ───────────────────────────────────────────────────────────────


@cli.group()
def report() -> None:
    """Write lookup reports into the output folder."""


@report.command("doc-types")
@click.argument("term", required=False)
@pass_ctx
def report_doc_types(ctx: CliContext, term: str | None) -> None:
    """Document types matching TERM (a code number or part of the description)."""
    if term is None:
        term = click.prompt("Evrak Tip (number/text)", default="", show_default=False)
    if not term.strip():
        return
    workspace = ctx.workspace()
    with errors_as_messages():
        path = document_types_report(workspace, term)
    if path is not None:
        click.echo(f"Output: {path.relative_to(workspace.root).as_posix()}")


@report.command("companies")
@pass_ctx
def report_companies(ctx: CliContext) -> None:
    """Every company in the security database."""
    workspace = ctx.workspace()
    with errors_as_messages():
        path = companies_report(workspace)
    if path is not None:
        click.echo(f"Output: {path.relative_to(workspace.root).as_posix()}")


# ── check ─────────────────────────────────────────────────────────────────


@cli.command()
@pass_ctx
def check(ctx: CliContext) -> None:
    """Validate config.json, the events file and both database connections."""
    workspace = ctx.workspace()
    click.echo(f"Workspace: {workspace.root}")
    with errors_as_messages():
        events = workspace.load_events()
        click.echo(f"✓ {len(events)} events in {workspace.events_path.name}")
        for scope in ("app", "sec"):
            database = workspace.database(scope)
            with database.connect() as executor:
                executor.scalar("SELECT 1")
            click.echo(f"✓ {scope} database {database.name} reachable")


# ── entry point ───────────────────────────────────────────────────────────


def main() -> None:
    """Entry point for the cpm command."""
    cli()


if __name__ == "__main__":
    main()
