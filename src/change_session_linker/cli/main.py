"""CLI entry point for change-session-linker.

Invoked as::

    change-session-linker [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m change_session_linker.cli.main

Commands
--------
- start        — Create a change node and start a session on it
- resume       — Print the session linked from a change node
- continue     — Resume the session linked from the working-copy node
- checkpoint   — Create a new node that continues a session
- append       — Append one turn to a session transcript
- transcript   — Show (part of) a session transcript
- ancestor     — Gather context from a node's ancestors
- sync         — Rewrite a node's summary, keeping its session link
- retire       — Mark a session non-resumable
- version      — Show version information
"""
from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from functools import wraps
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from change_session_linker.exceptions import (
    AdapterUnavailableError,
    ChangeSessionLinkerError,
)

if TYPE_CHECKING:
    from change_session_linker.convenience import Workspace

console = Console()

F = TypeVar("F", bound=Callable[..., object])

_ROLE_STYLES = {
    "user": "green",
    "assistant": "blue",
    "system": "yellow",
    "tool": "magenta",
}


def _workspace(ctx: click.Context) -> Workspace:
    """Return the workspace for this invocation, building it on first use.

    Tests inject a prepared workspace as ``obj={"workspace": ...}``.
    """
    from change_session_linker.config import load_config
    from change_session_linker.convenience import open_workspace

    obj = ctx.find_root().obj
    if obj.get("workspace") is None:
        try:
            config = load_config(obj.get("config_path"), **obj.get("overrides", {}))
        except (OSError, ValueError, ValidationError) as exc:
            console.print(f"[red]Invalid configuration:[/red] {exc}")
            sys.exit(2)
        obj["workspace"] = open_workspace(config)
    return obj["workspace"]


def _handle_errors(func: F) -> F:
    """Print package errors with rich and exit non-zero instead of tracing back."""

    @wraps(func)
    def wrapper(*args: object, **kwargs: object) -> object:
        try:
            return func(*args, **kwargs)
        except AdapterUnavailableError as exc:
            console.print(f"[red]Version control unavailable (retry later):[/red] {exc}")
            sys.exit(3)
        except ChangeSessionLinkerError as exc:
            console.print(f"[red]{type(exc).__name__}:[/red] {exc}")
            sys.exit(1)

    return wrapper  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="change-session-linker")
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="YAML configuration file.",
)
@click.option(
    "--session-root",
    default=None,
    type=click.Path(path_type=Path),
    help="Directory for session records and transcripts.",
)
@click.option(
    "--storage",
    default=None,
    type=click.Choice(["memory", "filesystem", "sqlite"], case_sensitive=False),
    help="Session-record backend.",
)
@click.option(
    "--repo",
    "repo_path",
    default=None,
    type=click.Path(path_type=Path),
    help="Jujutsu repository path.",
)
@click.option(
    "--rebase-policy",
    default=None,
    type=click.Choice(["mark_non_resumable", "warn"]),
    help="How to treat sessions whose checkpoints were rebased away.",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    session_root: Path | None,
    storage: str | None,
    repo_path: Path | None,
    rebase_policy: str | None,
    verbose: bool,
) -> None:
    """Bind agent sessions to a mutable change graph."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["overrides"] = {
        "session_root": session_root,
        "storage": storage,
        "repo_path": repo_path,
        "rebase_policy": rebase_policy,
    }


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from change_session_linker import __version__

    console.print(f"[bold]change-session-linker[/bold] v{__version__}")


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------


@cli.command(name="start")
@click.argument("task")
@click.option("--parent", default=None, help="Node to build on (default: working copy).")
@click.pass_context
@_handle_errors
def start_command(ctx: click.Context, task: str, parent: str | None) -> None:
    """Create a change node for TASK and start a session on it."""
    workspace = _workspace(ctx)
    node_id, session_id = workspace.manager.start_session(task, parent_node_id=parent)
    console.print(f"[green]Session started:[/green] {session_id}")
    console.print(f"  node: {node_id}")


@cli.command(name="resume")
@click.argument("node_id")
@click.pass_context
@_handle_errors
def resume_command(ctx: click.Context, node_id: str) -> None:
    """Print the session linked from NODE_ID."""
    workspace = _workspace(ctx)
    session_id = workspace.manager.resume_session(node_id)
    console.print(f"[green]Resumed session:[/green] {session_id}")
    _print_session_summary(workspace, session_id)


@cli.command(name="continue")
@click.pass_context
@_handle_errors
def continue_command(ctx: click.Context) -> None:
    """Resume the session linked from the working-copy node."""
    workspace = _workspace(ctx)
    node_id = workspace.graph.current_node_id()
    session_id = workspace.manager.resume_session(node_id)
    console.print(f"[green]Continuing session:[/green] {session_id}")
    console.print(f"  node: {node_id}")
    _print_session_summary(workspace, session_id)


@cli.command(name="checkpoint")
@click.argument("session_id")
@click.argument("description")
@click.option("--parent", default=None, help="Current node (default: session head).")
@click.pass_context
@_handle_errors
def checkpoint_command(
    ctx: click.Context,
    session_id: str,
    description: str,
    parent: str | None,
) -> None:
    """Create a node with DESCRIPTION that continues SESSION_ID."""
    workspace = _workspace(ctx)
    node_id = workspace.manager.checkpoint(session_id, description, parent_node_id=parent)
    console.print(f"[green]Checkpoint created:[/green] {node_id}")


@cli.command(name="retire")
@click.argument("session_id")
@click.option("--reason", default="retired by operator", show_default=True)
@click.pass_context
@_handle_errors
def retire_command(ctx: click.Context, session_id: str, reason: str) -> None:
    """Mark SESSION_ID non-resumable.  Its history is kept."""
    workspace = _workspace(ctx)
    workspace.manager.mark_non_resumable(session_id, reason)
    console.print(f"[yellow]Session marked non-resumable:[/yellow] {session_id}")


@cli.command(name="sync")
@click.argument("node_id")
@click.argument("summary")
@click.pass_context
@_handle_errors
def sync_command(ctx: click.Context, node_id: str, summary: str) -> None:
    """Replace NODE_ID's summary with SUMMARY, keeping its session link."""
    workspace = _workspace(ctx)
    workspace.manager.sync_description(node_id, summary)
    console.print(f"[green]Description updated:[/green] {node_id}")


# ---------------------------------------------------------------------------
# Transcripts
# ---------------------------------------------------------------------------


@cli.command(name="append")
@click.argument("session_id")
@click.argument("role", type=click.Choice(list(_ROLE_STYLES)))
@click.argument("content")
@click.pass_context
@_handle_errors
def append_command(ctx: click.Context, session_id: str, role: str, content: str) -> None:
    """Append one ROLE turn with CONTENT to SESSION_ID's transcript."""
    workspace = _workspace(ctx)
    entry = workspace.transcripts.append_turn(session_id, role, content)
    console.print(f"[green]Appended turn[/green] {entry.turn_index}")


@cli.command(name="transcript")
@click.argument("session_id")
@click.option("--start", type=int, default=None, help="First turn index (inclusive).")
@click.option("--end", type=int, default=None, help="Last turn index (exclusive).")
@click.option("--search", "query", default=None, help="Only turns containing this text.")
@click.option("--json-output", is_flag=True, help="Output JSON lines instead of panels.")
@click.pass_context
@_handle_errors
def transcript_command(
    ctx: click.Context,
    session_id: str,
    start: int | None,
    end: int | None,
    query: str | None,
    json_output: bool,
) -> None:
    """Show SESSION_ID's transcript."""
    workspace = _workspace(ctx)
    store = workspace.transcripts
    try:
        if query is None:
            view = store.read(session_id, start, end)
        else:
            view = store.search(session_id, query, start=start, end=end)
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(2)
    entries = view.to_list()

    if json_output:
        for entry in entries:
            click.echo(entry.model_dump_json())
        return
    if not entries:
        console.print("[yellow]No turns found.[/yellow]")
        return
    for entry in entries:
        style = _ROLE_STYLES.get(entry.role, "white")
        header = f"[{style}]{entry.role.upper()}[/{style}] | turn={entry.turn_index}"
        console.print(Panel(entry.content, title=header, expand=False))


# ---------------------------------------------------------------------------
# Ancestor context
# ---------------------------------------------------------------------------


@cli.command(name="ancestor")
@click.argument("node_id")
@click.option("--depth", type=click.IntRange(min=1), default=None, help="Hops to walk.")
@click.option(
    "--include",
    "include",
    multiple=True,
    type=click.Choice(["description", "diff", "transcript"]),
    help="Context slices to gather (repeatable; default: description).",
)
@click.option("--search", "query", default=None, help="Transcript turns containing this text.")
@click.option(
    "--last", "last_n", type=click.IntRange(min=1), default=None, help="Last N transcript turns."
)
@click.option("--json-output", is_flag=True, help="Output raw JSON.")
@click.option(
    "--apply-policy",
    is_flag=True,
    help="Apply the rebase policy to the affected session on discontinuity.",
)
@click.pass_context
@_handle_errors
def ancestor_command(
    ctx: click.Context,
    node_id: str,
    depth: int | None,
    include: tuple[str, ...],
    query: str | None,
    last_n: int | None,
    json_output: bool,
    apply_policy: bool,
) -> None:
    """Gather context from NODE_ID's ancestors."""
    from change_session_linker.resolver.models import (
        ContextField,
        DiscontinuityReport,
        TranscriptFilter,
    )

    workspace = _workspace(ctx)
    fields = {ContextField(name) for name in include} or None
    transcript_filter = (
        TranscriptFilter(query=query, last_n=last_n)
        if query is not None or last_n is not None
        else None
    )
    result = workspace.resolver.query_ancestor(
        node_id, depth=depth, include=fields, transcript_filter=transcript_filter
    )

    if isinstance(result, DiscontinuityReport):
        if apply_policy:
            workspace.manager.apply_discontinuity(result)
        if json_output:
            click.echo(result.model_dump_json(indent=2))
        else:
            console.print(Panel(str(result), title="[red]Discontinuity[/red]", expand=False))
        sys.exit(4)

    if json_output:
        click.echo(result.model_dump_json(indent=2))
        return

    if not result.hops:
        console.print("[yellow]No linked ancestors found.[/yellow]")
    for hop in result.hops:
        title = f"hop {hop.distance} | {hop.node_id} | session {hop.session_id[:8]}"
        parts: list[str] = []
        if hop.description is not None:
            parts.append(hop.description)
        if hop.diff:
            parts.append(hop.diff)
        if hop.transcript:
            parts.extend(f"{entry.role.upper()}: {entry.content}" for entry in hop.transcript)
        console.print(Panel("\n\n".join(parts) or "(empty)", title=title, expand=False))
    if result.skipped_node_ids:
        console.print(f"[dim]Skipped unlinked nodes: {', '.join(result.skipped_node_ids)}[/dim]")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _print_session_summary(workspace: Workspace, session_id: str) -> None:
    session = workspace.manager.get_session(session_id)
    last = workspace.transcripts.last_index(session_id)

    table = Table(title=f"Session {session_id[:8]}", show_lines=True)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    table.add_row("session_id", session.session_id)
    table.add_row("root_node_id", session.root_node_id)
    table.add_row("head_node_id", session.head_node_id)
    table.add_row("checkpoints", str(len(session.lineage)))
    table.add_row("turns", "0" if last is None else str(last + 1))
    table.add_row("created_at", session.created_at.isoformat())
    for warning in session.warnings:
        table.add_row("warning", warning)
    console.print(table)


if __name__ == "__main__":
    cli()
