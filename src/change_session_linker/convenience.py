"""Wiring helpers: build a ready-to-use workspace from a ``LinkerConfig``.

Example
-------
::

    from change_session_linker import open_workspace, InMemoryChangeGraph

    workspace = open_workspace(graph=InMemoryChangeGraph(), storage="memory")
    node_id, session_id = workspace.manager.start_session("Add rate limiting")
    workspace.transcripts.append_turn(session_id, "user", "Start with the API gateway")
"""
from __future__ import annotations

from dataclasses import dataclass

from change_session_linker.config import LinkerConfig, load_config
from change_session_linker.graph.base import ChangeGraphAdapter
from change_session_linker.graph.jujutsu import JujutsuAdapter
from change_session_linker.resolver.ancestor import AncestorResolver
from change_session_linker.session.manager import SessionManager
from change_session_linker.storage.base import SessionStore
from change_session_linker.storage.filesystem import FilesystemSessionStore
from change_session_linker.storage.memory import InMemorySessionStore
from change_session_linker.storage.sqlite import SQLiteSessionStore
from change_session_linker.transcript.base import TranscriptStore
from change_session_linker.transcript.jsonl import JsonlTranscriptStore
from change_session_linker.transcript.memory import InMemoryTranscriptStore


@dataclass
class Workspace:
    """The collaborating objects behind one session root."""

    config: LinkerConfig
    graph: ChangeGraphAdapter
    transcripts: TranscriptStore
    manager: SessionManager
    resolver: AncestorResolver


def make_store(config: LinkerConfig) -> SessionStore:
    """Instantiate the session-record store named by ``config.storage``."""
    if config.storage == "memory":
        return InMemorySessionStore()
    if config.storage == "sqlite":
        return SQLiteSessionStore(db_path=config.sqlite_path)
    return FilesystemSessionStore(storage_dir=config.sessions_dir)


def make_transcripts(config: LinkerConfig) -> TranscriptStore:
    if config.storage == "memory":
        return InMemoryTranscriptStore()
    return JsonlTranscriptStore(transcript_dir=config.transcripts_dir)


def make_graph(config: LinkerConfig) -> ChangeGraphAdapter:
    return JujutsuAdapter(
        repo_path=config.repo_path,
        binary=config.jj_binary,
        timeout=config.command_timeout,
    )


def open_workspace(
    config: LinkerConfig | None = None,
    *,
    graph: ChangeGraphAdapter | None = None,
    **overrides: object,
) -> Workspace:
    """Build a ``Workspace``.

    Parameters
    ----------
    config:
        Settings to use.  When None, ``load_config(**overrides)`` is called.
    graph:
        Adapter to use instead of a ``JujutsuAdapter`` built from config.
    overrides:
        Passed to ``load_config`` when ``config`` is None.
    """
    if config is None:
        config = load_config(**overrides)
    graph = graph if graph is not None else make_graph(config)
    transcripts = make_transcripts(config)
    manager = SessionManager(
        graph=graph,
        store=make_store(config),
        transcripts=transcripts,
        rebase_policy=config.rebase_policy,
    )
    resolver = AncestorResolver(manager, default_depth=config.default_depth)
    return Workspace(
        config=config,
        graph=graph,
        transcripts=transcripts,
        manager=manager,
        resolver=resolver,
    )
