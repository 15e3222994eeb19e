"""Shared fixtures: an in-memory change graph wired to in-memory stores."""
from __future__ import annotations

import pytest

from change_session_linker.config import RebasePolicy
from change_session_linker.graph.memory import InMemoryChangeGraph
from change_session_linker.resolver.ancestor import AncestorResolver
from change_session_linker.session.manager import SessionManager
from change_session_linker.storage.memory import InMemorySessionStore
from change_session_linker.transcript.memory import InMemoryTranscriptStore


@pytest.fixture()
def graph() -> InMemoryChangeGraph:
    return InMemoryChangeGraph(root_description="initial import")


@pytest.fixture()
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture()
def transcripts() -> InMemoryTranscriptStore:
    return InMemoryTranscriptStore()


@pytest.fixture()
def manager(
    graph: InMemoryChangeGraph,
    store: InMemorySessionStore,
    transcripts: InMemoryTranscriptStore,
) -> SessionManager:
    return SessionManager(
        graph=graph,
        store=store,
        transcripts=transcripts,
        rebase_policy=RebasePolicy.WARN,
    )


@pytest.fixture()
def resolver(manager: SessionManager) -> AncestorResolver:
    return AncestorResolver(manager)
