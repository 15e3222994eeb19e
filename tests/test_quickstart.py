"""Test that the quickstart workflow works end to end for change-session-linker."""
from __future__ import annotations

from pathlib import Path


def test_quickstart_import() -> None:
    from change_session_linker import InMemoryChangeGraph, open_workspace

    workspace = open_workspace(graph=InMemoryChangeGraph(), storage="memory", environ={})
    assert workspace.manager is not None


def test_quickstart_start_and_resume() -> None:
    from change_session_linker import InMemoryChangeGraph, open_workspace

    workspace = open_workspace(graph=InMemoryChangeGraph(), storage="memory", environ={})
    node_id, session_id = workspace.manager.start_session("Add rate limiting")
    assert workspace.manager.resume_session(node_id) == session_id


def test_quickstart_five_turns_then_checkpoint(tmp_path: Path) -> None:
    from change_session_linker import InMemoryChangeGraph, open_workspace

    workspace = open_workspace(graph=InMemoryChangeGraph(), session_root=tmp_path, environ={})
    node_id, session_id = workspace.manager.start_session("Add rate limiting")
    for i in range(5):
        role = "user" if i % 2 == 0 else "assistant"
        workspace.transcripts.append_turn(session_id, role, f"turn {i}")

    checkpoint = workspace.manager.checkpoint(session_id, "Rate limiter in place")
    assert checkpoint != node_id
    assert workspace.manager.resume_session(checkpoint) == session_id

    entry = workspace.transcripts.append_turn(session_id, "user", "now add metrics")
    assert entry.turn_index == 5
    assert workspace.transcripts.list_sessions() == [session_id]


def test_quickstart_ancestor_context() -> None:
    from change_session_linker import AncestorContext, InMemoryChangeGraph, open_workspace

    workspace = open_workspace(graph=InMemoryChangeGraph(), storage="memory", environ={})
    node_a, _ = workspace.manager.start_session("Design the rate limiter")
    node_b = workspace.graph.create_node(node_a, "manual tweak")
    node_c, _ = workspace.manager.start_session("Write docs", parent_node_id=node_b)

    result = workspace.resolver.query_ancestor(node_c, depth=2)
    assert isinstance(result, AncestorContext)
    assert result.descriptions() == {node_a: "Design the rate limiter"}
    assert result.skipped_node_ids == [node_b]


def test_quickstart_version() -> None:
    import change_session_linker

    assert change_session_linker.__version__ == "0.1.0"
