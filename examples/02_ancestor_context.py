#!/usr/bin/env python3
"""Example: Ancestor context — change-session-linker

Build a small graph where a new session sits on top of an earlier one with
a hand-written change in between, then pull context from the ancestors.
Finally, rebase a checkpoint away and see the discontinuity report.

Usage:
    python examples/02_ancestor_context.py
"""
from __future__ import annotations

from change_session_linker import (
    AncestorContext,
    ContextField,
    DiscontinuityReport,
    InMemoryChangeGraph,
    TranscriptFilter,
    open_workspace,
)


def main() -> None:
    graph = InMemoryChangeGraph(root_description="initial import")
    workspace = open_workspace(graph=graph, storage="memory")
    manager, resolver = workspace.manager, workspace.resolver

    # A: first session, with a short transcript
    node_a, session_a = manager.start_session("Design the rate limiter")
    workspace.transcripts.append_turn(session_a, "user", "Token bucket or sliding window?")
    workspace.transcripts.append_turn(session_a, "assistant", "Token bucket; burst of 10.")

    # B: a change made by hand, no session
    node_b = graph.create_node(node_a, "Fix typo in README")

    # C: a second session built on B
    node_c, _ = manager.start_session("Document the rate limiter", parent_node_id=node_b)

    result = resolver.query_ancestor(
        node_c,
        depth=2,
        include={ContextField.DESCRIPTION, ContextField.TRANSCRIPT},
        transcript_filter=TranscriptFilter(role="assistant"),
    )
    assert isinstance(result, AncestorContext)
    print(f"Skipped unlinked nodes: {result.skipped_node_ids}")
    for hop in result.hops:
        print(f"hop {hop.distance} {hop.node_id}: {hop.description}")
        for turn in hop.transcript or []:
            print(f"    {turn.role}: {turn.content}")

    # Move a checkpoint onto an unrelated parent
    checkpoint = manager.checkpoint(session_a, "Rate limiter tests")
    graph.rebase(checkpoint, graph.create_node(graph.root_node_id, "Unrelated work"))
    report = resolver.query_ancestor(checkpoint)
    print(f"\n{report}")
    if isinstance(report, DiscontinuityReport):
        session = manager.apply_discontinuity(report)
        assert session is not None
        print(f"resumable={session.resumable} warnings={session.warnings}")


if __name__ == "__main__":
    main()
