#!/usr/bin/env python3
"""Example: Quickstart — change-session-linker

Start a session on a change node, record a few turns, checkpoint, and
resume from the checkpoint.  Uses the in-memory change graph so no ``jj``
repository is needed.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install change-session-linker
"""
from __future__ import annotations

import change_session_linker
from change_session_linker import InMemoryChangeGraph, open_workspace


def main() -> None:
    print(f"change-session-linker version: {change_session_linker.__version__}")

    # Step 1: Wire a workspace around an in-memory graph
    workspace = open_workspace(graph=InMemoryChangeGraph(), storage="memory")
    manager = workspace.manager
    transcripts = workspace.transcripts

    # Step 2: Start a session; the node description now carries its link
    node_id, session_id = manager.start_session("Add rate limiting to the API")
    print(f"Session {session_id} started on node {node_id}")
    print(workspace.graph.read_node(node_id).description)

    # Step 3: Record a few turns
    transcripts.append_turn(session_id, "user", "Add rate limiting to the API")
    transcripts.append_turn(session_id, "assistant", "I'll use a token bucket per route.")
    transcripts.append_turn(session_id, "user", "Make the burst size configurable.")

    # Step 4: Checkpoint; the transcript keeps growing in place
    checkpoint = manager.checkpoint(session_id, "Token bucket with configurable burst")
    entry = transcripts.append_turn(session_id, "assistant", "BURST env var added.")
    print(f"\nCheckpoint {checkpoint}; next turn index is {entry.turn_index}")

    # Step 5: Resume from the checkpoint node
    resumed = manager.resume_session(checkpoint)
    print(f"Resumed session: {resumed} (same: {resumed == session_id})")
    for turn in transcripts.read(session_id):
        print(f"  [{turn.turn_index}] {turn.role}: {turn.content}")


if __name__ == "__main__":
    main()
