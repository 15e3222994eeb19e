"""Unit tests for change_session_linker.session.manager.

Tests cover the session lifecycle (start, resume, checkpoint, attach),
description synchronisation, discontinuity policies, and error paths, all
against the in-memory change graph and stores.
"""
from __future__ import annotations

from collections.abc import Iterable

import pytest

from change_session_linker.config import RebasePolicy
from change_session_linker.exceptions import (
    AdapterUnavailableError,
    CheckpointLinkError,
    MalformedSessionLinkError,
    NodeNotFoundError,
    NoSessionLinkError,
    SessionLinkConflictError,
    SessionNotFoundError,
    SessionNotResumableError,
)
from change_session_linker.graph.memory import InMemoryChangeGraph
from change_session_linker.resolver.models import DiscontinuityReason, DiscontinuityReport
from change_session_linker.session.link import SessionLink, parse_description, render_description
from change_session_linker.session.manager import SessionManager
from change_session_linker.session.state import TranscriptEntry
from change_session_linker.storage.memory import InMemorySessionStore
from change_session_linker.transcript.memory import InMemoryTranscriptStore


def _broken_write(node_id: str, description: str) -> None:
    raise AdapterUnavailableError("describe failed", command=["describe"])


# ---------------------------------------------------------------------------
# start_session
# ---------------------------------------------------------------------------


class TestStartSession:
    def test_returns_node_and_session(
        self, manager: SessionManager, graph: InMemoryChangeGraph
    ) -> None:
        node_id, session_id = manager.start_session("Add rate limiting")
        summary, link = parse_description(graph.read_node(node_id).description)
        assert summary == "Add rate limiting"
        assert link == SessionLink(session_id)

    def test_session_id_differs_from_node_id(self, manager: SessionManager) -> None:
        node_id, session_id = manager.start_session("task")
        assert node_id != session_id

    def test_creates_record_and_transcript(
        self, manager: SessionManager, transcripts: InMemoryTranscriptStore
    ) -> None:
        node_id, session_id = manager.start_session("task")
        session = manager.get_session(session_id)
        assert session.root_node_id == node_id
        assert session.head_node_id == node_id
        assert session.resumable is True
        assert transcripts.exists(session_id)

    def test_explicit_parent(self, manager: SessionManager, graph: InMemoryChangeGraph) -> None:
        base = graph.create_node(graph.root_node_id, "base")
        node_id, _ = manager.start_session("task", parent_node_id=base)
        assert graph.read_node(node_id).parent_node_id == base

    def test_create_failure_propagates_without_side_effects(
        self, manager: SessionManager, graph: InMemoryChangeGraph, store: InMemorySessionStore
    ) -> None:
        graph.fail_next()
        with pytest.raises(AdapterUnavailableError):
            manager.start_session("task")
        assert len(store) == 0
        assert len(graph) == 1

    def test_link_failure_leaves_node_unlinked(
        self,
        manager: SessionManager,
        graph: InMemoryChangeGraph,
        store: InMemorySessionStore,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(graph, "write_description", _broken_write)
        with pytest.raises(CheckpointLinkError) as exc_info:
            manager.start_session("task")
        monkeypatch.undo()

        node = graph.read_node(exc_info.value.node_id)
        assert parse_description(node.description) == ("task", None)
        assert len(store) == 0

    def test_summary_that_looks_like_a_link_rejected(self, manager: SessionManager) -> None:
        with pytest.raises(MalformedSessionLinkError):
            manager.start_session("Agent-Session-Id: 0123456789abcdef")


# ---------------------------------------------------------------------------
# attach_session
# ---------------------------------------------------------------------------


class TestAttachSession:
    def test_adopts_node_left_unlinked(
        self,
        manager: SessionManager,
        graph: InMemoryChangeGraph,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(graph, "write_description", _broken_write)
        with pytest.raises(CheckpointLinkError) as exc_info:
            manager.start_session("task")
        monkeypatch.undo()

        node_id = exc_info.value.node_id
        session_id = manager.attach_session(node_id)
        assert manager.resume_session(node_id) == session_id
        assert parse_description(graph.read_node(node_id).description)[0] == "task"

    def test_linked_node_conflicts(self, manager: SessionManager) -> None:
        node_id, session_id = manager.start_session("task")
        with pytest.raises(SessionLinkConflictError) as exc_info:
            manager.attach_session(node_id)
        assert exc_info.value.existing_session_id == session_id

    def test_missing_node(self, manager: SessionManager) -> None:
        with pytest.raises(NodeNotFoundError):
            manager.attach_session("does-not-exist")


# ---------------------------------------------------------------------------
# resume_session
# ---------------------------------------------------------------------------


class TestResumeSession:
    def test_resume_root(self, manager: SessionManager) -> None:
        node_id, session_id = manager.start_session("task")
        assert manager.resume_session(node_id) == session_id

    def test_resume_is_idempotent(self, manager: SessionManager) -> None:
        node_id, session_id = manager.start_session("task")
        assert {manager.resume_session(node_id) for _ in range(3)} == {session_id}

    def test_resume_checkpoint_returns_same_session(self, manager: SessionManager) -> None:
        _, session_id = manager.start_session("task")
        checkpoint = manager.checkpoint(session_id, "step two")
        assert manager.resume_session(checkpoint) == session_id

    def test_unlinked_node(self, manager: SessionManager, graph: InMemoryChangeGraph) -> None:
        node_id = graph.create_node(None, "manual change")
        with pytest.raises(NoSessionLinkError):
            manager.resume_session(node_id)

    def test_missing_node(self, manager: SessionManager) -> None:
        with pytest.raises(NodeNotFoundError) as exc_info:
            manager.resume_session("does-not-exist")
        assert exc_info.value.abandoned is False

    def test_abandoned_node(self, manager: SessionManager, graph: InMemoryChangeGraph) -> None:
        _, session_id = manager.start_session("task")
        checkpoint = manager.checkpoint(session_id, "step two")
        graph.abandon(checkpoint)
        with pytest.raises(NodeNotFoundError) as exc_info:
            manager.resume_session(checkpoint)
        assert exc_info.value.abandoned is True

    def test_link_to_unknown_session(
        self, manager: SessionManager, graph: InMemoryChangeGraph
    ) -> None:
        orphan = "feedfacefeedface"
        node_id = graph.create_node(None, render_description("x", SessionLink(orphan)))
        with pytest.raises(SessionNotFoundError):
            manager.resume_session(node_id)

    def test_abandoned_root_marks_non_resumable(
        self, manager: SessionManager, graph: InMemoryChangeGraph
    ) -> None:
        root, session_id = manager.start_session("task")
        checkpoint = manager.checkpoint(session_id, "step two")
        graph.abandon(root)

        with pytest.raises(SessionNotResumableError) as exc_info:
            manager.resume_session(checkpoint)
        assert "abandoned" in exc_info.value.reason
        assert manager.get_session(session_id).resumable is False

    def test_resuming_abandoned_root_marks_non_resumable(
        self, manager: SessionManager, graph: InMemoryChangeGraph
    ) -> None:
        root, session_id = manager.start_session("task")
        manager.checkpoint(session_id, "step two")
        graph.abandon(root)

        with pytest.raises(NodeNotFoundError) as exc_info:
            manager.resume_session(root)
        assert exc_info.value.abandoned is True
        session = manager.get_session(session_id)
        assert session.resumable is False
        assert session.warnings == [f"root node {root} abandoned"]

    def test_forgotten_root_marks_non_resumable(
        self, manager: SessionManager, graph: InMemoryChangeGraph
    ) -> None:
        root, session_id = manager.start_session("task")
        checkpoint = manager.checkpoint(session_id, "step two")
        graph.rebase(checkpoint, graph.root_node_id)
        graph.forget(root)

        with pytest.raises(NodeNotFoundError):
            manager.resume_session(root)
        assert manager.get_session(session_id).resumable is False

    def test_abandoned_checkpoint_leaves_session_resumable(
        self, manager: SessionManager, graph: InMemoryChangeGraph
    ) -> None:
        root, session_id = manager.start_session("task")
        checkpoint = manager.checkpoint(session_id, "step two")
        graph.abandon(checkpoint)

        with pytest.raises(NodeNotFoundError):
            manager.resume_session(checkpoint)
        assert manager.resume_session(root) == session_id

    def test_non_resumable_session_is_never_guessed(self, manager: SessionManager) -> None:
        node_id, session_id = manager.start_session("task")
        manager.mark_non_resumable(session_id, "operator retired it")
        with pytest.raises(SessionNotResumableError, match="operator retired it"):
            manager.resume_session(node_id)


# ---------------------------------------------------------------------------
# checkpoint
# ---------------------------------------------------------------------------


class TestCheckpoint:
    def test_new_node_linked_to_same_session(
        self, manager: SessionManager, graph: InMemoryChangeGraph
    ) -> None:
        root, session_id = manager.start_session("task")
        node_id = manager.checkpoint(session_id, "step two")
        node = graph.read_node(node_id)
        assert node.parent_node_id == root
        assert parse_description(node.description) == ("step two", SessionLink(session_id))

    def test_advances_head_and_lineage(self, manager: SessionManager) -> None:
        root, session_id = manager.start_session("task")
        first = manager.checkpoint(session_id, "two")
        second = manager.checkpoint(session_id, "three")
        session = manager.get_session(session_id)
        assert session.head_node_id == second
        assert session.lineage_node_ids() == [root, first, second]
        assert session.recorded_parent(second) == first

    def test_explicit_parent(self, manager: SessionManager, graph: InMemoryChangeGraph) -> None:
        root, session_id = manager.start_session("task")
        manager.checkpoint(session_id, "two")
        branch = manager.checkpoint(session_id, "branch", parent_node_id=root)
        assert graph.read_node(branch).parent_node_id == root

    def test_unknown_session(self, manager: SessionManager) -> None:
        with pytest.raises(SessionNotFoundError):
            manager.checkpoint("nosuchsession", "x")

    def test_non_resumable_session_refused(self, manager: SessionManager) -> None:
        _, session_id = manager.start_session("task")
        manager.mark_non_resumable(session_id, "retired")
        with pytest.raises(SessionNotResumableError):
            manager.checkpoint(session_id, "x")

    def test_link_failure(
        self,
        manager: SessionManager,
        graph: InMemoryChangeGraph,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        root, session_id = manager.start_session("task")
        monkeypatch.setattr(graph, "write_description", _broken_write)
        with pytest.raises(CheckpointLinkError) as exc_info:
            manager.checkpoint(session_id, "two")
        assert exc_info.value.session_id == session_id
        assert manager.get_session(session_id).head_node_id == root

    def test_transcript_continues_across_checkpoint(
        self, manager: SessionManager, transcripts: InMemoryTranscriptStore
    ) -> None:
        node_id, session_id = manager.start_session("Add rate limiting")
        for i in range(5):
            role = "user" if i % 2 == 0 else "assistant"
            transcripts.append(
                session_id, TranscriptEntry(turn_index=i, role=role, content=f"turn {i}")
            )
        checkpoint = manager.checkpoint(session_id, "rate limiter done")
        assert manager.resume_session(checkpoint) == session_id

        entry = transcripts.append_turn(session_id, "user", "next")
        assert entry.turn_index == 5
        assert transcripts.list_sessions() == [session_id]
        assert len(transcripts.read(session_id).to_list()) == 6
        assert manager.resume_session(node_id) == session_id


# ---------------------------------------------------------------------------
# mark_non_resumable
# ---------------------------------------------------------------------------


class TestMarkNonResumable:
    def test_idempotent(self, manager: SessionManager) -> None:
        _, session_id = manager.start_session("task")
        manager.mark_non_resumable(session_id, "first")
        manager.mark_non_resumable(session_id, "second")
        session = manager.get_session(session_id)
        assert session.resumable is False
        assert session.warnings == ["first"]

    def test_unknown_session(self, manager: SessionManager) -> None:
        with pytest.raises(SessionNotFoundError):
            manager.mark_non_resumable("nosuchsession")


# ---------------------------------------------------------------------------
# Description synchronisation
# ---------------------------------------------------------------------------


class TestSyncDescription:
    def test_preserves_link(self, manager: SessionManager, graph: InMemoryChangeGraph) -> None:
        node_id, session_id = manager.start_session("draft")
        manager.sync_description(node_id, "Implement token bucket\n\n- burst of 10")
        summary, link = parse_description(graph.read_node(node_id).description)
        assert summary == "Implement token bucket\n\n- burst of 10"
        assert link == SessionLink(session_id)

    def test_unlinked_node(self, manager: SessionManager, graph: InMemoryChangeGraph) -> None:
        node_id = graph.create_node(None, "old")
        assert manager.sync_description(node_id, "new") == "new"
        assert graph.read_node(node_id).description == "new"

    def test_unchanged_description_not_rewritten(
        self,
        manager: SessionManager,
        graph: InMemoryChangeGraph,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        node_id, _ = manager.start_session("same")
        monkeypatch.setattr(graph, "write_description", _broken_write)
        manager.sync_description(node_id, "same")

    def test_rejects_summary_with_trailer(self, manager: SessionManager) -> None:
        node_id, session_id = manager.start_session("draft")
        with pytest.raises(MalformedSessionLinkError):
            manager.sync_description(node_id, f"Agent-Session-Id: {session_id}")

    def test_sync_from_transcript(
        self, manager: SessionManager, transcripts: InMemoryTranscriptStore
    ) -> None:
        node_id, session_id = manager.start_session("draft")
        transcripts.append_turn(session_id, "user", "add limits")
        transcripts.append_turn(session_id, "assistant", "done")

        def summarize(entries: Iterable[TranscriptEntry]) -> str:
            return f"{sum(1 for _ in entries)} turns"

        description = manager.sync_from_transcript(session_id, node_id, summarize)
        assert parse_description(description) == ("2 turns", SessionLink(session_id))

    def test_sync_from_other_session_conflicts(self, manager: SessionManager) -> None:
        node_a, _ = manager.start_session("a")
        _, session_b = manager.start_session("b")
        with pytest.raises(SessionLinkConflictError):
            manager.sync_from_transcript(session_b, node_a, lambda entries: "x")


# ---------------------------------------------------------------------------
# apply_discontinuity
# ---------------------------------------------------------------------------


def _report(session_id: str | None, node_id: str, reason: DiscontinuityReason) -> DiscontinuityReport:
    return DiscontinuityReport(
        from_node_id=node_id, hop=1, node_id=node_id, reason=reason, session_id=session_id
    )


class TestApplyDiscontinuity:
    def test_rebase_warns_by_default(self, manager: SessionManager) -> None:
        _, session_id = manager.start_session("task")
        node_id = manager.checkpoint(session_id, "two")
        session = manager.apply_discontinuity(
            _report(session_id, node_id, DiscontinuityReason.REBASED)
        )
        assert session is not None
        assert session.resumable is True
        assert len(manager.get_session(session_id).warnings) == 1

    def test_repeated_warning_recorded_once(self, manager: SessionManager) -> None:
        _, session_id = manager.start_session("task")
        node_id = manager.checkpoint(session_id, "two")
        report = _report(session_id, node_id, DiscontinuityReason.REBASED)
        manager.apply_discontinuity(report)
        manager.apply_discontinuity(report)
        assert len(manager.get_session(session_id).warnings) == 1

    def test_rebase_marks_under_strict_policy(
        self,
        graph: InMemoryChangeGraph,
        store: InMemorySessionStore,
        transcripts: InMemoryTranscriptStore,
    ) -> None:
        strict = SessionManager(
            graph, store, transcripts, rebase_policy=RebasePolicy.MARK_NON_RESUMABLE
        )
        _, session_id = strict.start_session("task")
        node_id = strict.checkpoint(session_id, "two")
        strict.apply_discontinuity(_report(session_id, node_id, DiscontinuityReason.REBASED))
        assert strict.get_session(session_id).resumable is False

    @pytest.mark.parametrize(
        "reason", [DiscontinuityReason.MISSING, DiscontinuityReason.ABANDONED]
    )
    def test_lost_root_always_marks(
        self, manager: SessionManager, reason: DiscontinuityReason
    ) -> None:
        root, session_id = manager.start_session("task")
        manager.apply_discontinuity(_report(session_id, root, reason))
        assert manager.get_session(session_id).resumable is False

    def test_abandoned_checkpoint_only_warns(self, manager: SessionManager) -> None:
        _, session_id = manager.start_session("task")
        node_id = manager.checkpoint(session_id, "two")
        manager.apply_discontinuity(_report(session_id, node_id, DiscontinuityReason.ABANDONED))
        assert manager.get_session(session_id).resumable is True

    def test_report_without_session_ignored(self, manager: SessionManager) -> None:
        assert manager.apply_discontinuity(_report(None, "n", DiscontinuityReason.MISSING)) is None

    def test_report_for_unknown_session_ignored(self, manager: SessionManager) -> None:
        report = _report("nosuchsession", "n", DiscontinuityReason.REBASED)
        assert manager.apply_discontinuity(report) is None


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class TestRecords:
    def test_list_sessions(self, manager: SessionManager) -> None:
        ids = {manager.start_session(f"task {i}")[1] for i in range(3)}
        assert manager.list_sessions() == sorted(ids)

    def test_session_for_node(self, manager: SessionManager, graph: InMemoryChangeGraph) -> None:
        node_id, session_id = manager.start_session("task")
        assert manager.session_for_node(graph.read_node(node_id)) == session_id
        assert manager.session_for_node(graph.read_node(graph.root_node_id)) is None

    def test_session_not_found_is_key_error(self, manager: SessionManager) -> None:
        with pytest.raises(KeyError):
            manager.get_session("nosuchsession")
