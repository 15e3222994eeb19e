"""Unit tests for change_session_linker.cli.main.

Uses Click's test runner (CliRunner) with a prepared in-memory workspace
injected through ``obj``, so no ``jj`` binary or disk I/O is required.
"""
from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from change_session_linker.cli.main import cli
from change_session_linker.convenience import Workspace, open_workspace
from change_session_linker.graph.memory import InMemoryChangeGraph
from change_session_linker.transcript.jsonl import JsonlTranscriptStore

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def workspace() -> Workspace:
    return open_workspace(graph=InMemoryChangeGraph(), storage="memory", environ={})


def _invoke(runner: CliRunner, workspace: Workspace, *args: str):  # type: ignore[no-untyped-def]
    return runner.invoke(cli, list(args), obj={"workspace": workspace})


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


class TestVersion:
    def test_version_command(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert "change-session-linker" in result.output


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------


class TestStartResume:
    def test_start_links_node(self, runner: CliRunner, workspace: Workspace) -> None:
        result = _invoke(runner, workspace, "start", "Add rate limiting")
        assert result.exit_code == 0
        sessions = workspace.manager.list_sessions()
        assert len(sessions) == 1
        assert sessions[0] in result.output

    def test_resume_prints_summary(self, runner: CliRunner, workspace: Workspace) -> None:
        node_id, session_id = workspace.manager.start_session("task")
        workspace.transcripts.append_turn(session_id, "user", "hello")
        result = _invoke(runner, workspace, "resume", node_id)
        assert result.exit_code == 0
        assert session_id in result.output
        assert "turns" in result.output

    def test_resume_unlinked_node_fails(self, runner: CliRunner, workspace: Workspace) -> None:
        node_id = workspace.graph.create_node(None, "manual")
        result = _invoke(runner, workspace, "resume", node_id)
        assert result.exit_code == 1
        assert "NoSessionLinkError" in result.output

    def test_continue_uses_working_copy(self, runner: CliRunner, workspace: Workspace) -> None:
        _, session_id = workspace.manager.start_session("task")
        result = _invoke(runner, workspace, "continue")
        assert result.exit_code == 0
        assert session_id in result.output

    def test_outage_exits_with_retry_code(self, runner: CliRunner, workspace: Workspace) -> None:
        assert isinstance(workspace.graph, InMemoryChangeGraph)
        workspace.graph.fail_next()
        result = _invoke(runner, workspace, "continue")
        assert result.exit_code == 3
        assert "retry" in result.output


class TestCheckpointRetireSync:
    def test_checkpoint(self, runner: CliRunner, workspace: Workspace) -> None:
        root, session_id = workspace.manager.start_session("task")
        result = _invoke(runner, workspace, "checkpoint", session_id, "step two")
        assert result.exit_code == 0
        head = workspace.manager.get_session(session_id).head_node_id
        assert head != root
        assert head in result.output

    def test_retire_then_resume_fails(self, runner: CliRunner, workspace: Workspace) -> None:
        node_id, session_id = workspace.manager.start_session("task")
        assert _invoke(runner, workspace, "retire", session_id).exit_code == 0
        result = _invoke(runner, workspace, "resume", node_id)
        assert result.exit_code == 1
        assert "SessionNotResumableError" in result.output

    def test_sync_keeps_link(self, runner: CliRunner, workspace: Workspace) -> None:
        node_id, session_id = workspace.manager.start_session("draft")
        result = _invoke(runner, workspace, "sync", node_id, "final summary")
        assert result.exit_code == 0
        assert workspace.manager.session_for_node(workspace.graph.read_node(node_id)) == session_id


# ---------------------------------------------------------------------------
# Transcripts
# ---------------------------------------------------------------------------


class TestTranscript:
    def test_append_and_show(self, runner: CliRunner, workspace: Workspace) -> None:
        _, session_id = workspace.manager.start_session("task")
        assert _invoke(runner, workspace, "append", session_id, "user", "hi").exit_code == 0
        assert _invoke(runner, workspace, "append", session_id, "assistant", "hello").exit_code == 0
        result = _invoke(runner, workspace, "transcript", session_id)
        assert result.exit_code == 0
        assert "USER" in result.output
        assert "hello" in result.output

    def test_json_output_with_range(self, runner: CliRunner, workspace: Workspace) -> None:
        _, session_id = workspace.manager.start_session("task")
        for i in range(4):
            workspace.transcripts.append_turn(session_id, "user", f"turn {i}")
        result = _invoke(
            runner, workspace, "transcript", session_id, "--start", "1", "--end", "3", "--json-output"
        )
        assert result.exit_code == 0
        indices = [json.loads(line)["turn_index"] for line in result.stdout.splitlines()]
        assert indices == [1, 2]

    def test_search(self, runner: CliRunner, workspace: Workspace) -> None:
        _, session_id = workspace.manager.start_session("task")
        workspace.transcripts.append_turn(session_id, "user", "token bucket")
        workspace.transcripts.append_turn(session_id, "user", "leaky bucket")
        result = _invoke(
            runner, workspace, "transcript", session_id, "--search", "LEAKY", "--json-output"
        )
        assert [json.loads(line)["content"] for line in result.stdout.splitlines()] == [
            "leaky bucket"
        ]

    def test_search_within_range(self, runner: CliRunner, workspace: Workspace) -> None:
        _, session_id = workspace.manager.start_session("task")
        for content in ["token bucket", "leaky bucket", "bucket size", "done"]:
            workspace.transcripts.append_turn(session_id, "user", content)
        result = _invoke(
            runner,
            workspace,
            "transcript",
            session_id,
            "--search",
            "bucket",
            "--start",
            "1",
            "--end",
            "3",
            "--json-output",
        )
        assert result.exit_code == 0
        assert [json.loads(line)["turn_index"] for line in result.stdout.splitlines()] == [1, 2]

    def test_search_with_inverted_range(self, runner: CliRunner, workspace: Workspace) -> None:
        _, session_id = workspace.manager.start_session("task")
        result = _invoke(
            runner, workspace, "transcript", session_id, "--search", "x", "--start", "3", "--end", "1"
        )
        assert result.exit_code == 2

    def test_held_append_lock_exits_with_error(self, runner: CliRunner, tmp_path: Path) -> None:
        workspace = open_workspace(
            graph=InMemoryChangeGraph(), session_root=tmp_path, environ={}
        )
        _, session_id = workspace.manager.start_session("task")
        store = workspace.transcripts
        assert isinstance(store, JsonlTranscriptStore)
        store._lock_timeout = 0.1
        (tmp_path / "transcripts" / f"{session_id}.lock").write_text("", encoding="utf-8")

        result = _invoke(runner, workspace, "append", session_id, "user", "blocked")
        assert result.exit_code == 1
        assert "TranscriptLockError" in result.output

    def test_inverted_range(self, runner: CliRunner, workspace: Workspace) -> None:
        _, session_id = workspace.manager.start_session("task")
        result = _invoke(runner, workspace, "transcript", session_id, "--start", "3", "--end", "1")
        assert result.exit_code == 2

    def test_unknown_session(self, runner: CliRunner, workspace: Workspace) -> None:
        result = _invoke(runner, workspace, "transcript", "nosuchsession")
        assert result.exit_code == 1

    def test_invalid_role_rejected(self, runner: CliRunner, workspace: Workspace) -> None:
        _, session_id = workspace.manager.start_session("task")
        result = _invoke(runner, workspace, "append", session_id, "robot", "x")
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# Ancestor context
# ---------------------------------------------------------------------------


class TestAncestor:
    def test_descriptions(self, runner: CliRunner, workspace: Workspace) -> None:
        _, session_id = workspace.manager.start_session("Add rate limiting")
        child = workspace.manager.checkpoint(session_id, "Burst configurable")
        result = _invoke(runner, workspace, "ancestor", child)
        assert result.exit_code == 0
        assert "Add rate limiting" in result.output

    def test_json_output(self, runner: CliRunner, workspace: Workspace) -> None:
        root, session_id = workspace.manager.start_session("Add rate limiting")
        workspace.transcripts.append_turn(session_id, "user", "use a token bucket")
        child = workspace.manager.checkpoint(session_id, "Burst configurable")
        result = _invoke(
            runner,
            workspace,
            "ancestor",
            child,
            "--include",
            "description",
            "--include",
            "transcript",
            "--last",
            "1",
            "--json-output",
        )
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["hops"][0]["node_id"] == root
        assert data["hops"][0]["transcript"][0]["content"] == "use a token bucket"

    def test_discontinuity_exit_code(self, runner: CliRunner, workspace: Workspace) -> None:
        graph = workspace.graph
        assert isinstance(graph, InMemoryChangeGraph)
        _, session_id = workspace.manager.start_session("task")
        middle = workspace.manager.checkpoint(session_id, "two")
        child = workspace.manager.checkpoint(session_id, "three")
        graph.abandon(middle)
        result = _invoke(runner, workspace, "ancestor", child)
        assert result.exit_code == 4
        assert "abandoned" in result.output

    def test_apply_policy_records_warning(
        self, runner: CliRunner, workspace: Workspace
    ) -> None:
        graph = workspace.graph
        assert isinstance(graph, InMemoryChangeGraph)
        _, session_id = workspace.manager.start_session("task")
        child = workspace.manager.checkpoint(session_id, "two")
        graph.rebase(child, graph.create_node(graph.root_node_id, "elsewhere"))
        result = _invoke(runner, workspace, "ancestor", child, "--apply-policy", "--json-output")
        assert result.exit_code == 4
        assert json.loads(result.stdout)["reason"] == "rebased"
        assert workspace.manager.get_session(session_id).warnings

    def test_depth_must_be_positive(self, runner: CliRunner, workspace: Workspace) -> None:
        node_id, _ = workspace.manager.start_session("task")
        result = _invoke(runner, workspace, "ancestor", node_id, "--depth", "0")
        assert result.exit_code == 2


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class TestConfiguration:
    def test_invalid_config_file(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("default_depth: 0\n", encoding="utf-8")
        result = runner.invoke(cli, ["--config", str(path), "continue"])
        assert result.exit_code == 2
        assert "Invalid configuration" in result.output
