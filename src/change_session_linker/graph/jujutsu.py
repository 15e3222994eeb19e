"""Jujutsu (``jj``) change-graph adapter.

Shells out to the ``jj`` command-line tool.  Jujutsu change ids are stable
across rebase and amend, which makes them a suitable ``node_id``.

Classes
-------
- JujutsuAdapter  — ``ChangeGraphAdapter`` backed by the ``jj`` CLI
"""
from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from change_session_linker.exceptions import AdapterUnavailableError, NodeNotFoundError
from change_session_linker.graph.base import ChangeGraphAdapter, ChangeNode, ExistenceState

logger = logging.getLogger(__name__)

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"

# change id, first parent's change id (empty for root), description
_NODE_TEMPLATE = (
    'change_id ++ "\\x1f" ++ '
    'parents.map(|c| c.change_id()).join(",") ++ "\\x1f" ++ '
    'description ++ "\\x1e"'
)
_ID_TEMPLATE = 'change_id ++ "\\n"'

# Substrings of jj's stderr that mean "this revision does not resolve".
_MISSING_MARKERS = (
    "doesn't exist",
    "does not exist",
    "didn't resolve",
    "No such revision",
    "not found",
)
_HIDDEN_MARKERS = ("is hidden", "abandoned")
_ROOT_CHANGE_ID = "z" * 32


class JujutsuAdapter(ChangeGraphAdapter):
    """Adapter that drives a Jujutsu repository through its CLI.

    Parameters
    ----------
    repo_path:
        Path inside the repository; passed to ``jj -R``.  Defaults to the
        current working directory.
    binary:
        Name or path of the ``jj`` executable.
    timeout:
        Seconds to wait for each ``jj`` invocation.
    """

    def __init__(
        self,
        repo_path: str | Path | None = None,
        binary: str = "jj",
        timeout: float = 30.0,
    ) -> None:
        self._repo_path = Path(repo_path) if repo_path is not None else Path.cwd()
        self._binary = binary
        self._timeout = timeout

    # ------------------------------------------------------------------
    # ChangeGraphAdapter interface
    # ------------------------------------------------------------------

    def create_node(self, parent_node_id: str | None, description: str) -> str:
        target = _exact(parent_node_id) if parent_node_id is not None else "@"
        self._run(["new", target, "-m", description], node_id=parent_node_id)
        node_id = self.current_node_id()
        logger.debug("JujutsuAdapter: created change %r on %r", node_id, target)
        return node_id

    def read_node(self, node_id: str) -> ChangeNode:
        output = self._run(
            ["log", "--no-graph", "-r", _exact(node_id), "-T", _NODE_TEMPLATE],
            node_id=node_id,
        )
        records = [record for record in output.split(_RECORD_SEP) if record.strip("\n")]
        if not records:
            raise NodeNotFoundError(node_id)
        change_id, parents, description = records[0].lstrip("\n").split(_FIELD_SEP, 2)
        parent_ids = [p for p in parents.split(",") if p and p != _ROOT_CHANGE_ID]
        return ChangeNode(
            node_id=change_id,
            description=description,
            parent_node_id=parent_ids[0] if parent_ids else None,
            existence_state=ExistenceState.PRESENT,
        )

    def write_description(self, node_id: str, description: str) -> None:
        self._run(["describe", _exact(node_id), "-m", description], node_id=node_id)

    def list_ancestors(self, node_id: str, max_depth: int) -> list[str]:
        if max_depth < 1:
            return []
        revset = f"ancestors({_exact(node_id)}, {max_depth + 1}) ~ {_exact(node_id)} ~ root()"
        output = self._run(
            ["log", "--no-graph", "-r", revset, "-T", _ID_TEMPLATE],
            node_id=node_id,
        )
        return [line.strip() for line in output.splitlines() if line.strip()][:max_depth]

    def diff(self, node_id: str) -> str:
        return self._run(["diff", "--git", "-r", _exact(node_id)], node_id=node_id)

    def current_node_id(self) -> str:
        output = self._run(["log", "--no-graph", "-r", "@", "-T", _ID_TEMPLATE])
        return output.strip()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _run(self, args: list[str], node_id: str | None = None) -> str:
        """Run one ``jj`` command and return its stdout.

        Raises
        ------
        NodeNotFoundError
            When jj reports that ``node_id`` does not resolve.
        AdapterUnavailableError
            For every other failure, including a missing binary or timeout.
        """
        command = [self._binary, "--no-pager", "--color=never", "-R", str(self._repo_path), *args]
        try:
            proc = subprocess.run(
                command,
                text=True,
                capture_output=True,
                timeout=self._timeout,
            )
        except FileNotFoundError as exc:
            raise AdapterUnavailableError(
                f"jj executable {self._binary!r} not found", command=command
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise AdapterUnavailableError(
                f"jj timed out after {self._timeout}s", command=command
            ) from exc

        if proc.returncode != 0:
            stderr = proc.stderr.strip()
            if node_id is not None and any(marker in stderr for marker in _HIDDEN_MARKERS):
                raise NodeNotFoundError(node_id, abandoned=True)
            if node_id is not None and any(marker in stderr for marker in _MISSING_MARKERS):
                raise NodeNotFoundError(node_id)
            raise AdapterUnavailableError(
                f"{' '.join(args[:1])}: {stderr or 'command failed'}",
                command=command,
                stderr=stderr,
            )
        return proc.stdout

    def __repr__(self) -> str:
        return f"JujutsuAdapter(repo_path={str(self._repo_path)!r}, binary={self._binary!r})"


def _exact(node_id: str) -> str:
    """Quote a change id as an exact revset lookup."""
    return f'change_id("{node_id}")'
