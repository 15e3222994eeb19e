"""In-memory change graph.

A dict-backed ``ChangeGraphAdapter`` that mimics the parts of a
change-based version-control system this package relies on: stable node
ids, mutable descriptions, abandon, and rebase.  Primarily useful for tests
and local prototyping.

Classes
-------
- InMemoryChangeGraph  — ephemeral change graph with mutation helpers
"""
from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4

from change_session_linker.exceptions import AdapterUnavailableError, NodeNotFoundError
from change_session_linker.graph.base import ChangeGraphAdapter, ChangeNode, ExistenceState


@dataclass
class _NodeRecord:
    description: str
    parent_node_id: str | None
    diff: str = ""
    abandoned: bool = False


class InMemoryChangeGraph(ChangeGraphAdapter):
    """Ephemeral change graph backed by a Python dict.

    Besides the adapter interface, the graph exposes ``abandon``, ``rebase``,
    ``forget`` and ``set_diff`` to simulate mutations made by other tools, and
    ``fail_next`` to inject transient adapter failures.

    Parameters
    ----------
    root_description:
        Description of the implicit root node created on construction.
    """

    def __init__(self, root_description: str = "") -> None:
        self._nodes: dict[str, _NodeRecord] = {}
        self._failures: list[AdapterUnavailableError] = []
        self.root_node_id = self._new_id()
        self._nodes[self.root_node_id] = _NodeRecord(root_description, None)
        self._current = self.root_node_id

    # ------------------------------------------------------------------
    # ChangeGraphAdapter interface
    # ------------------------------------------------------------------

    def create_node(self, parent_node_id: str | None, description: str) -> str:
        self._maybe_fail("create_node")
        parent = parent_node_id if parent_node_id is not None else self._current
        self._require_visible(parent)
        node_id = self._new_id()
        self._nodes[node_id] = _NodeRecord(description, parent)
        self._current = node_id
        return node_id

    def read_node(self, node_id: str) -> ChangeNode:
        self._maybe_fail("read_node")
        record = self._get(node_id)
        return ChangeNode(
            node_id=node_id,
            description=record.description,
            parent_node_id=record.parent_node_id,
            existence_state=(
                ExistenceState.ABANDONED if record.abandoned else ExistenceState.PRESENT
            ),
        )

    def write_description(self, node_id: str, description: str) -> None:
        self._maybe_fail("write_description")
        self._require_visible(node_id).description = description

    def list_ancestors(self, node_id: str, max_depth: int) -> list[str]:
        self._maybe_fail("list_ancestors")
        ancestors: list[str] = []
        current = self._get(node_id).parent_node_id
        while current is not None and len(ancestors) < max_depth:
            ancestors.append(current)
            current = self._get(current).parent_node_id
        return ancestors

    def diff(self, node_id: str) -> str:
        self._maybe_fail("diff")
        return self._require_visible(node_id).diff

    def current_node_id(self) -> str:
        self._maybe_fail("current_node_id")
        return self._current

    # ------------------------------------------------------------------
    # Simulated external mutations
    # ------------------------------------------------------------------

    def abandon(self, node_id: str) -> None:
        """Mark ``node_id`` abandoned and reparent its children onto its parent."""
        record = self._get(node_id)
        record.abandoned = True
        for other in self._nodes.values():
            if other.parent_node_id == node_id and other is not record:
                other.parent_node_id = record.parent_node_id
        if self._current == node_id and record.parent_node_id is not None:
            self._current = record.parent_node_id

    def rebase(self, node_id: str, new_parent_node_id: str) -> None:
        """Move ``node_id`` (and implicitly its descendants) onto a new parent."""
        self._require_visible(new_parent_node_id)
        self._get(node_id).parent_node_id = new_parent_node_id

    def forget(self, node_id: str) -> None:
        """Remove ``node_id`` entirely, as if garbage-collected."""
        self._get(node_id)
        del self._nodes[node_id]

    def set_diff(self, node_id: str, diff: str) -> None:
        self._get(node_id).diff = diff

    def set_current(self, node_id: str) -> None:
        self._require_visible(node_id)
        self._current = node_id

    def fail_next(self, count: int = 1, message: str = "simulated outage") -> None:
        """Make the next ``count`` adapter calls raise ``AdapterUnavailableError``."""
        self._failures.extend(AdapterUnavailableError(message) for _ in range(count))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _new_id() -> str:
        return uuid4().hex[:12]

    def _maybe_fail(self, operation: str) -> None:
        if self._failures:
            error = self._failures.pop(0)
            error.command = [operation]
            raise error

    def _get(self, node_id: str) -> _NodeRecord:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise NodeNotFoundError(node_id) from None

    def _require_visible(self, node_id: str) -> _NodeRecord:
        record = self._get(node_id)
        if record.abandoned:
            raise NodeNotFoundError(node_id, abandoned=True)
        return record

    def __len__(self) -> int:
        return sum(1 for record in self._nodes.values() if not record.abandoned)

    def __repr__(self) -> str:
        return f"InMemoryChangeGraph(nodes={len(self)})"
