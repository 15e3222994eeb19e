"""Abstract interface over the external change graph.

The change graph is owned entirely by the version-control system.  This
package only reads and writes it through a ``ChangeGraphAdapter`` and never
caches authoritative node state between calls.

Classes
-------
- ExistenceState      — enum: PRESENT, ABANDONED, UNKNOWN
- ChangeNode          — snapshot of one node as read from the adapter
- ChangeGraphAdapter  — abstract base for all adapters
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum

from pydantic import BaseModel


class ExistenceState(str, Enum):
    """Visibility of a change node in the external graph."""

    PRESENT = "present"
    ABANDONED = "abandoned"
    UNKNOWN = "unknown"


class ChangeNode(BaseModel):
    """A point-in-time snapshot of one node of the change graph.

    Parameters
    ----------
    node_id:
        Stable identifier assigned by the version-control system.  Survives
        rebase and amend.
    description:
        Full description text, including any session-link trailer.
    parent_node_id:
        The single parent of this node, or None for a root.
    existence_state:
        Whether the node is still visible in the graph.
    """

    node_id: str
    description: str = ""
    parent_node_id: str | None = None
    existence_state: ExistenceState = ExistenceState.PRESENT

    model_config = {"frozen": True}

    @property
    def is_present(self) -> bool:
        return self.existence_state is ExistenceState.PRESENT


class ChangeGraphAdapter(ABC):
    """Query and mutation interface over the external change graph.

    Every method is a synchronous call out to the external system and may
    raise ``AdapterUnavailableError`` (transient) or ``NodeNotFoundError``
    (permanent for that node).  Callers must not hold in-memory locks across
    these calls.
    """

    @abstractmethod
    def create_node(self, parent_node_id: str | None, description: str) -> str:
        """Create a new node on top of ``parent_node_id`` and return its id.

        Parameters
        ----------
        parent_node_id:
            Node to build on.  None means the adapter's default location
            (for Jujutsu, the current working-copy change).
        description:
            Initial description text.

        Returns
        -------
        str
            The new node's stable identifier.
        """

    @abstractmethod
    def read_node(self, node_id: str) -> ChangeNode:
        """Return a fresh snapshot of ``node_id``.

        Raises
        ------
        NodeNotFoundError
            If the node does not exist.  Adapters that can tell an abandoned
            node from a missing one either return a node with
            ``existence_state=ABANDONED`` or raise with ``abandoned=True``.
        """

    @abstractmethod
    def write_description(self, node_id: str, description: str) -> None:
        """Replace the description of ``node_id`` with ``description``."""

    @abstractmethod
    def list_ancestors(self, node_id: str, max_depth: int) -> list[str]:
        """Return up to ``max_depth`` ancestor ids of ``node_id``, closest first.

        The node itself is not included.  The list is shorter than
        ``max_depth`` when the graph root is reached first.
        """

    @abstractmethod
    def diff(self, node_id: str) -> str:
        """Return the node's diff against its parent as opaque text."""

    @abstractmethod
    def current_node_id(self) -> str:
        """Return the id of the node the working copy currently sits on."""
