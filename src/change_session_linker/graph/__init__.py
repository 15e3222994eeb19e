"""Change-graph adapter subpackage.

Public surface
--------------
- ChangeGraphAdapter   — abstract base class
- ChangeNode           — snapshot of one node
- ExistenceState       — enum: PRESENT, ABANDONED, UNKNOWN
- InMemoryChangeGraph  — dict-backed graph (useful for testing)
- JujutsuAdapter       — adapter that drives the ``jj`` CLI
"""
from __future__ import annotations

from change_session_linker.graph.base import ChangeGraphAdapter, ChangeNode, ExistenceState
from change_session_linker.graph.jujutsu import JujutsuAdapter
from change_session_linker.graph.memory import InMemoryChangeGraph

__all__ = [
    "ChangeGraphAdapter",
    "ChangeNode",
    "ExistenceState",
    "InMemoryChangeGraph",
    "JujutsuAdapter",
]
