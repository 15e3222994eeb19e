"""change-session-linker — agent sessions that survive a mutable change graph.

Sessions are keyed by their own stable id and linked from change-node
descriptions, so amend, rebase, squash and abandon never orphan a
conversation.  Checkpoints add linked nodes without forking the transcript,
and ancestor queries re-validate the graph at every hop.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import change_session_linker
>>> change_session_linker.__version__
'0.1.0'
"""
from __future__ import annotations

# Errors
from change_session_linker.exceptions import (
    AdapterError,
    AdapterUnavailableError,
    ChangeSessionLinkerError,
    CheckpointLinkError,
    MalformedSessionLinkError,
    NodeNotFoundError,
    NoSessionLinkError,
    OutOfOrderAppendError,
    SessionLinkConflictError,
    SessionNotFoundError,
    SessionNotResumableError,
    TranscriptExistsError,
    TranscriptLockError,
    TranscriptNotFoundError,
)

# Configuration
from change_session_linker.config import LinkerConfig, RebasePolicy, load_config

# Change graph
from change_session_linker.graph.base import ChangeGraphAdapter, ChangeNode, ExistenceState
from change_session_linker.graph.jujutsu import JujutsuAdapter
from change_session_linker.graph.memory import InMemoryChangeGraph

# Sessions
from change_session_linker.session.link import SessionLink, parse_description, render_description
from change_session_linker.session.manager import SessionManager
from change_session_linker.session.serializer import SchemaVersionError, SessionSerializer
from change_session_linker.session.state import LineageEntry, Session, TranscriptEntry

# Storage
from change_session_linker.storage.base import SessionStore
from change_session_linker.storage.filesystem import FilesystemSessionStore
from change_session_linker.storage.memory import InMemorySessionStore
from change_session_linker.storage.sqlite import SQLiteSessionStore

# Transcripts
from change_session_linker.transcript.base import TranscriptStore, TranscriptView
from change_session_linker.transcript.jsonl import JsonlTranscriptStore
from change_session_linker.transcript.memory import InMemoryTranscriptStore

# Ancestor resolution
from change_session_linker.resolver.ancestor import AncestorResolver
from change_session_linker.resolver.models import (
    AncestorContext,
    AncestorHop,
    ContextField,
    DiscontinuityReason,
    DiscontinuityReport,
    TranscriptFilter,
)

from change_session_linker.convenience import Workspace, open_workspace

__version__: str = "0.1.0"

__all__ = [
    "__version__",
    # Errors
    "AdapterError",
    "AdapterUnavailableError",
    "ChangeSessionLinkerError",
    "CheckpointLinkError",
    "MalformedSessionLinkError",
    "NoSessionLinkError",
    "NodeNotFoundError",
    "OutOfOrderAppendError",
    "SchemaVersionError",
    "SessionLinkConflictError",
    "SessionNotFoundError",
    "SessionNotResumableError",
    "TranscriptExistsError",
    "TranscriptLockError",
    "TranscriptNotFoundError",
    # Configuration
    "LinkerConfig",
    "RebasePolicy",
    "load_config",
    # Change graph
    "ChangeGraphAdapter",
    "ChangeNode",
    "ExistenceState",
    "InMemoryChangeGraph",
    "JujutsuAdapter",
    # Sessions
    "LineageEntry",
    "Session",
    "SessionLink",
    "SessionManager",
    "SessionSerializer",
    "TranscriptEntry",
    "parse_description",
    "render_description",
    # Storage
    "FilesystemSessionStore",
    "InMemorySessionStore",
    "SQLiteSessionStore",
    "SessionStore",
    # Transcripts
    "InMemoryTranscriptStore",
    "JsonlTranscriptStore",
    "TranscriptStore",
    "TranscriptView",
    # Ancestor resolution
    "AncestorContext",
    "AncestorHop",
    "AncestorResolver",
    "ContextField",
    "DiscontinuityReason",
    "DiscontinuityReport",
    "TranscriptFilter",
    # Wiring
    "Workspace",
    "open_workspace",
]
