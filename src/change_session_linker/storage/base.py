"""Abstract base class for session-record stores.

A store keeps one ``Session`` record per session id.  Records go through a
``SessionSerializer`` on the way in and out, so every store carries the
schema version and checksum checks.  Transcripts are kept separately by a
``TranscriptStore``.  Records are never deleted by this package; retention
is an external policy.

Classes
-------
- SessionStore  — abstract base for all record stores
"""
from __future__ import annotations

from abc import ABC, abstractmethod

from change_session_linker.exceptions import SessionNotFoundError
from change_session_linker.session.serializer import SessionSerializer
from change_session_linker.session.state import Session


class SessionStore(ABC):
    """Persistence for ``Session`` records.

    Subclasses implement the raw payload operations (``_write``,
    ``_read``, ``list`` and ``exists``); loading, saving and lookups by
    node are shared.  Stores are safe for sequential use; concurrent
    writers to the same session record are the caller's responsibility.

    Parameters
    ----------
    serializer:
        Optional custom serializer.  Defaults to a ``SessionSerializer``
        with checksum validation enabled.
    """

    def __init__(self, serializer: SessionSerializer | None = None) -> None:
        self._serializer = serializer or SessionSerializer()

    def save(self, session: Session) -> None:
        """Persist ``session``, overwriting any prior record with its id."""
        self._write(session, self._serializer.to_json(session))

    def load(self, session_id: str) -> Session:
        """Return the record stored under ``session_id``.

        Raises
        ------
        SessionNotFoundError
            If no record exists.
        SchemaVersionError
            If the stored record uses an unsupported schema version.
        ValueError
            If the stored checksum does not match the record.
        """
        payload = self._read(session_id)
        if payload is None:
            raise SessionNotFoundError(session_id)
        return self._serializer.from_json(payload)

    def sessions_rooted_at(self, node_id: str) -> list[Session]:
        """Return every session whose lineage starts at ``node_id``."""
        sessions = (self.load(session_id) for session_id in self.list())
        return [session for session in sessions if session.root_node_id == node_id]

    @abstractmethod
    def list(self) -> list[str]:
        """Return all stored session ids.  Order is implementation-defined."""

    @abstractmethod
    def exists(self, session_id: str) -> bool:
        """Return True if a record for ``session_id`` exists."""

    @abstractmethod
    def _write(self, session: Session, payload: str) -> None:
        """Store the serialised ``payload`` of ``session``."""

    @abstractmethod
    def _read(self, session_id: str) -> str | None:
        """Return the serialised record for ``session_id``, or None."""
