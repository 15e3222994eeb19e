"""In-memory session-record store.

Holds serialised records in a dict, so a loaded ``Session`` is always a
fresh copy and the checksum path is exercised exactly as on disk.  All data
is lost when the process exits.

Classes
-------
- InMemorySessionStore  — dict-backed ephemeral store
"""
from __future__ import annotations

from change_session_linker.session.serializer import SessionSerializer
from change_session_linker.session.state import Session
from change_session_linker.storage.base import SessionStore


class InMemorySessionStore(SessionStore):
    """Ephemeral, in-process record store.

    Parameters
    ----------
    sessions:
        Optional records to pre-populate the store with.
    serializer:
        Optional custom serializer.
    """

    def __init__(
        self,
        sessions: list[Session] | None = None,
        serializer: SessionSerializer | None = None,
    ) -> None:
        super().__init__(serializer)
        self._payloads: dict[str, str] = {}
        for session in sessions or []:
            self.save(session)

    def list(self) -> list[str]:
        """Return all stored session ids in insertion order."""
        return list(self._payloads)

    def exists(self, session_id: str) -> bool:
        return session_id in self._payloads

    def _write(self, session: Session, payload: str) -> None:
        self._payloads[session.session_id] = payload

    def _read(self, session_id: str) -> str | None:
        return self._payloads.get(session_id)

    def __len__(self) -> int:
        return len(self._payloads)

    def __repr__(self) -> str:
        return f"InMemorySessionStore(sessions={len(self._payloads)})"
