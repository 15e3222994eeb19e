"""In-memory transcript store.

Classes
-------
- InMemoryTranscriptStore  — dict-of-lists transcript storage
"""
from __future__ import annotations

from collections.abc import Iterator

from change_session_linker.exceptions import TranscriptExistsError, TranscriptNotFoundError
from change_session_linker.session.state import TranscriptEntry
from change_session_linker.transcript.base import TranscriptStore


class InMemoryTranscriptStore(TranscriptStore):
    """Ephemeral transcript store.  All data is lost when the process exits."""

    def __init__(self) -> None:
        self._transcripts: dict[str, list[TranscriptEntry]] = {}

    def create(self, session_id: str) -> None:
        if session_id in self._transcripts:
            raise TranscriptExistsError(session_id)
        self._transcripts[session_id] = []

    def exists(self, session_id: str) -> bool:
        return session_id in self._transcripts

    def append(self, session_id: str, entry: TranscriptEntry) -> None:
        entries = self._entries(session_id)
        self._check_order(session_id, entries[-1].turn_index if entries else None, entry)
        entries.append(entry)

    def last_index(self, session_id: str) -> int | None:
        entries = self._entries(session_id)
        return entries[-1].turn_index if entries else None

    def list_sessions(self) -> list[str]:
        return sorted(self._transcripts)

    def _iter_entries(self, session_id: str) -> Iterator[TranscriptEntry]:
        # Snapshot the length so appends during iteration are not observed.
        entries = self._entries(session_id)
        return iter(entries[: len(entries)])

    def _entries(self, session_id: str) -> list[TranscriptEntry]:
        try:
            return self._transcripts[session_id]
        except KeyError:
            raise TranscriptNotFoundError(session_id) from None

    def __repr__(self) -> str:
        return f"InMemoryTranscriptStore(sessions={len(self._transcripts)})"
