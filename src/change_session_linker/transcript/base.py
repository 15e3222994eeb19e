"""Abstract transcript store.

A transcript is the append-only, ordered log of turns for one session.  It
is keyed by ``session_id`` alone, so checkpoints (which only add change
nodes) never fork or rewrite it.

Classes
-------
- TranscriptView   — lazy, restartable view over stored entries
- TranscriptStore  — abstract base for all transcript stores
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator
from datetime import datetime, timezone

from change_session_linker.exceptions import OutOfOrderAppendError
from change_session_linker.session.state import TranscriptEntry

EntryPredicate = Callable[[TranscriptEntry], bool]


class TranscriptView:
    """A finite, lazily evaluated sequence of transcript entries.

    Each iteration calls ``source`` afresh, so a view can be iterated any
    number of times and always reflects the store's current contents.

    Parameters
    ----------
    source:
        Zero-argument callable returning an iterable of entries in
        ``turn_index`` order.
    predicate:
        Optional filter applied to each entry.
    """

    def __init__(
        self,
        source: Callable[[], Iterable[TranscriptEntry]],
        predicate: EntryPredicate | None = None,
    ) -> None:
        self._source = source
        self._predicate = predicate

    def __iter__(self) -> Iterator[TranscriptEntry]:
        for entry in self._source():
            if self._predicate is None or self._predicate(entry):
                yield entry

    def to_list(self) -> list[TranscriptEntry]:
        return list(self)

    def __repr__(self) -> str:
        return f"TranscriptView(filtered={self._predicate is not None})"


class TranscriptStore(ABC):
    """Append-only storage of session transcripts.

    Subclasses implement the raw storage primitives; ordering rules and the
    read/search helpers live here.  Entries are never mutated or removed.
    """

    # ------------------------------------------------------------------
    # Storage primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def create(self, session_id: str) -> None:
        """Create an empty transcript for ``session_id``.

        Raises
        ------
        TranscriptExistsError
            If a transcript already exists for ``session_id``.
        """

    @abstractmethod
    def exists(self, session_id: str) -> bool:
        """Return True if a transcript exists for ``session_id``."""

    @abstractmethod
    def append(self, session_id: str, entry: TranscriptEntry) -> None:
        """Append ``entry`` to the transcript of ``session_id``.

        Raises
        ------
        OutOfOrderAppendError
            If ``entry.turn_index`` is not ``last_index(session_id) + 1``.
        TranscriptNotFoundError
            If no transcript exists for ``session_id``.
        """

    @abstractmethod
    def last_index(self, session_id: str) -> int | None:
        """Return the highest stored ``turn_index``, or None for an empty transcript.

        Raises
        ------
        TranscriptNotFoundError
            If no transcript exists for ``session_id``.
        """

    @abstractmethod
    def list_sessions(self) -> list[str]:
        """Return the ids of all sessions with a transcript."""

    @abstractmethod
    def _iter_entries(self, session_id: str) -> Iterator[TranscriptEntry]:
        """Yield every stored entry for ``session_id`` in append order."""

    # ------------------------------------------------------------------
    # Derived operations
    # ------------------------------------------------------------------

    def append_turn(
        self,
        session_id: str,
        role: str,
        content: str,
        metadata: dict[str, str] | None = None,
    ) -> TranscriptEntry:
        """Append a new turn with the next ``turn_index`` and return it."""
        last = self.last_index(session_id)
        entry = TranscriptEntry(
            turn_index=0 if last is None else last + 1,
            role=role,
            content=content,
            timestamp=datetime.now(timezone.utc),
            metadata=metadata or {},
        )
        self.append(session_id, entry)
        return entry

    def read(
        self,
        session_id: str,
        start: int | None = None,
        end: int | None = None,
    ) -> TranscriptView:
        """Return a view of the turns with ``start <= turn_index < end``.

        Omitting both bounds selects the full transcript.

        Raises
        ------
        TranscriptNotFoundError
            If no transcript exists for ``session_id``.
        ValueError
            If ``end`` is smaller than ``start``.
        """
        _check_range(start, end)
        self.last_index(session_id)

        def in_range(entry: TranscriptEntry) -> bool:
            return _in_range(entry, start, end)

        predicate = None if start is None and end is None else in_range
        return TranscriptView(lambda: self._iter_entries(session_id), predicate)

    def search(
        self,
        session_id: str,
        query: str | EntryPredicate,
        *,
        role: str | None = None,
        case_sensitive: bool = False,
        start: int | None = None,
        end: int | None = None,
    ) -> TranscriptView:
        """Return a view of the turns matching ``query``, in ``turn_index`` order.

        Parameters
        ----------
        session_id:
            The session whose transcript to search.
        query:
            Either a substring to look for in ``content`` or a predicate
            called with each entry.
        role:
            When provided, only entries with this role match.
        case_sensitive:
            Applies to substring queries only.
        start, end:
            Optional ``[start, end)`` bounds on ``turn_index``, as for
            ``read``.

        Raises
        ------
        TranscriptNotFoundError
            If no transcript exists for ``session_id``.
        ValueError
            If ``end`` is smaller than ``start``.
        """
        _check_range(start, end)
        self.last_index(session_id)

        if callable(query):
            matches = query
        else:
            needle = query if case_sensitive else query.lower()

            def matches(entry: TranscriptEntry) -> bool:
                haystack = entry.content if case_sensitive else entry.content.lower()
                return needle in haystack

        def predicate(entry: TranscriptEntry) -> bool:
            if not _in_range(entry, start, end):
                return False
            if role is not None and entry.role != role:
                return False
            return matches(entry)

        return TranscriptView(lambda: self._iter_entries(session_id), predicate)

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    @staticmethod
    def _check_order(session_id: str, last: int | None, entry: TranscriptEntry) -> None:
        expected = 0 if last is None else last + 1
        if entry.turn_index != expected:
            raise OutOfOrderAppendError(session_id, expected, entry.turn_index)


def _check_range(start: int | None, end: int | None) -> None:
    if start is not None and end is not None and end < start:
        raise ValueError(f"end ({end}) must be >= start ({start}).")


def _in_range(entry: TranscriptEntry, start: int | None, end: int | None) -> bool:
    if start is not None and entry.turn_index < start:
        return False
    return end is None or entry.turn_index < end
