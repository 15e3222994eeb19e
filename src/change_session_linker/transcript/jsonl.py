"""JSON-lines transcript store.

Each session's transcript is one append-only file,
``<transcript_dir>/<session_id>.jsonl``, holding one JSON-encoded
``TranscriptEntry`` per line.  File order is append order is
``turn_index`` order.

Classes
-------
- JsonlTranscriptStore  — file-per-session transcript storage
"""
from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path

from change_session_linker.exceptions import TranscriptExistsError, TranscriptNotFoundError
from change_session_linker.session.state import TranscriptEntry
from change_session_linker.transcript.base import TranscriptStore
from change_session_linker.transcript.locking import AppendLock

logger = logging.getLogger(__name__)

_DEFAULT_TRANSCRIPT_DIR: Path = Path.home() / ".agent-sessions" / "transcripts"
_FILE_EXTENSION = ".jsonl"
_TAIL_CHUNK_BYTES = 4096


class JsonlTranscriptStore(TranscriptStore):
    """Stores transcripts as JSON-lines files.

    Parameters
    ----------
    transcript_dir:
        Directory holding one ``.jsonl`` file per session.  Created on
        first use if absent.
    lock_timeout:
        Seconds to wait for another writer's append lock before giving up.
    stale_lock_after:
        Age in seconds after which a leftover append lock is broken.
    """

    def __init__(
        self,
        transcript_dir: str | Path | None = None,
        lock_timeout: float = 10.0,
        stale_lock_after: float = 60.0,
    ) -> None:
        self._transcript_dir: Path = (
            Path(transcript_dir) if transcript_dir is not None else _DEFAULT_TRANSCRIPT_DIR
        )
        self._lock_timeout = lock_timeout
        self._stale_lock_after = stale_lock_after

    # ------------------------------------------------------------------
    # TranscriptStore interface
    # ------------------------------------------------------------------

    def create(self, session_id: str) -> None:
        self._transcript_dir.mkdir(parents=True, exist_ok=True)
        try:
            self._path_for(session_id).open("x", encoding="utf-8").close()
        except FileExistsError:
            raise TranscriptExistsError(session_id) from None
        logger.debug("JsonlTranscriptStore: created transcript for %r", session_id)

    def exists(self, session_id: str) -> bool:
        return self._path_for(session_id).is_file()

    def append(self, session_id: str, entry: TranscriptEntry) -> None:
        path = self._require(session_id)
        line = entry.model_dump_json() + "\n"
        lock = AppendLock(
            session_id,
            self._lock_path_for(session_id),
            timeout=self._lock_timeout,
            stale_after=self._stale_lock_after,
        )
        with lock:
            self._check_order(session_id, self._last_index_of(path), entry)
            with path.open("a", encoding="utf-8") as handle:
                handle.write(line)
                handle.flush()
                os.fsync(handle.fileno())
        logger.debug(
            "JsonlTranscriptStore: appended turn %d to %r", entry.turn_index, session_id
        )

    def last_index(self, session_id: str) -> int | None:
        return self._last_index_of(self._require(session_id))

    def list_sessions(self) -> list[str]:
        if not self._transcript_dir.exists():
            return []
        return sorted(
            path.stem
            for path in self._transcript_dir.glob(f"*{_FILE_EXTENSION}")
            if path.is_file()
        )

    def _iter_entries(self, session_id: str) -> Iterator[TranscriptEntry]:
        path = self._require(session_id)
        with path.open("r", encoding="utf-8") as handle:
            for line in handle:
                if line.strip():
                    yield TranscriptEntry.model_validate_json(line)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _path_for(self, session_id: str) -> Path:
        # Guard against path traversal attacks.
        safe_name = os.path.basename(session_id)
        return self._transcript_dir / f"{safe_name}{_FILE_EXTENSION}"

    def _lock_path_for(self, session_id: str) -> Path:
        return self._path_for(session_id).with_suffix(".lock")

    def _require(self, session_id: str) -> Path:
        path = self._path_for(session_id)
        if not path.is_file():
            raise TranscriptNotFoundError(session_id)
        return path

    @staticmethod
    def _last_index_of(path: Path) -> int | None:
        """Return the ``turn_index`` of the final line without reading the whole file."""
        with path.open("rb") as handle:
            handle.seek(0, os.SEEK_END)
            position = handle.tell()
            tail = b""
            while position > 0:
                step = min(_TAIL_CHUNK_BYTES, position)
                position -= step
                handle.seek(position)
                tail = handle.read(step) + tail
                lines = [line for line in tail.splitlines() if line.strip()]
                # The first line in the buffer may be partial until we hit the file start.
                if len(lines) > 1 or (lines and position == 0):
                    return TranscriptEntry.model_validate_json(lines[-1]).turn_index
        return None

    def __repr__(self) -> str:
        return f"JsonlTranscriptStore(transcript_dir={str(self._transcript_dir)!r})"
