"""Filesystem session-record store.

Each record is a JSON file named after its session id, next to the
transcripts under the configured session root.

Classes
-------
- FilesystemSessionStore  — JSON-file-per-session store
"""
from __future__ import annotations

import os
from pathlib import Path

from change_session_linker.session.serializer import SessionSerializer
from change_session_linker.session.state import Session
from change_session_linker.storage.base import SessionStore

_DEFAULT_STORAGE_DIR: Path = Path.home() / ".agent-sessions" / "sessions"
_FILE_EXTENSION = ".json"


class FilesystemSessionStore(SessionStore):
    """Stores each record as ``<storage_dir>/<session_id>.json``.

    Writes go to a temporary sibling first and are moved into place, so a
    reader never sees a half-written record.

    Parameters
    ----------
    storage_dir:
        Directory for record files.  Created on first write if absent.
    serializer:
        Optional custom serializer.
    """

    def __init__(
        self,
        storage_dir: str | Path | None = None,
        serializer: SessionSerializer | None = None,
    ) -> None:
        super().__init__(serializer)
        self._storage_dir: Path = (
            Path(storage_dir) if storage_dir is not None else _DEFAULT_STORAGE_DIR
        )

    @property
    def storage_dir(self) -> Path:
        return self._storage_dir

    def list(self) -> list[str]:
        """Return session ids derived from file stems; empty if the directory is absent."""
        if not self._storage_dir.exists():
            return []
        return sorted(
            path.stem
            for path in self._storage_dir.glob(f"*{_FILE_EXTENSION}")
            if path.is_file()
        )

    def exists(self, session_id: str) -> bool:
        return self._path_for(session_id).is_file()

    def _write(self, session: Session, payload: str) -> None:
        self._storage_dir.mkdir(parents=True, exist_ok=True)
        path = self._path_for(session.session_id)
        tmp_path = path.with_name(f"{path.name}.{os.getpid()}.tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        os.replace(tmp_path, path)

    def _read(self, session_id: str) -> str | None:
        try:
            return self._path_for(session_id).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def _path_for(self, session_id: str) -> Path:
        # Session ids never contain path separators; strip any that arrive.
        return self._storage_dir / f"{os.path.basename(session_id)}{_FILE_EXTENSION}"

    def __repr__(self) -> str:
        return f"FilesystemSessionStore(storage_dir={str(self._storage_dir)!r})"
