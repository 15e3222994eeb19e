"""Per-session append lock for JSON-lines transcripts.

The lock is a sentinel ``<session_id>.lock`` file created with
exclusive-create mode, which is atomic on POSIX and Windows alike.  The
sentinel records who holds it (host, pid and acquisition time) so that a
lock left behind by a crashed writer can be recognised and broken instead
of blocking every later append.  ``JsonlTranscriptStore`` holds the lock
only for the read-last-index-then-write step of a single append, never
across a change-graph call.

Classes
-------
- AppendLock  — exclusive-create sentinel lock with stale-holder recovery
"""
from __future__ import annotations

import json
import logging
import os
import socket
import time
from pathlib import Path
from typing import IO

from change_session_linker.exceptions import TranscriptLockError

logger = logging.getLogger(__name__)

_POLL_INTERVAL_SECONDS: float = 0.05


class AppendLock:
    """Advisory lock guarding appends to one session's transcript.

    A sentinel is stale when it is older than ``stale_after`` seconds, or
    when it names a process on this host that is no longer running.  Stale
    sentinels are removed and acquisition is retried.

    Parameters
    ----------
    session_id:
        Session whose transcript is guarded; used in errors and logs.
    lock_path:
        Path to the sentinel file.  Created on acquisition and deleted on
        release.
    timeout:
        Seconds to wait for a live holder before raising
        ``TranscriptLockError``.
    stale_after:
        Age in seconds after which any sentinel is considered abandoned.
    """

    def __init__(
        self,
        session_id: str,
        lock_path: str | Path,
        timeout: float = 10.0,
        stale_after: float = 60.0,
    ) -> None:
        self._session_id = session_id
        self._lock_path: Path = Path(lock_path)
        self._timeout: float = timeout
        self._stale_after: float = stale_after
        self._lock_file: IO[str] | None = None

    @property
    def locked(self) -> bool:
        return self._lock_file is not None

    def acquire(self) -> None:
        """Block until the sentinel file can be created.

        Raises
        ------
        TranscriptLockError
            If a live holder keeps the lock beyond the timeout.
        """
        start = time.monotonic()
        while True:
            try:
                self._lock_file = open(self._lock_path, "x", encoding="utf-8")  # noqa: SIM115
            except FileExistsError:
                if self._break_if_stale():
                    continue
                if time.monotonic() - start >= self._timeout:
                    raise TranscriptLockError(
                        self._session_id, str(self._lock_path), _describe(self._read_holder())
                    ) from None
                time.sleep(_POLL_INTERVAL_SECONDS)
            else:
                json.dump(
                    {"host": socket.gethostname(), "pid": os.getpid(), "acquired_at": time.time()},
                    self._lock_file,
                )
                self._lock_file.flush()
                return

    def release(self) -> None:
        """Release the lock.  Safe to call when the lock is not held."""
        if self._lock_file is None:
            return
        self._lock_file.close()
        self._lock_file = None
        self._lock_path.unlink(missing_ok=True)

    # ------------------------------------------------------------------
    # Stale holders
    # ------------------------------------------------------------------

    def _break_if_stale(self) -> bool:
        """Remove the sentinel if its holder is gone.  True if it no longer exists."""
        try:
            age = time.time() - self._lock_path.stat().st_mtime
        except FileNotFoundError:
            return True
        holder = self._read_holder()
        if age < self._stale_after and not _holder_is_dead(holder):
            return False
        logger.warning(
            "AppendLock: breaking stale lock on %r held by %s (%.1fs old)",
            self._session_id,
            _describe(holder) or "an unknown writer",
            age,
        )
        self._lock_path.unlink(missing_ok=True)
        return True

    def _read_holder(self) -> dict[str, object]:
        try:
            data = json.loads(self._lock_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}

    def __enter__(self) -> AppendLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.release()


def _holder_is_dead(holder: dict[str, object]) -> bool:
    """True if ``holder`` names a process on this host that has exited."""
    pid = holder.get("pid")
    if os.name != "posix" or not isinstance(pid, int) or holder.get("host") != socket.gethostname():
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return True
    except PermissionError:
        return False
    return False


def _describe(holder: dict[str, object]) -> str:
    if "pid" not in holder:
        return ""
    return f"pid {holder['pid']} on {holder.get('host', '?')}"
