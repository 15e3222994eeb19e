"""Error taxonomy for change-session-linker.

Every exception raised by this package derives from
``ChangeSessionLinkerError``.  Errors fall into three groups:

- Adapter errors — ``AdapterUnavailableError`` is transient and may be
  retried by the caller; ``NodeNotFoundError`` is permanent for that node.
- Session errors — permanent conditions surfaced to the operator and never
  replaced by a guessed default.
- Transcript errors — ``OutOfOrderAppendError`` marks a programming or
  concurrency fault; prior entries are never affected.

A ``DiscontinuityReport`` (see ``change_session_linker.resolver``) is a
result, not an exception, and therefore does not appear here.
"""
from __future__ import annotations


class ChangeSessionLinkerError(Exception):
    """Base exception for all change-session-linker errors."""


# ---------------------------------------------------------------------------
# Change-graph adapter
# ---------------------------------------------------------------------------


class AdapterError(ChangeSessionLinkerError):
    """Base class for failures reported by a change-graph adapter."""


class AdapterUnavailableError(AdapterError):
    """The version-control system could not be reached or failed transiently.

    Parameters
    ----------
    message:
        Human-readable description of the failure.
    command:
        The command line that was attempted, when known.
    stderr:
        Captured standard error of the failed command, when known.
    """

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        stderr: str = "",
    ) -> None:
        self.command = list(command or [])
        self.stderr = stderr
        super().__init__(message)


class NodeNotFoundError(AdapterError, KeyError):
    """Raised when a change node does not exist (or is no longer visible).

    Parameters
    ----------
    node_id:
        The node that could not be found.
    abandoned:
        True when the node is known to have been abandoned rather than
        never having existed.
    """

    def __init__(self, node_id: str, *, abandoned: bool = False) -> None:
        self.node_id = node_id
        self.abandoned = abandoned
        state = "abandoned" if abandoned else "not found"
        super().__init__(f"Change node {node_id!r} {state}.")

    def __str__(self) -> str:
        return str(self.args[0])


# ---------------------------------------------------------------------------
# Sessions and links
# ---------------------------------------------------------------------------


class SessionNotFoundError(ChangeSessionLinkerError, KeyError):
    """Raised when a requested session record does not exist in the backend."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id!r} not found.")

    def __str__(self) -> str:
        return str(self.args[0])


class NoSessionLinkError(ChangeSessionLinkerError):
    """Raised when a change node carries no session link."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Change node {node_id!r} has no session link.")


class SessionNotResumableError(ChangeSessionLinkerError):
    """Raised when an operation needs a resumable session and it is not."""

    def __init__(self, session_id: str, reason: str = "") -> None:
        self.session_id = session_id
        self.reason = reason
        detail = f": {reason}" if reason else "."
        super().__init__(f"Session {session_id!r} is not resumable{detail}")


class SessionLinkConflictError(ChangeSessionLinkerError):
    """Raised on an attempt to re-point a node's link at a different session."""

    def __init__(self, node_id: str, existing: str, requested: str) -> None:
        self.node_id = node_id
        self.existing_session_id = existing
        self.requested_session_id = requested
        super().__init__(
            f"Change node {node_id!r} is already linked to session {existing!r}; "
            f"refusing to relink it to {requested!r}. Create a new node instead."
        )


class MalformedSessionLinkError(ChangeSessionLinkerError, ValueError):
    """Raised when a description contains a session-link trailer that cannot be parsed."""


class CheckpointLinkError(ChangeSessionLinkerError):
    """A node was created but its session link could not be written.

    The node is left without a link; it can be adopted later with
    ``SessionManager.attach_session``.

    Parameters
    ----------
    node_id:
        The node that was created and remains unlinked.
    session_id:
        The session the link was meant for.
    """

    def __init__(self, node_id: str, session_id: str) -> None:
        self.node_id = node_id
        self.session_id = session_id
        super().__init__(
            f"Created change node {node_id!r} but failed to link it to "
            f"session {session_id!r}; the node was left unlinked."
        )


# ---------------------------------------------------------------------------
# Transcripts
# ---------------------------------------------------------------------------


class TranscriptError(ChangeSessionLinkerError):
    """Base class for transcript store failures."""


class OutOfOrderAppendError(TranscriptError):
    """Raised when an appended entry does not continue the turn sequence."""

    def __init__(self, session_id: str, expected: int, actual: int) -> None:
        self.session_id = session_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Out-of-order append to session {session_id!r}: "
            f"expected turn_index={expected}, got {actual}."
        )


class TranscriptNotFoundError(TranscriptError, KeyError):
    """Raised when no transcript exists for a session."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"No transcript for session {session_id!r}.")

    def __str__(self) -> str:
        return str(self.args[0])


class TranscriptExistsError(TranscriptError):
    """Raised when creating a transcript for a session that already has one."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id!r} already has a transcript.")


class TranscriptLockError(TranscriptError, TimeoutError):
    """Raised when another writer holds a session's append lock for too long.

    Parameters
    ----------
    session_id:
        Session whose transcript could not be locked.
    lock_path:
        The sentinel file that was in the way.
    holder:
        Description of the writer recorded in the sentinel, if readable.
    """

    def __init__(self, session_id: str, lock_path: str, holder: str = "") -> None:
        self.session_id = session_id
        self.lock_path = lock_path
        self.holder = holder
        held_by = f" by {holder}" if holder else ""
        super().__init__(
            f"Transcript for session {session_id!r} is locked{held_by} ({lock_path})."
        )
