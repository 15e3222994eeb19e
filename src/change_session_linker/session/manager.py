"""Session lifecycle management over a change graph.

``SessionManager`` owns the binding between change nodes and sessions.  A
session is keyed by its own ``session_id``; change nodes merely carry a
``SessionLink`` pointing at it.  A checkpoint is therefore a pure graph
operation: it adds a linked node and leaves the transcript untouched, so
subsequent turns keep appending to the same log.

Classes
-------
- SessionManager  — start, resume, checkpoint, and describe sessions
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from change_session_linker.config import RebasePolicy
from change_session_linker.exceptions import (
    AdapterError,
    CheckpointLinkError,
    MalformedSessionLinkError,
    NodeNotFoundError,
    NoSessionLinkError,
    SessionLinkConflictError,
    SessionNotFoundError,
    SessionNotResumableError,
)
from change_session_linker.graph.base import ChangeGraphAdapter, ChangeNode
from change_session_linker.resolver.models import DiscontinuityReason, DiscontinuityReport
from change_session_linker.session.link import (
    SessionLink,
    parse_description,
    render_description,
    replace_summary,
)
from change_session_linker.session.state import Session, TranscriptEntry
from change_session_linker.storage.base import SessionStore
from change_session_linker.transcript.base import TranscriptStore

logger = logging.getLogger(__name__)

Summarizer = Callable[[Iterable[TranscriptEntry]], str]


class SessionManager:
    """Create, resume, and checkpoint sessions bound to change nodes.

    Parameters
    ----------
    graph:
        Adapter over the external change graph.
    store:
        Storage for ``Session`` records.
    transcripts:
        Storage for session transcripts.
    rebase_policy:
        How ``apply_discontinuity`` treats a lineage that was rebased onto
        an unrelated parent.
    """

    def __init__(
        self,
        graph: ChangeGraphAdapter,
        store: SessionStore,
        transcripts: TranscriptStore,
        rebase_policy: RebasePolicy = RebasePolicy.WARN,
    ) -> None:
        self._graph = graph
        self._store = store
        self._transcripts = transcripts
        self.rebase_policy = rebase_policy

    @property
    def graph(self) -> ChangeGraphAdapter:
        return self._graph

    @property
    def transcripts(self) -> TranscriptStore:
        return self._transcripts

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def start_session(
        self,
        initial_description: str,
        *,
        parent_node_id: str | None = None,
    ) -> tuple[str, str]:
        """Create a change node and a fresh session linked to it.

        Parameters
        ----------
        initial_description:
            Human-readable description of the new node (e.g. the task).
        parent_node_id:
            Node to build on; None uses the adapter's default location.

        Returns
        -------
        tuple[str, str]
            ``(node_id, session_id)``.

        Raises
        ------
        AdapterError
            If node creation fails.  No retry is attempted.
        CheckpointLinkError
            If the node was created but the link could not be written.  The
            node is left unlinked.
        """
        _validate_summary(initial_description)
        node_id = self._graph.create_node(parent_node_id, initial_description)
        session = Session(root_node_id=node_id)
        self._link_node(node_id, initial_description, session.session_id)
        return node_id, self._open_session(session, node_id, parent_node_id)

    def attach_session(self, node_id: str) -> str:
        """Start a fresh session rooted at an existing, unlinked node.

        This is how a node left unlinked by a failed link write is adopted.

        Raises
        ------
        NodeNotFoundError
            If the node does not exist or was abandoned.
        SessionLinkConflictError
            If the node already carries a link.
        """
        node = self._read_present(node_id)
        summary, link = parse_description(node.description)
        session = Session(root_node_id=node_id)
        if link is not None:
            raise SessionLinkConflictError(node_id, link.session_id, session.session_id)
        self._link_node(node_id, summary, session.session_id)
        return self._open_session(session, node_id, node.parent_node_id)

    def resume_session(self, node_id: str) -> str:
        """Return the session linked from ``node_id``.

        Calling this repeatedly on an unchanged node returns the same id.

        Raises
        ------
        NodeNotFoundError
            If the node does not exist or was abandoned.  A session rooted
            at that node is marked non-resumable first.
        NoSessionLinkError
            If the node carries no session link.
        SessionNotFoundError
            If the link names a session with no stored record.
        SessionNotResumableError
            If the session is, or has just been found to be, non-resumable.
        """
        try:
            node = self._graph.read_node(node_id)
        except NodeNotFoundError as exc:
            self._retire_lost_root(node_id, None, abandoned=exc.abandoned)
            raise
        if not node.is_present:
            self._retire_lost_root(node_id, node, abandoned=True)
            raise NodeNotFoundError(node_id, abandoned=True)
        _, link = parse_description(node.description)
        if link is None:
            raise NoSessionLinkError(node_id)

        session = self.get_session(link.session_id)
        if session.resumable:
            root_problem = self._root_problem(session)
            if root_problem:
                self._set_non_resumable(session, root_problem)
        if not session.resumable:
            raise SessionNotResumableError(session.session_id, self._last_warning(session))

        logger.debug("SessionManager: resumed session %r at node %r", session.session_id, node_id)
        return session.session_id

    def checkpoint(
        self,
        session_id: str,
        new_description: str,
        *,
        parent_node_id: str | None = None,
    ) -> str:
        """Create a new change node that continues ``session_id``.

        No transcript is created; turns appended after the checkpoint join
        the existing transcript.

        Parameters
        ----------
        session_id:
            The session to continue.
        new_description:
            Human-readable description of the new node.
        parent_node_id:
            The caller's current node.  Defaults to the session's head.

        Returns
        -------
        str
            The new node id.

        Raises
        ------
        SessionNotFoundError
            If ``session_id`` is unknown.
        SessionNotResumableError
            If the session was marked non-resumable.
        AdapterError
            If node creation fails.
        CheckpointLinkError
            If the node was created but could not be linked.
        """
        session = self.get_session(session_id)
        if not session.resumable:
            raise SessionNotResumableError(session_id, self._last_warning(session))
        _validate_summary(new_description)

        parent = parent_node_id or session.head_node_id
        node_id = self._graph.create_node(parent, new_description)
        self._link_node(node_id, new_description, session_id)

        session.record_node(node_id, parent)
        self._save(session)
        logger.debug(
            "SessionManager: checkpoint %r on %r for session %r", node_id, parent, session_id
        )
        return node_id

    def mark_non_resumable(self, session_id: str, reason: str = "") -> None:
        """Mark ``session_id`` non-resumable.  Idempotent."""
        session = self.get_session(session_id)
        if session.resumable:
            self._set_non_resumable(session, reason)

    # ------------------------------------------------------------------
    # Description synchronisation
    # ------------------------------------------------------------------

    def sync_description(self, node_id: str, summary: str) -> str:
        """Replace the human-readable part of ``node_id``'s description.

        The node's session link, if any, is preserved unchanged.

        Returns
        -------
        str
            The full description written to the node.
        """
        node = self._read_present(node_id)
        description = replace_summary(node.description, summary)
        if description != node.description:
            self._graph.write_description(node_id, description)
        return description

    def sync_from_transcript(
        self,
        session_id: str,
        node_id: str,
        summarize: Summarizer,
    ) -> str:
        """Summarise the session transcript and write it to ``node_id``.

        Raises
        ------
        SessionLinkConflictError
            If ``node_id`` is linked to a different session.
        """
        node = self._read_present(node_id)
        _, link = parse_description(node.description)
        if link is not None and link.session_id != session_id:
            raise SessionLinkConflictError(node_id, link.session_id, session_id)
        summary = summarize(self._transcripts.read(session_id))
        return self.sync_description(node_id, summary)

    # ------------------------------------------------------------------
    # Discontinuity handling
    # ------------------------------------------------------------------

    def apply_discontinuity(self, report: DiscontinuityReport) -> Session | None:
        """Apply the configured policy to a discontinuity affecting a session.

        Missing or abandoned lineage roots always make the session
        non-resumable.  A rebased checkpoint follows ``rebase_policy``:
        ``MARK_NON_RESUMABLE`` marks the session, ``WARN`` records a warning
        and leaves it resumable.  Reports without a known session are
        ignored.

        Returns
        -------
        Session | None
            The updated session record, or None if no session was affected.
        """
        if report.session_id is None or not self.session_exists(report.session_id):
            return None
        session = self.get_session(report.session_id)
        message = str(report)

        root_lost = report.node_id == session.root_node_id and report.reason in (
            DiscontinuityReason.MISSING,
            DiscontinuityReason.ABANDONED,
        )
        if root_lost or (
            report.reason is DiscontinuityReason.REBASED
            and self.rebase_policy is RebasePolicy.MARK_NON_RESUMABLE
        ):
            if session.resumable:
                self._set_non_resumable(session, message)
            return session

        logger.warning("SessionManager: session %r: %s", session.session_id, message)
        if message not in session.warnings:
            session.warnings.append(message)
            self._save(session)
        return session

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def get_session(self, session_id: str) -> Session:
        """Load the record for ``session_id``.

        Raises
        ------
        SessionNotFoundError
            If no record exists.
        """
        return self._store.load(session_id)

    def session_exists(self, session_id: str) -> bool:
        return self._store.exists(session_id)

    def list_sessions(self) -> list[str]:
        return sorted(self._store.list())

    def session_for_node(self, node: ChangeNode) -> str | None:
        """Return the session id linked from ``node``, or None."""
        _, link = parse_description(node.description)
        return link.session_id if link is not None else None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _open_session(self, session: Session, node_id: str, parent_node_id: str | None) -> str:
        session.record_node(node_id, parent_node_id)
        self._save(session)
        self._transcripts.create(session.session_id)
        logger.debug("SessionManager: started session %r at node %r", session.session_id, node_id)
        return session.session_id

    def _link_node(self, node_id: str, summary: str, session_id: str) -> None:
        description = render_description(summary, SessionLink(session_id))
        try:
            self._graph.write_description(node_id, description)
        except AdapterError as exc:
            logger.warning(
                "SessionManager: node %r created but link to %r failed: %s",
                node_id,
                session_id,
                exc,
            )
            raise CheckpointLinkError(node_id, session_id) from exc
        logger.debug("SessionManager: linked node %r to session %r", node_id, session_id)

    def _read_present(self, node_id: str) -> ChangeNode:
        node = self._graph.read_node(node_id)
        if not node.is_present:
            raise NodeNotFoundError(node_id, abandoned=True)
        return node

    def _root_problem(self, session: Session) -> str:
        """Return why the session's root node is unusable, or "" if it is fine."""
        try:
            root = self._graph.read_node(session.root_node_id)
        except NodeNotFoundError as exc:
            return f"root node {session.root_node_id} {'abandoned' if exc.abandoned else 'missing'}"
        if not root.is_present:
            return f"root node {session.root_node_id} {root.existence_state.value}"
        return ""

    def _retire_lost_root(
        self, node_id: str, node: ChangeNode | None, *, abandoned: bool
    ) -> None:
        """Mark every session rooted at the lost ``node_id`` non-resumable."""
        if node is None:
            sessions = self._store.sessions_rooted_at(node_id)
        else:
            try:
                _, link = parse_description(node.description)
            except MalformedSessionLinkError:
                return
            if link is None:
                return
            try:
                session = self._store.load(link.session_id)
            except SessionNotFoundError:
                return
            sessions = [session] if session.root_node_id == node_id else []

        reason = f"root node {node_id} {'abandoned' if abandoned else 'missing'}"
        for session in sessions:
            if session.resumable:
                self._set_non_resumable(session, reason)

    def _set_non_resumable(self, session: Session, reason: str) -> None:
        session.resumable = False
        if reason and reason not in session.warnings:
            session.warnings.append(reason)
        self._save(session)
        logger.warning(
            "SessionManager: session %r marked non-resumable%s",
            session.session_id,
            f" ({reason})" if reason else "",
        )

    @staticmethod
    def _last_warning(session: Session) -> str:
        return session.warnings[-1] if session.warnings else ""

    def _save(self, session: Session) -> None:
        session.updated_at = datetime.now(timezone.utc)
        self._store.save(session)

    def __repr__(self) -> str:
        return f"SessionManager(graph={self._graph!r}, store={self._store!r})"


def _validate_summary(summary: str) -> None:
    """Reject summaries that would be mistaken for a session link."""
    render_description(summary, None)
