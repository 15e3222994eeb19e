"""Ancestor-context resolution.

Walks a change node's ancestors and collects description, diff and
transcript slices from the sessions linked along the way.  Nothing about
the graph shape is cached: every hop is re-read and re-validated, and any
hop that cannot be trusted ends the walk with a ``DiscontinuityReport``
instead of a partially filled result.

Classes
-------
- AncestorResolver  — serve cross-session context queries
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from change_session_linker.exceptions import (
    MalformedSessionLinkError,
    NodeNotFoundError,
    SessionNotFoundError,
)
from change_session_linker.graph.base import ChangeNode, ExistenceState
from change_session_linker.resolver.models import (
    AncestorContext,
    AncestorHop,
    ContextField,
    DiscontinuityReason,
    DiscontinuityReport,
    TranscriptFilter,
)
from change_session_linker.session.link import parse_description
from change_session_linker.session.state import Session, TranscriptEntry

if TYPE_CHECKING:
    from change_session_linker.session.manager import SessionManager

logger = logging.getLogger(__name__)

DEFAULT_INCLUDE: frozenset[ContextField] = frozenset({ContextField.DESCRIPTION})

class _Discontinuity(Exception):
    """Internal signal carrying a report out of a nested check."""

    def __init__(self, report: DiscontinuityReport) -> None:
        super().__init__(str(report))
        self.report = report

class AncestorResolver:
    """Resolve context from the ancestors of a change node.

    Parameters
    ----------
    manager:
        Session manager providing the change graph, session records and
        transcripts.
    default_depth:
        Hops walked when ``query_ancestor`` is called without ``depth``.
    """

    def __init__(self, manager: SessionManager, default_depth: int = 1) -> None:
        if default_depth < 1:
            raise ValueError(f"default_depth must be >= 1, got {default_depth!r}.")
        self._manager = manager
        self._graph = manager.graph
        self._transcripts = manager.transcripts
        self.default_depth = default_depth

    def query_ancestor(
        self,
        from_node_id: str,
        depth: int | None = None,
        include: frozenset[ContextField] | set[ContextField] | None = None,
        transcript_filter: TranscriptFilter | None = None,
    ) -> AncestorContext | DiscontinuityReport:
        """Walk up to ``depth`` ancestors of ``from_node_id`` and gather context.

        Parameters
        ----------
        from_node_id:
            The node whose ancestors to inspect.  Not itself included.
        depth:
            Maximum number of hops; defaults to ``default_depth``.
        include:
            Which slices to collect for each linked ancestor.  Defaults to
            the description only.
        transcript_filter:
            Narrows the transcript slice when ``TRANSCRIPT`` is included.

        Returns
        -------
        AncestorContext | DiscontinuityReport
            The gathered context, or a report naming the hop and reason at
            which the chain stopped being trustworthy.

        Raises
        ------
        AdapterUnavailableError
            If the change graph could not be reached.  Transient; the whole
            query may be retried.
        ValueError
            If ``depth < 1``.
        """
        depth = self.default_depth if depth is None else depth
        if depth < 1:
            raise ValueError(f"depth must be >= 1, got {depth!r}.")
        fields = frozenset(include) if include is not None else DEFAULT_INCLUDE

        try:
            return self._walk(from_node_id, depth, fields, transcript_filter)
        except _Discontinuity as signal:
            logger.warning("AncestorResolver: %s", signal.report)
            return signal.report

    # ------------------------------------------------------------------
    # Walk
    # ------------------------------------------------------------------

    def _walk(
        self,
        from_node_id: str,
        depth: int,
        fields: frozenset[ContextField],
        transcript_filter: TranscriptFilter | None,
    ) -> AncestorContext:
        previous = self._read(from_node_id, from_node_id, hop=0)
        previous_session = self._linked_session(from_node_id, previous, hop=0)
        self._check_lineage(from_node_id, previous, previous_session, hop=0)

        try:
            ancestor_ids = self._graph.list_ancestors(from_node_id, depth)
        except NodeNotFoundError as exc:
            hop, missing = self._locate_break(previous, exc, depth)
            raise self._report(from_node_id, hop, missing.node_id, missing) from exc

        context = AncestorContext(
            from_node_id=from_node_id,
            depth=depth,
            exhausted=len(ancestor_ids) < depth,
        )
        for distance, node_id in enumerate(ancestor_ids, start=1):
            if previous.parent_node_id != node_id:
                raise _Discontinuity(
                    DiscontinuityReport(
                        from_node_id=from_node_id,
                        hop=distance,
                        node_id=node_id,
                        reason=DiscontinuityReason.REBASED,
                        detail=(
                            f"{previous.node_id} now has parent {previous.parent_node_id}, "
                            f"not {node_id}"
                        ),
                        session_id=previous_session.session_id if previous_session else None,
                    )
                )
            node = self._read(from_node_id, node_id, hop=distance)
            session = self._linked_session(from_node_id, node, hop=distance)
            self._check_lineage(from_node_id, node, session, hop=distance)

            if session is None:
                context.skipped_node_ids.append(node_id)
            else:
                context.hops.append(
                    self._collect(node, distance, session, fields, transcript_filter)
                )
            previous, previous_session = node, session

        logger.debug(
            "AncestorResolver: %r resolved %d linked hop(s), skipped %d",
            from_node_id,
            len(context.hops),
            len(context.skipped_node_ids),
        )
        return context

    def _locate_break(
        self,
        start: ChangeNode,
        exc: NodeNotFoundError,
        depth: int,
    ) -> tuple[int, NodeNotFoundError]:
        """Find the hop at which ``list_ancestors`` lost the chain.

        Follows parent pointers from ``start`` until the node named by
        ``exc``, or the first node that cannot be read, is reached.
        """
        if exc.node_id == start.node_id:
            return 0, exc
        node = start
        for distance in range(1, depth + 1):
            parent = node.parent_node_id
            if parent is None or parent == exc.node_id:
                return distance, exc
            try:
                node = self._graph.read_node(parent)
            except NodeNotFoundError as missing:
                return distance, missing
        return depth, exc

    def _collect(
        self,
        node: ChangeNode,
        distance: int,
        session: Session,
        fields: frozenset[ContextField],
        transcript_filter: TranscriptFilter | None,
    ) -> AncestorHop:
        hop = AncestorHop(node_id=node.node_id, distance=distance, session_id=session.session_id)
        if ContextField.DESCRIPTION in fields:
            hop.description, _ = parse_description(node.description)
        if ContextField.DIFF in fields:
            hop.diff = self._graph.diff(node.node_id)
        if ContextField.TRANSCRIPT in fields:
            hop.transcript = self._transcript_slice(session.session_id, transcript_filter)
        return hop

    def _transcript_slice(
        self,
        session_id: str,
        transcript_filter: TranscriptFilter | None,
    ) -> list[TranscriptEntry]:
        if not self._transcripts.exists(session_id):
            return []
        if transcript_filter is None:
            return self._transcripts.read(session_id).to_list()
        view = self._transcripts.read(session_id, transcript_filter.start, transcript_filter.end)
        entries = [entry for entry in view if transcript_filter.matches(entry)]
        if transcript_filter.last_n is not None:
            entries = entries[-transcript_filter.last_n :]
        return entries

    # ------------------------------------------------------------------
    # Per-hop validation
    # ------------------------------------------------------------------

    def _read(self, from_node_id: str, node_id: str, hop: int) -> ChangeNode:
        try:
            node = self._graph.read_node(node_id)
        except NodeNotFoundError as exc:
            raise self._report(from_node_id, hop, node_id, exc) from exc
        if node.existence_state is ExistenceState.ABANDONED:
            raise _Discontinuity(
                DiscontinuityReport(
                    from_node_id=from_node_id,
                    hop=hop,
                    node_id=node_id,
                    reason=DiscontinuityReason.ABANDONED,
                    detail="node was abandoned",
                    session_id=self._session_id_of(node),
                )
            )
        if node.existence_state is ExistenceState.UNKNOWN:
            raise _Discontinuity(
                DiscontinuityReport(
                    from_node_id=from_node_id,
                    hop=hop,
                    node_id=node_id,
                    reason=DiscontinuityReason.MISSING,
                    detail="node existence could not be confirmed",
                    session_id=self._session_id_of(node),
                )
            )
        return node

    def _linked_session(self, from_node_id: str, node: ChangeNode, hop: int) -> Session | None:
        try:
            _, link = parse_description(node.description)
        except MalformedSessionLinkError as exc:
            raise _Discontinuity(
                DiscontinuityReport(
                    from_node_id=from_node_id,
                    hop=hop,
                    node_id=node.node_id,
                    reason=DiscontinuityReason.MALFORMED_LINK,
                    detail=str(exc),
                )
            ) from None
        if link is None:
            return None
        session_id = link.session_id
        try:
            return self._manager.get_session(session_id)
        except SessionNotFoundError:
            raise _Discontinuity(
                DiscontinuityReport(
                    from_node_id=from_node_id,
                    hop=hop,
                    node_id=node.node_id,
                    reason=DiscontinuityReason.SESSION_MISSING,
                    detail=f"linked session {session_id} has no record",
                    session_id=session_id,
                )
            ) from None

    def _check_lineage(
        self,
        from_node_id: str,
        node: ChangeNode,
        session: Session | None,
        hop: int,
    ) -> None:
        """Fail if ``node`` was moved off the parent it was linked on.

        A recorded parent that is missing or abandoned always fails,
        whichever session it belonged to.  A parent that still exists only
        fails when it is part of the same session, so a rebase of the
        lineage root onto new upstream work is not a discontinuity.
        """
        if session is None:
            return
        recorded = session.recorded_parent(node.node_id)
        if recorded is None or recorded == node.parent_node_id:
            return

        try:
            recorded_node = self._graph.read_node(recorded)
        except NodeNotFoundError as exc:
            reason = DiscontinuityReason.ABANDONED if exc.abandoned else DiscontinuityReason.MISSING
            detail = f"recorded parent {recorded} of {node.node_id} is gone"
        else:
            if recorded_node.is_present:
                if recorded not in session.lineage_node_ids():
                    return
                raise _Discontinuity(
                    DiscontinuityReport(
                        from_node_id=from_node_id,
                        hop=hop,
                        node_id=node.node_id,
                        reason=DiscontinuityReason.REBASED,
                        detail=(
                            f"{node.node_id} was checkpointed on {recorded} but now has "
                            f"parent {node.parent_node_id}"
                        ),
                        session_id=session.session_id,
                    )
                )
            reason = (
                DiscontinuityReason.ABANDONED
                if recorded_node.existence_state is ExistenceState.ABANDONED
                else DiscontinuityReason.MISSING
            )
            detail = f"recorded parent {recorded} of {node.node_id} was {reason.value}"

        raise _Discontinuity(
            DiscontinuityReport(
                from_node_id=from_node_id,
                hop=hop,
                node_id=recorded,
                reason=reason,
                detail=detail,
                session_id=session.session_id,
            )
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _session_id_of(node: ChangeNode) -> str | None:
        try:
            _, link = parse_description(node.description)
        except MalformedSessionLinkError:
            return None
        return link.session_id if link is not None else None

    @staticmethod
    def _report(
        from_node_id: str,
        hop: int,
        node_id: str,
        exc: NodeNotFoundError,
    ) -> _Discontinuity:
        return _Discontinuity(
            DiscontinuityReport(
                from_node_id=from_node_id,
                hop=hop,
                node_id=node_id,
                reason=(
                    DiscontinuityReason.ABANDONED if exc.abandoned else DiscontinuityReason.MISSING
                ),
                detail=str(exc),
            )
        )

    def __repr__(self) -> str:
        return f"AncestorResolver(default_depth={self.default_depth})"
