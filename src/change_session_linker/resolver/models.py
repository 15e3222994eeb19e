"""Result types for ancestor-context resolution.

Classes
-------
- ContextField          — enum of the slices a caller can request
- TranscriptFilter      — narrows the transcript slice of each hop
- AncestorHop           — context resolved from one linked ancestor
- AncestorContext       — successful resolution result
- DiscontinuityReason   — why a walk could not be trusted
- DiscontinuityReport   — first-class "could not fully resolve" result
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, model_validator

from change_session_linker.session.state import TranscriptEntry


class ContextField(str, Enum):
    """A slice of ancestor context."""

    DESCRIPTION = "description"
    DIFF = "diff"
    TRANSCRIPT = "transcript"


class TranscriptFilter(BaseModel):
    """Selects which turns of an ancestor's transcript are returned.

    Parameters
    ----------
    start, end:
        ``[start, end)`` bounds on ``turn_index``.
    query:
        Case-insensitive substring that ``content`` must contain.
    role:
        Only turns with this role.
    last_n:
        Keep only the last ``last_n`` turns after the other filters.
    """

    start: int | None = Field(default=None, ge=0)
    end: int | None = Field(default=None, ge=0)
    query: str | None = None
    role: str | None = None
    last_n: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _check_bounds(self) -> "TranscriptFilter":
        if self.start is not None and self.end is not None and self.end < self.start:
            raise ValueError(f"end ({self.end}) must be >= start ({self.start}).")
        return self

    def matches(self, entry: TranscriptEntry) -> bool:
        if self.start is not None and entry.turn_index < self.start:
            return False
        if self.end is not None and entry.turn_index >= self.end:
            return False
        if self.role is not None and entry.role != self.role:
            return False
        return self.query is None or self.query.lower() in entry.content.lower()


class AncestorHop(BaseModel):
    """Context gathered from one session-linked ancestor.

    Only the fields the caller asked for are populated; the others stay
    None.
    """

    node_id: str
    distance: int
    session_id: str
    description: str | None = None
    diff: str | None = None
    transcript: list[TranscriptEntry] | None = None


class AncestorContext(BaseModel):
    """Successful result of ``AncestorResolver.query_ancestor``.

    Parameters
    ----------
    from_node_id:
        Node the walk started from.
    depth:
        Number of hops requested.
    hops:
        Linked ancestors, closest first.
    skipped_node_ids:
        Ancestors without a session link that were walked past.
    exhausted:
        True when the graph root was reached before ``depth`` hops.
    """

    from_node_id: str
    depth: int
    hops: list[AncestorHop] = Field(default_factory=list)
    skipped_node_ids: list[str] = Field(default_factory=list)
    exhausted: bool = False

    def descriptions(self) -> dict[str, str]:
        """Map node id to description for every hop that carries one."""
        return {hop.node_id: hop.description for hop in self.hops if hop.description is not None}

    def nearest(self) -> AncestorHop | None:
        return self.hops[0] if self.hops else None


class DiscontinuityReason(str, Enum):
    """Why a walk stopped."""

    MISSING = "missing"
    ABANDONED = "abandoned"
    REBASED = "rebased"
    SESSION_MISSING = "session_missing"
    MALFORMED_LINK = "malformed_link"


class DiscontinuityReport(BaseModel):
    """The ancestor chain could not be trusted past ``hop``.

    This is a result, not an error: callers decide whether to continue with
    no ancestor context, inform the user, or start a fresh session.

    Parameters
    ----------
    from_node_id:
        Node the walk started from.
    hop:
        Distance from ``from_node_id`` where the walk stopped (0 means the
        starting node itself).
    node_id:
        The node at which the discontinuity was detected.
    reason:
        What went wrong.
    detail:
        Human-readable explanation.
    session_id:
        The session whose lineage is affected, when known.
    """

    from_node_id: str
    hop: int
    node_id: str
    reason: DiscontinuityReason
    detail: str = ""
    session_id: str | None = None

    def __str__(self) -> str:
        return (
            f"discontinuity at hop {self.hop} ({self.node_id}): "
            f"{self.reason.value}{' - ' + self.detail if self.detail else ''}"
        )
