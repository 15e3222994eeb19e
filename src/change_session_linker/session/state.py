"""Session and transcript domain models.

All types are Pydantic BaseModel subclasses to enable runtime validation,
JSON serialisation, and schema versioning.

Classes
-------
- TranscriptEntry  — one ordered conversational turn
- LineageEntry     — one change node linked to a session
- Session          — the conversational lineage record
"""
from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from typing import ClassVar
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TranscriptEntry(BaseModel):
    """A single turn in a session transcript.

    Parameters
    ----------
    turn_index:
        Position of this turn in the session.  Strictly increasing and
        gapless per session, never reused across checkpoints.
    role:
        The message role: "user", "assistant", "system", or "tool".
    content:
        The raw text content of the turn.
    timestamp:
        When the turn was recorded (UTC).
    metadata:
        Arbitrary additional key-value data attached to the turn.
    """

    turn_index: int = Field(ge=0)
    role: str
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}


class LineageEntry(BaseModel):
    """Records that ``node_id`` was linked to a session on top of ``parent_node_id``.

    The recorded parent lets ancestor resolution tell a checkpoint that was
    moved off its lineage from an ordinary rebase of the lineage root.
    """

    node_id: str
    parent_node_id: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = {"frozen": True}


class Session(BaseModel):
    """A conversational lineage spanning one or more change nodes.

    Parameters
    ----------
    session_id:
        Identifier generated once and never changed.  Never equal to a
        change-node id.
    root_node_id:
        The change node where the session began.
    head_node_id:
        The most recent node linked to this session.
    resumable:
        False once the lineage is known to be dead (e.g. its root node was
        abandoned).  History is kept either way.
    lineage:
        Every node linked to this session, oldest first.
    warnings:
        Discontinuity warnings recorded against this session.
    created_at:
        Session creation timestamp (UTC).
    updated_at:
        Last modification timestamp (UTC).
    schema_version:
        Schema version string used for forward/backward compatibility.
    checksum:
        SHA-256 of the record's canonical JSON (excluding this field).
    """

    SCHEMA_VERSION: ClassVar[str] = "1.0"

    session_id: str = Field(default_factory=lambda: uuid4().hex)
    root_node_id: str
    head_node_id: str = ""
    resumable: bool = True
    lineage: list[LineageEntry] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    schema_version: str = "1.0"
    checksum: str = ""

    model_config = {"frozen": False}

    # ------------------------------------------------------------------
    # Lineage helpers
    # ------------------------------------------------------------------

    def record_node(self, node_id: str, parent_node_id: str | None) -> LineageEntry:
        """Append ``node_id`` to the lineage and make it the head."""
        entry = LineageEntry(node_id=node_id, parent_node_id=parent_node_id)
        self.lineage.append(entry)
        self.head_node_id = node_id
        return entry

    def lineage_node_ids(self) -> list[str]:
        return [entry.node_id for entry in self.lineage]

    def recorded_parent(self, node_id: str) -> str | None:
        """Return the parent ``node_id`` had when it was linked, or None if unknown."""
        for entry in self.lineage:
            if entry.node_id == node_id:
                return entry.parent_node_id
        return None

    # ------------------------------------------------------------------
    # Checksum
    # ------------------------------------------------------------------

    def _canonical_dict(self) -> dict[str, object]:
        data = self.model_dump(mode="json")
        data.pop("checksum", None)
        return data  # type: ignore[return-value]

    def compute_checksum(self) -> str:
        """Compute, store, and return the SHA-256 checksum of this record."""
        canonical_json = json.dumps(self._canonical_dict(), sort_keys=True)
        digest = hashlib.sha256(canonical_json.encode()).hexdigest()
        self.checksum = digest
        return digest

    def verify_checksum(self) -> bool:
        """Return True if the stored checksum matches the record's content."""
        canonical_json = json.dumps(self._canonical_dict(), sort_keys=True)
        return self.checksum == hashlib.sha256(canonical_json.encode()).hexdigest()

    @model_validator(mode="after")
    def _ensure_defaults(self) -> "Session":
        if not self.schema_version:
            self.schema_version = self.SCHEMA_VERSION
        if not self.head_node_id:
            self.head_node_id = self.root_node_id
        return self
