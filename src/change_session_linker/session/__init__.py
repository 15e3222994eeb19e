"""Session subpackage.

Provides the session and transcript domain models, the session-link codec
embedded in change-node descriptions, and record serialization.
``SessionManager`` lives in ``change_session_linker.session.manager`` and is
re-exported from the top-level package.

Public surface
--------------
- Session            — the conversational lineage record
- LineageEntry       — one change node linked to a session
- TranscriptEntry    — one ordered conversational turn
- SessionLink        — structured link value
- parse_description  — split a description into (summary, link)
- render_description — join a summary and a link
- SessionSerializer  — JSON/YAML round-trip with schema versioning
"""
from __future__ import annotations

from change_session_linker.session.link import (
    SessionLink,
    parse_description,
    render_description,
    replace_summary,
)
from change_session_linker.session.serializer import SchemaVersionError, SessionSerializer
from change_session_linker.session.state import LineageEntry, Session, TranscriptEntry

__all__ = [
    "LineageEntry",
    "SchemaVersionError",
    "Session",
    "SessionLink",
    "SessionSerializer",
    "TranscriptEntry",
    "parse_description",
    "render_description",
    "replace_summary",
]
