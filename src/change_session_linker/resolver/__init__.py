"""Ancestor-context resolution subpackage.

Public surface
--------------
- AncestorResolver     — walk ancestors and gather context
- AncestorContext      — successful result
- AncestorHop          — context from one linked ancestor
- ContextField         — enum: DESCRIPTION, DIFF, TRANSCRIPT
- DiscontinuityReason  — enum: MISSING, ABANDONED, REBASED, SESSION_MISSING, MALFORMED_LINK
- DiscontinuityReport  — "chain could not be trusted" result
- TranscriptFilter     — narrows transcript slices
"""
from __future__ import annotations

from change_session_linker.resolver.models import (
    AncestorContext,
    AncestorHop,
    ContextField,
    DiscontinuityReason,
    DiscontinuityReport,
    TranscriptFilter,
)
from change_session_linker.resolver.ancestor import AncestorResolver

__all__ = [
    "AncestorContext",
    "AncestorHop",
    "AncestorResolver",
    "ContextField",
    "DiscontinuityReason",
    "DiscontinuityReport",
    "TranscriptFilter",
]
