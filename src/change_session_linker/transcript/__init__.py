"""Transcript store subpackage.

Public surface
--------------
- TranscriptStore          — abstract base class
- TranscriptView           — lazy, restartable view over entries
- InMemoryTranscriptStore  — dict-backed store (useful for testing)
- JsonlTranscriptStore     — one JSON-lines file per session
"""
from __future__ import annotations

from change_session_linker.transcript.base import TranscriptStore, TranscriptView
from change_session_linker.transcript.jsonl import JsonlTranscriptStore
from change_session_linker.transcript.memory import InMemoryTranscriptStore

__all__ = [
    "InMemoryTranscriptStore",
    "JsonlTranscriptStore",
    "TranscriptStore",
    "TranscriptView",
]
