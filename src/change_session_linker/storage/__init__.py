"""Session-record storage subpackage.

Public surface
--------------
- SessionStore            — abstract base class
- FilesystemSessionStore  — one JSON file per record
- SQLiteSessionStore      — rows in a local SQLite database
- InMemorySessionStore    — in-process dict (useful for testing)
"""
from __future__ import annotations

from change_session_linker.storage.base import SessionStore
from change_session_linker.storage.filesystem import FilesystemSessionStore
from change_session_linker.storage.memory import InMemorySessionStore
from change_session_linker.storage.sqlite import SQLiteSessionStore

__all__ = [
    "FilesystemSessionStore",
    "InMemorySessionStore",
    "SQLiteSessionStore",
    "SessionStore",
]
