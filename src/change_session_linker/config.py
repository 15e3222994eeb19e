"""Configuration for change-session-linker.

Settings are resolved in three layers, later layers winning:

1. Defaults declared on ``LinkerConfig``.
2. A YAML file (``--config`` on the CLI, or ``load_config(path)``).
3. ``CHANGE_SESSION_LINKER_*`` environment variables, one per field,
   e.g. ``CHANGE_SESSION_LINKER_REBASE_POLICY=mark_non_resumable``.

Classes
-------
- RebasePolicy  — what to do with a session whose lineage was rebased away
- LinkerConfig  — validated settings

Functions
---------
- load_config  — build a ``LinkerConfig`` from file and environment
"""
from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field

ENV_PREFIX = "CHANGE_SESSION_LINKER_"


class RebasePolicy(str, Enum):
    """Handling of a session whose checkpoint was rebased onto an unrelated parent."""

    MARK_NON_RESUMABLE = "mark_non_resumable"
    WARN = "warn"


class LinkerConfig(BaseModel):
    """Validated settings.

    Parameters
    ----------
    session_root:
        Directory holding ``sessions/`` (records) and ``transcripts/``.
    storage:
        Session-record backend: ``filesystem``, ``sqlite`` or ``memory``.
    repo_path:
        Jujutsu repository path.  None means the current directory.
    jj_binary:
        Name or path of the ``jj`` executable.
    command_timeout:
        Seconds allowed for each ``jj`` call.
    rebase_policy:
        Applied by ``SessionManager.apply_discontinuity``.
    default_depth:
        Hops walked by ancestor queries that do not specify a depth.
    """

    session_root: Path = Field(default_factory=lambda: Path.home() / ".agent-sessions")
    storage: Literal["filesystem", "sqlite", "memory"] = "filesystem"
    repo_path: Path | None = None
    jj_binary: str = "jj"
    command_timeout: float = Field(default=30.0, gt=0)
    rebase_policy: RebasePolicy = RebasePolicy.WARN
    default_depth: int = Field(default=1, ge=1)

    model_config = {"frozen": True}

    @property
    def sessions_dir(self) -> Path:
        return self.session_root / "sessions"

    @property
    def transcripts_dir(self) -> Path:
        return self.session_root / "transcripts"

    @property
    def sqlite_path(self) -> Path:
        return self.session_root / "sessions.db"


def load_config(
    path: str | Path | None = None,
    environ: dict[str, str] | None = None,
    **overrides: object,
) -> LinkerConfig:
    """Build a ``LinkerConfig`` from an optional YAML file and the environment.

    Parameters
    ----------
    path:
        YAML file with top-level keys matching ``LinkerConfig`` fields.
        A missing file is an error; None skips the file layer.
    environ:
        Environment mapping; defaults to ``os.environ``.
    overrides:
        Highest-priority values (None values are ignored).

    Raises
    ------
    FileNotFoundError
        If ``path`` is given but does not exist.
    pydantic.ValidationError
        If a value fails validation.
    """
    data: dict[str, object] = {}
    if path is not None:
        raw = Path(path).read_text(encoding="utf-8")
        loaded = yaml.safe_load(raw) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file {path} must contain a mapping.")
        data.update(loaded)

    env = os.environ if environ is None else environ
    for name in LinkerConfig.model_fields:
        value = env.get(f"{ENV_PREFIX}{name.upper()}")
        if value is not None:
            data[name] = value

    data.update({key: value for key, value in overrides.items() if value is not None})
    return LinkerConfig.model_validate(data)
