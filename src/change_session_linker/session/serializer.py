"""Session record serialization with schema versioning.

Records are stored as JSON.  The schema version is embedded in every
serialised document so that future readers can perform migrations.

Classes
-------
- SchemaVersionError  — unsupported ``schema_version`` on load
- SessionSerializer   — serialize/deserialize ``Session`` to JSON
"""
from __future__ import annotations

import json

from change_session_linker.exceptions import ChangeSessionLinkerError
from change_session_linker.session.state import Session

_SUPPORTED_SCHEMA_VERSIONS: frozenset[str] = frozenset({"1.0"})


class SchemaVersionError(ChangeSessionLinkerError, ValueError):
    """Raised when a serialised document uses an unsupported schema version."""

    def __init__(self, version: str) -> None:
        self.version = version
        supported = ", ".join(sorted(_SUPPORTED_SCHEMA_VERSIONS))
        super().__init__(
            f"Unsupported schema version {version!r}. "
            f"Supported versions: {supported}"
        )


class SessionSerializer:
    """Serialize and deserialize ``Session`` records.

    Parameters
    ----------
    validate_checksum:
        When True (default), loading verifies the embedded SHA-256 checksum
        and raises ``ValueError`` on mismatch.
    """

    def __init__(self, validate_checksum: bool = True) -> None:
        self.validate_checksum = validate_checksum

    def to_json(self, session: Session, *, indent: int = 2) -> str:
        """Serialise ``session`` to JSON, embedding a fresh checksum."""
        session.compute_checksum()
        return json.dumps(session.model_dump(mode="json"), indent=indent, default=str)

    def from_json(self, raw: str) -> Session:
        """Deserialize a ``Session`` from a JSON string.

        Raises
        ------
        SchemaVersionError
            If the ``schema_version`` field is not in the supported set.
        ValueError
            If ``validate_checksum`` is True and the checksum does not match.
        """
        return self._deserialize(json.loads(raw))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _deserialize(self, data: dict[str, object]) -> Session:
        version = str(data.get("schema_version", ""))
        if version not in _SUPPORTED_SCHEMA_VERSIONS:
            raise SchemaVersionError(version)

        session = Session.model_validate(data)

        if self.validate_checksum and session.checksum and not session.verify_checksum():
            raise ValueError(
                f"Checksum mismatch for session {session.session_id!r}: "
                f"stored={session.checksum!r}"
            )
        return session
