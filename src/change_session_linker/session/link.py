"""Session-link encoding inside change-node descriptions.

A node's description is shared between a human-readable summary and a
machine-readable session link.  The link is written as a final trailer line
separated from the summary by a blank line::

    Add rate limiting to the API gateway

    Agent-Session-Id: 5f0c3e1a9b2d4c6e8f7a1b2c3d4e5f60

``parse_description`` and ``render_description`` are exact inverses, so the
summary can be rewritten freely without touching the link and vice versa.

Classes
-------
- SessionLink  — the structured link value

Functions
---------
- parse_description   — split a description into (summary, link)
- render_description  — join a summary and an optional link
- replace_summary     — rewrite the summary, preserving the link
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from change_session_linker.exceptions import MalformedSessionLinkError

TRAILER_KEY = "Agent-Session-Id"

_SESSION_ID_PATTERN = r"[A-Za-z0-9][A-Za-z0-9_-]{7,127}"
_SESSION_ID_RE = re.compile(rf"\A{_SESSION_ID_PATTERN}\Z")
# Fast path: the link alone in the last paragraph.
_TRAILER_RE = re.compile(rf"(?:\A|\n\n){re.escape(TRAILER_KEY)}: ({_SESSION_ID_PATTERN})\n?\Z")
_LINK_LINE_RE = re.compile(rf"\A{re.escape(TRAILER_KEY)}: ({_SESSION_ID_PATTERN})\Z")
_GIT_TRAILER_RE = re.compile(r"\A[A-Za-z][A-Za-z0-9-]*: \S")
_LOOSE_TRAILER_RE = re.compile(rf"^{re.escape(TRAILER_KEY)}\s*:", re.MULTILINE)


@dataclass(frozen=True)
class SessionLink:
    """The binding from a change node to a session.

    Parameters
    ----------
    session_id:
        Identifier of the linked session.

    Raises
    ------
    MalformedSessionLinkError
        If ``session_id`` contains characters that cannot round-trip
        through a description trailer.
    """

    session_id: str

    def __post_init__(self) -> None:
        if not _SESSION_ID_RE.match(self.session_id):
            raise MalformedSessionLinkError(
                f"Invalid session id for a link: {self.session_id!r}"
            )

    def to_trailer(self) -> str:
        return f"{TRAILER_KEY}: {self.session_id}"


def parse_description(description: str) -> tuple[str, SessionLink | None]:
    """Split ``description`` into its human-readable text and session link.

    The link is normally the last line of the description.  It is also
    found inside a final paragraph of git-style trailers, for example when
    a ``Signed-off-by:`` line was added after it; the other trailers then
    stay in the summary.

    Parameters
    ----------
    description:
        Full node description as read from the change graph.

    Returns
    -------
    tuple[str, SessionLink | None]
        The summary text and the link, or None when the description
        carries no link.

    Raises
    ------
    MalformedSessionLinkError
        If a line starting with the trailer key is present but is not a
        well-formed trailer, or appears more than once.
    """
    match = _TRAILER_RE.search(description)
    if match is not None:
        summary, link = description[: match.start()], SessionLink(match.group(1))
    else:
        summary, link = _split_trailer_block(description)
    if _LOOSE_TRAILER_RE.search(summary):
        problem = "a malformed" if link is None else "more than one"
        raise MalformedSessionLinkError(f"Description contains {problem} {TRAILER_KEY} trailer.")
    return summary, link


def _split_trailer_block(description: str) -> tuple[str, SessionLink | None]:
    """Pull the link out of a final paragraph made only of trailer lines."""
    body = description[:-1] if description.endswith("\n") else description
    cut = body.rfind("\n\n")
    start = 0 if cut < 0 else cut + 2
    lines = body[start:].split("\n")
    if not all(_GIT_TRAILER_RE.match(line) for line in lines):
        return description, None
    for position, line in enumerate(lines):
        match = _LINK_LINE_RE.match(line)
        if match is not None:
            kept = lines[:position] + lines[position + 1 :]
            summary = description[:start] + "\n".join(kept) + description[len(body) :]
            return summary, SessionLink(match.group(1))
    return description, None


def render_description(summary: str, link: SessionLink | None) -> str:
    """Join ``summary`` and ``link`` into a single description.

    Raises
    ------
    MalformedSessionLinkError
        If ``summary`` itself contains a trailer line, which would make the
        result ambiguous.
    """
    if _LOOSE_TRAILER_RE.search(summary):
        raise MalformedSessionLinkError(
            f"Summary text must not contain a {TRAILER_KEY} line."
        )
    if link is None:
        return summary
    if not summary:
        return f"{link.to_trailer()}\n"
    return f"{summary}\n\n{link.to_trailer()}\n"


def replace_summary(description: str, summary: str) -> str:
    """Return ``description`` with its summary replaced and its link kept."""
    _, link = parse_description(description)
    return render_description(summary, link)
