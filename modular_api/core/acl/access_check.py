"""ACL pattern evaluation for interception checks.

Session permissions are dot-separated ACL patterns such as
``navigator.connections.read``. Required permissions are matched against them
locally with these rules:

- ``*`` matches exactly one segment, ``#`` matches any number of segments
- a leading ``!`` negates a pattern; negations win over grants
- ``me`` and ``my_session`` segments stand for the caller's user and session id
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

__all__ = ["AccessCheck", "ReservedWord", "get_cached_access_check"]


def get_cached_access_check(
    user_id: str | None, session_id: str | None, acl: Iterable[str]
) -> AccessCheck:
    """Return a cached AccessCheck for the given grants.

    Example:
        >>> checker = get_cached_access_check("u1", "s1", ["sessions.my_session.#"])
        >>> checker.matches_required_access("sessions.s1.connections.read")
        True
    """
    return _get_cached_access_check(user_id or "", session_id or "", tuple(sorted(acl)))


@dataclass(frozen=True)
class ReservedWord:
    """Segment placeholder substituted with a caller-specific value."""

    word: str
    value: str

    def replace(self, segment: str) -> str:
        if segment != self.word or not self.value:
            return segment
        return f"({self.word}|{re.escape(self.value)})"


@lru_cache(maxsize=2048)
def _compile_acl_pattern(access: str, user_id: str, session_id: str) -> re.Pattern[str]:
    segments = []
    reserved = (ReservedWord("me", user_id), ReservedWord("my_session", session_id))
    for segment in access.split("."):
        if segment == "#":
            segments.append(".*?")
            continue
        piece = re.escape(segment).replace("\\*", "[^.]*?")
        for word in reserved:
            piece = word.replace(piece)
        segments.append(piece)
    return re.compile("^" + "\\.".join(segments) + "$")


@lru_cache(maxsize=512)
def _get_cached_access_check(
    user_id: str, session_id: str, acl_tuple: tuple[str, ...]
) -> AccessCheck:
    return AccessCheck(user_id, session_id, acl_tuple)


class AccessCheck:
    """ACL matcher with wildcard and negation support.

    Example:
        >>> checker = AccessCheck("u1", "s1", ["connections.*.read", "!connections.admin.*"])
        >>> checker.matches_required_access("connections.pg.read")
        True
        >>> checker.matches_required_access("connections.admin.read")
        False
    """

    def __init__(self, user_id: str | None, session_id: str | None, acl: Iterable[str]) -> None:
        self.user_id = user_id or ""
        self.session_id = session_id or ""
        entries = list(acl)
        self._positive = [
            _compile_acl_pattern(entry, self.user_id, self.session_id)
            for entry in entries
            if not entry.startswith("!")
        ]
        self._negative = [
            _compile_acl_pattern(entry[1:], self.user_id, self.session_id)
            for entry in entries
            if entry.startswith("!")
        ]

    def matches_required_access(self, required_access: str | None) -> bool:
        """Check whether the grants cover ``required_access``.

        ``None`` is always granted. Negations are evaluated first.
        """
        if required_access is None:
            return True
        if any(pattern.match(required_access) for pattern in self._negative):
            return False
        return any(pattern.match(required_access) for pattern in self._positive)

    def matches_all(self, *required: str) -> bool:
        return all(self.matches_required_access(r) for r in required)

    def matches_any(self, *required: str) -> bool:
        return any(self.matches_required_access(r) for r in required)
