"""ACL pattern evaluation used by permission checks.

Pattern Syntax:
    - Dot-separated segments: "module.resource.action"
    - Single wildcard (*): matches one segment - "connections.*.read"
    - Recursive wildcard (#): matches any depth - "admin.#"
    - Negation (!): explicit deny - "!connections.admin.*"
    - Reserved words: me, my_session
"""

from __future__ import annotations

from .access_check import AccessCheck, ReservedWord, get_cached_access_check

__all__ = ["AccessCheck", "ReservedWord", "get_cached_access_check"]
