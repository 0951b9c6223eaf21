"""Reusable interception checks.

A check is any callable taking an InvocationRecord and returning a
CheckResult. Checks are synchronous and consult only the invocation and the
CallContext bound into the proxy; shared state (rate limit windows, audit
records) lives in caller-supplied objects that guard it with a lock.

Example:
    limiter = SlidingWindowRateLimiter(limit=100, window=60)
    checks = (
        LoggingCheck(),
        RequireSession(),
        RequirePermission("connections.#"),
        RateLimitCheck(limiter),
    )
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Literal, Protocol

from modular_api.core.acl import get_cached_access_check
from modular_api.core.exceptions import (
    PermissionDeniedError,
    RateLimitException,
    SessionNotFoundError,
    UnauthorizedException,
)
from modular_api.features.graphql.interception import Check, CheckResult, InvocationRecord

if TYPE_CHECKING:
    from modular_api.core.settings import GraphQLSettings

logger = logging.getLogger(__name__)

__all__ = [
    "AuditCheck",
    "AuditEntry",
    "AuditSink",
    "InMemoryAuditSink",
    "LoggingAuditSink",
    "LoggingCheck",
    "RateLimitCheck",
    "RequireAuthenticated",
    "RequirePermission",
    "RequireSession",
    "SlidingWindowRateLimiter",
]


def _session_of(invocation: InvocationRecord):
    if invocation.context is None:
        return None
    return invocation.context.session


class LoggingCheck:
    """Log every call that reaches this point of the chain. Never denies."""

    def __init__(self, level: int = logging.DEBUG, logger_: logging.Logger | None = None) -> None:
        self.level = level
        self.logger = logger_ or logger

    def __call__(self, invocation: InvocationRecord) -> CheckResult:
        if self.logger.isEnabledFor(self.level):
            session = _session_of(invocation)
            self.logger.log(
                self.level,
                "Service call %s.%s",
                invocation.module,
                invocation.operation,
                extra={
                    "service_module": invocation.module,
                    "operation": invocation.operation,
                    "session_id": session.id if session else None,
                    "correlation_id": (
                        invocation.context.correlation_id if invocation.context else None
                    ),
                },
            )
        return CheckResult.allow()


class RequireSession:
    """Deny calls made without a resolved session."""

    def __call__(self, invocation: InvocationRecord) -> CheckResult:
        if _session_of(invocation) is None:
            return CheckResult.deny(
                "Session required", error=lambda _: SessionNotFoundError()
            )
        return CheckResult.allow()


class RequireAuthenticated:
    """Deny calls from anonymous sessions."""

    def __call__(self, invocation: InvocationRecord) -> CheckResult:
        session = _session_of(invocation)
        if session is None or session.is_anonymous:
            return CheckResult.deny(
                "Authentication required", error=lambda _: UnauthorizedException()
            )
        return CheckResult.allow()


class RequirePermission:
    """Deny calls unless the session grants the required ACLs.

    Session permissions are ACL patterns (see modular_api.core.acl). By
    default every required ACL must match; ``any_of=True`` needs just one.

    Example:
        RequirePermission("connections.read", "connections.write", any_of=True)
    """

    def __init__(self, *acls: str, any_of: bool = False) -> None:
        if not acls:
            raise ValueError("RequirePermission needs at least one ACL")
        self.acls = acls
        self.any_of = any_of

    def __call__(self, invocation: InvocationRecord) -> CheckResult:
        session = _session_of(invocation)
        if session is not None:
            checker = get_cached_access_check(session.user_id, session.id, session.permissions)
            matcher = checker.matches_any if self.any_of else checker.matches_all
            if matcher(*self.acls):
                return CheckResult.allow()
        reason = f"Missing permission: {' or '.join(self.acls) if self.any_of else ', '.join(self.acls)}"
        return CheckResult.deny(
            reason,
            error=lambda inv: PermissionDeniedError(
                reason, module=inv.module, operation=inv.operation
            ),
        )


class SlidingWindowRateLimiter:
    """Thread-safe sliding window counter keyed by an arbitrary string."""

    def __init__(
        self,
        limit: int,
        window: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 1 or window <= 0:
            raise ValueError("limit must be >= 1 and window > 0")
        self.limit = limit
        self.window = window
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: dict[str, deque[float]] = {}

    @classmethod
    def from_settings(cls, settings: GraphQLSettings) -> SlidingWindowRateLimiter:
        return cls(limit=settings.default_rate_limit, window=settings.default_rate_window)

    def hit(self, key: str) -> tuple[bool, float]:
        """Record a call for ``key``.

        Returns:
            ``(allowed, retry_after)``; retry_after is 0 when allowed.
        """
        now = self._clock()
        with self._lock:
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= now - self.window:
                hits.popleft()
            if len(hits) >= self.limit:
                return False, hits[0] + self.window - now
            hits.append(now)
            return True, 0.0

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)


class RateLimitCheck:
    """Deny calls beyond the limiter's budget.

    ``per`` selects the bucket: the caller's session, its user (falling back
    to the session for anonymous callers), or one bucket per module.
    """

    def __init__(
        self,
        limiter: SlidingWindowRateLimiter,
        per: Literal["session", "user", "module"] = "session",
    ) -> None:
        self.limiter = limiter
        self.per = per

    def _key(self, invocation: InvocationRecord) -> str:
        session = _session_of(invocation)
        if self.per == "module" or session is None:
            identity = "*"
        elif self.per == "user" and session.user_id:
            identity = f"user:{session.user_id}"
        else:
            identity = f"session:{session.id}"
        return f"{invocation.module}:{identity}"

    def __call__(self, invocation: InvocationRecord) -> CheckResult:
        allowed, retry_after = self.limiter.hit(self._key(invocation))
        if allowed:
            return CheckResult.allow()
        limit, window = self.limiter.limit, self.limiter.window
        return CheckResult.deny(
            "Rate limit exceeded",
            error=lambda inv: RateLimitException(
                detail=f"Too many calls to {inv.module}.{inv.operation}",
                extra={
                    "retry_after": math.ceil(retry_after),
                    "limit": limit,
                    "window": window,
                },
            ),
        )


@dataclass(frozen=True, slots=True)
class AuditEntry:
    """One audited service call."""

    module: str
    operation: str
    session_id: str | None
    user_id: str | None
    allowed: bool
    reason: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class AuditSink(Protocol):
    def record(self, entry: AuditEntry) -> None: ...


class InMemoryAuditSink:
    """Bounded in-process audit trail."""

    def __init__(self, maxlen: int | None = 1000) -> None:
        self._lock = threading.Lock()
        self._entries: deque[AuditEntry] = deque(maxlen=maxlen)

    def record(self, entry: AuditEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    @property
    def entries(self) -> tuple[AuditEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class LoggingAuditSink:
    """Write audit entries to the ``modular_api.audit`` logger."""

    def __init__(self, logger_name: str = "modular_api.audit") -> None:
        self.logger = logging.getLogger(logger_name)

    def record(self, entry: AuditEntry) -> None:
        self.logger.info(
            "Audit %s.%s %s",
            entry.module,
            entry.operation,
            "allowed" if entry.allowed else "denied",
            extra={
                "audit_module": entry.module,
                "audit_operation": entry.operation,
                "session_id": entry.session_id,
                "user_id": entry.user_id,
                "allowed": entry.allowed,
                "reason": entry.reason,
            },
        )


class AuditCheck:
    """Record an AuditEntry for each call.

    With inner checks, AuditCheck evaluates them in order and records the
    outcome (allowed or the first denial with its reason) before passing it
    on. Without inner checks every call reaching it is recorded as allowed.

    Example:
        AuditCheck(sink, RequirePermission("admin.#"))
    """

    def __init__(self, sink: AuditSink, *checks: Check) -> None:
        self.sink = sink
        self.checks = checks

    def __call__(self, invocation: InvocationRecord) -> CheckResult:
        result = CheckResult.allow()
        for check in self.checks:
            result = check(invocation)
            if not result.allowed:
                break
        session = _session_of(invocation)
        self.sink.record(
            AuditEntry(
                module=invocation.module,
                operation=invocation.operation,
                session_id=session.id if session else None,
                user_id=session.user_id if session else None,
                allowed=result.allowed,
                reason=result.reason,
            )
        )
        return result
