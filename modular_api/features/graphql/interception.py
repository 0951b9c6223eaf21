"""Interception of service module calls.

``wrap`` puts a module implementation behind a proxy that exposes exactly the
operations of the module's capability (a Protocol or ABC). Every call builds
an InvocationRecord and runs the configured checks in order; the first denial
raises and the implementation is never reached. Allowed calls are forwarded
with their arguments untouched and results or exceptions come back unchanged.
Capability properties are forwarded the same way, as zero-argument calls.

One proxy class is generated per capability with ``types.new_class`` and the
capability as a base, so ``isinstance(proxy, capability)`` holds. Proxies keep
only the target, the check tuple and the call context, all fixed at
construction, which makes them safe to share between tasks and threads.

Example:
    >>> proxy = wrap(NavigatorApi, NavigatorService(), [LoggingCheck(), RequireSession()],
    ...              module="navigator", context=call_context)
    >>> await proxy.list_nodes("/")
"""

from __future__ import annotations

import functools
import inspect
import logging
import threading
import types
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Generic, Protocol

from modular_api.core.exceptions import PermissionDeniedError

if TYPE_CHECKING:
    from modular_api.features.graphql.context import CallContext

logger = logging.getLogger(__name__)

__all__ = [
    "Check",
    "CheckResult",
    "InvocationRecord",
    "ServiceProxy",
    "capability_attributes",
    "capability_operations",
    "proxy_class_for",
    "wrap",
]

_SKIPPED_BASES = (object, Protocol, Generic)
_MISSING = object()


@dataclass(frozen=True, slots=True)
class InvocationRecord:
    """A single intercepted call, as seen by checks."""

    module: str
    operation: str
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)
    context: CallContext | None = None


@dataclass(frozen=True, slots=True)
class CheckResult:
    """Outcome of a check.

    ``error`` builds the exception raised on denial; it defaults to
    PermissionDeniedError carrying ``reason``.
    """

    allowed: bool
    reason: str | None = None
    error: Callable[[InvocationRecord], Exception] | None = None

    @classmethod
    def allow(cls) -> CheckResult:
        return _ALLOW

    @classmethod
    def deny(
        cls,
        reason: str,
        error: Callable[[InvocationRecord], Exception] | None = None,
    ) -> CheckResult:
        return cls(allowed=False, reason=reason, error=error)

    def to_exception(self, invocation: InvocationRecord) -> Exception:
        if self.error is not None:
            return self.error(invocation)
        return PermissionDeniedError(
            self.reason or "Permission denied",
            module=invocation.module,
            operation=invocation.operation,
        )


_ALLOW = CheckResult(allowed=True)

Check = Callable[[InvocationRecord], CheckResult]


def capability_operations(capability: type) -> dict[str, Callable[..., Any]]:
    """Return the public operations declared by a capability, by name."""
    operations: dict[str, Callable[..., Any]] = {}
    for klass in capability.__mro__:
        if klass in _SKIPPED_BASES:
            continue
        for name, value in vars(klass).items():
            if name.startswith("_") or name in operations:
                continue
            if isinstance(value, (staticmethod, classmethod)):
                value = value.__func__
            if inspect.isfunction(value):
                operations[name] = value
    return operations


def capability_attributes(capability: type) -> frozenset[str]:
    """Return the public properties declared by a capability."""
    names: set[str] = set()
    for klass in capability.__mro__:
        if klass in _SKIPPED_BASES:
            continue
        names.update(
            name
            for name, value in vars(klass).items()
            if not name.startswith("_") and isinstance(value, property)
        )
    return frozenset(names)


class ServiceProxy:
    """Base of all generated proxy classes."""

    __capability__: ClassVar[type]
    __operations__: ClassVar[frozenset[str]]
    __attributes__: ClassVar[frozenset[str]]

    def __init__(
        self,
        target: Any,
        checks: tuple[Check, ...],
        module: str,
        context: CallContext | None,
    ) -> None:
        object.__setattr__(self, "_proxy_target", target)
        object.__setattr__(self, "_proxy_checks", checks)
        object.__setattr__(self, "_proxy_module", module)
        object.__setattr__(self, "_proxy_context", context)

    def __getattr__(self, name: str) -> Any:
        raise AttributeError(
            f"'{name}' is not an operation of {self.__capability__.__name__}"
        )

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is read-only")

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} module={self._proxy_module!r} "
            f"checks={len(self._proxy_checks)}>"
        )

    def _intercept(self, operation: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        invocation = InvocationRecord(
            module=self._proxy_module,
            operation=operation,
            args=args,
            kwargs=kwargs,
            context=self._proxy_context,
        )
        for check in self._proxy_checks:
            result = check(invocation)
            if not result.allowed:
                logger.info(
                    "Call denied",
                    extra={
                        "service_module": self._proxy_module,
                        "operation": operation,
                        "check": type(check).__name__,
                        "reason": result.reason,
                    },
                )
                raise result.to_exception(invocation)
        return getattr(self._proxy_target, operation)


def _make_operation(name: str, declared: Callable[..., Any]) -> Callable[..., Any]:
    if inspect.iscoroutinefunction(declared):

        async def operation(self: ServiceProxy, *args: Any, **kwargs: Any) -> Any:
            return await self._intercept(name, args, kwargs)(*args, **kwargs)

    else:

        def operation(self: ServiceProxy, *args: Any, **kwargs: Any) -> Any:
            return self._intercept(name, args, kwargs)(*args, **kwargs)

    operation = functools.wraps(declared)(operation)
    # wraps copies __dict__, including an abstractmethod flag
    operation.__dict__.pop("__isabstractmethod__", None)
    return operation


def _make_attribute(name: str) -> property:
    def getter(self: ServiceProxy) -> Any:
        return self._intercept(name, (), {})

    getter.__name__ = name
    return property(getter)


_proxy_classes: dict[type, type[ServiceProxy]] = {}
_proxy_classes_lock = threading.Lock()


def proxy_class_for(capability: type) -> type[ServiceProxy]:
    """Return the proxy class for ``capability``, generating it on first use."""
    with _proxy_classes_lock:
        cls = _proxy_classes.get(capability)
        if cls is None:
            operations = capability_operations(capability)
            attributes = capability_attributes(capability).difference(operations)

            def populate(namespace: dict[str, Any]) -> None:
                namespace["__capability__"] = capability
                namespace["__operations__"] = frozenset(operations)
                namespace["__attributes__"] = attributes
                namespace["__module__"] = __name__
                for name, declared in operations.items():
                    namespace[name] = _make_operation(name, declared)
                for name in attributes:
                    namespace[name] = _make_attribute(name)

            cls = types.new_class(
                f"{capability.__name__}Proxy", (ServiceProxy, capability), exec_body=populate
            )
            _proxy_classes[capability] = cls
        return cls


def wrap(
    capability: type,
    implementation: Any,
    checks: Sequence[Check] = (),
    *,
    module: str | None = None,
    context: CallContext | None = None,
) -> Any:
    """Wrap ``implementation`` behind an intercepting proxy of ``capability``.

    Raises:
        TypeError: ``implementation`` lacks one of the capability's operations.
    """
    cls = proxy_class_for(capability)
    missing = sorted(
        [name for name in cls.__operations__ if not callable(getattr(implementation, name, None))]
        + [
            name
            for name in cls.__attributes__
            if inspect.getattr_static(implementation, name, _MISSING) is _MISSING
        ]
    )
    if missing:
        raise TypeError(
            f"{type(implementation).__name__} does not implement "
            f"{capability.__name__} operations: {', '.join(missing)}"
        )
    return cls(implementation, tuple(checks), module or capability.__name__, context)
