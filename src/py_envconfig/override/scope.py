"""Override scopes — identity, storage and call-path tracking.

An *override scope* is a temporary set of ``NAME -> value`` pairs that
lookups consult before the real environment.  It lives exactly as long
as one ``override`` block (or one ``with_override`` callback).

Three pieces cooperate:

    **ScopeKey**: identifies one scope — the thread that opened it plus
    a process-unique serial.  Two sibling scopes opened from the same
    line of code, one after the other or on different threads, still
    get distinct keys.

    **ScopeRegistry**: the process-wide table of *live* scopes, keyed by
    ``ScopeKey``.  It is the only shared mutable state in the override
    machinery, so every insert, lookup and delete takes its lock.

    **Call path**: a ``ContextVar`` holding the tuple of keys for the
    scopes enclosing the current logical call, outermost first.  Context
    variables are private to each thread and are copied into asyncio
    tasks, so concurrent callers never see each other's scopes while
    nested scopes on one caller stack naturally.

Resolution reads the innermost key of the current call path and fetches
it from the registry.  If the key is no longer registered (a copied
context that outlived its scope), the lookup degrades to "not
overridden" and a warning is logged; it never raises.

Threads started inside a scope begin with an empty context and do not
see the override unless they are handed the scope (``scope.run``) or a
copied context (``contextvars.copy_context().run``).
"""

from __future__ import annotations

import contextvars
import itertools
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from py_envconfig.logging import LogLevel, audit_log


@dataclass(frozen=True)
class ScopeKey:
    """Identity of one override scope.

    Attributes:
        thread_id: ``threading.get_ident()`` of the opening thread.
        serial: Process-unique, monotonically increasing number.

    """

    thread_id: int
    serial: int

    def __str__(self) -> str:
        """Format as ``thread:serial``."""
        return f"{self.thread_id}:{self.serial}"


class OverrideScope:
    """Handle for one active set of overrides.

    The handle can be passed explicitly to ``lookup`` or used with
    ``run`` to carry the override into another thread.
    """

    def __init__(
        self,
        *,
        key: ScopeKey,
        values: Mapping[str, str],
        path: tuple[ScopeKey, ...],
        registry: ScopeRegistry,
    ) -> None:
        """Create a scope handle (use ``override`` rather than calling this).

        Args:
            key: This scope's identity.
            values: Override pairs (copied, then frozen).
            path: Keys of the enclosing scopes plus this one.
            registry: Registry that tracks whether the scope is live.

        """
        self._key = key
        self._values: Mapping[str, str] = MappingProxyType(dict(values))
        self._path = path
        self._registry = registry

    @property
    def key(self) -> ScopeKey:
        """Return the scope's identity."""
        return self._key

    @property
    def serial(self) -> int:
        """Return the scope's serial number."""
        return self._key.serial

    @property
    def values(self) -> Mapping[str, str]:
        """Return the read-only override mapping."""
        return self._values

    @property
    def path(self) -> tuple[ScopeKey, ...]:
        """Return the call path this scope installs, outermost first."""
        return self._path

    @property
    def depth(self) -> int:
        """Return the nesting depth (1 for an outermost scope)."""
        return len(self._path)

    @property
    def active(self) -> bool:
        """Return whether the scope is still registered."""
        return self._key in self._registry

    def get(self, name: str) -> tuple[str, bool]:
        """Return ``(value, found)`` for *name* in this scope's mapping only."""
        value = self._values.get(name)
        if value is None:
            return "", False
        return value, True

    def run(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Any:
        """Call *fn* with this scope installed as the current call path.

        Use this from a worker thread (or any foreign context) that must
        observe the override.  Once the scope has closed, lookups made
        by *fn* fall back to the real environment.
        """
        token = _call_path.set(self._path)
        try:
            return fn(*args, **kwargs)
        finally:
            _call_path.reset(token)

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        state = "active" if self.active else "closed"
        return f"OverrideScope({self._key}, {dict(self._values)!r}, {state})"


class ScopeRegistry:
    """Thread-safe table of live override scopes."""

    def __init__(self) -> None:
        """Create an empty registry."""
        self._lock = threading.Lock()
        self._scopes: dict[ScopeKey, OverrideScope] = {}
        self._serials = itertools.count(1)

    def new_key(self) -> ScopeKey:
        """Allocate a key for a scope opened by the calling thread."""
        with self._lock:
            serial = next(self._serials)
        return ScopeKey(thread_id=threading.get_ident(), serial=serial)

    def register(self, scope: OverrideScope) -> None:
        """Add *scope* to the table.

        Raises:
            ValueError: If a scope with the same key is already live.

        """
        with self._lock:
            if scope.key in self._scopes:
                msg = f"Override scope {scope.key} is already registered"
                raise ValueError(msg)
            self._scopes[scope.key] = scope

    def deregister(self, key: ScopeKey) -> bool:
        """Remove the scope for *key*.

        Returns:
            True if a scope was removed, False if none was registered.

        """
        with self._lock:
            return self._scopes.pop(key, None) is not None

    def get(self, key: ScopeKey) -> OverrideScope | None:
        """Return the live scope for *key*, or None."""
        with self._lock:
            return self._scopes.get(key)

    def keys(self) -> list[ScopeKey]:
        """Return the keys of all live scopes."""
        with self._lock:
            return list(self._scopes)

    def __contains__(self, key: object) -> bool:
        """Return whether *key* names a live scope."""
        with self._lock:
            return key in self._scopes

    def __len__(self) -> int:
        """Return the number of live scopes."""
        with self._lock:
            return len(self._scopes)


_registry = ScopeRegistry()
_call_path: contextvars.ContextVar[tuple[ScopeKey, ...]] = contextvars.ContextVar(
    "py_envconfig_call_path", default=()
)


def registry() -> ScopeRegistry:
    """Return the process-wide scope registry."""
    return _registry


def call_path() -> tuple[ScopeKey, ...]:
    """Return the scope keys enclosing the current logical call."""
    return _call_path.get()


def _unresolved(key: ScopeKey) -> None:
    audit_log.log(
        LogLevel.WARNING,
        f"override scope {key} is no longer registered; using the real environment",
        source="override",
        scope=key.serial,
    )


def current_scope() -> OverrideScope | None:
    """Return the innermost live scope on the current call path, or None."""
    path = _call_path.get()
    if not path:
        return None
    key = path[-1]
    scope = _registry.get(key)
    if scope is None:
        _unresolved(key)
    return scope


def resolve_scope(scope: OverrideScope | None = None) -> OverrideScope | None:
    """Return the scope a lookup should consult.

    An explicit handle wins over the implicit call path; a handle that
    has already closed resolves to None.
    """
    if scope is None:
        return current_scope()
    if not scope.active:
        _unresolved(scope.key)
        return None
    return scope


def current_override() -> tuple[dict[str, str], bool]:
    """Return ``(mapping, is_active)`` for the current call path."""
    scope = current_scope()
    if scope is None:
        return {}, False
    return dict(scope.values), True


def enter_scope(
    values: Mapping[str, str],
    *,
    inherit: bool = False,
) -> tuple[OverrideScope, contextvars.Token[tuple[ScopeKey, ...]]]:
    """Register a new scope and push it onto the current call path.

    Args:
        values: The override pairs.
        inherit: Start from the enclosing scope's mapping (if any) and
            apply *values* on top.  Otherwise the enclosing scope is not
            visible from inside the new one.

    Returns:
        The scope handle and the token needed by ``exit_scope``.

    """
    merged: dict[str, str] = {}
    if inherit:
        parent = current_scope()
        if parent is not None:
            merged.update(parent.values)
    merged.update(values)

    key = _registry.new_key()
    path = (*_call_path.get(), key)
    scope = OverrideScope(key=key, values=merged, path=path, registry=_registry)
    _registry.register(scope)
    token = _call_path.set(path)
    audit_log.log(
        LogLevel.DEBUG,
        f"entered scope {key} (depth {len(path)}, {len(merged)} overrides)",
        source="override",
        scope=key.serial,
    )
    return scope, token


def exit_scope(
    scope: OverrideScope,
    token: contextvars.Token[tuple[ScopeKey, ...]],
) -> None:
    """Pop *scope* from the call path and remove it from the registry."""
    try:
        _call_path.reset(token)
    finally:
        removed = _registry.deregister(scope.key)
        level = LogLevel.DEBUG if removed else LogLevel.ERROR
        message = f"left scope {scope.key}" if removed else f"scope {scope.key} was already removed"
        audit_log.log(level, message, source="override", scope=scope.serial)
