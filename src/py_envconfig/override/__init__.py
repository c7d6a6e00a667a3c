"""Override subsystem — scoped, concurrency-safe environment overrides.

Re-exports public symbols so callers can write::

    from py_envconfig.override import override, with_override, current_override
"""

from py_envconfig.override.controller import UsageError, override, with_override
from py_envconfig.override.scope import (
    OverrideScope,
    ScopeKey,
    ScopeRegistry,
    call_path,
    current_override,
    current_scope,
    registry,
    resolve_scope,
)

__all__ = [
    "OverrideScope",
    "ScopeKey",
    "ScopeRegistry",
    "UsageError",
    "call_path",
    "current_override",
    "current_scope",
    "override",
    "registry",
    "resolve_scope",
    "with_override",
]
