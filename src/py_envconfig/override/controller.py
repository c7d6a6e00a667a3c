"""Override controller — run code with temporarily overridden variables.

Two entry points share one implementation:

- ``override(*pairs)`` — a context manager that yields the scope handle.
- ``with_override(callback, *pairs)`` — calls *callback* inside such a
  block and returns its result.

Pairs are passed flat (``"NAME", "value", "OTHER", "value"``); the last
occurrence of a repeated name wins.  An odd count is a programming
mistake and raises ``UsageError`` before anything runs.

The real environment is never written.  The scope is registered just
before the body runs and removed exactly once when it exits, whether it
returned or raised; exceptions from the body propagate unchanged.

Typical usage::

    with_override(run_job, "DATABASE_URL", "sqlite://", "WORKERS", "1")

    with override("FEATURE_X", "true") as scope:
        config = parse_dataclass(AppConfig)
        pool.submit(scope.run, refresh, config)
"""

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from py_envconfig.override.scope import OverrideScope, enter_scope, exit_scope

_T = TypeVar("_T")


class UsageError(ValueError):
    """Raise when the override API is called with malformed arguments."""


def pairs_to_mapping(pairs: tuple[str, ...]) -> dict[str, str]:
    """Build the override mapping from flat name/value *pairs*.

    Raises:
        UsageError: If the count is odd or an item is not a string.

    """
    if len(pairs) % 2 != 0:
        msg = f"override requires an even number of arguments (name/value pairs), got {len(pairs)}"
        raise UsageError(msg)
    for item in pairs:
        if not isinstance(item, str):
            msg = f"override names and values must be strings, got {type(item).__name__}"
            raise UsageError(msg)
    return dict(zip(pairs[::2], pairs[1::2], strict=True))


@contextmanager
def override(*pairs: str, inherit: bool = False) -> Iterator[OverrideScope]:
    """Override environment variables for the duration of the block.

    Args:
        *pairs: Flat ``name, value`` sequence.
        inherit: Layer on top of the enclosing scope instead of hiding it.

    Yields:
        The scope handle, for explicit passing to ``lookup`` or ``run``.

    Raises:
        UsageError: If *pairs* is malformed (raised on entry).

    """
    values = pairs_to_mapping(pairs)
    scope, token = enter_scope(values, inherit=inherit)
    try:
        yield scope
    finally:
        exit_scope(scope, token)


def with_override(callback: Callable[[], _T], *pairs: str, inherit: bool = False) -> _T:
    """Call *callback* with the given variables overridden.

    Args:
        callback: Zero-argument callable run synchronously.
        *pairs: Flat ``name, value`` sequence.
        inherit: Layer on top of the enclosing scope instead of hiding it.

    Returns:
        Whatever *callback* returns.

    Raises:
        UsageError: If *pairs* is malformed; *callback* is not called.

    """
    with override(*pairs, inherit=inherit):
        return callback()
