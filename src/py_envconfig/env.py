"""Environment store — the process-wide ``KEY=VALUE`` string mapping.

Every process has an environment: a set of string pairs inherited from
its parent.  Configuration is read from it, ``.env`` files are merged
into it, and override scopes are layered *on top of* it without ever
writing to it.

Key design properties:
    - **Strings only** — both keys and values are strings (no types).
    - **Defined vs empty** — ``lookup`` distinguishes a variable set to
      ``""`` from one that is not set at all.
    - **Pluggable backing mapping** — the default store wraps
      ``os.environ``; tests hand in a plain dict for isolation.
"""

import os
import threading
from collections.abc import MutableMapping


class Environment:
    """A key-value store for environment variables.

    Reads go straight to the backing mapping.  Writes are serialised by
    a lock so that concurrent ``load`` calls never interleave a
    check-then-set.
    """

    def __init__(self, store: MutableMapping[str, str] | None = None) -> None:
        """Create an environment over *store*.

        Args:
            store: Backing mapping (referenced, not copied).  Defaults
                to ``os.environ``.

        """
        self._store: MutableMapping[str, str] = os.environ if store is None else store
        self._lock = threading.Lock()

    def get(self, key: str, default: str | None = None) -> str | None:
        """Return the value for *key*, or *default* if not set."""
        return self._store.get(key, default)

    def lookup(self, key: str) -> tuple[str, bool]:
        """Return ``(value, exists)`` for *key*.

        A missing variable yields ``("", False)``.
        """
        value = self._store.get(key)
        if value is None:
            return "", False
        return value, True

    def exists(self, key: str) -> bool:
        """Return whether *key* is defined (possibly as an empty string)."""
        return key in self._store

    def set(self, key: str, value: str) -> None:
        """Set *key* to *value* (creates or overwrites)."""
        with self._lock:
            self._store[key] = value

    def set_default(self, key: str, value: str) -> bool:
        """Set *key* only if it is not already defined.

        Returns:
            True if the variable was written.

        """
        with self._lock:
            if key in self._store:
                return False
            self._store[key] = value
            return True

    def unset(self, key: str) -> None:
        """Remove *key* from the environment (no-op if absent)."""
        with self._lock:
            self._store.pop(key, None)

    def items(self) -> list[tuple[str, str]]:
        """Return all (key, value) pairs."""
        return list(self._store.items())

    def snapshot(self) -> dict[str, str]:
        """Return a plain-dict copy of the current variables."""
        return dict(self._store)

    def copy(self) -> "Environment":
        """Return an independent, dict-backed copy of this environment."""
        return Environment(store=self.snapshot())

    def __contains__(self, key: object) -> bool:
        """Return whether *key* is defined."""
        return key in self._store

    def __len__(self) -> int:
        """Return the number of variables."""
        return len(self._store)


_default = Environment()


def default_environment() -> Environment:
    """Return the shared store backed by ``os.environ``."""
    return _default
