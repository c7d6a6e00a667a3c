"""Env-file discovery and loading.

A ``.env`` file holds ``KEY=VALUE`` lines that seed the process
environment during development.  Loading happens in three steps:

1. **Discover** — starting from a directory (the working directory by
   default), look for the file there and then in each parent until it
   is found or the filesystem root is reached.
2. **Read** — parse the file with python-dotenv, which understands
   quoting, ``export`` prefixes, comments and ``${VAR}`` interpolation.
3. **Merge** — write the pairs into the environment store.

Merge policy:
    - Outside any override scope the file *wins*: existing variables
      are overwritten, so the file is the source of truth.
    - Inside an override scope only variables that are not yet defined
      are written, so loading from a callback never clobbers values
      that unrelated call paths depend on.
    - An explicit ``overwrite`` argument bypasses both defaults.

A missing file is not an error; an unreadable one raises
``EnvFileError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from dotenv import dotenv_values

from py_envconfig.env import Environment, default_environment
from py_envconfig.logging import LogLevel, audit_log
from py_envconfig.override.scope import OverrideScope, resolve_scope

DEFAULT_FILENAME = ".env"


class EnvFileError(OSError):
    """Raise when an env file exists but cannot be read or decoded."""


@dataclass(frozen=True)
class LoaderOptions:
    """How env files are found and read.

    Attributes:
        filename: Name of the file searched for in each directory.
        encoding: Text encoding of the file.
        interpolate: Expand ``${VAR}`` references while reading.

    """

    filename: str = DEFAULT_FILENAME
    encoding: str = "utf-8"
    interpolate: bool = True


def find_env_file(
    start_dir: Path | str | None = None,
    *,
    filename: str = DEFAULT_FILENAME,
) -> Path | None:
    """Search *start_dir* and its parents for *filename*.

    Args:
        start_dir: Directory to start from; the working directory if None.
        filename: Name of the env file.

    Returns:
        The path of the first file found, or None at the filesystem root.

    """
    current = (Path.cwd() if start_dir is None else Path(start_dir)).resolve()
    while True:
        candidate = current / filename
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def read_env_file(
    path: Path | str,
    *,
    encoding: str = "utf-8",
    interpolate: bool = True,
) -> dict[str, str]:
    """Parse the env file at *path* into a dict.

    Keys declared without a value (a bare ``KEY`` line) are skipped.

    Raises:
        EnvFileError: If the file is missing, unreadable, or not valid
            text in *encoding*.

    """
    path = Path(path)
    if not path.is_file():
        msg = f"Cannot read env file {path}: not a file"
        raise EnvFileError(msg)
    try:
        raw = dotenv_values(path, interpolate=interpolate, encoding=encoding)
    except (OSError, UnicodeDecodeError) as e:
        msg = f"Cannot read env file {path}: {e}"
        raise EnvFileError(msg) from e
    return {key: value for key, value in raw.items() if value is not None}


def load(
    start_dir: Path | str | None = None,
    *,
    overwrite: bool | None = None,
    options: LoaderOptions | None = None,
    env: Environment | None = None,
    scope: OverrideScope | None = None,
) -> Path | None:
    """Find the nearest env file and merge it into the environment.

    Args:
        start_dir: Directory to start searching from (default: cwd).
        overwrite: Whether file values replace defined variables.  None
            selects the scope-dependent policy described above.
        options: File name, encoding and interpolation settings.
        env: Store to write into (default: the process environment).
        scope: Scope deciding the default policy, in place of the one
            active on the current call path.

    Returns:
        The path that was loaded, or None if no file was found.

    Raises:
        EnvFileError: If the file was found but could not be read.

    """
    opts = LoaderOptions() if options is None else options
    store = default_environment() if env is None else env

    path = find_env_file(start_dir, filename=opts.filename)
    if path is None:
        audit_log.log(LogLevel.DEBUG, f"no {opts.filename} file found", source="loader")
        return None

    values = read_env_file(path, encoding=opts.encoding, interpolate=opts.interpolate)
    if overwrite is None:
        overwrite = resolve_scope(scope) is None

    written = 0
    for key, value in values.items():
        if overwrite:
            store.set(key, value)
            written += 1
        elif store.set_default(key, value):
            written += 1

    audit_log.log(
        LogLevel.INFO,
        f"loaded {written} of {len(values)} variables from {path}",
        source="loader",
    )
    return path
