"""Tests for env-file discovery and loading.

The loader finds the nearest ``.env`` file (walking up from a start
directory), parses it with python-dotenv, and merges it into an
environment store.  Inside an override scope it only fills gaps.
"""

import threading
from pathlib import Path

import pytest

from py_envconfig.env import Environment
from py_envconfig.loader import (
    DEFAULT_FILENAME,
    EnvFileError,
    LoaderOptions,
    find_env_file,
    load,
    read_env_file,
)
from py_envconfig.logging import LogLevel, audit_log
from py_envconfig.override import override

# A name no real directory above tmp_path is expected to contain.
_UNLIKELY_NAME = "py-envconfig-absent.env"

_SAMPLE = """\
# comment line
FOO=bar
QUOTED="hello world"
export EXPORTED=yes
BARE
REF=${FOO}-suffix
EMPTY=
"""


def _write_env(directory: Path, content: str = _SAMPLE, name: str = DEFAULT_FILENAME) -> Path:
    """Write an env file into *directory* and return its path."""
    path = directory / name
    path.write_text(content, encoding="utf-8")
    return path


# -- Discovery ---------------------------------------------------------------


class TestFindEnvFile:
    """Verify the upward search for the env file."""

    def test_finds_file_in_start_dir(self, tmp_path: Path) -> None:
        """A file in the start directory should be found directly."""
        path = _write_env(tmp_path)
        assert find_env_file(tmp_path) == path.resolve()

    def test_finds_file_in_ancestor(self, tmp_path: Path) -> None:
        """The search should climb parent directories."""
        path = _write_env(tmp_path)
        nested = tmp_path / "a" / "b" / "c"
        nested.mkdir(parents=True)
        assert find_env_file(nested) == path.resolve()

    def test_nearest_file_wins(self, tmp_path: Path) -> None:
        """A closer file should shadow one further up."""
        _write_env(tmp_path, "FOO=outer\n")
        nested = tmp_path / "inner"
        nested.mkdir()
        inner = _write_env(nested, "FOO=inner\n")
        assert find_env_file(nested) == inner.resolve()

    def test_accepts_string_path(self, tmp_path: Path) -> None:
        """Start directories may be given as strings."""
        path = _write_env(tmp_path)
        assert find_env_file(str(tmp_path)) == path.resolve()

    def test_returns_none_at_root(self, tmp_path: Path) -> None:
        """Reaching the filesystem root without a match gives None."""
        assert find_env_file(tmp_path, filename=_UNLIKELY_NAME) is None

    def test_directory_with_env_name_is_skipped(self, tmp_path: Path) -> None:
        """Only regular files count as env files."""
        (tmp_path / _UNLIKELY_NAME).mkdir()
        assert find_env_file(tmp_path, filename=_UNLIKELY_NAME) is None

    def test_defaults_to_working_directory(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Without a start directory the search begins at cwd."""
        path = _write_env(tmp_path)
        monkeypatch.chdir(tmp_path)
        assert find_env_file() == path.resolve()


# -- Reading -----------------------------------------------------------------


class TestReadEnvFile:
    """Verify parsing through python-dotenv."""

    def test_parses_common_syntax(self, tmp_path: Path) -> None:
        """Quotes, export prefixes, comments and interpolation are handled."""
        values = read_env_file(_write_env(tmp_path))
        assert values["FOO"] == "bar"
        assert values["QUOTED"] == "hello world"
        assert values["EXPORTED"] == "yes"
        assert values["REF"] == "bar-suffix"
        assert values["EMPTY"] == ""

    def test_bare_keys_are_skipped(self, tmp_path: Path) -> None:
        """A key without ``=`` has no value and is left out."""
        values = read_env_file(_write_env(tmp_path))
        assert "BARE" not in values

    def test_interpolation_can_be_disabled(self, tmp_path: Path) -> None:
        """With interpolate=False references stay literal."""
        values = read_env_file(_write_env(tmp_path), interpolate=False)
        assert values["REF"] == "${FOO}-suffix"

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        """Reading a file that does not exist is an error."""
        with pytest.raises(EnvFileError, match="not a file"):
            read_env_file(tmp_path / "missing.env")

    def test_undecodable_file_raises(self, tmp_path: Path) -> None:
        """Bytes that are not valid in the encoding are reported."""
        path = tmp_path / DEFAULT_FILENAME
        path.write_bytes(b"FOO=\xff\xfe\xfa\n")
        with pytest.raises(EnvFileError, match="Cannot read env file"):
            read_env_file(path)

    def test_error_is_an_os_error(self, tmp_path: Path) -> None:
        """Callers handling OSError should also catch env-file failures."""
        assert issubclass(EnvFileError, OSError)
        with pytest.raises(OSError, match="not a file"):
            read_env_file(tmp_path / "missing.env")


# -- Loading -----------------------------------------------------------------


class TestLoad:
    """Verify merging into an environment store."""

    def test_load_populates_store(self, tmp_path: Path) -> None:
        """Loading should write every pair and return the path."""
        path = _write_env(tmp_path)
        store = Environment({})
        assert load(tmp_path, env=store) == path.resolve()
        assert store.get("FOO") == "bar"
        assert store.get("QUOTED") == "hello world"

    def test_file_wins_outside_scope(self, tmp_path: Path) -> None:
        """Outside an override scope existing variables are replaced."""
        _write_env(tmp_path)
        store = Environment({"FOO": "old"})
        load(tmp_path, env=store)
        assert store.get("FOO") == "bar"

    def test_only_fills_gaps_inside_scope(self, tmp_path: Path) -> None:
        """Inside an override scope defined variables are left alone."""
        _write_env(tmp_path)
        store = Environment({"FOO": "old"})
        with override("UNRELATED", "1"):
            load(tmp_path, env=store)
        assert store.get("FOO") == "old"
        assert store.get("EXPORTED") == "yes"

    def test_explicit_scope_only_fills_gaps(self, tmp_path: Path) -> None:
        """A handle passed from another thread selects the in-scope policy."""
        _write_env(tmp_path)
        store = Environment({"FOO": "old"})
        with override("UNRELATED", "1") as scope:
            worker = threading.Thread(
                target=load, args=(tmp_path,), kwargs={"env": store, "scope": scope}
            )
            worker.start()
            worker.join()
        assert store.get("FOO") == "old"
        assert store.get("EXPORTED") == "yes"

    def test_closed_scope_uses_outside_policy(self, tmp_path: Path) -> None:
        """A handle whose block has ended no longer protects the store."""
        _write_env(tmp_path)
        store = Environment({"FOO": "old"})
        with override("UNRELATED", "1") as scope:
            pass
        load(tmp_path, env=store, scope=scope)
        assert store.get("FOO") == "bar"

    def test_explicit_overwrite_false(self, tmp_path: Path) -> None:
        """overwrite=False should keep existing values anywhere."""
        _write_env(tmp_path)
        store = Environment({"FOO": "old"})
        load(tmp_path, overwrite=False, env=store)
        assert store.get("FOO") == "old"

    def test_explicit_overwrite_true_inside_scope(self, tmp_path: Path) -> None:
        """overwrite=True should replace values even inside a scope."""
        _write_env(tmp_path)
        store = Environment({"FOO": "old"})
        with override("UNRELATED", "1"):
            load(tmp_path, overwrite=True, env=store)
        assert store.get("FOO") == "bar"

    def test_missing_file_is_not_an_error(self, tmp_path: Path) -> None:
        """Without a file nothing is written and None is returned."""
        store = Environment({})
        options = LoaderOptions(filename=_UNLIKELY_NAME)
        assert load(tmp_path, options=options, env=store) is None
        assert len(store) == 0

    def test_custom_filename(self, tmp_path: Path) -> None:
        """LoaderOptions should select the file name searched for."""
        _write_env(tmp_path, "CUSTOM=1\n", name="settings.env")
        store = Environment({})
        load(tmp_path, options=LoaderOptions(filename="settings.env"), env=store)
        assert store.get("CUSTOM") == "1"

    def test_unreadable_file_surfaces_error(self, tmp_path: Path) -> None:
        """A broken file should raise instead of being ignored."""
        (tmp_path / DEFAULT_FILENAME).write_bytes(b"FOO=\xff\xfe\n")
        with pytest.raises(EnvFileError):
            load(tmp_path, env=Environment({}))

    def test_load_is_logged(self, tmp_path: Path) -> None:
        """A successful load should leave an INFO entry naming the file."""
        path = _write_env(tmp_path, "A=1\nB=2\n")
        audit_log.clear()
        load(tmp_path, env=Environment({"A": "0"}), overwrite=False)
        entries = audit_log.filter(min_level=LogLevel.INFO, source="loader")
        assert len(entries) == 1
        assert "loaded 1 of 2 variables" in entries[0].message
        assert str(path.resolve()) in entries[0].message
