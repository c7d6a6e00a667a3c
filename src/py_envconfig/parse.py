"""Typed configuration from environment variables.

A configuration schema names, for each field, the variable to read and
how to interpret it.  Schemas come in two shapes:

- a plain mapping of field name to ``EnvVar``, parsed into a dict::

      schema = {
          "port": EnvVar("PORT", int, default="8080"),
          "hosts": EnvVar("HOSTS", list, delimiter=";", required=True),
      }
      settings = parse(schema)

- a dataclass whose fields are declared with ``env_field(...)``, parsed into
  an instance::

      @dataclass
      class Settings:
          port: int = env_field("PORT", int, default="8080")
          started: datetime = env_field("STARTED", datetime, time_layout="%Y-%m-%d")

      settings = parse_dataclass(Settings)

Each field is resolved by ``lookup``: the active override scope first,
then the real environment, then the declared default.  ``required``
fields must be defined somewhere other than the default; ``not_empty``
fields must resolve to a non-blank value (a default counts).
"""

import dataclasses
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, TypeVar

from py_envconfig.env import Environment, default_environment
from py_envconfig.loader import LoaderOptions, load
from py_envconfig.override.scope import OverrideScope, resolve_scope
from py_envconfig.value import INT_BITS, PYTHON_TYPE_KINDS, Kind, Value

_T = TypeVar("_T")

ENV_METADATA_KEY = "py_envconfig"


class ConfigError(Exception):
    """Base class for configuration parsing failures."""


class NotADataclassError(ConfigError):
    """Raise when ``parse_dataclass`` is given something other than a dataclass type."""


class RequiredFieldError(ConfigError):
    """Raise when a required variable is not defined."""


class EmptyFieldError(ConfigError):
    """Raise when a ``not_empty`` variable resolves to a blank value."""


class TimeLayoutRequiredError(ConfigError):
    """Raise when a time field declares no ``time_layout``."""


class UnsupportedTypeError(ConfigError):
    """Raise when a field declares a kind that cannot be converted."""


@dataclasses.dataclass(frozen=True)
class EnvVar:
    """Declaration of one configuration field.

    Attributes:
        name: Environment variable to read.
        kind: A ``Kind`` member, its string value, or one of the Python
            types ``str int float bool list datetime timedelta``.
        default: Raw value used when the variable is not defined.
        required: Fail if the variable is not defined.
        not_empty: Fail if the resolved value is blank.
        delimiter: Separator for ``Kind.STRING_LIST``.
        time_layout: ``strptime`` layout for ``Kind.TIME``.

    """

    name: str
    kind: Kind | str | type = Kind.STRING
    default: str | None = None
    required: bool = False
    not_empty: bool = False
    delimiter: str = ","
    time_layout: str | None = None

    def resolved_kind(self) -> Kind:
        """Return the ``Kind`` this field converts to.

        Raises:
            UnsupportedTypeError: If the declared kind is not supported.

        """
        if isinstance(self.kind, Kind):
            return self.kind
        if isinstance(self.kind, str):
            try:
                return Kind(self.kind)
            except ValueError as e:
                msg = f"unsupported kind {self.kind!r} for variable `{self.name}`"
                raise UnsupportedTypeError(msg) from e
        kind = PYTHON_TYPE_KINDS.get(self.kind)
        if kind is None:
            type_name = getattr(self.kind, "__name__", self.kind)
            msg = f"unsupported type `{type_name}` for variable `{self.name}`"
            raise UnsupportedTypeError(msg)
        return kind


_CONVERTERS: dict[Kind, Callable[[Value, EnvVar], Any]] = {
    Kind.STRING: lambda v, _: v.as_string(),
    Kind.INT: lambda v, _: v.as_int(),
    Kind.FLOAT32: lambda v, _: v.as_float32(),
    Kind.FLOAT64: lambda v, _: v.as_float(),
    Kind.BOOL: lambda v, _: v.as_bool(),
    Kind.STRING_LIST: lambda v, var: v.as_string_list(var.delimiter),
    Kind.DURATION: lambda v, _: v.as_duration(),
}


def lookup(
    name: str,
    default: str = "",
    *,
    scope: OverrideScope | None = None,
    env: Environment | None = None,
) -> tuple[Value, bool]:
    """Resolve *name* to its raw value.

    Resolution order: the override scope (*scope* if given, otherwise
    the one active on the current call path), then the environment
    store, then *default*.  Only the nearest scope is consulted; names
    it does not define come from the real environment.

    Returns:
        ``(value, defined)`` where *defined* is False only when the
        default was used.

    """
    active = resolve_scope(scope)
    if active is not None:
        value, found = active.get(name)
        if found:
            return Value(value), True
    store = default_environment() if env is None else env
    value, found = store.lookup(name)
    if found:
        return Value(value), True
    return Value(default), False


def convert(var: EnvVar, value: Value) -> Any:
    """Convert *value* according to the declaration *var*.

    Raises:
        TimeLayoutRequiredError: For a time field without a layout.
        UnsupportedTypeError: For an unknown kind.

    """
    kind = var.resolved_kind()
    if kind is Kind.TIME:
        if var.time_layout is None:
            msg = f"expecting `time_layout` for time variable `{var.name}`"
            raise TimeLayoutRequiredError(msg)
        return value.as_time(var.time_layout)
    if kind in INT_BITS:
        return value.as_bounded_int(kind)
    return _CONVERTERS[kind](value, var)


def resolve(
    var: EnvVar,
    *,
    scope: OverrideScope | None = None,
    env: Environment | None = None,
) -> Any:
    """Look up, validate and convert a single field."""
    value, defined = lookup(var.name, var.default or "", scope=scope, env=env)
    if var.required and not defined:
        msg = f"environment variable `{var.name}` must be defined"
        raise RequiredFieldError(msg)
    if var.not_empty and value.is_zero():
        msg = f"environment variable `{var.name}` cannot be empty"
        raise EmptyFieldError(msg)
    return convert(var, value)


def parse(
    schema: Mapping[str, EnvVar],
    *,
    scope: OverrideScope | None = None,
    env: Environment | None = None,
) -> dict[str, Any]:
    """Resolve every field of a mapping *schema*.

    Returns:
        Field name to typed value, in schema order.

    Raises:
        ConfigError: On the first field that fails validation.

    """
    return {field: resolve(var, scope=scope, env=env) for field, var in schema.items()}


def env_field(
    name: str,
    kind: Kind | str | type = Kind.STRING,
    *,
    default: str | None = None,
    required: bool = False,
    not_empty: bool = False,
    delimiter: str = ",",
    time_layout: str | None = None,
) -> Any:
    """Declare a dataclass field populated from the variable *name*.

    The field is keyword-only, so declaration order does not matter.
    """
    var = EnvVar(
        name=name,
        kind=kind,
        default=default,
        required=required,
        not_empty=not_empty,
        delimiter=delimiter,
        time_layout=time_layout,
    )
    return dataclasses.field(kw_only=True, metadata={ENV_METADATA_KEY: var})


def schema_for(cls: type) -> dict[str, EnvVar]:
    """Return the mapping schema declared by the ``env_field`` fields of *cls*.

    Raises:
        NotADataclassError: If *cls* is not a dataclass type.

    """
    if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
        msg = f"given `{cls!r}` is not a dataclass type"
        raise NotADataclassError(msg)
    return {
        f.name: f.metadata[ENV_METADATA_KEY]
        for f in dataclasses.fields(cls)
        if f.init and ENV_METADATA_KEY in f.metadata
    }


def parse_dataclass(
    cls: type[_T],
    *,
    scope: OverrideScope | None = None,
    env: Environment | None = None,
) -> _T:
    """Build an instance of the dataclass *cls* from the environment.

    Fields not declared with ``env_field`` keep their dataclass defaults.

    Raises:
        NotADataclassError: If *cls* is not a dataclass type.
        ConfigError: On the first field that fails validation.

    """
    values = parse(schema_for(cls), scope=scope, env=env)
    return cls(**values)


def load_and_parse(
    target: Mapping[str, EnvVar] | type[Any],
    *,
    start_dir: Path | str | None = None,
    options: LoaderOptions | None = None,
    scope: OverrideScope | None = None,
    env: Environment | None = None,
) -> Any:
    """Load the nearest env file, then parse *target*.

    *target* is either a mapping schema (returns a dict) or a dataclass
    type (returns an instance).  An explicit *scope* governs both the
    merge policy of the load and the lookups of the parse.

    Raises:
        EnvFileError: If the env file exists but cannot be read.
        ConfigError: If a field fails validation.

    """
    load(start_dir, options=options, env=env, scope=scope)
    if isinstance(target, Mapping):
        return parse(target, scope=scope, env=env)
    return parse_dataclass(target, scope=scope, env=env)
