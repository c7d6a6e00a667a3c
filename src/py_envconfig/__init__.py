"""py-envconfig — env files, typed configuration, scoped overrides.

Re-exports the everyday API so callers can write::

    from py_envconfig import EnvVar, env_field, load_and_parse, override, with_override
"""

from py_envconfig.env import Environment, default_environment
from py_envconfig.loader import EnvFileError, LoaderOptions, find_env_file, load, read_env_file
from py_envconfig.override import (
    OverrideScope,
    UsageError,
    current_override,
    current_scope,
    override,
    with_override,
)
from py_envconfig.parse import (
    ConfigError,
    EmptyFieldError,
    EnvVar,
    NotADataclassError,
    RequiredFieldError,
    TimeLayoutRequiredError,
    UnsupportedTypeError,
    env_field,
    load_and_parse,
    lookup,
    parse,
    parse_dataclass,
)
from py_envconfig.value import Kind, Value

__all__ = [
    "ConfigError",
    "EmptyFieldError",
    "EnvFileError",
    "EnvVar",
    "Environment",
    "Kind",
    "LoaderOptions",
    "NotADataclassError",
    "OverrideScope",
    "RequiredFieldError",
    "TimeLayoutRequiredError",
    "UnsupportedTypeError",
    "UsageError",
    "Value",
    "current_override",
    "current_scope",
    "default_environment",
    "env_field",
    "find_env_file",
    "load",
    "load_and_parse",
    "lookup",
    "override",
    "parse",
    "parse_dataclass",
    "read_env_file",
    "with_override",
]
