"""Raw environment values and their typed conversions.

Every environment variable is a string.  Configuration fields are not:
ports are integers, feature flags are booleans, timeouts are durations.
``Value`` is a ``str`` that knows how to turn itself into each of the
supported kinds.

Conversions are lenient: a value that cannot be parsed converts to the
*zero value* of the target kind (``0``, ``0.0``, ``False``, ``[]``,
``datetime.min``, ``timedelta(0)``) and a warning is written to the
audit log.  Blank values convert silently, since an unset optional
field is not a mistake.

Durations use a human-readable form that extends the usual
``1h30m`` notation with days and weeks::

    30m   1h30m   2d   1w2d12h30m5s   250ms   1.5h
"""

import math
import re
import struct
from datetime import datetime, timedelta
from enum import StrEnum
from typing import TypeVar

from py_envconfig.logging import LogLevel, audit_log

_T = TypeVar("_T")

_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})

_SIGNED_INT = re.compile(r"[+-]?[0-9]+")
_UNSIGNED_INT = re.compile(r"[0-9]+")
_FLOAT_DECIMAL = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_FLOAT_SPECIAL = re.compile(r"[+-]?(?:inf|infinity|nan)", re.IGNORECASE)

# Microseconds per unit; timedelta resolution truncates nanoseconds.
_DURATION_UNITS: dict[str, float] = {
    "ns": 0.001,
    "us": 1.0,
    "µs": 1.0,
    "μs": 1.0,
    "ms": 1_000.0,
    "s": 1_000_000.0,
    "m": 60 * 1_000_000.0,
    "h": 3_600 * 1_000_000.0,
    "d": 86_400 * 1_000_000.0,
    "w": 7 * 86_400 * 1_000_000.0,
}
_DURATION_COMPONENT = re.compile(r"([0-9]+(?:\.[0-9]*)?|\.[0-9]+)(ns|us|µs|μs|ms|s|m|h|d|w)")
_DURATION_FULL = re.compile(
    r"([+-]?)((?:(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:ns|us|µs|μs|ms|s|m|h|d|w))+)"
)


class Kind(StrEnum):
    """Target types a raw value can be converted to."""

    STRING = "string"
    INT = "int"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    UINT = "uint"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    BOOL = "bool"
    STRING_LIST = "string_list"
    TIME = "time"
    DURATION = "duration"


# Bit widths for the bounded integer kinds.
INT_BITS: dict[Kind, int] = {
    Kind.INT8: 8,
    Kind.INT16: 16,
    Kind.INT32: 32,
    Kind.INT64: 64,
    Kind.UINT: 64,
    Kind.UINT8: 8,
    Kind.UINT16: 16,
    Kind.UINT32: 32,
    Kind.UINT64: 64,
}

PYTHON_TYPE_KINDS: dict[type, Kind] = {
    str: Kind.STRING,
    int: Kind.INT,
    float: Kind.FLOAT64,
    bool: Kind.BOOL,
    list: Kind.STRING_LIST,
    datetime: Kind.TIME,
    timedelta: Kind.DURATION,
}


def parse_duration(text: str) -> timedelta:
    """Parse a human-readable duration such as ``1w2d12h30m5s``.

    A bare ``0`` is accepted.  Components may be fractional and the
    whole value may carry a leading sign.

    Raises:
        ValueError: If *text* is not a valid duration or does not fit
            in a ``timedelta``.

    """
    if text in ("0", "+0", "-0"):
        return timedelta(0)
    match = _DURATION_FULL.fullmatch(text)
    if match is None:
        msg = f"invalid duration {text!r}"
        raise ValueError(msg)
    sign, body = match.groups()
    micros = sum(
        float(amount) * _DURATION_UNITS[unit] for amount, unit in _DURATION_COMPONENT.findall(body)
    )
    try:
        delta = timedelta(microseconds=micros)
    except OverflowError as e:
        msg = f"duration {text!r} is out of range"
        raise ValueError(msg) from e
    return -delta if sign == "-" else delta


class Value(str):
    """A raw environment value that can be converted to typed values."""

    __slots__ = ()

    def is_zero(self) -> bool:
        """Return whether the value is empty or whitespace only."""
        return self.strip() == ""

    def _fallback(self, kind: Kind, zero: _T) -> _T:
        """Log an unparsable value and return the zero value of *kind*."""
        if not self.is_zero():
            audit_log.log(
                LogLevel.WARNING,
                f"cannot convert {str(self)!r} to {kind}; using {zero!r}",
                source="value",
            )
        return zero

    def as_string(self) -> str:
        """Return the value as a plain string."""
        return str(self)

    def as_int(self) -> int:
        """Convert to an unbounded integer."""
        if not _SIGNED_INT.fullmatch(self):
            return self._fallback(Kind.INT, 0)
        try:
            return int(self)
        except ValueError:
            # Beyond the interpreter's int string-conversion digit limit.
            return self._fallback(Kind.INT, 0)

    def as_bounded_int(self, kind: Kind) -> int:
        """Convert to an integer that must fit the width of *kind*.

        Signed kinds use two's-complement bounds; unsigned kinds reject
        any sign.  Out-of-range values give ``0``.
        """
        bits = INT_BITS[kind]
        unsigned = kind.startswith("uint")
        pattern = _UNSIGNED_INT if unsigned else _SIGNED_INT
        if not pattern.fullmatch(self):
            return self._fallback(kind, 0)
        try:
            number = int(self)
        except ValueError:
            return self._fallback(kind, 0)
        low, high = (0, 2**bits - 1) if unsigned else (-(2 ** (bits - 1)), 2 ** (bits - 1) - 1)
        if not low <= number <= high:
            return self._fallback(kind, 0)
        return number

    def as_int8(self) -> int:
        """Convert to an 8-bit signed integer."""
        return self.as_bounded_int(Kind.INT8)

    def as_int16(self) -> int:
        """Convert to a 16-bit signed integer."""
        return self.as_bounded_int(Kind.INT16)

    def as_int32(self) -> int:
        """Convert to a 32-bit signed integer."""
        return self.as_bounded_int(Kind.INT32)

    def as_int64(self) -> int:
        """Convert to a 64-bit signed integer."""
        return self.as_bounded_int(Kind.INT64)

    def as_uint(self) -> int:
        """Convert to an unsigned integer (64-bit)."""
        return self.as_bounded_int(Kind.UINT)

    def as_uint8(self) -> int:
        """Convert to an 8-bit unsigned integer."""
        return self.as_bounded_int(Kind.UINT8)

    def as_uint16(self) -> int:
        """Convert to a 16-bit unsigned integer."""
        return self.as_bounded_int(Kind.UINT16)

    def as_uint32(self) -> int:
        """Convert to a 32-bit unsigned integer."""
        return self.as_bounded_int(Kind.UINT32)

    def as_uint64(self) -> int:
        """Convert to a 64-bit unsigned integer."""
        return self.as_bounded_int(Kind.UINT64)

    def _strict_float(self) -> float | None:
        """Parse ASCII decimal or ``inf``/``nan`` notation.

        Surrounding whitespace and ``_`` separators are rejected.  A
        finite literal too large for a double gives None.
        """
        if _FLOAT_SPECIAL.fullmatch(self):
            return float(self)
        if not _FLOAT_DECIMAL.fullmatch(self):
            return None
        number = float(self)
        return None if math.isinf(number) else number

    def as_float(self) -> float:
        """Convert to a double-precision float."""
        number = self._strict_float()
        if number is None:
            return self._fallback(Kind.FLOAT64, 0.0)
        return number

    def as_float32(self) -> float:
        """Convert to a float rounded to single precision.

        Finite values outside the single-precision range give ``0.0``.
        """
        number = self._strict_float()
        if number is None:
            return self._fallback(Kind.FLOAT32, 0.0)
        try:
            narrowed: float = struct.unpack("f", struct.pack("f", number))[0]
        except OverflowError:
            return self._fallback(Kind.FLOAT32, 0.0)
        if math.isinf(narrowed) and not math.isinf(number):
            return self._fallback(Kind.FLOAT32, 0.0)
        return narrowed

    def as_bool(self) -> bool:
        """Convert to a boolean.

        Accepts ``1 t T TRUE true True`` and ``0 f F FALSE false False``.
        """
        if self in _TRUE_WORDS:
            return True
        if self in _FALSE_WORDS:
            return False
        return self._fallback(Kind.BOOL, False)

    def as_time(self, layout: str) -> datetime:
        """Convert to a ``datetime`` using the ``strptime`` *layout*."""
        try:
            return datetime.strptime(self, layout)  # noqa: DTZ007
        except ValueError:
            return self._fallback(Kind.TIME, datetime.min)

    def as_duration(self) -> timedelta:
        """Convert a human-readable duration (``1h30m``, ``2d``) to ``timedelta``."""
        try:
            return parse_duration(self)
        except ValueError:
            return self._fallback(Kind.DURATION, timedelta(0))

    def as_string_list(self, delimiter: str = ",") -> list[str]:
        """Split on *delimiter*; a blank value gives an empty list."""
        if self.is_zero():
            return []
        return str(self).split(delimiter)
