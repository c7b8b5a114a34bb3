"""
String coercion: turning argument tokens into typed values and back.

Kinds
- every supported annotation maps to a semantic kind used in usage text:
  bool, int, int8, int16, int32, int64, uint, uint8, uint16, uint32, uint64,
  float, float32, string, duration, slice, map, ptr.

Types
- bool, int, float and str are the plain Python types (int is unbounded).
- Int8 … Uint64 and Float32 are width-typed numerics; values outside their range
  cannot be constructed.
- datetime.timedelta is the duration type.
- list / tuple / Sequence hold strings and are read as a JSON array of strings.
- dict / Mapping map strings to strings and are read as a JSON object of strings.
- Optional[T] (T | None) is the pointer: parsing recurses on T, None renders empty.

Rules
- booleans accept exactly 1, t, T, TRUE, true, True, 0, f, F, FALSE, false, False.
- integers are base 10 with an optional sign (unsigned kinds take no sign).
- Int64 and timedelta try an integer first (nanoseconds) and fall back to a duration
  string such as "1h30m" or "250ms". No other width gets this fallback.
- JSON "null" reads back as None for sequences and mappings.
- floats render in their shortest form, in exponent notation below 1e-4 and from 1e6 on.

Errors
- parse_string raises ValueError for text that does not fit the kind and TypeError
  for annotations that have no kind. Callers translate both into faults.
"""
import collections.abc
import inspect
import json
import math
import re
import struct
import types
import typing
from datetime import timedelta
from decimal import Decimal

from .utils import Unset


class SizedInt(int):
    """Base of the width-typed integers; subclasses set the bit width and signedness."""
    __slots__ = ()
    __kind__ = "int64"
    __bits__ = 64
    __signed__ = True

    def __new__(cls, value=0, /):
        self = super().__new__(cls, value)
        low, high = cls.bounds()
        if not low <= self <= high:
            raise OverflowError(f"{int(self)} is out of range for {cls.__kind__}")
        return self

    @classmethod
    def bounds(cls):
        if cls.__signed__:
            return -(1 << (cls.__bits__ - 1)), (1 << (cls.__bits__ - 1)) - 1
        return 0, (1 << cls.__bits__) - 1


class Int8(SizedInt):
    __slots__ = ()
    __kind__ = "int8"
    __bits__ = 8


class Int16(SizedInt):
    __slots__ = ()
    __kind__ = "int16"
    __bits__ = 16


class Int32(SizedInt):
    __slots__ = ()
    __kind__ = "int32"
    __bits__ = 32


class Int64(SizedInt):
    __slots__ = ()
    __kind__ = "int64"
    __bits__ = 64


class Uint(SizedInt):
    __slots__ = ()
    __kind__ = "uint"
    __bits__ = 64
    __signed__ = False


class Uint8(Uint):
    __slots__ = ()
    __kind__ = "uint8"
    __bits__ = 8


class Uint16(Uint):
    __slots__ = ()
    __kind__ = "uint16"
    __bits__ = 16


class Uint32(Uint):
    __slots__ = ()
    __kind__ = "uint32"
    __bits__ = 32


class Uint64(Uint):
    __slots__ = ()
    __kind__ = "uint64"
    __bits__ = 64


class Float32(float):
    """A float rounded to single precision on construction."""
    __slots__ = ()

    def __new__(cls, value=0.0, /):
        value = float(value)
        if math.isfinite(value):
            # OverflowError when beyond the single precision range
            value, = struct.unpack("f", struct.pack("f", value))
        return super().__new__(cls, value)


_TRUE = frozenset(("1", "t", "T", "TRUE", "true", "True"))
_FALSE = frozenset(("0", "f", "F", "FALSE", "false", "False"))

_SIGNED = re.compile(r"[+-]?[0-9]+")
_UNSIGNED = re.compile(r"[0-9]+")
_FLOAT = re.compile(r"[+-]?(inf(inity)?|nan|([0-9]+\.?[0-9]*|\.[0-9]+)(e[+-]?[0-9]+)?)", re.IGNORECASE)

_COMPONENT = re.compile(r"([0-9]*(?:\.[0-9]*)?)([^0-9.]*)")
_UNITS = {
    "ns": 1,
    "us": 1000,
    "µs": 1000,  # U+00B5 micro sign
    "μs": 1000,  # U+03BC greek mu
    "ms": 1000 ** 2,
    "s": 1000 ** 3,
    "m": 60 * 1000 ** 3,
    "h": 3600 * 1000 ** 3,
}

_SEQUENCES = (list, tuple, collections.abc.Sequence, collections.abc.MutableSequence)
_MAPPINGS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)


def _optional(annotation):
    if typing.get_origin(annotation) in (typing.Union, types.UnionType):
        arguments = typing.get_args(annotation)
        if len(arguments) == 2 and type(None) in arguments:
            return next(argument for argument in arguments if argument is not type(None))
    return Unset


def kind(annotation, /):
    """Return the semantic kind of an annotation; TypeError when it has none."""
    if annotation in (typing.Any, str) or annotation is inspect.Parameter.empty:
        return "string"
    if _optional(annotation) is not Unset:
        return "ptr"

    origin = typing.get_origin(annotation) or annotation
    if origin in _SEQUENCES:
        return "slice"
    if origin in _MAPPINGS:
        return "map"
    if isinstance(origin, type):
        if issubclass(origin, bool):
            return "bool"
        if issubclass(origin, SizedInt):
            return origin.__kind__
        if issubclass(origin, int):
            return "int"
        if issubclass(origin, Float32):
            return "float32"
        if issubclass(origin, float):
            return "float"
        if issubclass(origin, str):
            return "string"
        if issubclass(origin, timedelta):
            return "duration"
        if issubclass(origin, (list, tuple)):
            return "slice"
        if issubclass(origin, dict):
            return "map"
    raise TypeError(f"unsupported type {annotation!r}")


def zero(annotation, /):
    """Return the zero value of an annotation's kind."""
    match kind(annotation):
        case "bool":
            return False
        case "string":
            return ""
        case "float" | "float32":
            return 0.0
        case "duration":
            return timedelta(0)
        case "slice" | "map" | "ptr":
            return None
        case _:
            return 0


def parse_duration(text, /):
    """
    Parse a duration string into nanoseconds.

    A duration is an optionally signed sequence of decimal numbers, each with an
    optional fraction and a unit suffix, such as "300ms", "-1.5h" or "2h45m".
    """
    original, sign = text, 1
    if text and text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return 0
    if not text:
        raise ValueError(f"invalid duration {original!r}")

    total = Decimal(0)
    position = 0
    while position < len(text):
        match = _COMPONENT.match(text, position)
        number, unit = match.groups()
        if number in ("", "."):
            raise ValueError(f"invalid duration {original!r}")
        if not unit:
            raise ValueError(f"missing unit in duration {original!r}")
        try:
            total += Decimal(number) * _UNITS[unit]
        except KeyError:
            raise ValueError(f"unknown unit {unit!r} in duration {original!r}") from None
        position = match.end()

    nanoseconds = sign * int(total)
    low, high = Int64.bounds()
    if not low <= nanoseconds <= high:
        raise ValueError(f"invalid duration {original!r}")
    return nanoseconds


def _fraction(value, precision):
    whole, fraction = divmod(value, 10 ** precision)
    digits = str(fraction).rjust(precision, "0").rstrip("0")
    return f"{whole}.{digits}" if digits else str(whole)


def format_duration(value, /):
    """
    Render a duration (timedelta or integer nanoseconds) like "72h3m0.5s".

    Leading zero units are omitted; "0s" is the zero duration; durations under
    one second use ms, µs or ns.
    """
    if isinstance(value, timedelta):
        value = (value // timedelta(microseconds=1)) * 1000
    sign, value = ("-", -value) if value < 0 else ("", value)

    if value == 0:
        return "0s"
    if value < 1000:
        return f"{sign}{value}ns"
    if value < 1000 ** 2:
        return f"{sign}{_fraction(value, 3)}µs"
    if value < 1000 ** 3:
        return f"{sign}{_fraction(value, 6)}ms"

    hours, value = divmod(value, 3600 * 1000 ** 3)
    minutes, value = divmod(value, 60 * 1000 ** 3)
    seconds = _fraction(value, 9) + "s"
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}"
    if minutes:
        return f"{sign}{minutes}m{seconds}"
    return sign + seconds


def _timedelta(nanoseconds):
    microseconds = abs(nanoseconds) // 1000
    return timedelta(microseconds=-microseconds if nanoseconds < 0 else microseconds)


def _format_float(value, single=False):
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"

    representation = repr(float(value))
    if single:
        # shortest text that rounds back to the same single precision value
        for precision in range(1, 10):
            candidate = f"{value:.{precision}g}"
            if Float32(float(candidate)) == value:
                representation = candidate
                break

    sign, digits, exponent = Decimal(representation).normalize().as_tuple()
    digits = "".join(map(str, digits))
    point = len(digits) + exponent
    prefix = "-" if sign else ""

    if not -4 <= point - 1 < 6:
        mantissa = digits[0] + ("." + digits[1:] if len(digits) > 1 else "")
        return f"{prefix}{mantissa}e{'-' if point - 1 < 0 else '+'}{abs(point - 1):02d}"
    if point <= 0:
        return f"{prefix}0.{'0' * -point}{digits}"
    if point >= len(digits):
        return prefix + digits + "0" * (point - len(digits))
    return f"{prefix}{digits[:point]}.{digits[point:]}"


def _parse_integer(value, type, name):
    signed = not issubclass(type, SizedInt) or type.__signed__
    if not (_SIGNED if signed else _UNSIGNED).fullmatch(value):
        raise ValueError(f"invalid syntax for {name}: {value!r}")
    try:
        return type(int(value, 10))
    except OverflowError:
        raise ValueError(f"value out of range for {name}: {value!r}") from None


def _parse_nanoseconds(value, name):
    try:
        return _parse_integer(value, Int64, name)
    except ValueError:
        pass
    try:
        return parse_duration(value)
    except ValueError as error:
        raise ValueError(f"invalid syntax for {name}: {value!r} is neither an integer nor a duration ({error})") from None


def _parse_json(value, expected, name):
    try:
        decoded = json.loads(value)
    except json.JSONDecodeError as error:
        raise ValueError(f"invalid json for {name}: {error}") from None
    if decoded is None:
        return None
    if not isinstance(decoded, expected):
        raise ValueError(f"invalid json for {name}: expected an {'array' if expected is list else 'object'}")
    items = decoded if expected is list else decoded.values()
    if not all(isinstance(item, str) for item in items):
        raise ValueError(f"invalid json for {name}: every value must be a string")
    return decoded


def parse_string(annotation, value, /):
    """
    Parse a token into a value of the given annotation.

    >>> parse_string(int, "42")
    42
    >>> parse_string(Int64, "1h")
    3600000000000
    >>> parse_string(list[str], '["a","b"]')
    ['a', 'b']
    """
    if not isinstance(value, str):
        raise TypeError("parse_string() second argument must be a string")

    name = kind(annotation)
    origin = typing.get_origin(annotation) or annotation
    match name:
        case "ptr":
            return parse_string(_optional(annotation), value)
        case "string":
            return value
        case "bool":
            if value in _TRUE:
                return True
            if value in _FALSE:
                return False
            raise ValueError(f"invalid syntax for bool: {value!r}")
        case "int":
            return _parse_integer(value, origin, name)
        case "int64":
            return origin(_parse_nanoseconds(value, name))
        case "duration":
            return _timedelta(_parse_nanoseconds(value, name))
        case "float" | "float32":
            if not _FLOAT.fullmatch(value):
                raise ValueError(f"invalid syntax for {name}: {value!r}")
            try:
                return (Float32 if name == "float32" else float)(value)
            except OverflowError:
                raise ValueError(f"value out of range for {name}: {value!r}") from None
        case "slice":
            decoded = _parse_json(value, list, name)
            if decoded is not None and isinstance(origin, type) and issubclass(origin, tuple):
                return tuple(decoded)
            return decoded
        case "map":
            return _parse_json(value, dict, name)
        case _:
            return _parse_integer(value, origin, name)


def stringify(annotation, value, /):
    """
    Render a value of the given annotation as the token parse_string reads back.

    None renders as "" for pointers and as "null" for sequences and mappings;
    for other kinds it stands for the zero value.
    """
    name = kind(annotation)
    if value is None and name not in ("ptr", "slice", "map"):
        value = zero(annotation)

    match name:
        case "ptr":
            return "" if value is None else stringify(_optional(annotation), value)
        case "string":
            return str(value)
        case "bool":
            return "true" if value else "false"
        case "float" | "float32":
            return _format_float(value, single=name == "float32")
        case "duration":
            return format_duration(value)
        case "slice":
            return json.dumps(None if value is None else list(value), ensure_ascii=False, separators=(",", ":"))
        case "map":
            return json.dumps(None if value is None else dict(value), ensure_ascii=False, separators=(",", ":"), sort_keys=True)
        case _:
            return str(int(value))


__all__ = (
    "SizedInt",
    "Int8",
    "Int16",
    "Int32",
    "Int64",
    "Uint",
    "Uint8",
    "Uint16",
    "Uint32",
    "Uint64",
    "Float32",
    "kind",
    "zero",
    "parse_string",
    "stringify",
    "parse_duration",
    "format_duration",
)
