"""Typed key-value fields and how they are added to object encoders."""

from __future__ import annotations

import dataclasses
import enum
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable

from zaplog.errors import encode_error


class FieldType(enum.IntEnum):
    """Which member of a Field carries its value and how it is serialized."""

    UNKNOWN = 0
    ARRAY_MARSHALER = 1
    OBJECT_MARSHALER = 2
    BINARY = 3
    BOOL = 4
    BYTE_STRING = 5
    COMPLEX128 = 6
    COMPLEX64 = 7
    DURATION = 8
    FLOAT64 = 9
    FLOAT32 = 10
    INT64 = 11
    INT32 = 12
    INT16 = 13
    INT8 = 14
    STRING = 15
    TIME = 16
    TIME_FULL = 17
    UINT64 = 18
    UINT32 = 19
    UINT16 = 20
    UINT8 = 21
    UINTPTR = 22
    REFLECT = 23
    NAMESPACE = 24
    STRINGER = 25
    ERROR = 26
    SKIP = 27
    INLINE_MARSHALER = 28


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _signed(value: int, bits: int) -> int:
    value &= (1 << bits) - 1
    if value >> (bits - 1):
        return value - (1 << bits)
    return value


def _unsigned(value: int, bits: int) -> int:
    return value & ((1 << bits) - 1)


def _time_from_nanos(nanos: int, tz: Any) -> datetime:
    moment = _EPOCH + timedelta(microseconds=nanos // 1000)
    if tz is None:
        return moment.astimezone()
    return moment.astimezone(tz)


def _deep_equal(a: Any, b: Any) -> bool:
    if isinstance(a, BaseException) and isinstance(b, BaseException):
        return type(a) is type(b) and a.args == b.args and vars(a) == vars(b)
    return bool(a == b)


@dataclasses.dataclass(frozen=True)
class Field:
    """A lazily marshaled key-value pair for a logger's context.

    ``integer`` carries booleans (1 is true), integers, durations in
    nanoseconds and TIME values as nanoseconds since the epoch (with an
    optional tzinfo in ``interface``); ``string`` carries strings; every
    other value, floats included, travels in ``interface``.
    """

    key: str = ""
    type: FieldType = FieldType.UNKNOWN
    integer: int = 0
    string: str = ""
    interface: Any = None

    def add_to(self, enc: Any) -> None:
        """Add this field to an object encoder.

        Failures while marshaling are recorded as a ``<key>Error`` string
        field. An unknown field type raises ValueError.
        """
        adder = _ADDERS.get(self.type)
        if adder is None:
            raise ValueError(f"unknown field type: {self!r}")
        if self.type not in _FALLIBLE:
            adder(self, enc)
            return
        try:
            adder(self, enc)
        except Exception as exc:
            enc.add_string(f"{self.key}Error", str(exc))

    def equals(self, other: "Field") -> bool:
        """Whether two fields are equal, comparing rich values deeply."""
        if self.type != other.type or self.key != other.key:
            return False
        if self.type in (FieldType.BINARY, FieldType.BYTE_STRING):
            return bytes(self.interface) == bytes(other.interface)
        if self.type in (
            FieldType.ARRAY_MARSHALER,
            FieldType.OBJECT_MARSHALER,
            FieldType.ERROR,
            FieldType.REFLECT,
        ):
            return _deep_equal(self.interface, other.interface)
        return self == other


def add_fields(enc: Any, fields: Iterable[Field]) -> None:
    """Add every field to the encoder, in order."""
    for field in fields:
        field.add_to(enc)


def encode_stringer(key: str, stringer: Any, enc: Any) -> None:
    """Add the string form of ``stringer`` under ``key``.

    None is written as ``<nil>``. A failure inside the object's string
    conversion raises RuntimeError with a message starting ``PANIC=``.
    """
    if stringer is None:
        enc.add_string(key, "<nil>")
        return
    try:
        text = str(stringer)
    except Exception as exc:
        raise RuntimeError(f"PANIC={exc}") from exc
    enc.add_string(key, text)


_Adder = Callable[[Field, Any], None]

_ADDERS: Dict[FieldType, _Adder] = {
    FieldType.ARRAY_MARSHALER: lambda f, enc: enc.add_array(f.key, f.interface),
    FieldType.OBJECT_MARSHALER: lambda f, enc: enc.add_object(f.key, f.interface),
    FieldType.INLINE_MARSHALER: lambda f, enc: f.interface.marshal_log_object(enc),
    FieldType.BINARY: lambda f, enc: enc.add_binary(f.key, f.interface),
    FieldType.BOOL: lambda f, enc: enc.add_bool(f.key, f.integer == 1),
    FieldType.BYTE_STRING: lambda f, enc: enc.add_byte_string(f.key, f.interface),
    FieldType.COMPLEX128: lambda f, enc: enc.add_complex128(f.key, complex(f.interface)),
    FieldType.COMPLEX64: lambda f, enc: enc.add_complex64(f.key, complex(f.interface)),
    FieldType.DURATION: lambda f, enc: enc.add_duration(f.key, _signed(f.integer, 64)),
    FieldType.FLOAT64: lambda f, enc: enc.add_float64(f.key, float(f.interface)),
    FieldType.FLOAT32: lambda f, enc: enc.add_float32(f.key, float(f.interface)),
    FieldType.INT64: lambda f, enc: enc.add_int(f.key, _signed(f.integer, 64)),
    FieldType.INT32: lambda f, enc: enc.add_int(f.key, _signed(f.integer, 32)),
    FieldType.INT16: lambda f, enc: enc.add_int(f.key, _signed(f.integer, 16)),
    FieldType.INT8: lambda f, enc: enc.add_int(f.key, _signed(f.integer, 8)),
    FieldType.STRING: lambda f, enc: enc.add_string(f.key, f.string),
    FieldType.TIME: lambda f, enc: enc.add_time(
        f.key, _time_from_nanos(f.integer, f.interface)
    ),
    FieldType.TIME_FULL: lambda f, enc: enc.add_time(f.key, f.interface),
    FieldType.UINT64: lambda f, enc: enc.add_uint(f.key, _unsigned(f.integer, 64)),
    FieldType.UINT32: lambda f, enc: enc.add_uint(f.key, _unsigned(f.integer, 32)),
    FieldType.UINT16: lambda f, enc: enc.add_uint(f.key, _unsigned(f.integer, 16)),
    FieldType.UINT8: lambda f, enc: enc.add_uint(f.key, _unsigned(f.integer, 8)),
    FieldType.UINTPTR: lambda f, enc: enc.add_uint(f.key, _unsigned(f.integer, 64)),
    FieldType.REFLECT: lambda f, enc: enc.add_reflected(f.key, f.interface),
    FieldType.NAMESPACE: lambda f, enc: enc.open_namespace(f.key),
    FieldType.STRINGER: lambda f, enc: encode_stringer(f.key, f.interface, enc),
    FieldType.ERROR: lambda f, enc: encode_error(f.key, f.interface, enc),
    FieldType.SKIP: lambda f, enc: None,
}

_FALLIBLE = frozenset(
    {
        FieldType.ARRAY_MARSHALER,
        FieldType.OBJECT_MARSHALER,
        FieldType.INLINE_MARSHALER,
        FieldType.REFLECT,
        FieldType.STRINGER,
        FieldType.ERROR,
    }
)