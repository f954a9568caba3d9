"""A fast JSON encoder for log entries and their structured context."""

from __future__ import annotations

import base64
import dataclasses
import json
import math
import re
import struct
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Optional, Sequence, Union

from zaplog.encoder import DEFAULT_LINE_ENDING, EncoderConfig, format_go_layout, full_name_encoder
from zaplog.entry import Entry
from zaplog.field import Field, add_fields

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_NO_SEPARATOR_AFTER = b"{[:, "
_NULL = b"null"

_ESCAPE_RE = re.compile(r'[\\"\x00-\x1f\ud800-\udfff]')
_SIMPLE_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t"}


def _escape_char(match: "re.Match[str]") -> str:
    char = match.group()
    simple = _SIMPLE_ESCAPES.get(char)
    if simple is not None:
        return simple
    code = ord(char)
    if code < 0x20:
        return f"\\u00{code:02x}"
    # Lone surrogates stand for bytes that were not valid UTF-8.
    return "\\ufffd"


def _escape(text: str) -> bytes:
    return _ESCAPE_RE.sub(_escape_char, text).encode("utf-8")


def _to_float32(value: float) -> float:
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _shortest_float32(value: float) -> str:
    for precision in range(1, 10):
        digits = f"{value:.{precision}g}"
        if _to_float32(float(digits)) == value:
            return digits
    return f"{value:.9g}"


def _format_float(value: float, bits: int) -> str:
    """Shortest round-tripping digits in plain (non-exponent) notation."""
    value = float(value)
    if bits == 32:
        value = _to_float32(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"
    digits = _shortest_float32(value) if bits == 32 else repr(value)
    return format(Decimal(digits).normalize(), "f")


def _unix_nanos(t: datetime) -> int:
    if t.tzinfo is None:
        t = t.astimezone()
    delta = t - _EPOCH
    return (delta.days * 86400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1000


def _duration_nanos(d: Union[int, timedelta]) -> int:
    if isinstance(d, timedelta):
        return (d.days * 86400 + d.seconds) * 1_000_000_000 + d.microseconds * 1000
    return int(d)


def _call_marshaler(marshaler: Any, method: str, enc: Any) -> None:
    bound = getattr(marshaler, method, None)
    if callable(bound):
        bound(enc)
    else:
        marshaler(enc)


class _ByteSink:
    """A writable byte buffer handed to reflected encoders."""

    def __init__(self) -> None:
        self.data = bytearray()

    def write(self, data: Union[bytes, bytearray, str]) -> int:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.data += data
        return len(data)


def _json_default(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, (bytes, bytearray)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    raise TypeError(f"json: unsupported type: {type(obj).__name__}")


class _DefaultReflectedEncoder:
    """Encodes arbitrary values with the standard json module."""

    def __init__(self, writer: Any) -> None:
        self._writer = writer

    def encode(self, obj: Any) -> None:
        text = json.dumps(
            obj,
            ensure_ascii=False,
            separators=(",", ":"),
            allow_nan=False,
            default=_json_default,
        )
        self._writer.write((text + "\n").encode("utf-8"))


def _prepare_config(cfg: EncoderConfig) -> EncoderConfig:
    cfg = dataclasses.replace(cfg)
    if cfg.skip_line_ending:
        cfg.line_ending = ""
    elif cfg.line_ending == "":
        cfg.line_ending = DEFAULT_LINE_ENDING
    if cfg.new_reflected_encoder is None:
        cfg.new_reflected_encoder = _DefaultReflectedEncoder
    return cfg


class JSONEncoder:
    """Encodes entries and fields as JSON objects, escaping keys and values.

    Keys are not deduplicated. With ``spaced`` a space follows every colon
    and comma.
    """

    def __init__(self, cfg: EncoderConfig, spaced: bool = False) -> None:
        self.config = _prepare_config(cfg)
        self._spaced = spaced
        self._open_namespaces = 0
        self._buf = bytearray()
        self._reflect_sink: Optional[_ByteSink] = None
        self._reflect_enc: Any = None

    # Object encoder

    def add_array(self, key: str, marshaler: Any) -> None:
        self._add_key(key)
        self.append_array(marshaler)

    def add_object(self, key: str, marshaler: Any) -> None:
        self._add_key(key)
        self.append_object(marshaler)

    def add_binary(self, key: str, value: bytes) -> None:
        self.add_string(key, base64.b64encode(bytes(value)).decode("ascii"))

    def add_byte_string(self, key: str, value: bytes) -> None:
        self._add_key(key)
        self.append_byte_string(value)

    def add_bool(self, key: str, value: bool) -> None:
        self._add_key(key)
        self.append_bool(value)

    def add_complex128(self, key: str, value: complex) -> None:
        self._add_key(key)
        self.append_complex128(value)

    def add_complex64(self, key: str, value: complex) -> None:
        self._add_key(key)
        self.append_complex64(value)

    def add_duration(self, key: str, value: Union[int, timedelta]) -> None:
        self._add_key(key)
        self.append_duration(value)

    def add_float64(self, key: str, value: float) -> None:
        self._add_key(key)
        self.append_float64(value)

    def add_float32(self, key: str, value: float) -> None:
        self._add_key(key)
        self.append_float32(value)

    def add_int(self, key: str, value: int) -> None:
        self._add_key(key)
        self.append_int(value)

    def add_uint(self, key: str, value: int) -> None:
        self._add_key(key)
        self.append_uint(value)

    def add_string(self, key: str, value: str) -> None:
        self._add_key(key)
        self.append_string(value)

    def add_time(self, key: str, value: datetime) -> None:
        self._add_key(key)
        self.append_time(value)

    def add_reflected(self, key: str, value: Any) -> None:
        """Add any JSON-serializable value; the key is written only on success."""
        encoded = self._encode_reflected(value)
        self._add_key(key)
        self._buf += encoded

    def open_namespace(self, key: str) -> None:
        """Nest all following fields under ``key`` until the entry ends."""
        self._add_key(key)
        self._buf += b"{"
        self._open_namespaces += 1

    # Array encoder

    def append_array(self, marshaler: Any) -> None:
        self._add_element_separator()
        self._buf += b"["
        try:
            _call_marshaler(marshaler, "marshal_log_array", self)
        finally:
            self._buf += b"]"

    def append_object(self, marshaler: Any) -> None:
        # Only namespaces opened inside this object are closed with it.
        old = self._open_namespaces
        self._open_namespaces = 0
        self._add_element_separator()
        self._buf += b"{"
        try:
            _call_marshaler(marshaler, "marshal_log_object", self)
        finally:
            self._buf += b"}"
            self._close_open_namespaces()
            self._open_namespaces = old

    def append_bool(self, value: bool) -> None:
        self._add_element_separator()
        self._buf += b"true" if value else b"false"

    def append_byte_string(self, value: bytes) -> None:
        self._add_element_separator()
        self._buf += b'"'
        self._buf += _escape(bytes(value).decode("utf-8", "surrogateescape"))
        self._buf += b'"'

    def append_complex128(self, value: complex) -> None:
        self._append_complex(complex(value), 64)

    def append_complex64(self, value: complex) -> None:
        self._append_complex(complex(value), 32)

    def append_duration(self, value: Union[int, timedelta]) -> None:
        cur = len(self._buf)
        encode = self.config.encode_duration
        if encode is not None:
            encode(value, self)
        if cur == len(self._buf):
            self.append_int(_duration_nanos(value))

    def append_float64(self, value: float) -> None:
        self._append_float(value, 64)

    def append_float32(self, value: float) -> None:
        self._append_float(value, 32)

    def append_int(self, value: int) -> None:
        self._add_element_separator()
        self._buf += str(int(value)).encode("ascii")

    def append_uint(self, value: int) -> None:
        self._add_element_separator()
        self._buf += str(int(value)).encode("ascii")

    def append_string(self, value: str) -> None:
        self._add_element_separator()
        self._buf += b'"'
        self._buf += _escape(value)
        self._buf += b'"'

    def append_time(self, value: datetime) -> None:
        cur = len(self._buf)
        encode = self.config.encode_time
        if encode is not None:
            encode(value, self)
        if cur == len(self._buf):
            self.append_int(_unix_nanos(value))

    def append_time_layout(self, value: datetime, layout: str) -> None:
        self._add_element_separator()
        self._buf += b'"'
        self._buf += format_go_layout(value, layout).encode("utf-8")
        self._buf += b'"'

    def append_reflected(self, value: Any) -> None:
        encoded = self._encode_reflected(value)
        self._add_element_separator()
        self._buf += encoded

    # Entries

    def clone(self) -> "JSONEncoder":
        """Copy the encoder; fields added to the copy leave this one alone."""
        other = self._derive()
        other._buf += self._buf
        return other

    def encode_entry(self, ent: Entry, fields: Sequence[Field]) -> bytes:
        """Encode an entry, the accumulated context and ``fields`` as one line."""
        final = self._derive()
        cfg = final.config
        final._buf += b"{"

        if cfg.level_key and cfg.encode_level is not None:
            final._add_key(cfg.level_key)
            cur = len(final._buf)
            cfg.encode_level(ent.level, final)
            if cur == len(final._buf):
                final.append_string(str(ent.level))
        if cfg.time_key and ent.time is not None:
            final.add_time(cfg.time_key, ent.time)
        if ent.logger_name and cfg.name_key:
            final._add_key(cfg.name_key)
            cur = len(final._buf)
            name_encoder = cfg.encode_name or full_name_encoder
            name_encoder(ent.logger_name, final)
            if cur == len(final._buf):
                final.append_string(ent.logger_name)
        if ent.caller.defined:
            if cfg.caller_key:
                final._add_key(cfg.caller_key)
                cur = len(final._buf)
                if cfg.encode_caller is not None:
                    cfg.encode_caller(ent.caller, final)
                if cur == len(final._buf):
                    final.append_string(str(ent.caller))
            if cfg.function_key:
                final._add_key(cfg.function_key)
                final.append_string(ent.caller.function)
        if cfg.message_key:
            final._add_key(cfg.message_key)
            final.append_string(ent.message)
        if self._buf:
            final._add_element_separator()
            final._buf += self._buf
        add_fields(final, fields)
        final._close_open_namespaces()
        if ent.stack and cfg.stacktrace_key:
            final.add_string(cfg.stacktrace_key, ent.stack)
        final._buf += b"}"
        final._buf += cfg.line_ending.encode("utf-8")
        return bytes(final._buf)

    # Internals

    def _derive(self) -> "JSONEncoder":
        other = object.__new__(JSONEncoder)
        other.config = self.config
        other._spaced = self._spaced
        other._open_namespaces = self._open_namespaces
        other._buf = bytearray()
        other._reflect_sink = None
        other._reflect_enc = None
        return other

    def _close_open_namespaces(self) -> None:
        self._buf += b"}" * self._open_namespaces
        self._open_namespaces = 0

    def _add_key(self, key: str) -> None:
        self._add_element_separator()
        self._buf += b'"'
        self._buf += _escape(key)
        self._buf += b'":'
        if self._spaced:
            self._buf += b" "

    def _add_element_separator(self) -> None:
        if not self._buf or self._buf[-1] in _NO_SEPARATOR_AFTER:
            return
        self._buf += b", " if self._spaced else b","

    def _append_float(self, value: float, bits: int) -> None:
        self._add_element_separator()
        text = _format_float(value, bits)
        if text in ("NaN", "+Inf", "-Inf"):
            text = f'"{text}"'
        self._buf += text.encode("ascii")

    def _append_complex(self, value: complex, bits: int) -> None:
        self._add_element_separator()
        real = _format_float(value.real, bits)
        imag_value = value.imag if bits == 64 else _to_float32(value.imag)
        imag = _format_float(imag_value, bits)
        sign = "+" if imag_value >= 0 else ""
        self._buf += f'"{real}{sign}{imag}i"'.encode("ascii")

    def _encode_reflected(self, value: Any) -> bytes:
        if value is None:
            return _NULL
        if self._reflect_sink is None:
            self._reflect_sink = _ByteSink()
            factory: Callable[[Any], Any] = self.config.new_reflected_encoder
            self._reflect_enc = factory(self._reflect_sink)
        else:
            self._reflect_sink.data.clear()
        self._reflect_enc.encode(value)
        data = self._reflect_sink.data
        if data.endswith(b"\n"):
            del data[-1]
        return bytes(data)


def new_json_encoder(cfg: EncoderConfig) -> JSONEncoder:
    """Create a JSON encoder from ``cfg``, filling in default line ending
    and reflected encoder."""
    return JSONEncoder(cfg)