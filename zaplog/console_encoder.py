"""An encoder that writes entries as human-readable lines with JSON context."""

from __future__ import annotations

import dataclasses
import math
from decimal import Decimal
from typing import Any, List, Sequence

from zaplog.encoder import EncoderConfig, full_name_encoder
from zaplog.entry import Entry
from zaplog.field import Field, add_fields
from zaplog.json_encoder import JSONEncoder

DEFAULT_CONSOLE_SEPARATOR = "\t"


def _format_float(value: float) -> str:
    """Shortest digits, switching to exponent form for very large or small values."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"
    number = Decimal(repr(value)).normalize()
    exponent = number.adjusted()
    if -4 <= exponent < 21:
        return format(number, "f")
    sign, digits, _ = number.as_tuple()
    text = "".join(str(d) for d in digits)
    mantissa = text[0] + ("." + text[1:] if len(text) > 1 else "")
    exp_sign = "+" if exponent >= 0 else "-"
    return f"{'-' if sign else ''}{mantissa}e{exp_sign}{abs(exponent):02d}"


def _print_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, complex):
        imag = _format_float(value.imag)
        sign = "" if imag.startswith("-") else "+"
        return f"({_format_float(value.real)}{sign}{imag}i)"
    return str(value)


class _SliceArrayEncoder:
    """Collects primitive values appended by the entry metadata encoders."""

    def __init__(self) -> None:
        self.elems: List[Any] = []

    def append_bool(self, value: bool) -> None:
        self.elems.append(bool(value))

    def append_byte_string(self, value: bytes) -> None:
        self.elems.append(bytes(value).decode("utf-8", "replace"))

    def append_complex128(self, value: complex) -> None:
        self.elems.append(complex(value))

    def append_complex64(self, value: complex) -> None:
        self.elems.append(complex(value))

    def append_float64(self, value: float) -> None:
        self.elems.append(float(value))

    def append_float32(self, value: float) -> None:
        self.elems.append(float(value))

    def append_int(self, value: int) -> None:
        self.elems.append(int(value))

    def append_uint(self, value: int) -> None:
        self.elems.append(int(value))

    def append_string(self, value: str) -> None:
        self.elems.append(str(value))


class ConsoleEncoder(JSONEncoder):
    """Writes entry metadata as plain text and the structured context as JSON.

    Keys are not printed, but an empty key still omits that part of the entry.
    """

    def __init__(self, cfg: EncoderConfig) -> None:
        if cfg.console_separator == "":
            cfg = dataclasses.replace(cfg, console_separator=DEFAULT_CONSOLE_SEPARATOR)
        super().__init__(cfg, spaced=True)

    def clone(self) -> "ConsoleEncoder":
        """Copy the encoder; fields added to the copy leave this one alone."""
        base = super().clone()
        other = object.__new__(ConsoleEncoder)
        other.__dict__.update(vars(base))
        return other

    def encode_entry(self, ent: Entry, fields: Sequence[Field]) -> bytes:
        """Encode an entry as one line: metadata, message, context, stack."""
        cfg = self.config
        arr = _SliceArrayEncoder()
        if cfg.time_key and cfg.encode_time is not None and ent.time is not None:
            cfg.encode_time(ent.time, arr)
        if cfg.level_key and cfg.encode_level is not None:
            cfg.encode_level(ent.level, arr)
        if ent.logger_name and cfg.name_key:
            (cfg.encode_name or full_name_encoder)(ent.logger_name, arr)
        if ent.caller.defined:
            if cfg.caller_key and cfg.encode_caller is not None:
                cfg.encode_caller(ent.caller, arr)
            if cfg.function_key:
                arr.append_string(ent.caller.function)

        line = cfg.console_separator.join(_print_value(elem) for elem in arr.elems)

        if cfg.message_key:
            line = self._with_separator(line) + ent.message

        context = self._context(fields)
        if context:
            line = self._with_separator(line) + "{" + context + "}"

        if ent.stack and cfg.stacktrace_key:
            line += "\n" + ent.stack

        line += cfg.line_ending
        return line.encode("utf-8", "replace")

    def _context(self, fields: Sequence[Field]) -> str:
        context = JSONEncoder.clone(self)
        add_fields(context, fields)
        context._close_open_namespaces()
        return bytes(context._buf).decode("utf-8")

    def _with_separator(self, line: str) -> str:
        if line:
            return line + self.config.console_separator
        return line


def new_console_encoder(cfg: EncoderConfig) -> ConsoleEncoder:
    """Create a console encoder; the separator defaults to a tab."""
    return ConsoleEncoder(cfg)