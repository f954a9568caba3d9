"""Primitive encoders for levels, times, durations, callers and names,
and the configuration shared by the concrete entry encoders."""

from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from zaplog.entry import EntryCaller, Level

DEFAULT_LINE_ENDING = "\n"
OMIT_KEY = ""

LevelEncoder = Callable[[Level, Any], None]
TimeEncoder = Callable[[datetime, Any], None]
DurationEncoder = Callable[[Any], None]
CallerEncoder = Callable[[EntryCaller, Any], None]
NameEncoder = Callable[[str, Any], None]

Duration = Union[int, timedelta]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_SECOND = 1_000_000_000
_MILLISECOND = 1_000_000
_MICROSECOND = 1_000

RFC3339 = "2006-01-02T15:04:05Z07:00"
RFC3339_NANO = "2006-01-02T15:04:05.999999999Z07:00"
ISO8601 = "2006-01-02T15:04:05.000Z0700"


def _text(value: Union[str, bytes]) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


# Levels


def lowercase_level_encoder(level: Level, enc: Any) -> None:
    """Append the level in lower case, e.g. ``info``."""
    enc.append_string(str(level))


def capital_level_encoder(level: Level, enc: Any) -> None:
    """Append the level in capitals, e.g. ``INFO``."""
    enc.append_string(level.capital_string())


def level_encoder_from_text(text: Union[str, bytes]) -> LevelEncoder:
    """Choose a level encoder by name.

    ``capital`` and ``capitalColor`` select capitals; anything else selects
    lower case. Colouring is not applied.
    """
    if _text(text) in ("capital", "capitalColor"):
        return capital_level_encoder
    return lowercase_level_encoder


# Times


def _aware(t: datetime) -> datetime:
    return t if t.tzinfo is not None else t.astimezone()


def _unix_nanos(t: datetime) -> int:
    delta = _aware(t) - _EPOCH
    return (delta.days * 86400 + delta.seconds) * _SECOND + delta.microseconds * 1000


def epoch_time_encoder(t: datetime, enc: Any) -> None:
    """Append floating-point seconds since the Unix epoch."""
    enc.append_float64(_unix_nanos(t) / _SECOND)


def epoch_millis_time_encoder(t: datetime, enc: Any) -> None:
    """Append floating-point milliseconds since the Unix epoch."""
    enc.append_float64(_unix_nanos(t) / _MILLISECOND)


def epoch_nanos_time_encoder(t: datetime, enc: Any) -> None:
    """Append integer nanoseconds since the Unix epoch."""
    enc.append_int(_unix_nanos(t))


def _encode_time_layout(t: datetime, layout: str, enc: Any) -> None:
    appender = getattr(enc, "append_time_layout", None)
    if callable(appender):
        appender(t, layout)
        return
    enc.append_string(format_go_layout(t, layout))


def iso8601_time_encoder(t: datetime, enc: Any) -> None:
    """Append an ISO8601 string with millisecond precision."""
    _encode_time_layout(t, ISO8601, enc)


def rfc3339_time_encoder(t: datetime, enc: Any) -> None:
    """Append an RFC3339 string."""
    _encode_time_layout(t, RFC3339, enc)


def rfc3339_nano_time_encoder(t: datetime, enc: Any) -> None:
    """Append an RFC3339 string with sub-second precision."""
    _encode_time_layout(t, RFC3339_NANO, enc)


def time_encoder_of_layout(layout: str) -> TimeEncoder:
    """Return a time encoder formatting with a reference-time layout."""

    def encode(t: datetime, enc: Any) -> None:
        _encode_time_layout(t, layout, enc)

    return encode


def time_encoder_from_text(text: Union[str, bytes]) -> TimeEncoder:
    """Choose a time encoder by name; unknown names give epoch seconds."""
    name = _text(text)
    if name in ("rfc3339nano", "RFC3339Nano"):
        return rfc3339_nano_time_encoder
    if name in ("rfc3339", "RFC3339"):
        return rfc3339_time_encoder
    if name in ("iso8601", "ISO8601"):
        return iso8601_time_encoder
    if name == "millis":
        return epoch_millis_time_encoder
    if name == "nanos":
        return epoch_nanos_time_encoder
    return epoch_time_encoder


def time_encoder_from_value(value: Any) -> TimeEncoder:
    """Choose a time encoder from a decoded configuration value.

    A mapping selects its ``layout``; a string is treated as a name.
    Anything else raises ValueError.
    """
    if isinstance(value, Mapping):
        layout = value.get("layout", "")
        if layout is None:
            layout = ""
        if not isinstance(layout, str):
            raise ValueError(f"time encoder layout must be a string, not {layout!r}")
        return time_encoder_of_layout(layout)
    if isinstance(value, (str, bytes)):
        return time_encoder_from_text(value)
    if value is None:
        return time_encoder_from_text("")
    raise ValueError(f"cannot decode a time encoder from {value!r}")


_MONTHS = (
    "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
)
_DAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

# token -> (ISO style writes "Z" for UTC, colon, hours only, with seconds)
_ZONE_TOKENS: Dict[str, Tuple[bool, bool, bool, bool]] = {
    "Z070000": (True, False, False, True),
    "Z07:00:00": (True, True, False, True),
    "Z0700": (True, False, False, False),
    "Z07:00": (True, True, False, False),
    "Z07": (True, False, True, False),
    "-070000": (False, False, False, True),
    "-07:00:00": (False, True, False, True),
    "-0700": (False, False, False, False),
    "-07:00": (False, True, False, False),
    "-07": (False, False, True, False),
}
_ZONE_BY_LENGTH = sorted(_ZONE_TOKENS, key=len, reverse=True)


def _match_token(layout: str, i: int) -> Optional[str]:
    s = layout[i:]
    c = s[0]
    if c == "J":
        for tok in ("January", "Jan"):
            if s.startswith(tok):
                return tok
    elif c == "M":
        for tok in ("Monday", "Mon", "MST"):
            if s.startswith(tok):
                return tok
    elif c == "0":
        if len(s) >= 2 and s[1] in "123456":
            return s[:2]
        if s.startswith("002"):
            return "002"
    elif c == "1":
        return "15" if s.startswith("15") else "1"
    elif c == "2":
        return "2006" if s.startswith("2006") else "2"
    elif c == "_":
        if s.startswith("_2") and not s.startswith("_2006"):
            return "_2"
        if s.startswith("__2"):
            return "__2"
    elif c in "345":
        return c
    elif c == "P":
        if s.startswith("PM"):
            return "PM"
    elif c == "p":
        if s.startswith("pm"):
            return "pm"
    elif c in "-Z":
        for tok in _ZONE_BY_LENGTH:
            if tok[0] == c and s.startswith(tok):
                return tok
    elif c in ".,":
        if len(s) >= 2 and s[1] in "09":
            digit = s[1]
            j = 1
            while j < len(s) and s[j] == digit:
                j += 1
            if not (j < len(s) and s[j].isdigit()):
                return s[:j]
    return None


def _format_zone(offset: int, token: str) -> str:
    iso, colon, short, with_seconds = _ZONE_TOKENS[token]
    if offset == 0 and iso:
        return "Z"
    sign = "-" if offset < 0 else "+"
    absolute = abs(offset)
    minutes = absolute // 60
    out = f"{sign}{minutes // 60:02d}"
    if colon:
        out += ":"
    if not short:
        out += f"{minutes % 60:02d}"
    if with_seconds:
        if colon:
            out += ":"
        out += f"{absolute % 60:02d}"
    return out


def _zone_name(t: datetime, offset: int) -> str:
    name = t.tzname()
    if name and not (name.startswith("UTC") and len(name) > 3):
        return name
    minutes = abs(offset) // 60
    sign = "-" if offset < 0 else "+"
    return f"{sign}{minutes // 60:02d}{minutes % 60:02d}"


def _format_token(t: datetime, token: str, offset: int) -> str:
    hour12 = t.hour % 12 or 12
    simple: Dict[str, Callable[[], str]] = {
        "2006": lambda: f"{t.year:04d}",
        "06": lambda: f"{t.year % 100:02d}",
        "January": lambda: _MONTHS[t.month - 1],
        "Jan": lambda: _MONTHS[t.month - 1][:3],
        "1": lambda: str(t.month),
        "01": lambda: f"{t.month:02d}",
        "Monday": lambda: _DAYS[t.weekday()],
        "Mon": lambda: _DAYS[t.weekday()][:3],
        "2": lambda: str(t.day),
        "_2": lambda: f"{t.day:>2d}",
        "02": lambda: f"{t.day:02d}",
        "__2": lambda: f"{t.timetuple().tm_yday:>3d}",
        "002": lambda: f"{t.timetuple().tm_yday:03d}",
        "15": lambda: f"{t.hour:02d}",
        "3": lambda: str(hour12),
        "03": lambda: f"{hour12:02d}",
        "4": lambda: str(t.minute),
        "04": lambda: f"{t.minute:02d}",
        "5": lambda: str(t.second),
        "05": lambda: f"{t.second:02d}",
        "PM": lambda: "PM" if t.hour >= 12 else "AM",
        "pm": lambda: "pm" if t.hour >= 12 else "am",
        "MST": lambda: _zone_name(t, offset),
    }
    if token in simple:
        return simple[token]()
    if token in _ZONE_TOKENS:
        return _format_zone(offset, token)
    separator, digits = token[0], token[1:]
    nanos = f"{t.microsecond * 1000:09d}"
    if digits[0] == "0":
        return separator + nanos[: len(digits)]
    trimmed = nanos[: len(digits)].rstrip("0")
    return separator + trimmed if trimmed else ""


def format_go_layout(t: datetime, layout: str) -> str:
    """Format ``t`` with a layout written as the reference time
    ``Mon Jan 2 15:04:05 MST 2006``. Naive datetimes are taken as local."""
    t = _aware(t)
    offset_delta = t.utcoffset()
    offset = int(offset_delta.total_seconds()) if offset_delta is not None else 0
    out = []
    i = 0
    while i < len(layout):
        token = _match_token(layout, i)
        if token is None:
            out.append(layout[i])
            i += 1
            continue
        out.append(_format_token(t, token, offset))
        i += len(token)
    return "".join(out)


# Durations


def _nanos(d: Duration) -> int:
    if isinstance(d, timedelta):
        return (d.days * 86400 + d.seconds) * _SECOND + d.microseconds * 1000
    return int(d)


def _fraction(value: int, precision: int) -> Tuple[int, str]:
    if precision == 0:
        return value, ""
    whole, frac = divmod(value, 10**precision)
    digits = f"{frac:0{precision}d}".rstrip("0")
    return whole, ("." + digits) if digits else ""


def format_duration(d: Duration) -> str:
    """Format a duration (nanoseconds or timedelta) like ``1h2m0.5s``."""
    nanos = _nanos(d)
    if nanos == 0:
        return "0s"
    sign = "-" if nanos < 0 else ""
    u = abs(nanos)
    if u < _SECOND:
        if u < _MICROSECOND:
            unit, precision = "ns", 0
        elif u < _MILLISECOND:
            unit, precision = "µs", 3
        else:
            unit, precision = "ms", 6
        whole, frac = _fraction(u, precision)
        return f"{sign}{whole}{frac}{unit}"
    seconds, frac = _fraction(u, 9)
    text = f"{seconds % 60}{frac}s"
    minutes = seconds // 60
    if minutes > 0:
        text = f"{minutes % 60}m{text}"
        hours = minutes // 60
        if hours > 0:
            text = f"{hours}h{text}"
    return sign + text


def seconds_duration_encoder(d: Duration, enc: Any) -> None:
    """Append floating-point seconds."""
    enc.append_float64(_nanos(d) / _SECOND)


def nanos_duration_encoder(d: Duration, enc: Any) -> None:
    """Append integer nanoseconds."""
    enc.append_int(_nanos(d))


def millis_duration_encoder(d: Duration, enc: Any) -> None:
    """Append integer milliseconds, truncated toward zero."""
    nanos = _nanos(d)
    millis = abs(nanos) // _MILLISECOND
    enc.append_int(-millis if nanos < 0 else millis)


def string_duration_encoder(d: Duration, enc: Any) -> None:
    """Append the duration's string form, e.g. ``1m0s``."""
    enc.append_string(format_duration(d))


def duration_encoder_from_text(text: Union[str, bytes]) -> DurationEncoder:
    """Choose a duration encoder by name; unknown names give seconds."""
    name = _text(text)
    if name == "string":
        return string_duration_encoder
    if name == "nanos":
        return nanos_duration_encoder
    if name == "ms":
        return millis_duration_encoder
    return seconds_duration_encoder


# Callers and names


def full_caller_encoder(caller: EntryCaller, enc: Any) -> None:
    """Append the caller as ``/full/path/to/file:line``."""
    enc.append_string(str(caller))


def short_caller_encoder(caller: EntryCaller, enc: Any) -> None:
    """Append the caller as ``dir/file:line``."""
    enc.append_string(caller.trimmed_path())


def caller_encoder_from_text(text: Union[str, bytes]) -> CallerEncoder:
    """``full`` selects the full path; anything else the short one."""
    if _text(text) == "full":
        return full_caller_encoder
    return short_caller_encoder


def full_name_encoder(name: str, enc: Any) -> None:
    """Append the logger name as it is."""
    enc.append_string(name)


def name_encoder_from_text(text: Union[str, bytes]) -> NameEncoder:
    """Every name selects the full name encoder."""
    _text(text)
    return full_name_encoder


# Configuration

_STRING_KEYS = {
    "messageKey": "message_key",
    "levelKey": "level_key",
    "timeKey": "time_key",
    "nameKey": "name_key",
    "callerKey": "caller_key",
    "functionKey": "function_key",
    "stacktraceKey": "stacktrace_key",
    "lineEnding": "line_ending",
    "consoleSeparator": "console_separator",
}
_TEXT_ENCODER_KEYS = {
    "levelEncoder": ("encode_level", level_encoder_from_text),
    "durationEncoder": ("encode_duration", duration_encoder_from_text),
    "callerEncoder": ("encode_caller", caller_encoder_from_text),
    "nameEncoder": ("encode_name", name_encoder_from_text),
}


@dataclasses.dataclass
class EncoderConfig:
    """Keys and primitive encoders used by the entry encoders.

    An empty key omits that part of the entry.
    """

    message_key: str = ""
    level_key: str = ""
    time_key: str = ""
    name_key: str = ""
    caller_key: str = ""
    function_key: str = ""
    stacktrace_key: str = ""
    skip_line_ending: bool = False
    line_ending: str = ""
    encode_level: Optional[LevelEncoder] = None
    encode_time: Optional[TimeEncoder] = None
    encode_duration: Optional[DurationEncoder] = None
    encode_caller: Optional[CallerEncoder] = None
    encode_name: Optional[NameEncoder] = None
    new_reflected_encoder: Optional[Callable[[Any], Any]] = None
    console_separator: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EncoderConfig":
        """Build a config from decoded JSON or YAML using camelCase keys.

        Unknown keys and null values are ignored; values of the wrong type
        raise ValueError.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"encoder config must be a mapping, not {data!r}")
        cfg = cls()
        for key, value in data.items():
            if value is None:
                continue
            if key in _STRING_KEYS:
                if not isinstance(value, str):
                    raise ValueError(f"{key} must be a string, not {value!r}")
                setattr(cfg, _STRING_KEYS[key], value)
            elif key == "skipLineEnding":
                if not isinstance(value, bool):
                    raise ValueError(f"{key} must be a boolean, not {value!r}")
                cfg.skip_line_ending = value
            elif key == "timeEncoder":
                cfg.encode_time = time_encoder_from_value(value)
            elif key in _TEXT_ENCODER_KEYS:
                attr, decode = _TEXT_ENCODER_KEYS[key]
                if not isinstance(value, (str, bytes)):
                    raise ValueError(f"{key} must be a string, not {value!r}")
                setattr(cfg, attr, decode(value))
        return cfg