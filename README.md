# zaplog

A small, structured, leveled logging core. Log entries pass through
*cores*, which decide whether an entry is logged, encode it with a JSON
or console encoder, and write the bytes to a destination.

The package has no dependencies outside the standard library.

## Installing

```
pip install zaplog
```

To run the test suite:

```
pip install "zaplog[test]"
pytest
```

## Modules

- `zaplog.entry`: `Level` (`DEBUG`, `INFO`, `WARN`, `ERROR`, `DPANIC`,
  `PANIC`, `FATAL`), `level_of()`, `Entry`, `EntryCaller` (with
  `full_path()` and `trimmed_path()`), `CheckedEntry`, and
  `CheckWriteAction`. After writing, the `PANIC` action raises
  `EntryPanic`, `EXIT_THREAD` raises `ThreadExit`, and `FATAL` calls
  `sys.exit(1)`.
- `zaplog.field`: `Field` and `FieldType`, typed key/value context that
  is added to an encoder with `Field.add_to()`. A failure while
  marshaling a rich value is recorded as a `<key>Error` string field.
- `zaplog.errors`: `MultiError`, `combine_errors()`, `append_error()` and
  `encode_error()`, which writes an error's message, its causes (for
  errors with an `errors()` method) and a verbose form where one differs.
- `zaplog.encoder`: `EncoderConfig` and the primitive encoders for
  levels, times, durations, callers and names, plus the `*_from_text()`
  helpers that choose one by name. `format_go_layout()` formats a
  datetime from a reference-time layout such as
  `"2006-01-02T15:04:05.000Z0700"`; `format_duration()` renders a
  duration like `1m0s`.
- `zaplog.json_encoder`: `JSONEncoder` / `new_json_encoder()`.
- `zaplog.console_encoder`: `ConsoleEncoder` / `new_console_encoder()`,
  which writes time, level, name, caller and message as plain text
  separated by `console_separator` (a tab by default) and the context as
  JSON.
- `zaplog.core`: `new_core()` ties an encoder, a byte destination and a
  level together; `new_nop_core()` drops everything.
- `zaplog.hook`: `register_hooks()` calls functions with every entry a
  core logs.
- `zaplog.increase_level`: `new_increase_level_core()` raises a core's
  minimum level, and raises `ValueError` if asked to lower it.
- `zaplog.lazy_with`: `new_lazy_with()` adds context fields only when
  the core is first written to or chained.
- `zaplog.buffered_write_syncer`: `BufferedWriteSyncer` buffers writes
  in memory and flushes them when the buffer is full, on a timer, on
  `sync()` and on `stop()`.
- `zaplog.clock`: `SystemClock`, `Ticker` and `DEFAULT_CLOCK`.

## Example

Destinations receive bytes, so give a core a binary stream such as
`sys.stdout.buffer`.

```python
import sys
from datetime import datetime, timezone

from zaplog.core import new_core
from zaplog.encoder import EncoderConfig, iso8601_time_encoder, lowercase_level_encoder
from zaplog.entry import Entry, Level
from zaplog.field import Field, FieldType
from zaplog.json_encoder import new_json_encoder

cfg = EncoderConfig(
    message_key="msg",
    level_key="level",
    time_key="ts",
    encode_level=lowercase_level_encoder,
    encode_time=iso8601_time_encoder,
)
core = new_core(new_json_encoder(cfg), sys.stdout.buffer, Level.INFO)

entry = Entry(level=Level.INFO, time=datetime.now(timezone.utc), message="started")
ce = core.check(entry, None)
if ce is not None:
    ce.write(Field(key="port", type=FieldType.INT64, integer=8080))
```

This prints a line such as:

```
{"level":"info","ts":"2024-01-01T12:00:00.000Z","msg":"started","port":8080}
```

`check` returns `None` for entries below the core's level, so nothing is
encoded for them. An entry without a time leaves the time out.

With `new_console_encoder(cfg)` in place of `new_json_encoder(cfg)` the
same entry comes out as:

```
2024-01-01T12:00:00.000Z	info	started	{"port": 8080}
```

Context added with `core.with_fields([...])` appears in every later entry.

## Configuration from a mapping

`EncoderConfig.from_dict()` reads camelCase keys, as found in a decoded
JSON or YAML document:

```python
import json

from zaplog.encoder import EncoderConfig

cfg = EncoderConfig.from_dict(json.loads("""
{
  "messageKey": "msg",
  "levelKey": "level",
  "timeKey": "ts",
  "levelEncoder": "capital",
  "timeEncoder": {"layout": "06/01/02 03:04pm"},
  "durationEncoder": "string"
}
"""))
```

`timeEncoder` takes a name (`iso8601`, `rfc3339`, `rfc3339nano`,
`millis`, `nanos`; anything else gives epoch seconds) or a mapping with a
`layout`. Unknown keys and null values are ignored; values of the wrong
type raise `ValueError`.

## Buffered output

```python
import sys

from zaplog.buffered_write_syncer import BufferedWriteSyncer

with BufferedWriteSyncer(sys.stderr.buffer, size=512 * 1024, flush_interval=60.0) as ws:
    core = new_core(new_json_encoder(cfg), ws, Level.DEBUG)
    ...
```

By default the buffer holds 256 kB and is flushed at least every 30
seconds by a background thread. Leaving the `with` block calls `stop()`,
which ends the flusher and writes out what is left.

## What it does not do

This is the core layer only. There is no high-level logger with
`info()`/`error()` methods, no field-building helpers, no sampling and no
file or sink configuration: you build `Entry` and `Field` values yourself
and call `check()` and `write()` on a core. The colour level-encoder
names (`color`, `capitalColor`) are accepted but produce plain text.