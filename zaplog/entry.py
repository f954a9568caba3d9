"""Log levels, entries, callers and checked entries."""

from __future__ import annotations

import dataclasses
import enum
import sys
from datetime import datetime
from typing import Any, List, Optional, Sequence

from zaplog.errors import combine_errors


class Level(enum.IntEnum):
    """A logging priority; higher levels are more important."""

    DEBUG = -1
    INFO = 0
    WARN = 1
    ERROR = 2
    DPANIC = 3
    PANIC = 4
    FATAL = 5
    INVALID = 6

    def __str__(self) -> str:
        if self is Level.INVALID:
            return f"Level({int(self)})"
        return self.name.lower()

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)

    def capital_string(self) -> str:
        """Return the level name in capitals, e.g. ``INFO``."""
        return str(self).upper()

    def enabled(self, level: "Level") -> bool:
        """Whether ``level`` is at or above this level."""
        return level >= self


MIN_LEVEL = Level.DEBUG
MAX_LEVEL = Level.FATAL
_LEVELS = tuple(lvl for lvl in Level if MIN_LEVEL <= lvl <= MAX_LEVEL)


def level_of(enabler: Any) -> Level:
    """Report the minimum enabled level of a level enabler.

    Uses the enabler's own ``level()`` when it has one, otherwise probes
    each level in turn. Returns Level.INVALID if no level is enabled.
    """
    if isinstance(enabler, Level):
        return enabler
    leveled = getattr(enabler, "level", None)
    if isinstance(leveled, Level):
        return leveled
    if callable(leveled):
        return leveled()
    for lvl in _LEVELS:
        if enabler.enabled(lvl):
            return lvl
    return Level.INVALID


@dataclasses.dataclass(frozen=True)
class EntryCaller:
    """The call site of a logging function."""

    defined: bool = False
    pc: int = 0
    file: str = ""
    line: int = 0
    function: str = ""

    def __str__(self) -> str:
        return self.full_path()

    def full_path(self) -> str:
        """Return ``/full/path/to/file:line``."""
        if not self.defined:
            return "undefined"
        return f"{self.file}:{self.line}"

    def trimmed_path(self) -> str:
        """Return ``dir/file:line``, keeping only the leaf directory."""
        if not self.defined:
            return "undefined"
        last = self.file.rfind("/")
        if last == -1:
            return self.full_path()
        penultimate = self.file.rfind("/", 0, last)
        if penultimate == -1:
            return self.full_path()
        return f"{self.file[penultimate + 1:]}:{self.line}"


def new_entry_caller(pc: int, file: str, line: int, ok: bool) -> EntryCaller:
    """Build an EntryCaller; undefined unless ``ok`` is true."""
    if not ok:
        return EntryCaller()
    return EntryCaller(defined=True, pc=pc, file=file, line=line)


@dataclasses.dataclass(frozen=True)
class Entry:
    """A complete log message; empty parts are omitted when encoding."""

    level: Level = Level.INFO
    time: Optional[datetime] = None
    logger_name: str = ""
    message: str = ""
    caller: EntryCaller = dataclasses.field(default_factory=EntryCaller)
    stack: str = ""


class EntryPanic(Exception):
    """Raised after writing an entry whose action is PANIC."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ThreadExit(BaseException):
    """Raised after writing an entry whose action is EXIT_THREAD."""


class CheckWriteAction(enum.IntEnum):
    """What to do after an entry is written, in increasing severity."""

    NOOP = 0
    EXIT_THREAD = 1
    PANIC = 2
    FATAL = 3

    def on_write(self, ce: "CheckedEntry", fields: Sequence[Any]) -> None:
        """Carry out the action for a written entry."""
        if self is CheckWriteAction.EXIT_THREAD:
            raise ThreadExit()
        if self is CheckWriteAction.PANIC:
            raise EntryPanic(ce.entry.message)
        if self is CheckWriteAction.FATAL:
            sys.exit(1)


def _format_time(t: Optional[datetime]) -> str:
    if t is None:
        return "0001-01-01 00:00:00 +0000 UTC"
    return str(t)


class CheckedEntry:
    """An entry together with the cores that have agreed to log it."""

    def __init__(self, entry: Optional[Entry] = None, error_output: Any = None) -> None:
        self.entry = entry if entry is not None else Entry()
        self.error_output = error_output
        self.cores: List[Any] = []
        self.hook: Any = None
        self._dirty = False

    def add_core(self, core: Any) -> "CheckedEntry":
        """Add a core that will write this entry."""
        self.cores.append(core)
        return self

    def after(self, hook: Any) -> "CheckedEntry":
        """Set the hook run after this entry is written."""
        self.hook = hook
        return self

    def write(self, *args: Any) -> None:
        """Write the entry and the given fields to every core, then run the hook.

        Core failures are reported to ``error_output``. A second write is
        refused and reported as unsafe re-use.
        """
        if self._dirty:
            if self.error_output is not None:
                self._report(
                    f"{_format_time(self.entry.time)} Unsafe CheckedEntry "
                    f"re-use near Entry {self.entry!r}.\n"
                )
            return
        self._dirty = True

        fields = list(args)
        failures = []
        for core in self.cores:
            try:
                core.write(self.entry, fields)
            except Exception as exc:
                failures.append(exc)
        err = combine_errors(*failures)
        if err is not None and self.error_output is not None:
            self._report(f"{_format_time(self.entry.time)} write error: {err}\n")

        hook = self.hook
        if hook is not None:
            if hasattr(hook, "on_write"):
                hook.on_write(self, fields)
            else:
                hook(self, fields)

    def _report(self, message: str) -> None:
        try:
            self.error_output.write(message.encode("utf-8"))
            self.error_output.sync()
        except Exception:
            pass


def add_core(ce: Optional[CheckedEntry], ent: Entry, core: Any) -> CheckedEntry:
    """Add a core to ``ce``, creating a CheckedEntry for ``ent`` if ce is None."""
    if ce is None:
        ce = CheckedEntry(ent)
    return ce.add_core(core)


def after(ce: Optional[CheckedEntry], ent: Entry, hook: Any) -> CheckedEntry:
    """Set the hook on ``ce``, creating a CheckedEntry for ``ent`` if ce is None."""
    if ce is None:
        ce = CheckedEntry(ent)
    return ce.after(hook)